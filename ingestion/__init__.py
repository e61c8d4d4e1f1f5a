"""
Data Ingestion Module

Turns uploads and provider data into validated daily records:
- CSV parsing for both upload layouts, with row-level errors
- Series normalization (ordering, unitization, benchmark forward-fill)
- yfinance for benchmark index levels
"""

__version__ = "1.0.0"
