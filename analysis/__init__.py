"""
Analysis Engine Module

Calculates portfolio metrics from a normalized daily series:
- Total and annualized returns vs benchmarks
- Volatility (full period and rolling), Sharpe, Sortino, Calmar, information ratio
- Drawdown curve and recovery
- Correlation, beta and alpha per benchmark
- Calendar, rolling and seasonal returns
- Investment growth projection
"""

__version__ = "1.0.0"
