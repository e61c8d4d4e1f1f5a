"""
Test Suite for the Portfolio Analytics Dashboard

Package-level tests live beside each package (ingestion/tests, analysis/tests, ...);
this directory holds end-to-end tests of the top-level CLI.
"""
