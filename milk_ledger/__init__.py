"""Milk ledger: shift records, aggregation and reports for milk dispensing machines."""

__version__ = "1.0.0"
