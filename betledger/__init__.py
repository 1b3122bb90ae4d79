"""Betbook ledger: bankrolls, operations and bet settlement."""

__version__ = "0.1.0"
