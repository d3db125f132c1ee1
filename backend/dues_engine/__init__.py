"""Dues Engine - membership dues, payment ledger and delinquency service."""

__version__ = "1.0.0"
