"""RAB Ledger: budget allocation, expense claims and approval service."""

__version__ = "0.1.0"
