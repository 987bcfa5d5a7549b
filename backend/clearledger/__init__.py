"""ClearLedger: ledger ingestion, categorization and statement reconciliation."""

__version__ = "1.0.0"
