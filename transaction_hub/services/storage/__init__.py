"""
Storage Services Package

Provides abstract interfaces and concrete implementations for the ledgers,
account balances, net worth aggregate and audit log.
Currently implements Google Sheets as the backend, but designed to be swappable.
"""

from transaction_hub.services.storage.interface import (
    AccountBalanceInterface,
    AuditStorageInterface,
    ConnectionError,
    LedgerStorageInterface,
    NetWorthInterface,
    NotFoundError,
    StorageError,
)
from transaction_hub.services.storage.google_sheets import (
    GoogleSheetsAccountStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    GoogleSheetsNetWorthService,
)

__all__ = [
    # Interfaces
    "AccountBalanceInterface",
    "AuditStorageInterface",
    "LedgerStorageInterface",
    "NetWorthInterface",
    # Exceptions
    "ConnectionError",
    "NotFoundError",
    "StorageError",
    # Google Sheets implementation
    "GoogleSheetsAccountStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "GoogleSheetsNetWorthService",
]
