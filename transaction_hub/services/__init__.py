"""Services package."""

from transaction_hub.services.ocr import (
    ExtractionFailedError,
    MindeeReceiptService,
    OCRError,
    ReceiptRejectedError,
)
from transaction_hub.services.storage import (
    AccountBalanceInterface,
    AuditStorageInterface,
    ConnectionError,
    GoogleSheetsAccountStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    GoogleSheetsNetWorthService,
    LedgerStorageInterface,
    NetWorthInterface,
    NotFoundError,
    StorageError,
)

__all__ = [
    # OCR services
    "ExtractionFailedError",
    "MindeeReceiptService",
    "OCRError",
    "ReceiptRejectedError",
    # Storage services
    "AccountBalanceInterface",
    "AuditStorageInterface",
    "ConnectionError",
    "GoogleSheetsAccountStorage",
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
    "GoogleSheetsNetWorthService",
    "LedgerStorageInterface",
    "NetWorthInterface",
    "NotFoundError",
    "StorageError",
]
