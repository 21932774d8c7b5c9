"""
Data Models Package

This package contains all Pydantic models used in Transaction Hub.
All data flowing through the ingestion pipeline must conform to these schemas.
"""

from transaction_hub.models.transaction import (
    LEDGER_FOR_ASSET,
    NO_LINKAGE,
    AccountKind,
    AccountReference,
    AccountSelection,
    AssetType,
    Badge,
    BalanceDirection,
    IngestionRequest,
    IngestionResult,
    IngestionStatus,
    LedgerKind,
    Linkage,
    LinkedAccount,
    ManualForm,
    ManualIngestion,
    ReceiptIngestion,
    ResultPresentation,
    SmsIngestion,
    StatementExtraction,
    StatementIngestion,
    Transaction,
    TransactionCandidate,
    TransactionSource,
    TransactionType,
    ValidationIssue,
)
from transaction_hub.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Transaction models
    "LEDGER_FOR_ASSET",
    "NO_LINKAGE",
    "AccountKind",
    "AccountReference",
    "AccountSelection",
    "AssetType",
    "Badge",
    "BalanceDirection",
    "IngestionRequest",
    "IngestionResult",
    "IngestionStatus",
    "LedgerKind",
    "Linkage",
    "LinkedAccount",
    "ManualForm",
    "ManualIngestion",
    "ReceiptIngestion",
    "ResultPresentation",
    "SmsIngestion",
    "StatementExtraction",
    "StatementIngestion",
    "Transaction",
    "TransactionCandidate",
    "TransactionSource",
    "TransactionType",
    "ValidationIssue",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
