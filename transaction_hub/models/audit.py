"""
Audit Models for Transaction Hub

One AuditEvent per state a submission passes through. The audit trail is
what an external reconciliation process reads to find transactions that
were saved without their balance update.

DESIGN DECISION: Audit logs are append-only. Severity is a property of
the event type, not of the call site, so the same failure is never
logged at two different levels.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """One member per submission state worth keeping."""
    SUBMISSION_RECEIVED = "submission_received"
    SUBMISSION_REJECTED = "submission_rejected"

    EXTRACTION_COMPLETED = "extraction_completed"
    EXTRACTION_FAILED = "extraction_failed"
    STATEMENT_ITEM_REJECTED = "statement_item_rejected"

    VALIDATION_FAILED = "validation_failed"

    TRANSACTION_PERSISTED = "transaction_persisted"
    PERSISTENCE_FAILED = "persistence_failed"

    BALANCE_ADJUSTED = "balance_adjusted"
    BALANCE_SYNC_FAILED = "balance_sync_failed"

    NET_WORTH_REFRESHED = "net_worth_refreshed"
    NET_WORTH_REFRESH_FAILED = "net_worth_refresh_failed"

    EXTERNAL_SERVICE_ERROR = "external_service_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


_E = AuditEventType

SEVERITY: dict[AuditEventType, AuditSeverity] = {
    _E.SUBMISSION_RECEIVED: AuditSeverity.INFO,
    _E.SUBMISSION_REJECTED: AuditSeverity.WARNING,
    _E.EXTRACTION_COMPLETED: AuditSeverity.INFO,
    _E.EXTRACTION_FAILED: AuditSeverity.WARNING,
    _E.STATEMENT_ITEM_REJECTED: AuditSeverity.WARNING,
    _E.VALIDATION_FAILED: AuditSeverity.WARNING,
    _E.TRANSACTION_PERSISTED: AuditSeverity.INFO,
    _E.PERSISTENCE_FAILED: AuditSeverity.ERROR,
    _E.BALANCE_ADJUSTED: AuditSeverity.INFO,
    # A saved transaction with a stale balance needs a human
    _E.BALANCE_SYNC_FAILED: AuditSeverity.CRITICAL,
    _E.NET_WORTH_REFRESHED: AuditSeverity.INFO,
    _E.NET_WORTH_REFRESH_FAILED: AuditSeverity.WARNING,
    _E.EXTERNAL_SERVICE_ERROR: AuditSeverity.ERROR,
    _E.SYSTEM_ERROR: AuditSeverity.ERROR,
}

# Column order of the audit worksheet
SHEET_COLUMNS = (
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
)


class AuditEvent(BaseModel):
    """A single entry of the audit trail."""

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # What the event is about: a submission, a transaction, an account...
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None

    # Shared by every event of one submission
    correlation_id: Optional[UUID] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)
    error_message: Optional[str] = None
    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        return self.model_dump(mode="json")

    def to_sheets_row(self) -> list[str]:
        """One string cell per SHEET_COLUMNS entry, blanks for missing values."""
        values = self.to_log_dict()
        values["details_json"] = json.dumps(self.details, default=str) if self.details else ""
        values["is_user_action"] = str(self.is_user_action)
        return ["" if values.get(column) is None else str(values[column]) for column in SHEET_COLUMNS]


def _event(
    event_type: AuditEventType,
    description: str,
    correlation_id: Optional[UUID],
    **fields: Any,
) -> AuditEvent:
    return AuditEvent(
        event_type=event_type,
        severity=SEVERITY[event_type],
        description=description,
        correlation_id=correlation_id,
        **fields,
    )


class AuditEventBuilder:
    """
    One constructor per event type.

    Usage:
        event = AuditEventBuilder.submission_received("SMS", correlation_id)
        event = AuditEventBuilder.balance_sync_failed("credit_card", "123", txn_id, msg, correlation_id)
    """

    @staticmethod
    def submission_received(modality: str, correlation_id: UUID) -> AuditEvent:
        return _event(
            _E.SUBMISSION_RECEIVED,
            f"{modality} submission received",
            correlation_id,
            entity_type="submission",
            details={"modality": modality},
            is_user_action=True,
        )

    @staticmethod
    def submission_rejected(modality: str, reason: str, correlation_id: UUID) -> AuditEvent:
        return _event(
            _E.SUBMISSION_REJECTED,
            f"{modality} submission rejected",
            correlation_id,
            entity_type="submission",
            error_message=reason,
            details={"modality": modality},
        )

    @staticmethod
    def extraction_completed(
        modality: str,
        candidate_count: int,
        correlation_id: UUID,
        confidence: Optional[float] = None,
    ) -> AuditEvent:
        details: dict[str, Any] = {"modality": modality, "candidate_count": candidate_count}
        if confidence is not None:
            details["confidence"] = confidence
        return _event(
            _E.EXTRACTION_COMPLETED,
            f"{modality} extraction produced {candidate_count} candidate(s)",
            correlation_id,
            entity_type="extraction",
            details=details,
        )

    @staticmethod
    def extraction_failed(modality: str, error_message: str, correlation_id: UUID) -> AuditEvent:
        return _event(
            _E.EXTRACTION_FAILED,
            f"{modality} extraction failed",
            correlation_id,
            entity_type="extraction",
            error_message=error_message,
            details={"modality": modality},
        )

    @staticmethod
    def statement_item_rejected(reason: str, correlation_id: UUID) -> AuditEvent:
        return _event(
            _E.STATEMENT_ITEM_REJECTED,
            "Statement line item rejected",
            correlation_id,
            entity_type="extraction",
            error_message=reason,
        )

    @staticmethod
    def validation_failed(issues: list[dict], correlation_id: UUID) -> AuditEvent:
        return _event(
            _E.VALIDATION_FAILED,
            f"Candidate rejected with {len(issues)} issue(s)",
            correlation_id,
            entity_type="candidate",
            details={"issues": issues},
        )

    @staticmethod
    def transaction_persisted(
        transaction_id: str,
        ledger: str,
        asset_type: str,
        amount: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return _event(
            _E.TRANSACTION_PERSISTED,
            f"{asset_type} transaction saved to {ledger} ledger: {amount}",
            correlation_id,
            entity_type="transaction",
            entity_id=transaction_id,
            details={"ledger": ledger, "asset_type": asset_type, "amount": amount},
        )

    @staticmethod
    def persistence_failed(ledger: str, error_message: str, correlation_id: UUID) -> AuditEvent:
        return _event(
            _E.PERSISTENCE_FAILED,
            f"Failed to write to {ledger} ledger",
            correlation_id,
            entity_type="transaction",
            error_message=error_message,
            details={"ledger": ledger},
        )

    @staticmethod
    def balance_adjusted(
        account_kind: str,
        account_id: str,
        amount: str,
        direction: str,
        transaction_id: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return _event(
            _E.BALANCE_ADJUSTED,
            f"Balance {direction}d by {amount}",
            correlation_id,
            entity_type=account_kind,
            entity_id=account_id,
            details={"amount": amount, "direction": direction, "transaction_id": transaction_id},
        )

    @staticmethod
    def balance_sync_failed(
        account_kind: str,
        account_id: str,
        transaction_id: Optional[str],
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return _event(
            _E.BALANCE_SYNC_FAILED,
            "Transaction saved but balance not updated",
            correlation_id,
            entity_type=account_kind,
            entity_id=account_id,
            error_message=error_message,
            details={"transaction_id": transaction_id},
        )

    @staticmethod
    def net_worth_refreshed(correlation_id: Optional[UUID]) -> AuditEvent:
        return _event(_E.NET_WORTH_REFRESHED, "Net worth recomputed", correlation_id, entity_type="net_worth")

    @staticmethod
    def net_worth_refresh_failed(error_message: str, correlation_id: Optional[UUID]) -> AuditEvent:
        return _event(
            _E.NET_WORTH_REFRESH_FAILED,
            "Net worth refresh failed",
            correlation_id,
            entity_type="net_worth",
            error_message=error_message,
        )

    @staticmethod
    def external_service_error(service: str, error_message: str, correlation_id: UUID) -> AuditEvent:
        return _event(
            _E.EXTERNAL_SERVICE_ERROR,
            f"{service} call failed",
            correlation_id,
            entity_type="service",
            entity_id=service,
            error_message=error_message,
        )

    @staticmethod
    def system_error(error_type: str, error_message: str, correlation_id: Optional[UUID] = None) -> AuditEvent:
        return _event(
            _E.SYSTEM_ERROR,
            f"Unexpected {error_type}",
            correlation_id,
            error_message=error_message,
            details={"error_type": error_type},
        )
