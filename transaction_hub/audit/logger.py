"""
Audit Logger

DESIGN DECISION: Every state a submission passes through is logged,
locally through structlog and, when storage is configured, to the audit
worksheet. Storage failures are logged and swallowed: losing an audit row
must never lose a transaction.

Events of one submission share a correlation id from create_correlation_id().
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from transaction_hub.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from transaction_hub.services.storage import AuditStorageInterface


_LEVELS = {
    AuditSeverity.DEBUG: logging.DEBUG,
    AuditSeverity.INFO: logging.INFO,
    AuditSeverity.WARNING: logging.WARNING,
    AuditSeverity.ERROR: logging.ERROR,
    AuditSeverity.CRITICAL: logging.CRITICAL,
}


def configure_logging(debug: bool = False) -> None:
    """
    JSON logs for everything under structlog.

    With debug on, the threshold drops to DEBUG and output is rendered
    for a terminal instead.
    """
    logging.basicConfig(format="%(message)s", level=logging.DEBUG if debug else logging.INFO)
    renderer = structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()


class AuditLogger:
    """Writes audit events to the local log and, optionally, to audit storage."""

    def __init__(self, storage: Optional[AuditStorageInterface] = None):
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    @property
    def persistent(self) -> bool:
        return self._storage is not None

    async def log(self, event: AuditEvent) -> bool:
        """
        Returns False only when the storage write failed.
        """
        self._logger.log(_LEVELS[event.severity], "audit_event", **event.to_log_dict())

        if self._storage is None:
            return True
        try:
            return await self._storage.append_event(event)
        except Exception as e:
            self._logger.error("audit_storage_failed", error=str(e), event_id=str(event.event_id))
            return False

    # Submission lifecycle

    async def log_submission_received(self, modality: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.submission_received(modality, correlation_id))

    async def log_submission_rejected(self, modality: str, reason: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.submission_rejected(modality, reason, correlation_id))

    async def log_extraction_completed(
        self,
        modality: str,
        candidate_count: int,
        correlation_id: UUID,
        confidence: Optional[float] = None,
    ) -> None:
        await self.log(AuditEventBuilder.extraction_completed(
            modality, candidate_count, correlation_id, confidence=confidence
        ))

    async def log_extraction_failed(self, modality: str, error_message: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.extraction_failed(modality, error_message, correlation_id))

    async def log_statement_item_rejected(self, reason: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.statement_item_rejected(reason, correlation_id))

    async def log_validation_failed(self, issues: list[dict], correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.validation_failed(issues, correlation_id))

    # Ledger and balances

    async def log_transaction_persisted(
        self,
        transaction_id: str,
        ledger: str,
        asset_type: str,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transaction_persisted(
            transaction_id=transaction_id,
            ledger=ledger,
            asset_type=asset_type,
            amount=amount,
            correlation_id=correlation_id,
        ))

    async def log_persistence_failed(self, ledger: str, error_message: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.persistence_failed(ledger, error_message, correlation_id))

    async def log_balance_adjusted(
        self,
        account_kind: str,
        account_id: str,
        amount: str,
        direction: str,
        transaction_id: Optional[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.balance_adjusted(
            account_kind=account_kind,
            account_id=account_id,
            amount=amount,
            direction=direction,
            transaction_id=transaction_id,
            correlation_id=correlation_id,
        ))

    async def log_balance_sync_failed(
        self,
        account_kind: str,
        account_id: str,
        transaction_id: Optional[str],
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """The record an external reconciliation uses to repair a stale balance."""
        await self.log(AuditEventBuilder.balance_sync_failed(
            account_kind=account_kind,
            account_id=account_id,
            transaction_id=transaction_id,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_net_worth_refreshed(self, correlation_id: Optional[UUID]) -> None:
        await self.log(AuditEventBuilder.net_worth_refreshed(correlation_id))

    async def log_net_worth_refresh_failed(self, error_message: str, correlation_id: Optional[UUID]) -> None:
        await self.log(AuditEventBuilder.net_worth_refresh_failed(error_message, correlation_id))

    # Errors

    async def log_external_service_error(self, service: str, error_message: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.external_service_error(service, error_message, correlation_id))

    async def log_system_error(self, error: Exception, correlation_id: Optional[UUID] = None) -> None:
        await self.log(AuditEventBuilder.system_error(type(error).__name__, str(error), correlation_id))


def create_correlation_id() -> UUID:
    """
    New id for one user action (one analyze click, one file drop, one
    form submit). Pass it through everything that action triggers.
    """
    return uuid4()
