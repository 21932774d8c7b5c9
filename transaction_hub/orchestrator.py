"""
Main Orchestrator for Transaction Hub

This module ties together all the components and defines the single
end-to-end flow shared by the four ingestion modalities:

    SMS        -> SmsAdapter       -+
    Receipt    -> ReceiptAdapter   -+-> candidate(s) -> LedgerDispatcher -> IngestionResult
    Statement  -> StatementAdapter -+
    Manual     -> ManualInputNormalizer

DESIGN DECISION: The orchestrator enforces the boundaries:
- One submission per input surface at a time (the loading gate)
- Nothing is persisted from a failed extraction
- Every failure ends in a human-readable message
- Every step is audited under one correlation id

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

from typing import Optional, Union
from uuid import UUID

import structlog
from pydantic import TypeAdapter, ValidationError

from transaction_hub.agents import SmsParsingAgent, StatementParsingAgent
from transaction_hub.audit import AuditLogger, create_correlation_id
from transaction_hub.exceptions import ExtractionError, TransactionValidationError
from transaction_hub.extraction import ReceiptAdapter, SmsAdapter, StatementAdapter
from transaction_hub.ledger import (
    AccountLinkageResolver,
    DispatchOutcome,
    LedgerDispatcher,
    NetWorthRefreshTrigger,
)
from transaction_hub.models.transaction import (
    AssetType,
    IngestionRequest,
    IngestionResult,
    IngestionStatus,
    LedgerKind,
    ManualIngestion,
    ReceiptIngestion,
    ResultPresentation,
    SmsIngestion,
    StatementIngestion,
    Transaction,
    TransactionCandidate,
    TransactionSource,
)
from transaction_hub.presentation import present_result
from transaction_hub.services.ocr import MindeeReceiptService
from transaction_hub.services.storage import (
    GoogleSheetsAccountStorage,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    GoogleSheetsNetWorthService,
)
from transaction_hub.validation import ManualInputNormalizer


logger = structlog.get_logger(__name__)


# User-facing messages
SMS_FAILED = "Failed to parse SMS"
RECEIPT_FAILED = "Failed to analyze receipt."
SAVE_FAILED = "Failed to save transaction"
STATEMENT_FAILED = "Failed to upload/analyze statement."
BALANCE_NOT_UPDATED = "Transaction saved, balance not updated."
BUSY = "A submission is already in progress. Please wait for it to finish."
UNEXPECTED_ERROR = "Something went wrong while processing this submission."

_REQUEST_ADAPTER = TypeAdapter(IngestionRequest)


def invalid_fields(error: ValidationError) -> list[str]:
    """
    Field names from a request validation error, without the modality tag
    pydantic puts first for a tagged union. A missing or unknown tag is
    reported as "modality".
    """
    fields = []
    for detail in error.errors():
        loc = [str(part) for part in detail["loc"]]
        if detail["type"].startswith("union_tag") or not loc:
            name = "modality"
        else:
            name = ".".join(loc[1:] or loc)
        if name not in fields:
            fields.append(name)
    return fields


class IngestionPipeline:
    """
    Orchestrates one ingestion submission from raw input to persisted record.

    Flow:
    1. Gate       -> refuse if this surface is already busy
    2. Extract    -> adapter (or manual normalizer) produces candidate(s)
    3. Link       -> the submission's account selection is attached
    4. Dispatch   -> validate, persist, adjust balance, refresh net worth
    5. Report     -> IngestionResult with status and message
    """

    def __init__(
        self,
        dispatcher: LedgerDispatcher,
        sms_adapter: Optional[SmsAdapter] = None,
        receipt_adapter: Optional[ReceiptAdapter] = None,
        statement_adapter: Optional[StatementAdapter] = None,
        manual_normalizer: Optional[ManualInputNormalizer] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._dispatcher = dispatcher
        self._sms_adapter = sms_adapter
        self._receipt_adapter = receipt_adapter
        self._statement_adapter = statement_adapter
        self._manual_normalizer = manual_normalizer or ManualInputNormalizer()
        self._audit_logger = audit_logger or AuditLogger()
        self._in_flight: set[TransactionSource] = set()

    def is_busy(self, modality: TransactionSource) -> bool:
        return modality in self._in_flight

    async def ingest(self, request: Union[IngestionRequest, dict]) -> IngestionResult:
        """
        Run one submission to completion.

        Never raises for pipeline failures; they come back as a FAILURE
        or PARTIAL result with a message for the user.
        """
        correlation_id = create_correlation_id()
        if isinstance(request, dict):
            try:
                request = _REQUEST_ADAPTER.validate_python(request)
            except ValidationError as e:
                return await self._malformed(request, e, correlation_id)

        modality = TransactionSource(request.modality)

        # Check-and-set happens before the first await, so it can't interleave
        if modality in self._in_flight:
            logger.info("submission_refused_busy", modality=modality.value)
            return IngestionResult(
                status=IngestionStatus.FAILURE,
                source=modality,
                message=BUSY,
                correlation_id=correlation_id,
            )

        self._in_flight.add(modality)
        try:
            await self._audit_logger.log_submission_received(modality.value, correlation_id)
            if isinstance(request, SmsIngestion):
                return await self._ingest_sms(request, correlation_id)
            if isinstance(request, ReceiptIngestion):
                return await self._ingest_receipt(request, correlation_id)
            if isinstance(request, StatementIngestion):
                return await self._ingest_statement(request, correlation_id)
            return await self._ingest_manual(request, correlation_id)
        except Exception as e:
            logger.exception("ingestion_crashed", modality=modality.value)
            await self._audit_logger.log_system_error(e, correlation_id)
            return IngestionResult(
                status=IngestionStatus.FAILURE,
                source=modality,
                message=UNEXPECTED_ERROR,
                correlation_id=correlation_id,
            )
        finally:
            self._in_flight.discard(modality)

    def present_result(self, value: Union[Transaction, AssetType, str]) -> ResultPresentation:
        return present_result(value)

    # -------------------------------------------------------------------------
    # Result helpers
    # -------------------------------------------------------------------------

    async def _reject(
        self,
        source: TransactionSource,
        message: str,
        correlation_id: UUID,
        rejected_items: Optional[list[str]] = None,
    ) -> IngestionResult:
        await self._audit_logger.log_submission_rejected(source.value, message, correlation_id)
        return IngestionResult(
            status=IngestionStatus.FAILURE,
            source=source,
            message=message,
            rejected_items=rejected_items or [],
            correlation_id=correlation_id,
        )

    async def _malformed(
        self,
        request: dict,
        error: ValidationError,
        correlation_id: UUID,
    ) -> IngestionResult:
        """A dict request that isn't any of the four modality payloads."""
        fields = invalid_fields(error)
        message = f"Invalid submission: missing or invalid {', '.join(fields)}"
        raw_modality = request.get("modality")
        try:
            source = TransactionSource(raw_modality)
        except ValueError:
            source = None

        await self._audit_logger.log_validation_failed(
            issues=[
                {"field": field, "issue_type": "invalid_request", "message": message}
                for field in fields
            ],
            correlation_id=correlation_id,
        )
        await self._audit_logger.log_submission_rejected(
            str(raw_modality or "unknown"), message, correlation_id
        )
        return IngestionResult(
            status=IngestionStatus.FAILURE,
            source=source,
            message=message,
            correlation_id=correlation_id,
        )

    async def _extraction_failed(
        self,
        source: TransactionSource,
        error: ExtractionError,
        message: str,
        correlation_id: UUID,
    ) -> IngestionResult:
        await self._audit_logger.log_extraction_failed(source.value, str(error), correlation_id)
        if error.service:
            await self._audit_logger.log_external_service_error(
                service=error.service,
                error_message=str(error),
                correlation_id=correlation_id,
            )
        return await self._reject(source, message, correlation_id)

    def _outcome_to_result(
        self,
        source: TransactionSource,
        outcome: DispatchOutcome,
        correlation_id: UUID,
    ) -> IngestionResult:
        transactions = [outcome.transaction] if outcome.persisted else []

        if outcome.succeeded:
            status, message = IngestionStatus.SUCCESS, "Transaction saved."
        elif outcome.balance_sync_failed:
            status, message = IngestionStatus.PARTIAL, BALANCE_NOT_UPDATED
        elif outcome.issues:
            status, message = IngestionStatus.FAILURE, str(outcome.error)
        else:
            status, message = IngestionStatus.FAILURE, SAVE_FAILED

        return IngestionResult(
            status=status,
            source=source,
            transaction=outcome.transaction,
            transactions=transactions,
            message=message,
            correlation_id=correlation_id,
        )

    async def _settle_one(
        self,
        source: TransactionSource,
        candidate: TransactionCandidate,
        correlation_id: UUID,
    ) -> IngestionResult:
        outcome = await self._dispatcher.dispatch(candidate, correlation_id)
        result = self._outcome_to_result(source, outcome, correlation_id)
        if result.status == IngestionStatus.FAILURE:
            await self._audit_logger.log_submission_rejected(
                source.value, result.message, correlation_id
            )
        return result

    # -------------------------------------------------------------------------
    # Modalities
    # -------------------------------------------------------------------------

    async def _ingest_sms(self, request: SmsIngestion, correlation_id: UUID) -> IngestionResult:
        source = TransactionSource.SMS
        if self._sms_adapter is None:
            return await self._reject(source, "SMS parsing is not configured", correlation_id)

        try:
            candidate = await self._sms_adapter.extract(request.text)
        except TransactionValidationError as e:
            return await self._reject(source, str(e), correlation_id)
        except ExtractionError as e:
            return await self._extraction_failed(source, e, SMS_FAILED, correlation_id)

        await self._audit_logger.log_extraction_completed(
            source.value, 1, correlation_id, confidence=candidate.confidence
        )
        candidate = candidate.model_copy(update={"account_selection": request.account})
        return await self._settle_one(source, candidate, correlation_id)

    async def _ingest_receipt(self, request: ReceiptIngestion, correlation_id: UUID) -> IngestionResult:
        source = TransactionSource.RECEIPT
        if self._receipt_adapter is None:
            return await self._reject(source, "Receipt analysis is not configured", correlation_id)

        try:
            candidate = await self._receipt_adapter.extract(request.image_bytes, request.filename)
        except TransactionValidationError as e:
            return await self._reject(source, str(e), correlation_id)
        except ExtractionError as e:
            return await self._extraction_failed(source, e, RECEIPT_FAILED, correlation_id)

        await self._audit_logger.log_extraction_completed(
            source.value, 1, correlation_id, confidence=candidate.confidence
        )
        candidate = candidate.model_copy(update={"account_selection": request.account})
        return await self._settle_one(source, candidate, correlation_id)

    async def _ingest_manual(self, request: ManualIngestion, correlation_id: UUID) -> IngestionResult:
        source = TransactionSource.MANUAL
        try:
            candidate = self._manual_normalizer.to_candidate(request.form)
        except TransactionValidationError as e:
            await self._audit_logger.log_validation_failed(
                issues=[i.model_dump() for i in e.issues],
                correlation_id=correlation_id,
            )
            return await self._reject(source, str(e), correlation_id)

        return await self._settle_one(source, candidate, correlation_id)

    async def _ingest_statement(
        self,
        request: StatementIngestion,
        correlation_id: UUID,
    ) -> IngestionResult:
        """
        Statements are batches: every usable line is dispatched, unusable
        lines are reported, and net worth is refreshed once at the end.
        """
        source = TransactionSource.STATEMENT
        if self._statement_adapter is None:
            return await self._reject(source, "Statement parsing is not configured", correlation_id)

        try:
            envelope = await self._statement_adapter.extract(
                request.file_bytes, request.filename, request.account_id
            )
        except TransactionValidationError as e:
            return await self._reject(source, str(e), correlation_id)
        except ExtractionError as e:
            return await self._extraction_failed(source, e, STATEMENT_FAILED, correlation_id)

        if not envelope.success:
            message = envelope.message or STATEMENT_FAILED
            await self._audit_logger.log_extraction_failed(source.value, message, correlation_id)
            return await self._reject(source, message, correlation_id, envelope.rejected_items)

        await self._audit_logger.log_extraction_completed(
            source.value, len(envelope.candidates), correlation_id
        )
        rejected = list(envelope.rejected_items)
        for reason in envelope.rejected_items:
            await self._audit_logger.log_statement_item_rejected(reason, correlation_id)

        if not envelope.candidates:
            return await self._reject(
                source,
                envelope.message or "No transactions were found in this statement.",
                correlation_id,
                rejected,
            )

        outcomes, _ = await self._dispatcher.dispatch_batch(envelope.candidates, correlation_id)

        persisted = []
        balance_failures = 0
        for index, (candidate, outcome) in enumerate(zip(envelope.candidates, outcomes), start=1):
            if outcome.persisted:
                persisted.append(outcome.transaction)
            if outcome.balance_sync_failed:
                balance_failures += 1
            elif not outcome.succeeded:
                label = candidate.description or f"line {index}"
                rejected.append(f"{label}: {outcome.error}")

        if not persisted:
            return await self._reject(source, SAVE_FAILED, correlation_id, rejected)

        if rejected or balance_failures:
            status = IngestionStatus.PARTIAL
            message = f"Imported {len(persisted)} of {len(persisted) + len(rejected)} transactions."
            if balance_failures:
                message += f" {balance_failures} saved without a balance update."
        else:
            status = IngestionStatus.SUCCESS
            message = f"Imported {len(persisted)} transactions."

        return IngestionResult(
            status=status,
            source=source,
            transaction=persisted[0] if len(persisted) == 1 else None,
            transactions=persisted,
            message=message,
            rejected_items=rejected,
            correlation_id=correlation_id,
        )


def create_app_components(
    use_storage: bool = True,
) -> tuple[IngestionPipeline, Optional[GoogleSheetsClient], Optional[GoogleSheetsAccountStorage]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False for running without storage.

    Returns:
        (pipeline, sheets_client, account_storage)
    """
    sheets_client = None
    accounts = None
    ledgers = {}
    refresh_trigger = None
    audit_logger = AuditLogger()  # Local-only logging

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            sheets_client.connect()
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
            ledgers = {
                kind: GoogleSheetsLedgerStorage(kind, sheets_client)
                for kind in LedgerKind
            }
            accounts = GoogleSheetsAccountStorage(sheets_client)
            refresh_trigger = NetWorthRefreshTrigger(
                GoogleSheetsNetWorthService(accounts, sheets_client),
                audit_logger=audit_logger,
            )
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            accounts = None
            ledgers = {}
            refresh_trigger = None
            audit_logger = AuditLogger()

    dispatcher = LedgerDispatcher(
        ledgers=ledgers,
        balances=accounts,
        refresh_trigger=refresh_trigger,
        resolver=AccountLinkageResolver(),
        audit_logger=audit_logger,
    )

    sms_adapter = receipt_adapter = statement_adapter = None
    try:
        sms_adapter = SmsAdapter(SmsParsingAgent())
        statement_adapter = StatementAdapter(StatementParsingAgent())
    except Exception as e:
        logger.warning("gemini_not_configured", error=str(e))
    try:
        receipt_adapter = ReceiptAdapter(MindeeReceiptService())
    except Exception as e:
        logger.warning("mindee_not_configured", error=str(e))

    pipeline = IngestionPipeline(
        dispatcher=dispatcher,
        sms_adapter=sms_adapter,
        receipt_adapter=receipt_adapter,
        statement_adapter=statement_adapter,
        audit_logger=audit_logger,
    )

    return pipeline, sheets_client, accounts
