r"""
Ledger Dispatcher

Drives one candidate through the submission state machine:

    VALIDATING -> LINKING -> PERSISTING -> BALANCE_SYNC -> DONE
         \           \            \              \
          +-----------+------------+--------------+--> FAILED

- VALIDATING:   normalizer checks; failure persists nothing
- LINKING:      account linkage resolved; never fails
- PERSISTING:   written to exactly one ledger, picked by asset type.
                The single point of creation. Never retried.
- BALANCE_SYNC: only when linked. Failure leaves the transaction in place
                with its balance unmodified - a reported inconsistency,
                not a silent retry and not a rollback.
- DONE:         net worth refresh fires only if BALANCE_SYNC ran

ORDERING: persist -> adjust balance -> refresh. Always.
"""

from decimal import Decimal
from enum import Enum
from typing import Mapping, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from transaction_hub.audit import AuditLogger
from transaction_hub.exceptions import (
    BalanceSyncError,
    PersistenceError,
    TransactionHubError,
    TransactionValidationError,
)
from transaction_hub.ledger.linkage import AccountLinkageResolver
from transaction_hub.ledger.networth import NetWorthRefreshTrigger
from transaction_hub.models.transaction import (
    AccountKind,
    BalanceDirection,
    LedgerKind,
    Linkage,
    Transaction,
    TransactionCandidate,
    TransactionType,
    ValidationIssue,
)
from transaction_hub.services.storage import (
    AccountBalanceInterface,
    LedgerStorageInterface,
)
from transaction_hub.validation import TransactionNormalizer


class SubmissionState(str, Enum):
    VALIDATING = "validating"
    LINKING = "linking"
    PERSISTING = "persisting"
    BALANCE_SYNC = "balance_sync"
    DONE = "done"
    FAILED = "failed"


# A credit card balance is the amount owed, so it moves opposite to cash
BALANCE_DIRECTION: dict[tuple[AccountKind, TransactionType], BalanceDirection] = {
    (AccountKind.ACCOUNT, TransactionType.EXPENSE): BalanceDirection.DECREASE,
    (AccountKind.ACCOUNT, TransactionType.INCOME): BalanceDirection.INCREASE,
    (AccountKind.CREDIT_CARD, TransactionType.EXPENSE): BalanceDirection.INCREASE,
    (AccountKind.CREDIT_CARD, TransactionType.INCOME): BalanceDirection.DECREASE,
}


def balance_direction(kind: AccountKind, transaction_type: TransactionType) -> BalanceDirection:
    return BALANCE_DIRECTION[(kind, transaction_type)]


class DispatchOutcome(BaseModel):
    """What happened to one candidate."""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    state: SubmissionState = SubmissionState.VALIDATING
    history: list[SubmissionState] = Field(
        default_factory=lambda: [SubmissionState.VALIDATING]
    )
    transaction: Optional[Transaction] = None
    balance_synced: bool = False
    balance_sync_failed: bool = False
    refreshed: bool = False
    error: Optional[TransactionHubError] = None

    def advance(self, state: SubmissionState) -> None:
        self.state = state
        self.history.append(state)

    def fail(self, error: TransactionHubError) -> "DispatchOutcome":
        self.error = error
        self.advance(SubmissionState.FAILED)
        return self

    @property
    def succeeded(self) -> bool:
        return self.state == SubmissionState.DONE

    @property
    def persisted(self) -> bool:
        return self.transaction is not None and self.transaction.id is not None

    @property
    def issues(self) -> list[ValidationIssue]:
        if isinstance(self.error, TransactionValidationError):
            return self.error.issues
        return []


class LedgerDispatcher:
    """
    Persists canonical transactions and keeps linked balances in step.

    The dispatcher holds no lock and no per-submission state; every call
    gets its own DispatchOutcome.
    """

    def __init__(
        self,
        ledgers: Mapping[LedgerKind, LedgerStorageInterface],
        balances: Optional[AccountBalanceInterface] = None,
        refresh_trigger: Optional[NetWorthRefreshTrigger] = None,
        normalizer: Optional[TransactionNormalizer] = None,
        resolver: Optional[AccountLinkageResolver] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._ledgers = dict(ledgers)
        self._balances = balances
        self._refresh_trigger = refresh_trigger
        self._normalizer = normalizer or TransactionNormalizer()
        self._resolver = resolver or AccountLinkageResolver()
        self._audit_logger = audit_logger or AuditLogger()

    async def settle(
        self,
        candidate: TransactionCandidate,
        correlation_id: UUID,
    ) -> DispatchOutcome:
        """
        Run one candidate up to DONE or FAILED, without the refresh.

        Never raises for pipeline errors; they land in the outcome.
        """
        outcome = DispatchOutcome()

        # VALIDATING
        issues = self._normalizer.check(candidate)
        if issues:
            await self._audit_logger.log_validation_failed(
                issues=[i.model_dump() for i in issues],
                correlation_id=correlation_id,
            )
            return outcome.fail(TransactionValidationError(issues))

        # LINKING
        outcome.advance(SubmissionState.LINKING)
        linkage = self._resolver.resolve(candidate.account_selection)
        try:
            transaction = self._normalizer.normalize(candidate, linkage)
        except TransactionValidationError as e:
            await self._audit_logger.log_validation_failed(
                issues=[i.model_dump() for i in e.issues],
                correlation_id=correlation_id,
            )
            return outcome.fail(e)

        # PERSISTING
        outcome.advance(SubmissionState.PERSISTING)
        try:
            stored = await self._persist(transaction)
        except PersistenceError as e:
            await self._audit_logger.log_persistence_failed(
                ledger=transaction.ledger.value,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            return outcome.fail(e)

        outcome.transaction = stored
        await self._audit_logger.log_transaction_persisted(
            transaction_id=stored.id,
            ledger=stored.ledger.value,
            asset_type=stored.asset_type.value,
            amount=str(stored.amount),
            correlation_id=correlation_id,
        )

        # BALANCE_SYNC (skipped entirely when nothing is linked)
        if linkage.is_linked:
            outcome.advance(SubmissionState.BALANCE_SYNC)
            try:
                await self._sync_balance(stored, linkage, correlation_id)
            except BalanceSyncError as e:
                outcome.balance_sync_failed = True
                reference = linkage.reference
                await self._audit_logger.log_balance_sync_failed(
                    account_kind=reference.kind.value,
                    account_id=reference.id,
                    transaction_id=stored.id,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
                return outcome.fail(e)
            outcome.balance_synced = True

        outcome.advance(SubmissionState.DONE)
        return outcome

    async def _persist(self, transaction: Transaction) -> Transaction:
        ledger = self._ledgers.get(transaction.ledger)
        if ledger is None:
            raise PersistenceError(f"No {transaction.ledger.value} ledger configured")
        try:
            stored = await ledger.create(transaction)
        except Exception as e:
            raise PersistenceError(f"Failed to save transaction: {e}")
        if stored.id is None:
            raise PersistenceError("Ledger did not assign an id")
        return stored

    async def _sync_balance(
        self,
        transaction: Transaction,
        linkage: Linkage,
        correlation_id: UUID,
    ) -> None:
        reference = linkage.reference
        if self._balances is None:
            raise BalanceSyncError(
                "No account balance service configured",
                transaction_id=transaction.id,
            )

        direction = balance_direction(reference.kind, transaction.type)
        try:
            await self._balances.adjust(reference, Decimal(transaction.amount), direction)
        except Exception as e:
            raise BalanceSyncError(str(e), transaction_id=transaction.id)

        await self._audit_logger.log_balance_adjusted(
            account_kind=reference.kind.value,
            account_id=reference.id,
            amount=str(transaction.amount),
            direction=direction.value,
            transaction_id=transaction.id,
            correlation_id=correlation_id,
        )

    async def _refresh(self, correlation_id: UUID) -> bool:
        if self._refresh_trigger is None:
            return False
        return await self._refresh_trigger.fire(correlation_id)

    async def dispatch(
        self,
        candidate: TransactionCandidate,
        correlation_id: UUID,
    ) -> DispatchOutcome:
        """Settle one candidate, then refresh net worth if a balance moved."""
        outcome = await self.settle(candidate, correlation_id)
        if outcome.balance_synced:
            outcome.refreshed = await self._refresh(correlation_id)
        return outcome

    async def dispatch_batch(
        self,
        candidates: list[TransactionCandidate],
        correlation_id: UUID,
    ) -> tuple[list[DispatchOutcome], bool]:
        """
        Settle every candidate in order, then refresh once.

        Returns:
            (outcomes, refreshed)
        """
        outcomes = []
        for candidate in candidates:
            outcomes.append(await self.settle(candidate, correlation_id))

        refreshed = False
        if any(o.balance_synced for o in outcomes):
            refreshed = await self._refresh(correlation_id)
        return outcomes, refreshed
