"""
Shared fixtures and in-memory fakes.

No real API calls in tests: every ledger, balance store, net worth
service and inference service is replaced by a fake that records what
was asked of it in one shared call log, so ordering can be asserted.
"""

import asyncio
from io import BytesIO
from typing import Optional

import pytest
from PIL import Image

from transaction_hub.audit import AuditLogger
from transaction_hub.config import AppSettings
from transaction_hub.extraction import (
    ReceiptAdapter,
    ReceiptExtractionService,
    SmsAdapter,
    SmsExtractionService,
    StatementAdapter,
    StatementExtractionService,
)
from transaction_hub.ledger import (
    AccountLinkageResolver,
    LedgerDispatcher,
    NetWorthRefreshTrigger,
)
from transaction_hub.models.transaction import (
    LedgerKind,
    StatementExtraction,
    TransactionCandidate,
    TransactionSource,
)
from transaction_hub.orchestrator import IngestionPipeline
from transaction_hub.services.storage import (
    AccountBalanceInterface,
    AuditStorageInterface,
    LedgerStorageInterface,
    NetWorthInterface,
    NotFoundError,
    StorageError,
)
from transaction_hub.validation import TransactionNormalizer


class FakeLedger(LedgerStorageInterface):

    def __init__(self, kind: LedgerKind, calls: list, fail: bool = False):
        self.kind = kind
        self.calls = calls
        self.fail = fail
        self.records = []

    async def create(self, transaction):
        self.calls.append(("persist", self.kind))
        if self.fail:
            raise StorageError(f"{self.kind.value} sheet unavailable")
        stored = transaction.model_copy(update={"id": f"{self.kind.value}-{len(self.records) + 1}"})
        self.records.append(stored)
        return stored


class FakeBalances(AccountBalanceInterface):

    def __init__(self, calls: list, fail: bool = False):
        self.calls = calls
        self.fail = fail
        self.adjustments = []

    async def adjust(self, reference, amount, direction):
        self.calls.append(("adjust", reference.kind, reference.id))
        if self.fail:
            raise NotFoundError(f"Account {reference.id} not found")
        self.adjustments.append((reference, amount, direction))

    async def list_accounts(self):
        return []


class FakeNetWorth(NetWorthInterface):

    def __init__(self, calls: list, fail: bool = False):
        self.calls = calls
        self.fail = fail
        self.refreshes = 0

    async def refresh(self):
        self.calls.append(("refresh",))
        if self.fail:
            raise StorageError("net worth sheet unavailable")
        self.refreshes += 1


class FakeAuditStorage(AuditStorageInterface):

    def __init__(self):
        self.events = []

    async def append_event(self, event):
        self.events.append(event)
        return True

    @property
    def event_types(self) -> list[str]:
        return [event.event_type.value for event in self.events]


class FakeSmsService(SmsExtractionService):

    def __init__(
        self,
        candidate: Optional[TransactionCandidate] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.candidate = candidate
        self.error = error
        self.delay = delay
        self.calls = []

    async def parse(self, text):
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.candidate


class FakeReceiptService(ReceiptExtractionService):

    def __init__(
        self,
        candidate: Optional[TransactionCandidate] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.candidate = candidate
        self.error = error
        self.delay = delay
        self.calls = []

    async def analyze(self, image_data_uri):
        self.calls.append(image_data_uri)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.candidate


class FakeStatementService(StatementExtractionService):

    def __init__(
        self,
        envelope: Optional[StatementExtraction] = None,
        error: Optional[Exception] = None,
        delay: float = 0.0,
    ):
        self.envelope = envelope
        self.error = error
        self.delay = delay
        self.calls = []

    async def parse(self, filename, content, account_id):
        self.calls.append((filename, account_id))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.envelope


class Harness:
    """Everything a pipeline test needs, wired to the fakes."""

    def __init__(
        self,
        settings: AppSettings,
        sms: Optional[FakeSmsService] = None,
        receipt: Optional[FakeReceiptService] = None,
        statement: Optional[FakeStatementService] = None,
        fail_persist: bool = False,
        fail_balance: bool = False,
        fail_refresh: bool = False,
    ):
        self.calls = []
        self.ledgers = {
            kind: FakeLedger(kind, self.calls, fail=fail_persist) for kind in LedgerKind
        }
        self.balances = FakeBalances(self.calls, fail=fail_balance)
        self.net_worth = FakeNetWorth(self.calls, fail=fail_refresh)
        self.audit_storage = FakeAuditStorage()
        self.audit_logger = AuditLogger(self.audit_storage)

        self.sms = sms or FakeSmsService()
        self.receipt = receipt or FakeReceiptService()
        self.statement = statement or FakeStatementService()

        self.refresh_trigger = NetWorthRefreshTrigger(
            self.net_worth, audit_logger=self.audit_logger, wait=True
        )
        self.dispatcher = LedgerDispatcher(
            ledgers=self.ledgers,
            balances=self.balances,
            refresh_trigger=self.refresh_trigger,
            normalizer=TransactionNormalizer(settings),
            resolver=AccountLinkageResolver(settings),
            audit_logger=self.audit_logger,
        )
        self.pipeline = IngestionPipeline(
            dispatcher=self.dispatcher,
            sms_adapter=SmsAdapter(self.sms, settings),
            receipt_adapter=ReceiptAdapter(self.receipt, settings),
            statement_adapter=StatementAdapter(self.statement, settings),
            audit_logger=self.audit_logger,
        )

    @property
    def persisted(self) -> list:
        return [record for ledger in self.ledgers.values() for record in ledger.records]

    def count(self, call: str) -> int:
        return sum(1 for c in self.calls if c[0] == call)


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(
        base_currency="AED",
        credit_card_prefix="cc_",
        extraction_timeout_seconds=0.5,
        await_net_worth_refresh=True,
    )


@pytest.fixture
def make_harness(settings):
    def _make(**kwargs) -> Harness:
        return Harness(settings, **kwargs)
    return _make


@pytest.fixture
def png_bytes() -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (8, 8), color=(255, 255, 255)).save(buffer, format="PNG")
    return buffer.getvalue()


def candidate(**fields) -> TransactionCandidate:
    fields.setdefault("source", TransactionSource.MANUAL)
    return TransactionCandidate(**fields)


def run(coro):
    return asyncio.run(coro)


