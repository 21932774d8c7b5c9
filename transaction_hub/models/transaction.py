"""
Core Data Models for Transaction Hub

These models define the schemas for everything flowing through the
ingestion pipeline:
1. Candidates - unvalidated data from an extraction adapter or the manual form
2. Transactions - the canonical record written to exactly one ledger
3. Requests/results - the per-submission values threaded through ingest()

DESIGN DECISION: Candidates are deliberately loose (every field optional)
because extraction is unreliable. Transactions are strict, and the fields
that decide ownership (source, asset_type) are frozen once created.
"""

import re
import datetime as dt
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Literal, NamedTuple, Optional, Union
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AssetType(str, Enum):
    """
    Classification deciding which ledger owns a transaction.

    CRITICAL: Never reclassified after dispatch.
    """
    CASH = "CASH"
    GOLD = "GOLD"
    STOCK = "STOCK"
    BOND = "BOND"
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"
    BANK_DEPOSIT = "BANK_DEPOSIT"


class TransactionType(str, Enum):
    """Cash-flow direction of a transaction."""
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"


class TransactionSource(str, Enum):
    """The ingestion modality a transaction came from."""
    SMS = "SMS"
    RECEIPT = "RECEIPT"
    STATEMENT = "STATEMENT"
    MANUAL = "MANUAL"


class LedgerKind(str, Enum):
    """Asset-type-specific record stores."""
    CASH = "cash"
    GOLD = "gold"
    STOCK = "stock"
    BOND = "bond"


# Cash flow (expenses, income, deposits) shares the cash ledger
LEDGER_FOR_ASSET: dict[AssetType, LedgerKind] = {
    AssetType.CASH: LedgerKind.CASH,
    AssetType.EXPENSE: LedgerKind.CASH,
    AssetType.INCOME: LedgerKind.CASH,
    AssetType.BANK_DEPOSIT: LedgerKind.CASH,
    AssetType.GOLD: LedgerKind.GOLD,
    AssetType.STOCK: LedgerKind.STOCK,
    AssetType.BOND: LedgerKind.BOND,
}


class AccountKind(str, Enum):
    """What a linked account reference points at."""
    ACCOUNT = "account"          # bank account or wallet
    CREDIT_CARD = "credit_card"


class BalanceDirection(str, Enum):
    """Direction of a balance adjustment."""
    INCREASE = "increase"
    DECREASE = "decrease"


class IngestionStatus(str, Enum):
    """
    Outcome of one ingest() call.

    PARTIAL covers the accepted inconsistencies: a transaction saved without
    its balance update, or a statement batch with some rejected items.
    """
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILURE = "failure"


# =============================================================================
# ACCOUNT LINKAGE
# =============================================================================

class AccountReference(BaseModel):
    """
    Explicit reference to the account whose balance a transaction affects.

    Replaces the prefix-encoded selection string. Legacy strings are
    parsed into this once, by the linkage resolver.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    kind: AccountKind
    id: str = Field(..., min_length=1, max_length=100)

    @classmethod
    def account(cls, account_id: str) -> "AccountReference":
        return cls(kind=AccountKind.ACCOUNT, id=account_id)

    @classmethod
    def credit_card(cls, card_id: str) -> "AccountReference":
        return cls(kind=AccountKind.CREDIT_CARD, id=card_id)


AccountSelection = Union[AccountReference, str]


class LinkedAccount(BaseModel):
    """A bank account, wallet or credit card the user can link to."""

    id: str
    kind: AccountKind
    name: str
    institution: Optional[str] = None
    balance: Decimal = Decimal("0")

    @property
    def reference(self) -> AccountReference:
        return AccountReference(kind=self.kind, id=self.id)


# =============================================================================
# CANDIDATE MODEL
# =============================================================================

_AMOUNT_NOISE = re.compile(r"[^\d.\-]")
# "AED 85.50", "85.50 AED", "Rs. 500"
_CURRENCY_AFFIX = re.compile(r"^[A-Za-z]{2,3}\.?\s*|\s*[A-Za-z]{2,3}\.?$")
_LETTER = re.compile(r"[A-Za-z]")


class TransactionCandidate(BaseModel):
    """
    Unvalidated transaction data from an adapter or the manual form.

    CRITICAL: This is PROPOSED data. It must pass the Transaction
    Normalizer before anything is persisted.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    source: TransactionSource

    amount: Optional[Decimal] = Field(
        default=None,
        description="Amount in base currency; must be > 0 to be dispatched"
    )
    type: Optional[TransactionType] = None
    date: Optional[dt.date] = None
    description: Optional[str] = Field(default=None, max_length=500)
    merchant: Optional[str] = Field(default=None, max_length=200)
    category: Optional[str] = Field(default=None, max_length=100)
    category_id: Optional[str] = None
    account_selection: Optional[AccountSelection] = None

    # Classification hint
    asset_type: Optional[AssetType] = None

    # Gold
    weight: Optional[Decimal] = Field(default=None, ge=0, description="Weight in grams")
    ornament_name: Optional[str] = Field(default=None, max_length=200)

    # Stock
    stock_symbol: Optional[str] = Field(default=None, max_length=20)
    units: Optional[Decimal] = Field(default=None, ge=0)

    confidence: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Extraction confidence, when the adapter reports one"
    )

    @field_validator("amount", mode="before")
    @classmethod
    def clean_amount(cls, v):
        """
        Strip a currency code, symbols and thousands separators.

        Any other letter makes the amount unreadable rather than being
        dropped, so "1e3" is never read as 13.
        """
        if v is None or isinstance(v, (Decimal, int, float)):
            return v
        text = str(v).strip().replace(",", "")
        try:
            amount = Decimal(text)
        except InvalidOperation:
            text = _CURRENCY_AFFIX.sub("", text)
            if _LETTER.search(text):
                raise ValueError(f"Unreadable amount: {v!r}")
            cleaned = _AMOUNT_NOISE.sub("", text)
            if not cleaned or cleaned in {"-", "."}:
                return None
            try:
                amount = Decimal(cleaned)
            except InvalidOperation:
                raise ValueError(f"Unreadable amount: {v!r}")
        if not amount.is_finite():
            raise ValueError(f"Unreadable amount: {v!r}")
        return amount

    @field_validator("type", "asset_type", mode="before")
    @classmethod
    def upper_enum(cls, v):
        if isinstance(v, str):
            v = v.strip().upper().replace(" ", "_")
            return v or None
        return v

    @field_validator(
        "description", "merchant", "category", "category_id",
        "ornament_name", "stock_symbol",
        mode="before",
    )
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


# =============================================================================
# CANONICAL TRANSACTION
# =============================================================================

class Transaction(BaseModel):
    """
    The canonical transaction record.

    CRITICAL: source and asset_type are frozen. A transaction is owned by
    the ledger its asset_type maps to, for its whole life.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: Optional[str] = Field(
        default=None,
        description="Assigned by the ledger at persistence"
    )
    created_at: datetime = Field(default_factory=_utcnow)

    amount: Annotated[Decimal, Field(gt=0)]
    currency: str = Field(..., min_length=3, max_length=3)
    type: TransactionType
    date: dt.date
    description: Optional[str] = None
    merchant: Optional[str] = None
    category: Optional[str] = None
    category_id: Optional[str] = None

    asset_type: AssetType = Field(..., frozen=True)
    source: TransactionSource = Field(..., frozen=True)

    linked_account_id: Optional[str] = None
    linked_credit_card_id: Optional[str] = None

    weight: Optional[Decimal] = None
    ornament_name: Optional[str] = None
    stock_symbol: Optional[str] = None
    units: Optional[Decimal] = None

    @model_validator(mode="after")
    def validate_linkage(self) -> "Transaction":
        """An account id and a credit-card id are mutually exclusive."""
        if self.linked_account_id and self.linked_credit_card_id:
            raise ValueError(
                "Transaction cannot be linked to both an account and a credit card"
            )
        return self

    @property
    def ledger(self) -> LedgerKind:
        return LEDGER_FOR_ASSET[self.asset_type]

    @property
    def linked_reference(self) -> Optional[AccountReference]:
        if self.linked_credit_card_id:
            return AccountReference.credit_card(self.linked_credit_card_id)
        if self.linked_account_id:
            return AccountReference.account(self.linked_account_id)
        return None


# =============================================================================
# MODALITY PAYLOADS
# =============================================================================

class ManualForm(BaseModel):
    """
    Raw manual form state, exactly as the user entered it.

    Empty strings are expected here; the Manual Input Normalizer
    decides what counts as absent.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Optional[str] = None
    description: str = ""
    type: TransactionType = TransactionType.EXPENSE
    date: Optional[dt.date] = None
    merchant: str = ""
    account_id: str = ""
    credit_card_id: str = ""
    category_id: str = ""

    @field_validator("amount", mode="before")
    @classmethod
    def amount_as_text(cls, v):
        if v is None:
            return None
        return str(v)


class StatementExtraction(BaseModel):
    """
    Envelope returned by statement parsing.

    Both success and failure are explicit fields, not exceptions,
    because partial success is an expected outcome.
    """

    success: bool
    candidates: list[TransactionCandidate] = Field(default_factory=list)
    message: Optional[str] = None
    rejected_items: list[str] = Field(
        default_factory=list,
        description="Human-readable reasons for line items that could not be used"
    )


class SmsIngestion(BaseModel):
    modality: Literal["SMS"] = "SMS"
    text: str
    account: Optional[AccountSelection] = None


class ReceiptIngestion(BaseModel):
    modality: Literal["RECEIPT"] = "RECEIPT"
    image_bytes: bytes
    filename: str
    account: Optional[AccountSelection] = None


class StatementIngestion(BaseModel):
    modality: Literal["STATEMENT"] = "STATEMENT"
    file_bytes: bytes
    filename: str
    account_id: Optional[str] = Field(
        default=None,
        description="Required; checked by the pipeline so the user gets a readable error"
    )


class ManualIngestion(BaseModel):
    modality: Literal["MANUAL"] = "MANUAL"
    form: ManualForm


IngestionRequest = Annotated[
    Union[SmsIngestion, ReceiptIngestion, StatementIngestion, ManualIngestion],
    Field(discriminator="modality"),
]


class IngestionResult(BaseModel):
    """What ingest() hands back to the caller for one submission."""

    status: IngestionStatus
    # None only when the request itself could not be read
    source: Optional[TransactionSource] = None
    transaction: Optional[Transaction] = None
    transactions: list[Transaction] = Field(
        default_factory=list,
        description="Every persisted transaction (one, or a statement batch)"
    )
    message: Optional[str] = None
    rejected_items: list[str] = Field(default_factory=list)
    correlation_id: Optional[UUID] = None

    @property
    def succeeded(self) -> bool:
        return self.status == IngestionStatus.SUCCESS


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


# =============================================================================
# PRESENTATION MODELS
# =============================================================================

class Badge(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    emoji: str
    color: str


class ResultPresentation(BaseModel):
    """Display badge plus deep link into the module owning a transaction."""
    model_config = ConfigDict(frozen=True)

    badge: Badge
    link: str


class Linkage(NamedTuple):
    """Resolved linkage of a transaction. At most one of the two ids is set."""

    account_id: Optional[str] = None
    credit_card_id: Optional[str] = None

    @property
    def is_linked(self) -> bool:
        return self.account_id is not None or self.credit_card_id is not None

    @property
    def reference(self) -> Optional[AccountReference]:
        if self.credit_card_id:
            return AccountReference.credit_card(self.credit_card_id)
        if self.account_id:
            return AccountReference.account(self.account_id)
        return None


NO_LINKAGE = Linkage()
