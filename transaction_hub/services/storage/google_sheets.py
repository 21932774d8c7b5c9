"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the initial storage backend because:
1. The user can view their ledgers directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- No transactions across sheets. The pipeline orders its writes
  (ledger row, then balance cell, then net worth row) instead.
- Limited query capabilities (we filter in Python)

Layout:
- One worksheet per ledger (cash, gold, stock, bond)
- "Accounts": bank accounts, wallets and credit cards with balances
- "NetWorth": a single summary row, overwritten on every refresh
- "AuditLog": append-only audit trail
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional, Sequence
from uuid import uuid4

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from transaction_hub.config import GoogleSheetsSettings, get_settings
from transaction_hub.models.audit import SHEET_COLUMNS as AUDIT_COLUMNS, AuditEvent
from transaction_hub.models.transaction import (
    AccountKind,
    AccountReference,
    BalanceDirection,
    LedgerKind,
    LinkedAccount,
    Transaction,
)
from transaction_hub.services.storage.interface import (
    AccountBalanceInterface,
    AuditStorageInterface,
    ConnectionError,
    LedgerStorageInterface,
    NetWorthInterface,
    NotFoundError,
    StorageError,
)


# Column mappings for every ledger sheet
LEDGER_COLUMNS = [
    "id",
    "created_at",
    "source",
    "asset_type",
    "type",
    "date",
    "amount",
    "currency",
    "description",
    "merchant",
    "category",
    "category_id",
    "linked_account_id",
    "linked_credit_card_id",
    "weight",
    "ornament_name",
    "stock_symbol",
    "units",
]

ACCOUNT_COLUMNS = [
    "id",
    "kind",
    "name",
    "institution",
    "balance",
]

NET_WORTH_COLUMNS = [
    "computed_at",
    "cash_total",
    "credit_card_total",
    "net_worth",
]


_BALANCE_COLUMN = ACCOUNT_COLUMNS.index("balance") + 1


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create(self, title: str, columns: Sequence[str], rows: int = 1000) -> gspread.Worksheet:
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(list(columns))
        return sheet

    def get_ledger_sheet(self, kind: LedgerKind) -> gspread.Worksheet:
        """Get or create the worksheet for one ledger."""
        title = getattr(self._settings, f"{kind.value}_sheet_name")
        return self._get_or_create(title, LEDGER_COLUMNS)

    def get_accounts_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.accounts_sheet_name, ACCOUNT_COLUMNS, rows=200)

    def get_net_worth_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.net_worth_sheet_name, NET_WORTH_COLUMNS, rows=10)

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


def _optional(value) -> str:
    return "" if value is None else str(value)


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of one ledger.

    Transactions are stored as rows, one per transaction.

    CRITICAL: create() is NOT retried. A write that timed out may still
    have landed, and a retry would create a duplicate record.
    """

    def __init__(self, kind: LedgerKind, client: Optional[GoogleSheetsClient] = None):
        self.kind = kind
        self._client = client or GoogleSheetsClient()

    def _transaction_to_row(self, transaction: Transaction) -> list:
        """Convert a Transaction to a spreadsheet row."""
        return [
            transaction.id,
            transaction.created_at.isoformat(),
            transaction.source.value,
            transaction.asset_type.value,
            transaction.type.value,
            transaction.date.isoformat(),
            str(transaction.amount),
            transaction.currency,
            _optional(transaction.description),
            _optional(transaction.merchant),
            _optional(transaction.category),
            _optional(transaction.category_id),
            _optional(transaction.linked_account_id),
            _optional(transaction.linked_credit_card_id),
            _optional(transaction.weight),
            _optional(transaction.ornament_name),
            _optional(transaction.stock_symbol),
            _optional(transaction.units),
        ]

    async def create(self, transaction: Transaction) -> Transaction:
        """Append a transaction to this ledger's sheet."""
        stored = transaction.model_copy(update={"id": uuid4().hex})
        try:
            sheet = self._client.get_ledger_sheet(self.kind)
            sheet.append_row(self._transaction_to_row(stored), value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to write {self.kind.value} ledger: {e}")
        return stored


class GoogleSheetsAccountStorage(AccountBalanceInterface):
    """
    Google Sheets implementation of account balances.

    One row per bank account, wallet or credit card. A credit card's
    balance is the amount owed.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_account(self, row: list) -> LinkedAccount:
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return LinkedAccount(
            id=safe_get(0),
            kind=AccountKind(safe_get(1)),
            name=safe_get(2),
            institution=safe_get(3) or None,
            balance=Decimal(safe_get(4, "0")),
        )

    async def adjust(
        self,
        reference: AccountReference,
        amount: Decimal,
        direction: BalanceDirection,
    ) -> None:
        """Rewrite the balance cell of the referenced account."""
        try:
            sheet = self._client.get_accounts_sheet()
            all_rows = sheet.get_all_values()

            for idx, row in enumerate(all_rows[1:], start=2):  # Row 1 is header
                if len(row) > 1 and row[0] == reference.id and row[1] == reference.kind.value:
                    current = self._row_to_account(row).balance
                    delta = amount if direction == BalanceDirection.INCREASE else -amount
                    sheet.update_cell(idx, _BALANCE_COLUMN, str(current + delta))
                    return

            raise NotFoundError(f"{reference.kind.value} not found: {reference.id}")
        except NotFoundError:
            raise
        except (InvalidOperation, ValueError) as e:
            raise StorageError(f"Corrupt balance for {reference.id}: {e}")
        except Exception as e:
            raise StorageError(f"Failed to adjust balance: {e}")

    async def list_accounts(self) -> list[LinkedAccount]:
        """List every account row, skipping malformed ones."""
        try:
            sheet = self._client.get_accounts_sheet()
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except Exception as e:
            raise StorageError(f"Failed to list accounts: {e}")

        accounts = []
        for row in all_rows:
            if not row or not row[0]:
                continue
            try:
                accounts.append(self._row_to_account(row))
            except Exception:
                continue  # Skip malformed rows
        return accounts


class GoogleSheetsNetWorthService(NetWorthInterface):
    """
    Recomputes a cash-minus-cards summary into the NetWorth sheet.

    Always overwrites the same row, so repeated refreshes are harmless.
    """

    def __init__(
        self,
        accounts: GoogleSheetsAccountStorage,
        client: Optional[GoogleSheetsClient] = None,
    ):
        self._accounts = accounts
        self._client = client or GoogleSheetsClient()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def refresh(self) -> None:
        accounts = await self._accounts.list_accounts()
        cash_total = sum(
            (a.balance for a in accounts if a.kind == AccountKind.ACCOUNT),
            Decimal("0"),
        )
        card_total = sum(
            (a.balance for a in accounts if a.kind == AccountKind.CREDIT_CARD),
            Decimal("0"),
        )
        try:
            sheet = self._client.get_net_worth_sheet()
            sheet.update(
                range_name="A2:D2",
                values=[[
                    datetime.now(timezone.utc).isoformat(),
                    str(cash_total),
                    str(card_total),
                    str(cash_total - card_total),
                ]],
            )
        except Exception as e:
            raise StorageError(f"Failed to refresh net worth: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        sheet = self._client.get_audit_sheet()
        sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
        return True
