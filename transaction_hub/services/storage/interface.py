"""
Abstract Storage Interface

DESIGN DECISION: We define abstract interfaces for every external store
the pipeline touches:
1. One ledger per asset type (cash, gold, stock, bond)
2. Account balances (bank accounts, wallets, credit cards)
3. The net worth aggregate
4. The audit log

This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the ingestion pipeline decoupled from storage implementation

The pipeline owns none of these resources. It creates ledger records,
nudges balances and asks for a net worth refresh; everything else is the
owning module's business.
"""

from abc import ABC, abstractmethod
from decimal import Decimal

from transaction_hub.models.audit import AuditEvent
from transaction_hub.models.transaction import (
    AccountReference,
    BalanceDirection,
    LedgerKind,
    LinkedAccount,
    Transaction,
)


class LedgerStorageInterface(ABC):
    """
    Abstract interface for one asset-type ledger.

    Each LedgerKind gets its own instance.
    """

    kind: LedgerKind

    @abstractmethod
    async def create(self, transaction: Transaction) -> Transaction:
        """
        Persist a transaction into this ledger.

        Args:
            transaction: The canonical transaction (id not yet assigned)

        Returns:
            The stored transaction, with its id assigned

        Raises:
            StorageError: If the write fails
        """
        pass


class AccountBalanceInterface(ABC):
    """
    Abstract interface for account balances.

    Balances are owned by the account module; the pipeline only adjusts.
    """

    @abstractmethod
    async def adjust(
        self,
        reference: AccountReference,
        amount: Decimal,
        direction: BalanceDirection,
    ) -> None:
        """
        Move an account's balance by `amount` in `direction`.

        For credit cards the balance is the amount owed.

        Raises:
            NotFoundError: If the account doesn't exist
            StorageError: If the update fails
        """
        pass

    @abstractmethod
    async def list_accounts(self) -> list[LinkedAccount]:
        """
        List every account a transaction can be linked to.

        Returns:
            Bank accounts, wallets and credit cards
        """
        pass


class NetWorthInterface(ABC):
    """Abstract interface for the aggregate net worth view."""

    @abstractmethod
    async def refresh(self) -> None:
        """
        Recompute net worth now.

        Must be idempotent: calling it when nothing changed is harmless.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
