"""Ledger dispatch package."""

from transaction_hub.ledger.dispatcher import (
    BALANCE_DIRECTION,
    DispatchOutcome,
    LedgerDispatcher,
    SubmissionState,
    balance_direction,
)
from transaction_hub.ledger.linkage import AccountLinkageResolver
from transaction_hub.ledger.networth import NetWorthRefreshTrigger

__all__ = [
    "BALANCE_DIRECTION",
    "AccountLinkageResolver",
    "DispatchOutcome",
    "LedgerDispatcher",
    "NetWorthRefreshTrigger",
    "SubmissionState",
    "balance_direction",
]
