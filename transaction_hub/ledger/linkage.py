"""
Account Linkage Resolver

Turns whatever account selection a submission carries into the
transaction's linkage fields. All four modalities funnel through here,
so there is exactly one linkage semantics.

Accepted selections:
1. None / empty / whitespace       -> no linkage
2. AccountReference                -> used as-is
3. "cc_<id>" (configured prefix)   -> credit card <id>
4. any other non-empty string      -> bank account or wallet

CRITICAL: Resolution never fails. Anything unrecognizable degrades to
"no linkage" rather than raising.
"""

from typing import Optional

import structlog
from pydantic import ValidationError

from transaction_hub.config import AppSettings, get_settings
from transaction_hub.models.transaction import (
    NO_LINKAGE,
    AccountKind,
    AccountReference,
    AccountSelection,
    Linkage,
)


logger = structlog.get_logger(__name__)


class AccountLinkageResolver:
    """Resolves account selections into a Linkage."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self._prefix = (settings or get_settings().app).credit_card_prefix

    def parse(self, selection: Optional[AccountSelection]) -> Optional[AccountReference]:
        """
        Parse a selection into an explicit reference.

        Legacy strings are decoded here and nowhere else.
        """
        if selection is None:
            return None
        if isinstance(selection, AccountReference):
            return selection

        raw = selection.strip()
        if not raw:
            return None
        try:
            if raw.startswith(self._prefix):
                card_id = raw[len(self._prefix):].strip()
                return AccountReference.credit_card(card_id) if card_id else None
            return AccountReference.account(raw)
        except ValidationError:
            # Oversized ids can't name a real account
            logger.warning("account_selection_unusable", length=len(raw))
            return None

    def resolve(self, selection: Optional[AccountSelection]) -> Linkage:
        reference = self.parse(selection)
        if reference is None:
            return NO_LINKAGE
        if reference.kind == AccountKind.CREDIT_CARD:
            return Linkage(credit_card_id=reference.id)
        return Linkage(account_id=reference.id)

    def encode(self, reference: AccountReference) -> str:
        """Inverse of parse(), for selectors that can only carry a string."""
        if reference.kind == AccountKind.CREDIT_CARD:
            return f"{self._prefix}{reference.id}"
        return reference.id
