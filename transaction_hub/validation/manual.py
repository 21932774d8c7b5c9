"""
Manual Input Normalizer

Shapes the manual form into a TransactionCandidate. No inference step.

Cleanup policy: an empty category, merchant, description or account
reference means "absent" and is omitted from the candidate. Submitting
empty strings would fail downstream required-field validation.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional

from transaction_hub.exceptions import TransactionValidationError
from transaction_hub.models.transaction import (
    AccountReference,
    AccountSelection,
    ManualForm,
    TransactionCandidate,
    TransactionSource,
)


def parse_amount(raw: Optional[str]) -> Decimal:
    """
    Parse the amount field synchronously.

    Raises:
        TransactionValidationError: If missing, unreadable or <= 0
    """
    if raw is None or not raw.strip():
        raise TransactionValidationError.single("amount", "missing", "Amount is required")
    try:
        amount = Decimal(raw.strip().replace(",", ""))
    except InvalidOperation:
        raise TransactionValidationError.single(
            "amount", "invalid_format", f"Amount '{raw}' is not a number"
        )
    if not amount.is_finite() or amount <= 0:
        raise TransactionValidationError.single(
            "amount", "invalid_value", "Amount must be greater than zero"
        )
    return amount


def _present(value: str) -> Optional[str]:
    value = value.strip()
    return value or None


class ManualInputNormalizer:
    """Validates manual form state and builds a MANUAL candidate."""

    def _account_selection(self, form: ManualForm) -> Optional[AccountSelection]:
        # The selector value wins; a bare credit_card_id only counts
        # when no account was selected.
        if _present(form.account_id):
            return form.account_id.strip()
        card_id = _present(form.credit_card_id)
        if card_id:
            return AccountReference.credit_card(card_id)
        return None

    def to_candidate(self, form: ManualForm) -> TransactionCandidate:
        amount = parse_amount(form.amount)

        return TransactionCandidate(
            source=TransactionSource.MANUAL,
            amount=amount,
            type=form.type,
            date=form.date,
            description=_present(form.description),
            merchant=_present(form.merchant),
            category_id=_present(form.category_id),
            account_selection=self._account_selection(form),
        )
