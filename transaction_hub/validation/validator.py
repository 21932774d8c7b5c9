"""
Transaction Normalizer

Turns a TransactionCandidate (from any modality) into the canonical
Transaction record.

Two steps, mirroring the dispatcher's VALIDATING and LINKING states:

STEP 1 - CHECK:
- amount present and > 0
- a classification can be determined
- a cash-flow direction can be determined
Failure raises TransactionValidationError; nothing is persisted.

STEP 2 - BUILD:
- missing date -> today
- missing type -> inferred from asset type
- linkage applied from the Account Linkage Resolver
- currency set to the base currency

CLASSIFICATION PRECEDENCE:
An explicit asset_type on the candidate wins. Otherwise the candidate is
EXPENSE or INCOME per its type. Gold, stock and bond purchases are
acquisitions: they never need a type and are treated as outflows.

IMPORTANT: The normalizer NEVER guesses an amount or a direction.
It reports what's missing.
"""

from datetime import date
from typing import Optional

from pydantic import ValidationError

from transaction_hub.config import AppSettings, get_settings
from transaction_hub.exceptions import TransactionValidationError
from transaction_hub.models.transaction import (
    NO_LINKAGE,
    AssetType,
    Linkage,
    Transaction,
    TransactionCandidate,
    TransactionType,
    ValidationIssue,
)


# Direction implied by an asset type when the candidate carries none.
# CASH is deliberately absent: a cash movement without a direction is ambiguous.
INFERRED_TYPE: dict[AssetType, TransactionType] = {
    AssetType.EXPENSE: TransactionType.EXPENSE,
    AssetType.INCOME: TransactionType.INCOME,
    AssetType.BANK_DEPOSIT: TransactionType.INCOME,
    AssetType.GOLD: TransactionType.EXPENSE,
    AssetType.STOCK: TransactionType.EXPENSE,
    AssetType.BOND: TransactionType.EXPENSE,
}


class TransactionNormalizer:
    """Validates candidates and builds canonical transactions."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    def classify(self, candidate: TransactionCandidate) -> Optional[AssetType]:
        """Resolve the asset type, or None if it can't be determined."""
        if candidate.asset_type is not None:
            return candidate.asset_type
        if candidate.type is not None:
            return AssetType(candidate.type.value)
        return None

    def resolve_type(
        self,
        candidate: TransactionCandidate,
        asset_type: Optional[AssetType],
    ) -> Optional[TransactionType]:
        if candidate.type is not None:
            return candidate.type
        if asset_type is None:
            return None
        return INFERRED_TYPE.get(asset_type)

    def check(self, candidate: TransactionCandidate) -> list[ValidationIssue]:
        """
        Collect every validation issue in a candidate.

        Returns an empty list when the candidate can be dispatched.
        """
        issues = []

        if candidate.amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
            ))
        elif candidate.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
            ))

        asset_type = self.classify(candidate)
        if asset_type is None:
            issues.append(ValidationIssue(
                field="type",
                issue_type="missing",
                message="Transaction type (expense or income) is required",
            ))
        elif self.resolve_type(candidate, asset_type) is None:
            issues.append(ValidationIssue(
                field="type",
                issue_type="missing",
                message=f"Transaction type is required for {asset_type.value.lower()} transactions",
            ))
        elif (
            asset_type in (AssetType.EXPENSE, AssetType.INCOME)
            and candidate.type is not None
            and candidate.type.value != asset_type.value
        ):
            issues.append(ValidationIssue(
                field="type",
                issue_type="inconsistent",
                message=f"Type {candidate.type.value} conflicts with asset type {asset_type.value}",
            ))

        return issues

    def validate(self, candidate: TransactionCandidate) -> None:
        """Raise TransactionValidationError if the candidate can't be dispatched."""
        issues = self.check(candidate)
        if issues:
            raise TransactionValidationError(issues)

    def normalize(
        self,
        candidate: TransactionCandidate,
        linkage: Linkage = NO_LINKAGE,
        today: Optional[date] = None,
    ) -> Transaction:
        """
        Build the canonical Transaction.

        Raises:
            TransactionValidationError: If the candidate fails check()
        """
        self.validate(candidate)

        asset_type = self.classify(candidate)
        transaction_type = self.resolve_type(candidate, asset_type)

        try:
            return Transaction(
                amount=candidate.amount,
                currency=self._settings.base_currency,
                type=transaction_type,
                date=candidate.date or today or date.today(),
                description=candidate.description,
                merchant=candidate.merchant,
                category=candidate.category,
                category_id=candidate.category_id,
                asset_type=asset_type,
                source=candidate.source,
                linked_account_id=linkage.account_id,
                linked_credit_card_id=linkage.credit_card_id,
                weight=candidate.weight,
                ornament_name=candidate.ornament_name,
                stock_symbol=candidate.stock_symbol,
                units=candidate.units,
            )
        except ValidationError as e:
            raise TransactionValidationError([
                ValidationIssue(
                    field=".".join(str(loc) for loc in error["loc"]) or "transaction",
                    issue_type="invalid_value",
                    message=error["msg"],
                )
                for error in e.errors()
            ])
