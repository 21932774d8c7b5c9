"""Tests for the transaction normalizer and the manual input normalizer."""

import pytest
from datetime import date
from decimal import Decimal

from conftest import candidate

from transaction_hub.exceptions import TransactionValidationError
from transaction_hub.models.transaction import (
    AccountKind,
    AccountReference,
    AssetType,
    Linkage,
    ManualForm,
    TransactionSource,
    TransactionType,
)
from transaction_hub.validation import (
    ManualInputNormalizer,
    TransactionNormalizer,
    parse_amount,
)


@pytest.fixture
def normalizer(settings) -> TransactionNormalizer:
    return TransactionNormalizer(settings)


class TestCheck:
    """Tests for the validation step."""

    def test_valid_expense_has_no_issues(self, normalizer):
        assert normalizer.check(candidate(amount="10", type="EXPENSE")) == []

    @pytest.mark.parametrize("amount", [None, "0", "-5"])
    def test_bad_amount_is_reported(self, normalizer, amount):
        issues = normalizer.check(candidate(amount=amount, type="EXPENSE"))
        assert [issue.field for issue in issues] == ["amount"]

    def test_missing_type_and_asset_type(self, normalizer):
        issues = normalizer.check(candidate(amount="10"))
        assert [issue.field for issue in issues] == ["type"]

    def test_cash_without_type_is_rejected(self, normalizer):
        """A cash movement without a direction is ambiguous."""
        issues = normalizer.check(candidate(amount="10", asset_type=AssetType.CASH))
        assert issues and issues[0].field == "type"

    def test_conflicting_type_is_rejected(self, normalizer):
        issues = normalizer.check(candidate(
            amount="10", type="INCOME", asset_type=AssetType.EXPENSE,
        ))
        assert issues[0].issue_type == "inconsistent"

    def test_every_issue_is_collected(self, normalizer):
        issues = normalizer.check(candidate())
        assert {issue.field for issue in issues} == {"amount", "type"}

    def test_validate_raises_with_fields(self, normalizer):
        with pytest.raises(TransactionValidationError) as exc_info:
            normalizer.validate(candidate(amount="0", type="EXPENSE"))
        assert exc_info.value.fields == ["amount"]


class TestNormalize:
    """Tests for building the canonical transaction."""

    def test_missing_date_defaults_to_today(self, normalizer):
        transaction = normalizer.normalize(
            candidate(amount="10", type="EXPENSE"),
            today=date(2024, 5, 1),
        )
        assert transaction.date == date(2024, 5, 1)

    def test_explicit_date_kept(self, normalizer):
        transaction = normalizer.normalize(
            candidate(amount="10", type="EXPENSE", date=date(2024, 1, 2)),
        )
        assert transaction.date == date(2024, 1, 2)

    def test_classified_from_type(self, normalizer):
        transaction = normalizer.normalize(candidate(amount="10", type="INCOME"))
        assert transaction.asset_type == AssetType.INCOME

    @pytest.mark.parametrize("asset_type, inferred", [
        (AssetType.GOLD, TransactionType.EXPENSE),
        (AssetType.STOCK, TransactionType.EXPENSE),
        (AssetType.BOND, TransactionType.EXPENSE),
        (AssetType.BANK_DEPOSIT, TransactionType.INCOME),
        (AssetType.INCOME, TransactionType.INCOME),
    ])
    def test_type_inferred_from_asset_type(self, normalizer, asset_type, inferred):
        transaction = normalizer.normalize(candidate(amount="10", asset_type=asset_type))
        assert transaction.type == inferred
        assert transaction.asset_type == asset_type

    def test_base_currency_and_source(self, normalizer):
        transaction = normalizer.normalize(candidate(
            amount="10", type="EXPENSE", source=TransactionSource.SMS,
        ))
        assert transaction.currency == "AED"
        assert transaction.source == TransactionSource.SMS
        assert transaction.id is None

    def test_linkage_applied(self, normalizer):
        transaction = normalizer.normalize(
            candidate(amount="10", type="EXPENSE"),
            Linkage(credit_card_id="123"),
        )
        assert transaction.linked_credit_card_id == "123"
        assert transaction.linked_account_id is None

    def test_gold_fields_carried(self, normalizer):
        transaction = normalizer.normalize(candidate(
            amount="2500", asset_type=AssetType.GOLD,
            weight=Decimal("10.5"), ornament_name="Bangle",
        ))
        assert transaction.weight == Decimal("10.5")
        assert transaction.ornament_name == "Bangle"


class TestParseAmount:

    def test_accepts_thousands_separator(self):
        assert parse_amount(" 1,200.50 ") == Decimal("1200.50")

    @pytest.mark.parametrize("raw, issue_type", [
        (None, "missing"),
        ("  ", "missing"),
        ("abc", "invalid_format"),
        ("0", "invalid_value"),
        ("-3", "invalid_value"),
        ("NaN", "invalid_value"),
        ("Infinity", "invalid_value"),
    ])
    def test_rejects(self, raw, issue_type):
        with pytest.raises(TransactionValidationError) as exc_info:
            parse_amount(raw)
        assert exc_info.value.issues[0].issue_type == issue_type
        assert exc_info.value.fields == ["amount"]


class TestManualInputNormalizer:

    def test_builds_manual_candidate(self):
        result = ManualInputNormalizer().to_candidate(ManualForm(
            amount="200",
            type=TransactionType.EXPENSE,
            description="Dinner",
        ))
        assert result.source == TransactionSource.MANUAL
        assert result.amount == Decimal("200")
        assert result.description == "Dinner"

    def test_empty_fields_are_absent(self):
        result = ManualInputNormalizer().to_candidate(ManualForm(
            amount="5", description="  ", merchant="", account_id=" ", category_id="",
        ))
        assert result.description is None
        assert result.merchant is None
        assert result.account_selection is None
        assert result.category_id is None

    def test_account_selection_kept_raw(self):
        result = ManualInputNormalizer().to_candidate(ManualForm(amount="5", account_id="cc_123"))
        assert result.account_selection == "cc_123"

    def test_credit_card_field_used_when_no_account(self):
        result = ManualInputNormalizer().to_candidate(ManualForm(amount="5", credit_card_id="77"))
        assert result.account_selection == AccountReference(kind=AccountKind.CREDIT_CARD, id="77")

    def test_invalid_amount_raises_before_anything_else(self):
        with pytest.raises(TransactionValidationError):
            ManualInputNormalizer().to_candidate(ManualForm(amount="0", account_id="acc-1"))
