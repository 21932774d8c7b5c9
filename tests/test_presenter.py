"""Tests for the result presenter."""

from datetime import date
from decimal import Decimal

import pytest

from transaction_hub.models.transaction import (
    AssetType,
    Transaction,
    TransactionSource,
    TransactionType,
)
from transaction_hub.presentation import BADGES, present_result


class TestPresentResult:

    def test_total_over_asset_types(self):
        for asset_type in AssetType:
            presentation = present_result(asset_type)
            assert presentation.badge.label
            assert presentation.link.startswith("/")

    @pytest.mark.parametrize("asset_type, label, link", [
        (AssetType.GOLD, "Gold", "/gold"),
        (AssetType.STOCK, "Stock", "/stocks"),
        (AssetType.BOND, "Bond", "/bonds"),
        (AssetType.EXPENSE, "Expense", "/expenses"),
        (AssetType.INCOME, "Income", "/"),
        (AssetType.BANK_DEPOSIT, "Deposit", "/"),
    ])
    def test_badge_and_link(self, asset_type, label, link):
        presentation = present_result(asset_type)
        assert presentation.badge.label == label
        assert presentation.link == link

    @pytest.mark.parametrize("value", ["CRYPTO", "", None, 42])
    def test_unknown_falls_back_to_expense_badge(self, value):
        presentation = present_result(value)
        assert presentation.badge == BADGES[AssetType.EXPENSE]
        assert presentation.link == "/"

    def test_cash_uses_expense_badge_and_dashboard(self):
        presentation = present_result(AssetType.CASH)
        assert presentation.badge == BADGES[AssetType.EXPENSE]
        assert presentation.link == "/"

    def test_accepts_raw_strings(self):
        assert present_result(" gold ").link == "/gold"

    def test_accepts_transaction(self):
        transaction = Transaction(
            amount=Decimal("10"),
            currency="AED",
            type=TransactionType.EXPENSE,
            date=date(2024, 3, 1),
            asset_type=AssetType.STOCK,
            source=TransactionSource.MANUAL,
        )
        assert present_result(transaction) == present_result(AssetType.STOCK)

    def test_is_pure(self):
        assert present_result(AssetType.BOND) == present_result(AssetType.BOND)
