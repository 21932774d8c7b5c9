"""Tests for the account linkage resolver."""

import pytest

from transaction_hub.config import AppSettings
from transaction_hub.ledger import AccountLinkageResolver
from transaction_hub.models.transaction import (
    NO_LINKAGE,
    AccountKind,
    AccountReference,
    Linkage,
)


@pytest.fixture
def resolver(settings) -> AccountLinkageResolver:
    return AccountLinkageResolver(settings)


class TestParse:

    @pytest.mark.parametrize("selection", [None, "", "   "])
    def test_absent_selection_is_no_linkage(self, resolver, selection):
        assert resolver.parse(selection) is None
        assert resolver.resolve(selection) == NO_LINKAGE

    def test_prefixed_selection_is_credit_card(self, resolver):
        reference = resolver.parse("cc_123")
        assert reference.kind == AccountKind.CREDIT_CARD
        assert reference.id == "123"

    def test_plain_selection_is_account(self, resolver):
        reference = resolver.parse("acc-42")
        assert reference == AccountReference.account("acc-42")

    def test_prefix_alone_degrades_to_no_linkage(self, resolver):
        """Never raises on a malformed selection."""
        assert resolver.parse("cc_") is None
        assert resolver.resolve("cc_  ") == NO_LINKAGE

    @pytest.mark.parametrize("selection", ["a" * 101, "cc_" + "9" * 120])
    def test_oversized_id_degrades_to_no_linkage(self, resolver, selection):
        assert resolver.parse(selection) is None
        assert resolver.resolve(selection) == NO_LINKAGE

    def test_reference_passes_through(self, resolver):
        reference = AccountReference.credit_card("77")
        assert resolver.parse(reference) is reference

    def test_prefix_is_configurable(self):
        resolver = AccountLinkageResolver(AppSettings(credit_card_prefix="card:"))
        assert resolver.parse("card:9").kind == AccountKind.CREDIT_CARD
        assert resolver.parse("cc_9") == AccountReference.account("cc_9")


class TestResolve:

    def test_credit_card_sets_only_card_id(self, resolver):
        linkage = resolver.resolve("cc_123")
        assert linkage == Linkage(credit_card_id="123")
        assert linkage.account_id is None

    def test_account_sets_only_account_id(self, resolver):
        linkage = resolver.resolve("acc-1")
        assert linkage == Linkage(account_id="acc-1")
        assert linkage.credit_card_id is None

    def test_never_both_ids(self, resolver):
        for selection in ["cc_1", "acc-1", AccountReference.credit_card("2"), None]:
            linkage = resolver.resolve(selection)
            assert not (linkage.account_id and linkage.credit_card_id)


class TestEncode:

    def test_encode_round_trips_through_parse(self, resolver):
        for reference in [AccountReference.credit_card("5"), AccountReference.account("w-1")]:
            assert resolver.parse(resolver.encode(reference)) == reference

    def test_encode_credit_card_uses_prefix(self, resolver):
        assert resolver.encode(AccountReference.credit_card("5")) == "cc_5"
