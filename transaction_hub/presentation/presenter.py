"""
Result Presenter

Maps a dispatched transaction's asset type to a display badge and a deep
link into the module that owns it. Pure: no I/O, no state, never raises.
Cash has no module of its own, so like anything unrecognized it gets the
expense badge and the dashboard link.
"""

from typing import Union

from transaction_hub.models.transaction import (
    AssetType,
    Badge,
    ResultPresentation,
    Transaction,
)


BADGES: dict[AssetType, Badge] = {
    AssetType.GOLD: Badge(label="Gold", emoji="🥇", color="yellow"),
    AssetType.STOCK: Badge(label="Stock", emoji="📈", color="blue"),
    AssetType.BOND: Badge(label="Bond", emoji="📜", color="purple"),
    AssetType.EXPENSE: Badge(label="Expense", emoji="💰", color="red"),
    AssetType.INCOME: Badge(label="Income", emoji="💵", color="emerald"),
    AssetType.BANK_DEPOSIT: Badge(label="Deposit", emoji="🏦", color="indigo"),
}

MODULE_LINKS: dict[AssetType, str] = {
    AssetType.GOLD: "/gold",
    AssetType.STOCK: "/stocks",
    AssetType.BOND: "/bonds",
    AssetType.EXPENSE: "/expenses",
    AssetType.INCOME: "/",
    AssetType.BANK_DEPOSIT: "/",
}

DEFAULT_LINK = "/"


def _asset_type(value) -> Union[AssetType, None]:
    if isinstance(value, Transaction):
        return value.asset_type
    if isinstance(value, AssetType):
        return value
    if isinstance(value, str):
        try:
            return AssetType(value.strip().upper())
        except ValueError:
            return None
    return None


def present_result(value: Union[AssetType, Transaction, str, None]) -> ResultPresentation:
    """Badge and module link for an asset type, a transaction, or a raw type string."""
    asset_type = _asset_type(value)
    return ResultPresentation(
        badge=BADGES.get(asset_type, BADGES[AssetType.EXPENSE]),
        link=MODULE_LINKS.get(asset_type, DEFAULT_LINK),
    )
