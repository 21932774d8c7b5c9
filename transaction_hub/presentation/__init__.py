"""Result presentation package."""

from transaction_hub.presentation.presenter import (
    BADGES,
    DEFAULT_LINK,
    MODULE_LINKS,
    present_result,
)

__all__ = [
    "BADGES",
    "DEFAULT_LINK",
    "MODULE_LINKS",
    "present_result",
]
