"""Validation package."""

from transaction_hub.validation.manual import ManualInputNormalizer, parse_amount
from transaction_hub.validation.validator import INFERRED_TYPE, TransactionNormalizer

__all__ = [
    "INFERRED_TYPE",
    "ManualInputNormalizer",
    "TransactionNormalizer",
    "parse_amount",
]
