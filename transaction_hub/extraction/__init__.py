"""Extraction adapters and the inference service interfaces behind them."""

from transaction_hub.extraction.adapters import (
    ReceiptAdapter,
    SmsAdapter,
    StatementAdapter,
    file_extension,
)
from transaction_hub.extraction.interface import (
    ReceiptExtractionService,
    SmsExtractionService,
    StatementExtractionService,
)

__all__ = [
    "ReceiptAdapter",
    "ReceiptExtractionService",
    "SmsAdapter",
    "SmsExtractionService",
    "StatementAdapter",
    "StatementExtractionService",
    "file_extension",
]
