"""OCR services package."""

from transaction_hub.services.ocr.mindee_service import (
    ExtractionFailedError,
    MindeeReceiptService,
    OCRError,
    ReceiptRejectedError,
    split_data_uri,
)

__all__ = [
    "ExtractionFailedError",
    "MindeeReceiptService",
    "OCRError",
    "ReceiptRejectedError",
    "split_data_uri",
]
