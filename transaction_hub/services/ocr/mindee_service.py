"""
Receipt OCR Service using Mindee

DESIGN DECISION: We use Mindee because:
1. Specialized for financial documents (receipts, invoices)
2. Returns STRUCTURED data, not just raw text
3. Provides per-field confidence scores

This service handles:
1. Sending the receipt image (as a base64 data URI) to Mindee ReceiptV5
2. Parsing the structured response
3. Rejecting images where no total could be read with confidence
4. Converting the response to a TransactionCandidate

CRITICAL: We REJECT receipts whose total can't be read. We do NOT guess
an amount from line items or from anything else.
"""

import asyncio
import base64
import binascii
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

import structlog
from mindee import Client, product

from transaction_hub.config import AppSettings, MindeeSettings, get_settings
from transaction_hub.exceptions import ExtractionError
from transaction_hub.extraction.interface import ReceiptExtractionService
from transaction_hub.models.transaction import (
    AssetType,
    TransactionCandidate,
    TransactionSource,
    TransactionType,
)


logger = structlog.get_logger(__name__)


class OCRError(ExtractionError):
    """Base exception for OCR errors."""

    def __init__(self, message: str):
        super().__init__(message, service="mindee")


class ReceiptRejectedError(OCRError):
    """The image was read, but not as a usable receipt."""

    def __init__(self, confidence: float, message: str):
        self.confidence = confidence
        super().__init__(message)


class ExtractionFailedError(OCRError):
    """Failed to extract data from document."""
    pass


def split_data_uri(data_uri: str) -> tuple[str, str]:
    """
    Split "data:image/png;base64,<payload>" into (mime_type, payload).

    Raises:
        ExtractionFailedError: If the URI isn't a base64 image data URI
    """
    header, sep, payload = data_uri.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64"):
        raise ExtractionFailedError("Receipt image must be a base64 data URI")
    mime_type = header[len("data:"):-len(";base64")]
    try:
        base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ExtractionFailedError("Receipt image payload is not valid base64")
    return mime_type, payload


class MindeeReceiptService(ReceiptExtractionService):
    """
    Receipt extraction using Mindee ReceiptV5.

    IMPORTANT BOUNDARIES:
    1. This service ONLY extracts data - it does NOT validate semantically
    2. This service REJECTS unreadable receipts loudly
    3. The Mindee client is synchronous; calls run in a worker thread
    """

    def __init__(
        self,
        settings: Optional[MindeeSettings] = None,
        app_settings: Optional[AppSettings] = None,
    ):
        self._settings = settings or get_settings().mindee
        self._app_settings = app_settings or get_settings().app
        self._client: Optional[Client] = None

    def _get_client(self) -> Client:
        """Get or create Mindee client."""
        if self._client is None:
            self._client = Client(api_key=self._settings.api_key)
        return self._client

    def _safe_decimal(self, value) -> Optional[Decimal]:
        """Safely convert a value to Decimal."""
        if value is None:
            return None
        try:
            # Mindee returns float/None
            return Decimal(str(value)).quantize(Decimal("0.01"))
        except (InvalidOperation, TypeError, ValueError):
            return None

    def _safe_date(self, value) -> Optional[date]:
        """Safely convert a value to date."""
        if value is None:
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            for fmt in ["%Y-%m-%d", "%d-%m-%Y", "%d/%m/%Y", "%Y/%m/%d"]:
                try:
                    return datetime.strptime(value, fmt).date()
                except ValueError:
                    continue
        return None

    def _field(self, prediction, name: str):
        """(value, confidence) of a prediction field, (None, 0.0) if absent."""
        field = getattr(prediction, name, None)
        if field is None or getattr(field, "value", None) is None:
            return None, 0.0
        return field.value, float(getattr(field, "confidence", 0.0) or 0.0)

    def _parse_sync(self, data_uri: str):
        mime_type, payload = split_data_uri(data_uri)
        extension = mime_type.split("/")[-1] or "jpg"
        client = self._get_client()
        input_doc = client.source_from_b64string(payload, f"receipt.{extension}")
        return client.parse(product.ReceiptV5, input_doc)

    def to_candidate(self, prediction) -> TransactionCandidate:
        """
        Convert a ReceiptV5 prediction into an expense candidate.

        Raises:
            ReceiptRejectedError: If no total was read with enough confidence
        """
        total, total_confidence = self._field(prediction, "total_amount")
        receipt_date, date_confidence = self._field(prediction, "date")
        supplier, supplier_confidence = self._field(prediction, "supplier_name")
        category, _ = self._field(prediction, "category")

        amount = self._safe_decimal(total)
        min_confidence = self._app_settings.min_receipt_confidence
        if amount is None or total_confidence < min_confidence:
            raise ReceiptRejectedError(
                confidence=total_confidence,
                message=(
                    "Could not read the total from this receipt. "
                    "Please upload a clearer photo with the total visible."
                ),
            )

        confidences = [c for c in (total_confidence, date_confidence, supplier_confidence) if c]
        overall_confidence = sum(confidences) / len(confidences)

        merchant = str(supplier)[:200] if supplier else None
        return TransactionCandidate(
            source=TransactionSource.RECEIPT,
            asset_type=AssetType.EXPENSE,
            type=TransactionType.EXPENSE,
            amount=amount,
            date=self._safe_date(receipt_date),
            merchant=merchant,
            description=f"Receipt from {merchant}" if merchant else "Receipt",
            category=str(category) if category else None,
            confidence=min(overall_confidence, 1.0),
        )

    async def analyze(self, image_data_uri: str) -> TransactionCandidate:
        """
        Extract a purchase from a receipt image.

        Raises:
            ReceiptRejectedError: If the receipt can't be read
            ExtractionFailedError: If the Mindee call fails
        """
        try:
            result = await asyncio.to_thread(self._parse_sync, image_data_uri)
            prediction = result.document.inference.prediction
        except OCRError:
            raise
        except Exception as e:
            logger.error("mindee_request_failed", error=str(e))
            raise ExtractionFailedError(f"Failed to extract receipt data: {e}")

        candidate = self.to_candidate(prediction)
        logger.info(
            "receipt_extracted",
            amount=str(candidate.amount),
            confidence=candidate.confidence,
        )
        return candidate
