"""
Extraction Adapters

One adapter per unreliable modality. Each adapter:
1. Checks its input locally (nothing is sent if the input is unusable)
2. Calls its inference service under a bounded wait
3. Stamps the candidate with its source

CRITICAL: There is no fallback extraction. When the service fails or
times out, the submission fails. A half-parsed SMS is worse than none.

Statement parsing is the exception to "fail by raising": partial success
is expected, so it reports through a StatementExtraction envelope.
"""

import asyncio
import base64
from io import BytesIO
from typing import Optional

import structlog
from PIL import Image, UnidentifiedImageError

from transaction_hub.config import AppSettings, get_settings
from transaction_hub.exceptions import (
    ExtractionError,
    ExtractionTimeoutError,
    TransactionValidationError,
)
from transaction_hub.extraction.interface import (
    ReceiptExtractionService,
    SmsExtractionService,
    StatementExtractionService,
)
from transaction_hub.models.transaction import (
    AssetType,
    StatementExtraction,
    TransactionCandidate,
    TransactionSource,
    TransactionType,
)


logger = structlog.get_logger(__name__)


def file_extension(filename: str) -> str:
    """Lowercase extension without the dot, or '' if there is none."""
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[1].strip().lower()


class _TimedAdapter:
    """Shared timeout handling."""

    service_name = "extraction"

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    @property
    def timeout(self) -> float:
        return self._settings.extraction_timeout_seconds

    async def _call(self, awaitable):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("extraction_timed_out", service=self.service_name, timeout=self.timeout)
            raise ExtractionTimeoutError(
                f"{self.service_name} timed out after {self.timeout:g}s",
                service=self.service_name,
            )
        except ExtractionError:
            raise
        except Exception as e:
            raise ExtractionError(str(e), service=self.service_name)


class SmsAdapter(_TimedAdapter):
    """Bank SMS -> candidate."""

    service_name = "sms"

    def __init__(self, service: SmsExtractionService, settings: Optional[AppSettings] = None):
        super().__init__(settings)
        self._service = service

    async def extract(self, text: str) -> TransactionCandidate:
        """
        Raises:
            TransactionValidationError: Empty text (no call is made)
            ExtractionError: Service failure or timeout
        """
        text = (text or "").strip()
        if not text:
            raise TransactionValidationError.single(
                "text", "missing", "Please paste the SMS text"
            )

        candidate = await self._call(self._service.parse(text))
        return candidate.model_copy(update={"source": TransactionSource.SMS})


class ReceiptAdapter(_TimedAdapter):
    """Receipt image -> expense candidate."""

    service_name = "receipt"

    def __init__(self, service: ReceiptExtractionService, settings: Optional[AppSettings] = None):
        super().__init__(settings)
        self._service = service

    def validate_image(self, image_bytes: bytes, filename: str) -> str:
        """
        Check an upload and return its MIME type.

        Raises:
            TransactionValidationError: Wrong format, too large, or not an image
        """
        extension = file_extension(filename)
        allowed = self._settings.supported_formats_list
        if extension not in allowed:
            raise TransactionValidationError.single(
                "file",
                "unsupported_format",
                f"Unsupported image format. Please upload one of: {', '.join(allowed)}",
            )

        if not image_bytes:
            raise TransactionValidationError.single("file", "missing", "The image is empty")

        if len(image_bytes) > self._settings.max_upload_size_bytes:
            raise TransactionValidationError.single(
                "file",
                "too_large",
                f"Image is larger than {self._settings.max_upload_size_mb} MB",
            )

        try:
            with Image.open(BytesIO(image_bytes)) as img:
                image_format = img.format
                img.verify()
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            raise TransactionValidationError.single(
                "file", "invalid_value", f"The file is not a readable image: {e}"
            )

        return Image.MIME.get(image_format, f"image/{extension}")

    def to_data_uri(self, image_bytes: bytes, mime_type: str) -> str:
        payload = base64.b64encode(image_bytes).decode("ascii")
        return f"data:{mime_type};base64,{payload}"

    async def extract(self, image_bytes: bytes, filename: str) -> TransactionCandidate:
        """
        Receipts are always purchases: asset type and type are forced
        to EXPENSE whatever the service reports.
        """
        mime_type = self.validate_image(image_bytes, filename)
        data_uri = self.to_data_uri(image_bytes, mime_type)

        candidate = await self._call(self._service.analyze(data_uri))
        return candidate.model_copy(update={
            "source": TransactionSource.RECEIPT,
            "asset_type": AssetType.EXPENSE,
            "type": TransactionType.EXPENSE,
        })


class StatementAdapter(_TimedAdapter):
    """Statement file -> batch of candidates, all for one account."""

    service_name = "statement"

    def __init__(self, service: StatementExtractionService, settings: Optional[AppSettings] = None):
        super().__init__(settings)
        self._service = service

    def validate_upload(self, content: bytes, filename: str, account_id: Optional[str]) -> str:
        """
        Raises:
            TransactionValidationError: No account, wrong format, empty or too large
        """
        if not account_id or not account_id.strip():
            raise TransactionValidationError.single(
                "account_id", "missing", "Please select the account this statement belongs to"
            )

        extension = file_extension(filename)
        allowed = self._settings.supported_statement_formats_list
        if extension not in allowed:
            raise TransactionValidationError.single(
                "file",
                "unsupported_format",
                f"Unsupported statement format. Please upload one of: {', '.join(allowed)}",
            )

        if not content:
            raise TransactionValidationError.single("file", "missing", "The statement file is empty")

        if len(content) > self._settings.max_upload_size_bytes:
            raise TransactionValidationError.single(
                "file",
                "too_large",
                f"Statement is larger than {self._settings.max_upload_size_mb} MB",
            )

        return extension

    async def extract(
        self,
        content: bytes,
        filename: str,
        account_id: Optional[str],
    ) -> StatementExtraction:
        """
        A timeout becomes a failure envelope; the service's own failure
        envelope is returned untouched.

        Raises:
            TransactionValidationError: See validate_upload()
            ExtractionError: The service raised instead of reporting
        """
        self.validate_upload(content, filename, account_id)
        account_id = account_id.strip()

        try:
            envelope = await self._call(self._service.parse(filename, content, account_id))
        except ExtractionTimeoutError as e:
            return StatementExtraction(success=False, message=str(e))

        if not envelope.success:
            return envelope

        candidates = [
            candidate.model_copy(update={
                "source": TransactionSource.STATEMENT,
                "account_selection": account_id,
            })
            for candidate in envelope.candidates
        ]
        return envelope.model_copy(update={"candidates": candidates})
