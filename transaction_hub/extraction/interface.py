"""
Extraction Service Interfaces

The inference services behind the SMS, receipt and statement adapters.
Implementations: agents.SmsParsingAgent, agents.StatementParsingAgent
(Gemini) and services.ocr.MindeeReceiptService (Mindee).

Services only EXTRACT. They never validate, link or persist.
"""

from abc import ABC, abstractmethod
from typing import Optional

from transaction_hub.models.transaction import (
    StatementExtraction,
    TransactionCandidate,
)


class SmsExtractionService(ABC):

    @abstractmethod
    async def parse(self, text: str) -> TransactionCandidate:
        """
        Extract a transaction from a bank SMS.

        Raises:
            ExtractionError: If the text can't be interpreted
        """
        pass


class ReceiptExtractionService(ABC):

    @abstractmethod
    async def analyze(self, image_data_uri: str) -> TransactionCandidate:
        """
        Extract a purchase from a receipt image.

        Args:
            image_data_uri: "data:image/<type>;base64,<payload>"

        Raises:
            ExtractionError: If the receipt can't be read
        """
        pass


class StatementExtractionService(ABC):

    @abstractmethod
    async def parse(
        self,
        filename: str,
        content: bytes,
        account_id: Optional[str],
    ) -> StatementExtraction:
        """
        Extract every transaction in a bank or card statement.

        Reports its own failures in the envelope (success=False, message).
        Line items that can't be used go to rejected_items.
        """
        pass
