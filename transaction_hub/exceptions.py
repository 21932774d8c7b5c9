"""
Pipeline-level exceptions.

Storage backends raise StorageError subclasses (see services.storage);
OCR raises OCRError. The ingestion pipeline translates those into the
taxonomy below, which is what callers of ingest() ever see in messages.
"""

from typing import Optional

from transaction_hub.models.transaction import ValidationIssue


class TransactionHubError(Exception):
    """Base exception for the ingestion pipeline."""
    pass


class TransactionValidationError(TransactionHubError):
    """
    Candidate is missing required fields or carries invalid values.

    Raised before any network call; `issues` names every offending field.
    """

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        super().__init__("; ".join(issue.message for issue in issues))

    @classmethod
    def single(cls, field: str, issue_type: str, message: str) -> "TransactionValidationError":
        return cls([ValidationIssue(field=field, issue_type=issue_type, message=message)])

    @property
    def fields(self) -> list[str]:
        return [issue.field for issue in self.issues]


class ExtractionError(TransactionHubError):
    """The inference service failed, timed out or returned unusable data."""

    def __init__(self, message: str, service: Optional[str] = None):
        self.service = service
        super().__init__(message)


class PersistenceError(TransactionHubError):
    """Ledger write failed. Nothing downstream runs."""
    pass


class BalanceSyncError(TransactionHubError):
    """
    Transaction persisted but the balance mutation failed.

    Not rolled back: the transaction stays and the inconsistency is reported.
    """

    def __init__(self, message: str, transaction_id: Optional[str] = None):
        self.transaction_id = transaction_id
        super().__init__(message)


class ExtractionTimeoutError(ExtractionError):
    """The inference service didn't answer within the extraction timeout."""
    pass
