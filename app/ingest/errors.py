"""
Ingestion error taxonomy.

Every pipeline stage raises a subclass of :class:`IngestionError`. The class
decides the outcome reported to the caller; ``detail`` carries the underlying
cause string for diagnostics.
"""
from __future__ import annotations

from enum import Enum


class Outcome(str, Enum):
    SUCCESS = "success"
    VALIDATION_ERROR = "validation_error"
    CONFLICT = "conflict"
    INTERNAL_ERROR = "internal_error"


class IngestionError(Exception):
    outcome: Outcome = Outcome.INTERNAL_ERROR
    message: str = "Failed to process receipt"
    retryable: bool = False

    def __init__(self, detail: str | None = None, message: str | None = None):
        if message is not None:
            self.message = message
        self.detail = detail
        super().__init__(detail or self.message)


# ---------------------------------------------------------------------------
# Validation (client-facing)
# ---------------------------------------------------------------------------

class ValidationFailure(IngestionError):
    outcome = Outcome.VALIDATION_ERROR
    message = "Invalid receipt"


class MissingLookupKey(ValidationFailure):
    message = "Missing receipt ID"


class MalformedDocument(ValidationFailure):
    message = "Downloaded document is not a valid receipt"


class MissingTransactionId(ValidationFailure):
    message = "Receipt does not contain a reference number"


class InvalidTransactionReference(ValidationFailure):
    message = "Invalid transaction number"


class InvalidAmount(ValidationFailure):
    message = "Receipt amount is missing or invalid"


# ---------------------------------------------------------------------------
# Fetch (server-facing)
# ---------------------------------------------------------------------------

class FetchError(IngestionError):
    message = "Failed to fetch receipt"


class TransportFailure(FetchError):
    retryable = True


class UnexpectedStatus(TransportFailure):
    def __init__(self, status_code: int, detail: str | None = None):
        self.status_code = status_code
        super().__init__(detail or f"Upstream returned HTTP status {status_code}")


class Timeout(FetchError):
    message = "Timed out fetching receipt"
    retryable = True


class UnexpectedContentType(FetchError):
    pass


class DocumentTooLarge(FetchError):
    pass


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

class DuplicateTransaction(IngestionError):
    outcome = Outcome.CONFLICT
    message = "Transaction with this ID already exists"


class PersistenceFailure(IngestionError):
    message = "Failed to save transaction to the database"


class InternalError(IngestionError):
    message = "Internal server error"
