"""Error types shared across the ingest and ask pipelines."""


class PdfQAError(Exception):
    """Base class for all errors raised by pdfqa."""


class ValidationError(PdfQAError):
    """Caller input was rejected before any external call was made."""


class AuthError(PdfQAError):
    """Bearer token check failed at the HTTP boundary."""

    def __init__(self, message: str, status: int = 401):
        super().__init__(message)
        self.status = status


class ExtractionError(PdfQAError):
    """No usable text could be extracted from an upload."""


class EmbeddingError(PdfQAError):
    """Embedding generation failed."""


class RateLimitedError(EmbeddingError):
    """The embedding provider throttled the request (retryable)."""


class CountMismatchError(EmbeddingError):
    """A batch returned a different number of vectors than it was sent."""

    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Embedding count mismatch: expected {expected}, got {actual}"
        )
        self.expected = expected
        self.actual = actual


class EmbeddingBatchFailedError(EmbeddingError):
    """Every attempt for a batch failed."""

    def __init__(self, message: str, attempts: int, last_exception: Exception):
        super().__init__(message)
        self.attempts = attempts
        self.last_exception = last_exception


class StorageError(PdfQAError):
    """Reading or writing vector store state failed."""


class CompletionError(PdfQAError):
    """The completion provider failed to produce an answer."""
