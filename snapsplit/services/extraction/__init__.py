"""Receipt extraction services package."""

from snapsplit.services.extraction.gemini_service import (
    EXTRACTION_PROMPT,
    ExtractionAuthError,
    ExtractionError,
    ExtractionFailedError,
    ExtractionTimeoutError,
    GeminiReceiptExtractor,
    MalformedResponseError,
    MissingCredentialsError,
    normalize_records,
)

__all__ = [
    "EXTRACTION_PROMPT",
    "ExtractionAuthError",
    "ExtractionError",
    "ExtractionFailedError",
    "ExtractionTimeoutError",
    "GeminiReceiptExtractor",
    "MalformedResponseError",
    "MissingCredentialsError",
    "normalize_records",
]
