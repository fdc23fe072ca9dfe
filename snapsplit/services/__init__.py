"""Services package."""

from snapsplit.services.extraction import (
    ExtractionAuthError,
    ExtractionError,
    ExtractionFailedError,
    ExtractionTimeoutError,
    GeminiReceiptExtractor,
    MalformedResponseError,
    MissingCredentialsError,
)
from snapsplit.services.image import (
    ImageProcessingError,
    ImageTooLargeError,
    ReceiptImageService,
    UnsupportedImageError,
)

__all__ = [
    # Extraction services
    "ExtractionAuthError",
    "ExtractionError",
    "ExtractionFailedError",
    "ExtractionTimeoutError",
    "GeminiReceiptExtractor",
    "MalformedResponseError",
    "MissingCredentialsError",
    # Image services
    "ImageProcessingError",
    "ImageTooLargeError",
    "ReceiptImageService",
    "UnsupportedImageError",
]
