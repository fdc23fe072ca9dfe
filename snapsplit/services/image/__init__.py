"""Image services package."""

from snapsplit.services.image.compression import (
    ImageProcessingError,
    ImageTooLargeError,
    ReceiptImageService,
    UnsupportedImageError,
)

__all__ = [
    "ImageProcessingError",
    "ImageTooLargeError",
    "ReceiptImageService",
    "UnsupportedImageError",
]
