"""
Receipt Image Preparation

Phone photos are often several megabytes. Before a photo is sent to the
vision model it is:
1. Checked against the upload limits (type and size)
2. Downscaled to a maximum width, keeping the aspect ratio
3. Re-encoded as JPEG

The image is never stored anywhere. It lives only for the duration of
the extraction call.
"""

from io import BytesIO
from typing import Optional

from PIL import Image, UnidentifiedImageError
from pydantic import ValidationError

from snapsplit.config import AppSettings, get_settings
from snapsplit.models.split import ImageUpload


class ImageProcessingError(Exception):
    """Base exception for receipt image errors."""
    pass


class UnsupportedImageError(ImageProcessingError):
    """File is not one of the accepted image types."""
    pass


class ImageTooLargeError(ImageProcessingError):
    """File exceeds the configured upload limit."""
    pass


class ReceiptImageService:
    """
    Validates uploads and shrinks receipt photos before extraction.
    """

    def __init__(self, app_settings: Optional[AppSettings] = None):
        self._app_settings = app_settings or get_settings().app

    def validate_upload(
        self,
        filename: str,
        file_size: int,
        mime_type: str,
    ) -> ImageUpload:
        """
        Check upload metadata against the configured limits.

        Raises:
            UnsupportedImageError: Wrong file type
            ImageTooLargeError: File above max_upload_size_mb
        """
        extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
        if extension and extension not in self._app_settings.supported_formats_list:
            raise UnsupportedImageError(
                f"Unsupported file type '.{extension}'. "
                f"Please upload one of: {', '.join(self._app_settings.supported_formats_list)}"
            )

        if file_size > self._app_settings.max_upload_size_bytes:
            raise ImageTooLargeError(
                f"Image is too large ({file_size / (1024 * 1024):.1f} MB). "
                f"Maximum size is {self._app_settings.max_upload_size_mb} MB."
            )

        try:
            return ImageUpload(
                original_filename=filename,
                file_size_bytes=file_size,
                mime_type=mime_type,
            )
        except ValidationError as e:
            raise UnsupportedImageError(
                "Please upload an image file (JPEG, PNG or WebP)."
            ) from e

    def compress(self, image_bytes: bytes) -> bytes:
        """
        Downscale and re-encode a receipt photo as JPEG.

        Returns:
            JPEG bytes no wider than image_max_width

        Raises:
            ImageProcessingError: If the bytes are not a decodable image
                or the pixel count is over the Pillow safety limit
        """
        try:
            img = Image.open(BytesIO(image_bytes))
            img.load()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
            raise ImageProcessingError(f"Could not read image: {e}") from e

        max_width = self._app_settings.image_max_width
        width, height = img.size
        if width > max_width:
            new_height = max(1, round(height * max_width / width))
            img = img.resize((max_width, new_height), Image.Resampling.LANCZOS)

        # JPEG has no alpha channel or palette
        if img.mode != "RGB":
            img = img.convert("RGB")

        output = BytesIO()
        img.save(output, format="JPEG", quality=self._app_settings.jpeg_quality)
        return output.getvalue()
