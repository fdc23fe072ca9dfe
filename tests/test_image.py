"""
Tests for receipt image preparation.

Images are generated in memory with Pillow.
"""

from io import BytesIO

import pytest
from PIL import Image

from snapsplit.config import AppSettings
from snapsplit.services.image import (
    ImageProcessingError,
    ImageTooLargeError,
    ReceiptImageService,
    UnsupportedImageError,
)


def make_image(width, height, mode="RGB", fmt="PNG"):
    buffer = BytesIO()
    color = (200, 200, 200, 128) if mode == "RGBA" else "white"
    Image.new(mode, (width, height), color).save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def service():
    return ReceiptImageService(AppSettings(
        image_max_width=1024,
        jpeg_quality=70,
        max_upload_size_mb=1,
    ))


class TestValidateUpload:
    """Tests for upload metadata checks."""

    def test_accepts_jpeg(self, service):
        upload = service.validate_upload("receipt.jpg", 2048, "image/jpeg")
        assert upload.original_filename == "receipt.jpg"
        assert upload.mime_type == "image/jpeg"

    def test_rejects_unsupported_extension(self, service):
        with pytest.raises(UnsupportedImageError):
            service.validate_upload("receipt.gif", 2048, "image/gif")

    def test_rejects_non_image_mime_type(self, service):
        with pytest.raises(UnsupportedImageError):
            service.validate_upload("receipt", 2048, "application/pdf")

    def test_rejects_oversized_file(self, service):
        with pytest.raises(ImageTooLargeError) as exc_info:
            service.validate_upload("receipt.png", 2 * 1024 * 1024, "image/png")
        assert "Maximum size is 1 MB" in str(exc_info.value)

    def test_errors_share_a_base(self):
        assert issubclass(UnsupportedImageError, ImageProcessingError)
        assert issubclass(ImageTooLargeError, ImageProcessingError)


class TestCompress:
    """Tests for downscaling and re-encoding."""

    def test_wide_image_is_downscaled(self, service):
        result = service.compress(make_image(2048, 4096))

        img = Image.open(BytesIO(result))
        assert img.format == "JPEG"
        assert img.size == (1024, 2048)

    def test_narrow_image_keeps_size(self, service):
        result = service.compress(make_image(600, 800))

        img = Image.open(BytesIO(result))
        assert img.size == (600, 800)
        assert img.format == "JPEG"

    def test_alpha_channel_is_dropped(self, service):
        result = service.compress(make_image(300, 300, mode="RGBA"))

        img = Image.open(BytesIO(result))
        assert img.mode == "RGB"

    def test_respects_configured_width(self):
        narrow = ReceiptImageService(AppSettings(image_max_width=256))

        result = narrow.compress(make_image(1000, 500))

        assert Image.open(BytesIO(result)).size == (256, 128)

    def test_too_many_pixels_rejected(self, service, monkeypatch):
        # Pillow refuses images over twice MAX_IMAGE_PIXELS outright
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10_000)

        with pytest.raises(ImageProcessingError) as exc_info:
            service.compress(make_image(200, 200))

        assert isinstance(exc_info.value.__cause__, Image.DecompressionBombError)

    def test_garbage_bytes_rejected(self, service):
        with pytest.raises(ImageProcessingError):
            service.compress(b"definitely not an image")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
