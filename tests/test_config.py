"""
Tests for settings loading.
"""

import pytest

from snapsplit.config import AppSettings, GeminiSettings, get_settings, validate_all_settings


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestGeminiSettings:
    """Tests for GeminiSettings."""

    def test_reads_prefixed_env(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "abc123")
        monkeypatch.setenv("GEMINI_MODEL_NAME", "gemini-test")

        settings = GeminiSettings()

        assert settings.api_key == "abc123"
        assert settings.model_name == "gemini-test"

    @pytest.mark.parametrize("key,usable", [
        ("abc123", True),
        ("", False),
        ("   ", False),
        ("dummy_key_for_testing", False),
    ])
    def test_has_usable_key(self, key, usable):
        assert GeminiSettings(api_key=key).has_usable_key is usable

    def test_temperature_bounds(self):
        with pytest.raises(ValueError):
            GeminiSettings(api_key="abc", temperature=2.0)


class TestAppSettings:
    """Tests for AppSettings."""

    def test_defaults(self):
        settings = AppSettings()

        assert settings.supported_formats_list == ["jpg", "jpeg", "png", "webp"]
        assert settings.max_upload_size_bytes == 10 * 1024 * 1024
        assert settings.default_participant_name == "Me"

    def test_formats_list_is_normalised(self):
        settings = AppSettings(supported_image_formats=" JPG, png ,")
        assert settings.supported_formats_list == ["jpg", "png"]

    def test_empty_formats_rejected(self):
        with pytest.raises(ValueError):
            AppSettings(supported_image_formats=" , ")


class TestValidateAllSettings:
    """Tests for the startup check."""

    def test_placeholder_key(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "dummy")

        status = validate_all_settings()

        assert status["gemini"] is False
        assert "gemini_error" in status
        assert status["app"] is True

    def test_configured(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "real-looking-key")

        status = validate_all_settings()

        assert status["gemini"] is True
