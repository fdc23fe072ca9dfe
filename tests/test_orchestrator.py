"""
Integration tests for the receipt upload flow and the split session.

External services are faked: the image service is real (Pillow, in
memory), the Gemini model behind the extractor is an AsyncMock.
"""

import asyncio
from decimal import Decimal
from io import BytesIO
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from google.api_core import exceptions as google_exceptions
from PIL import Image

from snapsplit.audit import AuditLogger
from snapsplit.config import AppSettings, GeminiSettings, Settings
from snapsplit.models.split import ExtractedReceipt, ReceiptItem
from snapsplit.orchestrator import (
    GENERIC_FAILURE_MESSAGE,
    InvalidStepError,
    ReceiptUploadFlow,
    SessionStep,
    SplitSession,
    create_app_components,
)
from snapsplit.services.extraction import GeminiReceiptExtractor
from snapsplit.services.image import ReceiptImageService


def png_bytes(width=400, height=600):
    buffer = BytesIO()
    Image.new("RGB", (width, height), "white").save(buffer, format="PNG")
    return buffer.getvalue()


def make_flow(response=None, side_effect=None, api_key="test-key"):
    extractor = GeminiReceiptExtractor(GeminiSettings(api_key=api_key))
    extractor._model = SimpleNamespace(
        generate_content_async=AsyncMock(return_value=response, side_effect=side_effect)
    )
    audit_logger = MagicMock(spec=AuditLogger)
    flow = ReceiptUploadFlow(
        image_service=ReceiptImageService(AppSettings()),
        extractor=extractor,
        audit_logger=audit_logger,
    )
    return flow, extractor, audit_logger


def receipt(*prices):
    return ExtractedReceipt(items=[
        ReceiptItem(id=f"item-{i}", description=f"Item {i}", price=Decimal(price))
        for i, price in enumerate(prices)
    ])


@pytest.fixture
def assigning_session():
    session = SplitSession()
    session.begin_processing()
    session.load_receipt(receipt("10.00", "4.00"))
    return session


class TestReceiptUploadFlow:
    """Tests for ReceiptUploadFlow.process_receipt."""

    def test_success(self):
        flow, extractor, audit_logger = make_flow(SimpleNamespace(
            text='[{"description": "Burger", "price": 10}, {"description": "Fries", "price": 4}]'
        ))

        extracted, can_proceed, message = asyncio.run(
            flow.process_receipt(png_bytes(), "receipt.png", "image/png")
        )

        assert can_proceed is True
        assert len(extracted.items) == 2
        assert message == "Found 2 items. Assign them to people below."
        audit_logger.log_image_uploaded.assert_called_once()
        audit_logger.log_image_compressed.assert_called_once()
        audit_logger.log_extraction_completed.assert_called_once()

    def test_sends_compressed_jpeg(self):
        flow, extractor, _ = make_flow(SimpleNamespace(text="[]"))

        asyncio.run(flow.process_receipt(png_bytes(2048, 1024), "receipt.png", "image/png"))

        contents = extractor._model.generate_content_async.await_args.args[0]
        assert contents[0]["mime_type"] == "image/jpeg"
        sent = Image.open(BytesIO(contents[0]["data"]))
        assert sent.format == "JPEG"
        assert sent.size == (1024, 512)

    def test_empty_receipt_cannot_proceed(self):
        flow, _, audit_logger = make_flow(SimpleNamespace(text="[]"))

        extracted, can_proceed, message = asyncio.run(
            flow.process_receipt(png_bytes(), "receipt.png", "image/png")
        )

        assert extracted.is_empty is True
        assert can_proceed is False
        assert message.startswith("We couldn't find any items")
        audit_logger.log_extraction_completed.assert_called_once()

    def test_extraction_failure_becomes_message(self):
        flow, _, audit_logger = make_flow(side_effect=RuntimeError("connection reset"))

        extracted, can_proceed, message = asyncio.run(
            flow.process_receipt(png_bytes(), "receipt.png", "image/png")
        )

        assert extracted is None
        assert can_proceed is False
        assert message == GENERIC_FAILURE_MESSAGE
        kwargs = audit_logger.log_extraction_failed.call_args.kwargs
        assert kwargs["error_type"] == "ExtractionFailedError"
        assert kwargs["retryable"] is True

    def test_auth_failure_message(self):
        flow, extractor, audit_logger = make_flow(
            side_effect=google_exceptions.PermissionDenied("403 forbidden")
        )

        _, can_proceed, message = asyncio.run(
            flow.process_receipt(png_bytes(), "receipt.png", "image/png")
        )

        assert can_proceed is False
        assert "API key invalid" in message
        assert extractor._model.generate_content_async.await_count == 1
        assert audit_logger.log_extraction_failed.call_args.kwargs["retryable"] is False

    def test_missing_key_message(self):
        flow, _, _ = make_flow(SimpleNamespace(text="[]"), api_key="")

        _, can_proceed, message = asyncio.run(
            flow.process_receipt(png_bytes(), "receipt.png", "image/png")
        )

        assert can_proceed is False
        assert "GEMINI_API_KEY" in message

    def test_unsupported_file_never_reaches_gemini(self):
        flow, extractor, audit_logger = make_flow(SimpleNamespace(text="[]"))

        extracted, can_proceed, message = asyncio.run(
            flow.process_receipt(b"GIF89a", "receipt.gif", "image/gif")
        )

        assert extracted is None
        assert can_proceed is False
        assert "Unsupported file type" in message
        extractor._model.generate_content_async.assert_not_called()
        audit_logger.log_image_rejected.assert_called_once()

    def test_undecodable_image(self):
        flow, extractor, _ = make_flow(SimpleNamespace(text="[]"))

        _, can_proceed, message = asyncio.run(
            flow.process_receipt(b"not really a png", "receipt.png", "image/png")
        )

        assert can_proceed is False
        assert message.startswith("Could not read image")
        extractor._model.generate_content_async.assert_not_called()

    def test_oversized_pixel_count_is_rejected(self, monkeypatch):
        # 200x200 is over twice the lowered limit, which Pillow treats as a bomb
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 10_000)
        flow, extractor, audit_logger = make_flow(SimpleNamespace(text="[]"))

        extracted, can_proceed, message = asyncio.run(
            flow.process_receipt(png_bytes(200, 200), "receipt.png", "image/png")
        )

        assert extracted is None
        assert can_proceed is False
        assert message.startswith("Could not read image")
        extractor._model.generate_content_async.assert_not_called()
        audit_logger.log_image_rejected.assert_called_once()

    def test_unexpected_image_error_is_contained(self):
        audit_logger = MagicMock(spec=AuditLogger)
        image_service = ReceiptImageService(AppSettings())
        image_service.compress = MagicMock(side_effect=ValueError("bad tile"))
        extractor = MagicMock()
        extractor.extract_items = AsyncMock()
        flow = ReceiptUploadFlow(
            image_service=image_service,
            extractor=extractor,
            audit_logger=audit_logger,
        )

        result = asyncio.run(
            flow.process_receipt(png_bytes(), "receipt.png", "image/png")
        )

        assert result == (None, False, GENERIC_FAILURE_MESSAGE)
        extractor.extract_items.assert_not_called()
        audit_logger.log_error.assert_called_once()
        assert audit_logger.log_error.call_args.kwargs["details"]["stage"] == "image"

    def test_unexpected_error_is_contained(self):
        audit_logger = MagicMock(spec=AuditLogger)
        extractor = MagicMock()
        extractor.extract_items = AsyncMock(side_effect=KeyError("boom"))
        flow = ReceiptUploadFlow(
            image_service=ReceiptImageService(AppSettings()),
            extractor=extractor,
            audit_logger=audit_logger,
        )

        extracted, can_proceed, message = asyncio.run(
            flow.process_receipt(png_bytes(), "receipt.png", "image/png")
        )

        assert (extracted, can_proceed, message) == (None, False, GENERIC_FAILURE_MESSAGE)
        audit_logger.log_external_service_error.assert_called_once()


class TestSplitSessionSteps:
    """Tests for session step transitions."""

    def test_initial_state(self):
        session = SplitSession()

        assert session.step == SessionStep.UPLOAD
        assert session.items == []
        assert len(session.roster) == 1
        assert session.active_participant.name == "Me"
        assert session.tax == Decimal("0")

    def test_custom_default_name(self):
        session = SplitSession(default_participant_name="Jordan")
        assert session.active_participant.name == "Jordan"

    def test_happy_path(self, assigning_session):
        session = assigning_session
        assert session.step == SessionStep.ASSIGNING

        session.finish()
        assert session.step == SessionStep.SUMMARY

        session.edit()
        assert session.step == SessionStep.ASSIGNING

    def test_fail_returns_to_upload_with_error(self):
        session = SplitSession()
        session.begin_processing()

        session.fail("Please try again.")

        assert session.step == SessionStep.UPLOAD
        assert session.error == "Please try again."
        session.dismiss_error()
        assert session.error is None

    def test_begin_processing_clears_error(self):
        session = SplitSession()
        session.begin_processing()
        session.fail("oops")

        session.begin_processing()

        assert session.error is None

    def test_empty_receipt_cannot_be_loaded(self):
        session = SplitSession()
        session.begin_processing()

        with pytest.raises(ValueError):
            session.load_receipt(ExtractedReceipt())
        assert session.step == SessionStep.PROCESSING

    def test_illegal_transitions(self, assigning_session):
        with pytest.raises(InvalidStepError):
            SplitSession().finish()
        with pytest.raises(InvalidStepError):
            SplitSession().load_receipt(receipt("1.00"))
        with pytest.raises(InvalidStepError):
            SplitSession().add_participant("Sam")
        with pytest.raises(InvalidStepError):
            assigning_session.begin_processing()
        with pytest.raises(InvalidStepError):
            assigning_session.edit()

    def test_summary_step_is_read_only(self, assigning_session):
        assigning_session.finish()

        with pytest.raises(InvalidStepError) as exc_info:
            assigning_session.toggle_item("item-0")
        assert exc_info.value.step == SessionStep.SUMMARY

    def test_reset_from_any_step(self, assigning_session):
        session = assigning_session
        session.add_participant("Sam")
        session.toggle_item("item-0")
        session.set_extras("1", "2")
        session.finish()

        session.reset()

        assert session.step == SessionStep.UPLOAD
        assert session.items == []
        assert len(session.allocation) == 0
        assert len(session.roster) == 1
        assert session.tax == Decimal("0")
        assert session.active_participant_id == "me"


class TestSplitSessionAssignment:
    """Tests for assignment operations and live totals."""

    def test_add_participant_becomes_active(self, assigning_session):
        sam = assigning_session.add_participant("Sam")

        assert assigning_session.active_participant_id == sam.id
        assert sam.color == "blue"

    def test_add_blank_participant_rejected(self, assigning_session):
        with pytest.raises(ValueError):
            assigning_session.add_participant("  ")

    def test_toggle_uses_active_participant(self, assigning_session):
        session = assigning_session

        assert session.toggle_item("item-0") is True
        assert session.allocation.assignees("item-0") == ("me",)
        assert session.toggle_item("item-0") is False
        assert "item-0" not in session.allocation

    def test_toggle_unknown_item(self, assigning_session):
        with pytest.raises(ValueError):
            assigning_session.toggle_item("item-99")

    def test_select_unknown_participant(self, assigning_session):
        with pytest.raises(ValueError):
            assigning_session.select_participant("ghost")

    def test_live_breakdown(self, assigning_session):
        session = assigning_session
        sam = session.add_participant("Sam")
        session.toggle_item("item-1")
        session.select_participant("me")
        session.toggle_item("item-0")
        session.toggle_item("item-1")
        session.set_extras("1.00", "2.00")

        by_id = {b.participant_id: b for b in session.breakdown()}

        assert by_id["me"].base_total == Decimal("12.00")
        assert by_id[sam.id].base_total == Decimal("2.00")

    def test_set_extras_is_lenient(self, assigning_session):
        assigning_session.set_extras("abc", "-5")

        assert assigning_session.tax == Decimal("0")
        assert assigning_session.tip == Decimal("0")

    def test_set_extras_reads_like_the_engine(self, assigning_session):
        assigning_session.set_extras("1,000", "$2")

        assert assigning_session.tax == Decimal("1000")
        assert assigning_session.tip == Decimal("2")
        assert not any(
            issue.field in ("tax", "tip") for issue in assigning_session.validate().issues
        )

    def test_finish_returns_summary(self, assigning_session):
        session = assigning_session
        session.toggle_item("item-0")

        summary = session.finish()

        assert summary.assigned_subtotal == Decimal("10.00")
        assert summary.has_unassigned is True

    def test_edit_keeps_state(self, assigning_session):
        session = assigning_session
        session.toggle_item("item-0")
        session.set_extras("1", "0")
        session.finish()

        session.edit()

        assert session.allocation.assignees("item-0") == ("me",)
        assert session.tax == Decimal("1")

    def test_validate_reports_unassigned(self, assigning_session):
        result = assigning_session.validate()

        assert result.is_valid is True
        assert len(result.warnings) == 1

    def test_actions_are_audited(self):
        audit_logger = MagicMock(spec=AuditLogger)
        session = SplitSession(audit_logger=audit_logger)
        session.begin_processing()
        session.load_receipt(receipt("5.00"))

        session.add_participant("Sam")
        session.toggle_item("item-0")
        session.set_extras("1", "1")
        session.finish()
        correlation_id = session.correlation_id
        session.reset()

        audit_logger.log_participant_added.assert_called_once()
        audit_logger.log_allocation_toggled.assert_called_once()
        audit_logger.log_extras_updated.assert_called_once_with(
            tax="1", tip="1", correlation_id=correlation_id,
        )
        audit_logger.log_split_calculated.assert_called_once()
        audit_logger.log_session_reset.assert_called_once()


class TestCreateAppComponents:
    """Tests for the component factory."""

    def test_wires_flow_and_logger(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "test-key")

        flow, audit_logger = create_app_components(Settings())

        assert isinstance(flow, ReceiptUploadFlow)
        assert isinstance(audit_logger, AuditLogger)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
