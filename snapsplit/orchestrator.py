"""
Main Orchestrator for SnapSplit

This module ties together all the components and defines the
end-to-end flow of a split:
1. Receipt Upload (photo → validate → compress → extract items)
2. Assignment (roster + allocation map edits, extras entry)
3. Summary (allocation engine → breakdown → share text)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Extraction failures never reach the UI as exceptions, only as messages
- The allocation engine is re-run from the current state on every read,
  so the summary can never go stale after an edit
- Every user action is audited

The session is a small state machine. Each operation checks the step it
is allowed in and raises InvalidStepError otherwise.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID

from snapsplit.audit import AuditLogger, create_correlation_id
from snapsplit.config import Settings, get_settings
from snapsplit.engine import compute_breakdown, summarize_bill
from snapsplit.models.split import (
    ZERO,
    AllocationMap,
    BillSummary,
    ExtractedReceipt,
    Participant,
    ParticipantBreakdown,
    ParticipantRoster,
    ReceiptItem,
    ValidationResult,
)
from snapsplit.services.extraction import ExtractionError, GeminiReceiptExtractor
from snapsplit.services.image import ImageProcessingError, ReceiptImageService
from snapsplit.validation import SplitInputValidator, parse_amount


GENERIC_FAILURE_MESSAGE = "Something went wrong analyzing the receipt. Please try again."


class SessionStep(str, Enum):
    """Where the user is in the split."""
    UPLOAD = "upload"
    PROCESSING = "processing"
    ASSIGNING = "assigning"
    SUMMARY = "summary"


class InvalidStepError(Exception):
    """An operation was attempted in a step that does not allow it."""

    def __init__(self, operation: str, step: SessionStep):
        super().__init__(f"Cannot {operation} while in step '{step.value}'")
        self.operation = operation
        self.step = step


class ReceiptUploadFlow:
    """
    Orchestrates the receipt upload flow.

    Flow:
    1. Validate → Check file type and size
    2. Compress → Downscale and re-encode as JPEG
    3. Extract → Send to Gemini, normalise the items
    4. Decide → Empty receipts send the user back to upload

    Errors from steps 1-3 are audited and turned into a message the user
    can act on. The caller only ever gets (receipt, can_proceed, message).
    """

    def __init__(
        self,
        image_service: Optional[ReceiptImageService] = None,
        extractor: Optional[GeminiReceiptExtractor] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._image_service = image_service or ReceiptImageService()
        self._extractor = extractor or GeminiReceiptExtractor()
        self._audit_logger = audit_logger

    async def process_receipt(
        self,
        image_bytes: bytes,
        filename: str,
        mime_type: str,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Optional[ExtractedReceipt], bool, str]:
        """
        Turn an uploaded photo into receipt items.

        Returns:
            (extracted, can_proceed, message)

        If can_proceed is False the user should upload again; extracted is
        None when the photo never made it to a usable result.
        """
        correlation_id = correlation_id or create_correlation_id()

        # Validate and shrink the photo
        try:
            upload = self._image_service.validate_upload(
                filename=filename,
                file_size=len(image_bytes),
                mime_type=mime_type,
            )
            if self._audit_logger:
                self._audit_logger.log_image_uploaded(
                    upload_id=upload.upload_id,
                    filename=filename,
                    file_size=upload.file_size_bytes,
                    correlation_id=correlation_id,
                )

            prepared = self._image_service.compress(image_bytes)
        except ImageProcessingError as e:
            if self._audit_logger:
                self._audit_logger.log_image_rejected(
                    filename=filename,
                    reason=str(e),
                    correlation_id=correlation_id,
                )
            return None, False, str(e)
        except Exception as e:
            if self._audit_logger:
                self._audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"stage": "image", "filename": filename},
                    correlation_id=correlation_id,
                )
            return None, False, GENERIC_FAILURE_MESSAGE

        if self._audit_logger:
            self._audit_logger.log_image_compressed(
                upload_id=upload.upload_id,
                original_size=len(image_bytes),
                compressed_size=len(prepared),
                correlation_id=correlation_id,
            )

        # Extract items
        try:
            extracted = await self._extractor.extract_items(prepared, "image/jpeg")
        except ExtractionError as e:
            if self._audit_logger:
                self._audit_logger.log_extraction_failed(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    retryable=e.retryable,
                    correlation_id=correlation_id,
                )
            return None, False, e.user_message
        except Exception as e:
            if self._audit_logger:
                self._audit_logger.log_external_service_error(
                    service="gemini",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            return None, False, GENERIC_FAILURE_MESSAGE

        if self._audit_logger:
            self._audit_logger.log_extraction_completed(
                extraction_id=extracted.extraction_id,
                item_count=len(extracted.items),
                correlation_id=correlation_id,
            )

        can_proceed, message = self._extractor.should_proceed_with_extraction(extracted)
        return extracted, can_proceed, message


class SplitSession:
    """
    State of one bill split, from upload to summary.

    upload ──begin_processing──▶ processing ──load_receipt──▶ assigning
       ▲                            │                          │   ▲
       └────────────fail────────────┘                   finish │   │ edit
       ▲                                                       ▼   │
       └──────────────────────────reset─────────────────────── summary

    reset() is allowed from any step.
    """

    def __init__(
        self,
        default_participant_name: str = "Me",
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[SplitInputValidator] = None,
    ):
        self._default_participant_name = default_participant_name
        self._audit_logger = audit_logger
        self._validator = validator or SplitInputValidator()
        self._clear()

    def _clear(self) -> None:
        self.step = SessionStep.UPLOAD
        self.items: list[ReceiptItem] = []
        self.roster = ParticipantRoster.starting_with(self._default_participant_name)
        self.allocation = AllocationMap()
        self.active_participant_id: Optional[str] = self.roster.participants[0].id
        self.tax: Decimal = ZERO
        self.tip: Decimal = ZERO
        self.error: Optional[str] = None
        self.correlation_id: UUID = create_correlation_id()

    def _require(self, operation: str, *steps: SessionStep) -> None:
        if self.step not in steps:
            raise InvalidStepError(operation, self.step)

    @property
    def validator(self) -> SplitInputValidator:
        return self._validator

    @property
    def active_participant(self) -> Optional[Participant]:
        if self.active_participant_id is None:
            return None
        return self.roster.get(self.active_participant_id)

    # ----- upload / processing ---------------------------------------------

    def begin_processing(self) -> None:
        self._require("start processing", SessionStep.UPLOAD)
        self.error = None
        self.step = SessionStep.PROCESSING

    def load_receipt(self, receipt: ExtractedReceipt) -> None:
        """Accept extracted items and move on to assignment."""
        self._require("load a receipt", SessionStep.PROCESSING)
        if receipt.is_empty:
            raise ValueError("Cannot load a receipt with no items")

        self.items = list(receipt.items)
        self.allocation = AllocationMap()
        self.error = None
        self.step = SessionStep.ASSIGNING

    def fail(self, message: str) -> None:
        """Return to upload with a dismissible error."""
        self._require("report a failure", SessionStep.PROCESSING)
        self.error = message
        self.step = SessionStep.UPLOAD

    def dismiss_error(self) -> None:
        self.error = None

    # ----- assignment -------------------------------------------------------

    def add_participant(self, name: str) -> Participant:
        """Add someone to the roster and make them the active participant."""
        self._require("add a participant", SessionStep.ASSIGNING)
        participant = self.roster.add(name)
        self.active_participant_id = participant.id

        if self._audit_logger:
            self._audit_logger.log_participant_added(
                participant_id=participant.id,
                name=participant.name,
                correlation_id=self.correlation_id,
            )
        return participant

    def select_participant(self, participant_id: str) -> None:
        self._require("select a participant", SessionStep.ASSIGNING)
        if self.roster.get(participant_id) is None:
            raise ValueError(f"Unknown participant: {participant_id}")
        self.active_participant_id = participant_id

    def toggle_item(self, item_id: str) -> bool:
        """
        Add or remove the active participant on an item.

        Returns:
            True if the active participant now shares the item
        """
        self._require("assign items", SessionStep.ASSIGNING)
        if self.active_participant_id is None:
            raise ValueError("No participant selected")
        if not any(item.id == item_id for item in self.items):
            raise ValueError(f"Unknown item: {item_id}")

        assigned = self.allocation.toggle(item_id, self.active_participant_id)

        if self._audit_logger:
            self._audit_logger.log_allocation_toggled(
                item_id=item_id,
                participant_id=self.active_participant_id,
                assigned=assigned,
                correlation_id=self.correlation_id,
            )
        return assigned

    def set_extras(self, tax: Any, tip: Any) -> None:
        """Store tax and tip from form input. Blank or invalid entries are 0."""
        self._require("edit tax and tip", SessionStep.ASSIGNING)
        self.tax = parse_amount(tax)
        self.tip = parse_amount(tip)

        if self._audit_logger:
            self._audit_logger.log_extras_updated(
                tax=str(self.tax),
                tip=str(self.tip),
                correlation_id=self.correlation_id,
            )

    # ----- summary ----------------------------------------------------------

    def finish(self) -> BillSummary:
        """Move to the summary step and return the computed bill."""
        self._require("finish assigning", SessionStep.ASSIGNING)
        self.step = SessionStep.SUMMARY
        result = self.summary()

        if self._audit_logger:
            self._audit_logger.log_split_calculated(
                participant_count=len(result.breakdowns),
                assigned_subtotal=str(result.assigned_subtotal),
                unassigned_count=len(result.unassigned_items),
                correlation_id=self.correlation_id,
            )
        return result

    def edit(self) -> None:
        """Go back from the summary keeping roster, allocation and extras."""
        self._require("edit the split", SessionStep.SUMMARY)
        self.step = SessionStep.ASSIGNING

    def reset(self) -> None:
        """Start over with a fresh receipt and roster."""
        if self._audit_logger:
            self._audit_logger.log_session_reset(correlation_id=self.correlation_id)
        self._clear()

    def breakdown(self) -> list[ParticipantBreakdown]:
        return compute_breakdown(self.items, self.roster, self.allocation, self.tax, self.tip)

    def summary(self) -> BillSummary:
        return summarize_bill(self.items, self.roster, self.allocation, self.tax, self.tip)

    def validate(self) -> ValidationResult:
        return self._validator.validate(
            self.items,
            self.roster,
            self.allocation,
            self.tax,
            self.tip,
        )


def create_app_components(
    settings: Optional[Settings] = None,
) -> tuple[ReceiptUploadFlow, AuditLogger]:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to wire in. Defaults to get_settings().

    Returns:
        (receipt_upload_flow, audit_logger)
    """
    settings = settings or get_settings()
    audit_logger = AuditLogger()

    receipt_upload_flow = ReceiptUploadFlow(
        image_service=ReceiptImageService(settings.app),
        extractor=GeminiReceiptExtractor(settings.gemini),
        audit_logger=audit_logger,
    )

    return receipt_upload_flow, audit_logger
