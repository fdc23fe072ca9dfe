"""
Audit Models for SnapSplit

Every significant step of a split session is recorded as an audit event.
This provides:
1. Traceability from a photo to the final breakdown
2. Debugging information when extraction goes wrong
3. A correlation id that ties one receipt's events together

Events are written to the structured log only. Nothing is persisted.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step from upload to summary has its own event type.
    """
    # Image handling
    IMAGE_UPLOADED = "image_uploaded"
    IMAGE_REJECTED = "image_rejected"
    IMAGE_COMPRESSED = "image_compressed"

    # Extraction
    EXTRACTION_COMPLETED = "extraction_completed"
    EXTRACTION_EMPTY = "extraction_empty"
    EXTRACTION_FAILED = "extraction_failed"

    # Assignment editing
    PARTICIPANT_ADDED = "participant_added"
    ALLOCATION_TOGGLED = "allocation_toggled"
    EXTRAS_UPDATED = "extras_updated"

    # Results
    SPLIT_CALCULATED = "split_calculated"
    SESSION_RESET = "session_reset"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'image', 'extraction', 'item')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events for one receipt)"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    # User action tracking
    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.image_uploaded(upload_id, filename, size, correlation_id)
        event = AuditEventBuilder.allocation_toggled(item_id, participant_id, True)
    """

    @staticmethod
    def image_uploaded(
        upload_id: UUID,
        filename: str,
        file_size: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMAGE_UPLOADED,
            entity_type="image",
            entity_id=str(upload_id),
            correlation_id=correlation_id,
            description=f"Receipt image uploaded: {filename}",
            details={
                "filename": filename,
                "file_size_bytes": file_size,
            },
            is_user_action=True,
        )

    @staticmethod
    def image_rejected(
        filename: str,
        reason: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMAGE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="image",
            correlation_id=correlation_id,
            description=f"Receipt image rejected: {filename}",
            details={
                "filename": filename,
                "reason": reason,
            },
        )

    @staticmethod
    def image_compressed(
        upload_id: UUID,
        original_size: int,
        compressed_size: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.IMAGE_COMPRESSED,
            entity_type="image",
            entity_id=str(upload_id),
            correlation_id=correlation_id,
            description=f"Image compressed from {original_size} to {compressed_size} bytes",
            details={
                "original_size_bytes": original_size,
                "compressed_size_bytes": compressed_size,
            },
        )

    @staticmethod
    def extraction_completed(
        extraction_id: UUID,
        item_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_COMPLETED,
            entity_type="extraction",
            entity_id=str(extraction_id),
            correlation_id=correlation_id,
            description=f"Extraction completed with {item_count} items",
            details={
                "item_count": item_count,
            },
        )

    @staticmethod
    def extraction_empty(
        extraction_id: UUID,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_EMPTY,
            severity=AuditSeverity.WARNING,
            entity_type="extraction",
            entity_id=str(extraction_id),
            correlation_id=correlation_id,
            description="No items found on the receipt",
        )

    @staticmethod
    def extraction_failed(
        error_type: str,
        error_message: str,
        retryable: bool,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="extraction",
            correlation_id=correlation_id,
            description=f"Extraction failed: {error_type}",
            error_message=error_message,
            details={
                "error_type": error_type,
                "retryable": retryable,
            },
        )

    @staticmethod
    def participant_added(
        participant_id: str,
        name: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PARTICIPANT_ADDED,
            entity_type="participant",
            entity_id=participant_id,
            correlation_id=correlation_id,
            description=f"Participant added: {name}",
            is_user_action=True,
        )

    @staticmethod
    def allocation_toggled(
        item_id: str,
        participant_id: str,
        assigned: bool,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ALLOCATION_TOGGLED,
            severity=AuditSeverity.DEBUG,
            entity_type="item",
            entity_id=item_id,
            correlation_id=correlation_id,
            description=(
                f"{participant_id} {'assigned to' if assigned else 'removed from'} {item_id}"
            ),
            details={
                "participant_id": participant_id,
                "assigned": assigned,
            },
            is_user_action=True,
        )

    @staticmethod
    def extras_updated(
        tax: str,
        tip: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRAS_UPDATED,
            entity_type="bill",
            correlation_id=correlation_id,
            description="Tax and tip updated",
            details={
                "tax": tax,
                "tip": tip,
            },
            is_user_action=True,
        )

    @staticmethod
    def split_calculated(
        participant_count: int,
        assigned_subtotal: str,
        unassigned_count: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SPLIT_CALCULATED,
            entity_type="bill",
            correlation_id=correlation_id,
            description=f"Split calculated for {participant_count} participants",
            details={
                "participant_count": participant_count,
                "assigned_subtotal": assigned_subtotal,
                "unassigned_item_count": unassigned_count,
            },
        )

    @staticmethod
    def session_reset(
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_RESET,
            entity_type="session",
            correlation_id=correlation_id,
            description="Session reset by user",
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
