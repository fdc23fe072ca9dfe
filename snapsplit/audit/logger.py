"""
Audit Logger

DESIGN DECISION: Every significant action in a split session is logged.
This provides:
1. Traceability from photo to breakdown
2. Debugging capability when extraction misbehaves
3. Correlation IDs to trace all events for one receipt

The audit logger:
- Writes structured JSON lines via structlog
- Never raises into the caller (a logging failure must not break a split)
- Keeps nothing in memory beyond the current call
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from snapsplit.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs every event to the structured local log.
    """

    def __init__(self, logger_name: str = "snapsplit.audit"):
        self._logger = structlog.get_logger(logger_name)

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if the event was written.
        """
        log_dict = event.to_log_dict()

        try:
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception:
            return False

        return True

    def log_image_uploaded(
        self,
        upload_id: UUID,
        filename: str,
        file_size: int,
        correlation_id: UUID,
    ) -> None:
        """Log image upload event."""
        self.log(AuditEventBuilder.image_uploaded(
            upload_id=upload_id,
            filename=filename,
            file_size=file_size,
            correlation_id=correlation_id,
        ))

    def log_image_rejected(
        self,
        filename: str,
        reason: str,
        correlation_id: UUID,
    ) -> None:
        """Log an upload that failed validation or could not be decoded."""
        self.log(AuditEventBuilder.image_rejected(
            filename=filename,
            reason=reason,
            correlation_id=correlation_id,
        ))

    def log_image_compressed(
        self,
        upload_id: UUID,
        original_size: int,
        compressed_size: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.image_compressed(
            upload_id=upload_id,
            original_size=original_size,
            compressed_size=compressed_size,
            correlation_id=correlation_id,
        ))

    def log_extraction_completed(
        self,
        extraction_id: UUID,
        item_count: int,
        correlation_id: UUID,
    ) -> None:
        """Log extraction result (empty results get their own event)."""
        if item_count == 0:
            event = AuditEventBuilder.extraction_empty(
                extraction_id=extraction_id,
                correlation_id=correlation_id,
            )
        else:
            event = AuditEventBuilder.extraction_completed(
                extraction_id=extraction_id,
                item_count=item_count,
                correlation_id=correlation_id,
            )
        self.log(event)

    def log_extraction_failed(
        self,
        error_type: str,
        error_message: str,
        retryable: bool,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.extraction_failed(
            error_type=error_type,
            error_message=error_message,
            retryable=retryable,
            correlation_id=correlation_id,
        ))

    def log_participant_added(
        self,
        participant_id: str,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.participant_added(
            participant_id=participant_id,
            name=name,
            correlation_id=correlation_id,
        ))

    def log_allocation_toggled(
        self,
        item_id: str,
        participant_id: str,
        assigned: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.allocation_toggled(
            item_id=item_id,
            participant_id=participant_id,
            assigned=assigned,
            correlation_id=correlation_id,
        ))

    def log_extras_updated(
        self,
        tax: str,
        tip: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.extras_updated(
            tax=tax,
            tip=tip,
            correlation_id=correlation_id,
        ))

    def log_split_calculated(
        self,
        participant_count: int,
        assigned_subtotal: str,
        unassigned_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.split_calculated(
            participant_count=participant_count,
            assigned_subtotal=assigned_subtotal,
            unassigned_count=unassigned_count,
            correlation_id=correlation_id,
        ))

    def log_session_reset(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.session_reset(correlation_id=correlation_id))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log external service error."""
        self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a receipt upload).
    Pass it through all subsequent operations.
    """
    return uuid4()
