"""
Tests for the audit logger.
"""

from unittest.mock import MagicMock
from uuid import UUID, uuid4

import pytest

from snapsplit.audit import AuditLogger, create_correlation_id
from snapsplit.models.audit import AuditEventBuilder, AuditEventType


@pytest.fixture
def audit_logger():
    audit_logger = AuditLogger()
    audit_logger._logger = MagicMock()
    return audit_logger


class TestAuditLogger:
    """Tests for severity routing and event selection."""

    def test_info_event(self, audit_logger):
        event = AuditEventBuilder.session_reset()

        assert audit_logger.log(event) is True
        audit_logger._logger.info.assert_called_once()
        assert audit_logger._logger.info.call_args.kwargs["event_type"] == "session_reset"

    def test_error_event(self, audit_logger):
        audit_logger.log_error("ValueError", "bad input")

        audit_logger._logger.error.assert_called_once()

    def test_debug_event(self, audit_logger):
        audit_logger.log_allocation_toggled("item-1", "me", True)

        audit_logger._logger.debug.assert_called_once()

    def test_empty_extraction_gets_its_own_event(self, audit_logger):
        audit_logger.log_extraction_completed(uuid4(), item_count=0, correlation_id=uuid4())

        kwargs = audit_logger._logger.warning.call_args.kwargs
        assert kwargs["event_type"] == AuditEventType.EXTRACTION_EMPTY.value

    def test_extraction_with_items(self, audit_logger):
        audit_logger.log_extraction_completed(uuid4(), item_count=3, correlation_id=uuid4())

        kwargs = audit_logger._logger.info.call_args.kwargs
        assert kwargs["event_type"] == AuditEventType.EXTRACTION_COMPLETED.value

    def test_logging_failure_is_reported_not_raised(self, audit_logger):
        audit_logger._logger.info.side_effect = RuntimeError("handler closed")

        assert audit_logger.log(AuditEventBuilder.session_reset()) is False

    def test_real_logger_writes(self):
        assert AuditLogger().log(AuditEventBuilder.session_reset()) is True


class TestCorrelationId:
    """Tests for correlation ids."""

    def test_unique(self):
        first = create_correlation_id()
        assert isinstance(first, UUID)
        assert first != create_correlation_id()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
