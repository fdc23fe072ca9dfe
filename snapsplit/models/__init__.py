"""
Data Models Package

This package contains all Pydantic models used in SnapSplit.
All data flowing through the system must conform to these schemas.
"""

from snapsplit.models.split import (
    DEFAULT_PARTICIPANT_ID,
    PALETTE,
    UNKNOWN_ITEM,
    ZERO,
    AllocationMap,
    BillSummary,
    ExtraCosts,
    ExtractedReceipt,
    ImageUpload,
    LineEntry,
    NonFiniteAmountError,
    Participant,
    ParticipantBreakdown,
    ParticipantRoster,
    ReceiptItem,
    ValidationIssue,
    ValidationResult,
    palette_hex,
    parse_decimal,
    to_amount,
)
from snapsplit.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Split models
    "DEFAULT_PARTICIPANT_ID",
    "PALETTE",
    "UNKNOWN_ITEM",
    "ZERO",
    "AllocationMap",
    "BillSummary",
    "ExtraCosts",
    "ExtractedReceipt",
    "ImageUpload",
    "LineEntry",
    "NonFiniteAmountError",
    "Participant",
    "ParticipantBreakdown",
    "ParticipantRoster",
    "ReceiptItem",
    "ValidationIssue",
    "ValidationResult",
    "palette_hex",
    "parse_decimal",
    "to_amount",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
