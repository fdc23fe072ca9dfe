"""
Core Data Models for SnapSplit

These models define the schemas for all data flowing through the split:
receipt items, participants, the allocation map, and the per-participant
breakdown the allocation engine produces.

DESIGN DECISION: Money is always Decimal.
Binary floats drift when a price is divided among several people and the
pieces are added back up; Decimal keeps the totals reconcilable.

DESIGN DECISION: The allocation map and the roster are value types that
own their invariants. Whoever mutates them goes through toggle()/add(),
so there is no cleanup scattered across call sites.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


ZERO = Decimal("0")
UNKNOWN_ITEM = "Unknown Item"
DEFAULT_PARTICIPANT_ID = "me"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# AMOUNT NORMALIZATION
# =============================================================================

class NonFiniteAmountError(ValueError):
    """Raised when a NaN or infinite amount reaches the split computation."""
    pass


CURRENCY_SYMBOLS = "$€£¥₹"


def parse_decimal(value: Any) -> Optional[Decimal]:
    """
    Read an amount without judging it.

    Thousands separators and a leading or trailing currency symbol are
    ignored. Returns None for booleans, blanks and text that is not a
    number; NaN, infinity and negatives come back as parsed.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))

    text = str(value).strip().replace(",", "")
    sign = ""
    if text.startswith("-"):
        sign, text = "-", text[1:]
    text = text.strip().strip(CURRENCY_SYMBOLS).strip()
    if not text:
        return None
    try:
        return Decimal(sign + text)
    except InvalidOperation:
        return None


def to_amount(value: Any) -> Decimal:
    """
    Normalize a user- or model-supplied amount to a non-negative Decimal.

    - None, booleans and unparseable text become 0
    - negative amounts are clamped to 0
    - NaN and infinity raise NonFiniteAmountError
    """
    amount = parse_decimal(value)
    if amount is None:
        return ZERO

    if not amount.is_finite():
        raise NonFiniteAmountError(f"Amount must be a finite number, got {value!r}")

    return amount if amount > 0 else ZERO


# =============================================================================
# PALETTE - visual tags for participants (presentation only)
# =============================================================================

PALETTE: dict[str, str] = {
    "red": "#EF4444",
    "blue": "#3B82F6",
    "green": "#10B981",
    "yellow": "#F59E0B",
    "purple": "#8B5CF6",
    "pink": "#EC4899",
    "indigo": "#6366F1",
    "orange": "#F97316",
}
FALLBACK_HEX = "#9CA3AF"

_PALETTE_ORDER = list(PALETTE)


def palette_hex(color: str) -> str:
    """Hex value for a palette tag; unknown tags render grey."""
    return PALETTE.get(color, FALLBACK_HEX)


# =============================================================================
# RECEIPT ITEMS
# =============================================================================

class ReceiptItem(BaseModel):
    """
    One priced line from a receipt.

    Created by the extraction service and immutable afterwards.
    A missing, unreadable or negative price becomes 0 rather than failing the batch.
    """
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(
        ...,
        min_length=1,
        description="Unique item key within a session"
    )
    description: str = Field(
        default=UNKNOWN_ITEM,
        max_length=200,
        description="Item name as printed on the receipt"
    )
    price: Decimal = Field(
        default=ZERO,
        ge=0,
        description="Line price"
    )

    @field_validator("description", mode="before")
    @classmethod
    def default_description(cls, v: Any) -> str:
        """Blank or missing descriptions get a placeholder."""
        if v is None or not str(v).strip():
            return UNKNOWN_ITEM
        return str(v).strip()[:200]

    @field_validator("price", mode="before")
    @classmethod
    def coerce_price(cls, v: Any) -> Decimal:
        """Missing, non-numeric and negative prices become 0. Non-finite values still fail."""
        return to_amount(v)


class ExtractedReceipt(BaseModel):
    """
    Items the vision model found on one receipt image.

    An empty item list is a valid result ("no items found"), not an error.
    """

    extraction_id: UUID = Field(
        default_factory=uuid4,
        description="Unique ID for this extraction attempt"
    )
    extracted_at: datetime = Field(
        default_factory=_utcnow,
        description="When extraction was performed"
    )
    source_model: Optional[str] = Field(
        default=None,
        description="Model that produced the extraction"
    )
    items: list[ReceiptItem] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def subtotal(self) -> Decimal:
        return sum((item.price for item in self.items), ZERO)


# =============================================================================
# PARTICIPANTS
# =============================================================================

class Participant(BaseModel):
    """A person among whom costs are split."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=50)
    color: str = Field(
        default=_PALETTE_ORDER[0],
        description="Palette tag used by the presentation layer"
    )


class ParticipantRoster(BaseModel):
    """
    Ordered, append-only list of participants.

    A roster always starts with one default participant. Participants are
    never removed, so allocation entries can only go stale if a caller
    builds a map by hand.
    """

    participants: list[Participant] = Field(
        default_factory=lambda: [
            Participant(id=DEFAULT_PARTICIPANT_ID, name="Me", color=_PALETTE_ORDER[0])
        ]
    )

    @model_validator(mode="after")
    def validate_unique_ids(self) -> "ParticipantRoster":
        ids = [p.id for p in self.participants]
        if len(ids) != len(set(ids)):
            raise ValueError("Participant ids must be unique")
        return self

    @classmethod
    def starting_with(cls, name: str) -> "ParticipantRoster":
        """Roster whose default participant has a custom display name."""
        return cls(participants=[
            Participant(id=DEFAULT_PARTICIPANT_ID, name=name, color=_PALETTE_ORDER[0])
        ])

    def add(self, name: str) -> Participant:
        """
        Append a participant with the next palette colour.

        Raises:
            ValueError: If the name is blank
        """
        name = (name or "").strip()
        if not name:
            raise ValueError("Participant name cannot be empty")

        participant = Participant(
            id=f"participant-{uuid4().hex[:12]}",
            name=name,
            color=_PALETTE_ORDER[len(self.participants) % len(_PALETTE_ORDER)],
        )
        self.participants.append(participant)
        return participant

    def get(self, participant_id: str) -> Optional[Participant]:
        return next((p for p in self.participants if p.id == participant_id), None)

    @property
    def ids(self) -> list[str]:
        return [p.id for p in self.participants]

    def __len__(self) -> int:
        return len(self.participants)


# =============================================================================
# ALLOCATION MAP
# =============================================================================

class AllocationMap(BaseModel):
    """
    Which participants share each item.

    INVARIANT: a key present in the map always maps to a non-empty tuple of
    unique participant ids. Mutations remove an item's entry the moment its
    last assignee is taken off. Assignee order is the order of assignment.
    """

    assignments: dict[str, tuple[str, ...]] = Field(default_factory=dict)

    @field_validator("assignments")
    @classmethod
    def drop_empty_entries(cls, v: dict[str, tuple[str, ...]]) -> dict[str, tuple[str, ...]]:
        normalized = {}
        for item_id, assignees in v.items():
            unique = tuple(dict.fromkeys(assignees))
            if unique:
                normalized[item_id] = unique
        return normalized

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Iterable[str]]) -> "AllocationMap":
        return cls(assignments={k: tuple(v) for k, v in mapping.items()})

    def assignees(self, item_id: str) -> tuple[str, ...]:
        """Assignees of an item; empty for unassigned items."""
        return self.assignments.get(item_id, ())

    def is_assigned(self, item_id: str, participant_id: Optional[str] = None) -> bool:
        if participant_id is None:
            return item_id in self.assignments
        return participant_id in self.assignments.get(item_id, ())

    def assign(self, item_id: str, participant_id: str) -> None:
        current = self.assignments.get(item_id, ())
        if participant_id not in current:
            self.assignments[item_id] = current + (participant_id,)

    def unassign(self, item_id: str, participant_id: str) -> None:
        remaining = tuple(
            pid for pid in self.assignments.get(item_id, ()) if pid != participant_id
        )
        if remaining:
            self.assignments[item_id] = remaining
        else:
            self.assignments.pop(item_id, None)

    def toggle(self, item_id: str, participant_id: str) -> bool:
        """
        Flip a participant's membership in an item's assignee set.

        Returns True if the participant is assigned after the call.
        """
        if self.is_assigned(item_id, participant_id):
            self.unassign(item_id, participant_id)
            return False
        self.assign(item_id, participant_id)
        return True

    def clear_item(self, item_id: str) -> None:
        self.assignments.pop(item_id, None)

    @property
    def assigned_item_ids(self) -> list[str]:
        return list(self.assignments)

    def as_dict(self) -> dict[str, list[str]]:
        return {item_id: list(ids) for item_id, ids in self.assignments.items()}

    def __contains__(self, item_id: object) -> bool:
        return item_id in self.assignments

    def __len__(self) -> int:
        return len(self.assignments)


class ExtraCosts(BaseModel):
    """Flat tax and tip for the whole bill. Negative entries are clamped to 0."""

    tax: Decimal = Field(default=ZERO, ge=0)
    tip: Decimal = Field(default=ZERO, ge=0)

    @field_validator("tax", "tip", mode="before")
    @classmethod
    def clamp_amount(cls, v: Any) -> Decimal:
        return to_amount(v)

    @property
    def total(self) -> Decimal:
        return self.tax + self.tip


# =============================================================================
# ENGINE OUTPUT
# =============================================================================

class LineEntry(BaseModel):
    """One contribution to a participant's subtotal."""

    label: str
    cost: Decimal


class ParticipantBreakdown(BaseModel):
    """
    What one participant owes.

    final_total = base_total + extras_share. Amounts are unrounded;
    round only for display.
    """

    participant: Participant
    line_items: list[LineEntry] = Field(default_factory=list)
    base_total: Decimal = ZERO
    extras_share: Decimal = ZERO
    final_total: Decimal = ZERO

    @property
    def participant_id(self) -> str:
        return self.participant.id

    @property
    def name(self) -> str:
        return self.participant.name


class BillSummary(BaseModel):
    """
    Whole-bill view: the per-participant breakdown plus the receipt totals
    needed to explain it.

    grand_total covers the full receipt, so it exceeds the sum of the
    breakdown whenever some items are unassigned.
    """

    receipt_subtotal: Decimal
    assigned_subtotal: Decimal
    unassigned_subtotal: Decimal
    tax: Decimal
    tip: Decimal
    total_extras: Decimal
    grand_total: Decimal
    breakdowns: list[ParticipantBreakdown] = Field(default_factory=list)
    unassigned_items: list[ReceiptItem] = Field(default_factory=list)

    @property
    def has_unassigned(self) -> bool:
        return bool(self.unassigned_items)

    @property
    def allocated_total(self) -> Decimal:
        return sum((b.final_total for b in self.breakdowns), ZERO)


# =============================================================================
# IMAGE UPLOAD
# =============================================================================

class ImageUpload(BaseModel):
    """Represents an uploaded receipt photo before processing."""

    upload_id: UUID = Field(
        default_factory=uuid4,
        description="Unique upload identifier"
    )
    uploaded_at: datetime = Field(
        default_factory=_utcnow
    )
    original_filename: str
    file_size_bytes: int = Field(ge=0)
    mime_type: str

    @field_validator("mime_type")
    @classmethod
    def validate_mime_type(cls, v: str) -> str:
        """Only allow image types."""
        allowed = {"image/jpeg", "image/jpg", "image/png", "image/webp"}
        if v.lower() not in allowed:
            raise ValueError(f"Unsupported image type: {v}. Allowed: {sorted(allowed)}")
        return v.lower()


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found in the split inputs."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'non_finite', 'negative', 'unassigned')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of checking the split inputs before calculating.

    Errors block the calculation; warnings are shown next to the summary.
    """

    validated_at: datetime = Field(
        default_factory=_utcnow
    )
    is_valid: bool = Field(
        ...,
        description="Overall validation result"
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
