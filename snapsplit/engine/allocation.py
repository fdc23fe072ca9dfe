"""
Allocation Engine

Turns (items, participants, allocation map, tax, tip) into what each
participant owes.

The engine is pure: it reads its arguments, never mutates them, performs
no I/O and keeps no state between calls. Callers re-run it after every
edit; the inputs are a single receipt, so there is nothing to cache.

POLICY: items nobody is assigned to are left out of the split entirely.
Their cost is not spread across everyone, and tax/tip are shared in
proportion to assigned spend only.
"""

from decimal import Decimal
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from snapsplit.models.split import (
    ZERO,
    AllocationMap,
    BillSummary,
    LineEntry,
    Participant,
    ParticipantBreakdown,
    ParticipantRoster,
    ReceiptItem,
    to_amount,
)


Allocation = Union[AllocationMap, Mapping[str, Iterable[str]]]
Participants = Union[ParticipantRoster, Sequence[Participant]]


def as_participant_list(participants: Participants) -> list[Participant]:
    if isinstance(participants, ParticipantRoster):
        return list(participants.participants)
    return list(participants)


def assignees_for(allocation: Optional[Allocation], item_id: str) -> Iterable[str]:
    if allocation is None:
        return ()
    if isinstance(allocation, AllocationMap):
        return allocation.assignees(item_id)
    return allocation.get(item_id) or ()


def _known_assignees(
    allocation: Optional[Allocation],
    item_id: str,
    known_ids: set[str],
) -> list[str]:
    """Assignees of an item, de-duplicated, minus ids not in the roster."""
    return [
        pid for pid in dict.fromkeys(assignees_for(allocation, item_id))
        if pid in known_ids
    ]


def _split_label(description: str, share_count: int) -> str:
    if share_count > 1:
        return f"{description} (1/{share_count})"
    return description


def receipt_subtotal(items: Sequence[ReceiptItem]) -> Decimal:
    """Sum of every item price, assigned or not."""
    return sum((item.price for item in items), ZERO)


def unassigned_items(
    items: Sequence[ReceiptItem],
    participants: Participants,
    allocation: Optional[Allocation],
) -> list[ReceiptItem]:
    """Items with no known assignee, in receipt order."""
    known_ids = {p.id for p in as_participant_list(participants)}
    return [
        item for item in items
        if not _known_assignees(allocation, item.id, known_ids)
    ]


def assigned_subtotal(
    items: Sequence[ReceiptItem],
    participants: Participants,
    allocation: Optional[Allocation],
) -> Decimal:
    """Sum of the prices of items that have at least one known assignee."""
    known_ids = {p.id for p in as_participant_list(participants)}
    return sum(
        (
            item.price for item in items
            if _known_assignees(allocation, item.id, known_ids)
        ),
        ZERO,
    )


def compute_breakdown(
    items: Sequence[ReceiptItem],
    participants: Participants,
    allocation: Optional[Allocation],
    tax: Any = ZERO,
    tip: Any = ZERO,
) -> list[ParticipantBreakdown]:
    """
    Compute each participant's share of the bill.

    Args:
        items: Receipt items in display order
        participants: Roster or sequence of participants (unique ids)
        allocation: Item id -> assignee ids. Missing entries mean unassigned;
            ids not in ``participants`` are ignored.
        tax: Flat tax amount. None/invalid -> 0, negative -> 0.
        tip: Flat tip amount, normalized the same way.

    Returns:
        One ParticipantBreakdown per participant with a non-zero total,
        sorted by final_total descending. Ties keep roster order.

    Raises:
        NonFiniteAmountError: If tax or tip is NaN or infinite
    """
    total_extras = to_amount(tax) + to_amount(tip)

    roster = as_participant_list(participants)
    if not items or not roster:
        return []

    known_ids = {p.id for p in roster}
    subtotals: dict[str, Decimal] = {p.id: ZERO for p in roster}
    lines: dict[str, list[LineEntry]] = {p.id: [] for p in roster}

    # Step 1: split every assigned item evenly among its assignees
    for item in items:
        assignees = _known_assignees(allocation, item.id, known_ids)
        if not assignees:
            continue

        split_cost = item.price / len(assignees)
        label = _split_label(item.description, len(assignees))
        for pid in assignees:
            subtotals[pid] += split_cost
            lines[pid].append(LineEntry(label=label, cost=split_cost))

    # Step 2: share extras in proportion to assigned spend
    assigned_total = sum(subtotals.values(), ZERO)

    results = []
    for participant in roster:
        base_total = subtotals[participant.id]
        extras_share = ZERO
        if assigned_total > 0:
            extras_share = (base_total / assigned_total) * total_extras

        final_total = base_total + extras_share
        if final_total == 0:
            continue

        results.append(ParticipantBreakdown(
            participant=participant,
            line_items=lines[participant.id],
            base_total=base_total,
            extras_share=extras_share,
            final_total=final_total,
        ))

    # sorted() is stable with reverse=True, so ties keep roster order
    return sorted(results, key=lambda b: b.final_total, reverse=True)


def summarize_bill(
    items: Sequence[ReceiptItem],
    participants: Participants,
    allocation: Optional[Allocation],
    tax: Any = ZERO,
    tip: Any = ZERO,
) -> BillSummary:
    """
    Breakdown plus the receipt-level figures the summary screen shows.

    grand_total is the full receipt (subtotal + tax + tip), which is what
    the diners were actually charged, even if some items were left
    unassigned.
    """
    tax_amount = to_amount(tax)
    tip_amount = to_amount(tip)

    breakdowns = compute_breakdown(items, participants, allocation, tax_amount, tip_amount)
    subtotal = receipt_subtotal(items)
    assigned = assigned_subtotal(items, participants, allocation)

    return BillSummary(
        receipt_subtotal=subtotal,
        assigned_subtotal=assigned,
        unassigned_subtotal=subtotal - assigned,
        tax=tax_amount,
        tip=tip_amount,
        total_extras=tax_amount + tip_amount,
        grand_total=subtotal + tax_amount + tip_amount,
        breakdowns=breakdowns,
        unassigned_items=unassigned_items(items, participants, allocation),
    )
