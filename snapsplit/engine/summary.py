"""
Output shaping for a computed split: currency rounding, cent settlement and
the plain-text summary people paste into a group chat.
"""

from datetime import date
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from snapsplit.models.split import ZERO, BillSummary, ParticipantBreakdown


CENT = Decimal("0.01")


def round_currency(amount: Decimal) -> Decimal:
    """Round to 2 decimal places for currency."""
    if amount is None:
        return ZERO.quantize(CENT)
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(amount: Decimal, currency_symbol: str = "$") -> str:
    return f"{currency_symbol}{round_currency(amount):,.2f}"


def settle_to_cents(breakdowns: Sequence[ParticipantBreakdown]) -> dict[str, Decimal]:
    """
    Round every participant's final total to whole cents so that the rounded
    amounts add up to the rounded exact total.

    Each total is truncated to cents, then the leftover cents go to the
    participants with the largest truncated remainders. Ties go to whoever
    comes first in ``breakdowns``.
    """
    if not breakdowns:
        return {}

    exact_total = sum((b.final_total for b in breakdowns), ZERO)
    target = round_currency(exact_total)

    floors = {
        b.participant_id: b.final_total.quantize(CENT, rounding=ROUND_DOWN)
        for b in breakdowns
    }
    leftover_cents = int((target - sum(floors.values(), ZERO)) / CENT)

    by_remainder = sorted(
        breakdowns,
        key=lambda b: b.final_total - floors[b.participant_id],
        reverse=True,
    )
    for i in range(leftover_cents):
        pid = by_remainder[i % len(by_remainder)].participant_id
        floors[pid] += CENT

    return floors


def format_share_text(
    summary: BillSummary,
    on: Optional[date] = None,
    currency_symbol: str = "$",
) -> str:
    """
    Build the shareable text summary of a split.

    Per-person amounts are cent-settled; the total line is the full
    receipt total including tax and tip.
    """
    on = on or date.today()
    settled = settle_to_cents(summary.breakdowns)

    lines = [f"🧾 *SnapSplit Bill* ({on.strftime('%d %B %Y')})", ""]
    for breakdown in summary.breakdowns:
        amount = settled[breakdown.participant_id]
        lines.append(f"{breakdown.name}: {format_amount(amount, currency_symbol)}")

    lines.append("")
    lines.append(f"💰 *Total: {format_amount(summary.grand_total, currency_symbol)}*")

    if summary.has_unassigned:
        lines.append(
            f"({len(summary.unassigned_items)} unassigned item(s), "
            f"{format_amount(summary.unassigned_subtotal, currency_symbol)}, not split)"
        )

    lines.append("")
    lines.append("Split with SnapSplit")
    return "\n".join(lines)
