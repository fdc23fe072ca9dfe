"""Allocation engine package."""

from snapsplit.engine.allocation import (
    assigned_subtotal,
    compute_breakdown,
    receipt_subtotal,
    summarize_bill,
    unassigned_items,
)
from snapsplit.engine.summary import (
    format_amount,
    format_share_text,
    round_currency,
    settle_to_cents,
)
from snapsplit.models.split import NonFiniteAmountError, palette_hex, to_amount

__all__ = [
    "NonFiniteAmountError",
    "assigned_subtotal",
    "compute_breakdown",
    "format_amount",
    "format_share_text",
    "palette_hex",
    "receipt_subtotal",
    "round_currency",
    "settle_to_cents",
    "summarize_bill",
    "to_amount",
    "unassigned_items",
]
