"""
Split Input Validation

DESIGN DECISION: Validation happens before the engine runs, not inside it.
The engine normalises what it can (missing prices, negative extras) and
only refuses non-finite amounts. Everything the user should know about
is reported here instead:

ERRORS (block the calculation):
- NaN or infinite tax/tip

WARNINGS (shown next to the summary):
- Negative tax/tip (will be treated as 0)
- Items nobody is assigned to (their cost is not split)
- No items at all

INFO:
- Assignments that reference people not in the roster (ignored)

IMPORTANT: Validation NEVER silently fixes issues.
It reports them; the engine applies its documented normalisation.
"""

from decimal import Decimal
from typing import Any, Optional, Sequence

from snapsplit.engine.allocation import (
    Allocation,
    Participants,
    as_participant_list,
    assignees_for,
    unassigned_items,
)
from snapsplit.engine.summary import format_amount
from snapsplit.models.split import (
    ZERO,
    NonFiniteAmountError,
    ReceiptItem,
    ValidationIssue,
    ValidationResult,
    parse_decimal,
    to_amount,
)


def parse_amount(text: Any) -> Decimal:
    """
    Parse a form entry the way a lenient number field does.

    Same reading as the engine's to_amount, except that non-finite
    entries also become 0. Use this for values typed into the tax/tip boxes.
    """
    try:
        return to_amount(text)
    except NonFiniteAmountError:
        return ZERO


def _check_extra(name: str, value: Any) -> Optional[ValidationIssue]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None

    amount = parse_decimal(value)
    if amount is None:
        return ValidationIssue(
            field=name,
            issue_type="invalid_value",
            message=f"{name.capitalize()} '{value}' is not a number and will be treated as 0",
            severity="warning",
            suggested_fix=f"Enter the {name} as a number, e.g. 2.50",
        )

    if not amount.is_finite():
        return ValidationIssue(
            field=name,
            issue_type="non_finite",
            message=f"{name.capitalize()} must be a finite number",
            severity="error",
            suggested_fix=f"Re-enter the {name}",
        )

    if amount < 0:
        return ValidationIssue(
            field=name,
            issue_type="negative",
            message=f"{name.capitalize()} is negative and will be treated as 0",
            severity="warning",
            suggested_fix=f"Enter the {name} as a positive amount",
        )

    return None


class SplitInputValidator:
    """
    Checks the inputs of a split before the engine is invoked.
    """

    def __init__(self, currency_symbol: str = "$"):
        self._currency_symbol = currency_symbol

    def validate(
        self,
        items: Sequence[ReceiptItem],
        participants: Participants,
        allocation: Optional[Allocation],
        tax: Any = None,
        tip: Any = None,
    ) -> ValidationResult:
        """
        Validate split inputs.

        Returns:
            ValidationResult with all issues found
        """
        issues = []

        for name, value in (("tax", tax), ("tip", tip)):
            issue = _check_extra(name, value)
            if issue:
                issues.append(issue)

        if not items:
            issues.append(ValidationIssue(
                field="items",
                issue_type="empty",
                message="There are no items to split",
                severity="warning",
                suggested_fix="Scan a receipt first",
            ))
        else:
            leftover = unassigned_items(items, participants, allocation)
            if leftover:
                leftover_total = sum((item.price for item in leftover), ZERO)
                issues.append(ValidationIssue(
                    field="allocation",
                    issue_type="unassigned",
                    message=(
                        f"{len(leftover)} item(s) worth "
                        f"{format_amount(leftover_total, self._currency_symbol)} "
                        "are not assigned to anyone and will not be counted"
                    ),
                    severity="warning",
                    suggested_fix="Tap a person, then tap the items they shared",
                ))

        known_ids = {p.id for p in as_participant_list(participants)}
        stale = sorted({
            pid
            for item in items
            for pid in assignees_for(allocation, item.id)
            if pid not in known_ids
        })
        if stale:
            issues.append(ValidationIssue(
                field="allocation",
                issue_type="unknown_participant",
                message=f"Assignments for unknown people are ignored: {', '.join(stale)}",
                severity="info",
            ))

        warnings = [issue.message for issue in issues if issue.severity == "warning"]
        is_valid = not any(issue.severity == "error" for issue in issues)

        return ValidationResult(
            is_valid=is_valid,
            issues=issues,
            warnings=warnings,
        )

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.
        """
        if result.is_valid and not result.warnings:
            return "✅ Everything is assigned."

        lines = []

        if result.has_errors:
            lines.append("❌ Please fix the following before calculating:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please check:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
