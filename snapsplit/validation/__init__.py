"""Input validation package."""

from snapsplit.validation.validator import SplitInputValidator, parse_amount

__all__ = ["SplitInputValidator", "parse_amount"]
