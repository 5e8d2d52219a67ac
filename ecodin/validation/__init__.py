"""Input validation package."""

from ecodin.validation.validator import (
    MAX_NAME_LENGTH,
    MIN_NAME_LENGTH,
    TransactionValidator,
    known_categories,
    parse_amount,
)

__all__ = [
    "MAX_NAME_LENGTH",
    "MIN_NAME_LENGTH",
    "TransactionValidator",
    "known_categories",
    "parse_amount",
]
