from __future__ import annotations

from dataclasses import dataclass
from typing import Any


class LedgerError(Exception):
    """Base class for emission ledger errors."""


class InvalidAmount(LedgerError, ValueError):
    """Raised when an amount is not a non-negative integer."""


class StorageUnavailable(LedgerError):
    """Raised when the backing store could not complete an operation; safe to retry."""


class AggregationOverflow(LedgerError, OverflowError):
    """Raised when a sum exceeds the configured bound."""


@dataclass(frozen=True)
class EmissionRecord:
    """A single emission entry in an account's ledger."""

    timestamp: int
    amount: int
    category: str

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp, "amount": self.amount, "category": self.category}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EmissionRecord:
        return cls(
            timestamp=int(data["timestamp"]),
            amount=validate_amount(data["amount"]),
            category=validate_category(data["category"]),
        )


@dataclass(frozen=True)
class RecordId:
    """Position of a record within its account's ledger."""

    account: str
    sequence: int

    def __str__(self) -> str:
        return f"{self.account}:{self.sequence}"


def validate_amount(amount: Any) -> int:
    # bool is an int subclass but never a meaningful amount
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"amount must be a non-negative integer, got {amount!r}")
    if amount < 0:
        raise InvalidAmount(f"amount must be non-negative, got {amount}")
    return amount


def validate_category(category: Any) -> str:
    if not isinstance(category, str):
        raise TypeError(f"category must be a string, got {type(category).__name__}")
    return category
