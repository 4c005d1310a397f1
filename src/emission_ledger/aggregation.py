"""
Read-side sums over a snapshot of one account's ledger.

Every function here is a pure function of the records it is given. Sums use
Python integers, so they are exact; an optional `max_total` turns any sum that
would exceed it into an `AggregationOverflow` instead of a wrapped value.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Sequence

from emission_ledger.records import AggregationOverflow, EmissionRecord


@dataclass(frozen=True)
class AccountSummary:
    """Derived view of one account's ledger."""

    account: str
    record_count: int
    total: int
    by_category: dict[str, int] = field(default_factory=dict)
    first_timestamp: int | None = None
    last_timestamp: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "account": self.account,
            "record_count": self.record_count,
            "total": self.total,
            "by_category": dict(self.by_category),
            "first_timestamp": self.first_timestamp,
            "last_timestamp": self.last_timestamp,
        }


def _checked_add(running: int, amount: int, max_total: int | None) -> int:
    running += amount
    if max_total is not None and running > max_total:
        raise AggregationOverflow(f"sum exceeds {max_total}")
    return running


def _sum_where(
    records: Iterable[EmissionRecord],
    predicate: Callable[[EmissionRecord], bool] | None,
    max_total: int | None,
) -> int:
    running = 0
    for entry in records:
        if predicate is None or predicate(entry):
            running = _checked_add(running, entry.amount, max_total)
    return running


def total(records: Iterable[EmissionRecord], *, max_total: int | None = None) -> int:
    return _sum_where(records, None, max_total)


def total_by_category(
    records: Iterable[EmissionRecord],
    category: str,
    *,
    max_total: int | None = None,
) -> int:
    """Sum amounts whose category equals `category` exactly (case and whitespace significant)."""
    return _sum_where(records, lambda entry: entry.category == category, max_total)


def total_by_time_window(
    records: Iterable[EmissionRecord],
    start_time: int,
    end_time: int,
    *,
    max_total: int | None = None,
) -> int:
    """Sum amounts with start_time <= timestamp <= end_time; an inverted window sums to 0."""
    if start_time > end_time:
        return 0
    return _sum_where(records, lambda entry: start_time <= entry.timestamp <= end_time, max_total)


def totals_by_category(
    records: Iterable[EmissionRecord],
    *,
    max_total: int | None = None,
) -> dict[str, int]:
    totals: dict[str, int] = {}
    for entry in records:
        totals[entry.category] = _checked_add(totals.get(entry.category, 0), entry.amount, max_total)
    return totals


def summarize(
    account: str,
    records: Sequence[EmissionRecord],
    *,
    max_total: int | None = None,
) -> AccountSummary:
    timestamps = [entry.timestamp for entry in records]
    return AccountSummary(
        account=account,
        record_count=len(records),
        total=total(records, max_total=max_total),
        by_category=totals_by_category(records, max_total=max_total),
        first_timestamp=min(timestamps) if timestamps else None,
        last_timestamp=max(timestamps) if timestamps else None,
    )
