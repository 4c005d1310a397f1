from __future__ import annotations

from emission_ledger.records import AggregationOverflow, validate_amount


def convert(quantity: int, factor: int, *, max_total: int | None = None) -> int:
    """Convert an activity quantity to an emission amount (quantity * factor)."""
    quantity = validate_amount(quantity)
    factor = validate_amount(factor)
    amount = quantity * factor
    if max_total is not None and amount > max_total:
        raise AggregationOverflow(f"{quantity} * {factor} exceeds {max_total}")
    return amount
