from __future__ import annotations

import pytest

from emission_ledger import AggregationOverflow, InvalidAmount, convert


def test_convert_multiplies_quantity_by_factor() -> None:
    assert convert(120, 2_500) == 300_000
    assert convert(0, 2_500) == 0


@pytest.mark.parametrize("quantity,factor", [(-1, 2), (2, -1), (1.5, 2), (True, 2)])
def test_convert_rejects_invalid_inputs(quantity, factor) -> None:
    with pytest.raises(InvalidAmount):
        convert(quantity, factor)


def test_convert_respects_bound() -> None:
    assert convert(15, 17, max_total=255) == 255
    with pytest.raises(AggregationOverflow):
        convert(16, 16, max_total=255)
