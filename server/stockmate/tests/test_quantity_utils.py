from decimal import Decimal

import pytest

from stockmate.errors import InvalidQuantityError
from stockmate.utils import quantize_qty, to_qty


def test_quantize_qty_rounds_half_up_to_six_places():
    assert quantize_qty(Decimal("1.0000004")) == Decimal("1.000000")
    assert quantize_qty(Decimal("1.0000005")) == Decimal("1.000001")


def test_quantize_qty_accepts_common_types_and_none():
    assert quantize_qty(2) == Decimal("2.000000")
    assert quantize_qty(0.1) == Decimal("0.100000")
    assert quantize_qty("0.5") == Decimal("0.500000")
    assert quantize_qty(None) is None


def test_to_qty_treats_missing_as_zero():
    assert to_qty(None) == Decimal("0")
    assert to_qty("3.25") == Decimal("3.250000")


@pytest.mark.parametrize("value", [Decimal("1E+30"), Decimal("Infinity"), Decimal("NaN"), "twelve"])
def test_quantize_qty_rejects_unrepresentable_values(value):
    with pytest.raises(InvalidQuantityError):
        quantize_qty(value)
