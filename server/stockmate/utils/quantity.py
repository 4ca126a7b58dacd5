from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from stockmate.errors import InvalidQuantityError

QTY_PLACES = Decimal("0.000001")
# largest value a Numeric(18, 6) column holds
QTY_MAX = Decimal("999999999999.999999")


def quantize_qty(value: Decimal | float | int | str | None) -> Decimal | None:
    """Round to six places, half up. Values that cannot be stored raise InvalidQuantityError."""
    if value is None:
        return None
    try:
        quantity = Decimal(str(value)).quantize(QTY_PLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise InvalidQuantityError(f"Quantity {value!r} is out of range.") from exc
    if not quantity.is_finite():
        raise InvalidQuantityError(f"Quantity {value!r} is not a number.")
    return quantity


def to_qty(value: Decimal | float | int | str | None) -> Decimal:
    """Like quantize_qty, but treats a missing value as zero."""
    return quantize_qty(value if value is not None else 0)
