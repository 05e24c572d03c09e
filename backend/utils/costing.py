"""
Costing calculator: pure helpers for inventory valuation.

Nothing in this module touches the database or logs. All inputs are coerced
to ``Decimal`` and all monetary/quantity results are rounded half-up to two
fractional digits.
"""
from decimal import Decimal, ROUND_CEILING, ROUND_HALF_UP
from typing import Iterable, Tuple

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")

# Suggested selling prices are quoted at these gross margins
SUGGESTED_MARGINS = (Decimal("0.30"), Decimal("0.40"), Decimal("0.50"))


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    # str() keeps floats such as 0.1 from dragging binary noise into the result
    return Decimal(str(value))


def round2(value) -> Decimal:
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def has_sub_cent_digits(value) -> bool:
    """True when ``value`` would change under ``round2``."""
    value = to_decimal(value)
    return value != round2(value)


def weighted_average_cost(old_qty, old_avg, recv_qty, recv_price) -> Decimal:
    """
    CUMP after a receipt.

    (old_qty * old_avg + recv_qty * recv_price) / (old_qty + recv_qty)

    >>> weighted_average_cost(100, 500, 50, 600)
    Decimal('533.33')
    """
    old_qty, old_avg = to_decimal(old_qty), to_decimal(old_avg)
    recv_qty, recv_price = to_decimal(recv_qty), to_decimal(recv_price)

    if old_qty + recv_qty == 0:
        return recv_price
    if recv_qty == 0:
        return old_avg
    return round2((old_qty * old_avg + recv_qty * recv_price) / (old_qty + recv_qty))


def total_value(qty, avg_cost) -> Decimal:
    return round2(to_decimal(qty) * to_decimal(avg_cost))


def remaining_qty(ordered, received) -> Decimal:
    return max(ZERO, to_decimal(ordered) - to_decimal(received))


def _line_totals(items) -> Tuple[Decimal, Decimal]:
    total_ordered = sum((to_decimal(i.quantity_ordered) for i in items), ZERO)
    total_received = sum((to_decimal(i.quantity_received) for i in items), ZERO)
    return total_ordered, total_received


def derive_purchase_status(items) -> str:
    """
    Status implied by the received quantities of a purchase's lines.

    Returns "DRAFT", "PARTIAL" or "RECEIVED". Anything received beyond the
    ordered total still counts as RECEIVED; see ``is_over_received``.
    """
    total_ordered, total_received = _line_totals(items)
    if total_received == 0:
        return "DRAFT"
    if total_received >= total_ordered:
        return "RECEIVED"
    return "PARTIAL"


def is_over_received(items) -> bool:
    return any(to_decimal(i.quantity_received) > to_decimal(i.quantity_ordered) for i in items)


def required_quantity(quantity_per_unit, waste_factor, planned_qty) -> Decimal:
    return round2(to_decimal(quantity_per_unit) * to_decimal(waste_factor) * to_decimal(planned_qty))


def suggested_price(total_cost, margin_fraction) -> Decimal:
    """Lowest whole-currency price giving at least ``margin_fraction`` gross margin."""
    price = to_decimal(total_cost) / (Decimal("1") - to_decimal(margin_fraction))
    return price.quantize(Decimal("1"), rounding=ROUND_CEILING)


def replay_ledger(transactions: Iterable) -> Tuple[Decimal, Decimal]:
    """
    Rebuild (quantity, average_cost) of one item from its ledger rows.

    Rows must be in chronological order. IN rows recompute the CUMP exactly as
    receiving does; OUT rows leave it unchanged.
    """
    quantity, avg_cost = ZERO, ZERO
    for tx in transactions:
        direction = getattr(tx.direction, "value", tx.direction)
        if direction == "IN":
            avg_cost = weighted_average_cost(quantity, avg_cost, tx.quantity, tx.unit_cost)
            quantity += to_decimal(tx.quantity)
        else:
            quantity -= to_decimal(tx.quantity)
    return round2(quantity), avg_cost
