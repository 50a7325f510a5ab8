import math
from typing import Iterable, NamedTuple, Optional


class Totals(NamedTuple):
    quantity: int
    weight: float


def _usable(value: Optional[float]) -> bool:
    return value is not None and not math.isnan(value) and not math.isinf(value)


def line_total_weight(
    quantity: Optional[int],
    unit_weight: Optional[float],
    weight: Optional[float],
) -> Optional[float]:
    """
    Weight of one line in kg.

    quantity x unit_weight when a positive unit weight is known, otherwise the
    stored aggregate weight, otherwise None (unspecified). Never NaN or negative.
    """
    qty = max(quantity or 0, 0)
    if _usable(unit_weight) and unit_weight > 0:
        return qty * unit_weight
    if _usable(weight) and weight >= 0:
        return float(weight)
    return None


def compute_totals(items: Iterable) -> Totals:
    """Grand totals across items; unspecified lines contribute zero."""
    quantity = 0
    weight = 0.0
    for item in items:
        quantity += max(item.quantity or 0, 0)
        line = line_total_weight(item.quantity, item.unit_weight, item.weight)
        weight += line or 0.0
    return Totals(quantity=quantity, weight=weight)
