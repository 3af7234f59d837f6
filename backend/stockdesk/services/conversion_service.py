# Overview: Pure box/kg conversions and derived unit economics for products.

"""
Unit conversion for dual-unit (box + kg) products.

Every function here is pure: no database access, no side effects. The ratio
is "kg per box" and must be > 0; anything else raises InvalidRatio before a
division can happen.

    cost_per_kg    = cost_per_box  / ratio
    price_per_kg   = price_per_box / ratio
    profit_per_box = price_per_box - cost_per_box
    profit_per_kg  = price_per_kg  - cost_per_kg
"""

from __future__ import annotations

import math
from dataclasses import dataclass, asdict
from datetime import date, datetime, time
from typing import Optional

from ..errors import InvalidRatio
from stockdesk.time_utils import utcnow


SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class UnitEconomics:
    cost_per_kg: float
    price_per_kg: float
    profit_per_box: float
    profit_per_kg: float

    def to_dict(self) -> dict:
        return asdict(self)


def validate_ratio(box_to_kg_ratio) -> float:
    """Return the ratio as a float, or raise InvalidRatio."""
    if box_to_kg_ratio is None or isinstance(box_to_kg_ratio, bool):
        raise InvalidRatio("box_to_kg_ratio is required")
    try:
        ratio = float(box_to_kg_ratio)
    except (TypeError, ValueError):
        raise InvalidRatio("box_to_kg_ratio must be a number")
    if not math.isfinite(ratio) or ratio <= 0:
        raise InvalidRatio()
    return ratio


def derive_unit_economics(box_to_kg_ratio, cost_per_box: float, price_per_box: float) -> UnitEconomics:
    ratio = validate_ratio(box_to_kg_ratio)
    cost_per_kg = cost_per_box / ratio
    price_per_kg = price_per_box / ratio
    return UnitEconomics(
        cost_per_kg=cost_per_kg,
        price_per_kg=price_per_kg,
        profit_per_box=price_per_box - cost_per_box,
        profit_per_kg=price_per_kg - cost_per_kg,
    )


def kg_to_boxes(kg: float, box_to_kg_ratio) -> float:
    return kg / validate_ratio(box_to_kg_ratio)


def boxes_to_kg(boxes: float, box_to_kg_ratio) -> float:
    return boxes * validate_ratio(box_to_kg_ratio)


def days_left(expiry_date: Optional[date], now: Optional[datetime] = None) -> Optional[int]:
    """
    Whole days until expiry, rounded up. Negative once expired; not clamped.

    The expiry date is taken as midnight UTC of that day.
    """
    if expiry_date is None:
        return None
    if isinstance(expiry_date, datetime):
        expiry_at = expiry_date
    else:
        expiry_at = datetime.combine(expiry_date, time.min)
    now = now or utcnow()
    return math.ceil((expiry_at - now).total_seconds() / SECONDS_PER_DAY)


def loss_value(product, damaged_boxes: float, damaged_kg: float) -> float:
    """Cost of stock written off: boxes at cost_per_box plus kg at cost_per_kg."""
    return damaged_boxes * product.cost_per_box + damaged_kg * product.cost_per_kg


def restock_cost(product, boxes_added: float, kg_added: float) -> float:
    return boxes_added * product.cost_per_box + kg_added * product.cost_per_kg
