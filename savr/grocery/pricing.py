"""
Price normalisation and candidate selection for grocery products.

A product search returns several candidates for one ingredient term. Each
candidate's package size (``"12 ct"``, ``"16 oz"``, ...) is parsed into a
unit so a per-unit cost can be compared. One candidate is then selected:

* ``cheapest``      lowest shelf price.
* ``cheapest_unit`` lowest per-unit cost.
* ``median``        (default) the candidate closest to the median per-unit
  cost when at least three candidates have one, otherwise the candidate
  closest to the median shelf price.
"""
from __future__ import annotations

import math
import re
from collections.abc import Callable, Iterable
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import numpy as np

from .models import Candidate, UnitInfo

PRICE_METHODS = ("median", "cheapest", "cheapest_unit")
MIN_UNIT_COSTS_FOR_MEDIAN = 3
MAX_PRODUCT_LIMIT = 20

_NUMBER = r"^(\d+(?:\.\d+)?)\s*"
_SIZE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(_NUMBER + r"ct\b"), "ct"),
    (re.compile(_NUMBER + r"(?:each|ea)\b"), "each"),
    (re.compile(_NUMBER + r"oz\b"), "oz"),
    (re.compile(_NUMBER + r"lb\b"), "lb"),
]


def normalize_method(method: str | None) -> str:
    return method if method in PRICE_METHODS else "median"


def clamp_limit(limit: int) -> int:
    return min(max(limit, 1), MAX_PRODUCT_LIMIT)


def parse_unit_from_size(size: str | None) -> tuple[str, float] | None:
    """Parse ``"12 ct"``-style sizes into ``(unit_type, unit_count)``."""
    if not size or not isinstance(size, str):
        return None
    s = size.strip().lower()
    for pattern, unit_type in _SIZE_PATTERNS:
        m = pattern.match(s)
        if m:
            return unit_type, float(m.group(1))
    return None


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def round_money(value: float) -> float:
    """Round to cents, halves away from zero, on the exact binary value."""
    return float(Decimal(value).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def median(values: Iterable[Any]) -> float | None:
    nums = [v for v in values if _is_number(v)]
    if not nums:
        return None
    return float(np.median(nums))


def build_candidate(product: dict[str, Any]) -> Candidate:
    items = product.get("items") or []
    item = items[0] if items else {}
    regular = (item.get("price") or {}).get("regular")
    price = regular if _is_number(regular) else None
    size = item.get("size") or None

    unit = None
    parsed = parse_unit_from_size(size)
    if parsed:
        unit_type, unit_count = parsed
        unit_cost = round_money(price / unit_count) if price and unit_count > 0 else None
        unit = UnitInfo(unitType=unit_type, unitCount=unit_count, unitCost=unit_cost)

    return Candidate(
        productId=product.get("productId"),
        description=product.get("description"),
        brand=product.get("brand") or None,
        size=size,
        price=price,
        unit=unit,
    )


def _unit_cost(c: Candidate) -> float | None:
    return c.unit.unitCost if c.unit else None


def _price(c: Candidate) -> float | None:
    return c.price


def _closest(
    candidates: list[Candidate],
    key: Callable[[Candidate], float | None],
    target: float,
) -> Candidate | None:
    best: Candidate | None = None
    best_diff = math.inf
    for c in candidates:
        value = key(c)
        if value is None:
            continue
        diff = abs(value - target)
        if diff < best_diff:
            best, best_diff = c, diff
    return best


def _lowest(
    candidates: list[Candidate],
    key: Callable[[Candidate], float | None],
) -> Candidate | None:
    valued = [c for c in candidates if key(c) is not None]
    return min(valued, key=key) if valued else None


def select_candidate(candidates: list[Candidate], method: str = "median") -> Candidate | None:
    """Pick one candidate using ``method``. Ties keep the earliest candidate."""
    method = normalize_method(method)
    if method == "cheapest":
        return _lowest(candidates, _price)
    if method == "cheapest_unit":
        return _lowest(candidates, _unit_cost)

    unit_costs = [u for u in map(_unit_cost, candidates) if u is not None]
    if len(unit_costs) >= MIN_UNIT_COSTS_FOR_MEDIAN:
        return _closest(candidates, _unit_cost, median(unit_costs))

    target = median(c.price for c in candidates)
    if target is None:
        return None
    return _closest(candidates, _price, target)
