"""
Price helpers shared by the scan flow, the aggregation sources and the agent.

Prices travel as display strings ("$1,199.99") because that is how the
stores and the external feeds hand them over; numbers are only derived
when comparing.
"""
from __future__ import annotations

import re
from typing import Callable, Iterable, List, Optional, Sequence, TypeVar

T = TypeVar("T")

_NOT_NUMERIC = re.compile(r"[^0-9.]")


def parse_price(value: object) -> Optional[float]:
    """'$1,199.99' -> 1199.99. Returns None when nothing numeric is left."""
    if value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = _NOT_NUMERIC.sub("", str(value))
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def format_price(amount: float, symbol: str = "$") -> str:
    return f"{symbol}{amount:.2f}"


def _priced(items: Iterable[T], key: Callable[[T], object]) -> List[tuple]:
    out = []
    for it in items:
        p = parse_price(key(it))
        if p is not None:
            out.append((p, it))
    return out


def find_best_price(items: Sequence[T], key: Callable[[T], object] = lambda x: x) -> Optional[T]:
    """Cheapest item; on ties the first one wins. Unparsable prices are ignored."""
    priced = _priced(items, key)
    if not priced:
        return None
    best_p, best = priced[0]
    for p, it in priced[1:]:
        if p < best_p:
            best_p, best = p, it
    return best


def find_highest_price(items: Sequence[T], key: Callable[[T], object] = lambda x: x) -> Optional[T]:
    priced = _priced(items, key)
    if not priced:
        return None
    top_p, top = priced[0]
    for p, it in priced[1:]:
        if p > top_p:
            top_p, top = p, it
    return top


def calculate_savings(items: Sequence[T], key: Callable[[T], object] = lambda x: x) -> float:
    """Difference between the most and the least expensive offer."""
    values = [p for p, _ in _priced(items, key)]
    if len(values) < 2:
        return 0.0
    return round(max(values) - min(values), 2)


def average_price(items: Sequence[T], key: Callable[[T], object] = lambda x: x) -> float:
    values = [p for p, _ in _priced(items, key)]
    if not values:
        return 0.0
    return sum(values) / len(values)


def dedupe_by_retailer(items: Iterable[T], key: Callable[[T], str]) -> List[T]:
    """Keep the first offer per retailer name."""
    seen = set()
    out: List[T] = []
    for it in items:
        name = key(it)
        if name in seen:
            continue
        seen.add(name)
        out.append(it)
    return out
