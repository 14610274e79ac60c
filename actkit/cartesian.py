"""Cartesian product over a mapping of lists."""

from __future__ import annotations

from itertools import product
from typing import Any, Mapping, Sequence


def cartesian_product(map_of_lists: Mapping[str, Sequence[Any]]) -> list[dict[str, Any]]:
    """Return every combination of one value per key, as dictionaries.

    An empty mapping, or any empty list, yields no combinations.
    """
    if not map_of_lists:
        return []
    names = list(map_of_lists)
    return [dict(zip(names, combo)) for combo in product(*(map_of_lists[n] for n in names))]