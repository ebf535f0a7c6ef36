from __future__ import annotations

from typing import Iterable, List, Optional

from .geocoding.models import Row


def _region_sort_key(region: str) -> tuple[int, float, str]:
    try:
        return (0, float(region), region)
    except ValueError:
        return (1, 0.0, region)


def regions(rows: Iterable[Row]) -> List[str]:
    """Distinct non-empty regions, numeric ones first in numeric order."""
    found = {row.region for row in rows if row.region}
    return sorted(found, key=_region_sort_key)


def filter_rows(
    rows: Iterable[Row],
    region: Optional[str] = None,
    text: Optional[str] = None,
    require_coordinate: bool = True,
) -> List[Row]:
    """
    Rows matching a region and a free-text search.

    `region` must match exactly after trimming; `text` is a
    case-insensitive substring of the neighborhood or address.
    """
    region = (region or "").strip()
    needle = (text or "").strip().lower()

    selected = []
    for row in rows:
        if require_coordinate and row.coordinate is None:
            continue
        if region and row.region != region:
            continue
        if needle and needle not in row.neighborhood.lower() and needle not in row.address.lower():
            continue
        selected.append(row)
    return selected
