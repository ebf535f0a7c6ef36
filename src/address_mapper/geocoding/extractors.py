"""
Read coordinates straight from a row's own columns.

Rows that already carry a usable lat/lon pair never reach the resolver,
so they cost neither a rate-limit slot nor a network call.
"""

import math
from typing import Mapping, Optional, Sequence

from .models import Coordinate
from .normalizers import find_field

# Priority order matters: first alias with a value wins, per axis
LAT_ALIASES: Sequence[str] = ("lat", "latitude", "latitud", "y")
LON_ALIASES: Sequence[str] = ("lon", "lng", "long", "longitude", "longitud", "x")


def parse_number(value: object) -> Optional[float]:
    """
    Parse a numeric cell, accepting comma as the decimal separator.

    Returns None for empty, malformed or non-finite values.
    """
    if value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None

    text = str(value).strip().replace(" ", "")
    if not text:
        return None
    if "," in text and "." not in text:
        text = text.replace(",", ".")
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


class CoordinateExtractor:
    """Looks up latitude/longitude columns by alias and parses them."""

    def __init__(
        self,
        lat_aliases: Sequence[str] = LAT_ALIASES,
        lon_aliases: Sequence[str] = LON_ALIASES,
    ):
        self.lat_aliases = tuple(lat_aliases)
        self.lon_aliases = tuple(lon_aliases)

    def try_extract(self, fields: Mapping[str, object]) -> Optional[Coordinate]:
        lat_col = find_field(fields, self.lat_aliases)
        lon_col = find_field(fields, self.lon_aliases)
        if lat_col is None or lon_col is None:
            return None

        lat = parse_number(fields[lat_col])
        lon = parse_number(fields[lon_col])
        if lat is None or lon is None:
            return None
        try:
            return Coordinate(lat=lat, lon=lon)
        except ValueError:
            # out of range, treat like a missing pair
            return None
