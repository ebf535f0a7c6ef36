"""
Address keys and field lookup.

The cache key is deliberately minimal (lowercase + trim) so keys written
by earlier runs keep matching. Do not add accent stripping or whitespace
collapsing here.
"""

from typing import Mapping, Sequence

GEOCODE_PREFIX = "geo:"
PREFERENCE_PREFIX = "pref:"

# Header variants seen in the source spreadsheets (accented and not)
REGION_ALIASES: Sequence[str] = ("Region", "Región", "region")
NEIGHBORHOOD_ALIASES: Sequence[str] = ("Barrio", "barrio")
ADDRESS_ALIASES: Sequence[str] = ("Direccion", "Dirección", "direccion", "address")


def normalize_address(address: str) -> str:
    """Lowercase and trim an address string."""
    if not address:
        return ""
    return str(address).lower().strip()


def cache_key(normalized: str, prefix: str = GEOCODE_PREFIX) -> str:
    """Storage key for a normalized address."""
    return f"{prefix}{normalized}"


def address_key(address: str) -> str:
    return cache_key(normalize_address(address))


def find_field(fields: Mapping[str, object], aliases: Sequence[str]) -> str | None:
    """
    Return the first column name in `fields` matching one of `aliases`.

    Aliases are tried in priority order; within an alias the comparison
    is case-insensitive and ignores surrounding whitespace in headers.
    Columns with empty values are passed over.
    """
    for alias in aliases:
        wanted = alias.lower()
        for name, value in fields.items():
            if str(name).strip().lower() != wanted:
                continue
            if value is not None and str(value).strip():
                return name
    return None


def field_value(fields: Mapping[str, object], aliases: Sequence[str]) -> str:
    """Trimmed value of the first matching alias, or an empty string."""
    name = find_field(fields, aliases)
    if name is None:
        return ""
    return str(fields[name]).strip()


def build_query(fields: Mapping[str, object]) -> str:
    """
    Build the address query for a row: "<address>, <neighborhood>".

    Returns an empty string when the row carries no address text.
    """
    address = field_value(fields, ADDRESS_ALIASES)
    if not address:
        return ""
    neighborhood = field_value(fields, NEIGHBORHOOD_ALIASES)
    return f"{address}, {neighborhood}" if neighborhood else address
