import math

import pytest

from address_mapper.geocoding import (
    Coordinate,
    CoordinateExtractor,
    address_key,
    build_query,
    cache_key,
    field_value,
    normalize_address,
    parse_number,
)


def test_normalize_only_lowercases_and_trims():
    assert normalize_address("  Av. Santa Fe 3253, Palermo  ") == "av. santa fe 3253, palermo"
    # accents and inner whitespace are left alone
    assert normalize_address("Dirección  Ñandú") == "dirección  ñandú"
    assert normalize_address("") == ""


def test_cache_key_namespaces_geocode_entries():
    assert cache_key("av. corrientes 1234") == "geo:av. corrientes 1234"
    assert address_key(" Av. Corrientes 1234 ") == "geo:av. corrientes 1234"
    assert cache_key("region", prefix="pref:") == "pref:region"


def test_build_query_joins_address_and_neighborhood():
    assert build_query({"Direccion": "Av. Santa Fe 3253", "Barrio": "Palermo"}) == "Av. Santa Fe 3253, Palermo"
    assert build_query({"Dirección": "Av. 9 de Julio 100"}) == "Av. 9 de Julio 100"
    assert build_query({"Barrio": "Palermo", "Region": "1"}) == ""
    assert build_query({"direccion": "   "}) == ""


def test_field_value_prefers_earlier_alias_with_a_value():
    fields = {"region": "7", "Region": ""}
    assert field_value(fields, ("Region", "Región", "region")) == "7"
    assert field_value({"REGION ": " 3 "}, ("region",)) == "3"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("-34,6", -34.6),
        ("-58.38", -58.38),
        (" 12 ", 12.0),
        (5, 5.0),
        ("", None),
        ("abc", None),
        ("nan", None),
        ("inf", None),
        (None, None),
    ],
)
def test_parse_number(raw, expected):
    assert parse_number(raw) == expected


def test_extractor_reads_comma_decimal_coordinates():
    extractor = CoordinateExtractor()
    coord = extractor.try_extract({"Direccion": "Av. 9 de Julio 100", "Lat": "-34,6", "Lon": "-58,38"})
    assert coord == Coordinate(lat=-34.6, lon=-58.38)


def test_extractor_first_alias_wins_per_axis():
    extractor = CoordinateExtractor()
    fields = {"latitude": "-30", "lat": "-31", "lng": "-60", "longitude": "-61"}
    assert extractor.try_extract(fields) == Coordinate(lat=-31, lon=-60)


def test_extractor_skips_empty_alias_and_uses_next():
    extractor = CoordinateExtractor()
    fields = {"lat": "", "Latitud": "-32,5", "LONGITUD": "-61,2"}
    assert extractor.try_extract(fields) == Coordinate(lat=-32.5, lon=-61.2)


@pytest.mark.parametrize(
    "fields",
    [
        {"lat": "-34.6"},
        {"lat": "-34.6", "lon": "not a number"},
        {"lat": "95", "lon": "-58"},
        {"lat": "-34", "lon": "nan"},
        {"Direccion": "Calle Falsa 123"},
    ],
)
def test_extractor_requires_both_axes_valid(fields):
    assert CoordinateExtractor().try_extract(fields) is None


def test_coordinate_validates_range():
    with pytest.raises(ValueError):
        Coordinate(lat=91, lon=0)
    with pytest.raises(ValueError):
        Coordinate(lat=0, lon=-181)
    with pytest.raises(ValueError):
        Coordinate(lat=math.nan, lon=0)
    assert Coordinate(lat=-90, lon=180).to_dict() == {"lat": -90.0, "lon": 180.0}
