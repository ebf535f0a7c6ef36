import json

import pandas as pd
import pytest

from address_mapper.exporters import export_csv, export_geojson, to_dataframe, to_geodataframe
from address_mapper.filters import filter_rows, regions
from address_mapper.geocoding import Coordinate, GeocodeSource, Row
from address_mapper.row_loader import RowLoader, load_rows
from address_mapper.utils.errors import ParseError


CSV_TEXT = (
    "Región,Barrio,Dirección\n"
    "10,Palermo,Av. Santa Fe 3253\n"
    "\n"
    "2,San Nicolás,Av. Corrientes 1234\n"
    "1,Recoleta,Av. Callao 1000\n"
)


def write(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text, encoding="utf8")
    return path


def test_csv_rows_keep_order_and_columns(tmp_path):
    rows, columns = load_rows(write(tmp_path, "data.csv", CSV_TEXT))

    assert columns == ["Región", "Barrio", "Dirección"]
    assert [r.index for r in rows] == [0, 1, 2]
    assert rows[0].fields == {"Región": "10", "Barrio": "Palermo", "Dirección": "Av. Santa Fe 3253"}
    assert rows[0].query == "Av. Santa Fe 3253, Palermo"
    assert rows[1].region == "2"


def test_json_rows(tmp_path):
    path = write(tmp_path, "data.json", json.dumps([
        {"Direccion": "Av. 9 de Julio 100", "Lat": "-34,6", "Lon": "-58,38"},
        {"Direccion": "Av. Santa Fe 3253", "Barrio": "Palermo"},
    ]))
    rows, columns = load_rows(path)
    assert columns == ["Direccion", "Lat", "Lon", "Barrio"]
    assert rows[1].fields["Lat"] == ""


def test_unreadable_sources_raise_parse_error(tmp_path):
    with pytest.raises(ParseError):
        load_rows(tmp_path / "missing.csv")
    with pytest.raises(ParseError):
        load_rows(write(tmp_path, "bad.json", "{"))
    with pytest.raises(ParseError):
        load_rows(write(tmp_path, "obj.json", '{"a": 1}'))
    with pytest.raises(ParseError):
        load_rows(write(tmp_path, "bad.csv", 'a,b\n"unterminated,1\n'))


def test_unknown_source_is_rejected(tmp_path):
    with pytest.raises(ValueError):
        RowLoader.from_source("xlsx", tmp_path / "x.xlsx")
    with pytest.raises(ValueError):
        RowLoader.source_for("data.parquet")


def resolved_rows():
    rows = [
        Row(index=0, fields={"Region": "1", "Barrio": "Palermo", "Direccion": "Av. Santa Fe 3253"}),
        Row(index=1, fields={"Region": "2", "Barrio": "Centro", "Direccion": "Calle Perdida 1"}),
        Row(index=2, fields={"Region": "1", "Barrio": "Recoleta", "Direccion": "Av. Callao 1000"}),
    ]
    rows[0].attach(Coordinate(-34.59, -58.40), GeocodeSource.PROVIDER)
    rows[2].attach(Coordinate(-34.5955, -58.3925), GeocodeSource.CACHE)
    return rows


def test_export_appends_coordinates_in_input_order(tmp_path):
    rows = resolved_rows()
    # completion order must not leak into the export
    shuffled = [rows[2], rows[0], rows[1]]
    path = export_csv(shuffled, ["Region", "Barrio", "Direccion"], tmp_path / "out.csv")

    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    assert list(df.columns) == ["Region", "Barrio", "Direccion", "lat", "lon"]
    assert list(df["Direccion"]) == ["Av. Santa Fe 3253", "Calle Perdida 1", "Av. Callao 1000"]
    assert list(df["lat"]) == ["-34.59", "", "-34.5955"]


def test_export_fills_existing_alias_columns_without_appending():
    rows = [
        Row(index=0, fields={"Direccion": "A", "Latitud": "-34,6", "Longitud": "-58,38"}),
        Row(index=1, fields={"Direccion": "B", "Latitud": "", "Longitud": ""}),
    ]
    rows[0].attach(Coordinate(-34.6, -58.38), GeocodeSource.NATIVE)
    rows[1].attach(Coordinate(-31.4, -64.18), GeocodeSource.PROVIDER)

    df = to_dataframe(rows, ["Direccion", "Latitud", "Longitud"])

    assert list(df.columns) == ["Direccion", "Latitud", "Longitud"]
    assert df.iloc[0].tolist() == ["A", "-34,6", "-58,38"]
    assert df.iloc[1].tolist() == ["B", "-31.4", "-64.18"]


def test_export_with_only_latitude_column_appends_longitude_only():
    rows = [
        Row(index=0, fields={"Direccion": "A 1", "lat": "-34.5"}),
        Row(index=1, fields={"Direccion": "B 2", "lat": "orig"}),
        Row(index=2, fields={"Direccion": "C 3", "lat": ""}),
    ]
    rows[0].attach(Coordinate(-34.6, -58.4), GeocodeSource.PROVIDER)
    rows[2].attach(Coordinate(-31.4, -64.18), GeocodeSource.PROVIDER)

    df = to_dataframe(rows, ["Direccion", "lat"])

    assert list(df.columns) == ["Direccion", "lat", "lon"]
    assert df.iloc[0].tolist() == ["A 1", "-34.5", "-58.4"]
    assert df.iloc[1].tolist() == ["B 2", "orig", ""]
    assert df.iloc[2].tolist() == ["C 3", "-31.4", "-64.18"]


def test_geojson_contains_only_located_rows(tmp_path):
    rows = resolved_rows()
    gdf = to_geodataframe(rows)
    assert list(gdf["row_index"]) == [0, 2]
    assert gdf.geometry.iloc[0].x == pytest.approx(-58.40)
    assert gdf.geometry.iloc[0].y == pytest.approx(-34.59)

    path = export_geojson(rows, tmp_path / "points.geojson")
    data = json.loads(path.read_text(encoding="utf8"))
    assert data["type"] == "FeatureCollection"
    assert len(data["features"]) == 2
    assert data["features"][0]["properties"]["Barrio"] == "Palermo"


def test_regions_sorted_numerically():
    rows = [Row(index=i, fields={"Region": r}) for i, r in enumerate(["10", "2", "", "1", "2", "Norte"])]
    assert regions(rows) == ["1", "2", "10", "Norte"]


def test_filter_rows_by_region_and_text():
    rows = resolved_rows()
    assert [r.index for r in filter_rows(rows)] == [0, 2]
    assert [r.index for r in filter_rows(rows, region="1", text="RECO")] == [2]
    assert [r.index for r in filter_rows(rows, text="santa fe")] == [0]
    assert [r.index for r in filter_rows(rows, region="2")] == []
    assert [r.index for r in filter_rows(rows, region="2", require_coordinate=False)] == [1]
