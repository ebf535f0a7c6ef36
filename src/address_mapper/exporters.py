"""
Export resolved rows.

CSV export round-trips the input: same rows in the same order, same
columns in the same order, with a `lat` or `lon` column appended only
for an axis the input has no column for. GeoJSON export is the point
layer the map consumes.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

import geopandas as gpd
import pandas as pd
from shapely.geometry import Point

from .geocoding.extractors import CoordinateExtractor
from .geocoding.models import Row
from .geocoding.normalizers import find_field

logger = logging.getLogger(__name__)


def _fmt(value: float) -> str:
    return f"{value:.7f}".rstrip("0").rstrip(".")


def to_dataframe(
    rows: Sequence[Row],
    columns: Sequence[str],
    extractor: CoordinateExtractor | None = None,
) -> pd.DataFrame:
    """
    Tabulate rows in ingestion order for export.

    Each axis is handled on its own: an input column already named by a
    recognised latitude (or longitude) alias is kept in place and only its
    empty cells are filled; an axis with no such column gets a `lat` (or
    `lon`) column appended.
    """
    extractor = extractor or CoordinateExtractor()
    columns = list(columns)
    lat_column = _first_column(columns, extractor.lat_aliases)
    lon_column = _first_column(columns, extractor.lon_aliases)

    out_columns = list(columns)
    if lat_column is None:
        lat_column = "lat"
        out_columns.append(lat_column)
    if lon_column is None:
        lon_column = "lon"
        out_columns.append(lon_column)

    records = []
    for row in sorted(rows, key=lambda r: r.index):
        record = {name: row.fields.get(name, "") for name in out_columns}
        coordinate = row.coordinate
        if coordinate is not None:
            for name, value in ((lat_column, coordinate.lat), (lon_column, coordinate.lon)):
                if not str(record[name]).strip():
                    record[name] = _fmt(value)
        records.append(record)

    return pd.DataFrame.from_records(records, columns=out_columns)


def _first_column(columns: Sequence[str], aliases: Sequence[str]) -> str | None:
    # every column counts as present, blank or not
    return find_field({c: "x" for c in columns}, aliases)


def export_csv(rows: Sequence[Row], columns: Sequence[str], path: Path | str) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df = to_dataframe(rows, columns)
    df.to_csv(path, index=False)
    logger.info(f"Exported {len(df)} rows to {path}")
    return path


def to_geodataframe(rows: Sequence[Row], crs: str = "EPSG:4326") -> gpd.GeoDataFrame:
    """Point layer of every row with a coordinate; properties are the original fields."""
    located = [r for r in sorted(rows, key=lambda r: r.index) if r.coordinate is not None]
    records = [
        {**row.fields, "row_index": row.index, "geocode_source": row.source.value}
        for row in located
    ]
    geometry = [Point(row.coordinate.lon, row.coordinate.lat) for row in located]
    return gpd.GeoDataFrame(pd.DataFrame(records), geometry=geometry, crs=crs)


def export_geojson(rows: Sequence[Row], path: Path | str) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    gdf = to_geodataframe(rows)
    path.write_text(gdf.to_json(), encoding="utf8")
    logger.info(f"Exported {len(gdf)} points to {path}")
    return path
