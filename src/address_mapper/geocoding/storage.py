"""
Storage backends for the coordinate cache.

Implements a DuckDB key/value store for durable caching across runs and
an in-memory store with an optional JSON snapshot, plus helpers to
import/export cache snapshots and read preload tables.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import duckdb
import pandas as pd
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .base import CoordinateStore
from .models import Coordinate
from .normalizers import GEOCODE_PREFIX, cache_key, normalize_address
from ..utils.errors import ParseError


logger = logging.getLogger(__name__)


class CoordinateEntry(BaseModel):
    """Validated lat/lon pair as found in preload and snapshot files."""
    lat: float = Field(ge=-90, le=90, allow_inf_nan=False)
    lon: float = Field(ge=-180, le=180, allow_inf_nan=False)

    def to_coordinate(self) -> Coordinate:
        return Coordinate(lat=self.lat, lon=self.lon)


_ENTRY_MAP = TypeAdapter(Dict[str, CoordinateEntry])


def _decode_coordinate(key: str, value: Any) -> Optional[Coordinate]:
    try:
        return Coordinate.from_dict(value)
    except (KeyError, TypeError, ValueError):
        logger.warning(f"Ignoring malformed cache entry {key!r}: {value!r}")
        return None


class DuckDBCoordinateCache(CoordinateStore):
    """
    DuckDB key/value store.

    Values are JSON text so geocode entries and preference entries can
    share the table.
    """

    DDL = """
    CREATE TABLE IF NOT EXISTS kv_store (
        key TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    );
    """

    def __init__(self, db_path: Path | str):
        """
        Initialize DuckDB storage.

        Args:
            db_path: Path to DuckDB database file (":memory:" for a throwaway store)
        """
        self.db_path = db_path if db_path == ":memory:" else Path(db_path)
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.con: Optional[duckdb.DuckDBPyConnection] = duckdb.connect(str(self.db_path))
        self.con.execute(self.DDL)
        logger.info(f"Initialized DuckDB coordinate cache: {self.db_path}")

    def get_raw(self, key: str) -> Optional[Any]:
        row = self.con.execute(
            "SELECT value FROM kv_store WHERE key = ?", [key]
        ).fetchone()
        return json.loads(row[0]) if row else None

    def put_raw(self, key: str, value: Any) -> None:
        self.con.execute(
            """
            INSERT INTO kv_store (key, value) VALUES (?, ?)
            ON CONFLICT (key) DO UPDATE SET
                value = excluded.value,
                updated_at = CURRENT_TIMESTAMP
            """,
            [key, json.dumps(value)],
        )

    def get(self, key: str) -> Optional[Coordinate]:
        value = self.get_raw(key)
        if value is None:
            return None
        return _decode_coordinate(key, value)

    def put(self, key: str, coordinate: Coordinate) -> None:
        self.put_raw(key, coordinate.to_dict())

    def seed(self, entries: Mapping[str, Coordinate]) -> int:
        """Store many coordinates in one statement."""
        if not entries:
            return 0

        df = pd.DataFrame(
            [(key, json.dumps(c.to_dict())) for key, c in entries.items()],
            columns=["key", "value"],
        )
        self.con.register("batch_seed", df)
        try:
            self.con.execute(
                """
                INSERT INTO kv_store (key, value)
                SELECT key, value FROM batch_seed
                ON CONFLICT (key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = CURRENT_TIMESTAMP
                """
            )
        finally:
            self.con.unregister("batch_seed")
        logger.info(f"Seeded {len(df)} cache entries")
        return len(df)

    def keys(self, prefix: Optional[str] = None) -> List[str]:
        if prefix is None:
            rows = self.con.execute("SELECT key FROM kv_store ORDER BY key").fetchall()
        else:
            rows = self.con.execute(
                "SELECT key FROM kv_store WHERE starts_with(key, ?) ORDER BY key",
                [prefix],
            ).fetchall()
        return [r[0] for r in rows]

    def clear(self, prefix: str = GEOCODE_PREFIX) -> int:
        result = self.con.execute(
            "SELECT COUNT(*) FROM kv_store WHERE starts_with(key, ?)", [prefix]
        ).fetchone()
        count = result[0] if result else 0
        self.con.execute("DELETE FROM kv_store WHERE starts_with(key, ?)", [prefix])
        logger.info(f"Cleared {count} cache entries with prefix {prefix!r}")
        return count

    def close(self) -> None:
        """Close database connection."""
        if self.con:
            self.con.close()
            self.con = None
            logger.info("Closed DuckDB connection")


class InMemoryCoordinateCache(CoordinateStore):
    """
    Dict-backed store.

    If `snapshot_path` is given the store is loaded from it on creation
    and written back on `close()`.
    """

    def __init__(self, snapshot_path: Path | str | None = None):
        self.snapshot_path = Path(snapshot_path) if snapshot_path else None
        self.data: Dict[str, Any] = {}
        if self.snapshot_path and self.snapshot_path.exists():
            try:
                self.data = json.loads(self.snapshot_path.read_text(encoding="utf8"))
            except json.JSONDecodeError as e:
                raise ParseError(str(self.snapshot_path), f"invalid JSON: {e}", original=e) from e
            logger.info(f"Loaded {len(self.data)} cache entries from {self.snapshot_path}")

    def get_raw(self, key: str) -> Optional[Any]:
        return self.data.get(key)

    def put_raw(self, key: str, value: Any) -> None:
        self.data[key] = value

    def get(self, key: str) -> Optional[Coordinate]:
        value = self.data.get(key)
        if value is None:
            return None
        return _decode_coordinate(key, value)

    def put(self, key: str, coordinate: Coordinate) -> None:
        self.data[key] = coordinate.to_dict()

    def keys(self, prefix: Optional[str] = None) -> List[str]:
        return sorted(k for k in self.data if prefix is None or k.startswith(prefix))

    def clear(self, prefix: str = GEOCODE_PREFIX) -> int:
        doomed = [k for k in self.data if k.startswith(prefix)]
        for k in doomed:
            del self.data[k]
        return len(doomed)

    def close(self) -> None:
        if self.snapshot_path is None:
            return
        self.snapshot_path.parent.mkdir(parents=True, exist_ok=True)
        self.snapshot_path.write_text(json.dumps(self.data, ensure_ascii=False), encoding="utf8")
        logger.info(f"Wrote {len(self.data)} cache entries to {self.snapshot_path}")


def open_cache(path: Path | str | None) -> CoordinateStore:
    """Pick a backend from a path: *.json snapshots stay in memory, anything else is DuckDB."""
    if path is None:
        return InMemoryCoordinateCache()
    path = Path(path)
    if path.suffix.lower() == ".json":
        return InMemoryCoordinateCache(path)
    return DuckDBCoordinateCache(path)


def load_coordinate_table(path: Path | str) -> Dict[str, Coordinate]:
    """
    Read an address -> coordinate table and normalize its addresses.

    Accepts a JSON object ({"address": {"lat": .., "lon": ..}}) or a CSV
    with address, lat and lon columns.

    Raises:
        ParseError: if the file is missing, unreadable or has invalid entries
    """
    path = Path(path)
    if path.suffix.lower() == ".csv":
        raw = _read_coordinate_csv(path)
    else:
        try:
            raw = json.loads(path.read_text(encoding="utf8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ParseError(str(path), str(e), original=e) from e

    try:
        entries = _ENTRY_MAP.validate_python(raw)
    except ValidationError as e:
        raise ParseError.from_validation(str(path), e) from e

    table: Dict[str, Coordinate] = {}
    for address, entry in entries.items():
        normalized = normalize_address(address)
        # snapshots written by export_cache already carry the prefix
        if normalized.startswith(GEOCODE_PREFIX):
            normalized = normalized[len(GEOCODE_PREFIX):]
        if normalized:
            table[normalized] = entry.to_coordinate()
    logger.info(f"Loaded {len(table)} coordinates from {path}")
    return table


def _read_coordinate_csv(path: Path) -> Dict[str, Any]:
    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise ParseError(str(path), str(e), original=e) from e

    columns = {c.strip().lower(): c for c in df.columns}
    missing = [c for c in ("address", "lat", "lon") if c not in columns]
    if missing:
        raise ParseError(str(path), f"missing columns: {', '.join(missing)}")

    return {
        row[columns["address"]]: {
            "lat": row[columns["lat"]].replace(",", "."),
            "lon": row[columns["lon"]].replace(",", "."),
        }
        for _, row in df.iterrows()
    }


def import_cache(store: CoordinateStore, path: Path | str) -> int:
    """Seed `store` with every entry of a snapshot or preload file."""
    table = load_coordinate_table(path)
    return store.seed({cache_key(address): c for address, c in table.items()})


def export_cache(store: CoordinateStore, path: Path | str) -> int:
    """Write the geocode entries of `store` to a JSON snapshot keyed by normalized address."""
    path = Path(path)
    snapshot = {
        key[len(GEOCODE_PREFIX):]: coordinate.to_dict()
        for key, coordinate in store.items(GEOCODE_PREFIX).items()
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(snapshot, ensure_ascii=False, indent=2), encoding="utf8")
    logger.info(f"Exported {len(snapshot)} cache entries to {path}")
    return len(snapshot)
