from __future__ import annotations

from typing import Any, ClassVar, Type
import json
import logging
from pathlib import Path

import pandas as pd

from abc import ABC, abstractmethod
from .geocoding.models import Row
from .utils.errors import ParseError

logger = logging.getLogger('RowLoader')


class RowLoader(ABC):
    """Abstract base class for input row sources.

    Subclasses set a SOURCE and implement `_load_raw()` returning a
    DataFrame of strings in the file's own column order.

    Usage:
        # Dispatch by explicit source
        rows, columns = RowLoader.from_source('csv', path='data.csv')

        # Or let the file suffix decide
        rows, columns = load_rows('data.csv')
    """

    # Unique key for each subclass (e.g., 'csv', 'json')
    SOURCE: ClassVar[str]

    # File suffixes handled by the subclass
    SUFFIXES: ClassVar[tuple[str, ...]] = ()

    # Global registry of source loaders
    _REGISTRY: ClassVar[dict[str, Type['RowLoader']]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)

        # Auto-register subclasses that DIRECTLY DEFINE a SOURCE string
        if "SOURCE" in cls.__dict__:
            key = str(cls.SOURCE).lower()
            if key in RowLoader._REGISTRY and RowLoader._REGISTRY[key] is not cls:
                raise RuntimeError(f"Duplicate loader SOURCE '{key}' for {cls.__name__}")
            RowLoader._REGISTRY[key] = cls
            logger.debug(f"Registered RowLoader: {cls.__name__} as '{key}'")

    def __init__(self, path: Path | str):
        self.path = Path(path)

    @classmethod
    def from_source(cls, source: str, path: Path | str) -> tuple[list[Row], list[str]]:
        """Factory to load rows from a registered source.

        Raises:
            ValueError: if the source is unknown
            ParseError: if the file cannot be read
        """
        key = str(source).lower()
        try:
            loader_cls = cls._REGISTRY[key]
        except KeyError as e:
            raise ValueError(
                f"Unknown source '{source}'. "
                f"Known sources: {sorted(cls._REGISTRY.keys())}"
            ) from e
        return loader_cls(path).load()

    @classmethod
    def source_for(cls, path: Path | str) -> str:
        suffix = Path(path).suffix.lower()
        for key, loader_cls in cls._REGISTRY.items():
            if suffix in loader_cls.SUFFIXES:
                return key
        raise ValueError(f"No row loader for '{suffix}' files")

    def load(self) -> tuple[list[Row], list[str]]:
        """Read the source and wrap each record in a Row, keeping file order."""
        try:
            frame = self._load_raw()
        except ParseError:
            raise
        except (OSError, ValueError) as e:
            raise ParseError(str(self.path), str(e), original=e) from e

        columns = [str(c) for c in frame.columns]
        frame = frame.fillna("").astype(str)
        # Drop records whose every cell is blank
        frame = frame[frame.apply(lambda r: any(v.strip() for v in r), axis=1)] if len(frame) else frame

        rows = [
            Row(index=i, fields=dict(zip(columns, values)))
            for i, values in enumerate(frame.itertuples(index=False, name=None))
        ]
        logger.info(f"Loaded {len(rows)} rows with columns {columns} from {self.path}")
        return rows, columns

    @abstractmethod
    def _load_raw(self) -> pd.DataFrame:
        """Load raw records as a DataFrame."""
        ...


class CSVRowLoader(RowLoader):
    SOURCE = "csv"
    SUFFIXES = (".csv", ".txt")

    def _load_raw(self) -> pd.DataFrame:
        return pd.read_csv(
            self.path,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            encoding="utf-8-sig",
        )


class JSONRowLoader(RowLoader):
    """A JSON array of flat objects."""
    SOURCE = "json"
    SUFFIXES = (".json",)

    def _load_raw(self) -> pd.DataFrame:
        try:
            records = json.loads(self.path.read_text(encoding="utf8"))
        except json.JSONDecodeError as e:
            raise ParseError(str(self.path), f"invalid JSON: {e}", original=e) from e
        if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
            raise ParseError(str(self.path), "expected a JSON array of objects")
        return pd.DataFrame.from_records(records, coerce_float=False).astype(object)


def load_rows(path: Path | str, source: str | None = None) -> tuple[list[Row], list[str]]:
    """Load rows from `path`, picking the loader by suffix unless `source` is given."""
    if not Path(path).exists():
        raise ParseError(str(path), "file not found")
    return RowLoader.from_source(source or RowLoader.source_for(path), path)
