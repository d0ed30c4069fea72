"""Data sources that produce rows for a comparison

Every source exposes ``fetch(query_or_identifier) -> list[dict]``.  The
reconciliation core only ever sees those rows, so a new backend only needs
that one method.

* :class:`FileDataSource` – CSV / Parquet / JSON files read with pandas
* :class:`SqlDataSource`  – any SQLAlchemy-supported database
* :class:`InMemoryDataSource` – pre-built rows or DataFrames (tests, notebooks)

Connection and query errors are **not** caught here; they propagate to the
caller unchanged.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union

import pandas as pd
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine

from dbrecon.config_schema import DataSourceConfig

# Logging
LOGGER = logging.getLogger(__name__)


class DataSourceError(Exception):
    """Raised when a source cannot interpret the requested identifier"""
    pass


class DataSource(Protocol):
    def fetch(self, query: str) -> List[Dict[str, Any]]:
        ...


def frame_to_rows(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Convert a DataFrame into row dicts, turning NaN / NaT into ``None``."""
    return [
        {key: (None if pd.api.types.is_scalar(value) and pd.isna(value) else value)
         for key, value in record.items()}
        for record in df.to_dict(orient="records")
    ]


class FileDataSource:
    """Read rows from files; the identifier passed to :meth:`fetch` is a path."""

    READERS = {
        ".csv": pd.read_csv,
        ".parquet": pd.read_parquet,
        ".json": lambda path: pd.read_json(path, orient="records"),
    }

    def __init__(self, base_dir: Optional[Union[str, os.PathLike]] = None):
        self.base_dir = Path(base_dir) if base_dir else None

    def _resolve(self, identifier: str) -> Path:
        path = Path(identifier).expanduser()
        if not path.is_absolute() and self.base_dir is not None:
            path = self.base_dir / path
        return path.resolve()

    def fetch(self, query: str) -> List[Dict[str, Any]]:
        path = self._resolve(query)
        reader = self.READERS.get(path.suffix.lower())
        if reader is None:
            raise DataSourceError(f"Unsupported file type: {path.suffix or path.name}")
        if not path.is_file():
            raise FileNotFoundError(f"Data file not found: {path}")

        rows = frame_to_rows(reader(path))
        LOGGER.info("Loaded %d rows from %s", len(rows), path)
        return rows


class SqlDataSource:
    """
    Run queries through a SQLAlchemy engine.

    Parameters
    url : str, optional
        Database URL, e.g. ``mssql+pyodbc://...`` or ``sqlite:///data.db``
    engine : sqlalchemy.engine.Engine, optional
        Pre-built engine; takes precedence over ``url``
    """

    def __init__(self, url: Optional[str] = None, engine: Optional[Engine] = None):
        if url is None and engine is None:
            raise DataSourceError("SqlDataSource needs either a url or an engine")
        self.url = url
        self._engine = engine

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = create_engine(self.url)
        return self._engine

    def fetch(self, query: str) -> List[Dict[str, Any]]:
        with self.engine.connect() as conn:
            df = pd.read_sql(text(query), conn)
        rows = frame_to_rows(df)
        LOGGER.info("Query returned %d rows", len(rows))
        return rows

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    def __enter__(self) -> "SqlDataSource":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class InMemoryDataSource:
    """Serve pre-built tables by name."""

    def __init__(self, tables: Mapping[str, Union[pd.DataFrame, Sequence[Mapping[str, Any]]]]):
        self.tables = dict(tables)

    def fetch(self, query: str) -> List[Dict[str, Any]]:
        if query not in self.tables:
            raise DataSourceError(f"Unknown table: {query!r}")
        table = self.tables[query]
        if isinstance(table, pd.DataFrame):
            return frame_to_rows(table)
        return [dict(row) for row in table]


def build_data_source(config: DataSourceConfig) -> Union[FileDataSource, SqlDataSource]:
    """Instantiate the source described by ``config``."""
    if config.type == "sql":
        return SqlDataSource(url=config.url)
    return FileDataSource(base_dir=config.base_dir)
