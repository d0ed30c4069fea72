"""Scalar values carried by a dataset row.

Rows arrive from very different producers (DB drivers, CSV files read by
pandas, hand-written dicts in tests), so every raw cell is lifted into a small
tagged variant before comparison.  Text that merely *looks* numeric or temporal
stays Text here; coercion is the comparator's job.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping

import numpy as np
import pandas as pd

# A row is a flat, ordered mapping of field name -> raw cell value
Row = Mapping[str, Any]


class ScalarKind(str, Enum):
    """Kinds of scalar a row cell can hold."""

    NULL = "null"
    NUMBER = "number"
    BOOLEAN = "boolean"
    TEXT = "text"
    TIMESTAMP = "timestamp"


@dataclass(frozen=True)
class Scalar:
    """A classified cell value.

    ``value`` holds a ``float`` for numbers, ``bool`` for booleans, ``str`` for
    text and ``pandas.Timestamp`` for timestamps.  ``raw`` keeps the original
    object so strict-equality fallbacks and reports see what the source sent.
    """

    kind: ScalarKind
    value: Any = None
    raw: Any = None

    @property
    def is_null(self) -> bool:
        return self.kind is ScalarKind.NULL

    @classmethod
    def null(cls, raw: Any = None) -> "Scalar":
        return cls(ScalarKind.NULL, None, raw)

    @classmethod
    def of(cls, raw: Any) -> "Scalar":
        """Lift a raw Python / numpy / pandas value into a ``Scalar``."""
        if isinstance(raw, Scalar):
            return raw
        if raw is None:
            return cls.null()
        if pd.api.types.is_scalar(raw) and pd.isna(raw):
            return cls.null(raw)

        # bool is a subclass of int, so it must be tested first
        if isinstance(raw, (bool, np.bool_)):
            return cls(ScalarKind.BOOLEAN, bool(raw), raw)
        if isinstance(raw, (int, float, Decimal, np.integer, np.floating)):
            return cls(ScalarKind.NUMBER, float(raw), raw)
        if isinstance(raw, (datetime, date, np.datetime64)):
            return cls(ScalarKind.TIMESTAMP, pd.Timestamp(raw), raw)
        if isinstance(raw, str):
            return cls(ScalarKind.TEXT, raw, raw)

        # bytes, UUIDs and other driver-specific objects
        return cls(ScalarKind.TEXT, str(raw), raw)


# Words pandas resolves against the wall clock; never a stored timestamp
_RELATIVE_DATE_WORDS = frozenset({"now", "today", "tomorrow", "yesterday"})


def _as_utc(ts: pd.Timestamp) -> pd.Timestamp:
    """Naive timestamps are read as UTC so they compare with aware ones."""
    if ts.tzinfo is None:
        return ts.tz_localize("UTC")
    return ts.tz_convert("UTC")


def seconds_between(a: pd.Timestamp, b: pd.Timestamp) -> float:
    """Absolute distance between two timestamps, in seconds."""
    if (a.tzinfo is None) != (b.tzinfo is None):
        a, b = _as_utc(a), _as_utc(b)
    return abs((a - b).total_seconds())


def parse_timestamp(text: str) -> pd.Timestamp | None:
    """Parse ``text`` as a timestamp, returning ``None`` when it is not one."""
    candidate = text.strip() if text else ""
    if not candidate or candidate.lower() in _RELATIVE_DATE_WORDS:
        return None
    try:
        parsed = pd.Timestamp(candidate)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(parsed):
        return None
    return parsed
