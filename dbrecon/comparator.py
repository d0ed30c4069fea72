"""Type- and semantics-aware comparison of two cell values

:func:`compare_values` (or a long-lived :class:`ValueComparator`) classifies a
pair of cells as

* ``EXACT``    – identical, or semantically identical (``"completed"`` vs
  ``"fulfilled"`` in a status column)
* ``DELTA``    – numerically / temporally different but within tolerance
* ``MISMATCH`` – anything else

The comparator is total: every pair of cells yields an :class:`Outcome`, never
an exception.  Unknown type combinations degrade to a strict-equality check.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional

import pandas as pd

from dbrecon.values import Scalar, ScalarKind, parse_timestamp, seconds_between

# Timestamps closer than this are a DELTA match; not affected by tolerance config
TEMPORAL_WINDOW_SECONDS = 1.0

# Plain decimal literal: optional sign, digits with optional fraction, optional exponent
_DECIMAL_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


class MatchType(str, Enum):
    """Classification of a field (or a whole record), ordered by severity."""

    EXACT = "exact"
    DELTA = "delta"
    MISMATCH = "mismatch"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    @classmethod
    def worst(cls, *types: "MatchType") -> "MatchType":
        """Most severe of ``types``; ``EXACT`` when none are given."""
        return max(types, key=lambda t: t.severity, default=cls.EXACT)


_SEVERITY = {MatchType.EXACT: 0, MatchType.DELTA: 1, MatchType.MISMATCH: 2}


@dataclass(frozen=True)
class Outcome:
    """Result of comparing two cells.

    ``magnitude`` is 0 for exact matches, the (non-negative) numeric or
    temporal distance for deltas, and either that distance or ``None`` for
    mismatches where a distance is not meaningful (type mismatch, unrelated
    strings, null vs value).
    """

    match_type: MatchType
    magnitude: Optional[float] = None

    @classmethod
    def exact(cls) -> "Outcome":
        return cls(MatchType.EXACT, 0.0)

    @classmethod
    def delta(cls, magnitude: float) -> "Outcome":
        return cls(MatchType.DELTA, magnitude)

    @classmethod
    def mismatch(cls, magnitude: Optional[float] = None) -> "Outcome":
        return cls(MatchType.MISMATCH, magnitude)


@dataclass(frozen=True)
class ToleranceConfig:
    """Default numeric delta plus optional per-field overrides."""

    default: float = 0.01
    field_precision: Mapping[str, float] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.default < 0:
            raise ValueError(f"Tolerance must be non-negative, got {self.default}")
        bad = {k: v for k, v in self.field_precision.items() if v < 0}
        if bad:
            raise ValueError(f"Per-field tolerances must be non-negative: {bad}")
        object.__setattr__(self, "field_precision", MappingProxyType(dict(self.field_precision)))

    def for_field(self, field_name: str) -> float:
        """Override for ``field_name`` if one is configured, else the default."""
        if field_name in self.field_precision:
            return self.field_precision[field_name]
        return self.default


def normalize_token(value: str) -> str:
    """Lower-case and drop underscores / hyphens: ``"In-Progress"`` -> ``"inprogress"``."""
    return value.lower().replace("_", "").replace("-", "")


@dataclass(frozen=True)
class FieldKeywords:
    """Name fragments that give a field temporal, status or payment semantics."""

    temporal: frozenset = frozenset({"date", "time", "timestamp", "created", "updated", "modified"})
    status: frozenset = frozenset({"status", "state", "condition"})
    payment: frozenset = frozenset({"payment", "method", "type"})

    @classmethod
    def from_lists(
        cls,
        temporal: Optional[Iterable[str]] = None,
        status: Optional[Iterable[str]] = None,
        payment: Optional[Iterable[str]] = None,
    ) -> "FieldKeywords":
        """Build keywords, keeping the defaults for any list left as ``None``."""
        base = cls()
        return cls(
            temporal=frozenset(k.lower() for k in temporal) if temporal is not None else base.temporal,
            status=frozenset(k.lower() for k in status) if status is not None else base.status,
            payment=frozenset(k.lower() for k in payment) if payment is not None else base.payment,
        )

    @staticmethod
    def _matches(field_name: str, keywords: frozenset) -> bool:
        lowered = field_name.lower()
        return any(keyword in lowered for keyword in keywords)

    def is_temporal(self, field_name: str) -> bool:
        return self._matches(field_name, self.temporal)

    def is_status(self, field_name: str) -> bool:
        return self._matches(field_name, self.status)

    def is_payment(self, field_name: str) -> bool:
        return self._matches(field_name, self.payment)


DEFAULT_KEYWORDS = FieldKeywords()


class EquivalenceTable:
    """Immutable canonical-value -> aliases lookup.

    Two values are equivalent when they normalize to the same token, when one
    is a canonical key and the other one of its aliases, or when both are
    aliases of the same key.
    """

    def __init__(self, groups: Mapping[str, Iterable[str]]):
        self._groups = MappingProxyType({
            normalize_token(key): frozenset(normalize_token(alias) for alias in aliases)
            for key, aliases in groups.items()
        })

    @property
    def groups(self) -> Mapping[str, frozenset]:
        return self._groups

    def are_equivalent(self, first: str, second: str) -> bool:
        a, b = normalize_token(first), normalize_token(second)
        if a == b:
            return True
        for key, aliases in self._groups.items():
            if a == key and b in aliases:
                return True
            if b == key and a in aliases:
                return True
            if a in aliases and b in aliases:
                return True
        return False

    def __contains__(self, value: str) -> bool:
        token = normalize_token(value)
        return any(token == key or token in aliases for key, aliases in self._groups.items())

    def __repr__(self) -> str:
        return f"EquivalenceTable({len(self._groups)} groups)"


STATUS_EQUIVALENCES = EquivalenceTable({
    "completed": ["fulfilled", "complete", "done", "finished"],
    "pending": ["processing", "in_progress", "active", "waiting"],
    "failed": ["cancelled", "canceled", "rejected", "declined", "error"],
    "success": ["successful", "ok", "approved"],
    "active": ["enabled", "live", "running"],
    "inactive": ["disabled", "paused", "stopped"],
})

PAYMENT_EQUIVALENCES = EquivalenceTable({
    "credit_card": ["creditcard", "cc", "card"],
    "debit_card": ["debitcard", "debit"],
    "bank_transfer": ["wire_transfer", "wire", "transfer", "ach"],
    "paypal": ["pp"],
    "cash": ["money", "currency"],
})


def _to_decimal(number: float) -> Decimal:
    # shortest repr keeps 1.01 as 1.01 rather than its binary expansion
    return Decimal(repr(number))


def _parse_decimal(text: str) -> Optional[Decimal]:
    candidate = text.strip()
    if not _DECIMAL_RE.fullmatch(candidate):
        return None
    return Decimal(candidate)


def _classify_numeric(a: Decimal, b: Decimal, tolerance: float) -> Outcome:
    if a == b:
        return Outcome.exact()
    distance = abs(a - b)
    if distance <= _to_decimal(float(tolerance)):
        return Outcome.delta(float(distance))
    return Outcome.mismatch(float(distance))


def _classify_temporal(a: pd.Timestamp, b: pd.Timestamp) -> Outcome:
    seconds = seconds_between(a, b)
    if seconds == 0:
        return Outcome.exact()
    if seconds <= TEMPORAL_WINDOW_SECONDS:
        return Outcome.delta(seconds)
    return Outcome.mismatch(seconds)


class ValueComparator:
    """
    Classify pairs of cell values under a tolerance configuration.

    The comparator is stateless apart from its (immutable) configuration, so a
    single instance can be shared between threads.
    """

    def __init__(
        self,
        tolerance: Optional[ToleranceConfig] = None,
        keywords: FieldKeywords = DEFAULT_KEYWORDS,
        status_table: EquivalenceTable = STATUS_EQUIVALENCES,
        payment_table: EquivalenceTable = PAYMENT_EQUIVALENCES,
    ):
        self.tolerance = tolerance or ToleranceConfig()
        self.keywords = keywords
        self.status_table = status_table
        self.payment_table = payment_table

    def compare(self, first: Any, second: Any, field_name: str) -> Outcome:
        """
        Compare two cells of the field ``field_name``.

        Parameters
        first, second : Any
            Raw cell values or :class:`~dbrecon.values.Scalar` instances
        field_name : str
            Name used to resolve the tolerance and the field's semantics
            (temporal / status / payment)

        Returns
        Outcome
            Never raises for well-formed scalars
        """
        a, b = Scalar.of(first), Scalar.of(second)

        if a.is_null and b.is_null:
            return Outcome.exact()
        if a.is_null or b.is_null:
            return Outcome.mismatch()

        if a.kind is ScalarKind.NUMBER and b.kind is ScalarKind.NUMBER:
            return _classify_numeric(
                _to_decimal(a.value), _to_decimal(b.value), self.tolerance.for_field(field_name)
            )
        if a.kind is ScalarKind.TIMESTAMP and b.kind is ScalarKind.TIMESTAMP:
            return _classify_temporal(a.value, b.value)
        if a.kind is ScalarKind.TEXT and b.kind is ScalarKind.TEXT:
            return self._compare_text(a.value, b.value, field_name)

        # booleans and mixed kinds
        if a.kind is b.kind and a.value == b.value:
            return Outcome.exact()
        return Outcome.mismatch()

    def _compare_text(self, a: str, b: str, field_name: str) -> Outcome:
        if a == b:
            return Outcome.exact()

        # Each semantic rule only short-circuits on success; otherwise fall through
        if self.keywords.is_temporal(field_name):
            ts_a, ts_b = parse_timestamp(a), parse_timestamp(b)
            if ts_a is not None and ts_b is not None:
                return _classify_temporal(ts_a, ts_b)

        if self.keywords.is_status(field_name) and self.status_table.are_equivalent(a, b):
            return Outcome.exact()

        if self.keywords.is_payment(field_name) and self.payment_table.are_equivalent(a, b):
            return Outcome.exact()

        num_a, num_b = _parse_decimal(a), _parse_decimal(b)
        if num_a is not None and num_b is not None:
            return _classify_numeric(num_a, num_b, self.tolerance.for_field(field_name))

        return Outcome.mismatch()


def compare_values(
    first: Any,
    second: Any,
    field_name: str,
    tolerance: Optional[ToleranceConfig] = None,
) -> Outcome:
    """Convenience wrapper around :meth:`ValueComparator.compare`."""
    return ValueComparator(tolerance).compare(first, second, field_name)
