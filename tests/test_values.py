"""Tests for scalar classification of raw cell values."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

import numpy as np
import pandas as pd
import pytest

from dbrecon.values import Scalar, ScalarKind, parse_timestamp, seconds_between


@pytest.mark.parametrize(
    "raw, kind",
    [
        (None, ScalarKind.NULL),
        (float("nan"), ScalarKind.NULL),
        (pd.NaT, ScalarKind.NULL),
        (pd.NA, ScalarKind.NULL),
        (True, ScalarKind.BOOLEAN),
        (np.bool_(False), ScalarKind.BOOLEAN),
        (3, ScalarKind.NUMBER),
        (2.5, ScalarKind.NUMBER),
        (Decimal("9.99"), ScalarKind.NUMBER),
        (np.int32(4), ScalarKind.NUMBER),
        (datetime(2024, 1, 1, 8, 30), ScalarKind.TIMESTAMP),
        (date(2024, 1, 1), ScalarKind.TIMESTAMP),
        (np.datetime64("2024-01-01T00:00:00"), ScalarKind.TIMESTAMP),
        ("2024-01-01", ScalarKind.TEXT),
        ("42", ScalarKind.TEXT),
    ],
)
def test_scalar_kind(raw, kind) -> None:
    assert Scalar.of(raw).kind is kind


def test_text_is_not_coerced() -> None:
    """Numeric-looking text stays text at the model level."""
    scalar = Scalar.of("3.14")
    assert scalar.kind is ScalarKind.TEXT
    assert scalar.value == "3.14"


def test_numbers_are_floats_and_raw_is_kept() -> None:
    scalar = Scalar.of(Decimal("1.10"))
    assert scalar.value == pytest.approx(1.1)
    assert scalar.raw == Decimal("1.10")


def test_unknown_objects_become_text() -> None:
    value = uuid.UUID("12345678-1234-5678-1234-567812345678")
    scalar = Scalar.of(value)
    assert scalar.kind is ScalarKind.TEXT
    assert scalar.value == str(value)


def test_scalar_of_is_idempotent() -> None:
    scalar = Scalar.of(5)
    assert Scalar.of(scalar) is scalar


def test_parse_timestamp() -> None:
    assert parse_timestamp("2024-03-01 10:00:00") == pd.Timestamp("2024-03-01 10:00:00")
    assert parse_timestamp("not a date") is None
    assert parse_timestamp("") is None
    assert parse_timestamp("   ") is None


@pytest.mark.parametrize("word", ["now", "today", "Tomorrow", " yesterday "])
def test_parse_timestamp_rejects_relative_words(word) -> None:
    assert parse_timestamp(word) is None


def test_seconds_between_mixed_timezones() -> None:
    naive = pd.Timestamp("2024-01-01 10:00:00")
    aware = pd.Timestamp("2024-01-01 10:00:02", tz="UTC")
    assert seconds_between(naive, aware) == pytest.approx(2.0)
