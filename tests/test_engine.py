"""Tests for the positional reconciliation engine."""

from __future__ import annotations

from typing import List, Tuple

import pytest

from dbrecon.comparator import MatchType, ToleranceConfig
from dbrecon.engine import (
    FIELD_OUTCOME_COLUMNS,
    ReconciliationEngine,
    compare_datasets,
    default_progress_interval,
)
from dbrecon.mapper import FieldMapping, MappingConflictError

TOL = ToleranceConfig(default=0.01)


def _v_rows(values: List[float]) -> List[dict]:
    return [{"v": v} for v in values]


def test_end_to_end_classification() -> None:
    """Exact, delta and mismatch rows are counted separately."""
    result = compare_datasets(
        _v_rows([1.000, 2.000, 3.000]),
        _v_rows([1.000, 2.005, 3.020]),
        [FieldMapping("v", "v")],
        tolerance=TOL,
    )

    assert [r.overall for r in result.records] == [MatchType.EXACT, MatchType.DELTA, MatchType.MISMATCH]
    assert result.records[1].fields["v"].delta == pytest.approx(0.005)
    assert result.records[2].fields["v"].delta == pytest.approx(0.02)
    assert (result.exact_matches, result.delta_matches, result.significant_mismatches) == (1, 1, 1)
    assert result.total_records == 3


def test_worst_field_outcome_wins() -> None:
    """Nine exact fields and one mismatch make the record a mismatch."""
    fields = [f"f{i}" for i in range(10)]
    source = [{name: 1 for name in fields}]
    target = [{**{name: 1 for name in fields}, "f9": 2}]

    result = compare_datasets(source, target, [FieldMapping(f, f) for f in fields], tolerance=TOL)

    record = result.records[0]
    assert sum(fc.match_type is MatchType.EXACT for fc in record.fields.values()) == 9
    assert record.overall is MatchType.MISMATCH
    assert result.significant_mismatches == 1


def test_delta_without_mismatch_is_delta_record() -> None:
    result = compare_datasets(
        [{"a": 1.0, "b": "x"}],
        [{"a": 1.001, "b": "x"}],
        [FieldMapping("a", "a"), FieldMapping("b", "b")],
        tolerance=TOL,
    )
    assert result.records[0].overall is MatchType.DELTA
    assert result.delta_matches == 1


def test_only_aligned_rows_are_compared() -> None:
    """Excess rows on the longer side are dropped, but their count is kept."""
    result = compare_datasets(_v_rows([1, 2, 3, 4, 5]), _v_rows([1, 2, 3]), [FieldMapping("v", "v")], tolerance=TOL)

    assert result.total_records == 3
    assert len(result.records) == 3
    assert result.count_mismatch
    assert result.unaligned_source == 2
    assert result.unaligned_target == 0


def test_empty_mapping_list_is_vacuously_exact() -> None:
    result = compare_datasets(_v_rows([1, 2]), _v_rows([5, 6]), [], tolerance=TOL)

    assert result.exact_matches == 2
    assert all(not r.fields for r in result.records)


def test_target_field_name_and_source_tolerance() -> None:
    """Values come from each side's own field; tolerance is looked up by source field."""
    tolerance = ToleranceConfig(default=0.01, field_precision={"amount": 1.0})
    result = compare_datasets(
        [{"amount": 10.0}],
        [{"total_amount": 10.5}],
        [FieldMapping("amount", "total_amount")],
        tolerance=tolerance,
    )
    comparison = result.records[0].fields["amount"]
    assert comparison.target_field == "total_amount"
    assert comparison.source_value == 10.0
    assert comparison.target_value == 10.5
    assert comparison.match_type is MatchType.DELTA


def test_missing_fields_read_as_null() -> None:
    mappings = [FieldMapping("a", "a"), FieldMapping("b", "b")]
    result = compare_datasets([{"a": 1}, {"a": 1, "b": 2}], [{"a": 1}, {"a": 1}], mappings, tolerance=TOL)

    assert result.records[0].overall is MatchType.EXACT
    assert result.records[1].fields["b"].match_type is MatchType.MISMATCH


def test_no_early_termination_after_mismatch() -> None:
    result = compare_datasets(_v_rows([1, 2, 3]), _v_rows([9, 2, 3]), [FieldMapping("v", "v")], tolerance=TOL)
    assert [r.overall for r in result.records] == [MatchType.MISMATCH, MatchType.EXACT, MatchType.EXACT]


def test_progress_callback_milestones() -> None:
    calls: List[Tuple[int, int]] = []
    rows = _v_rows(list(range(250)))

    result = compare_datasets(rows, rows, [FieldMapping("v", "v")], tolerance=TOL,
                              progress=lambda done, total: calls.append((done, total)))

    assert len(calls) == 10
    assert calls[0] == (25, 250)
    assert calls[-1] == (250, 250)
    assert result.exact_matches == 250


def test_small_runs_emit_no_progress_by_default() -> None:
    calls: List[Tuple[int, int]] = []
    rows = _v_rows(list(range(50)))
    compare_datasets(rows, rows, [FieldMapping("v", "v")], progress=lambda d, t: calls.append((d, t)))
    assert calls == []
    assert default_progress_interval(100) is None
    assert default_progress_interval(101) == 10


def test_result_independent_of_observer() -> None:
    source = _v_rows([float(i) for i in range(150)])
    target = _v_rows([i + (0.005 if i % 3 == 0 else 0.5 if i % 5 == 0 else 0) for i in range(150)])
    mappings = [FieldMapping("v", "v")]

    quiet = ReconciliationEngine(tolerance=TOL).compare(source, target, mappings)
    observed = ReconciliationEngine(tolerance=TOL, progress=lambda d, t: None, progress_interval=7).compare(
        source, target, mappings
    )

    assert [r.overall for r in quiet.records] == [r.overall for r in observed.records]
    assert (quiet.exact_matches, quiet.delta_matches, quiet.significant_mismatches) == (
        observed.exact_matches, observed.delta_matches, observed.significant_mismatches
    )


def test_to_frame_flattens_field_outcomes() -> None:
    result = compare_datasets(
        _v_rows([1.0, 2.0]),
        _v_rows([1.0, 2.5]),
        [FieldMapping("v", "v")],
        tolerance=TOL,
    )
    frame = result.to_frame()

    assert list(frame.columns) == FIELD_OUTCOME_COLUMNS
    assert len(frame) == 2
    assert list(frame["match_type"]) == ["exact", "mismatch"]


def test_empty_datasets() -> None:
    result = compare_datasets([], [], [FieldMapping("v", "v")])
    assert result.total_records == 0
    assert result.records == []
    assert result.to_frame().empty


def test_reused_source_field_is_rejected() -> None:
    """Each source field keys one outcome per record, so it may be mapped once."""
    mappings = [FieldMapping("v", "a"), FieldMapping("v", "b")]
    with pytest.raises(MappingConflictError):
        compare_datasets([{"v": 1}], [{"a": 1, "b": 2}], mappings, tolerance=TOL)
