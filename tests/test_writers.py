"""Tests for report rendering and export."""

from __future__ import annotations

import json
from pathlib import Path

import pandas as pd

from dbrecon.comparator import ToleranceConfig
from dbrecon.engine import compare_datasets
from dbrecon.mapper import FieldMapping, MappingOrigin
from dbrecon.report import ReportConfiguration, build_report
from dbrecon.runner import QueryRunResult
from dbrecon.writers import (
    export_field_outcomes,
    render_query_result,
    render_report,
    save_report_json,
    save_suite_results,
)

TOL = ToleranceConfig(default=0.01)


def _result(source_values, target_values):
    return compare_datasets(
        [{"v": v} for v in source_values],
        [{"v": v} for v in target_values],
        [FieldMapping("v", "v")],
        tolerance=TOL,
    )


def _report(source_values, target_values):
    mappings = [FieldMapping("v", "v", MappingOrigin.DETECTED)]
    return build_report(
        _result(source_values, target_values),
        configuration=ReportConfiguration.from_run(TOL, mappings),
    )


def test_render_report_sections() -> None:
    lines = render_report(_report([1.0, 2.0, 3.0], [1.0, 2.005, 3.02]))

    assert lines[0] == "📊 DATASET COMPARISON REPORT"
    assert "Total Records Compared: 3" in lines
    assert "Exact Matches: 1 (33.33%)" in lines
    assert "Overall Accuracy: 66.67%" in lines
    assert "Delta Matches Analysis:" in lines
    assert "  • Max Delta: 0.005000" in lines
    assert "Top Mismatches (showing first 1):" in lines
    assert "  1. Record 2, Field 'v': 3.0 ≠ 3.02" in lines
    assert "Largest Delta Differences (showing top 1):" in lines
    assert "Field Mappings Used: 1 (0 user-defined, 1 auto-detected)" in lines
    assert not any(line.startswith("Record count mismatch") for line in lines)


def test_render_report_limits_console_lists() -> None:
    lines = render_report(_report(list(range(8)), [v + 10 for v in range(8)]))

    assert "Top Mismatches (showing first 5):" in lines
    assert sum(1 for line in lines if line.startswith("  ") and "≠" in line) == 5


def test_render_report_flags_count_mismatch() -> None:
    lines = render_report(build_report(_result([1, 2, 3], [1, 2])))

    assert "Record count mismatch: source has 3, target has 2" in lines
    assert "Delta Matches Analysis:" not in lines


def test_render_query_result_success() -> None:
    result = QueryRunResult(
        suite_name="orders",
        query_name="all",
        query="SELECT * FROM orders",
        success=True,
        source_count=2,
        target_count=2,
        field_stats={"total": 4, "ok": 3, "failed": 1},
        wrong_fields=["amount: 20.0 != 25.0"],
    )

    assert render_query_result(result) == [
        "TEST: orders",
        "QUERY: SELECT * FROM orders",
        "RECORD COUNT: SOURCE: 2; TARGET: 2",
        "FIELDS: TOTAL: 4, OK: 3, FAILED: 1",
        "WRONG FIELDS: amount: 20.0 != 25.0",
    ]


def test_render_query_result_without_wrong_fields() -> None:
    clean = QueryRunResult("orders", "all", "q", True, source_count=1, target_count=1,
                           field_stats={"total": 1, "ok": 1, "failed": 0})
    empty = QueryRunResult("orders", "all", "q", True, source_count=0, target_count=3)

    assert render_query_result(clean)[-1] == "WRONG FIELDS: None"
    assert render_query_result(empty)[-1] == "WRONG FIELDS: No data to compare"


def test_render_query_result_failure() -> None:
    failed = QueryRunResult("orders", "all", "q", False, error="no such table")
    assert render_query_result(failed) == ["TEST: orders", "QUERY: q", "FAILED: no such table"]


def test_save_report_json_creates_directories(tmp_path: Path) -> None:
    path = save_report_json(_report([1.0], [1.5]), tmp_path / "nested" / "dir" / "report.json")

    payload = json.loads(path.read_text(encoding="utf-8"))
    assert payload["summary"]["significant_mismatches"]["count"] == 1
    assert payload["detailed_analysis"]["top_mismatches"][0]["field"] == "v"
    assert payload["configuration"]["acceptable_delta"] == 0.01


def test_save_suite_results(tmp_path: Path) -> None:
    results = [QueryRunResult("orders", "all", "q", False, error="boom")]
    payload = json.loads(save_suite_results(results, tmp_path / "suite.json").read_text(encoding="utf-8"))

    assert payload[0]["error"] == "boom"
    assert payload[0]["report"] is None


def test_export_field_outcomes(tmp_path: Path) -> None:
    path = export_field_outcomes(_result([1.0, 2.0], [1.004, 9.0]), tmp_path / "out" / "fields.csv")

    frame = pd.read_csv(path)
    assert len(frame) == 2
    assert list(frame["match_type"]) == ["delta", "mismatch"]
