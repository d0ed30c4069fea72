"""Presentation and persistence of comparison reports

The rendering helpers return lists of lines instead of printing, so the
caller decides whether they go to a logger, stdout or a text file.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Iterable, List

from dbrecon.engine import ReconciliationResult
from dbrecon.report import Report

if TYPE_CHECKING:
    from dbrecon.runner import QueryRunResult

# Logging
LOGGER = logging.getLogger(__name__)

# How many entries of each detailed list the console report shows
CONSOLE_TOP_N = 5


def render_report(report: Report) -> List[str]:
    """Human-readable report, one line per list entry."""
    summary = report.summary
    lines = [
        "📊 DATASET COMPARISON REPORT",
        "=" * 50,
        "",
        "📈 SUMMARY STATISTICS:",
        f"Total Records Compared: {summary.total_records_compared}",
        f"Exact Matches: {summary.exact_matches.count} ({summary.exact_matches.percentage:.2f}%)",
        f"Delta Matches: {summary.delta_matches.count} ({summary.delta_matches.percentage:.2f}%)",
        f"Significant Mismatches: {summary.significant_mismatches.count} "
        f"({summary.significant_mismatches.percentage:.2f}%)",
        f"Overall Accuracy: {summary.overall_accuracy:.2f}%",
    ]
    if summary.source_record_count != summary.target_record_count:
        lines.append(
            f"Record count mismatch: source has {summary.source_record_count}, "
            f"target has {summary.target_record_count}"
        )

    analysis = report.detailed_analysis
    lines += ["", "🔍 DETAILED ANALYSIS:"]

    stats = analysis.delta_analysis
    if stats is not None:
        lines += [
            "",
            "Delta Matches Analysis:",
            f"  • Count: {stats.count}",
            f"  • Min Delta: {stats.min_delta:.6f}",
            f"  • Max Delta: {stats.max_delta:.6f}",
            f"  • Avg Delta: {stats.avg_delta:.6f}",
        ]

    if analysis.top_mismatches:
        shown = analysis.top_mismatches[:CONSOLE_TOP_N]
        lines += ["", f"Top Mismatches (showing first {len(shown)}):"]
        for i, m in enumerate(shown, start=1):
            lines.append(
                f"  {i}. Record {m.record_index}, Field '{m.field}': {m.source_value} ≠ {m.target_value}"
            )

    if analysis.top_deltas:
        shown = analysis.top_deltas[:CONSOLE_TOP_N]
        lines += ["", f"Largest Delta Differences (showing top {len(shown)}):"]
        for i, d in enumerate(shown, start=1):
            lines.append(
                f"  {i}. Record {d.record_index}, Field '{d.field}': "
                f"{d.source_value} vs {d.target_value} (Δ={d.delta:.6f})"
            )

    if report.configuration is not None:
        cfg = report.configuration
        lines += [
            "",
            "⚙️  CONFIGURATION:",
            f"Acceptable Delta: {cfg.acceptable_delta}",
            f"Field Mappings Used: {cfg.field_mappings_used} "
            f"({cfg.user_defined_mappings} user-defined, {cfg.detected_mappings} auto-detected)",
        ]
    return lines


def render_query_result(result: "QueryRunResult") -> List[str]:
    """Compact per-query block used by suite runs."""
    lines = [f"TEST: {result.suite_name}", f"QUERY: {result.query}"]
    if not result.success:
        lines.append(f"FAILED: {result.error}")
        return lines

    lines.append(f"RECORD COUNT: SOURCE: {result.source_count}; TARGET: {result.target_count}")
    stats = result.field_stats
    lines.append(f"FIELDS: TOTAL: {stats['total']}, OK: {stats['ok']}, FAILED: {stats['failed']}")
    if result.source_count == 0 or result.target_count == 0:
        lines.append("WRONG FIELDS: No data to compare")
    elif result.wrong_fields:
        lines.append(f"WRONG FIELDS: {'; '.join(result.wrong_fields)}")
    else:
        lines.append("WRONG FIELDS: None")
    return lines


def log_lines(lines: Iterable[str], logger: logging.Logger = LOGGER) -> None:
    for line in lines:
        logger.info(line)


def _write_json(payload: Any, output_path: str | Path) -> Path:
    output_path = Path(output_path)

    # Ensure parent directory exists
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, default=str)
    return output_path


def save_report_json(report: Report, output_path: str | Path) -> Path:
    """
    Export a report to a JSON file.

    Parameters
    report : Report
        The report from :func:`dbrecon.report.build_report`
    output_path : str | Path
        Destination; parent directories are created

    Returns
    Path
        The path of the exported file
    """
    path = _write_json(report.to_dict(), output_path)
    LOGGER.info("💾 Detailed report saved to %s", path)
    return path


def save_suite_results(results: Iterable["QueryRunResult"], output_path: str | Path) -> Path:
    """Export every query result of a suite run to one JSON file."""
    payload: List[Dict[str, Any]] = [r.to_dict() for r in results]
    path = _write_json(payload, output_path)
    LOGGER.info("💾 Suite results saved to %s", path)
    return path


def export_field_outcomes(result: ReconciliationResult, output_path: str | Path) -> Path:
    """Write one CSV row per (record, field) outcome."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    result.to_frame().to_csv(output_path, index=False)
    LOGGER.info("Field outcomes exported to %s", output_path)
    return output_path
