#!/usr/bin/env python3
"""Top-level orchestrator for dataset comparisons

A single run fetches two row sets, detects field mappings, merges them with
the user-defined ones, reconciles the rows and builds a report.  A suite run
repeats that for every configured query and records per-query outcomes.

Usage:
    dbrecon --config config/comparison_config.yaml
    dbrecon --config config/comparison_config.yaml --suite
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from dbrecon import configure_logging
from dbrecon.comparator import DEFAULT_KEYWORDS, FieldKeywords, MatchType, ToleranceConfig, ValueComparator
from dbrecon.config import load_config_validated
from dbrecon.config_schema import ComparisonConfig, SuiteQueryConfig
from dbrecon.engine import ProgressCallback, ReconciliationResult, compare_datasets
from dbrecon.mapper import (
    FieldMapping,
    MappingInference,
    ensure_unique_mappings,
    infer_from_datasets,
    merge_field_mappings,
)
from dbrecon.report import DEFAULT_TOP_N, Report, ReportConfiguration, build_report
from dbrecon.sources import DataSource, build_data_source
from dbrecon.values import Row
from dbrecon.writers import (
    export_field_outcomes,
    log_lines,
    render_query_result,
    render_report,
    save_report_json,
    save_suite_results,
)

# Logging
LOGGER = logging.getLogger(__name__)


class NoMappingAvailableError(Exception):
    """Raised when neither the user nor detection provides a single field mapping."""
    pass


@dataclass
class ComparisonRun:
    """Everything one comparison produced."""
    mappings: List[FieldMapping]
    inference: MappingInference
    result: ReconciliationResult
    report: Report


@dataclass
class QueryRunResult:
    """Outcome of one suite query."""
    suite_name: str
    query_name: str
    query: str
    success: bool
    source_count: int = 0
    target_count: int = 0
    record_count_match: Optional[bool] = None
    field_stats: Dict[str, int] = field(default_factory=lambda: {"total": 0, "ok": 0, "failed": 0})
    wrong_fields: List[str] = field(default_factory=list)
    error: Optional[str] = None
    report: Optional[Report] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def log_progress(processed: int, total: int) -> None:
    """Default progress callback: one INFO line per milestone."""
    LOGGER.info("   Progress: %d%% (%d/%d records)", round(processed / total * 100), processed, total)


def run_comparison(
    source_rows: Sequence[Row],
    target_rows: Sequence[Row],
    user_mappings: Iterable[FieldMapping] = (),
    tolerance: Optional[ToleranceConfig] = None,
    keywords: Optional[FieldKeywords] = None,
    progress: Optional[ProgressCallback] = log_progress,
    top_n: int = DEFAULT_TOP_N,
) -> ComparisonRun:
    """
    Detect mappings, reconcile two row sets and build the report.

    Parameters
    source_rows, target_rows : Sequence[Mapping[str, Any]]
        Materialized rows of each side
    user_mappings : Iterable[FieldMapping], optional
        Mappings that take precedence over detected ones
    tolerance : ToleranceConfig, optional
        Numeric tolerance; defaults to ``ToleranceConfig()``
    keywords : FieldKeywords, optional
        Overrides of the temporal / status / payment name keywords
    progress : callable, optional
        Progress callback handed to the engine
    top_n : int, optional
        Length of the report's top lists

    Returns
    ComparisonRun

    Raises
    MappingConflictError
        If ``user_mappings`` use a field twice
    NoMappingAvailableError
        If there is data to compare but no mapping at all
    """
    user_mappings = list(user_mappings)
    ensure_unique_mappings(user_mappings)
    tolerance = tolerance or ToleranceConfig()

    LOGGER.info("Source returned %d records, target returned %d records", len(source_rows), len(target_rows))

    LOGGER.info("🔍 Attempting to detect field mappings...")
    inference = infer_from_datasets(source_rows, target_rows)
    if not source_rows or not target_rows:
        LOGGER.warning("⚠️  Cannot detect mappings: one or both datasets are empty")
    elif inference.skipped:
        LOGGER.warning("⚠️  Cannot detect mappings: the first row of one dataset has no fields")
    for name in inference.unmapped_source:
        LOGGER.warning("Unmapped source field: %s", name)
    for name in inference.unmapped_target:
        LOGGER.warning("Unmapped target field: %s", name)

    mappings = merge_field_mappings(user_mappings, inference.mappings)
    # Only zero-row input may proceed without mappings
    if not mappings and source_rows and target_rows:
        raise NoMappingAvailableError(
            "No field mappings available. Please define field_mappings in your configuration."
        )

    LOGGER.info("📋 Final field mappings (%d total):", len(mappings))
    for i, mapping in enumerate(mappings, start=1):
        LOGGER.info("   %d. %s", i, mapping.describe())

    if len(source_rows) != len(target_rows):
        LOGGER.warning(
            "⚠️  Record count mismatch: source has %d records, target has %d records; "
            "comparing first %d records",
            len(source_rows), len(target_rows), min(len(source_rows), len(target_rows)),
        )

    LOGGER.info("🔄 Starting data comparison...")
    comparator = ValueComparator(tolerance, keywords or DEFAULT_KEYWORDS)
    result = compare_datasets(source_rows, target_rows, mappings, comparator=comparator, progress=progress)
    LOGGER.info("✓ Data comparison completed")

    report = build_report(result, top_n=top_n, configuration=ReportConfiguration.from_run(tolerance, mappings))
    return ComparisonRun(mappings=mappings, inference=inference, result=result, report=report)


def run_suite_query(
    suite_name: str,
    query_config: SuiteQueryConfig,
    source: DataSource,
    target: DataSource,
    config: ComparisonConfig,
) -> QueryRunResult:
    """Fetch and compare one suite query; errors propagate to the caller."""
    source_query = query_config.resolved_source_query
    target_query = query_config.resolved_target_query
    LOGGER.info("QUERY: %s", source_query)

    source_rows = source.fetch(source_query)
    target_rows = target.fetch(target_query)

    outcome = QueryRunResult(
        suite_name=suite_name,
        query_name=query_config.name,
        query=source_query,
        success=True,
        source_count=len(source_rows),
        target_count=len(target_rows),
    )
    if query_config.compare_record_count:
        outcome.record_count_match = len(source_rows) == len(target_rows)
        if not outcome.record_count_match:
            LOGGER.warning("Record count differs for %s: %d vs %d",
                           query_config.name, len(source_rows), len(target_rows))

    if not source_rows or not target_rows:
        return outcome

    # Suites rely on detection alone, like a plain table-to-table copy check
    run = run_comparison(
        source_rows,
        target_rows,
        tolerance=config.to_tolerance(),
        keywords=config.to_keywords(),
        top_n=config.report.top_n,
    )

    ok = failed = 0
    for _, comparison in run.result.iter_field_comparisons():
        if comparison.match_type is MatchType.MISMATCH:
            failed += 1
            outcome.wrong_fields.append(
                f"{comparison.source_field}: {comparison.source_value} != {comparison.target_value}"
            )
        else:
            ok += 1
    outcome.field_stats = {"total": ok + failed, "ok": ok, "failed": failed}
    outcome.report = run.report
    return outcome


def run_suite(
    config: ComparisonConfig,
    source: DataSource,
    target: DataSource,
) -> List[QueryRunResult]:
    """
    Run every query of every configured suite.

    A failing query is logged and recorded with ``success=False`` unless
    ``config.stop_on_error`` is set, in which case the error propagates.
    """
    results: List[QueryRunResult] = []
    LOGGER.info("🚀 Starting suite comparison (%d suites)", len(config.suites))

    for suite in config.suites:
        LOGGER.info("TEST: %s", suite.name)
        for query_config in suite.queries:
            try:
                outcome = run_suite_query(suite.name, query_config, source, target, config)
            except Exception as exc:
                if config.stop_on_error:
                    raise
                LOGGER.error("❌ Test failed for %s: %s", suite.name, exc)
                outcome = QueryRunResult(
                    suite_name=suite.name,
                    query_name=query_config.name,
                    query=query_config.resolved_source_query,
                    success=False,
                    error=str(exc),
                )
            log_lines(render_query_result(outcome))
            results.append(outcome)

    return results


def _close_sources(*sources: Any) -> None:
    for source in sources:
        close = getattr(source, "close", None)
        if close is not None:
            close()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Reconcile two tabular datasets")
    parser.add_argument(
        "--config",
        default=None,
        help="Config file path (default: $DBRECON_CONFIG or config/comparison_config.yaml)",
    )
    parser.add_argument(
        "--suite",
        action="store_true",
        help="Run every configured suite query instead of a single comparison",
    )
    parser.add_argument(
        "--output",
        help="Override the JSON output path",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        config = load_config_validated(args.config)
        source = build_data_source(config.source)
        target = build_data_source(config.target)

        try:
            if args.suite:
                results = run_suite(config, source, target)
                output = args.output or config.report.suite_output_path
                if output:
                    save_suite_results(results, output)
                failed = sum(1 for r in results if not r.success)
                if failed:
                    LOGGER.error("💥 %d of %d suite queries failed", failed, len(results))
                    return 1
                LOGGER.info("🎉 Suite completed successfully!")
                return 0

            if not config.source.query or not config.target.query:
                LOGGER.error("Both source.query and target.query must be configured for a single run")
                return 1

            run = run_comparison(
                source.fetch(config.source.query),
                target.fetch(config.target.query),
                user_mappings=config.to_field_mappings(),
                tolerance=config.to_tolerance(),
                keywords=config.to_keywords(),
                top_n=config.report.top_n,
            )
        finally:
            _close_sources(source, target)

        log_lines(render_report(run.report))
        output = args.output or config.report.output_path
        if output:
            save_report_json(run.report, output)
        if config.report.field_outcomes_path:
            export_field_outcomes(run.result, config.report.field_outcomes_path)
        LOGGER.info("🎉 Comparison completed successfully!")
        return 0

    except NoMappingAvailableError as exc:
        LOGGER.error("Comparison failed: %s", exc)
        return 1
    except Exception:
        LOGGER.exception("💥 Comparison failed")
        return 1


if __name__ == "__main__":
    sys.exit(main())
