"""Roll a reconciliation result up into a report

The report is plain structured data – rendering it to the console or a file
is left to :mod:`dbrecon.writers`.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from dbrecon.comparator import MatchType, ToleranceConfig
from dbrecon.engine import ReconciliationResult
from dbrecon.mapper import FieldMapping, MappingOrigin

# How many mismatches / deltas the detailed analysis keeps
DEFAULT_TOP_N = 10


@dataclass
class CategorySummary:
    count: int
    percentage: float


@dataclass
class ReportSummary:
    total_records_compared: int
    exact_matches: CategorySummary
    delta_matches: CategorySummary
    significant_mismatches: CategorySummary
    overall_accuracy: float
    source_record_count: int = 0
    target_record_count: int = 0


@dataclass
class DeltaStatistics:
    """Magnitude statistics over every DELTA field outcome."""
    count: int
    min_delta: float
    max_delta: float
    avg_delta: float


@dataclass
class FieldDetail:
    """One field outcome, as listed in the top mismatches / top deltas."""
    record_index: int
    field: str
    target_field: str
    source_value: Any
    target_value: Any
    delta: Optional[float]


@dataclass
class FieldBreakdown:
    """Outcome counts for a single mapped field across all records."""
    source_field: str
    target_field: str
    exact: int = 0
    delta: int = 0
    mismatch: int = 0

    @property
    def total(self) -> int:
        return self.exact + self.delta + self.mismatch

    @property
    def ok(self) -> int:
        return self.exact + self.delta


@dataclass
class DetailedAnalysis:
    delta_analysis: Optional[DeltaStatistics]
    top_mismatches: List[FieldDetail] = field(default_factory=list)
    top_deltas: List[FieldDetail] = field(default_factory=list)
    field_breakdown: List[FieldBreakdown] = field(default_factory=list)


@dataclass
class ReportConfiguration:
    acceptable_delta: float
    field_precision: Dict[str, float]
    field_mappings_used: int
    user_defined_mappings: int
    detected_mappings: int

    @classmethod
    def from_run(cls, tolerance: ToleranceConfig, mappings: Sequence[FieldMapping]) -> "ReportConfiguration":
        user_defined = sum(1 for m in mappings if m.origin is MappingOrigin.USER_DEFINED)
        return cls(
            acceptable_delta=tolerance.default,
            field_precision=dict(tolerance.field_precision),
            field_mappings_used=len(mappings),
            user_defined_mappings=user_defined,
            detected_mappings=len(mappings) - user_defined,
        )


@dataclass
class Report:
    summary: ReportSummary
    detailed_analysis: DetailedAnalysis
    configuration: Optional[ReportConfiguration] = None

    def to_dict(self) -> Dict[str, Any]:
        """Nested dict suitable for ``json.dump(..., default=str)``."""
        return asdict(self)


def _percentage(count: int, total: int) -> float:
    return round(count / total * 100, 2) if total > 0 else 0.0


def build_report(
    result: ReconciliationResult,
    top_n: int = DEFAULT_TOP_N,
    configuration: Optional[ReportConfiguration] = None,
) -> Report:
    """
    Reduce a :class:`ReconciliationResult` into a :class:`Report`.

    Parameters
    result : ReconciliationResult
        Output of :func:`dbrecon.engine.compare_datasets`
    top_n : int, optional
        Length of the top-mismatch and top-delta lists (default 10)
    configuration : ReportConfiguration, optional
        Echoed back in the report for provenance

    Returns
    Report
        Percentages are rounded to two decimals and are 0 when nothing was
        compared.  Delta statistics are ``None`` when there are no DELTA
        outcomes.
    """
    total = result.total_records
    summary = ReportSummary(
        total_records_compared=total,
        exact_matches=CategorySummary(result.exact_matches, _percentage(result.exact_matches, total)),
        delta_matches=CategorySummary(result.delta_matches, _percentage(result.delta_matches, total)),
        significant_mismatches=CategorySummary(
            result.significant_mismatches, _percentage(result.significant_mismatches, total)
        ),
        overall_accuracy=_percentage(result.exact_matches + result.delta_matches, total),
        source_record_count=result.source_count,
        target_record_count=result.target_count,
    )

    deltas: List[FieldDetail] = []
    mismatches: List[FieldDetail] = []
    breakdown: Dict[str, FieldBreakdown] = {}

    for index, comparison in result.iter_field_comparisons():
        detail = FieldDetail(
            record_index=index,
            field=comparison.source_field,
            target_field=comparison.target_field,
            source_value=comparison.source_value,
            target_value=comparison.target_value,
            delta=comparison.delta,
        )
        counts = breakdown.setdefault(
            comparison.source_field,
            FieldBreakdown(comparison.source_field, comparison.target_field),
        )
        if comparison.match_type is MatchType.DELTA:
            deltas.append(detail)
            counts.delta += 1
        elif comparison.match_type is MatchType.MISMATCH:
            mismatches.append(detail)
            counts.mismatch += 1
        else:
            counts.exact += 1

    delta_stats = None
    if deltas:
        magnitudes = [d.delta for d in deltas]
        delta_stats = DeltaStatistics(
            count=len(magnitudes),
            min_delta=min(magnitudes),
            max_delta=max(magnitudes),
            avg_delta=sum(magnitudes) / len(magnitudes),
        )

    # sorted() is stable, so equal deltas keep discovery order
    top_deltas = sorted(deltas, key=lambda d: d.delta, reverse=True)[:top_n]

    analysis = DetailedAnalysis(
        delta_analysis=delta_stats,
        top_mismatches=mismatches[:top_n],
        top_deltas=top_deltas,
        field_breakdown=list(breakdown.values()),
    )
    return Report(summary=summary, detailed_analysis=analysis, configuration=configuration)
