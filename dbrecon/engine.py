"""Positional reconciliation of two row sequences

Row *i* of the source is compared with row *i* of the target, field by field,
through the effective mapping list.  Excess rows on the longer side are not
compared; :class:`ReconciliationResult` only records how many there were.

Every call builds and returns its own accumulator, so independent dataset
pairs can be reconciled concurrently without locking.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

import pandas as pd

from dbrecon.comparator import MatchType, Outcome, ToleranceConfig, ValueComparator
from dbrecon.mapper import FieldMapping, ensure_unique_mappings
from dbrecon.values import Row

# Logging
LOGGER = logging.getLogger(__name__)

# Called with (records processed so far, total records to process)
ProgressCallback = Callable[[int, int], None]

# Below this many aligned pairs no progress milestones are emitted by default
PROGRESS_MIN_RECORDS = 100

FIELD_OUTCOME_COLUMNS = [
    "record_index",
    "source_field",
    "target_field",
    "source_value",
    "target_value",
    "match_type",
    "delta",
]


@dataclass(frozen=True)
class FieldComparison:
    """Outcome of comparing one mapped field of one row pair."""

    source_field: str
    target_field: str
    source_value: Any
    target_value: Any
    outcome: Outcome

    @property
    def match_type(self) -> MatchType:
        return self.outcome.match_type

    @property
    def delta(self) -> Optional[float]:
        return self.outcome.magnitude


@dataclass
class RecordComparison:
    """All field outcomes of one positionally aligned row pair, keyed by source field."""

    record_index: int
    fields: Dict[str, FieldComparison] = field(default_factory=dict)

    @property
    def overall(self) -> MatchType:
        """Worst field outcome; vacuously ``EXACT`` when no fields were compared."""
        return MatchType.worst(*(fc.match_type for fc in self.fields.values()))


@dataclass
class ReconciliationResult:
    """Accumulated state of one reconciliation run."""

    total_records: int = 0
    exact_matches: int = 0
    delta_matches: int = 0
    significant_mismatches: int = 0
    records: List[RecordComparison] = field(default_factory=list)
    source_count: int = 0
    target_count: int = 0

    @property
    def count_mismatch(self) -> bool:
        return self.source_count != self.target_count

    @property
    def unaligned_source(self) -> int:
        """Source rows beyond the end of the target, excluded from comparison."""
        return max(self.source_count - self.target_count, 0)

    @property
    def unaligned_target(self) -> int:
        return max(self.target_count - self.source_count, 0)

    def add(self, record: RecordComparison) -> None:
        self.records.append(record)
        overall = record.overall
        if overall is MatchType.EXACT:
            self.exact_matches += 1
        elif overall is MatchType.DELTA:
            self.delta_matches += 1
        else:
            self.significant_mismatches += 1

    def iter_field_comparisons(self):
        """Yield ``(record_index, FieldComparison)`` in record-major, mapping order."""
        for record in self.records:
            for comparison in record.fields.values():
                yield record.record_index, comparison

    def to_frame(self) -> pd.DataFrame:
        """Flatten every field outcome into one row per (record, field)."""
        rows = [
            {
                "record_index": index,
                "source_field": fc.source_field,
                "target_field": fc.target_field,
                "source_value": fc.source_value,
                "target_value": fc.target_value,
                "match_type": fc.match_type.value,
                "delta": fc.delta,
            }
            for index, fc in self.iter_field_comparisons()
        ]
        return pd.DataFrame(rows, columns=FIELD_OUTCOME_COLUMNS)


def default_progress_interval(total: int) -> Optional[int]:
    """Every tenth of the run, but only for runs of more than 100 records."""
    if total <= PROGRESS_MIN_RECORDS:
        return None
    return max(total // 10, 1)


class ReconciliationEngine:
    """
    Drive a :class:`ValueComparator` over two row sequences.

    Parameters
    comparator : ValueComparator, optional
        Comparator to use; built from ``tolerance`` when omitted
    tolerance : ToleranceConfig, optional
        Ignored when ``comparator`` is given
    progress : callable, optional
        ``progress(processed, total)`` notified at milestones; never affects
        the result
    progress_interval : int, optional
        Records between notifications; defaults to
        :func:`default_progress_interval`
    """

    def __init__(
        self,
        comparator: Optional[ValueComparator] = None,
        tolerance: Optional[ToleranceConfig] = None,
        progress: Optional[ProgressCallback] = None,
        progress_interval: Optional[int] = None,
    ):
        self.comparator = comparator or ValueComparator(tolerance)
        self.progress = progress
        self.progress_interval = progress_interval

    def compare_record(
        self,
        index: int,
        source_row: Row,
        target_row: Row,
        mappings: Sequence[FieldMapping],
    ) -> RecordComparison:
        record = RecordComparison(record_index=index)
        for mapping in mappings:
            source_value = source_row.get(mapping.source_field)
            target_value = target_row.get(mapping.target_field)
            # The source field name drives tolerance and semantic lookups
            outcome = self.comparator.compare(source_value, target_value, mapping.source_field)
            record.fields[mapping.source_field] = FieldComparison(
                source_field=mapping.source_field,
                target_field=mapping.target_field,
                source_value=source_value,
                target_value=target_value,
                outcome=outcome,
            )
        return record

    def compare(
        self,
        source: Sequence[Row],
        target: Sequence[Row],
        mappings: Sequence[FieldMapping],
    ) -> ReconciliationResult:
        """
        Compare the first ``min(len(source), len(target))`` row pairs.

        Raises
        MappingConflictError
            If ``mappings`` use a source or target field twice
        """
        ensure_unique_mappings(mappings)
        total = min(len(source), len(target))
        result = ReconciliationResult(
            total_records=total,
            source_count=len(source),
            target_count=len(target),
        )
        if not mappings:
            LOGGER.debug("Comparing %d records with an empty mapping list", total)

        interval = self.progress_interval or default_progress_interval(total)
        for index in range(total):
            result.add(self.compare_record(index, source[index], target[index], mappings))
            if self.progress is not None and interval and (index + 1) % interval == 0:
                self.progress(index + 1, total)

        LOGGER.debug(
            "Compared %d records: %d exact, %d delta, %d mismatch",
            total, result.exact_matches, result.delta_matches, result.significant_mismatches,
        )
        return result


def compare_datasets(
    source: Sequence[Row],
    target: Sequence[Row],
    mappings: Sequence[FieldMapping],
    tolerance: Optional[ToleranceConfig] = None,
    comparator: Optional[ValueComparator] = None,
    progress: Optional[ProgressCallback] = None,
) -> ReconciliationResult:
    """Functional entry point; see :class:`ReconciliationEngine`."""
    engine = ReconciliationEngine(comparator=comparator, tolerance=tolerance, progress=progress)
    return engine.compare(source, target, mappings)
