"""Field correspondence between two differently named schemas

Detection is greedy:

1. identical names are paired first, in source enumeration order
2. remaining fields are paired when their normalized names agree
   (lower-case, underscores and hyphens removed); the *first* unclaimed target
   field wins, with no backtracking

User-supplied mappings always take precedence over detected ones, see
:func:`merge_field_mappings`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, List, Sequence

from dbrecon.values import Row

# Logging
LOGGER = logging.getLogger(__name__)


class MappingConflictError(ValueError):
    """Raised when a mapping list uses the same source or target field twice"""
    pass


class MappingOrigin(str, Enum):
    """Where a field mapping came from."""

    USER_DEFINED = "user-defined"
    DETECTED = "auto-detected"


@dataclass(frozen=True)
class FieldMapping:
    """``source_field`` in the source rows corresponds to ``target_field`` in the target rows."""

    source_field: str
    target_field: str
    origin: MappingOrigin = MappingOrigin.USER_DEFINED

    def describe(self) -> str:
        return f"{self.source_field} ↔ {self.target_field} ({self.origin.value})"


@dataclass
class MappingInference:
    """Detected mappings plus the fields detection could not pair.

    ``skipped`` is set when there was nothing to infer from (an empty sample);
    this is not an error.
    """

    mappings: List[FieldMapping] = field(default_factory=list)
    unmapped_source: List[str] = field(default_factory=list)
    unmapped_target: List[str] = field(default_factory=list)
    skipped: bool = False


def normalize_field_name(name: str) -> str:
    """``"Customer-Name"`` and ``"customer_name"`` both become ``"customername"``."""
    return name.lower().replace("_", "").replace("-", "")


def infer_field_mappings(source_sample: Row, target_sample: Row) -> MappingInference:
    """
    Infer mappings from one sample row of each dataset.

    Parameters
    source_sample, target_sample : Mapping[str, Any]
        Representative rows; only their field names (in enumeration order)
        are used

    Returns
    MappingInference
        Detected mappings (origin ``DETECTED``) in detection order; empty and
        flagged ``skipped`` if either sample has no fields
    """
    source_fields = list(source_sample or {})
    target_fields = list(target_sample or {})
    if not source_fields or not target_fields:
        LOGGER.debug("Mapping inference skipped: empty sample")
        return MappingInference(skipped=True)

    detected: List[FieldMapping] = []
    claimed_source: set[str] = set()
    claimed_target: set[str] = set()

    # Pass 1 – identical names
    target_lookup = set(target_fields)
    for name in source_fields:
        if name in target_lookup and name not in claimed_source and name not in claimed_target:
            detected.append(FieldMapping(name, name, MappingOrigin.DETECTED))
            claimed_source.add(name)
            claimed_target.add(name)
            LOGGER.debug("Exact match detected: %s ↔ %s", name, name)

    # Pass 2 – normalized names, first unclaimed target wins
    for source_name in source_fields:
        if source_name in claimed_source:
            continue
        normalized = normalize_field_name(source_name)
        for target_name in target_fields:
            if target_name in claimed_target:
                continue
            if normalize_field_name(target_name) == normalized:
                detected.append(FieldMapping(source_name, target_name, MappingOrigin.DETECTED))
                claimed_source.add(source_name)
                claimed_target.add(target_name)
                LOGGER.debug("Normalized match detected: %s ↔ %s", source_name, target_name)
                break

    return MappingInference(
        mappings=detected,
        unmapped_source=[f for f in source_fields if f not in claimed_source],
        unmapped_target=[f for f in target_fields if f not in claimed_target],
    )


def infer_from_datasets(source_rows: Sequence[Row], target_rows: Sequence[Row]) -> MappingInference:
    """Run :func:`infer_field_mappings` on the first row of each dataset."""
    if not source_rows or not target_rows:
        LOGGER.debug("Mapping inference skipped: %d source / %d target rows",
                      len(source_rows), len(target_rows))
        return MappingInference(skipped=True)
    return infer_field_mappings(source_rows[0], target_rows[0])


def ensure_unique_mappings(mappings: Iterable[FieldMapping]) -> None:
    """Raise :class:`MappingConflictError` if any field is used twice on either side."""
    seen_source: set[str] = set()
    seen_target: set[str] = set()
    duplicates: List[str] = []
    for mapping in mappings:
        if mapping.source_field in seen_source:
            duplicates.append(f"source field {mapping.source_field!r}")
        if mapping.target_field in seen_target:
            duplicates.append(f"target field {mapping.target_field!r}")
        seen_source.add(mapping.source_field)
        seen_target.add(mapping.target_field)
    if duplicates:
        raise MappingConflictError(f"Field used by more than one mapping: {', '.join(duplicates)}")


def merge_field_mappings(
    user_mappings: Sequence[FieldMapping],
    detected: Sequence[FieldMapping],
) -> List[FieldMapping]:
    """
    User mappings verbatim, then every detected mapping touching no user field.

    A detected mapping is dropped if its source field is already a user
    mapping's source **or** its target field is already a user mapping's
    target, so ``(id, txn_id)`` supplied by the user is never overridden by a
    detected ``(id, id)``.
    """
    user_source = {m.source_field for m in user_mappings}
    user_target = {m.target_field for m in user_mappings}

    additional = [
        m for m in detected
        if m.source_field not in user_source and m.target_field not in user_target
    ]
    return [*user_mappings, *additional]
