"""
ConflictDetector — three-way comparison of baseline, live record and proposal.

A field is in conflict when someone else changed it after the proposal was
drafted AND the live value differs from what the submitter proposes:

    current != original  and  current != proposed

Fields the submitter and the other writer happened to set to the same
value are not conflicts. Metadata fields excluded from diffs are excluded
here too, so a timestamp bump is never a conflict.

This module is pure: it does not read the store or change any status. The
ReviewController applies the conflict policy on top of it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Optional

from sitio_review.config.settings import settings
from sitio_review.core.diff_engine import find_year_map, resolve_year
from sitio_review.core.values import MISSING, is_plain_map, structurally_equal, to_jsonable


@dataclass
class ConflictDetail:
    field: str
    current_value: Any
    proposed_value: Any

    def to_dict(self) -> dict:
        return {
            "field": self.field,
            "currentValue": to_jsonable(self.current_value),
            "proposedValue": to_jsonable(self.proposed_value),
        }

    @classmethod
    def from_dict(cls, data: dict) -> ConflictDetail:
        return cls(
            field=data["field"],
            current_value=data.get("currentValue"),
            proposed_value=data.get("proposedValue"),
        )


def _year_slice(record: Any, year: Optional[str], year_map_field: str) -> Any:
    """Pick record[year_map_field][year] when the record is year-keyed."""
    if year is None:
        return record
    years = find_year_map(record, year_map_field)
    if years is None:
        return record  # legacy flat record
    return years.get(year, {})


def _child(value: Any, key: str) -> Any:
    return value.get(key, MISSING) if is_plain_map(value) else MISSING


def _walk(
    base: Any,
    current: Any,
    proposed: Any,
    path: str,
    excluded: frozenset[str],
    out: list[ConflictDetail],
) -> None:
    if is_plain_map(base) and is_plain_map(current):
        keys = list(base)
        keys.extend(k for k in current if k not in base)
        for key in keys:
            if not path and key in excluded:
                continue
            _walk(
                base.get(key, MISSING),
                current.get(key, MISSING),
                _child(proposed, key),
                f"{path}.{key}" if path else key,
                excluded,
                out,
            )
        return

    if structurally_equal(base, current):
        return
    if structurally_equal(current, proposed):
        return
    out.append(ConflictDetail(path or "value", current, proposed))


def detect_conflicts(
    original: Any,
    proposed: Any,
    current: Any,
    excluded_fields: Optional[Iterable[str]] = None,
    year_map_field: Optional[str] = None,
) -> list[ConflictDetail]:
    """
    Compare the live record against the submission baseline and proposal.

    Args:
        original: Snapshot captured when the submission was created.
        proposed: The submitter's proposal.
        current: The live record read at review time.

    Returns:
        One ConflictDetail per conflicting field, in baseline key order.

    Raises:
        YearResolutionError: if the proposal's year map is ambiguous.
    """
    field_name = year_map_field or settings.year_map_field
    excluded = frozenset(
        settings.excluded_fields if excluded_fields is None else excluded_fields
    )

    year = None
    proposed_years = find_year_map(proposed, field_name)
    if proposed_years is not None:
        year = resolve_year(proposed_years)
        proposed = proposed_years[year]

    conflicts: list[ConflictDetail] = []
    _walk(
        _year_slice(original, year, field_name),
        _year_slice(current, year, field_name),
        proposed,
        "",
        excluded,
        conflicts,
    )
    return conflicts
