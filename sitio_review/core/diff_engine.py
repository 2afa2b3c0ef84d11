"""
DiffEngine — field-level differences between two structured records.

Sitio records are wide and partly indexed by year:

    {
        "sitioName": "Sitio Malipayon",
        "coding": "SM-001",
        "yearlyData": {
            "2023": {"population": 410, ...},
            "2024": {"population": 432, ...},
        },
        "availableYears": [2023, 2024],
        "updatedAt": "...",
    }

Diffing such records as a whole would report "yearlyData changed" instead
of the one field a user edited, so normalization always runs first and
picks the single year the proposal is about. The recursive comparison then
walks both sides, and metadata fields (ids, timestamps, year indexes) are
dropped from the result.

Usage:
    from sitio_review.core.diff_engine import get_field_differences
    diffs = get_field_differences(change.original_data, change.proposed_data)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

from sitio_review.config.settings import settings
from sitio_review.core.errors import YearResolutionError
from sitio_review.core.values import MISSING, is_plain_map, structurally_equal

_YEAR_KEY = re.compile(r"\d{4}")


class DiffType(str, Enum):
    ADDED = "added"
    REMOVED = "removed"
    MODIFIED = "modified"


@dataclass
class FieldDiff:
    field: str                  # dotted path, e.g. "household.count"
    original: Any               # MISSING when type == added
    proposed: Any               # MISSING when type == removed
    type: DiffType
    year: Optional[str] = None

    @property
    def top_level_field(self) -> str:
        return self.field.split(".", 1)[0]


@dataclass
class NormalizedPair:
    normalized_original: Any
    normalized_proposed: Any
    year: Optional[str] = None


# ---------------------------------------------------------------------------
# Year-keyed normalization
# ---------------------------------------------------------------------------

def find_year_map(record: Any, year_map_field: str) -> Optional[dict]:
    """Return the year map of *record*, or None if it has none."""
    if not is_plain_map(record):
        return None
    candidate = record.get(year_map_field)
    return candidate if is_plain_map(candidate) else None


def resolve_year(year_map: dict) -> str:
    """
    Return the single 4-digit year key of *year_map*.

    Raises:
        YearResolutionError: if there are zero or several year keys.
    """
    years = [key for key in year_map if _YEAR_KEY.fullmatch(key)]
    if len(years) != 1:
        raise YearResolutionError(sorted(years))
    return years[0]


def validate_year_map(proposed: Any, year_map_field: Optional[str] = None) -> Optional[str]:
    """
    Check that a proposal's year map names exactly one year.

    Returns:
        The resolved year, or None if the proposal has no year map.

    Raises:
        YearResolutionError: if there are zero or several year keys.
    """
    proposed_years = find_year_map(proposed, year_map_field or settings.year_map_field)
    return resolve_year(proposed_years) if proposed_years is not None else None


def normalize_for_comparison(
    original: Any,
    proposed: Any,
    year_map_field: Optional[str] = None,
) -> NormalizedPair:
    """
    Reduce year-keyed records to the single year sub-record being proposed.

    - Both sides have a year map: diff proposed[year] against original[year]
      (an empty record when the original has no data for that year).
    - Only the proposal has one (legacy flat original): diff the original
      as-is against proposed[year].
    - Otherwise the records are compared as given and year is None.
    """
    field_name = year_map_field or settings.year_map_field
    proposed_years = find_year_map(proposed, field_name)
    if proposed_years is None:
        return NormalizedPair(original, proposed, None)

    year = resolve_year(proposed_years)
    proposed_record = proposed_years[year]

    original_years = find_year_map(original, field_name)
    if original_years is None:
        return NormalizedPair(original, proposed_record, year)

    return NormalizedPair(original_years.get(year, {}), proposed_record, year)


# ---------------------------------------------------------------------------
# Recursive comparison
# ---------------------------------------------------------------------------

def _union_keys(a: dict, b: dict) -> list[str]:
    keys = list(a)
    keys.extend(key for key in b if key not in a)
    return keys


def deep_compare_values(a: Any, b: Any, path: str = "") -> list[FieldDiff]:
    """
    Recursively compare *a* (original) with *b* (proposed).

    Maps are walked key by key; anything else (primitives, arrays) is a
    leaf compared by structural equality and yields at most one entry at
    *path* ("value" for an unnamed root).
    """
    if is_plain_map(a) and is_plain_map(b):
        diffs: list[FieldDiff] = []
        for key in _union_keys(a, b):
            key_path = f"{path}.{key}" if path else key
            left = a.get(key, MISSING)
            right = b.get(key, MISSING)
            if left is MISSING:
                diffs.append(FieldDiff(key_path, MISSING, right, DiffType.ADDED))
            elif right is MISSING:
                diffs.append(FieldDiff(key_path, left, MISSING, DiffType.REMOVED))
            elif is_plain_map(left) and is_plain_map(right):
                diffs.extend(deep_compare_values(left, right, key_path))
            elif not structurally_equal(left, right):
                diffs.append(FieldDiff(key_path, left, right, DiffType.MODIFIED))
        return diffs

    if structurally_equal(a, b):
        return []

    if a is MISSING:
        diff_type = DiffType.ADDED
    elif b is MISSING:
        diff_type = DiffType.REMOVED
    else:
        diff_type = DiffType.MODIFIED
    return [FieldDiff(path or "value", a, b, diff_type)]


def get_field_differences(
    original: Any,
    proposed: Any,
    excluded_fields: Optional[Iterable[str]] = None,
    year_map_field: Optional[str] = None,
) -> list[FieldDiff]:
    """
    Normalize, diff, drop metadata fields, and tag each entry with the year.

    Args:
        original: Baseline record (snapshot at submission time).
        proposed: Proposed record.
        excluded_fields: Top-level field names never reported.
            Defaults to settings.excluded_fields.
        year_map_field: Name of the year-keyed sub-map.
            Defaults to settings.year_map_field.

    Raises:
        YearResolutionError: if the proposal's year map does not hold
            exactly one year (identical records never raise).
    """
    if structurally_equal(original, proposed):
        return []

    excluded = frozenset(
        settings.excluded_fields if excluded_fields is None else excluded_fields
    )
    pair = normalize_for_comparison(original, proposed, year_map_field)

    diffs = deep_compare_values(pair.normalized_original, pair.normalized_proposed)
    kept = [d for d in diffs if d.top_level_field not in excluded]
    for diff in kept:
        diff.year = pair.year
    return kept
