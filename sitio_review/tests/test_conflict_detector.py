"""
Tests for the ConflictDetector.
No database needed — tests are pure Python.
"""

import copy

from sitio_review.core.conflict_detector import ConflictDetail, detect_conflicts
from sitio_review.core.values import MISSING
from sitio_review.tests.conftest import SITIO_RECORD


class TestDetectConflicts:

    def test_concurrent_edit_is_a_conflict(self):
        conflicts = detect_conflicts(
            original={"population": 100},
            proposed={"population": 150},
            current={"population": 120},
        )
        assert conflicts == [ConflictDetail("population", 120, 150)]

    def test_unchanged_live_record_has_no_conflicts(self):
        assert detect_conflicts({"population": 100}, {"population": 150}, {"population": 100}) == []

    def test_same_value_on_both_sides_is_not_a_conflict(self):
        assert detect_conflicts({"population": 100}, {"population": 150}, {"population": 150}) == []

    def test_unrelated_field_changed_by_someone_else(self):
        original = {"population": 100, "households": 20}
        proposed = {"population": 150, "households": 20}
        current = {"population": 100, "households": 25}
        conflicts = detect_conflicts(original, proposed, current)
        assert [c.field for c in conflicts] == ["households"]

    def test_timestamp_bump_is_never_a_conflict(self):
        original = {"population": 100, "updatedAt": "2024-01-01T00:00:00Z"}
        proposed = {"population": 150, "updatedAt": "2024-01-01T00:00:00Z"}
        current = {"population": 100, "updatedAt": "2024-03-01T00:00:00Z"}
        assert detect_conflicts(original, proposed, current) == []

    def test_nested_field_reports_dotted_path(self):
        original = {"water": {"source": "well", "potable": False}}
        proposed = {"water": {"source": "well", "potable": True}}
        current = {"water": {"source": "spring", "potable": False}}
        conflicts = detect_conflicts(original, proposed, current)
        assert conflicts == [ConflictDetail("water.source", "spring", "well")]

    def test_field_added_live_and_absent_from_proposal(self):
        conflicts = detect_conflicts({}, {}, {"notes": "added by admin"})
        assert conflicts == [ConflictDetail("notes", "added by admin", MISSING)]

    def test_field_removed_live(self):
        conflicts = detect_conflicts({"notes": "x"}, {"notes": "y"}, {})
        assert conflicts == [ConflictDetail("notes", MISSING, "y")]

    def test_key_order_of_live_record_is_irrelevant(self):
        original = {"facility": {"school": True, "clinic": False}}
        current = {"facility": {"clinic": False, "school": True}}
        proposed = {"facility": {"school": False, "clinic": False}}
        assert detect_conflicts(original, proposed, current) == []


class TestYearKeyedConflicts:

    def _proposal(self, **fields):
        return {"yearlyData": {"2024": dict(SITIO_RECORD["yearlyData"]["2024"], **fields)}}

    def test_conflict_within_proposed_year(self):
        current = copy.deepcopy(SITIO_RECORD)
        current["yearlyData"]["2024"]["population"] = 440

        conflicts = detect_conflicts(SITIO_RECORD, self._proposal(population=450), current)

        assert conflicts == [ConflictDetail("population", 440, 450)]

    def test_edit_to_another_year_is_ignored(self):
        current = copy.deepcopy(SITIO_RECORD)
        current["yearlyData"]["2023"]["population"] = 999

        assert detect_conflicts(SITIO_RECORD, self._proposal(population=450), current) == []

    def test_top_level_metadata_changes_are_ignored(self):
        current = copy.deepcopy(SITIO_RECORD)
        current["updatedAt"] = "2024-08-01T00:00:00.000000+00:00"
        current["availableYears"] = [2023, 2024, 2025]

        assert detect_conflicts(SITIO_RECORD, self._proposal(population=450), current) == []


class TestConflictDetailSerialization:

    def test_to_dict_uses_wire_names(self):
        detail = ConflictDetail("population", 120, 150)
        assert detail.to_dict() == {"field": "population", "currentValue": 120, "proposedValue": 150}

    def test_missing_serializes_as_null(self):
        assert ConflictDetail("notes", MISSING, "y").to_dict()["currentValue"] is None

    def test_from_dict(self):
        detail = ConflictDetail.from_dict({"field": "households", "currentValue": 25, "proposedValue": 20})
        assert detail == ConflictDetail("households", 25, 20)
