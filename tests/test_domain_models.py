"""
Tests for domain models.
"""

import pendulum
import pytest

from practitioner_scheduler.domain.exceptions import InvalidInterval
from practitioner_scheduler.domain.models import (
    CandidateAppointment,
    ConflictResult,
    FreeSlot,
    PartialOverlap,
    TimeRange,
)


class TestTimeRange:
    """Tests for TimeRange model."""

    def test_create_valid_time_range(self):
        """Test creating a valid time range."""
        start = pendulum.parse("2025-08-26T00:40:00Z")
        end = pendulum.parse("2025-08-26T07:00:00Z")

        tr = TimeRange(start=start, end=end)

        assert tr.start == start
        assert tr.end == end
        assert tr.duration_minutes() == 380
        assert tr.duration_ms() == 22_800_000

    def test_invalid_time_range_raises_error(self):
        """Test that an end before the start is rejected."""
        start = pendulum.parse("2025-08-26T07:00:00Z")
        end = pendulum.parse("2025-08-26T00:40:00Z")

        with pytest.raises(ValueError, match="Start time .* must be before end time"):
            TimeRange(start=start, end=end)

    def test_zero_length_range_is_rejected(self):
        """Test that zero-length ranges are never clamped into existence."""
        instant = pendulum.parse("2025-08-26T07:00:00Z")

        with pytest.raises(InvalidInterval):
            TimeRange(start=instant, end=instant)

    def test_parse_from_strings(self):
        """Test building a range from UTC timestamp strings."""
        tr = TimeRange.parse("2025-08-26T00:40:00.000Z", "2025-08-26T07:00:00Z")

        assert tr.start == pendulum.datetime(2025, 8, 26, 0, 40, tz="UTC")
        assert str(tr) == "2025-08-26T00:40:00.000Z - 2025-08-26T07:00:00.000Z"

    def test_fractional_minutes(self):
        """Test that durations keep fractional minutes."""
        tr = TimeRange.parse("2025-08-26T00:00:00Z", "2025-08-26T00:00:30Z")

        assert tr.duration_minutes() == 0.5

    def test_overlaps(self):
        """Test strict overlap detection."""
        tr1 = TimeRange.parse("2025-08-26T09:00:00Z", "2025-08-26T12:00:00Z")
        tr2 = TimeRange.parse("2025-08-26T11:00:00Z", "2025-08-26T14:00:00Z")
        tr3 = TimeRange.parse("2025-08-26T12:00:00Z", "2025-08-26T17:00:00Z")

        assert tr1.overlaps(tr2)
        assert tr2.overlaps(tr1)
        # Touching endpoints do not overlap
        assert not tr1.overlaps(tr3)

    def test_contains_includes_boundaries(self):
        """Test containment with identical boundaries."""
        outer = TimeRange.parse("2025-08-26T00:40:00Z", "2025-08-26T07:00:00Z")
        same = TimeRange.parse("2025-08-26T00:40:00Z", "2025-08-26T07:00:00Z")
        sticking_out = TimeRange.parse("2025-08-26T06:30:00Z", "2025-08-26T07:01:00Z")

        assert outer.contains(same)
        assert not outer.contains(sticking_out)

    def test_intersect(self):
        """Test intersection calculation."""
        tr1 = TimeRange.parse("2025-08-26T09:00:00Z", "2025-08-26T12:00:00Z")
        tr2 = TimeRange.parse("2025-08-26T11:00:00Z", "2025-08-26T14:00:00Z")

        intersection = tr1.intersect(tr2)

        assert intersection is not None
        assert intersection.start == pendulum.parse("2025-08-26T11:00:00Z")
        assert intersection.end == pendulum.parse("2025-08-26T12:00:00Z")

    def test_intersect_no_overlap(self):
        """Test intersection with no overlap returns None."""
        tr1 = TimeRange.parse("2025-08-26T09:00:00Z", "2025-08-26T12:00:00Z")
        tr2 = TimeRange.parse("2025-08-26T14:00:00Z", "2025-08-26T17:00:00Z")

        assert tr1.intersect(tr2) is None


class TestFreeSlot:
    """Tests for FreeSlot serialisation."""

    def test_to_dict(self):
        """Test the output record shape of a free slot."""
        slot = FreeSlot(
            time_range=TimeRange.parse("2025-08-26T01:20:00Z", "2025-08-26T07:00:00Z"),
            location_id=19042,
        )

        assert slot.to_dict() == {
            "startDateTime": "2025-08-26T01:20:00.000Z",
            "endDateTime": "2025-08-26T07:00:00.000Z",
            "duration": "340 minutes",
            "durationMs": 20_400_000,
            "locationId": 19042,
        }

    def test_duration_label_floors_fractional_minutes(self):
        """Test that the duration label floors while durationMs stays exact."""
        slot = FreeSlot(TimeRange.parse("2025-08-26T00:00:00Z", "2025-08-26T00:01:30Z"))

        data = slot.to_dict()

        assert data["duration"] == "1 minutes"
        assert data["durationMs"] == 90_000


class TestConflictResult:
    """Tests for ConflictResult invariants."""

    def test_requires_exactly_one_outcome(self):
        """Test that details and a matched slot are mutually exclusive."""
        candidate = CandidateAppointment.from_dict({"start": "a", "end": "b"})
        slot = FreeSlot(TimeRange.parse("2025-08-26T00:40:00Z", "2025-08-26T07:00:00Z"))

        with pytest.raises(ValueError):
            ConflictResult(candidate=candidate)

        with pytest.raises(ValueError):
            ConflictResult(candidate=candidate, conflict_details=["x"], matched_slot=slot)

    def test_to_dict_keeps_candidate_fields(self):
        """Test that passthrough fields survive annotation."""
        candidate = CandidateAppointment.from_dict({
            "start": "2025-08-26T06:30:00Z",
            "end": "2025-08-26T08:10:00Z",
            "serviceId": 101,
            "patientId": 12345,
        })
        overlap = PartialOverlap(
            slot_range=TimeRange.parse("2025-08-26T00:40:00Z", "2025-08-26T07:00:00Z"),
            overlap_range=TimeRange.parse("2025-08-26T06:30:00Z", "2025-08-26T07:00:00Z"),
        )

        data = ConflictResult(candidate=candidate, conflict_details=[overlap]).to_dict()

        assert data["serviceId"] == 101
        assert data["patientId"] == 12345
        assert data["hasConflict"] is True
        assert data["matchedSlot"] is None
        assert data["conflictDetails"] == [{
            "type": "partial_overlap",
            "slotStart": "2025-08-26T00:40:00.000Z",
            "slotEnd": "2025-08-26T07:00:00.000Z",
            "overlapStart": "2025-08-26T06:30:00.000Z",
            "overlapEnd": "2025-08-26T07:00:00.000Z",
        }]
