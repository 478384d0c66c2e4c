"""
Domain models for intervals, availability and conflict results.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

from pendulum import DateTime

from .exceptions import InvalidInterval
from .timezones import format_instant, parse_instant

MS_PER_MINUTE = 60_000


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable UTC interval with start and end instants.

    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime

    def __post_init__(self):
        if self.start >= self.end:
            raise InvalidInterval(
                f"Start time {format_instant(self.start)} must be before "
                f"end time {format_instant(self.end)}"
            )

    @classmethod
    def parse(cls, start: Any, end: Any) -> "TimeRange":
        """Build a range from two UTC timestamps (strings or datetimes)."""
        return cls(start=parse_instant(start), end=parse_instant(end))

    def duration_ms(self) -> int:
        """Return the duration in whole milliseconds."""
        return int(round((self.end - self.start).total_seconds() * 1000))

    def duration_minutes(self) -> float:
        """Return the duration in minutes, including fractions."""
        return self.duration_ms() / MS_PER_MINUTE

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range strictly overlaps another; touching ends do not count."""
        return self.start < other.end and self.end > other.start

    def contains(self, other: "TimeRange") -> bool:
        """Check if ``other`` lies entirely within this range, boundaries included."""
        return self.start <= other.start and other.end <= self.end

    def intersect(self, other: "TimeRange") -> "TimeRange | None":
        """
        Calculate the intersection of two time ranges.
        Returns None if there is no overlap.
        """
        if not self.overlaps(other):
            return None

        start = max(self.start, other.start)
        end = min(self.end, other.end)

        return TimeRange(start=start, end=end)

    def __str__(self) -> str:
        return f"{format_instant(self.start)} - {format_instant(self.end)}"


@dataclass(frozen=True)
class AvailabilityWindow:
    """A declared availability period at one location."""
    time_range: TimeRange
    location_id: Optional[int] = None


@dataclass(frozen=True)
class BookedAppointment:
    """An existing commitment that consumes availability."""
    time_range: TimeRange


@dataclass(frozen=True)
class FreeSlot:
    """
    A maximal free interval derived from a single availability window.
    """
    time_range: TimeRange
    location_id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        duration_ms = self.time_range.duration_ms()
        return {
            "startDateTime": format_instant(self.time_range.start),
            "endDateTime": format_instant(self.time_range.end),
            "duration": f"{duration_ms // MS_PER_MINUTE} minutes",
            "durationMs": duration_ms,
            "locationId": self.location_id,
        }


@dataclass(frozen=True)
class CandidateAppointment:
    """
    A proposed appointment supplied by the suggestion stage.

    ``start`` and ``end`` are kept raw: they are only validated when the
    candidate is checked, so one bad candidate does not spoil the batch.
    ``fields`` holds the full original record and is passed through as-is.
    """
    start: Any
    end: Any
    location_id: Optional[int] = None
    fields: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, record: Mapping[str, Any]) -> "CandidateAppointment":
        return cls(
            start=record.get("start"),
            end=record.get("end"),
            location_id=record.get("locationId"),
            fields=dict(record),
        )


@dataclass(frozen=True)
class PartialOverlap:
    """A free slot that the candidate overlaps without fitting inside."""
    slot_range: TimeRange
    overlap_range: TimeRange

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "partial_overlap",
            "slotStart": format_instant(self.slot_range.start),
            "slotEnd": format_instant(self.slot_range.end),
            "overlapStart": format_instant(self.overlap_range.start),
            "overlapEnd": format_instant(self.overlap_range.end),
        }


ConflictDetail = Union[str, PartialOverlap]


@dataclass(frozen=True)
class ConflictResult:
    """
    Outcome of checking one candidate.

    Exactly one of ``conflict_details`` and ``matched_slot`` is set.
    """
    candidate: CandidateAppointment
    conflict_details: Optional[List[ConflictDetail]] = None
    matched_slot: Optional[FreeSlot] = None
    matched_record: Optional[Mapping[str, Any]] = None

    def __post_init__(self):
        if (self.conflict_details is None) == (self.matched_slot is None):
            raise ValueError("A conflict result needs either conflict details or a matched slot")

    @property
    def has_conflict(self) -> bool:
        return self.matched_slot is None

    def to_dict(self) -> Dict[str, Any]:
        """Original candidate fields plus the conflict annotations."""
        if self.matched_slot is None:
            matched = None
        elif self.matched_record is not None:
            matched = dict(self.matched_record)
        else:
            matched = self.matched_slot.to_dict()

        details = None
        if self.conflict_details is not None:
            details = [
                detail if isinstance(detail, str) else detail.to_dict()
                for detail in self.conflict_details
            ]

        enhanced = dict(self.candidate.fields)
        enhanced.update(
            hasConflict=self.has_conflict,
            conflictDetails=details,
            matchedSlot=matched,
        )
        return enhanced


@dataclass(frozen=True)
class AvailabilitySummary:
    total_availability_periods: int
    total_appointments: int
    total_free_slots: int
    total_free_minutes: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalAvailabilityPeriods": self.total_availability_periods,
            "totalAppointments": self.total_appointments,
            "totalFreeSlots": self.total_free_slots,
            "totalFreeMinutes": self.total_free_minutes,
        }


@dataclass(frozen=True)
class ConflictSummary:
    total_processed: int
    total_valid: int
    total_conflicted: int
    validation_errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalProcessed": self.total_processed,
            "totalValid": self.total_valid,
            "totalConflicted": self.total_conflicted,
            "validationErrors": list(self.validation_errors),
        }
