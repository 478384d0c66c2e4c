"""
Core business logic for calculating a practitioner's free time.

Pure domain logic without any external dependencies (no API calls, no
database, no I/O). Inputs are already-resolved UTC records; the output is the
availability document consumed by the suggestion stage.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence

from .exceptions import InvalidInterval, InvalidTimestamp, MalformedInputStructure
from .models import (
    AvailabilitySummary,
    AvailabilityWindow,
    BookedAppointment,
    FreeSlot,
    TimeRange,
)
from .timezones import ensure_timezone


class AvailabilityCalculator:
    """
    Calculates free time slots from availability windows and bookings.

    Algorithm, for each availability window independently:
    1. Find the bookings that strictly overlap the window
    2. Walk them in start order, emitting the gaps before each booking
    3. Emit whatever is left of the window after the last booking
    4. Sort all windows' slots by start time

    Windows are never merged with each other, even when adjacent or
    overlapping, so every slot keeps the location of its own window.
    """

    def calculate_free_slots(
        self,
        windows: Sequence[AvailabilityWindow],
        bookings: Sequence[BookedAppointment],
    ) -> List[FreeSlot]:
        """
        Subtract bookings from availability windows.

        Args:
            windows: Declared availability windows
            bookings: Existing commitments

        Returns:
            Free slots sorted by start time
        """
        sorted_bookings = sorted(
            (booking.time_range for booking in bookings),
            key=lambda r: r.start,
        )

        free_slots: List[FreeSlot] = []

        for window in windows:
            overlapping = [
                booked for booked in sorted_bookings
                if window.time_range.overlaps(booked)
            ]

            if not overlapping:
                # Entire window is free
                free_slots.append(FreeSlot(window.time_range, window.location_id))
                continue

            free_slots.extend(
                FreeSlot(free_range, window.location_id)
                for free_range in self._subtract_bookings_from_window(window.time_range, overlapping)
            )

        return sorted(free_slots, key=lambda slot: slot.time_range.start)

    def _subtract_bookings_from_window(
        self,
        window: TimeRange,
        bookings: List[TimeRange],
    ) -> List[TimeRange]:
        """
        Subtract sorted, overlapping bookings from one window.

        Example:
        Window: 00:40 - 07:00
        Booked: [01:00-01:20]
        Result: [00:40-01:00, 01:20-07:00]
        """
        free_ranges: List[TimeRange] = []
        cursor = window.start

        for booked in bookings:
            if cursor < booked.start:
                free_ranges.append(TimeRange(start=cursor, end=booked.start))

            cursor = max(cursor, booked.end)

        if cursor < window.end:
            free_ranges.append(TimeRange(start=cursor, end=window.end))

        return free_ranges

    def summarize(
        self,
        windows: Sequence[AvailabilityWindow],
        bookings: Sequence[BookedAppointment],
        free_slots: Sequence[FreeSlot],
    ) -> AvailabilitySummary:
        """Summary counts for one calculation; free minutes keep their fractions."""
        total_ms = sum(slot.time_range.duration_ms() for slot in free_slots)
        return AvailabilitySummary(
            total_availability_periods=len(windows),
            total_appointments=len(bookings),
            total_free_slots=len(free_slots),
            total_free_minutes=total_ms / 60_000,
        )

    def calculate_availability(
        self,
        *,
        practitioner_id: Any,
        practitioner_timezone: str,
        start_date: Optional[str],
        end_date: Optional[str],
        availability_records: Any,
        schedule_records: Any,
    ) -> Dict[str, Any]:
        """
        Build the full availability document from raw upstream records.

        Any malformed record aborts the whole calculation; no partial result
        is ever returned.

        Raises:
            InvalidTimeZone: If the practitioner timezone is unknown
            MalformedInputStructure: If either record collection is malformed
        """
        ensure_timezone(practitioner_timezone)

        windows = parse_availability_windows(availability_records)
        bookings = parse_booked_appointments(schedule_records)

        free_slots = self.calculate_free_slots(windows, bookings)
        summary = self.summarize(windows, bookings, free_slots)

        return {
            "practitionerId": practitioner_id,
            "practitionerTimezone": practitioner_timezone,
            "dateRange": {"start": start_date, "end": end_date},
            "summary": summary.to_dict(),
            "freeTimeSlots": [slot.to_dict() for slot in free_slots],
        }


def parse_availability_windows(records: Any) -> List[AvailabilityWindow]:
    """
    Parse ``{startDateTime, endDateTime, locationId}`` records.

    Raises:
        MalformedInputStructure: If the collection or any record is malformed
    """
    windows: List[AvailabilityWindow] = []
    for index, record in enumerate(_require_records(records, "availability")):
        time_range = _parse_record_range(record, "startDateTime", "endDateTime", "availability", index)
        windows.append(AvailabilityWindow(time_range=time_range, location_id=record.get("locationId")))

    return sorted(windows, key=lambda w: w.time_range.start)


def parse_booked_appointments(records: Any) -> List[BookedAppointment]:
    """
    Parse ``{start, end}`` schedule records; other fields are ignored.

    Raises:
        MalformedInputStructure: If the collection or any record is malformed
    """
    return [
        BookedAppointment(time_range=_parse_record_range(record, "start", "end", "schedule", index))
        for index, record in enumerate(_require_records(records, "schedule"))
    ]


def _require_records(records: Any, name: str) -> List[Mapping[str, Any]]:
    if records is None or isinstance(records, (str, bytes, Mapping)) or not isinstance(records, Sequence):
        raise MalformedInputStructure(f"Expected a list of {name} records, got {type(records).__name__}")

    for index, record in enumerate(records):
        if not isinstance(record, Mapping):
            raise MalformedInputStructure(
                f"{name.capitalize()} record {index} must be an object, got {type(record).__name__}"
            )

    return list(records)


def _parse_record_range(
    record: Mapping[str, Any],
    start_key: str,
    end_key: str,
    name: str,
    index: int,
) -> TimeRange:
    missing = [key for key in (start_key, end_key) if key not in record]
    if missing:
        raise MalformedInputStructure(
            f"{name.capitalize()} record {index} is missing {', '.join(missing)}"
        )

    try:
        return TimeRange.parse(record[start_key], record[end_key])
    except (InvalidTimestamp, InvalidInterval) as exc:
        raise MalformedInputStructure(f"{name.capitalize()} record {index} is invalid: {exc}") from exc
