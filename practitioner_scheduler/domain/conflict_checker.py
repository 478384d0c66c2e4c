"""
Validation of candidate appointments against calculated free time.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .exceptions import InvalidInterval, InvalidTimestamp
from .models import (
    CandidateAppointment,
    ConflictDetail,
    ConflictResult,
    ConflictSummary,
    FreeSlot,
    PartialOverlap,
    TimeRange,
)

INVALID_TIME_FORMAT = "Invalid appointment start or end time format"
START_NOT_BEFORE_END = "Appointment start time must be before end time"
NO_SLOT_FOUND = "No available time slot found for this appointment."
INVALID_AVAILABILITY = "Invalid practitioner availability data structure"
INVALID_SUGGESTIONS = "Invalid suggested appointments data structure"


class ConflictChecker:
    """
    Classifies each candidate appointment as valid or conflicted.

    A candidate is valid when it fits entirely inside a free slot, boundaries
    included, at a compatible location. Slots are scanned in the order given
    and the first fit wins; there is no preference between several fitting
    slots.
    """

    def check(
        self,
        free_slots: Sequence[FreeSlot],
        candidates: Sequence[CandidateAppointment],
    ) -> Tuple[List[ConflictResult], ConflictSummary]:
        """
        Check every candidate against the free slots, preserving candidate order.
        """
        results = [self.check_candidate(candidate, free_slots) for candidate in candidates]
        return results, self._summarize(results)

    def check_candidate(
        self,
        candidate: CandidateAppointment,
        free_slots: Sequence[FreeSlot],
    ) -> ConflictResult:
        """Check a single candidate; a bad interval only affects this candidate."""
        try:
            requested = TimeRange.parse(candidate.start, candidate.end)
        except InvalidTimestamp:
            return ConflictResult(candidate=candidate, conflict_details=[INVALID_TIME_FORMAT])
        except InvalidInterval:
            return ConflictResult(candidate=candidate, conflict_details=[START_NOT_BEFORE_END])

        matched = self._find_containing_slot(requested, candidate.location_id, free_slots)
        if matched is not None:
            return ConflictResult(candidate=candidate, matched_slot=matched)

        details: List[ConflictDetail] = []
        for slot in free_slots:
            overlap = requested.intersect(slot.time_range)
            if overlap is not None:
                details.append(PartialOverlap(slot_range=slot.time_range, overlap_range=overlap))

        if not details:
            details.append(NO_SLOT_FOUND)

        return ConflictResult(candidate=candidate, conflict_details=details)

    def check_conflicts(
        self,
        availability: Optional[Mapping[str, Any]],
        suggestions: Optional[Mapping[str, Any]],
    ) -> Dict[str, Any]:
        """
        Annotate a suggestion document against an availability document.

        Candidate fields and the suggestion summary pass through unchanged;
        ``hasConflict``, ``conflictDetails`` and ``matchedSlot`` are added to
        each candidate and the counters to the summary.

        Structural problems are reported in ``validationErrors``. When the
        availability side is unusable, every candidate is reported conflicted
        without any slot matching.
        """
        base_summary = {}
        if isinstance(suggestions, Mapping) and isinstance(suggestions.get("summary"), Mapping):
            base_summary = dict(suggestions["summary"])

        raw_candidates = None
        if isinstance(suggestions, Mapping):
            raw_candidates = suggestions.get("suggestedAppointments")

        validation_errors: List[str] = []
        if not isinstance(raw_candidates, list) or not all(isinstance(c, Mapping) for c in raw_candidates):
            validation_errors.append(INVALID_SUGGESTIONS)
            raw_candidates = []

        candidates = [CandidateAppointment.from_dict(record) for record in raw_candidates]

        slot_records = None
        if isinstance(availability, Mapping):
            slot_records = availability.get("freeTimeSlots")

        parsed = _parse_free_slot_records(slot_records)
        if parsed is None:
            validation_errors.append(INVALID_AVAILABILITY)
            results = [
                ConflictResult(candidate=candidate, conflict_details=[INVALID_AVAILABILITY])
                for candidate in candidates
            ]
            summary = self._summarize(results, validation_errors)
        else:
            free_slots = [slot for slot, _ in parsed]
            results = [
                self._attach_record(self.check_candidate(candidate, free_slots), parsed)
                for candidate in candidates
            ]
            summary = self._summarize(results, validation_errors)

        enhanced = dict(suggestions) if isinstance(suggestions, Mapping) else {}
        enhanced["suggestedAppointments"] = [result.to_dict() for result in results]
        enhanced["summary"] = {**base_summary, **summary.to_dict()}
        return enhanced

    @staticmethod
    def _find_containing_slot(
        requested: TimeRange,
        location_id: Optional[int],
        free_slots: Sequence[FreeSlot],
    ) -> Optional[FreeSlot]:
        for slot in free_slots:
            if not slot.time_range.contains(requested):
                continue
            if location_id is not None and slot.location_id is not None and location_id != slot.location_id:
                continue
            return slot
        return None

    @staticmethod
    def _attach_record(
        result: ConflictResult,
        parsed: List[Tuple[FreeSlot, Mapping[str, Any]]],
    ) -> ConflictResult:
        """Report the caller's own slot record as the match, not a re-serialised copy."""
        if result.matched_slot is None:
            return result
        for slot, record in parsed:
            if slot is result.matched_slot:
                return ConflictResult(
                    candidate=result.candidate,
                    matched_slot=slot,
                    matched_record=record,
                )
        return result

    @staticmethod
    def _summarize(
        results: Sequence[ConflictResult],
        validation_errors: Optional[List[str]] = None,
    ) -> ConflictSummary:
        conflicted = sum(1 for result in results if result.has_conflict)
        return ConflictSummary(
            total_processed=len(results),
            total_valid=len(results) - conflicted,
            total_conflicted=conflicted,
            validation_errors=list(validation_errors or []),
        )


def _parse_free_slot_records(records: Any) -> Optional[List[Tuple[FreeSlot, Mapping[str, Any]]]]:
    """Parse slot records, or return None if any of them is unusable."""
    if not isinstance(records, list):
        return None

    parsed: List[Tuple[FreeSlot, Mapping[str, Any]]] = []
    for record in records:
        if not isinstance(record, Mapping):
            return None
        try:
            time_range = TimeRange.parse(record.get("startDateTime"), record.get("endDateTime"))
        except (InvalidTimestamp, InvalidInterval):
            return None
        parsed.append((FreeSlot(time_range=time_range, location_id=record.get("locationId")), record))

    return parsed
