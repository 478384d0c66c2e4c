"""
Tests for the AvailabilityService orchestration layer.
"""

import asyncio
import threading
from typing import Any, Dict, List, Optional

import pytest

from practitioner_scheduler.adapters.mock_windmill_client import MockWindmillClient
from practitioner_scheduler.domain.availability_calculator import AvailabilityCalculator
from practitioner_scheduler.domain.exceptions import MalformedInputStructure, UpstreamFetchError
from practitioner_scheduler.services.availability_service import AvailabilityService


class StubPracticeClient:
    """Minimal stub matching PracticeDataClientProtocol."""

    def __init__(
        self,
        practitioner: Optional[Dict[str, Any]] = None,
        appointments: Optional[List[Dict[str, Any]]] = None,
        availabilities: Optional[List[Dict[str, Any]]] = None,
    ):
        self.practitioner = practitioner if practitioner is not None else {"id": 46932, "timezone": "Australia/Melbourne"}
        self.appointments = appointments if appointments is not None else []
        self.availabilities = availabilities if availabilities is not None else []
        self.calls: List[tuple] = []

    def get_single_practitioner(self, practitioner_id):
        self.calls.append(("practitioner", practitioner_id))
        return self.practitioner

    def get_appointments(self, practitioner_id, start_after=None, start_before=None, brand_name=None):
        self.calls.append(("appointments", practitioner_id, start_after, start_before))
        return self.appointments

    def get_practitioner_availabilities(self, practitioner_id, start_date, end_date):
        self.calls.append(("availabilities", practitioner_id, start_date, end_date))
        return self.availabilities


class FailingAppointmentsClient(StubPracticeClient):
    def get_appointments(self, practitioner_id, start_after=None, start_before=None, brand_name=None):
        raise UpstreamFetchError(
            "Failed to retrieve appointments. 500 Internal Server Error",
            practitioner_id=practitioner_id,
            start_date=start_after,
            end_date=start_before,
        )


class RecordingCalculator(AvailabilityCalculator):
    def __init__(self):
        self.calls = 0

    def calculate_availability(self, **kwargs):
        self.calls += 1
        return super().calculate_availability(**kwargs)


def _calculate(service: AvailabilityService, **overrides):
    kwargs = {"practitioner_id": 46932, "start_date": "2025-08-01", "end_date": "2025-08-31"}
    kwargs.update(overrides)
    return asyncio.run(service.calculate_availability(**kwargs))


def test_calculate_availability_end_to_end():
    """A booking inside a window should split it into two free slots."""
    client = StubPracticeClient(
        availabilities=[
            {"startDateTime": "2025-08-26T00:40:00Z", "endDateTime": "2025-08-26T07:00:00Z", "locationId": 19042},
        ],
        appointments=[
            {"start": "2025-08-26T01:00:00Z", "end": "2025-08-26T01:20:00Z"},
        ],
    )
    service = AvailabilityService(client=client)

    result = _calculate(service)

    assert result["practitionerId"] == 46932
    assert result["practitionerTimezone"] == "Australia/Melbourne"
    assert result["dateRange"] == {"start": "2025-08-01", "end": "2025-08-31"}
    assert [(s["startDateTime"], s["endDateTime"]) for s in result["freeTimeSlots"]] == [
        ("2025-08-26T00:40:00.000Z", "2025-08-26T01:00:00.000Z"),
        ("2025-08-26T01:20:00.000Z", "2025-08-26T07:00:00.000Z"),
    ]
    assert result["summary"]["totalFreeMinutes"] == 360
    assert ("appointments", 46932, "2025-08-01", "2025-08-31") in client.calls
    assert ("availabilities", 46932, "2025-08-01", "2025-08-31") in client.calls


def test_timezone_from_alternate_key():
    """The timeZone spelling should be accepted."""
    client = StubPracticeClient(practitioner={"id": 51007, "timeZone": "Australia/Perth"})
    service = AvailabilityService(client=client)

    result = _calculate(service, practitioner_id=51007)

    assert result["practitionerTimezone"] == "Australia/Perth"
    assert result["freeTimeSlots"] == []


def test_fallback_timezone_is_used_only_when_missing():
    """An explicit fallback fills in for a practitioner without a timezone."""
    service = AvailabilityService(client=StubPracticeClient(practitioner={"id": 46932}))

    result = _calculate(service, fallback_timezone="Australia/Sydney")

    assert result["practitionerTimezone"] == "Australia/Sydney"
    assert AvailabilityService.resolve_timezone(
        {"timezone": "Australia/Perth"}, "Australia/Sydney"
    ) == "Australia/Perth"


def test_missing_timezone_without_fallback_fails():
    """No timezone and no fallback is an error rather than a silent default."""
    service = AvailabilityService(client=StubPracticeClient(practitioner={"id": 46932}))

    with pytest.raises(MalformedInputStructure):
        _calculate(service)


def test_failed_fetch_skips_calculation():
    """A single failing fetch should abort before the calculator runs."""
    calculator = RecordingCalculator()
    service = AvailabilityService(client=FailingAppointmentsClient(), calculator=calculator)

    with pytest.raises(UpstreamFetchError) as exc_info:
        _calculate(service)

    assert calculator.calls == 0
    assert exc_info.value.practitioner_id == 46932
    assert "2025-08-01" in str(exc_info.value)


def test_null_appointments_become_empty():
    """A gateway that returns no appointment list means no bookings."""
    client = StubPracticeClient(
        availabilities=[
            {"startDateTime": "2025-08-26T00:00:00Z", "endDateTime": "2025-08-26T01:00:00Z", "locationId": 1},
        ],
    )
    client.appointments = None
    service = AvailabilityService(client=client)

    result = _calculate(service)

    assert result["summary"]["totalAppointments"] == 0
    assert result["summary"]["totalFreeSlots"] == 1


def test_fetches_run_concurrently():
    """All three fetches should be in flight at the same time."""
    barrier = threading.Barrier(3, timeout=5)

    class BarrierClient(StubPracticeClient):
        def get_single_practitioner(self, practitioner_id):
            barrier.wait()
            return super().get_single_practitioner(practitioner_id)

        def get_appointments(self, practitioner_id, start_after=None, start_before=None, brand_name=None):
            barrier.wait()
            return super().get_appointments(practitioner_id, start_after, start_before, brand_name)

        def get_practitioner_availabilities(self, practitioner_id, start_date, end_date):
            barrier.wait()
            return super().get_practitioner_availabilities(practitioner_id, start_date, end_date)

    service = AvailabilityService(client=BarrierClient())

    inputs = asyncio.run(
        service.fetch_inputs(practitioner_id=46932, start_date="2025-08-01", end_date="2025-08-31")
    )

    assert inputs.practitioner["timezone"] == "Australia/Melbourne"
    assert not barrier.broken


def test_deadline_turns_into_fetch_error():
    """A fetch that outlives the deadline should fail the whole request."""
    release = threading.Event()

    class SlowClient(StubPracticeClient):
        def get_practitioner_availabilities(self, practitioner_id, start_date, end_date):
            release.wait(5)
            return []

    service = AvailabilityService(client=SlowClient(), deadline_seconds=0.05)

    async def run():
        try:
            await service.fetch_inputs(practitioner_id=46932, start_date="2025-08-01", end_date="2025-08-31")
        finally:
            release.set()

    with pytest.raises(UpstreamFetchError, match="Timed out"):
        asyncio.run(run())


def test_mock_client_end_to_end():
    """The bundled mock data should produce a full availability document."""
    service = AvailabilityService(client=MockWindmillClient())

    result = _calculate(service)

    assert result["practitionerTimezone"] == "Australia/Melbourne"
    assert result["summary"]["totalAvailabilityPeriods"] == 3
    assert result["summary"]["totalAppointments"] == 2
    assert result["summary"]["totalFreeSlots"] == 5
    assert result["summary"]["totalFreeMinutes"] == 1260


def test_check_candidates_against_mock_availability():
    """Suggestions should be checked against the computed availability."""
    service = AvailabilityService(client=MockWindmillClient())
    availability = _calculate(service)
    suggestions = {
        "suggestedAppointments": [
            {"start": "2025-08-26T01:30:00Z", "end": "2025-08-26T02:30:00Z", "locationId": 19042},
            {"start": "2025-08-28T01:30:00Z", "end": "2025-08-28T02:30:00Z", "locationId": 19042},
        ]
    }

    result = service.check_candidates(availability, suggestions)

    valid, clashing = result["suggestedAppointments"]
    assert valid["hasConflict"] is False
    assert valid["matchedSlot"]["startDateTime"] == "2025-08-26T01:20:00.000Z"
    assert clashing["hasConflict"] is True
    assert clashing["conflictDetails"][0]["overlapEnd"] == "2025-08-28T02:00:00.000Z"
    assert result["summary"]["totalValid"] == 1
    assert result["summary"]["totalConflicted"] == 1
