"""
Application services for calculating practitioner availability.

The service coordinates fetching practice data via a gateway client adapter
and delegates the actual calculations to the domain-level
``AvailabilityCalculator`` and ``ConflictChecker``. This keeps the CLI thin
and improves testability by allowing the gateway dependency to be replaced
via a simple protocol.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol

from ..domain.availability_calculator import AvailabilityCalculator
from ..domain.conflict_checker import ConflictChecker
from ..domain.exceptions import MalformedInputStructure, UpstreamFetchError

logger = logging.getLogger(__name__)


class PracticeDataClientProtocol(Protocol):
    """Protocol describing the gateway client behaviour needed by the service."""

    def get_single_practitioner(self, practitioner_id: int) -> Dict[str, Any]:
        """Return the practitioner record."""

    def get_appointments(
        self,
        practitioner_id: int,
        start_after: Optional[str] = None,
        start_before: Optional[str] = None,
        brand_name: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Return booked appointment records."""

    def get_practitioner_availabilities(
        self,
        practitioner_id: int,
        start_date: str,
        end_date: str,
    ) -> List[Dict[str, Any]]:
        """Return availability window records."""


@dataclass(frozen=True)
class PracticeInputs:
    """Everything the calculator needs, fetched together."""
    practitioner: Dict[str, Any]
    appointments: List[Dict[str, Any]]
    availabilities: List[Dict[str, Any]]


class AvailabilityService:
    """
    Orchestrates practice-data retrieval, availability calculation and
    conflict checking.

    The three upstream requests are independent and run concurrently. The
    calculator only runs once all of them have succeeded.
    """

    def __init__(
        self,
        client: PracticeDataClientProtocol,
        calculator: Optional[AvailabilityCalculator] = None,
        checker: Optional[ConflictChecker] = None,
        deadline_seconds: Optional[float] = 60,
    ) -> None:
        self._client = client
        self._calculator = calculator or AvailabilityCalculator()
        self._checker = checker or ConflictChecker()
        self._deadline_seconds = deadline_seconds

    async def calculate_availability(
        self,
        *,
        practitioner_id: int,
        start_date: str,
        end_date: str,
        fallback_timezone: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Fetch practice data and compute the availability document.

        Raises:
            UpstreamFetchError: If any fetch fails or the deadline passes
            MalformedInputStructure: If no timezone can be resolved or the
                records are malformed
        """
        inputs = await self.fetch_inputs(
            practitioner_id=practitioner_id,
            start_date=start_date,
            end_date=end_date,
        )

        timezone = self.resolve_timezone(inputs.practitioner, fallback_timezone)
        logger.info("Practitioner %s uses timezone %s", practitioner_id, timezone)
        logger.info(
            "Found %d appointments and %d availability entries",
            len(inputs.appointments), len(inputs.availabilities),
        )

        availability = self._calculator.calculate_availability(
            practitioner_id=practitioner_id,
            practitioner_timezone=timezone,
            start_date=start_date,
            end_date=end_date,
            availability_records=inputs.availabilities,
            schedule_records=inputs.appointments,
        )

        logger.info("Calculated %d free time slots", availability["summary"]["totalFreeSlots"])
        return availability

    async def fetch_inputs(
        self,
        *,
        practitioner_id: int,
        start_date: str,
        end_date: str,
    ) -> PracticeInputs:
        """
        Fetch the practitioner, schedule and availability concurrently.

        Any single failure aborts the whole fetch; the calculator never sees
        partial inputs.
        """
        fetches = asyncio.gather(
            asyncio.to_thread(self._client.get_single_practitioner, practitioner_id),
            asyncio.to_thread(self._client.get_appointments, practitioner_id, start_date, end_date),
            asyncio.to_thread(
                self._client.get_practitioner_availabilities, practitioner_id, start_date, end_date
            ),
        )

        try:
            practitioner, appointments, availabilities = await asyncio.wait_for(
                fetches, timeout=self._deadline_seconds
            )
        except asyncio.TimeoutError as exc:
            raise UpstreamFetchError(
                f"Timed out after {self._deadline_seconds}s fetching practice data",
                practitioner_id=practitioner_id,
                start_date=start_date,
                end_date=end_date,
            ) from exc

        return PracticeInputs(
            practitioner=practitioner,
            appointments=appointments if appointments is not None else [],
            availabilities=availabilities,
        )

    @staticmethod
    def resolve_timezone(
        practitioner: Mapping[str, Any],
        fallback_timezone: Optional[str],
    ) -> str:
        """
        Pick the practitioner's timezone, or the caller's explicit fallback.

        Raises:
            MalformedInputStructure: If neither is available
        """
        timezone = practitioner.get("timezone") or practitioner.get("timeZone") or fallback_timezone
        if not timezone:
            raise MalformedInputStructure(
                "Practitioner record has no timezone and no fallback timezone was supplied"
            )
        return timezone

    def check_candidates(
        self,
        availability: Mapping[str, Any],
        suggestions: Mapping[str, Any],
    ) -> Dict[str, Any]:
        """Annotate suggested appointments against a computed availability document."""
        result = self._checker.check_conflicts(availability, suggestions)
        summary = result["summary"]
        logger.info(
            "%d valid suggestions, %d conflicted",
            summary["totalValid"], summary["totalConflicted"],
        )
        return result
