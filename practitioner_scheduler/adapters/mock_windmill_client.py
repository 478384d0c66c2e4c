"""
Mock gateway client for running without access to the practice-management system.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import pendulum

from ..domain.exceptions import InvalidTimestamp, UpstreamFetchError
from ..domain.timezones import parse_instant

logger = logging.getLogger(__name__)

DEFAULT_DATA_FILE = Path(__file__).parent / "mock_practice_data.json"


class MockWindmillClient:
    """
    Mock client that serves practice data from a JSON file.

    Mirrors the ``WindmillClient`` interface so the service and CLI can run
    offline. Records are filtered per practitioner and date range the same
    way the real gateway does.
    """

    def __init__(self, data_file: Optional[Path] = None):
        self.data_file = data_file or DEFAULT_DATA_FILE
        self._load_practice_data()

    def _load_practice_data(self):
        """Load mock practice data from JSON file."""
        if self.data_file.exists():
            with open(self.data_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        else:
            logger.warning("Mock data file %s not found; serving empty data", self.data_file)
            data = {}

        self.practitioners: List[Dict[str, Any]] = data.get("practitioners", [])
        self.availabilities: List[Dict[str, Any]] = data.get("availabilities", [])
        self.appointments: List[Dict[str, Any]] = data.get("appointments", [])

    def get_single_practitioner(self, practitioner_id: int) -> Dict[str, Any]:
        for practitioner in self.practitioners:
            if practitioner.get("id") == practitioner_id:
                return dict(practitioner)

        raise UpstreamFetchError(
            f"Failed to retrieve practitioner {practitioner_id}. 404 Not Found",
            practitioner_id=practitioner_id,
        )

    def get_appointments(
        self,
        practitioner_id: int,
        start_after: Optional[str] = None,
        start_before: Optional[str] = None,
        brand_name: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        return [
            _without_owner(record) for record in self.appointments
            if record.get("practitionerId") == practitioner_id
            and _in_range(record.get("start"), start_after, start_before)
        ]

    def get_practitioner_availabilities(
        self,
        practitioner_id: int,
        start_date: str,
        end_date: str,
    ) -> List[Dict[str, Any]]:
        return [
            _without_owner(record) for record in self.availabilities
            if record.get("practitionerId") == practitioner_id
            and _in_range(record.get("startDateTime"), start_date, end_date)
        ]


def _without_owner(record: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value for key, value in record.items() if key != "practitionerId"}


def _in_range(value: Any, start_date: Optional[str], end_date: Optional[str]) -> bool:
    """Check a record start against an inclusive ``YYYY-MM-DD`` date range (UTC days)."""
    try:
        instant = parse_instant(value)
    except InvalidTimestamp:
        # Let the calculator reject the record
        return True

    if start_date and instant < pendulum.parse(start_date, tz="UTC").start_of("day"):
        return False
    if end_date and instant > pendulum.parse(end_date, tz="UTC").end_of("day"):
        return False
    return True
