"""
HTTP client for the workflow gateway that fronts the practice-management system.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

from ..domain.exceptions import UpstreamFetchError

logger = logging.getLogger(__name__)


class WindmillClient:
    """
    Client for the gateway's synchronous job endpoints.

    Each call runs a named job and waits for its result:
    ``POST {base_url}/api/w/{workspace}/jobs/run_wait_result/f/f/splose/<job>``
    """

    JOB_PREFIX = "jobs/run_wait_result/f/f/splose"

    def __init__(
        self,
        base_url: str,
        workspace_id: str,
        token: str,
        timeout_seconds: float = 30,
    ):
        """
        Initialize the gateway client.

        Args:
            base_url: Gateway root URL
            workspace_id: Workspace that owns the jobs
            token: Bearer token for the gateway
            timeout_seconds: Per-request timeout
        """
        self.base_url = base_url.rstrip("/")
        self.workspace_id = workspace_id
        self.timeout_seconds = timeout_seconds
        self.headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    def _job_url(self, job: str) -> str:
        return f"{self.base_url}/api/w/{self.workspace_id}/{self.JOB_PREFIX}/{job}"

    def _run_job(
        self,
        job: str,
        payload: Dict[str, Any],
        *,
        what: str,
        practitioner_id: int,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
    ) -> Any:
        url = self._job_url(job)
        logger.debug("POST %s", url)

        try:
            response = requests.post(
                url,
                headers=self.headers,
                json=payload,
                timeout=self.timeout_seconds,
            )
        except requests.exceptions.RequestException as exc:
            raise UpstreamFetchError(
                f"Network error retrieving {what}: {exc}",
                practitioner_id=practitioner_id,
                start_date=start_date,
                end_date=end_date,
            ) from exc

        if response.status_code != 200:
            raise UpstreamFetchError(
                f"Failed to retrieve {what}. {response.status_code} {response.text}",
                practitioner_id=practitioner_id,
                start_date=start_date,
                end_date=end_date,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamFetchError(
                f"Invalid JSON retrieving {what}: {exc}",
                practitioner_id=practitioner_id,
                start_date=start_date,
                end_date=end_date,
            ) from exc

    def get_single_practitioner(self, practitioner_id: int) -> Dict[str, Any]:
        """
        Fetch a practitioner record, which carries the practitioner's timezone.

        Raises:
            UpstreamFetchError: If the request fails
        """
        logger.info("Fetching practitioner details for practitioner %s", practitioner_id)
        data = self._run_job(
            "get_single_practitioner",
            {"practitionerId": practitioner_id},
            what=f"practitioner {practitioner_id}",
            practitioner_id=practitioner_id,
        )

        if not isinstance(data, dict):
            raise UpstreamFetchError(
                "Practitioner response is not an object",
                practitioner_id=practitioner_id,
            )
        return data

    def get_appointments(
        self,
        practitioner_id: int,
        start_after: Optional[str] = None,
        start_before: Optional[str] = None,
        brand_name: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """
        Fetch booked appointments (``{start, end, ...}`` records).

        Raises:
            UpstreamFetchError: If the request fails
        """
        logger.info(
            "Fetching appointments for practitioner %s from %s to %s",
            practitioner_id, start_after, start_before,
        )

        payload: Dict[str, Any] = {"practitionerId": practitioner_id}
        # Optional filters are only sent when provided
        if start_after is not None:
            payload["startAfter"] = start_after
        if start_before is not None:
            payload["startBefore"] = start_before
        if brand_name is not None:
            payload["brandName"] = brand_name

        data = self._run_job(
            "get_appointments",
            payload,
            what=f"appointments for practitioner {practitioner_id}",
            practitioner_id=practitioner_id,
            start_date=start_after,
            end_date=start_before,
        )

        if data is None:
            return []
        if not isinstance(data, list):
            raise UpstreamFetchError(
                "Appointments response is not a list",
                practitioner_id=practitioner_id,
                start_date=start_after,
                end_date=start_before,
            )
        return data

    def get_practitioner_availabilities(
        self,
        practitioner_id: int,
        start_date: str,
        end_date: str,
    ) -> List[Dict[str, Any]]:
        """
        Fetch expanded availability windows.

        The gateway wraps the records as ``{"data": [...]}``; the envelope is
        removed here.

        Raises:
            UpstreamFetchError: If the request fails or the envelope is missing
        """
        logger.info(
            "Fetching availability for practitioner %s from %s to %s",
            practitioner_id, start_date, end_date,
        )
        data = self._run_job(
            "get_practitioner_availabilities",
            {"practitionerId": practitioner_id, "startDate": start_date, "endDate": end_date},
            what=f"availability for practitioner {practitioner_id}",
            practitioner_id=practitioner_id,
            start_date=start_date,
            end_date=end_date,
        )

        if not isinstance(data, dict) or not isinstance(data.get("data"), list):
            raise UpstreamFetchError(
                "Availability response is missing its data list",
                practitioner_id=practitioner_id,
                start_date=start_date,
                end_date=end_date,
            )
        return data["data"]
