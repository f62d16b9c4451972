"""
Infrastructure layer: Bloom status backend client.
"""
import logging
from typing import Any, List, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from app.config import settings
from app.domain.models import BloomStatus, BloomStatusReport, NeighborhoodStats
from app.infrastructure.api_constants import APIConstants, BloomStatusEndpoints
from app.infrastructure.errors import BloomStatusClientError, RateLimitedError

logger = logging.getLogger(__name__)

_report_list = TypeAdapter(List[BloomStatusReport])


class BloomStatusClient:
    """
    Client for the bloom status backend.

    Failed calls are never retried here; a retry is the user's choice.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Backend root URL (defaults to settings)
            http_client: Pre-built httpx client, mainly for tests
        """
        self.base_url = base_url or settings.bloom_status_api_base_url
        self.client = http_client or httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "accept": APIConstants.CONTENT_TYPE_JSON,
                "Content-Type": APIConstants.CONTENT_TYPE_JSON,
            },
            timeout=settings.http_timeout_seconds,
        )

    async def __aenter__(self) -> "BloomStatusClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def _send(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        try:
            return await self.client.request(method, endpoint, **kwargs)
        except httpx.RequestError as e:
            raise BloomStatusClientError(f"Bloom status request error: {str(e)}")

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            raise BloomStatusClientError(
                f"Invalid JSON from bloom status API ({response.status_code})",
                status_code=response.status_code,
            )

    def _raise_for_status(self, response: httpx.Response, action: str) -> None:
        if response.is_error:
            raise BloomStatusClientError(
                f"Failed to {action}: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

    async def get_status(self, street: str) -> Optional[BloomStatusReport]:
        """
        Fetch the current report for a street.

        Args:
            street: Street name

        Returns:
            The most recent report, or None if nothing was recorded

        Raises:
            BloomStatusClientError: If the request fails
        """
        response = await self._send("GET", BloomStatusEndpoints.get_street_status(street))
        if response.status_code == 404:
            return None
        self._raise_for_status(response, "fetch bloom status")

        data = self._json(response)
        if not isinstance(data, dict):
            raise BloomStatusClientError("Unexpected bloom status payload")
        if data.get("status") == BloomStatus.UNKNOWN.value and not data.get("timestamp"):
            return None

        data.setdefault("street", street)
        try:
            return BloomStatusReport.model_validate(data)
        except ValidationError as e:
            raise BloomStatusClientError(f"Unexpected bloom status payload: {e}")

    async def update_status(self, report: BloomStatusReport) -> BloomStatusReport:
        """
        Submit a new report.

        Args:
            report: Report to persist; id and timestamp are assigned by the server

        Returns:
            The persisted report

        Raises:
            RateLimitedError: If the backend asks the client to back off
            BloomStatusClientError: For any other failure
        """
        body = {
            "street": report.street,
            "status": report.status.value,
            "neighborhood": report.neighborhood,
            "latitude": report.latitude,
            "longitude": report.longitude,
            "treeCount": report.tree_count,
        }
        logger.info(f"Submitting {report.status.value} report for {report.street}")
        response = await self._send(
            "POST",
            BloomStatusEndpoints.BLOOM_STATUS,
            json={key: value for key, value in body.items() if value is not None},
        )

        if response.status_code == 429:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {}
            hint = error_data.get("retryAfter") if isinstance(error_data, dict) else None
            if isinstance(hint, (int, float)) and not isinstance(hint, bool) and hint > 0:
                retry_after = int(hint)
            else:
                retry_after = APIConstants.DEFAULT_RETRY_AFTER
            logger.warning(f"Report for {report.street} rate limited, retry in {retry_after}s")
            raise RateLimitedError(retry_after)

        self._raise_for_status(response, "update bloom status")
        try:
            return BloomStatusReport.model_validate(self._json(response))
        except ValidationError as e:
            raise BloomStatusClientError(f"Unexpected update response: {e}")

    async def get_neighborhood_stats(self, neighborhood: str) -> NeighborhoodStats:
        """
        Fetch aggregate street counts for a neighborhood.

        Raises:
            BloomStatusClientError: If the request fails
        """
        response = await self._send(
            "GET", BloomStatusEndpoints.get_neighborhood_stats(neighborhood)
        )
        self._raise_for_status(response, "fetch neighborhood stats")
        try:
            return NeighborhoodStats.model_validate(self._json(response))
        except ValidationError as e:
            raise BloomStatusClientError(f"Unexpected stats payload: {e}")

    async def get_recent_reports(
        self, limit: int = APIConstants.DEFAULT_RECENT_LIMIT
    ) -> List[BloomStatusReport]:
        """
        Fetch the most recent reports across all streets, newest first.

        Raises:
            BloomStatusClientError: If the request fails
        """
        response = await self._send(
            "GET", BloomStatusEndpoints.RECENT_REPORTS, params={"limit": limit}
        )
        self._raise_for_status(response, "fetch recent reports")
        try:
            return _report_list.validate_python(self._json(response))
        except ValidationError as e:
            raise BloomStatusClientError(f"Unexpected recent reports payload: {e}")


# Singleton instance
_bloom_status_client: Optional[BloomStatusClient] = None


def get_bloom_status_client() -> BloomStatusClient:
    """
    Get or create the singleton bloom status client instance.

    Returns:
        BloomStatusClient instance
    """
    global _bloom_status_client
    if _bloom_status_client is None:
        _bloom_status_client = BloomStatusClient()
    return _bloom_status_client
