"""
Application service: Street bloom report submission.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Sequence

from pydantic import ValidationError

from app.domain.models import (
    BloomStatus,
    BloomStatusReport,
    StreetSummary,
    TreeRecord,
    UserReport,
)
from app.infrastructure.api_constants import APIConstants
from app.infrastructure.bloom_status_client import BloomStatusClient
from app.infrastructure.errors import CacheWriteError
from app.infrastructure.local_cache import LocalCache
from app.utils.coordinates import average_coordinates

logger = logging.getLogger(__name__)


class ReportService:
    """
    Submits a user's bloom report for a street and keeps a local record of
    the reports this user made.
    """

    def __init__(self, bloom_client: BloomStatusClient, cache: LocalCache):
        self.bloom_client = bloom_client
        self.cache = cache

    def _cached_reports(self) -> Dict[str, dict]:
        reports = self.cache.get(APIConstants.BLOOM_REPORTS_KEY)
        return reports if isinstance(reports, dict) else {}

    async def submit_report(
        self,
        neighborhood: str,
        street: str,
        streets: Sequence[StreetSummary],
        trees: Sequence[TreeRecord],
        status: BloomStatus = BloomStatus.BLOOMING,
    ) -> List[StreetSummary]:
        """
        Report a street's bloom status.

        The report is placed at the average position of the street's trees
        and carries the street's tree count.

        Args:
            neighborhood: Neighborhood the street belongs to
            street: Street being reported
            streets: Current street summaries of the neighborhood
            trees: Tree records of the neighborhood
            status: Reported status

        Returns:
            Street summaries with the reported street updated

        Raises:
            ValueError: If the street is not among ``streets``
            RateLimitedError: If the backend asks the user to wait; the
                caller should restore its previous input state
            BloomStatusClientError: If the submission fails otherwise
        """
        street_data = next((s for s in streets if s.street == street), None)
        if street_data is None:
            raise ValueError(f"No street data found for {street!r}")

        position = average_coordinates(
            (tree.latitude, tree.longitude) for tree in trees if tree.std_street == street
        )
        latitude, longitude = position if position else (None, None)

        report = BloomStatusReport(
            street=street,
            status=status,
            timestamp=datetime.now(timezone.utc),
            reporter=APIConstants.ANONYMOUS_REPORTER,
            neighborhood=neighborhood,
            latitude=latitude,
            longitude=longitude,
            tree_count=street_data.count,
        )
        saved = await self.bloom_client.update_status(report)
        logger.info(f"Recorded {status.value} report {saved.id} for {street}")

        user_report = UserReport(
            status=status,
            timestamp=saved.timestamp or report.timestamp,
            username=APIConstants.ANONYMOUS_REPORTER,
        )
        updated = [
            s.model_copy(update={"bloom_status": status, "user_report": user_report})
            if s.street == street else s
            for s in streets
        ]

        reports = self._cached_reports()
        reports[street] = StreetSummary(
            street=street,
            count=street_data.count,
            bloom_status=status,
            user_report=user_report,
        ).model_dump(mode="json")
        try:
            self.cache.set(APIConstants.BLOOM_REPORTS_KEY, reports)
        except CacheWriteError as e:
            logger.warning(f"Failed to cache bloom reports: {e}")

        return updated

    def apply_cached_reports(self, streets: Sequence[StreetSummary]) -> List[StreetSummary]:
        """Overlay this user's cached reports onto street summaries."""
        reports = self._cached_reports()
        if not reports:
            return list(streets)

        merged = []
        for summary in streets:
            cached = reports.get(summary.street)
            if cached is None:
                merged.append(summary)
                continue
            try:
                report = StreetSummary.model_validate(cached)
            except ValidationError as e:
                logger.warning(f"Ignoring cached report for {summary.street}: {e}")
                merged.append(summary)
                continue
            merged.append(summary.model_copy(update={
                "bloom_status": report.bloom_status,
                "user_report": report.user_report or summary.user_report,
            }))
        return merged
