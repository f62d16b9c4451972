"""
Application service: Orchestration of the tree aggregation pipeline.
"""
import logging
from typing import Dict, List, Optional

from pydantic import TypeAdapter, ValidationError

from app.config import settings
from app.domain.models import (
    BloomStatus,
    LatestBloomReport,
    NeighborhoodOverview,
    NeighborhoodSummary,
    StreetCountsResult,
    StreetSummary,
    TreeRecord,
    UserReport,
)
from app.infrastructure.api_constants import APIConstants
from app.infrastructure.bloom_status_client import BloomStatusClient
from app.infrastructure.errors import BloomStatusClientError, CacheWriteError
from app.infrastructure.local_cache import LocalCache
from app.infrastructure.open_data_client import OpenDataClient
from app.services.domain.neighborhood_aggregator import (
    count_streets,
    group_by_neighborhood,
    has_confirmed_blooms,
    normalize_neighborhood_name,
    normalize_trees,
    sort_by_tree_count,
    split_top,
)
from app.utils.concurrency import gather_by_key

logger = logging.getLogger(__name__)

_neighborhood_list = TypeAdapter(List[NeighborhoodSummary])
_street_list = TypeAdapter(List[StreetSummary])
_tree_list = TypeAdapter(List[TreeRecord])


class TreeAggregationService:
    """
    Application service building neighborhood and street views of the
    catalog, merged with crowd-sourced bloom status.

    Coordinates the catalog client, the bloom status client and the local
    cache. Grouping rules live in the neighborhood_aggregator domain module.
    """

    def __init__(
        self,
        catalog: OpenDataClient,
        bloom_client: BloomStatusClient,
        cache: LocalCache,
        genus: Optional[str] = None,
        max_concurrency: Optional[int] = None,
        top_streets: Optional[int] = None,
    ):
        """
        Initialize the service with dependencies.

        Args:
            catalog: Open data catalog client
            bloom_client: Bloom status backend client
            cache: Local cache for computed results
            genus: Genus filter (defaults to settings.tree_genus)
            max_concurrency: Bound on concurrent status reads
            top_streets: Number of streets kept for the table
        """
        self.catalog = catalog
        self.bloom_client = bloom_client
        self.cache = cache
        self.genus = genus or settings.tree_genus
        self.max_concurrency = max_concurrency or settings.status_fetch_concurrency
        self.top_streets = top_streets or settings.top_streets_count

    def _cache_set(self, key: str, value) -> None:
        try:
            self.cache.set(key, value)
        except CacheWriteError as e:
            logger.warning(f"Failed to cache {key}: {e}")

    def _cached(self, key: str, adapter: TypeAdapter):
        data = self.cache.get(key)
        if data is None:
            return None
        try:
            return adapter.validate_python(data)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed cache entry {key}: {e}")
            return None

    async def get_neighborhood_summaries(self) -> NeighborhoodOverview:
        """
        Build the neighborhood overview.

        This method orchestrates:
        1. Returning a cached overview when one exists
        2. Paging through the catalog up to the record cap
        3. Grouping trees by neighborhood and street
        4. Merging per-neighborhood bloom stats and the latest global report
        5. Sorting by tree count and caching the result

        Returns:
            NeighborhoodOverview with neighborhoods sorted by tree count

        Raises:
            CatalogError: If the catalog cannot be read
        """
        cached = self._cached(APIConstants.NEIGHBORHOOD_COUNTS_KEY, _neighborhood_list)
        if cached:
            logger.info(f"Using {len(cached)} cached neighborhood counts")
            return NeighborhoodOverview(neighborhoods=cached, from_cache=True)

        records, hit_record_limit = await self.catalog.fetch_genus_trees(self.genus)
        trees = normalize_trees(records)
        neighborhoods = group_by_neighborhood(trees)
        logger.info(f"Grouped {len(trees)} trees into {len(neighborhoods)} neighborhoods")

        stats_by_name = await gather_by_key(
            neighborhoods.keys(),
            self.bloom_client.get_neighborhood_stats,
            max_concurrency=self.max_concurrency,
        )
        for name, stats in stats_by_name.items():
            summary = neighborhoods[name]
            if isinstance(stats, Exception):
                logger.error(f"Error fetching bloom stats for {name}: {stats}")
                summary.has_confirmed_blooms = None
                summary.latest_bloom_report = None
                continue
            summary.has_confirmed_blooms = has_confirmed_blooms(stats)

        await self._attach_latest_bloom_report(neighborhoods, stats_by_name)

        ordered = sort_by_tree_count(list(neighborhoods.values()))
        self._cache_set(
            APIConstants.NEIGHBORHOOD_COUNTS_KEY,
            [summary.model_dump(mode="json") for summary in ordered],
        )
        return NeighborhoodOverview(neighborhoods=ordered, hit_record_limit=hit_record_limit)

    async def _attach_latest_bloom_report(
        self,
        neighborhoods: Dict[str, NeighborhoodSummary],
        stats_by_name: Dict[str, object],
    ) -> None:
        try:
            recent = await self.bloom_client.get_recent_reports(1)
        except BloomStatusClientError as e:
            logger.error(f"Error fetching recent reports: {e}")
            return
        if not recent:
            return

        latest = recent[0]
        summary = neighborhoods.get(latest.neighborhood or "")
        if summary is None or latest.status != BloomStatus.BLOOMING:
            return
        if isinstance(stats_by_name.get(summary.name), Exception):
            return
        summary.latest_bloom_report = LatestBloomReport(
            street=latest.street,
            timestamp=latest.timestamp,
        )

    async def get_street_counts(self, neighborhood: str) -> StreetCountsResult:
        """
        Build the street view of one neighborhood.

        Every distinct street gets its current status fetched concurrently;
        a failed fetch leaves that street unknown.

        Args:
            neighborhood: Neighborhood name as shown in the overview

        Returns:
            StreetCountsResult with all streets, the top streets and all trees

        Raises:
            CatalogError: If the catalog cannot be read
        """
        streets_key = APIConstants.STREET_COUNTS_KEY.format(neighborhood=neighborhood)
        trees_key = APIConstants.TREE_LOCATIONS_KEY.format(neighborhood=neighborhood)

        cached_streets = self._cached(streets_key, _street_list)
        cached_trees = self._cached(trees_key, _tree_list)
        if cached_streets is not None and cached_trees is not None:
            logger.info(f"Using cached street data for {neighborhood}")
            ordered, top = split_top(cached_streets, self.top_streets)
            return StreetCountsResult(
                neighborhood=neighborhood,
                streets=ordered,
                top_streets=top,
                trees=cached_trees,
                from_cache=True,
            )

        normalized = normalize_neighborhood_name(neighborhood)
        records = await self.catalog.fetch_neighborhood_trees(self.genus, normalized)
        trees = normalize_trees(records, strict=True)

        if not trees:
            logger.warning(
                f"No valid trees found for neighborhood {normalized} "
                f"(requested as {neighborhood})"
            )
            return StreetCountsResult(neighborhood=neighborhood)

        streets = count_streets(trees)
        reports = await gather_by_key(
            streets.keys(),
            self.bloom_client.get_status,
            max_concurrency=self.max_concurrency,
        )
        for street, report in reports.items():
            if isinstance(report, Exception):
                logger.error(f"Error fetching bloom status for {street}: {report}")
                continue
            if report is None:
                continue
            summary = streets[street]
            summary.bloom_status = report.status
            summary.user_report = UserReport(
                status=report.status,
                timestamp=report.timestamp,
                username=report.reporter,
            )

        ordered, top = split_top(list(streets.values()), self.top_streets)
        self._cache_set(streets_key, [street.model_dump(mode="json") for street in ordered])
        self._cache_set(trees_key, [tree.model_dump(mode="json") for tree in trees])

        return StreetCountsResult(
            neighborhood=neighborhood,
            streets=ordered,
            top_streets=top,
            trees=trees,
        )
