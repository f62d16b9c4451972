"""
Infrastructure layer: Open data catalog client.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx
from pydantic import BaseModel, ValidationError

from app.config import settings
from app.infrastructure.api_constants import APIConstants, OpenDataEndpoints
from app.infrastructure.errors import CatalogError

logger = logging.getLogger(__name__)


class CatalogPage(BaseModel):
    """One page of catalog records."""
    results: List[Dict[str, Any]]
    total_count: Optional[int] = None


class OpenDataClient:
    """
    Client for the paginated, read-only public tree catalog.

    Any transport error, non-2xx response or malformed body aborts the
    traversal with CatalogError.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        dataset: Optional[str] = None,
        page_size: Optional[int] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the catalog client.

        Args:
            base_url: Catalog API root (defaults to settings)
            dataset: Dataset identifier (defaults to settings)
            page_size: Records per page (defaults to settings)
            http_client: Pre-built httpx client, mainly for tests
        """
        self.base_url = base_url or settings.open_data_base_url
        self.dataset = dataset or settings.open_data_dataset
        self.page_size = page_size or settings.catalog_page_size or APIConstants.DEFAULT_PAGE_SIZE
        self.client = http_client or httpx.AsyncClient(
            base_url=self.base_url,
            headers={"accept": APIConstants.CONTENT_TYPE_JSON},
            timeout=settings.http_timeout_seconds,
        )

    async def __aenter__(self) -> "OpenDataClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def fetch_page(
        self,
        offset: int,
        limit: Optional[int] = None,
        refine: Optional[str] = None,
        where: Optional[str] = None,
        select: Optional[str] = None,
    ) -> CatalogPage:
        """
        Fetch one page of records.

        Args:
            offset: Index of the first record
            limit: Page size (defaults to the client page size)
            refine: Facet refinement expression
            where: Filter expression
            select: Comma separated list of fields

        Returns:
            CatalogPage with the raw records

        Raises:
            CatalogError: On transport errors, non-2xx status or malformed body
        """
        params: Dict[str, Any] = {"limit": limit or self.page_size, "offset": offset}
        if refine:
            params["refine"] = refine
        if where:
            params["where"] = where
        if select:
            params["select"] = select

        endpoint = OpenDataEndpoints.get_records(self.dataset)
        try:
            response = await self.client.get(endpoint, params=params)
        except httpx.RequestError as e:
            raise CatalogError(f"Catalog request error: {str(e)}")

        if response.is_error:
            raise CatalogError(
                f"Catalog request failed: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )

        try:
            return CatalogPage(**response.json())
        except (ValueError, TypeError, ValidationError) as e:
            raise CatalogError(f"Invalid data format received from catalog: {e}")

    async def fetch_genus_trees(
        self,
        genus: str,
        max_records: Optional[int] = None,
    ) -> Tuple[List[Dict[str, Any]], bool]:
        """
        Fetch every record of a genus, up to a hard record cap.

        Args:
            genus: Genus to refine on (e.g. "PRUNUS")
            max_records: Record cap (defaults to settings.catalog_max_records)

        Returns:
            (records, hit_record_limit); the flag means the result may be incomplete
        """
        cap = max_records or settings.catalog_max_records
        limit = self.page_size
        records: List[Dict[str, Any]] = []
        offset = 0
        has_more = True

        while has_more and offset + limit <= cap:
            page = await self.fetch_page(
                offset, limit, refine=OpenDataEndpoints.genus_refine(genus)
            )
            records.extend(page.results)
            if len(page.results) < limit:
                has_more = False
            else:
                offset += limit

        hit_record_limit = has_more and offset + limit > cap
        if hit_record_limit:
            logger.warning(f"Stopped after {len(records)} {genus} records; result may be incomplete")
        else:
            logger.info(f"Fetched {len(records)} {genus} records")
        return records, hit_record_limit

    async def fetch_neighborhood_trees(
        self,
        genus: str,
        neighborhood: str,
    ) -> List[Dict[str, Any]]:
        """
        Fetch every record of a genus within one neighborhood.

        Filtering happens server-side; paging stops at the first short or
        empty page.

        Args:
            genus: Genus to filter on
            neighborhood: Neighborhood name as stored in the catalog

        Returns:
            Raw catalog records
        """
        where = OpenDataEndpoints.neighborhood_where(genus, neighborhood)
        select = ",".join(OpenDataEndpoints.TREE_FIELDS)
        limit = self.page_size
        records: List[Dict[str, Any]] = []
        offset = 0

        while True:
            page = await self.fetch_page(offset, limit, where=where, select=select)
            if not page.results:
                break
            records.extend(page.results)
            if len(page.results) < limit:
                break
            offset += limit

        logger.info(f"Fetched {len(records)} {genus} records for {neighborhood}")
        return records


# Singleton instance
_open_data_client: Optional[OpenDataClient] = None


def get_open_data_client() -> OpenDataClient:
    """
    Get or create the singleton catalog client instance.

    Returns:
        OpenDataClient instance
    """
    global _open_data_client
    if _open_data_client is None:
        _open_data_client = OpenDataClient()
    return _open_data_client
