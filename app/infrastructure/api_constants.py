"""
API endpoint constants and configuration.

This module contains all external API endpoint paths and related constants.
Centralizing these values makes it easy to swap out endpoints or update API versions.
"""
from urllib.parse import quote


# Open Data Catalog Endpoints
class OpenDataEndpoints:
    """Open data catalog endpoint paths."""

    # Base paths
    CATALOG_BASE = "/catalog/datasets"

    # Dataset endpoints
    DATASET_RECORDS = f"{CATALOG_BASE}/{{dataset}}/records"

    # Fields needed to place a tree on the map
    TREE_FIELDS = (
        "tree_id",
        "std_street",
        "genus_name",
        "species_name",
        "common_name",
        "neighbourhood_name",
        "geo_point_2d",
    )

    @classmethod
    def get_records(cls, dataset: str) -> str:
        """
        Get the records endpoint for a dataset.

        Args:
            dataset: Dataset identifier (e.g. "public-trees")

        Returns:
            Formatted endpoint path
        """
        return cls.DATASET_RECORDS.format(dataset=dataset)

    @classmethod
    def genus_refine(cls, genus: str) -> str:
        """Facet refinement selecting one genus."""
        return f"genus_name:{genus}"

    @classmethod
    def neighborhood_where(cls, genus: str, neighborhood: str) -> str:
        """
        Build the filter expression for one genus in one neighborhood.

        Single quotes in the neighborhood name are doubled.
        """
        escaped = neighborhood.replace("'", "''")
        return f"genus_name = '{genus}' AND neighbourhood_name = '{escaped}'"


# Bloom Status API Endpoints
class BloomStatusEndpoints:
    """Bloom status backend endpoint paths."""

    BLOOM_STATUS = "/bloom-status"
    STREET_STATUS = f"{BLOOM_STATUS}/{{street}}"
    NEIGHBORHOOD_STATS = f"{BLOOM_STATUS}/stats/{{neighborhood}}"
    RECENT_REPORTS = f"{BLOOM_STATUS}/recent"

    @classmethod
    def get_street_status(cls, street: str) -> str:
        """Street status path with the street name percent-encoded."""
        return cls.STREET_STATUS.format(street=quote(street, safe=""))

    @classmethod
    def get_neighborhood_stats(cls, neighborhood: str) -> str:
        """Neighborhood stats path with the name percent-encoded."""
        return cls.NEIGHBORHOOD_STATS.format(neighborhood=quote(neighborhood, safe=""))


# API Configuration Constants
class APIConstants:
    """General API configuration constants."""

    # HTTP Headers
    CONTENT_TYPE_JSON = "application/json"

    # Pagination
    DEFAULT_PAGE_SIZE = 100

    # Recent reports
    DEFAULT_RECENT_LIMIT = 10
    MAX_RECENT_LIMIT = 100

    # Rate limiting
    DEFAULT_RETRY_AFTER = 60

    # Reporter name for anonymous reports
    ANONYMOUS_REPORTER = "Anonymous"

    # Local cache keys
    NEIGHBORHOOD_COUNTS_KEY = "neighborhood_counts"
    BLOOM_REPORTS_KEY = "bloom_reports"
    STREET_COUNTS_KEY = "street_counts_{neighborhood}"
    TREE_LOCATIONS_KEY = "tree_locations_{neighborhood}"
