"""
Application configuration using Pydantic settings.
"""
from pathlib import Path

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database Configuration
    database_url: str = Field(
        default="sqlite+aiosqlite:///./bloom_status.db",
        description="SQLAlchemy async database URL (postgresql+asyncpg://... in production)"
    )
    database_auto_create: bool = Field(
        default=True,
        description="Create missing tables on startup"
    )
    db_pool_size: int = Field(
        default=5,
        description="Fixed size of the database connection pool"
    )
    db_pool_timeout: int = Field(
        default=5,
        description="Seconds to wait for a pooled connection"
    )
    db_max_retry_attempts: int = Field(
        default=3,
        description="Maximum attempts for reads that fail on connection errors"
    )
    db_retry_min_wait: float = Field(
        default=0.5,
        description="Minimum wait time in seconds between read retries"
    )
    db_retry_max_wait: float = Field(
        default=4.0,
        description="Maximum wait time in seconds between read retries"
    )
    stats_statement_timeout_ms: int = Field(
        default=3000,
        description="Time budget for the neighborhood aggregate query"
    )
    request_timeout_seconds: float = Field(
        default=5.0,
        description="Request-level timeout for status and stats reads"
    )

    # Open Data Catalog Configuration
    open_data_base_url: str = Field(
        default="https://opendata.vancouver.ca/api/explore/v2.1",
        description="Base URL of the public tree catalog API"
    )
    open_data_dataset: str = Field(
        default="public-trees",
        description="Catalog dataset holding street tree records"
    )
    tree_genus: str = Field(
        default="PRUNUS",
        description="Genus the tracker is interested in"
    )
    catalog_page_size: int = Field(
        default=100,
        description="Records requested per catalog page"
    )
    catalog_max_records: int = Field(
        default=10000,
        description="Hard cap on records fetched for the neighborhood overview"
    )

    # Bloom Status API (client side)
    bloom_status_api_base_url: str = Field(
        default="http://localhost:3001",
        description="Base URL of the bloom status backend"
    )
    http_timeout_seconds: float = Field(
        default=30.0,
        description="Timeout for outgoing HTTP requests"
    )
    status_fetch_concurrency: int = Field(
        default=10,
        description="Maximum concurrent bloom status reads during aggregation"
    )
    top_streets_count: int = Field(
        default=10,
        description="Number of streets shown in the neighborhood table"
    )

    # Local Cache
    cache_path: str = Field(
        default="",
        description="JSON file backing the local cache (empty keeps it in memory)"
    )
    cli_cache_path: str = Field(
        default=str(Path.home() / ".cache" / "sakura-watch" / "cache.json"),
        description="JSON file backing the local cache of command-line runs"
    )
    cache_ttl_seconds: int = Field(
        default=24 * 60 * 60,
        description="Lifetime of a cache entry"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    # CORS Configuration
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins"
    )

    # Rate Limiting
    rate_limit_requests: int = Field(
        default=20,
        description="Maximum write requests per window per client"
    )
    rate_limit_window_seconds: int = Field(
        default=60,
        description="Length of the write rate limit window in seconds"
    )

    # Application Settings
    app_name: str = Field(
        default="Sakura Watch Bloom Status API",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    debug: bool = Field(
        default=False,
        description="Debug mode"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
