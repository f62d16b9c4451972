"""
Domain models for street trees and bloom status data.

These models represent the core domain entities and should be independent
of any infrastructure concerns (API clients, databases, etc.).
"""
from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, Field


class BloomStatus(str, Enum):
    """Reported bloom state of a street."""
    BLOOMING = "blooming"
    UNKNOWN = "unknown"


class Coordinates(BaseModel):
    """A latitude/longitude pair."""
    lat: float
    lng: float


class TreeRecord(BaseModel):
    """A single public street tree from the open data catalog."""
    tree_id: str
    std_street: Optional[str] = None
    genus_name: Optional[str] = None
    species_name: Optional[str] = None
    common_name: Optional[str] = None
    neighbourhood_name: Optional[str] = None
    latitude: float
    longitude: float


class BloomStatusReport(BaseModel):
    """One user-submitted bloom observation for a street."""
    id: Optional[int] = None
    street: str
    status: BloomStatus
    timestamp: Optional[datetime] = None
    reporter: str = "Anonymous"
    neighborhood: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    tree_count: Optional[int] = Field(default=None, alias="treeCount")

    class Config:
        populate_by_name = True


class NeighborhoodStats(BaseModel):
    """Per-neighborhood counts of streets by current status."""
    total_streets: int = 0
    blooming_count: int = 0
    unknown_count: int = 0
    last_updated: Optional[datetime] = None
    error: Optional[str] = None


class LatestBloomReport(BaseModel):
    """Most recent blooming report attached to a neighborhood."""
    street: str
    timestamp: Optional[datetime] = None


class NeighborhoodSummary(BaseModel):
    """Neighborhood entry produced by the tree aggregation pipeline."""
    name: str
    count: int = 0
    coordinates: Coordinates = Field(default_factory=lambda: Coordinates(lat=0.0, lng=0.0))
    has_confirmed_blooms: Optional[bool] = None
    latest_bloom_report: Optional[LatestBloomReport] = None


class UserReport(BaseModel):
    """Report details shown next to a street."""
    status: BloomStatus
    timestamp: Optional[datetime] = None
    username: str = "Anonymous"


class StreetSummary(BaseModel):
    """Tree count and bloom state of one street within a neighborhood."""
    street: str
    count: int = 0
    bloom_status: BloomStatus = BloomStatus.UNKNOWN
    user_report: Optional[UserReport] = None


class NeighborhoodOverview(BaseModel):
    """Result of the neighborhood traversal."""
    neighborhoods: List[NeighborhoodSummary]
    hit_record_limit: bool = False
    from_cache: bool = False


class StreetCountsResult(BaseModel):
    """Result of the per-neighborhood street traversal."""
    neighborhood: str
    streets: List[StreetSummary] = Field(default_factory=list)
    top_streets: List[StreetSummary] = Field(default_factory=list)
    trees: List[TreeRecord] = Field(default_factory=list)
    from_cache: bool = False
