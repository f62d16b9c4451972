"""
API response models using Pydantic.
"""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from app.domain.models import BloomStatus, BloomStatusReport, NeighborhoodStats


class StreetStatusResponse(BaseModel):
    """Current status of a street; only ``status`` is set when nothing was reported."""
    status: BloomStatus = Field(
        description="Current bloom status of the street"
    )
    street: Optional[str] = None
    timestamp: Optional[datetime] = Field(
        default=None,
        description="Time of the most recent report"
    )
    reporter: Optional[str] = None
    neighborhood: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    tree_count: Optional[int] = Field(default=None, alias="treeCount")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "status": "blooming",
                "street": "Oak Street",
                "timestamp": "2025-04-02T18:21:07.512Z",
                "reporter": "Anonymous",
                "neighborhood": "Shaughnessy",
                "latitude": 49.2445,
                "longitude": -123.1271,
                "treeCount": 42,
            }
        }

    @classmethod
    def from_report(cls, report: Optional[BloomStatusReport]) -> "StreetStatusResponse":
        if report is None:
            return cls(status=BloomStatus.UNKNOWN)
        return cls(**report.model_dump(exclude={"id"}))


class BloomStatusReportResponse(BaseModel):
    """A persisted bloom status report."""
    id: int = Field(description="Server-assigned report identifier")
    street: str
    status: BloomStatus
    timestamp: datetime = Field(description="Server-assigned report time (UTC)")
    reporter: str
    neighborhood: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    tree_count: Optional[int] = Field(default=None, alias="treeCount")

    class Config:
        populate_by_name = True

    @classmethod
    def from_report(cls, report: BloomStatusReport) -> "BloomStatusReportResponse":
        return cls(**report.model_dump())


class NeighborhoodStatsResponse(BaseModel):
    """Street counts of a neighborhood by current status."""
    total_streets: int = Field(description="Streets with at least one report in the neighborhood")
    blooming_count: int = Field(description="Streets whose current status is blooming")
    unknown_count: int = Field(description="Streets whose current status is unknown")
    last_updated: Optional[datetime] = Field(
        default=None,
        description="Most recent report time across the neighborhood"
    )
    error: Optional[str] = Field(
        default=None,
        description="Set when the counts could not be computed"
    )

    class Config:
        json_schema_extra = {
            "example": {
                "total_streets": 3,
                "blooming_count": 1,
                "unknown_count": 2,
                "last_updated": "2025-04-02T18:21:07.512Z",
            }
        }

    @classmethod
    def from_stats(cls, stats: NeighborhoodStats) -> "NeighborhoodStatsResponse":
        payload = stats.model_dump()
        if payload["error"] is None:
            payload.pop("error")
        return cls(**payload)


class ErrorResponse(BaseModel):
    """Error payload."""
    error: str
    detail: Optional[str] = None


class RateLimitResponse(BaseModel):
    """Payload of a rejected write."""
    error: str
    retryAfter: int = Field(description="Seconds to wait before retrying")
