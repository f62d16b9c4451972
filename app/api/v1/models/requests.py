"""
API request models using Pydantic.
"""
from typing import Optional
from pydantic import BaseModel, Field

from app.domain.models import BloomStatus


class BloomStatusUpdateRequest(BaseModel):
    """Body of a bloom status report."""
    street: str = Field(min_length=1, description="Street name")
    status: BloomStatus = Field(description="Reported status: blooming or unknown")
    neighborhood: str = Field(min_length=1, description="Neighborhood of the street")
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    tree_count: Optional[int] = Field(default=None, alias="treeCount", ge=0)

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "street": "Oak Street",
                "status": "blooming",
                "neighborhood": "Shaughnessy",
                "latitude": 49.2445,
                "longitude": -123.1271,
                "treeCount": 42,
            }
        }
