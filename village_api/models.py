# ============================================================================
# MODULE CONTEXT - VILLAGE API MODELS
# ============================================================================
# STATUS: Standalone Models - Village query parameters and statistics
# PURPOSE: Request validation and statistics response models
# EXPORTS: VillageFilters, VillageQueryOptions, BoundsQuery, SearchQuery,
#          VillageStats, DistributionBucket, Region
# INTERFACES: Pydantic BaseModel
# DEPENDENCIES: pydantic, typing
# VALIDATION: Pydantic v2 validation
# PATTERNS: Data Transfer Objects (DTOs)
# ============================================================================

"""
Village API Models

Query parameter models reject malformed input before any store access.
Villages themselves are returned as plain dicts so that geometry can be
left out entirely when it was not requested.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, model_validator


class VillageFilters(BaseModel):
    """
    Identity filters and an inclusive population range.
    """
    state: Optional[str] = Field(default=None, description="Exact state name")
    district: Optional[str] = Field(default=None, description="Exact district name")
    subdistrict: Optional[str] = Field(default=None, description="Exact subdistrict name")
    min_population: Optional[int] = Field(default=None, ge=0, description="Inclusive lower bound")
    max_population: Optional[int] = Field(default=None, ge=0, description="Inclusive upper bound")

    @model_validator(mode="after")
    def check_population_range(self) -> "VillageFilters":
        if (
            self.min_population is not None
            and self.max_population is not None
            and self.min_population > self.max_population
        ):
            raise ValueError("min_population must not exceed max_population")
        return self

    def to_store(self) -> Dict[str, Any]:
        """Filters as the store expects them, unset values dropped."""
        return self.model_dump(exclude_none=True)

    @property
    def level(self) -> str:
        """Administrative level the filters narrow down to."""
        if self.subdistrict:
            return "subdistrict"
        if self.district:
            return "district"
        if self.state:
            return "state"
        return "national"


class VillageQueryOptions(BaseModel):
    zoom: float = Field(default=6, ge=1, le=20, description="Map zoom level")
    limit: Optional[int] = Field(default=None, ge=1, le=5000, description="Maximum villages")
    include_geometry: bool = Field(default=False, description="Force full geometry")


class BoundsQuery(BaseModel):
    """
    Viewport box plus zoom.

    Range and ordering checks happen in the viewport engine so that they
    surface as InvalidBoundsError.
    """
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float
    zoom: float = Field(default=6, ge=1, le=20)
    include_geometry: bool = False

    def bounds(self) -> Dict[str, float]:
        return {
            "min_lat": self.min_lat,
            "max_lat": self.max_lat,
            "min_lng": self.min_lng,
            "max_lng": self.max_lng,
        }


class SearchQuery(BaseModel):
    q: str = Field(min_length=2, description="Village name fragment")
    limit: int = Field(default=50, ge=1, le=5000)


class VillageStats(BaseModel):
    total_villages: int = 0
    total_population: int = 0
    avg_population: float = 0
    min_population: int = 0
    max_population: int = 0
    total_area: float = 0


class DistributionBucket(BaseModel):
    lower_bound: int = Field(description="Smallest population in the bucket")
    label: str
    count: int
    total_population: int
    avg_population: float


class Region(BaseModel):
    state: Optional[str] = None
    district: Optional[str] = None
    subdistrict: Optional[str] = None

    def to_filters(self) -> VillageFilters:
        return VillageFilters(state=self.state, district=self.district, subdistrict=self.subdistrict)
