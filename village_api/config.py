# ============================================================================
# MODULE CONTEXT - VILLAGE API CONFIGURATION
# ============================================================================
# STATUS: Standalone Configuration - Village query API
# PURPOSE: Zoom tiers, result caps, simplification tolerances and rate limits
# EXPORTS: VillageApiConfig, get_village_api_config
# INTERFACES: Pydantic BaseModel
# PYDANTIC_MODELS: VillageApiConfig
# DEPENDENCIES: pydantic, os
# SOURCE: Environment variables
# PATTERNS: Settings Pattern, Singleton via cached function
# ENTRY_POINTS: from village_api.config import get_village_api_config
# ============================================================================

"""
Village API Configuration

Environment Variables (all optional):
    - LOW_DETAIL_ZOOM: Zoom at or below which the coarse tier applies (default: 10)
    - HIGH_DETAIL_ZOOM: Zoom above which full geometry is returned (default: 12)
    - MAX_DETAIL_ZOOM: Highest zoom the map client requests (default: 18)
    - MAX_VILLAGES_PER_REQUEST: Result cap above the high-detail zoom (default: 2000)
    - DEFAULT_VILLAGES_LIMIT: Result cap at or below the low-detail zoom (default: 1000)
    - SIMPLIFY_TOLERANCE_COARSE / _MEDIUM / _FINE: Degrees (0.05 / 0.01 / 0.005)
    - SIMPLIFY_GEOMETRY: Simplify returned geometry by zoom tier (default: true)
    - RATE_LIMIT_VILLAGES / RATE_LIMIT_STATS / RATE_LIMIT_DELETE: Requests per window
"""

import os
from typing import Dict, Optional
from pydantic import BaseModel, Field, model_validator


class VillageApiConfig(BaseModel):
    """
    Configuration for the village query API.
    """

    # Zoom tiers
    low_detail_zoom: int = Field(
        default_factory=lambda: int(os.getenv("LOW_DETAIL_ZOOM", "10")),
        ge=0,
        description="Zoom at or below which the coarse tier applies"
    )
    high_detail_zoom: int = Field(
        default_factory=lambda: int(os.getenv("HIGH_DETAIL_ZOOM", "12")),
        ge=0,
        description="Zoom above which full geometry is included"
    )
    max_detail_zoom: int = Field(
        default_factory=lambda: int(os.getenv("MAX_DETAIL_ZOOM", "18")),
        ge=0,
        description="Highest zoom requested by map clients"
    )
    default_zoom: int = Field(default=6, description="Zoom assumed when a request omits it")

    # Result caps
    max_villages_per_request: int = Field(
        default_factory=lambda: int(os.getenv("MAX_VILLAGES_PER_REQUEST", "2000")),
        ge=1,
        description="Result cap above the high-detail zoom"
    )
    default_villages_limit: int = Field(
        default_factory=lambda: int(os.getenv("DEFAULT_VILLAGES_LIMIT", "1000")),
        ge=1,
        description="Result cap at or below the low-detail zoom"
    )
    medium_cap_ratio: float = Field(default=0.7, gt=0, le=1)
    search_default_limit: int = Field(default=50, ge=1)

    # Simplification
    tolerance_coarse: float = Field(
        default_factory=lambda: float(os.getenv("SIMPLIFY_TOLERANCE_COARSE", "0.05")),
        gt=0
    )
    tolerance_medium: float = Field(
        default_factory=lambda: float(os.getenv("SIMPLIFY_TOLERANCE_MEDIUM", "0.01")),
        gt=0
    )
    tolerance_fine: float = Field(
        default_factory=lambda: float(os.getenv("SIMPLIFY_TOLERANCE_FINE", "0.005")),
        gt=0
    )
    simplify_geometry: bool = Field(
        default_factory=lambda: os.getenv("SIMPLIFY_GEOMETRY", "true").lower() == "true",
        description="Simplify returned geometry by zoom tier"
    )

    # Rate limits (requests, window seconds)
    villages_rate_limit: int = Field(
        default_factory=lambda: int(os.getenv("RATE_LIMIT_VILLAGES", "200")), ge=1
    )
    villages_rate_window: int = Field(default=60, ge=1)
    stats_rate_limit: int = Field(
        default_factory=lambda: int(os.getenv("RATE_LIMIT_STATS", "100")), ge=1
    )
    stats_rate_window: int = Field(default=60, ge=1)
    delete_rate_limit: int = Field(
        default_factory=lambda: int(os.getenv("RATE_LIMIT_DELETE", "5")), ge=1
    )
    delete_rate_window: int = Field(default=3600, ge=1)

    @model_validator(mode="after")
    def check_zoom_order(self) -> "VillageApiConfig":
        if self.low_detail_zoom > self.high_detail_zoom:
            raise ValueError("LOW_DETAIL_ZOOM must not exceed HIGH_DETAIL_ZOOM")
        return self

    @property
    def tolerances(self) -> Dict[str, float]:
        return {
            "coarse": self.tolerance_coarse,
            "medium": self.tolerance_medium,
            "fine": self.tolerance_fine,
        }


# Singleton instance cache
_config_cache: Optional[VillageApiConfig] = None


def get_village_api_config() -> VillageApiConfig:
    """
    Get singleton village API configuration instance.

    Raises:
        ValueError: If an environment override is invalid
    """
    global _config_cache

    if _config_cache is None:
        _config_cache = VillageApiConfig()

    return _config_cache
