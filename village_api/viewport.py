# ============================================================================
# MODULE CONTEXT - VIEWPORT QUERY ENGINE
# ============================================================================
# STATUS: Service Layer - Zoom-adaptive village queries
# PURPOSE: Pick projection, result cap and simplification from zoom, then query the store
# EXPORTS: ViewportQueryEngine, decorate_village
# DEPENDENCIES: services.geometry, services.population, util_logger
# PATTERNS: Zoom tiers, bounding-box overlap filtering
# ============================================================================

"""
Viewport Query Engine

Zoom tiers (defaults):

    zoom <= 10        coarse tolerance, centroid-level fields, 1000 cap
    10 < zoom <= 12   medium tolerance, centroid-level fields, 70% of 2000
    zoom > 12         fine tolerance, full geometry, 2000 cap

Viewport filtering compares bounding boxes only.
"""

from typing import Any, Dict, List, Optional

from services import geometry as geo
from services.population import population_category, population_color
from util_logger import LoggerFactory, ComponentType

from .config import VillageApiConfig, get_village_api_config
from .models import BoundsQuery, VillageFilters, VillageQueryOptions

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "ViewportQueryEngine")


def decorate_village(village: Dict[str, Any]) -> Dict[str, Any]:
    """Attach display colour and population category."""
    population = village.get("population") or 0
    village["color"] = population_color(population)
    village["population_category"] = population_category(population)
    return village


class ViewportQueryEngine:
    """
    Zoom-aware reads against the village store.

    Args:
        store: Object with find_in_bounds() and find()
        config: API configuration (defaults to the cached singleton)
    """

    def __init__(self, store, config: Optional[VillageApiConfig] = None):
        self.store = store
        self.config = config or get_village_api_config()

    # ========================================================================
    # TIER SELECTION
    # ========================================================================

    def includes_geometry(self, zoom: float, requested: bool = False) -> bool:
        """Full geometry above the high-detail zoom or when asked for."""
        return requested or zoom > self.config.high_detail_zoom

    def result_cap(self, zoom: float) -> int:
        if zoom > self.config.high_detail_zoom:
            return self.config.max_villages_per_request
        if zoom > self.config.low_detail_zoom:
            return int(self.config.max_villages_per_request * self.config.medium_cap_ratio)
        return self.config.default_villages_limit

    def _finish(self, villages: List[Dict[str, Any]], zoom: float) -> List[Dict[str, Any]]:
        for village in villages:
            if self.config.simplify_geometry and village.get("geometry"):
                village["geometry"] = geo.simplify(
                    village["geometry"],
                    zoom,
                    self.config.low_detail_zoom,
                    self.config.high_detail_zoom,
                    self.config.tolerances
                )
            decorate_village(village)
        return villages

    # ========================================================================
    # QUERIES
    # ========================================================================

    def villages_in_bounds(self, query: BoundsQuery) -> List[Dict[str, Any]]:
        """
        Villages whose bounding box overlaps the viewport.

        Raises:
            InvalidBoundsError: Out of range or inverted bounds
        """
        bounds = query.bounds()
        geo.validate_bounds(bounds)

        include_geometry = self.includes_geometry(query.zoom, query.include_geometry)
        limit = self.result_cap(query.zoom)

        villages = self.store.find_in_bounds(bounds, include_geometry, limit)
        logger.info(
            f"Viewport query returned {len(villages)} villages",
            extra={'custom_dimensions': {
                'zoom': query.zoom,
                'tier': geo.zoom_tier(query.zoom, self.config.low_detail_zoom, self.config.high_detail_zoom),
                'limit': limit,
                'geometry': include_geometry
            }}
        )
        return self._finish(villages, query.zoom)

    def list_villages(
        self,
        filters: VillageFilters,
        options: Optional[VillageQueryOptions] = None
    ) -> List[Dict[str, Any]]:
        """
        Villages matching filters.

        The limit defaults to the default cap and never exceeds the
        maximum cap.
        """
        options = options or VillageQueryOptions(zoom=self.config.default_zoom)
        include_geometry = self.includes_geometry(options.zoom, options.include_geometry)
        limit = min(
            options.limit or self.config.default_villages_limit,
            self.config.max_villages_per_request
        )

        villages = self.store.find(filters.to_store(), include_geometry, limit)
        logger.info(f"Listed {len(villages)} villages at {filters.level} level")
        return self._finish(villages, options.zoom)
