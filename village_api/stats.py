# ============================================================================
# MODULE CONTEXT - STATS AGGREGATOR
# ============================================================================
# STATUS: Service Layer - Population statistics
# PURPOSE: Totals, bucket distribution, dashboard insights, summaries and comparisons
# EXPORTS: StatsAggregator, MAX_COMPARISON_REGIONS
# DEPENDENCIES: services.population, util_logger
# PATTERNS: Thin consumer of the store's grouping capability
# ============================================================================

"""
Statistics over the village store.
"""

from typing import Any, Dict, List, Optional

from exceptions import InvalidQueryError
from services.population import DISTRIBUTION_BOUNDARIES, bucket_label
from util_logger import LoggerFactory, ComponentType

from .models import DistributionBucket, Region, VillageFilters, VillageStats

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "StatsAggregator")

MAX_COMPARISON_REGIONS = 10


class StatsAggregator:
    """
    Args:
        store: Object with aggregate_stats(), population_distribution() and distinct()
    """

    def __init__(self, store):
        self.store = store

    def village_stats(self, filters: VillageFilters) -> VillageStats:
        return VillageStats(**self.store.aggregate_stats(filters.to_store()))

    def population_distribution(self, filters: VillageFilters) -> List[DistributionBucket]:
        rows = self.store.population_distribution(filters.to_store(), DISTRIBUTION_BOUNDARIES)
        return [
            DistributionBucket(label=bucket_label(row["lower_bound"]), **row)
            for row in rows
        ]

    def dashboard(self, filters: VillageFilters) -> Dict[str, Any]:
        stats = self.village_stats(filters)
        distribution = self.population_distribution(filters)
        return {
            "basic_stats": stats,
            "population_distribution": distribution,
            "insights": self.insights(stats, distribution),
        }

    @staticmethod
    def insights(stats: VillageStats, distribution: List[DistributionBucket]) -> Dict[str, str]:
        """
        Qualitative labels for a dashboard.

        Labels whose inputs are zero are left out.
        """
        insights: Dict[str, str] = {}

        if stats.avg_population:
            if stats.avg_population > 2000:
                insights["population_density"] = "High"
            elif stats.avg_population > 1000:
                insights["population_density"] = "Medium"
            else:
                insights["population_density"] = "Low"

        if stats.total_villages:
            if stats.total_villages > 100:
                insights["area_size"] = "Large"
            elif stats.total_villages > 50:
                insights["area_size"] = "Medium"
            else:
                insights["area_size"] = "Small"

        if stats.max_population and stats.avg_population:
            variation = stats.max_population / stats.avg_population
            insights["population_variation"] = (
                "High" if variation > 3 else "Medium" if variation > 2 else "Low"
            )

        if distribution:
            dominant = max(distribution, key=lambda bucket: bucket.count)
            insights["dominant_village_size"] = dominant.label

        return insights

    def summary(self, state: Optional[str]) -> Dict[str, Any]:
        """State totals plus per-district totals, most populous district first."""
        if not state:
            raise InvalidQueryError("State parameter is required for summary stats")

        state_stats = self.village_stats(VillageFilters(state=state))
        districts = self.store.distinct("district", {"state": state})

        district_stats = []
        for district in districts:
            stats = self.village_stats(VillageFilters(state=state, district=district))
            district_stats.append({"district": district, **stats.model_dump()})
        district_stats.sort(key=lambda d: d["total_population"], reverse=True)

        return {"state": state, "state_stats": state_stats, "district_stats": district_stats}

    def comparative(self, regions: List[Region]) -> Dict[str, Any]:
        """
        Side-by-side stats for up to ten regions.

        Raises:
            InvalidQueryError: No regions, or more than ten
        """
        if not regions:
            raise InvalidQueryError("Regions array is required")
        if len(regions) > MAX_COMPARISON_REGIONS:
            raise InvalidQueryError(
                f"Maximum {MAX_COMPARISON_REGIONS} regions allowed for comparison"
            )

        rows = []
        for region in regions:
            stats = self.village_stats(region.to_filters())
            rows.append({"region": region.model_dump(exclude_none=True), **stats.model_dump()})

        logger.info(f"Compared {len(rows)} regions")
        return {"regions": rows, "comparison": self._compare(rows)}

    @staticmethod
    def _compare(rows: List[Dict[str, Any]]) -> Dict[str, Any]:
        def pick(key: str, highest: bool = True) -> Dict[str, Any]:
            chosen = max(rows, key=lambda r: r[key]) if highest else min(rows, key=lambda r: r[key])
            return {"region": chosen["region"], "value": chosen[key]}

        return {
            "highest_population": pick("total_population"),
            "lowest_population": pick("total_population", highest=False),
            "most_villages": pick("total_villages"),
            "highest_density": pick("avg_population"),
        }
