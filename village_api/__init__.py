# ============================================================================
# MODULE CONTEXT - VILLAGE API MODULE
# ============================================================================
# STATUS: Feature Module - Village query and statistics API
# PURPOSE: Viewport-aware village reads, region lists and population statistics
# EXPORTS: VillageService, StatsAggregator, VillageApiConfig, get_village_api_config,
#          get_village_triggers, get_stats_triggers
# DEPENDENCIES: pydantic, azure-functions, services.geometry, services.population
# PATTERNS: Service Layer, Self-contained module
# ENTRY_POINTS: from village_api import get_village_triggers, get_stats_triggers
# ============================================================================

"""
Village API Module

    viewport.py   - zoom tiers, result caps, simplification
    service.py    - regions, search, lookup, bulk delete
    stats.py      - totals, distribution, dashboard, comparisons
    triggers.py   - Azure Functions HTTP handlers
"""

from .config import VillageApiConfig, get_village_api_config
from .service import VillageService
from .stats import StatsAggregator
from .triggers import get_village_triggers, get_stats_triggers

__version__ = "1.0.0"
__all__ = [
    "VillageApiConfig",
    "VillageService",
    "StatsAggregator",
    "get_village_api_config",
    "get_village_triggers",
    "get_stats_triggers"
]
