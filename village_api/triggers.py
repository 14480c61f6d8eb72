# ============================================================================
# MODULE CONTEXT - VILLAGE API TRIGGERS
# ============================================================================
# STATUS: HTTP Triggers - Village query and statistics endpoints
# PURPOSE: Azure Functions HTTP handlers for villages, regions and statistics
# EXPORTS: get_village_triggers, get_stats_triggers
# INTERFACES: Azure Functions HttpRequest/HttpResponse
# PYDANTIC_MODELS: VillageFilters, VillageQueryOptions, BoundsQuery, SearchQuery, Region
# DEPENDENCIES: azure.functions, pydantic, api_response, infrastructure.rate_limiter
# VALIDATION: Query parameter parsing and Pydantic validation
# PATTERNS: Trigger Pattern, Factory Pattern (get_village_triggers)
# ENTRY_POINTS: Function App route registration via get_village_triggers()
# ============================================================================

"""
Village API HTTP Triggers

Villages:
- GET    /api/villages                          - Filtered list (zoom, limit, includeGeometry)
- GET    /api/villages/bounds                   - Viewport query (minLat, maxLat, minLng, maxLng, zoom)
- GET    /api/villages/search                   - Name search (q, limit)
- GET    /api/villages/states                   - State names
- GET    /api/villages/districts/{state}        - District names
- GET    /api/villages/subdistricts/{state}/{district} - Subdistrict names
- GET    /api/villages/population-distribution  - Bucket counts
- GET    /api/villages/{id}                     - Single village
- DELETE /api/villages/all                      - Delete everything (confirm required)

Statistics:
- GET  /api/stats             - Totals for a region
- GET  /api/stats/dashboard   - Totals, distribution and insights
- GET  /api/stats/summary     - State plus per-district totals
- POST /api/stats/comparative - Up to ten regions side by side

Query parameters use the map client's camelCase names.
"""

from typing import Any, Dict, List, Optional

import azure.functions as func
from pydantic import ValidationError

from api_response import client_address, error_response, json_response, rate_limited_response
from exceptions import InvalidBoundsError, InvalidQueryError, NotFoundError
from infrastructure.rate_limiter import RateLimiter, SlidingWindowRateLimiter
from util_logger import LoggerFactory, ComponentType

from .config import VillageApiConfig
from .models import BoundsQuery, Region, SearchQuery, VillageFilters, VillageQueryOptions
from .service import VillageService
from .stats import StatsAggregator

logger = LoggerFactory.create_logger(ComponentType.TRIGGER, "VillageApiTriggers")

# Query parameter -> model field
_PARAM_NAMES = {
    "state": "state",
    "district": "district",
    "subdistrict": "subdistrict",
    "minPopulation": "min_population",
    "maxPopulation": "max_population",
    "zoom": "zoom",
    "limit": "limit",
    "includeGeometry": "include_geometry",
    "minLat": "min_lat",
    "maxLat": "max_lat",
    "minLng": "min_lng",
    "maxLng": "max_lng",
    "q": "q",
}


# ============================================================================
# TRIGGER REGISTRY FUNCTIONS
# ============================================================================

def get_village_triggers(
    service: Optional[VillageService] = None,
    rate_limiter: Optional[RateLimiter] = None,
    delete_rate_limiter: Optional[RateLimiter] = None
) -> List[Dict[str, Any]]:
    """
    Get village trigger configurations for function_app.py.

    Args:
        service: Village service (defaults to one backed by PostGIS)
        rate_limiter: Limiter shared by every village route
        delete_rate_limiter: Additional limiter for DELETE villages/all

    Returns:
        List of dicts with keys route, methods, handler
    """
    service = service or VillageService()
    config = service.config
    rate_limiter = rate_limiter or SlidingWindowRateLimiter(
        config.villages_rate_limit, config.villages_rate_window
    )
    delete_rate_limiter = delete_rate_limiter or SlidingWindowRateLimiter(
        config.delete_rate_limit, config.delete_rate_window
    )

    return [
        {
            'route': 'villages',
            'methods': ['GET'],
            'handler': VillagesTrigger(service, rate_limiter).handle
        },
        {
            'route': 'villages/bounds',
            'methods': ['GET'],
            'handler': VillagesInBoundsTrigger(service, rate_limiter).handle
        },
        {
            'route': 'villages/search',
            'methods': ['GET'],
            'handler': VillageSearchTrigger(service, rate_limiter).handle
        },
        {
            'route': 'villages/states',
            'methods': ['GET'],
            'handler': StatesTrigger(service, rate_limiter).handle
        },
        {
            'route': 'villages/districts/{state}',
            'methods': ['GET'],
            'handler': DistrictsTrigger(service, rate_limiter).handle
        },
        {
            'route': 'villages/subdistricts/{state}/{district}',
            'methods': ['GET'],
            'handler': SubdistrictsTrigger(service, rate_limiter).handle
        },
        {
            'route': 'villages/population-distribution',
            'methods': ['GET'],
            'handler': PopulationDistributionTrigger(service, rate_limiter).handle
        },
        {
            'route': 'villages/{village_id:int}',
            'methods': ['GET'],
            'handler': VillageByIdTrigger(service, rate_limiter).handle
        },
        {
            'route': 'villages/all',
            'methods': ['DELETE'],
            'handler': DeleteAllVillagesTrigger(service, rate_limiter, delete_rate_limiter).handle
        }
    ]


def get_stats_triggers(
    service: Optional[VillageService] = None,
    rate_limiter: Optional[RateLimiter] = None
) -> List[Dict[str, Any]]:
    """
    Get statistics trigger configurations for function_app.py.
    """
    service = service or VillageService()
    config = service.config
    rate_limiter = rate_limiter or SlidingWindowRateLimiter(
        config.stats_rate_limit, config.stats_rate_window
    )

    return [
        {
            'route': 'stats',
            'methods': ['GET'],
            'handler': VillageStatsTrigger(service, rate_limiter).handle
        },
        {
            'route': 'stats/dashboard',
            'methods': ['GET'],
            'handler': DashboardStatsTrigger(service, rate_limiter).handle
        },
        {
            'route': 'stats/summary',
            'methods': ['GET'],
            'handler': SummaryStatsTrigger(service, rate_limiter).handle
        },
        {
            'route': 'stats/comparative',
            'methods': ['POST'],
            'handler': ComparativeStatsTrigger(service, rate_limiter).handle
        }
    ]


# ============================================================================
# BASE TRIGGER CLASS
# ============================================================================

class BaseVillageTrigger:
    """
    Base class for village and statistics triggers.

    Provides:
    - Per-client rate limiting
    - camelCase query parameter parsing
    - Error to status mapping (400 / 404 / 429 / 500)
    """

    def __init__(self, service: VillageService, rate_limiter: RateLimiter):
        self.service = service
        self.rate_limiter = rate_limiter

    @property
    def config(self) -> VillageApiConfig:
        return self.service.config

    def handle(self, req: func.HttpRequest) -> func.HttpResponse:
        """
        Rate-limit, run the endpoint and map errors to status codes.

        Args:
            req: Azure Functions HTTP request

        Returns:
            HttpResponse with the response envelope
        """
        address = client_address(req)
        decision = self.rate_limiter.check(address)
        if not decision.allowed:
            logger.warning(f"Rate limit hit for {address} on {type(self).__name__}")
            return rate_limited_response(decision.retry_after_seconds)

        try:
            return self._process(req)
        except ValidationError as e:
            return error_response(self._validation_message(e), status_code=400)
        except (InvalidBoundsError, InvalidQueryError) as e:
            return error_response(str(e), status_code=400)
        except NotFoundError as e:
            return error_response(e.message, status_code=404)
        except Exception as e:
            logger.error(f"Error in {type(self).__name__}: {e}", exc_info=True)
            return error_response(f"Internal server error: {e}", status_code=500)

    def _process(self, req: func.HttpRequest) -> func.HttpResponse:
        raise NotImplementedError

    # ========================================================================
    # PARSING HELPERS
    # ========================================================================

    @staticmethod
    def _parse_query_parameters(req: func.HttpRequest, *names: str) -> Dict[str, Any]:
        """Pick the given camelCase params and rename them to model fields."""
        params = {}
        for name in names:
            value = req.params.get(name)
            if value is None or value == "":
                continue
            if name == "includeGeometry":
                value = value.lower() in ("true", "1", "yes")
            params[_PARAM_NAMES[name]] = value
        return params

    def _filters(self, req: func.HttpRequest) -> VillageFilters:
        return VillageFilters(**self._parse_query_parameters(
            req, "state", "district", "subdistrict", "minPopulation", "maxPopulation"
        ))

    @staticmethod
    def _json_body(req: func.HttpRequest) -> Dict[str, Any]:
        try:
            body = req.get_json()
        except ValueError:
            raise InvalidQueryError("Request body must be valid JSON")
        if not isinstance(body, dict):
            raise InvalidQueryError("Request body must be a JSON object")
        return body

    @staticmethod
    def _validation_message(error: ValidationError) -> str:
        parts = []
        for err in error.errors():
            location = ".".join(str(part) for part in err["loc"])
            parts.append(f"{location}: {err['msg']}" if location else err["msg"])
        return "Invalid parameters: " + "; ".join(parts)


# ============================================================================
# VILLAGE TRIGGERS
# ============================================================================

class VillagesTrigger(BaseVillageTrigger):
    """
    Endpoint: GET /api/villages
    """

    def _process(self, req: func.HttpRequest) -> func.HttpResponse:
        filters = self._filters(req)
        options_params = self._parse_query_parameters(req, "zoom", "limit", "includeGeometry")
        options_params.setdefault("zoom", self.config.default_zoom)
        options = VillageQueryOptions(**options_params)

        villages = self.service.list_villages(filters, options)
        return json_response(
            data=villages,
            message=f"Retrieved {len(villages)} villages",
            meta={
                "count": len(villages),
                "filters": filters.to_store(),
                "zoom": options.zoom
            }
        )


class VillagesInBoundsTrigger(BaseVillageTrigger):
    """
    Endpoint: GET /api/villages/bounds
    """

    def _process(self, req: func.HttpRequest) -> func.HttpResponse:
        params = self._parse_query_parameters(
            req, "minLat", "maxLat", "minLng", "maxLng", "zoom", "includeGeometry"
        )
        missing = [
            name for name in ("minLat", "maxLat", "minLng", "maxLng")
            if _PARAM_NAMES[name] not in params
        ]
        if missing:
            raise InvalidBoundsError(
                "Missing required bounds parameters: minLat, maxLat, minLng, maxLng",
                {"missing": ",".join(missing)}
            )
        params.setdefault("zoom", self.config.default_zoom)
        query = BoundsQuery(**params)

        villages = self.service.villages_in_bounds(query)
        return json_response(
            data=villages,
            message=f"Retrieved {len(villages)} villages in bounds",
            meta={
                "count": len(villages),
                "bounds": query.bounds(),
                "zoom": query.zoom
            }
        )


class VillageSearchTrigger(BaseVillageTrigger):
    """
    Endpoint: GET /api/villages/search
    """

    def _process(self, req: func.HttpRequest) -> func.HttpResponse:
        params = self._parse_query_parameters(req, "q", "limit")
        params.setdefault("limit", self.config.search_default_limit)
        if "q" not in params:
            raise InvalidQueryError("Search query parameter 'q' is required")
        query = SearchQuery(**params)

        villages = self.service.search(query, self._filters(req))
        return json_response(
            data=villages,
            message=f"Found {len(villages)} villages matching '{query.q}'",
            meta={"count": len(villages), "search_term": query.q}
        )


class StatesTrigger(BaseVillageTrigger):
    """
    Endpoint: GET /api/villages/states
    """

    def _process(self, req: func.HttpRequest) -> func.HttpResponse:
        states = self.service.states()
        return json_response(data=states, message="States retrieved successfully",
                             meta={"count": len(states)})


class DistrictsTrigger(BaseVillageTrigger):
    """
    Endpoint: GET /api/villages/districts/{state}
    """

    def _process(self, req: func.HttpRequest) -> func.HttpResponse:
        state = req.route_params.get("state")
        districts = self.service.districts(state)
        return json_response(data=districts, message="Districts retrieved successfully",
                             meta={"count": len(districts), "state": state})


class SubdistrictsTrigger(BaseVillageTrigger):
    """
    Endpoint: GET /api/villages/subdistricts/{state}/{district}
    """

    def _process(self, req: func.HttpRequest) -> func.HttpResponse:
        state = req.route_params.get("state")
        district = req.route_params.get("district")
        subdistricts = self.service.subdistricts(state, district)
        return json_response(data=subdistricts, message="Subdistricts retrieved successfully",
                             meta={"count": len(subdistricts), "state": state, "district": district})


class PopulationDistributionTrigger(BaseVillageTrigger):
    """
    Endpoint: GET /api/villages/population-distribution
    """

    def _process(self, req: func.HttpRequest) -> func.HttpResponse:
        filters = self._filters(req)
        distribution = StatsAggregator(self.service.store).population_distribution(filters)
        return json_response(data=distribution, message="Population distribution retrieved successfully",
                             meta={"filters": filters.to_store()})


class VillageByIdTrigger(BaseVillageTrigger):
    """
    Endpoint: GET /api/villages/{village_id}
    """

    def _process(self, req: func.HttpRequest) -> func.HttpResponse:
        raw_id = req.route_params.get("village_id", "")
        try:
            village_id = int(raw_id)
        except ValueError:
            raise InvalidQueryError("Invalid village id", {"id": raw_id})

        village = self.service.get_village(village_id)
        return json_response(data=village, message="Village retrieved successfully")


class DeleteAllVillagesTrigger(BaseVillageTrigger):
    """
    Endpoint: DELETE /api/villages/all

    Body: {"confirm": "DELETE_ALL_VILLAGES"}
    """

    def __init__(self, service: VillageService, rate_limiter: RateLimiter, delete_rate_limiter: RateLimiter):
        super().__init__(service, rate_limiter)
        self.delete_rate_limiter = delete_rate_limiter

    def _process(self, req: func.HttpRequest) -> func.HttpResponse:
        decision = self.delete_rate_limiter.check(client_address(req))
        if not decision.allowed:
            return rate_limited_response(decision.retry_after_seconds)

        body = self._json_body(req)
        deleted = self.service.delete_all(body.get("confirm"))
        return json_response(
            data={"deleted_count": deleted},
            message=f"Successfully deleted {deleted} villages"
        )


# ============================================================================
# STATISTICS TRIGGERS
# ============================================================================

class BaseStatsTrigger(BaseVillageTrigger):

    def __init__(self, service: VillageService, rate_limiter: RateLimiter):
        super().__init__(service, rate_limiter)
        self._aggregator: Optional[StatsAggregator] = None

    @property
    def aggregator(self) -> StatsAggregator:
        if self._aggregator is None:
            self._aggregator = StatsAggregator(self.service.store)
        return self._aggregator


class VillageStatsTrigger(BaseStatsTrigger):
    """
    Endpoint: GET /api/stats
    """

    def _process(self, req: func.HttpRequest) -> func.HttpResponse:
        filters = self._filters(req)
        stats = self.aggregator.village_stats(filters)
        return json_response(
            data=stats,
            message="Statistics retrieved successfully",
            meta={"filters": filters.to_store(), "level": filters.level}
        )


class DashboardStatsTrigger(BaseStatsTrigger):
    """
    Endpoint: GET /api/stats/dashboard
    """

    def _process(self, req: func.HttpRequest) -> func.HttpResponse:
        filters = self._filters(req)
        dashboard = self.aggregator.dashboard(filters)
        return json_response(
            data=dashboard,
            message="Dashboard statistics retrieved successfully",
            meta={"filters": filters.to_store(), "level": filters.level}
        )


class SummaryStatsTrigger(BaseStatsTrigger):
    """
    Endpoint: GET /api/stats/summary?state=...
    """

    def _process(self, req: func.HttpRequest) -> func.HttpResponse:
        summary = self.aggregator.summary(req.params.get("state"))
        return json_response(data=summary, message="Summary statistics retrieved successfully")


class ComparativeStatsTrigger(BaseStatsTrigger):
    """
    Endpoint: POST /api/stats/comparative

    Body: {"regions": [{"state": ..., "district": ...}, ...]}
    """

    def _process(self, req: func.HttpRequest) -> func.HttpResponse:
        body = self._json_body(req)
        raw_regions = body.get("regions")
        if not isinstance(raw_regions, list):
            raise InvalidQueryError("Regions array is required")

        if not all(isinstance(region, dict) for region in raw_regions):
            raise InvalidQueryError("Each region must be an object")

        regions = [Region(**region) for region in raw_regions]
        comparison = self.aggregator.comparative(regions)
        return json_response(data=comparison, message="Comparative statistics retrieved successfully")
