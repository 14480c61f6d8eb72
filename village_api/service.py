# ============================================================================
# MODULE CONTEXT - VILLAGE SERVICE
# ============================================================================
# STATUS: Service Layer - Village lookup, search and administration
# PURPOSE: Region lists, search, single village lookup and bulk delete
# EXPORTS: VillageService, DELETE_CONFIRMATION
# DEPENDENCIES: infrastructure.village_repository, village_api.viewport, util_logger
# PATTERNS: Service Layer, Repository injection
# ENTRY_POINTS: service = VillageService(); service.villages_in_bounds(query)
# ============================================================================

"""
Village Service

Front door for every village read. Viewport and filtered listings are
delegated to ViewportQueryEngine.
"""

from typing import Any, Dict, List, Optional

from exceptions import InvalidQueryError, NotFoundError
from util_logger import LoggerFactory, ComponentType

from .config import VillageApiConfig, get_village_api_config
from .models import BoundsQuery, SearchQuery, VillageFilters, VillageQueryOptions
from .viewport import ViewportQueryEngine, decorate_village

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "VillageService")

DELETE_CONFIRMATION = "DELETE_ALL_VILLAGES"


class VillageService:
    """
    Village read operations plus the bulk delete.

    Args:
        store: Village store; defaults to the PostGIS VillageRepository
        config: API configuration (defaults to the cached singleton)
    """

    def __init__(self, store=None, config: Optional[VillageApiConfig] = None):
        self.config = config or get_village_api_config()
        self._store = store
        self._engine: Optional[ViewportQueryEngine] = None

    @property
    def store(self):
        if self._store is None:
            from infrastructure.village_repository import VillageRepository
            self._store = VillageRepository()
        return self._store

    @property
    def engine(self) -> ViewportQueryEngine:
        if self._engine is None:
            self._engine = ViewportQueryEngine(self.store, self.config)
        return self._engine

    # ========================================================================
    # REGIONS
    # ========================================================================

    def states(self) -> List[str]:
        return self.store.distinct("state", {})

    def districts(self, state: str) -> List[str]:
        if not state:
            raise InvalidQueryError("State is required")
        return self.store.distinct("district", {"state": state})

    def subdistricts(self, state: str, district: str) -> List[str]:
        if not state or not district:
            raise InvalidQueryError("State and district are required")
        return self.store.distinct("subdistrict", {"state": state, "district": district})

    # ========================================================================
    # VILLAGES
    # ========================================================================

    def list_villages(
        self,
        filters: VillageFilters,
        options: Optional[VillageQueryOptions] = None
    ) -> List[Dict[str, Any]]:
        return self.engine.list_villages(filters, options)

    def villages_in_bounds(self, query: BoundsQuery) -> List[Dict[str, Any]]:
        return self.engine.villages_in_bounds(query)

    def search(self, query: SearchQuery, filters: Optional[VillageFilters] = None) -> List[Dict[str, Any]]:
        """Name search, largest villages first."""
        term = query.q.strip()
        if len(term) < 2:
            raise InvalidQueryError("Search term must be at least 2 characters long")

        filters = filters or VillageFilters()
        villages = self.store.search(term, filters.to_store(), query.limit)
        logger.info(f"Search '{term}' matched {len(villages)} villages")
        return [decorate_village(v) for v in villages]

    def get_village(self, village_id: int) -> Dict[str, Any]:
        """
        Raises:
            NotFoundError: If no village has this id
        """
        village = self.store.get_by_id(village_id)
        if village is None:
            raise NotFoundError("Village not found", {"id": village_id})
        return decorate_village(village)

    def delete_all(self, confirm: Optional[str]) -> int:
        """
        Delete every village.

        Raises:
            InvalidQueryError: Unless confirm equals DELETE_ALL_VILLAGES
        """
        if confirm != DELETE_CONFIRMATION:
            raise InvalidQueryError(
                f"Confirmation required. Send confirm: '{DELETE_CONFIRMATION}' in request body"
            )
        deleted = self.store.delete_all()
        logger.warning(f"⚠️ Deleted {deleted} villages")
        return deleted
