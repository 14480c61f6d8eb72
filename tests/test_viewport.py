"""
Tests for ViewportQueryEngine and VillageService
"""

import pytest

from exceptions import InvalidBoundsError, InvalidQueryError, NotFoundError
from shapefile_ingest.ingestor import BatchIngestor
from shapefile_ingest.models import RawFeature
from village_api.config import VillageApiConfig
from village_api.models import BoundsQuery, SearchQuery, VillageFilters, VillageQueryOptions
from village_api.service import DELETE_CONFIRMATION, VillageService
from village_api.viewport import ViewportQueryEngine

from conftest import polygon, village_attributes

INDIA = {"min_lat": 20.0, "max_lat": 30.0, "min_lng": 70.0, "max_lng": 80.0}


@pytest.fixture
def config():
    return VillageApiConfig(
        low_detail_zoom=10,
        high_detail_zoom=12,
        max_villages_per_request=20,
        default_villages_limit=10,
        simplify_geometry=True,
    )


@pytest.fixture
def populated_store(store):
    raws = []
    for i in range(30):
        attributes = village_attributes(
            i,
            district_n="Patna" if i % 2 == 0 else "Gaya",
            tot_p=300 * i,
            village_na="Rampur" if i in (4, 17) else f"Village {i}",
        )
        raws.append(RawFeature(geometry=polygon(75.0 + i * 0.05, 25.0), attributes=attributes, index=i))
    raws.append(RawFeature(
        geometry=polygon(88.0, 22.0),
        attributes=village_attributes(99, state_name="West Bengal", district_n="Kolkata"),
        index=99
    ))
    BatchIngestor(store, batch_size=10).ingest(raws)
    return store


def bounds_query(zoom, **overrides):
    return BoundsQuery(**{**INDIA, **overrides}, zoom=zoom)


class TestViewport:

    def test_high_zoom_includes_geometry(self, populated_store, config):
        villages = ViewportQueryEngine(populated_store, config).villages_in_bounds(bounds_query(15))
        assert villages
        assert all("geometry" in v for v in villages)
        assert len(villages) <= config.max_villages_per_request

    def test_low_zoom_omits_geometry(self, populated_store, config):
        villages = ViewportQueryEngine(populated_store, config).villages_in_bounds(bounds_query(5))
        assert villages
        assert all("geometry" not in v for v in villages)
        assert len(villages) == config.default_villages_limit

    def test_medium_zoom_cap(self, populated_store, config):
        engine = ViewportQueryEngine(populated_store, config)
        villages = engine.villages_in_bounds(bounds_query(11))
        assert len(villages) == int(20 * 0.7)
        assert all("geometry" not in v for v in villages)

    def test_requested_geometry_at_low_zoom(self, populated_store, config):
        query = BoundsQuery(**INDIA, zoom=5, include_geometry=True)
        villages = ViewportQueryEngine(populated_store, config).villages_in_bounds(query)
        assert all("geometry" in v for v in villages)

    def test_results_are_decorated(self, populated_store, config):
        villages = ViewportQueryEngine(populated_store, config).villages_in_bounds(bounds_query(15))
        by_population = {v["population"]: v for v in villages}
        assert by_population[1200]["population_category"] == "Medium Small"
        assert by_population[1200]["color"] == "#7fcdbb"

    def test_results_overlap_viewport(self, populated_store, config):
        viewport = {"min_lat": 24.0, "max_lat": 26.0, "min_lng": 75.0, "max_lng": 75.3}
        villages = ViewportQueryEngine(populated_store, config).villages_in_bounds(
            BoundsQuery(**viewport, zoom=15)
        )
        assert villages
        for village in villages:
            b = village["bounds"]
            assert b["min_lng"] <= viewport["max_lng"] and b["max_lng"] >= viewport["min_lng"]

    def test_invalid_bounds(self, populated_store, config):
        engine = ViewportQueryEngine(populated_store, config)
        with pytest.raises(InvalidBoundsError):
            engine.villages_in_bounds(bounds_query(8, min_lat=31.0))
        with pytest.raises(InvalidBoundsError):
            engine.villages_in_bounds(bounds_query(8, max_lng=190.0))

    def test_list_limit_never_exceeds_max(self, populated_store, config):
        engine = ViewportQueryEngine(populated_store, config)
        villages = engine.list_villages(VillageFilters(), VillageQueryOptions(zoom=6, limit=500))
        assert len(villages) == config.max_villages_per_request

    def test_list_filters(self, populated_store, config):
        engine = ViewportQueryEngine(populated_store, config)
        villages = engine.list_villages(
            VillageFilters(state="Bihar", district="Gaya", min_population=3000),
            VillageQueryOptions(zoom=6, limit=20)
        )
        assert villages
        assert all(v["district_name"] == "Gaya" and v["population"] >= 3000 for v in villages)


class TestVillageService:

    def test_region_lists(self, populated_store, config):
        service = VillageService(populated_store, config)
        assert service.states() == ["Bihar", "West Bengal"]
        assert service.districts("Bihar") == ["Gaya", "Patna"]
        assert service.subdistricts("Bihar", "Gaya") == ["Danapur"]

    def test_region_lists_require_parents(self, populated_store, config):
        service = VillageService(populated_store, config)
        with pytest.raises(InvalidQueryError):
            service.districts("")
        with pytest.raises(InvalidQueryError):
            service.subdistricts("Bihar", None)

    def test_search_orders_by_population(self, populated_store, config):
        results = VillageService(populated_store, config).search(SearchQuery(q="rampur"))
        assert [v["population"] for v in results] == [300 * 17, 300 * 4]
        assert all("color" in v for v in results)

    def test_get_village(self, populated_store, config):
        service = VillageService(populated_store, config)
        village = service.get_village(1)
        assert village["id"] == 1
        with pytest.raises(NotFoundError):
            service.get_village(10_000)

    def test_delete_requires_confirmation(self, populated_store, config):
        service = VillageService(populated_store, config)
        with pytest.raises(InvalidQueryError):
            service.delete_all("yes")
        assert service.delete_all(DELETE_CONFIRMATION) == 31
        assert service.states() == []
