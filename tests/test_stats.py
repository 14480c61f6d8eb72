"""
Tests for StatsAggregator
"""

import pytest

from exceptions import InvalidQueryError
from shapefile_ingest.ingestor import BatchIngestor
from shapefile_ingest.models import RawFeature
from village_api.models import Region, VillageFilters, VillageStats
from village_api.stats import StatsAggregator

from conftest import polygon, village_attributes

POPULATIONS = {
    ("Patna", "Danapur"): [100, 450, 800, 1500],
    ("Patna", "Bihta"): [2500, 12000],
    ("Gaya", "Bodh Gaya"): [600, 700, 25000],
}


@pytest.fixture
def aggregator(store):
    raws = []
    index = 0
    for (district, subdistrict), populations in POPULATIONS.items():
        for population in populations:
            attributes = village_attributes(index, district_n=district, subdistric=subdistrict, tot_p=population)
            raws.append(RawFeature(geometry=polygon(80.0 + index * 0.1, 25.0, size=0.1), attributes=attributes, index=index))
            index += 1
    BatchIngestor(store).ingest(raws)
    return StatsAggregator(store)


def test_village_stats(aggregator):
    stats = aggregator.village_stats(VillageFilters(state="Bihar", district="Patna"))
    assert stats.total_villages == 6
    assert stats.total_population == 17350
    assert stats.min_population == 100
    assert stats.max_population == 12000
    assert stats.total_area == pytest.approx(0.06)


def test_empty_region_stats_are_zero(aggregator):
    stats = aggregator.village_stats(VillageFilters(state="Kerala"))
    assert stats == VillageStats()


def test_population_distribution_labels(aggregator):
    buckets = aggregator.population_distribution(VillageFilters())
    by_label = {b.label: b.count for b in buckets}

    assert by_label == {
        "Very Small (0-499)": 2,
        "Small (500-999)": 3,
        "Medium Small (1000-1999)": 1,
        "Medium (2000-4999)": 1,
        "Very Large (10000-19999)": 1,
        "Extremely Large (20000+)": 1,
    }
    assert sum(b.count for b in buckets) == 9


def test_dashboard_insights(aggregator):
    dashboard = aggregator.dashboard(VillageFilters())

    assert dashboard["basic_stats"].total_villages == 9
    insights = dashboard["insights"]
    assert insights["population_density"] == "High"
    assert insights["area_size"] == "Small"
    assert insights["population_variation"] == "High"
    assert insights["dominant_village_size"] == "Small (500-999)"


def test_insights_skip_zero_inputs():
    assert StatsAggregator.insights(VillageStats(), []) == {}


def test_summary_orders_districts_by_population(aggregator):
    summary = aggregator.summary("Bihar")

    assert summary["state_stats"].total_villages == 9
    assert [d["district"] for d in summary["district_stats"]] == ["Gaya", "Patna"]


def test_summary_requires_state(aggregator):
    with pytest.raises(InvalidQueryError):
        aggregator.summary(None)


def test_comparative(aggregator):
    result = aggregator.comparative([
        Region(state="Bihar", district="Patna"),
        Region(state="Bihar", district="Gaya"),
    ])

    assert len(result["regions"]) == 2
    comparison = result["comparison"]
    assert comparison["highest_population"]["region"] == {"state": "Bihar", "district": "Gaya"}
    assert comparison["most_villages"]["region"] == {"state": "Bihar", "district": "Patna"}
    assert comparison["lowest_population"]["value"] == 17350


@pytest.mark.parametrize("count", [0, 11])
def test_comparative_region_limits(aggregator, count):
    with pytest.raises(InvalidQueryError):
        aggregator.comparative([Region(state="Bihar")] * count)
