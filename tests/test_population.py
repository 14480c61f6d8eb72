"""
Tests for services.population
"""

import pytest

from services.population import (
    BUCKET_LABELS,
    DISTRIBUTION_BOUNDARIES,
    POPULATION_COLORS,
    bucket_label,
    parse_population,
    population_category,
    population_color,
    population_label,
)


@pytest.mark.parametrize("value,expected", [
    (1200, 1200),
    ("1200", 1200),
    (" 845 ", 845),
    ("1200 persons", 1200),
    (b"310", 310),
    (1200.9, 1200),
    (None, 0),
    ("", 0),
    ("n/a", 0),
    (-5, 0),
    ("-40", 0),
    (float("nan"), 0),
    (True, 0),
])
def test_parse_population(value, expected):
    assert parse_population(value) == expected


@pytest.mark.parametrize("population,label", [
    (0, "Very Small (0-499)"),
    (499, "Very Small (0-499)"),
    (500, "Small (500-999)"),
    (1200, "Medium Small (1000-1999)"),
    (2000, "Medium (2000-4999)"),
    (9999, "Large (5000-9999)"),
    (10000, "Very Large (10000-19999)"),
    (250000, "Extremely Large (20000+)"),
])
def test_population_label(population, label):
    assert population_label(population) == label


def test_colour_and_label_share_thresholds():
    for population in (0, 499, 500, 999, 1000, 4999, 5000, 19999, 20000):
        index = BUCKET_LABELS.index(population_label(population))
        assert population_color(population) == POPULATION_COLORS[index]
        assert population_label(population).startswith(population_category(population))


def test_bucket_label_for_every_boundary():
    assert [bucket_label(b) for b in DISTRIBUTION_BOUNDARIES] == BUCKET_LABELS
    assert bucket_label(123) == "Other"
    assert bucket_label(None) == "Other"
