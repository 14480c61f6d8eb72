"""
Population buckets.

One threshold table drives the display colour, the category name and the
distribution bucket label, so a village's colour always matches the
bucket it is counted in.
"""

import math
import re
from typing import Any, Optional

# Upper bounds (exclusive) of every bucket except the last
POPULATION_THRESHOLDS = [500, 1000, 2000, 5000, 10000, 20000]

POPULATION_COLORS = [
    "#ffffcc",  # < 500
    "#c7e9b4",  # 500-999
    "#7fcdbb",  # 1000-1999
    "#41b6c4",  # 2000-4999
    "#2c7fb8",  # 5000-9999
    "#253494",  # 10000-19999
    "#081d58",  # >= 20000
]

POPULATION_CATEGORIES = [
    "Very Small",
    "Small",
    "Medium Small",
    "Medium",
    "Large",
    "Very Large",
    "Extremely Large",
]

BUCKET_LABELS = [
    "Very Small (0-499)",
    "Small (500-999)",
    "Medium Small (1000-1999)",
    "Medium (2000-4999)",
    "Large (5000-9999)",
    "Very Large (10000-19999)",
    "Extremely Large (20000+)",
]

# Lower bounds of the distribution buckets; the last bucket is open-ended
DISTRIBUTION_BOUNDARIES = [0] + POPULATION_THRESHOLDS

_LEADING_INT = re.compile(r"^[+-]?\d+")


def bucket_index(population: int) -> int:
    """Index of the bucket a population falls in."""
    for index, threshold in enumerate(POPULATION_THRESHOLDS):
        if population < threshold:
            return index
    return len(POPULATION_THRESHOLDS)


def population_color(population: int) -> str:
    return POPULATION_COLORS[bucket_index(population)]


def population_category(population: int) -> str:
    return POPULATION_CATEGORIES[bucket_index(population)]


def population_label(population: int) -> str:
    return BUCKET_LABELS[bucket_index(population)]


def bucket_label(lower_bound: Optional[int]) -> str:
    """Human readable label for a distribution bucket lower bound."""
    if lower_bound in DISTRIBUTION_BOUNDARIES:
        return BUCKET_LABELS[DISTRIBUTION_BOUNDARIES.index(lower_bound)]
    return "Other"


def parse_population(value: Any) -> int:
    """
    Parse a population attribute as a non-negative integer.

    Integers pass through, finite floats are truncated, and strings are
    read up to the first non-digit ("1200 persons" -> 1200). Anything
    missing, unparsable or negative becomes 0.
    """
    if value is None or isinstance(value, bool):
        return 0

    if isinstance(value, int):
        parsed = value
    elif isinstance(value, float):
        if not math.isfinite(value):
            return 0
        parsed = int(value)
    elif isinstance(value, (str, bytes)):
        text = value.decode(errors="ignore") if isinstance(value, bytes) else value
        match = _LEADING_INT.match(text.strip())
        if not match:
            return 0
        parsed = int(match.group(0))
    else:
        return 0

    return parsed if parsed > 0 else 0
