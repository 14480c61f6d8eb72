# ============================================================================
# MODULE CONTEXT - GEOMETRY MATH
# ============================================================================
# STATUS: Shared Service - Pure geometry functions
# PURPOSE: Centroid, bounds, area, shape validation, bounds overlap, simplification
# EXPORTS: centroid, bounding_box, area, validate_shape, bounds_overlap,
#          validate_bounds, zoom_tier, simplify, ZERO_BOUNDS
# DEPENDENCIES: shapely
# SCOPE: Stateless; used by the ingestion transformer and the viewport engine
# PATTERNS: Total functions with deterministic fallbacks
# ============================================================================

"""
Geometry Math

Pure functions over GeoJSON-style geometry mappings
({"type": ..., "coordinates": ...}) in a single lon/lat datum.
Coordinates are (x, y) = (lng, lat).

centroid, bounding_box, area and simplify never raise: a geometry shapely
cannot interpret gets a fixed fallback value instead, because the ingestion
pipeline must keep going past one bad polygon.

Bounds are dicts with min_lat, max_lat, min_lng, max_lng.
"""

import logging
import math
from typing import Any, Dict, List, Optional, Sequence

from shapely.geometry import mapping, shape

from exceptions import InvalidBoundsError

logger = logging.getLogger(__name__)

SHAPE_TYPES = ("Polygon", "MultiPolygon", "Point", "LineString")

# Tolerances in degrees, keyed by zoom tier
DEFAULT_TOLERANCES = {
    "coarse": 0.05,
    "medium": 0.01,
    "fine": 0.005,
}

ZERO_BOUNDS = {"min_lat": 0.0, "max_lat": 0.0, "min_lng": 0.0, "max_lng": 0.0}


# ============================================================================
# HELPERS
# ============================================================================

def _outer_ring(geometry: Any) -> Optional[List[Sequence[float]]]:
    """Outer ring of a Polygon, or of the first part of a MultiPolygon."""
    try:
        geom_type = geometry.get("type")
        coords = geometry.get("coordinates")
        if geom_type == "Polygon":
            ring = coords[0]
        elif geom_type == "MultiPolygon":
            ring = coords[0][0]
        else:
            return None
        return list(ring)
    except (AttributeError, IndexError, KeyError, TypeError):
        return None


def _is_finite(*values: float) -> bool:
    return all(isinstance(v, (int, float)) and math.isfinite(v) for v in values)


# ============================================================================
# DERIVED ATTRIBUTES
# ============================================================================

def centroid(geometry: Any) -> Dict[str, float]:
    """
    Compute the centroid of a geometry.

    Falls back to the first vertex of the outer ring, then to (0, 0).

    Args:
        geometry: GeoJSON-style geometry mapping

    Returns:
        {"lat": float, "lng": float}
    """
    try:
        point = shape(geometry).centroid
        if not point.is_empty and _is_finite(point.x, point.y):
            return {"lat": float(point.y), "lng": float(point.x)}
    except Exception as e:
        logger.debug(f"Centroid calculation failed, using fallback: {e}")

    ring = _outer_ring(geometry)
    if ring:
        try:
            x, y = float(ring[0][0]), float(ring[0][1])
            if _is_finite(x, y):
                return {"lat": y, "lng": x}
        except (IndexError, TypeError, ValueError):
            pass

    return {"lat": 0.0, "lng": 0.0}


def bounding_box(geometry: Any) -> Dict[str, float]:
    """
    Compute the minimal axis-aligned box covering every ring.

    Returns a degenerate zero box when the geometry cannot be read.
    """
    try:
        min_x, min_y, max_x, max_y = shape(geometry).bounds
        if _is_finite(min_x, min_y, max_x, max_y):
            return {
                "min_lat": float(min_y),
                "max_lat": float(max_y),
                "min_lng": float(min_x),
                "max_lng": float(max_x),
            }
    except Exception as e:
        logger.debug(f"Bounding box calculation failed, using zero box: {e}")

    return dict(ZERO_BOUNDS)


def _shoelace(ring: Sequence[Sequence[float]]) -> float:
    total = 0.0
    for (x1, y1), (x2, y2) in zip(ring, ring[1:]):
        total += (x2 - x1) * (y2 + y1)
    return abs(total / 2.0)


def area(geometry: Any) -> float:
    """
    Planar area magnitude in square degrees.

    Falls back to a shoelace estimate over the outer ring, and to 0 when
    there is no usable ring.
    """
    try:
        value = shape(geometry).area
        if _is_finite(value):
            return abs(float(value))
    except Exception as e:
        logger.debug(f"Area calculation failed, using shoelace estimate: {e}")

    ring = _outer_ring(geometry)
    if not ring or len(ring) < 3:
        return 0.0
    try:
        points = [(float(p[0]), float(p[1])) for p in ring]
        value = _shoelace(points)
        return value if _is_finite(value) else 0.0
    except (IndexError, TypeError, ValueError):
        return 0.0


# ============================================================================
# VALIDATION
# ============================================================================

def validate_shape(geometry: Any) -> bool:
    """
    Check that a geometry has a recognized type and usable coordinates.

    Point and LineString pass here; the village record itself only
    accepts Polygon and MultiPolygon.
    """
    if not isinstance(geometry, dict):
        return False

    geom_type = geometry.get("type")
    coords = geometry.get("coordinates")

    if geom_type not in SHAPE_TYPES:
        return False
    if not isinstance(coords, (list, tuple)) or len(coords) == 0:
        return False

    if geom_type == "Polygon":
        outer = coords[0]
        if not isinstance(outer, (list, tuple)) or len(outer) < 3:
            return False

    return True


def validate_bounds(bounds: Dict[str, Any]) -> None:
    """
    Validate viewport bounds.

    Raises:
        InvalidBoundsError: If a value is missing, non-numeric, out of the
            legal lat/lng range, or min exceeds max
    """
    keys = ("min_lat", "max_lat", "min_lng", "max_lng")
    missing = [k for k in keys if bounds.get(k) is None]
    if missing:
        raise InvalidBoundsError("Bounds are incomplete", {"missing": ",".join(missing)})

    for key in keys:
        value = bounds[key]
        if isinstance(value, bool) or not _is_finite(value):
            raise InvalidBoundsError("Bounds must be numeric", {key: value})

    for key in ("min_lat", "max_lat"):
        if not -90 <= bounds[key] <= 90:
            raise InvalidBoundsError("Latitude out of range", {key: bounds[key]})
    for key in ("min_lng", "max_lng"):
        if not -180 <= bounds[key] <= 180:
            raise InvalidBoundsError("Longitude out of range", {key: bounds[key]})

    if bounds["min_lat"] > bounds["max_lat"]:
        raise InvalidBoundsError(
            "min_lat must not exceed max_lat",
            {"min_lat": bounds["min_lat"], "max_lat": bounds["max_lat"]}
        )
    if bounds["min_lng"] > bounds["max_lng"]:
        raise InvalidBoundsError(
            "min_lng must not exceed max_lng",
            {"min_lng": bounds["min_lng"], "max_lng": bounds["max_lng"]}
        )


def bounds_overlap(a: Dict[str, float], b: Dict[str, float]) -> bool:
    """True iff two axis-aligned boxes intersect (shared edges count)."""
    return (
        a["min_lat"] <= b["max_lat"]
        and a["max_lat"] >= b["min_lat"]
        and a["min_lng"] <= b["max_lng"]
        and a["max_lng"] >= b["min_lng"]
    )


# ============================================================================
# SIMPLIFICATION
# ============================================================================

def zoom_tier(zoom: float, low_detail_zoom: int = 10, high_detail_zoom: int = 12) -> str:
    """Classify a zoom level as coarse, medium or fine."""
    if zoom > high_detail_zoom:
        return "fine"
    if zoom > low_detail_zoom:
        return "medium"
    return "coarse"


def simplify(
    geometry: Any,
    zoom: float,
    low_detail_zoom: int = 10,
    high_detail_zoom: int = 12,
    tolerances: Optional[Dict[str, float]] = None
) -> Any:
    """
    Reduce vertex count with a tolerance chosen by zoom tier.

    Args:
        geometry: GeoJSON-style geometry mapping
        zoom: Client zoom level
        low_detail_zoom: Upper bound of the coarse tier
        high_detail_zoom: Upper bound of the medium tier
        tolerances: Tier name -> tolerance in degrees

    Returns:
        Simplified geometry mapping, or the input unchanged on any failure
    """
    tolerances = tolerances or DEFAULT_TOLERANCES
    tier = zoom_tier(zoom, low_detail_zoom, high_detail_zoom)

    try:
        simplified = shape(geometry).simplify(
            tolerances[tier],
            preserve_topology=(tier == "fine")
        )
        if simplified.is_empty:
            return geometry
        return mapping(simplified)
    except Exception as e:
        logger.debug(f"Simplification failed at tier {tier}, returning input: {e}")
        return geometry
