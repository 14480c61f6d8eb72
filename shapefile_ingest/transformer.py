# ============================================================================
# MODULE CONTEXT - FEATURE TRANSFORMER
# ============================================================================
# STATUS: Pipeline Stage - Raw feature to village record
# PURPOSE: Validate shape, derive centroid/bounds/area, sanitize and parse attributes
# EXPORTS: transform_feature, TransformOutcome, sanitize_string, ATTRIBUTE_KEYS
# DEPENDENCIES: pydantic, services.geometry, services.population
# PATTERNS: Errors returned as data, never raised past transform_feature
# ============================================================================

"""
Feature Transformer

Turns one RawFeature into a VillageRecord. Every failure comes back as an
IngestError inside the outcome so the streaming loop never has to guard
against this stage.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from pydantic import ValidationError

from exceptions import FeatureProcessingError
from services import geometry as geo
from services.population import parse_population

from .models import IngestError, IngestErrorKind, RawFeature, VillageRecord

# Record field -> shapefile attribute (matched case-insensitively)
ATTRIBUTE_KEYS = {
    "state_name": "state_name",
    "district_name": "district_n",
    "subdistrict_name": "subdistric",
    "village_name": "village_na",
    "census_id": "pc11_tv_id",
    "population": "tot_p",
}

IDENTITY_FIELDS = ("state_name", "district_name", "subdistrict_name")


@dataclass
class TransformOutcome:
    record: Optional[VillageRecord] = None
    error: Optional[IngestError] = None

    @property
    def ok(self) -> bool:
        return self.record is not None


def sanitize_string(value: Any) -> str:
    """Trim and strip angle brackets. None becomes ''."""
    if value is None:
        return ""
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    return str(value).strip().replace("<", "").replace(">", "")


def _lookup(attributes: Dict[str, Any]) -> Dict[str, Any]:
    lowered = {str(k).lower(): v for k, v in attributes.items()}
    return {field: lowered.get(key) for field, key in ATTRIBUTE_KEYS.items()}


def _build_record(raw: RawFeature) -> VillageRecord:
    if not geo.validate_shape(raw.geometry):
        raise FeatureProcessingError("Invalid geometry structure")

    values = _lookup(raw.attributes)
    texts = {
        name: sanitize_string(values[name])
        for name in ("state_name", "district_name", "subdistrict_name", "village_name")
    }

    empty = [name for name in IDENTITY_FIELDS if not texts[name]]
    if empty:
        raise FeatureProcessingError(
            "Missing required identity fields",
            {"fields": ",".join(empty)}
        )

    census_id = sanitize_string(values["census_id"]) or None

    try:
        return VillageRecord(
            **texts,
            census_id=census_id,
            population=parse_population(values["population"]),
            geometry=raw.geometry,
            centroid=geo.centroid(raw.geometry),
            bounds=geo.bounding_box(raw.geometry),
            area=geo.area(raw.geometry),
        )
    except ValidationError as e:
        reasons = "; ".join(err["msg"] for err in e.errors())
        raise FeatureProcessingError(f"Invalid village record: {reasons}") from e


def transform_feature(raw: RawFeature) -> TransformOutcome:
    """
    Convert one raw feature into a village record.

    Args:
        raw: Geometry and attributes from the reader

    Returns:
        TransformOutcome holding either the record or a
        FEATURE_PROCESSING_ERROR with the feature's attributes as context
    """
    try:
        return TransformOutcome(record=_build_record(raw))
    except FeatureProcessingError as e:
        return TransformOutcome(error=IngestError(
            kind=IngestErrorKind.FEATURE_PROCESSING_ERROR,
            message=str(e),
            context={
                "index": raw.index,
                "feature": {str(k): str(v) for k, v in raw.attributes.items()},
            }
        ))
    except Exception as e:
        return TransformOutcome(error=IngestError(
            kind=IngestErrorKind.FEATURE_PROCESSING_ERROR,
            message=f"Unexpected error processing feature: {type(e).__name__}: {e}",
            context={"index": raw.index}
        ))
