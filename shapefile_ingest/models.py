# ============================================================================
# MODULE CONTEXT - SHAPEFILE INGEST MODELS
# ============================================================================
# STATUS: Standalone Models - Ingestion data types
# PURPOSE: Uploaded files, raw features, village records and ingest results
# EXPORTS: UploadedFile, ComponentSet, RawFeature, Centroid, Bounds, VillageRecord,
#          IngestErrorKind, IngestError, IngestResult, ShapefileMetadata,
#          StructureValidation, ProcessingEstimate
# INTERFACES: Pydantic BaseModel, dataclasses
# PYDANTIC_MODELS: Centroid, Bounds, VillageRecord, IngestError, IngestResult,
#                  ShapefileMetadata, StructureValidation, ProcessingEstimate
# DEPENDENCIES: pydantic, typing
# VALIDATION: Pydantic v2 validation
# PATTERNS: Data Transfer Objects (DTOs)
# ============================================================================

"""
Ingestion Models

RawFeature is ephemeral and only lives for one step of the streaming pass,
so it is a plain dataclass. Everything that is persisted or returned to a
caller is a pydantic model.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


# ============================================================================
# UPLOADS
# ============================================================================

@dataclass
class UploadedFile:
    """One spooled upload part."""
    original_name: str
    path: str
    size: int = 0

    @property
    def extension(self) -> str:
        """Lowercased extension including the dot, '' if none."""
        name = self.original_name.rsplit("/", 1)[-1]
        if "." not in name:
            return ""
        return "." + name.rsplit(".", 1)[-1].lower()


@dataclass
class ComponentSet:
    """Uploaded files partitioned by extension."""
    mandatory: Dict[str, UploadedFile] = field(default_factory=dict)
    optional: Dict[str, UploadedFile] = field(default_factory=dict)

    def path_for(self, extension: str) -> Optional[str]:
        upload = self.mandatory.get(extension) or self.optional.get(extension)
        return upload.path if upload else None


@dataclass
class RawFeature:
    """One (geometry, attributes) pair read from a shapefile."""
    geometry: Dict[str, Any]
    attributes: Dict[str, Any]
    index: int = 0


# ============================================================================
# VILLAGE RECORD
# ============================================================================

class Centroid(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class Bounds(BaseModel):
    """Axis-aligned bounding box in degrees."""
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float

    @model_validator(mode="after")
    def check_order(self) -> "Bounds":
        if self.min_lat > self.max_lat or self.min_lng > self.max_lng:
            raise ValueError("bounds minimum exceeds maximum")
        return self


class VillageRecord(BaseModel):
    """
    A village ready to be written to the store.

    Centroid, bounds and area are derived from geometry when the record is
    built and there is no path that sets them independently afterwards.
    """
    model_config = {"frozen": True}

    state_name: str = Field(min_length=1)
    district_name: str = Field(min_length=1)
    subdistrict_name: str = Field(min_length=1)
    village_name: str = ""
    census_id: Optional[str] = None
    population: int = Field(default=0, ge=0)
    geometry: Dict[str, Any]
    centroid: Centroid
    bounds: Bounds
    area: float = Field(ge=0)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @field_validator("geometry")
    @classmethod
    def check_geometry(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        geom_type = v.get("type")
        coords = v.get("coordinates")
        if geom_type not in ("Polygon", "MultiPolygon"):
            raise ValueError(f"geometry must be Polygon or MultiPolygon, got {geom_type}")
        if not coords or not isinstance(coords, (list, tuple)):
            raise ValueError("geometry has no rings")
        outer = coords[0]
        if geom_type == "MultiPolygon":
            outer = outer[0] if isinstance(outer, (list, tuple)) and outer else None
        if not isinstance(outer, (list, tuple)) or not all(isinstance(p, (list, tuple)) for p in outer):
            raise ValueError("outer ring must be a list of positions")
        if len(outer) < 3:
            raise ValueError("outer ring needs at least 3 points")
        return v


# ============================================================================
# INGEST RESULTS
# ============================================================================

class IngestErrorKind(str, Enum):
    FEATURE_PROCESSING_ERROR = "FEATURE_PROCESSING_ERROR"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
    CONSTRAINT_VIOLATION = "CONSTRAINT_VIOLATION"
    INVALID_RECORD = "INVALID_RECORD"
    BATCH_INSERT_ERROR = "BATCH_INSERT_ERROR"
    MISSING_COMPONENTS = "MISSING_COMPONENTS"
    OPEN_ERROR = "OPEN_ERROR"
    GENERAL_ERROR = "GENERAL_ERROR"


class IngestError(BaseModel):
    kind: IngestErrorKind
    message: str
    context: Dict[str, Any] = Field(default_factory=dict)


class IngestResult(BaseModel):
    """
    Outcome of one ingestion call.

    processed_count and error_count are exact; errors holds at most the
    configured number of details.
    """
    success: bool
    processed_count: int = 0
    error_count: int = 0
    errors: List[IngestError] = Field(default_factory=list)
    message: str = ""


class ShapefileMetadata(BaseModel):
    feature_count: int
    field_names: List[str]
    has_required_fields: bool
    encoding: str


class StructureValidation(BaseModel):
    valid: bool
    metadata: Optional[ShapefileMetadata] = None
    missing_fields: List[str] = Field(default_factory=list)
    available_fields: List[str] = Field(default_factory=list)
    message: str = ""


class ProcessingEstimate(BaseModel):
    feature_count: int
    seconds: int
    minutes: int
    formatted: str

