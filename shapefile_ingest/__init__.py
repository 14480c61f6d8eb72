# ============================================================================
# MODULE CONTEXT - SHAPEFILE INGEST MODULE
# ============================================================================
# STATUS: Feature Module - Village boundary shapefile ingestion
# PURPOSE: Streaming shapefile ingestion into the PostGIS village store
# EXPORTS: ShapefileIngestService, IngestConfig, get_ingest_config, get_upload_triggers
# DEPENDENCIES: pyshp, shapely, pydantic, azure-functions
# PATTERNS: Service Layer, Streaming pipeline, Self-contained module
# ENTRY_POINTS: from shapefile_ingest import get_upload_triggers
# ============================================================================

"""
Shapefile Ingest Module

Pipeline:
    components.py   - mandatory component check, spooled file cleanup
    reader.py       - single-pass (geometry, attributes) stream (pyshp)
    transformer.py  - raw feature -> VillageRecord
    ingestor.py     - batched bulk writes with per-record failure accounting
    service.py      - metadata, structure validation, ingestion orchestration
    triggers.py     - Azure Functions HTTP handlers

Integration:
    from shapefile_ingest import get_upload_triggers

    for trigger in get_upload_triggers():
        app.route(
            route=trigger['route'],
            methods=trigger['methods'],
            auth_level=func.AuthLevel.ANONYMOUS
        )(trigger['handler'])
"""

from .config import IngestConfig, get_ingest_config
from .service import ShapefileIngestService
from .triggers import get_upload_triggers

__version__ = "1.0.0"
__all__ = [
    "IngestConfig",
    "ShapefileIngestService",
    "get_upload_triggers",
    "get_ingest_config"
]
