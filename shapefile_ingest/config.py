# ============================================================================
# MODULE CONTEXT - SHAPEFILE INGEST CONFIGURATION
# ============================================================================
# STATUS: Standalone Configuration - Shapefile ingestion
# PURPOSE: Batch size, upload limits and component allow-list for ingestion
# EXPORTS: IngestConfig, get_ingest_config
# INTERFACES: Pydantic BaseModel
# PYDANTIC_MODELS: IngestConfig
# DEPENDENCIES: pydantic, os, tempfile
# SOURCE: Environment variables
# PATTERNS: Settings Pattern, Singleton via cached function
# ENTRY_POINTS: from shapefile_ingest.config import get_ingest_config
# ============================================================================

"""
Shapefile Ingest Configuration

Environment Variables (all optional):
    - INGEST_BATCH_SIZE: Records per bulk write (default: 100)
    - INGEST_MAX_REPORTED_ERRORS: Error details kept in a result (default: 10)
    - INGEST_UPLOAD_DIR: Directory for spooled uploads (default: <tmp>/village-uploads)
    - INGEST_MAX_FILES: Files accepted per upload (default: 15)
    - INGEST_MAX_FILE_SIZE_MB: Largest accepted file (default: 2048)
    - INGEST_FEATURES_PER_SECOND: Throughput used for time estimates (default: 150)
    - INGEST_DEFAULT_ENCODING: Attribute encoding when no .cpg is uploaded (default: utf-8)
"""

import os
import tempfile
from typing import List, Optional
from pydantic import BaseModel, Field


class IngestConfig(BaseModel):
    """
    Configuration for the shapefile ingestion pipeline.
    """

    batch_size: int = Field(
        default_factory=lambda: int(os.getenv("INGEST_BATCH_SIZE", "100")),
        ge=1,
        le=10000,
        description="Records accumulated before each bulk write"
    )
    max_reported_errors: int = Field(
        default_factory=lambda: int(os.getenv("INGEST_MAX_REPORTED_ERRORS", "10")),
        ge=0,
        description="Error details returned in an ingest result"
    )
    upload_dir: str = Field(
        default_factory=lambda: os.getenv(
            "INGEST_UPLOAD_DIR",
            os.path.join(tempfile.gettempdir(), "village-uploads")
        ),
        description="Directory uploaded parts are spooled to"
    )
    max_files: int = Field(
        default_factory=lambda: int(os.getenv("INGEST_MAX_FILES", "15")),
        ge=1,
        description="Maximum files per upload"
    )
    max_file_size_mb: int = Field(
        default_factory=lambda: int(os.getenv("INGEST_MAX_FILE_SIZE_MB", "2048")),
        ge=1,
        description="Maximum size of a single uploaded file"
    )
    features_per_second: int = Field(
        default_factory=lambda: int(os.getenv("INGEST_FEATURES_PER_SECOND", "150")),
        ge=1,
        description="Throughput assumed by processing time estimates"
    )
    default_encoding: str = Field(
        default_factory=lambda: os.getenv("INGEST_DEFAULT_ENCODING", "utf-8"),
        description="Attribute text encoding used when no .cpg file is present"
    )

    required_extensions: List[str] = Field(
        default=[".shp", ".dbf", ".shx", ".prj"],
        description="Components every upload must contain"
    )
    optional_extensions: List[str] = Field(
        default=[".cpg", ".sbn", ".sbx"],
        description="Components accepted but not required"
    )
    required_fields: List[str] = Field(
        default=["state_name", "district_n", "subdistric", "village_na", "tot_p"],
        description="Attribute fields a village shapefile must carry"
    )

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024

    @property
    def allowed_extensions(self) -> List[str]:
        return self.required_extensions + self.optional_extensions


# Singleton instance cache
_config_cache: Optional[IngestConfig] = None


def get_ingest_config() -> IngestConfig:
    """
    Get singleton ingest configuration instance.

    Raises:
        ValueError: If an environment override is not a valid integer
    """
    global _config_cache

    if _config_cache is None:
        _config_cache = IngestConfig()

    return _config_cache
