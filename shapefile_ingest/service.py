# ============================================================================
# MODULE CONTEXT - SHAPEFILE INGEST SERVICE
# ============================================================================
# STATUS: Service Layer - Shapefile ingestion orchestration
# PURPOSE: Component checks, metadata, structure validation and streaming ingestion
# EXPORTS: ShapefileIngestService
# DEPENDENCIES: util_logger, infrastructure.village_repository, shapefile_ingest stages
# PATTERNS: Service Layer, guaranteed cleanup, fatal errors folded into results
# ENTRY_POINTS: service = ShapefileIngestService(); result = service.ingest(files)
# ============================================================================

"""
Shapefile Ingest Service

Ties the pipeline stages together:

    validate_components -> FeatureStreamReader -> transform_feature -> BatchIngestor -> store

Metadata extraction and ingestion each open their own reader, so both can
run over the same uploaded files in either order.

ingest() never raises. Fatal conditions become a failed IngestResult,
and the uploaded files are deleted on every exit path.
"""

import math
import uuid
from typing import List, Optional, Sequence

from exceptions import MissingComponentsError, OpenError
from util_logger import LoggerFactory, ComponentType

from .components import cleanup_files, validate_components
from .config import IngestConfig, get_ingest_config
from .ingestor import BatchIngestor, ProgressObserver, VillageStore
from .models import (
    ComponentSet,
    IngestError,
    IngestErrorKind,
    IngestResult,
    ProcessingEstimate,
    ShapefileMetadata,
    StructureValidation,
    UploadedFile,
)
from .reader import FeatureStreamReader, detect_encoding

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "ShapefileIngestService")


class ShapefileIngestService:
    """
    Ingestion operations over a set of uploaded shapefile components.
    """

    def __init__(self, store: Optional[VillageStore] = None, config: Optional[IngestConfig] = None):
        """
        Args:
            store: Village store; defaults to the PostGIS VillageRepository
            config: Ingest configuration (defaults to the cached singleton)
        """
        self.config = config or get_ingest_config()
        self._store = store

    @property
    def store(self) -> VillageStore:
        if self._store is None:
            from infrastructure.village_repository import VillageRepository
            self._store = VillageRepository()
        return self._store

    # ========================================================================
    # PRE-FLIGHT
    # ========================================================================

    def validate_components(self, files: Sequence[UploadedFile]) -> ComponentSet:
        """
        Raises:
            MissingComponentsError: If a mandatory component is absent
        """
        return validate_components(files, self.config)

    def _open_reader(self, components: ComponentSet) -> FeatureStreamReader:
        encoding = detect_encoding(components.path_for(".cpg"), self.config.default_encoding)
        return FeatureStreamReader(
            shp_path=components.path_for(".shp"),
            dbf_path=components.path_for(".dbf"),
            shx_path=components.path_for(".shx"),
            encoding=encoding
        )

    def extract_metadata(self, files: Sequence[UploadedFile]) -> ShapefileMetadata:
        """
        Field names and readable feature count of an upload.

        Opens its own reader, so repeated calls return the same values.

        Raises:
            MissingComponentsError: If a mandatory component is absent
            OpenError: If the geometry/attribute pair cannot be opened
        """
        components = self.validate_components(files)

        with self._open_reader(components) as stream:
            field_names = stream.field_names
            feature_count = sum(1 for _ in stream)
            encoding = stream.encoding

        lowered = {name.lower() for name in field_names}
        has_required = all(f in lowered for f in self.config.required_fields)

        logger.info(f"Metadata: {feature_count} features, {len(field_names)} fields")
        return ShapefileMetadata(
            feature_count=feature_count,
            field_names=field_names,
            has_required_fields=has_required,
            encoding=encoding
        )

    def validate_structure(self, files: Sequence[UploadedFile]) -> StructureValidation:
        """
        Check that the attribute table carries every required field.

        Component and open failures are reported as an invalid structure.
        """
        try:
            metadata = self.extract_metadata(files)
        except (MissingComponentsError, OpenError) as e:
            return StructureValidation(valid=False, message=str(e))

        lowered = {name.lower() for name in metadata.field_names}
        missing = [f for f in self.config.required_fields if f not in lowered]

        if missing:
            return StructureValidation(
                valid=False,
                metadata=metadata,
                missing_fields=missing,
                available_fields=metadata.field_names,
                message=f"Missing required fields: {', '.join(missing)}"
            )

        return StructureValidation(valid=True, metadata=metadata, message="Shapefile structure is valid")

    def estimate_processing_time(self, feature_count: int) -> ProcessingEstimate:
        seconds = math.ceil(max(feature_count, 0) / self.config.features_per_second)
        minutes = math.ceil(seconds / 60)
        formatted = f"{seconds} seconds" if seconds < 60 else f"~{minutes} minutes"
        return ProcessingEstimate(
            feature_count=feature_count,
            seconds=seconds,
            minutes=minutes,
            formatted=formatted
        )

    # ========================================================================
    # INGESTION
    # ========================================================================

    def ingest(
        self,
        files: Sequence[UploadedFile],
        on_progress: Optional[ProgressObserver] = None,
        upload_id: Optional[str] = None
    ) -> IngestResult:
        """
        Stream every feature of an upload into the store.

        Args:
            files: Uploaded shapefile components (deleted before returning)
            on_progress: Called after every flush with (processed, errors)
            upload_id: Correlation id for logs; generated when omitted

        Returns:
            IngestResult with exact counts and at most max_reported_errors details
        """
        upload_id = upload_id or uuid.uuid4().hex[:12]
        log = LoggerFactory.create_with_context(
            ComponentType.SERVICE,
            "ShapefileIngestService",
            upload_id=upload_id
        )

        ingestor: Optional[BatchIngestor] = None
        fatal: Optional[IngestError] = None

        try:
            components = self.validate_components(files)
            store = self.store
            ingestor = BatchIngestor(
                store,
                batch_size=self.config.batch_size,
                max_reported_errors=self.config.max_reported_errors,
                on_progress=on_progress,
                upload_id=upload_id
            )

            store.ensure_table()

            log.info("Opening shapefile for processing...")
            with self._open_reader(components) as stream:
                ingestor.ingest(stream)

        except MissingComponentsError as e:
            log.warning(f"❌ Upload rejected: {e}")
            fatal = IngestError(
                kind=IngestErrorKind.MISSING_COMPONENTS,
                message=str(e),
                context={"missing": e.missing}
            )
        except OpenError as e:
            log.error(f"❌ Could not open shapefile: {e}")
            fatal = IngestError(kind=IngestErrorKind.OPEN_ERROR, message=str(e), context=e.context)
        except Exception as e:
            log.error(f"❌ Error processing shapefile: {e}", exc_info=True)
            fatal = IngestError(kind=IngestErrorKind.GENERAL_ERROR, message=str(e))
        finally:
            cleanup_files(files)

        processed = ingestor.processed_count if ingestor else 0
        error_count = ingestor.error_count if ingestor else 0
        errors: List[IngestError] = list(ingestor.errors) if ingestor else []

        if fatal is not None:
            cap = self.config.max_reported_errors
            details = errors[:max(cap - 1, 0)] + [fatal] if cap else []
            return IngestResult(
                success=False,
                processed_count=processed,
                error_count=error_count + 1,
                errors=details,
                message=f"Processing failed: {fatal.message}"
            )

        log.info(
            f"✅ Shapefile processing completed. Processed: {processed}, Errors: {error_count}",
            extra={'custom_dimensions': {
                'processed': processed,
                'errors': error_count,
                'batches': ingestor.flush_count
            }}
        )
        return IngestResult(
            success=True,
            processed_count=processed,
            error_count=error_count,
            errors=errors,
            message=f"Successfully processed {processed} villages"
        )
