# ============================================================================
# MODULE CONTEXT - SHAPEFILE UPLOAD TRIGGERS
# ============================================================================
# STATUS: HTTP Triggers - Shapefile upload endpoints
# PURPOSE: Azure Functions HTTP handlers for shapefile upload, metadata and validation
# EXPORTS: get_upload_triggers (returns list of trigger configurations)
# INTERFACES: Azure Functions HttpRequest/HttpResponse
# DEPENDENCIES: azure.functions, util_logger, api_response, infrastructure.rate_limiter
# SCOPE: Multipart upload handling; ingestion itself lives in the service
# PATTERNS: Trigger Pattern, Factory Pattern (get_upload_triggers)
# ENTRY_POINTS: Function App route registration via get_upload_triggers()
# ============================================================================

"""
Shapefile Upload HTTP Triggers

Endpoints:
- POST /api/upload/shapefile - Validate and ingest a shapefile
- POST /api/upload/metadata  - Field names, feature count and time estimate
- POST /api/upload/validate  - Check the attribute table has the required fields

Every uploaded part is spooled to a uniquely named file in the upload
directory. The spooled files are deleted before each handler returns.
"""

import os
from typing import Any, Callable, Dict, List, Optional

import azure.functions as func

from api_response import client_address, error_response, json_response, rate_limited_response
from exceptions import MissingComponentsError, OpenError
from infrastructure.rate_limiter import RateLimiter, SlidingWindowRateLimiter
from util_logger import LoggerFactory, ComponentType

from .components import cleanup_files, find_disallowed, unique_filename
from .config import IngestConfig, get_ingest_config
from .models import UploadedFile
from .service import ShapefileIngestService

logger = LoggerFactory.create_logger(ComponentType.TRIGGER, "ShapefileUploadTriggers")


class UploadRejected(Exception):
    """Multipart payload failed a transport-level check."""


# ============================================================================
# TRIGGER REGISTRY FUNCTION
# ============================================================================

def get_upload_triggers(
    service: Optional[ShapefileIngestService] = None,
    rate_limiter: Optional[RateLimiter] = None
) -> List[Dict[str, Any]]:
    """
    Get upload trigger configurations for function_app.py.

    Args:
        service: Ingest service (defaults to one backed by PostGIS)
        rate_limiter: Shared limiter for the upload route group
            (defaults to 10 requests per minute per client)

    Returns:
        List of dicts with keys route, methods, handler
    """
    service = service or ShapefileIngestService()
    rate_limiter = rate_limiter or SlidingWindowRateLimiter(10, 60)

    return [
        {
            'route': 'upload/shapefile',
            'methods': ['POST'],
            'handler': ShapefileUploadTrigger(service, rate_limiter).handle
        },
        {
            'route': 'upload/metadata',
            'methods': ['POST'],
            'handler': ShapefileMetadataTrigger(service, rate_limiter).handle
        },
        {
            'route': 'upload/validate',
            'methods': ['POST'],
            'handler': ShapefileValidateTrigger(service, rate_limiter).handle
        }
    ]


# ============================================================================
# BASE TRIGGER CLASS
# ============================================================================

class BaseUploadTrigger:
    """
    Base class for upload triggers.

    Provides:
    - Rate limiting per client address
    - Spooling multipart parts to disk with allow-list and size checks
    - Cleanup of spooled files
    """

    def __init__(
        self,
        service: ShapefileIngestService,
        rate_limiter: RateLimiter,
        config: Optional[IngestConfig] = None
    ):
        self.service = service
        self.rate_limiter = rate_limiter
        self.config = config or service.config or get_ingest_config()

    def handle(self, req: func.HttpRequest) -> func.HttpResponse:
        decision = self.rate_limiter.check(client_address(req))
        if not decision.allowed:
            logger.warning(f"Upload rate limit hit for {client_address(req)}")
            return rate_limited_response(decision.retry_after_seconds)

        try:
            files = self._spool_files(req)
        except UploadRejected as e:
            return error_response(str(e), status_code=400)

        if not files:
            return error_response("No files uploaded", status_code=400)

        logger.info(f"Received {len(files)} files for processing")
        try:
            return self._handle_files(files)
        except MissingComponentsError as e:
            return error_response(str(e), status_code=400, meta={"missing": e.missing})
        except OpenError as e:
            return error_response(f"Invalid shapefile: {e.message}", status_code=400)
        except Exception as e:
            logger.error(f"Upload handler error: {e}", exc_info=True)
            return error_response(f"Upload processing failed: {e}", status_code=500)
        finally:
            cleanup_files(files)

    def _handle_files(self, files: List[UploadedFile]) -> func.HttpResponse:
        raise NotImplementedError

    def _spool_files(self, req: func.HttpRequest) -> List[UploadedFile]:
        """
        Save every multipart file part to the upload directory.

        Raises:
            UploadRejected: Too many files, a disallowed extension, or a file
                over the size limit. Anything already spooled is deleted.
        """
        parts = [part for _, part in req.files.items(multi=True) if part and part.filename]

        if len(parts) > self.config.max_files:
            raise UploadRejected(f"Too many files: at most {self.config.max_files} allowed")

        disallowed = find_disallowed([p.filename for p in parts], self.config)
        if disallowed:
            raise UploadRejected(
                "Invalid file type. Only shapefile components are allowed: "
                f"{', '.join(self.config.allowed_extensions)}"
            )

        os.makedirs(self.config.upload_dir, exist_ok=True)
        spooled: List[UploadedFile] = []
        try:
            for part in parts:
                path = os.path.join(self.config.upload_dir, unique_filename(part.filename))
                part.save(path)
                upload = UploadedFile(
                    original_name=part.filename,
                    path=path,
                    size=os.path.getsize(path)
                )
                spooled.append(upload)
                if upload.size > self.config.max_file_size_bytes:
                    raise UploadRejected(
                        f"File {part.filename} exceeds {self.config.max_file_size_mb} MB"
                    )
        except (UploadRejected, OSError):
            cleanup_files(spooled)
            raise

        return spooled


# ============================================================================
# ENDPOINT TRIGGERS
# ============================================================================

class ShapefileUploadTrigger(BaseUploadTrigger):
    """
    Upload and ingest a shapefile.

    Endpoint: POST /api/upload/shapefile
    """

    def _handle_files(self, files: List[UploadedFile]) -> func.HttpResponse:
        self.service.validate_components(files)

        structure = self.service.validate_structure(files)
        if not structure.valid:
            return error_response(
                structure.message,
                status_code=400,
                meta={
                    "missing_fields": structure.missing_fields,
                    "available_fields": structure.available_fields
                }
            )

        feature_count = structure.metadata.feature_count
        estimate = self.service.estimate_processing_time(feature_count)
        logger.info(f"Processing shapefile with {feature_count} features")

        result = self.service.ingest(files, on_progress=progress_logger(feature_count))

        if not result.success:
            return error_response(
                result.message,
                status_code=500,
                meta={
                    "processed_count": result.processed_count,
                    "errors": result.errors
                }
            )

        return json_response(
            data={
                "processed_count": result.processed_count,
                "error_count": result.error_count,
                "errors": result.errors
            },
            message=result.message,
            meta={
                "original_feature_count": feature_count,
                "processing_time": estimate,
                "has_errors": result.error_count > 0
            }
        )


class ShapefileMetadataTrigger(BaseUploadTrigger):
    """
    Metadata without ingestion.

    Endpoint: POST /api/upload/metadata
    """

    def _handle_files(self, files: List[UploadedFile]) -> func.HttpResponse:
        metadata = self.service.extract_metadata(files)
        estimate = self.service.estimate_processing_time(metadata.feature_count)
        return json_response(
            data=metadata,
            message="Metadata extracted successfully",
            meta={"time_estimation": estimate}
        )


class ShapefileValidateTrigger(BaseUploadTrigger):
    """
    Structure validation without ingestion.

    Endpoint: POST /api/upload/validate
    """

    def _handle_files(self, files: List[UploadedFile]) -> func.HttpResponse:
        self.service.validate_components(files)
        structure = self.service.validate_structure(files)

        if not structure.valid:
            return error_response(
                structure.message,
                status_code=400,
                meta={
                    "missing_fields": structure.missing_fields,
                    "available_fields": structure.available_fields
                }
            )
        return json_response(data=structure.metadata, message=structure.message)


def progress_logger(total: int) -> Callable[[int, int], None]:
    """Progress observer that logs each time another 10% is processed."""
    state = {"last": 0}

    def observe(processed: int, errors: int) -> None:
        if total <= 0:
            return
        percent = int(processed * 100 / total)
        if percent >= state["last"] + 10:
            state["last"] = percent
            logger.info(
                f"Processing progress: {percent}% ({processed}/{total})",
                extra={'custom_dimensions': {'processed': processed, 'errors': errors}}
            )

    return observe
