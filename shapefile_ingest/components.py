# ============================================================================
# MODULE CONTEXT - COMPONENT SET VALIDATION
# ============================================================================
# STATUS: Pipeline Stage - Pre-flight upload checks
# PURPOSE: Verify the mandatory shapefile components are present before parsing
# EXPORTS: validate_components, find_disallowed, unique_filename, cleanup_files
# DEPENDENCIES: util_logger, exceptions
# PATTERNS: Pure name inspection, scoped file cleanup
# ============================================================================

"""
Component Set Validation

A shapefile is a group of files sharing a base name. Only the names are
inspected here; nothing is opened.
"""

import os
import random
import time
from typing import Iterable, List, Optional, Sequence

from exceptions import MissingComponentsError
from util_logger import LoggerFactory, ComponentType

from .config import IngestConfig, get_ingest_config
from .models import ComponentSet, UploadedFile

logger = LoggerFactory.create_logger(ComponentType.VALIDATOR, "ComponentSetValidator")


def validate_components(
    files: Sequence[UploadedFile],
    config: Optional[IngestConfig] = None
) -> ComponentSet:
    """
    Check that every mandatory extension is present.

    Args:
        files: Uploaded files with their original names
        config: Ingest configuration (defaults to the cached singleton)

    Returns:
        ComponentSet with mandatory and optional files keyed by extension

    Raises:
        MissingComponentsError: Listing every absent mandatory extension,
            in the configured order
    """
    config = config or get_ingest_config()

    by_extension = {}
    for upload in files:
        by_extension.setdefault(upload.extension, upload)

    missing = [ext for ext in config.required_extensions if ext not in by_extension]
    if missing:
        logger.warning(f"❌ Upload missing components: {missing}")
        raise MissingComponentsError(missing)

    components = ComponentSet(
        mandatory={ext: by_extension[ext] for ext in config.required_extensions},
        optional={
            ext: upload for ext, upload in by_extension.items()
            if ext in config.optional_extensions
        }
    )
    logger.debug(
        f"Component set ok: mandatory={sorted(components.mandatory)}, "
        f"optional={sorted(components.optional)}"
    )
    return components


def find_disallowed(names: Iterable[str], config: Optional[IngestConfig] = None) -> List[str]:
    """Names whose extension is outside the mandatory + optional allow-list."""
    config = config or get_ingest_config()
    allowed = set(config.allowed_extensions)
    return [
        name for name in names
        if UploadedFile(original_name=name, path="").extension not in allowed
    ]


def unique_filename(original_name: str) -> str:
    """<epoch millis>-<random>.<ext> for a spooled upload part."""
    extension = original_name.rsplit(".", 1)[-1] if "." in original_name else "bin"
    return f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}.{extension.lower()}"


def cleanup_files(files: Iterable[UploadedFile]) -> int:
    """
    Delete spooled upload files.

    Deletion failures are logged and do not stop the remaining deletions.

    Returns:
        Number of files removed
    """
    removed = 0
    for upload in files:
        if not upload.path or not os.path.exists(upload.path):
            continue
        try:
            os.remove(upload.path)
            removed += 1
        except OSError as e:
            logger.error(f"Error deleting file {upload.path}: {e}")
    logger.debug(f"🧹 Cleaned up {removed} uploaded files")
    return removed
