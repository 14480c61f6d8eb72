# ============================================================================
# MODULE CONTEXT - EXCEPTIONS
# ============================================================================
# STATUS: Core Infrastructure - Error taxonomy
# PURPOSE: Exception hierarchy shared by the ingestion pipeline and query API
# EXPORTS: VillageAtlasError and its subclasses
# DEPENDENCIES: typing
# PATTERNS: Message + context exceptions
# ============================================================================

"""
Exception hierarchy.

Fatal conditions (component set missing, file pair cannot be opened) and
caller input errors (bounds, query parameters) are raised. Per-record
problems during ingestion are never raised past the pipeline; they are
returned as IngestError data instead.
"""

from typing import Any, Dict, List, Optional


class VillageAtlasError(Exception):
    """
    Base exception carrying an optional context mapping.

    The context is appended to str() as key=value pairs so log lines and
    error envelopes keep the detail without a custom formatter.
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{self.message} ({details})"


class MissingComponentsError(VillageAtlasError):
    """Upload lacks one or more mandatory shapefile components."""

    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__(f"Missing required files: {', '.join(self.missing)}")


class OpenError(VillageAtlasError):
    """Geometry/attribute file pair could not be opened."""


class StreamConsumedError(VillageAtlasError):
    """A feature stream was iterated a second time."""


class FeatureProcessingError(VillageAtlasError):
    """A single feature could not be turned into a village record."""


class InvalidBoundsError(VillageAtlasError):
    """Viewport bounds are out of range or inverted."""


class InvalidQueryError(VillageAtlasError):
    """Query parameters failed validation."""


class StoreWriteError(VillageAtlasError):
    """A bulk write failed as a whole (connection or transaction level)."""


class NotFoundError(VillageAtlasError):
    """Requested entity does not exist."""
