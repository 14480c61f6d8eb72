# ============================================================================
# MODULE CONTEXT - FEATURE STREAM READER
# ============================================================================
# STATUS: Pipeline Stage - Shapefile parsing
# PURPOSE: Lazy single-pass (geometry, attributes) stream over a .shp/.dbf pair
# EXPORTS: FeatureStreamReader, detect_encoding
# DEPENDENCIES: pyshp (shapefile), util_logger, exceptions
# PATTERNS: Context manager, generator, scoped file handles
# ENTRY_POINTS: with FeatureStreamReader(shp, dbf, shx) as stream: for f in stream: ...
# ============================================================================

"""
Feature Stream Reader

Opens the geometry file and the attribute file together and yields one
RawFeature per record. Record i of the .shp always pairs with record i of
the .dbf.

The stream can be iterated once. Reading metadata and then ingesting
means opening a second reader over the same files.
"""

import codecs
import struct
from typing import Any, Dict, Iterator, List, Optional

import shapefile

from exceptions import OpenError, StreamConsumedError
from util_logger import LoggerFactory, ComponentType

from .models import RawFeature

logger = LoggerFactory.create_logger(ComponentType.PIPELINE, "FeatureStreamReader")

# Errors pyshp surfaces for unreadable or truncated input
_READ_ERRORS = (shapefile.ShapefileException, OSError, struct.error, ValueError, IndexError)


def detect_encoding(cpg_path: Optional[str], default: str = "utf-8") -> str:
    """
    Read the attribute encoding from a .cpg file.

    Bare code page numbers ("1252") map to Python codec names ("cp1252").
    Unknown or unreadable values fall back to default.
    """
    if not cpg_path:
        return default

    try:
        with open(cpg_path, "r", encoding="ascii", errors="ignore") as fh:
            declared = fh.read().strip()
    except OSError as e:
        logger.warning(f"Could not read encoding file {cpg_path}: {e}")
        return default

    if not declared:
        return default

    candidate = f"cp{declared}" if declared.isdigit() else declared.lower().replace("ansi ", "cp")
    try:
        return codecs.lookup(candidate).name
    except LookupError:
        logger.warning(f"Unknown encoding '{declared}' in {cpg_path}, using {default}")
        return default


class FeatureStreamReader:
    """
    Single-pass reader over a shapefile geometry/attribute pair.

    Args:
        shp_path: Geometry file
        dbf_path: Attribute file
        shx_path: Shape index file, enables positional record access
        encoding: Attribute text encoding

    Raises:
        OpenError: From open() when either file cannot be read as a shapefile
    """

    def __init__(
        self,
        shp_path: str,
        dbf_path: str,
        shx_path: Optional[str] = None,
        encoding: str = "utf-8"
    ):
        self.shp_path = shp_path
        self.dbf_path = dbf_path
        self.shx_path = shx_path
        self.encoding = encoding

        self._handles: List[Any] = []
        self._reader: Optional[shapefile.Reader] = None
        self._consumed = False
        self.skipped = 0

    # ========================================================================
    # LIFECYCLE
    # ========================================================================

    def open(self) -> "FeatureStreamReader":
        if self._reader is not None:
            return self

        try:
            sources = {"shp": self.shp_path, "dbf": self.dbf_path}
            if self.shx_path:
                sources["shx"] = self.shx_path

            handles = {}
            for part, path in sources.items():
                handles[part] = open(path, "rb")
                self._handles.append(handles[part])

            self._reader = shapefile.Reader(
                encoding=self.encoding,
                encodingErrors="replace",
                **handles
            )
        except _READ_ERRORS as e:
            self.close()
            raise OpenError(
                f"Cannot open shapefile: {e}",
                {"shp": self.shp_path, "dbf": self.dbf_path}
            ) from e

        logger.info(
            f"📂 Opened shapefile with {self._reader.numRecords} records "
            f"(encoding={self.encoding})"
        )
        return self

    def close(self) -> None:
        """Release every file handle. Safe to call more than once."""
        if self._reader is not None:
            try:
                self._reader.close()
            except _READ_ERRORS as e:
                logger.debug(f"Reader close failed: {e}")
            self._reader = None

        while self._handles:
            handle = self._handles.pop()
            try:
                handle.close()
            except OSError as e:
                logger.debug(f"File handle close failed: {e}")

    def __enter__(self) -> "FeatureStreamReader":
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ========================================================================
    # METADATA
    # ========================================================================

    @property
    def field_names(self) -> List[str]:
        """Attribute field names, excluding pyshp's deletion flag."""
        self._require_open()
        return [f[0] for f in self._reader.fields[1:]]

    @property
    def record_count(self) -> int:
        """Records declared by the attribute file, readable or not."""
        self._require_open()
        return self._reader.numRecords

    def _require_open(self) -> None:
        if self._reader is None:
            raise OpenError("Shapefile is not open", {"shp": self.shp_path})

    # ========================================================================
    # ITERATION
    # ========================================================================

    def __iter__(self) -> Iterator[RawFeature]:
        if self._consumed:
            raise StreamConsumedError(
                "Feature stream already consumed; open a new reader",
                {"shp": self.shp_path}
            )
        self._require_open()
        self._consumed = True
        return self._features()

    def _features(self) -> Iterator[RawFeature]:
        try:
            for index in range(self._reader.numRecords):
                feature = self._read_feature(index)
                if feature is None:
                    self.skipped += 1
                    continue
                yield feature
        finally:
            self.close()

        if self.skipped:
            logger.info(f"Skipped {self.skipped} empty or unreadable records")

    def _read_feature(self, index: int) -> Optional[RawFeature]:
        try:
            shape = self._reader.shape(index)
            record = self._reader.record(index)
        except _READ_ERRORS as e:
            logger.debug(f"Skipping unreadable record {index}: {e}")
            return None

        if shape is None or shape.shapeType == shapefile.NULL or not shape.points:
            logger.debug(f"Skipping empty shape at record {index}")
            return None

        try:
            geometry = shape.__geo_interface__
        except _READ_ERRORS as e:
            logger.debug(f"Skipping malformed shape at record {index}: {e}")
            return None

        attributes: Dict[str, Any] = record.as_dict()
        return RawFeature(geometry=geometry, attributes=attributes, index=index)
