# ============================================================================
# MODULE CONTEXT - BATCH INGESTOR
# ============================================================================
# STATUS: Pipeline Stage - Batched bulk writes
# PURPOSE: Accumulate village records, flush them in fixed-size batches, count outcomes
# EXPORTS: BatchIngestor, VillageStore, ProgressObserver
# DEPENDENCIES: util_logger, exceptions, shapefile_ingest.transformer
# PATTERNS: Bounded buffer, observer callback, errors as data
# ============================================================================

"""
Batch Ingestor

Holds at most batch_size records. A flush hands the batch to the store,
which isolates failures per record; rejected records become errors and
their siblings still count as processed. A flush that fails as a whole
becomes one BATCH_INSERT_ERROR and ingestion carries on with the next
batch.

Counts are exact. Only the first max_reported_errors error details are
kept.
"""

from typing import Callable, Iterable, List, Optional, Protocol, Sequence

from exceptions import StoreWriteError
from util_logger import LoggerFactory, ComponentType

from .models import IngestError, IngestErrorKind, RawFeature, VillageRecord
from .transformer import transform_feature

# (processed_so_far, error_count_so_far)
ProgressObserver = Callable[[int, int], None]


class VillageStore(Protocol):
    def ensure_table(self) -> None:
        ...

    def insert_batch(self, records: Sequence[VillageRecord]):
        ...


class BatchIngestor:
    """
    Buffer records and write them in batches.

    Args:
        store: Object with insert_batch(records) -> BatchWriteResult
        batch_size: Records per bulk write
        max_reported_errors: Error details retained
        on_progress: Called once after every flush with (processed, errors)
        upload_id: Correlation id for log records
    """

    def __init__(
        self,
        store: VillageStore,
        batch_size: int = 100,
        max_reported_errors: int = 10,
        on_progress: Optional[ProgressObserver] = None,
        upload_id: Optional[str] = None
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")

        self.store = store
        self.batch_size = batch_size
        self.max_reported_errors = max_reported_errors
        self.on_progress = on_progress

        self._batch: List[VillageRecord] = []
        self.processed_count = 0
        self.error_count = 0
        self.flush_count = 0
        self.errors: List[IngestError] = []

        self.logger = LoggerFactory.create_with_context(
            ComponentType.PIPELINE,
            "BatchIngestor",
            upload_id=upload_id
        )

    @property
    def pending(self) -> int:
        return len(self._batch)

    def add(self, record: VillageRecord) -> None:
        """Append a record, flushing when the batch reaches capacity."""
        self._batch.append(record)
        if len(self._batch) >= self.batch_size:
            self.flush()

    def record_error(self, error: IngestError) -> None:
        self.error_count += 1
        if len(self.errors) < self.max_reported_errors:
            self.errors.append(error)

    def ingest(self, features: Iterable[RawFeature]) -> None:
        """Transform and buffer every feature, then flush the remainder."""
        for raw in features:
            outcome = transform_feature(raw)
            if outcome.ok:
                self.add(outcome.record)
            else:
                self.logger.debug(f"Feature {raw.index} rejected: {outcome.error.message}")
                self.record_error(outcome.error)
        self.flush()

    def flush(self) -> None:
        """Write the current batch. No-op when the batch is empty."""
        if not self._batch:
            return

        batch, self._batch = self._batch, []
        self.flush_count += 1

        try:
            result = self.store.insert_batch(batch)
        except StoreWriteError as e:
            self.logger.error(f"❌ Batch {self.flush_count} failed: {e}")
            self.record_error(IngestError(
                kind=IngestErrorKind.BATCH_INSERT_ERROR,
                message=str(e),
                context={"batch": self.flush_count, "records": len(batch)}
            ))
        else:
            self.processed_count += result.inserted
            for failure in result.failures:
                self.record_error(IngestError(
                    kind=IngestErrorKind(failure.kind),
                    message=failure.message,
                    context={"batch": self.flush_count, "index": failure.index}
                ))

        self.logger.info(
            f"Processed {self.processed_count} villages...",
            extra={'custom_dimensions': {
                'batch': self.flush_count,
                'batch_size': len(batch),
                'processed': self.processed_count,
                'errors': self.error_count
            }}
        )
        self._notify()

    def _notify(self) -> None:
        if self.on_progress is None:
            return
        try:
            self.on_progress(self.processed_count, self.error_count)
        except Exception as e:
            self.logger.warning(f"Progress observer raised, ignoring: {e}")
