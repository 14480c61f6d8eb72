"""
Tests for BatchIngestor
"""

import math

import pytest

from shapefile_ingest.ingestor import BatchIngestor
from shapefile_ingest.models import IngestErrorKind, RawFeature

from conftest import polygon, village_attributes


def features(count, **overrides):
    return [
        RawFeature(geometry=polygon(77.0 + i * 0.01, 25.0), attributes=village_attributes(i, **overrides), index=i)
        for i in range(count)
    ]


@pytest.mark.parametrize("count,batch_size", [(0, 3), (1, 3), (3, 3), (7, 3), (10, 1), (250, 100)])
def test_flush_count_is_ceiling(store, count, batch_size):
    ingestor = BatchIngestor(store, batch_size=batch_size)
    ingestor.ingest(features(count))

    assert ingestor.flush_count == math.ceil(count / batch_size)
    assert all(size <= batch_size for size in store.batches)
    assert ingestor.processed_count == count
    assert ingestor.pending == 0


def test_counts_close_over_every_feature(store):
    raws = features(12)
    for i in (2, 5, 9):
        raws[i].attributes["state_name"] = ""
    # duplicate census id of feature 0
    raws[7].attributes["pc11_tv_id"] = raws[0].attributes["pc11_tv_id"]

    ingestor = BatchIngestor(store, batch_size=4, max_reported_errors=10)
    ingestor.ingest(raws)

    assert ingestor.processed_count + ingestor.error_count == len(raws)
    assert ingestor.error_count == 4
    assert len(ingestor.errors) == 4
    kinds = [e.kind for e in ingestor.errors]
    assert kinds.count(IngestErrorKind.FEATURE_PROCESSING_ERROR) == 3
    assert kinds.count(IngestErrorKind.DUPLICATE_ENTRY) == 1


def test_error_details_are_capped_but_counts_exact(store):
    ingestor = BatchIngestor(store, batch_size=5, max_reported_errors=10)
    ingestor.ingest(features(25, state_name=""))

    assert ingestor.error_count == 25
    assert len(ingestor.errors) == 10
    assert ingestor.processed_count == 0
    assert ingestor.flush_count == 0


def test_malformed_feature_does_not_stop_the_stream(store):
    raws = features(3)
    raws[1].geometry = {"type": "MultiPolygon", "coordinates": [5]}

    ingestor = BatchIngestor(store, batch_size=10)
    ingestor.ingest(raws)

    assert ingestor.processed_count == 2
    assert ingestor.error_count == 1
    assert ingestor.errors[0].kind == IngestErrorKind.FEATURE_PROCESSING_ERROR


def test_failed_batch_becomes_one_error_and_ingestion_continues(store):
    store.fail_batches = {2}
    ingestor = BatchIngestor(store, batch_size=3)
    ingestor.ingest(features(9))

    assert ingestor.flush_count == 3
    assert ingestor.processed_count == 6
    assert ingestor.error_count == 1
    assert ingestor.errors[0].kind == IngestErrorKind.BATCH_INSERT_ERROR
    assert ingestor.errors[0].context == {"batch": 2, "records": 3}


def test_observer_called_after_every_flush(store):
    calls = []
    ingestor = BatchIngestor(store, batch_size=4, on_progress=lambda p, e: calls.append((p, e)))
    ingestor.ingest(features(10))

    assert calls == [(4, 0), (8, 0), (10, 0)]


def test_observer_errors_do_not_stop_ingestion(store):
    def explode(processed, errors):
        raise RuntimeError("observer broke")

    ingestor = BatchIngestor(store, batch_size=2, on_progress=explode)
    ingestor.ingest(features(5))

    assert ingestor.processed_count == 5


def test_flush_on_empty_batch_is_noop(store):
    ingestor = BatchIngestor(store)
    ingestor.flush()
    assert ingestor.flush_count == 0
    assert store.batches == []


def test_batch_size_must_be_positive(store):
    with pytest.raises(ValueError):
        BatchIngestor(store, batch_size=0)
