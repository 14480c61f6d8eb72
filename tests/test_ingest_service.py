"""
Tests for ShapefileIngestService
"""

import os

from shapefile_ingest.config import IngestConfig
from shapefile_ingest.models import IngestErrorKind, UploadedFile
from shapefile_ingest.service import ShapefileIngestService

from conftest import FIELD_NAMES, village_attributes, write_shapefile


def service_for(store, **config):
    return ShapefileIngestService(store=store, config=IngestConfig(**config))


class TestMetadata:

    def test_metadata_counts_readable_features(self, store, tmp_path):
        files = write_shapefile(tmp_path, count=6, null_shapes=(2,))
        metadata = service_for(store).extract_metadata(files)

        assert metadata.feature_count == 5
        assert metadata.field_names == FIELD_NAMES
        assert metadata.has_required_fields
        assert metadata.encoding == "utf-8"

    def test_metadata_is_idempotent(self, store, tmp_path):
        files = write_shapefile(tmp_path, count=4)
        service = service_for(store)

        assert service.extract_metadata(files) == service.extract_metadata(files)
        assert all(os.path.exists(f.path) for f in files)

    def test_metadata_reads_cpg_encoding(self, store, tmp_path):
        files = write_shapefile(tmp_path, count=1, with_cpg="1252")
        assert service_for(store).extract_metadata(files).encoding == "cp1252"


class TestStructure:

    def test_valid_structure(self, store, tmp_path):
        result = service_for(store).validate_structure(write_shapefile(tmp_path, count=2))
        assert result.valid
        assert result.metadata.feature_count == 2

    def test_missing_fields_are_reported(self, store, tmp_path):
        fields = ["state_name", "district_n", "village_na"]
        files = write_shapefile(tmp_path, count=2, fields=fields)

        result = service_for(store).validate_structure(files)

        assert not result.valid
        assert result.missing_fields == ["subdistric", "tot_p"]
        assert result.available_fields == fields

    def test_missing_component_is_invalid(self, store, tmp_path):
        result = service_for(store).validate_structure(write_shapefile(tmp_path, with_prj=False))
        assert not result.valid
        assert ".prj" in result.message


def test_processing_estimate(store):
    service = service_for(store, features_per_second=150)

    assert service.estimate_processing_time(0).formatted == "0 seconds"
    assert service.estimate_processing_time(1500).formatted == "10 seconds"
    estimate = service.estimate_processing_time(30000)
    assert estimate.seconds == 200
    assert estimate.minutes == 4
    assert estimate.formatted == "~4 minutes"


class TestIngest:

    def test_ingest_writes_every_village_and_cleans_up(self, store, tmp_path):
        files = write_shapefile(tmp_path, count=7)
        progress = []

        result = service_for(store, batch_size=3).ingest(files, on_progress=lambda p, e: progress.append(p))

        assert result.success
        assert result.processed_count == 7
        assert result.error_count == 0
        assert result.message == "Successfully processed 7 villages"
        assert store.batches == [3, 3, 1]
        assert store.ensure_table_calls == 1
        assert progress == [3, 6, 7]
        assert not any(os.path.exists(f.path) for f in files)

    def test_partial_failures_are_counted(self, store, tmp_path):
        features = [village_attributes(i) for i in range(15)]
        for i in range(12):
            features[i]["state_name"] = ""

        result = service_for(store, batch_size=5).ingest(write_shapefile(tmp_path, features=features))

        assert result.success
        assert result.processed_count == 3
        assert result.error_count == 12
        assert len(result.errors) == 10
        assert result.processed_count + result.error_count == 15

    def test_open_failure(self, store, tmp_path):
        files = []
        for ext in (".shp", ".dbf", ".shx", ".prj"):
            path = tmp_path / f"broken{ext}"
            path.write_bytes(b"junk")
            files.append(UploadedFile(original_name=f"broken{ext}", path=str(path)))

        result = service_for(store).ingest(files)

        assert not result.success
        assert result.processed_count == 0
        assert result.error_count >= 1
        assert result.errors[-1].kind == IngestErrorKind.OPEN_ERROR
        assert result.message.startswith("Processing failed")
        assert not any(os.path.exists(f.path) for f in files)

    def test_missing_components(self, store, tmp_path):
        files = write_shapefile(tmp_path, with_prj=False)

        result = service_for(store).ingest(files)

        assert not result.success
        assert result.errors[0].kind == IngestErrorKind.MISSING_COMPONENTS
        assert result.errors[0].context == {"missing": [".prj"]}
        assert store.batches == []
        assert not any(os.path.exists(f.path) for f in files)

    def test_store_failure_is_general_error(self, tmp_path):
        class BrokenStore:
            def ensure_table(self):
                raise RuntimeError("database unavailable")

            def insert_batch(self, records):
                raise AssertionError("not reached")

        result = ShapefileIngestService(store=BrokenStore(), config=IngestConfig()).ingest(
            write_shapefile(tmp_path, count=2)
        )

        assert not result.success
        assert result.errors[-1].kind == IngestErrorKind.GENERAL_ERROR
        assert "database unavailable" in result.message


class TestRepeatedUploads:

    def test_many_uploads_on_one_host(self, store, tmp_path):
        service = service_for(store)

        for i in range(1500):
            result = service.ingest([], upload_id=f"u{i}")
            assert result.errors[-1].kind == IngestErrorKind.MISSING_COMPONENTS

        files = write_shapefile(tmp_path, count=2)
        assert service.ingest(files, upload_id="last").processed_count == 2
