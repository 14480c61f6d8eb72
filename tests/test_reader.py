"""
Tests for FeatureStreamReader and .cpg encoding detection
"""

import pytest

from exceptions import OpenError, StreamConsumedError
from shapefile_ingest.reader import FeatureStreamReader, detect_encoding

from conftest import write_shapefile


def paths(files):
    by_ext = {f.extension: f.path for f in files}
    return by_ext[".shp"], by_ext[".dbf"], by_ext.get(".shx")


def test_streams_every_feature_in_order(tmp_path):
    shp, dbf, shx = paths(write_shapefile(tmp_path, count=4))

    with FeatureStreamReader(shp, dbf, shx) as stream:
        assert stream.record_count == 4
        assert stream.field_names == ["state_name", "district_n", "subdistric",
                                      "village_na", "pc11_tv_id", "tot_p"]
        features = list(stream)

    assert [f.index for f in features] == [0, 1, 2, 3]
    assert features[2].attributes["village_na"] == "Village 2"
    assert features[2].attributes["tot_p"] == 1002
    assert features[0].geometry["type"] == "Polygon"


def test_null_shapes_are_skipped(tmp_path):
    shp, dbf, shx = paths(write_shapefile(tmp_path, count=5, null_shapes=(1, 3)))

    reader = FeatureStreamReader(shp, dbf, shx).open()
    features = list(reader)

    assert [f.index for f in features] == [0, 2, 4]
    assert reader.skipped == 2


def test_second_iteration_raises(tmp_path):
    shp, dbf, shx = paths(write_shapefile(tmp_path, count=2))

    reader = FeatureStreamReader(shp, dbf, shx).open()
    list(reader)
    with pytest.raises(StreamConsumedError):
        iter(reader)


def test_reader_works_without_shx(tmp_path):
    shp, dbf, _ = paths(write_shapefile(tmp_path, count=3))

    with FeatureStreamReader(shp, dbf) as stream:
        assert len(list(stream)) == 3


def test_unreadable_files_raise_open_error(tmp_path):
    shp = tmp_path / "broken.shp"
    dbf = tmp_path / "broken.dbf"
    shp.write_bytes(b"not a shapefile")
    dbf.write_bytes(b"nor a dbf")

    reader = FeatureStreamReader(str(shp), str(dbf))
    with pytest.raises(OpenError) as exc_info:
        reader.open()

    assert exc_info.value.context["shp"] == str(shp)
    assert reader._handles == []


def test_missing_file_raises_open_error(tmp_path):
    with pytest.raises(OpenError):
        FeatureStreamReader(str(tmp_path / "a.shp"), str(tmp_path / "a.dbf")).open()


def test_close_is_idempotent(tmp_path):
    shp, dbf, shx = paths(write_shapefile(tmp_path, count=1))
    reader = FeatureStreamReader(shp, dbf, shx).open()
    reader.close()
    reader.close()


def test_metadata_requires_open_reader(tmp_path):
    shp, dbf, shx = paths(write_shapefile(tmp_path, count=1))
    with pytest.raises(OpenError):
        FeatureStreamReader(shp, dbf, shx).field_names


class TestDetectEncoding:

    @pytest.mark.parametrize("declared,expected", [
        ("UTF-8", "utf-8"),
        ("1252", "cp1252"),
        ("ANSI 1251", "cp1251"),
        ("ISO-8859-1", "iso8859-1"),
    ])
    def test_declared_encodings(self, tmp_path, declared, expected):
        cpg = tmp_path / "v.cpg"
        cpg.write_text(declared)
        assert detect_encoding(str(cpg)) == expected

    def test_unknown_or_missing_falls_back(self, tmp_path):
        cpg = tmp_path / "v.cpg"
        cpg.write_text("klingon")
        assert detect_encoding(str(cpg), "latin-1") == "latin-1"
        assert detect_encoding(None) == "utf-8"
        assert detect_encoding(str(tmp_path / "absent.cpg")) == "utf-8"
