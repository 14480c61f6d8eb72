"""
Shared fixtures: an in-memory village store, shapefiles written with
pyshp into tmp_path, and HttpRequest builders.
"""

import os
from typing import Any, Dict, List, Optional, Sequence

import azure.functions as func
import pytest
import shapefile

from infrastructure.village_repository import BatchFailure, BatchWriteResult
from services import geometry as geo
from shapefile_ingest.config import IngestConfig
from shapefile_ingest.models import UploadedFile

WGS84_PRJ = (
    'GEOGCS["GCS_WGS_1984",DATUM["D_WGS_1984",SPHEROID["WGS_1984",6378137.0,298.257223563]],'
    'PRIMEM["Greenwich",0.0],UNIT["Degree",0.0174532925199433]]'
)

FIELD_NAMES = ["state_name", "district_n", "subdistric", "village_na", "pc11_tv_id", "tot_p"]


# ============================================================================
# IN-MEMORY STORE
# ============================================================================

class FakeVillageStore:
    """
    Village store backed by a list.

    Mirrors VillageRepository: a repeated census_id is rejected per record
    as DUPLICATE_ENTRY, reads return dicts shaped like repository rows.
    """

    def __init__(self):
        self.rows: List[Dict[str, Any]] = []
        self.batches: List[int] = []
        self.ensure_table_calls = 0
        self.fail_batches = set()

    # writes

    def ensure_table(self) -> None:
        self.ensure_table_calls += 1

    def insert_batch(self, records: Sequence[Any]) -> BatchWriteResult:
        from exceptions import StoreWriteError

        self.batches.append(len(records))
        if len(self.batches) in self.fail_batches:
            raise StoreWriteError("connection lost", {"batch": len(self.batches)})

        result = BatchWriteResult()
        seen = {row["census_id"] for row in self.rows if row["census_id"]}
        for index, record in enumerate(records):
            if record.census_id and record.census_id in seen:
                result.failures.append(BatchFailure(index, "DUPLICATE_ENTRY", "duplicate census_id"))
                continue
            if record.census_id:
                seen.add(record.census_id)
            self.rows.append(self._row(len(self.rows) + 1, record))
            result.inserted += 1
        return result

    def delete_all(self) -> int:
        deleted = len(self.rows)
        self.rows = []
        return deleted

    @staticmethod
    def _row(row_id: int, record: Any) -> Dict[str, Any]:
        return {
            "id": row_id,
            "state_name": record.state_name,
            "district_name": record.district_name,
            "subdistrict_name": record.subdistrict_name,
            "village_name": record.village_name,
            "census_id": record.census_id,
            "population": record.population,
            "centroid": record.centroid.model_dump(),
            "bounds": record.bounds.model_dump(),
            "area": record.area,
            "geometry": record.geometry,
        }

    # reads

    def _matches(self, row: Dict[str, Any], filters: Dict[str, Any]) -> bool:
        columns = {"state": "state_name", "district": "district_name", "subdistrict": "subdistrict_name"}
        for key, column in columns.items():
            if filters.get(key) and row[column] != filters[key]:
                return False
        if filters.get("min_population") is not None and row["population"] < filters["min_population"]:
            return False
        if filters.get("max_population") is not None and row["population"] > filters["max_population"]:
            return False
        return True

    @staticmethod
    def _project(row: Dict[str, Any], include_geometry: bool) -> Dict[str, Any]:
        village = {k: v for k, v in row.items() if k != "geometry"}
        village["centroid"] = dict(row["centroid"])
        village["bounds"] = dict(row["bounds"])
        if include_geometry:
            village["geometry"] = row["geometry"]
        return village

    def find_in_bounds(self, bounds, include_geometry, limit):
        hits = [r for r in self.rows if geo.bounds_overlap(r["bounds"], bounds)]
        return [self._project(r, include_geometry) for r in hits[:limit]]

    def find(self, filters, include_geometry, limit):
        hits = [r for r in self.rows if self._matches(r, filters)]
        return [self._project(r, include_geometry) for r in hits[:limit]]

    def search(self, term, filters, limit):
        hits = [
            r for r in self.rows
            if term.lower() in r["village_name"].lower() and self._matches(r, filters)
        ]
        hits.sort(key=lambda r: r["population"], reverse=True)
        return [self._project(r, False) for r in hits[:limit]]

    def get_by_id(self, village_id):
        for row in self.rows:
            if row["id"] == village_id:
                return self._project(row, True)
        return None

    def distinct(self, key, filters):
        column = {"state": "state_name", "district": "district_name", "subdistrict": "subdistrict_name"}[key]
        return sorted({r[column] for r in self.rows if self._matches(r, filters) and r[column].strip()})

    def aggregate_stats(self, filters):
        rows = [r for r in self.rows if self._matches(r, filters)]
        if not rows:
            return {
                "total_villages": 0, "total_population": 0, "avg_population": 0.0,
                "min_population": 0, "max_population": 0, "total_area": 0.0,
            }
        populations = [r["population"] for r in rows]
        return {
            "total_villages": len(rows),
            "total_population": sum(populations),
            "avg_population": sum(populations) / len(rows),
            "min_population": min(populations),
            "max_population": max(populations),
            "total_area": sum(r["area"] for r in rows),
        }

    def population_distribution(self, filters, boundaries):
        buckets: Dict[int, List[int]] = {}
        for row in self.rows:
            if not self._matches(row, filters):
                continue
            lower = max(b for b in boundaries if b <= row["population"])
            buckets.setdefault(lower, []).append(row["population"])
        return [
            {
                "lower_bound": lower,
                "count": len(pops),
                "total_population": sum(pops),
                "avg_population": sum(pops) / len(pops),
            }
            for lower, pops in sorted(buckets.items())
        ]


# ============================================================================
# GEOMETRY + SHAPEFILE HELPERS
# ============================================================================

def square(x: float, y: float, size: float = 0.01) -> List[List[float]]:
    """Closed clockwise ring of a square with its lower-left corner at (x, y)."""
    return [[x, y], [x, y + size], [x + size, y + size], [x + size, y], [x, y]]


def polygon(x: float, y: float, size: float = 0.01) -> Dict[str, Any]:
    return {"type": "Polygon", "coordinates": [square(x, y, size)]}


def village_attributes(index: int, **overrides) -> Dict[str, Any]:
    attributes = {
        "state_name": "Bihar",
        "district_n": "Patna",
        "subdistric": "Danapur",
        "village_na": f"Village {index}",
        "pc11_tv_id": f"{100000 + index}",
        "tot_p": 1000 + index,
    }
    attributes.update(overrides)
    return attributes


def write_shapefile(
    directory,
    name: str = "villages",
    features: Optional[List[Dict[str, Any]]] = None,
    fields: Sequence[str] = FIELD_NAMES,
    count: int = 5,
    null_shapes: Sequence[int] = (),
    with_prj: bool = True,
    with_cpg: Optional[str] = None
) -> List[UploadedFile]:
    """
    Write a polygon shapefile and return its components as uploads.

    Args:
        features: Attribute dicts, one per polygon (default: count villages)
        null_shapes: Indexes written as NULL shapes
    """
    features = features if features is not None else [village_attributes(i) for i in range(count)]
    base = os.path.join(str(directory), name)

    writer = shapefile.Writer(base, shapeType=shapefile.POLYGON)
    for field_name in fields:
        if field_name == "tot_p":
            writer.field(field_name, "N", size=10, decimal=0)
        else:
            writer.field(field_name, "C", size=80)

    for index, attributes in enumerate(features):
        if index in null_shapes:
            writer.null()
        else:
            writer.poly([square(77.0 + index * 0.02, 25.0 + index * 0.02)])
        writer.record(*[attributes.get(f) for f in fields])
    writer.close()

    extensions = [".shp", ".shx", ".dbf"]
    if with_prj:
        with open(base + ".prj", "w") as fh:
            fh.write(WGS84_PRJ)
        extensions.append(".prj")
    if with_cpg is not None:
        with open(base + ".cpg", "w") as fh:
            fh.write(with_cpg)
        extensions.append(".cpg")

    return [
        UploadedFile(original_name=name + ext, path=base + ext, size=os.path.getsize(base + ext))
        for ext in extensions
    ]


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def store():
    return FakeVillageStore()


@pytest.fixture
def ingest_config(tmp_path):
    return IngestConfig(upload_dir=str(tmp_path / "spool"), batch_size=3)


@pytest.fixture
def shapefile_uploads(tmp_path):
    return write_shapefile(tmp_path)


# ============================================================================
# HTTP REQUEST BUILDERS
# ============================================================================

def get_request(url: str, params: Optional[Dict[str, str]] = None,
                route_params: Optional[Dict[str, str]] = None,
                client: str = "10.0.0.1") -> func.HttpRequest:
    return func.HttpRequest(
        method="GET",
        url=url,
        headers={"x-forwarded-for": client},
        params=params or {},
        route_params=route_params or {},
        body=b""
    )


def json_request(method: str, url: str, body: bytes, client: str = "10.0.0.1") -> func.HttpRequest:
    return func.HttpRequest(
        method=method,
        url=url,
        headers={"x-forwarded-for": client, "Content-Type": "application/json"},
        params={},
        route_params={},
        body=body
    )


def multipart_request(url: str, files: List[UploadedFile], client: str = "10.0.0.1") -> func.HttpRequest:
    """POST with every upload as a 'files' part of a multipart body."""
    boundary = "villageatlasboundary"
    body = b""
    for upload in files:
        with open(upload.path, "rb") as fh:
            data = fh.read()
        body += (
            f"--{boundary}\r\n"
            f'Content-Disposition: form-data; name="files"; filename="{upload.original_name}"\r\n'
            "Content-Type: application/octet-stream\r\n\r\n"
        ).encode() + data + b"\r\n"
    body += f"--{boundary}--\r\n".encode()

    return func.HttpRequest(
        method="POST",
        url=url,
        headers={
            "x-forwarded-for": client,
            "Content-Type": f"multipart/form-data; boundary={boundary}",
            "Content-Length": str(len(body))
        },
        params={},
        route_params={},
        body=body
    )
