# ============================================================================
# MODULE CONTEXT - VILLAGE REPOSITORY
# ============================================================================
# STATUS: Core Infrastructure - PostGIS village store
# PURPOSE: Bulk writes, bounds-overlap reads and grouped aggregates over the villages table
# EXPORTS: VillageRepository, BatchWriteResult, BatchFailure, FILTER_COLUMNS
# DEPENDENCIES: psycopg, psycopg.sql, infrastructure.postgresql, config
# SOURCE: PostgreSQL/PostGIS database (configurable schema and table)
# SCOPE: Every read and write of village records
# VALIDATION: SQL injection prevention via psycopg.sql composition
# PATTERNS: Repository Pattern, Query Builder, Savepoint per record
# ENTRY_POINTS: repo = VillageRepository(); repo.insert_batch(records)
# ============================================================================

"""
Village Repository - PostGIS Store

Writes:
- insert_batch() runs one transaction per batch and one SAVEPOINT per
  record. A record that violates a constraint rolls back to its own
  savepoint and is reported; the rest of the batch commits.

Reads:
- Bounding-box overlap on the four bounds columns. True polygon
  intersection is never tested, so edge records whose box touches the
  viewport are returned even when the polygon does not.
- Exact-match identity filters and an inclusive population range.
- Grouped counts via width_bucket() for the population distribution.

Safety:
- All queries use psycopg.sql.SQL() composition (NO string concatenation)
- Dynamic identifiers via sql.Identifier()
- Values via parameterized queries (%s placeholders)
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import psycopg
from psycopg import sql

from exceptions import StoreWriteError
from .postgresql import PostgreSQLRepository

logger = logging.getLogger(__name__)

# Filter key -> column
FILTER_COLUMNS = {
    "state": "state_name",
    "district": "district_name",
    "subdistrict": "subdistrict_name",
}

_BASE_COLUMNS = [
    "id",
    "state_name",
    "district_name",
    "subdistrict_name",
    "village_name",
    "census_id",
    "population",
    "centroid_lat",
    "centroid_lng",
    "min_lat",
    "max_lat",
    "min_lng",
    "max_lng",
    "area",
    "created_at",
    "updated_at",
]


@dataclass
class BatchFailure:
    """One record rejected by the store inside a bulk write."""
    index: int
    kind: str
    message: str


@dataclass
class BatchWriteResult:
    """Outcome of one bulk write: how many committed and which did not."""
    inserted: int = 0
    failures: List[BatchFailure] = field(default_factory=list)


class VillageRepository(PostgreSQLRepository):
    """
    PostGIS access for village records.

    Rows come back as plain dicts shaped like the API output:
    centroid and bounds are nested, geometry is a GeoJSON mapping
    when requested.
    """

    def __init__(
        self,
        connection_string: Optional[str] = None,
        schema_name: Optional[str] = None,
        table_name: Optional[str] = None,
        query_timeout_seconds: Optional[int] = None
    ):
        if schema_name is None or table_name is None or query_timeout_seconds is None:
            from config import get_app_config
            app_config = get_app_config()
            schema_name = schema_name or app_config.village_schema
            table_name = table_name or app_config.village_table
            query_timeout_seconds = query_timeout_seconds or app_config.query_timeout_seconds

        super().__init__(connection_string=connection_string, schema_name=schema_name)
        self.table_name = table_name
        self.query_timeout_seconds = query_timeout_seconds

    @property
    def _table(self) -> sql.Composed:
        return sql.SQL("{schema}.{table}").format(
            schema=sql.Identifier(self.schema_name),
            table=sql.Identifier(self.table_name)
        )

    # ========================================================================
    # SCHEMA
    # ========================================================================

    def ensure_table(self) -> None:
        """Create the schema, villages table and its indexes if missing."""
        self._ensure_schema_exists()

        ddl = sql.SQL("""
            CREATE TABLE IF NOT EXISTS {table} (
                id BIGSERIAL PRIMARY KEY,
                state_name TEXT NOT NULL,
                district_name TEXT NOT NULL,
                subdistrict_name TEXT NOT NULL,
                village_name TEXT NOT NULL DEFAULT '',
                census_id TEXT UNIQUE,
                population INTEGER NOT NULL DEFAULT 0 CHECK (population >= 0),
                geom geometry(Geometry, 4326) NOT NULL,
                centroid_lat DOUBLE PRECISION NOT NULL CHECK (centroid_lat BETWEEN -90 AND 90),
                centroid_lng DOUBLE PRECISION NOT NULL CHECK (centroid_lng BETWEEN -180 AND 180),
                min_lat DOUBLE PRECISION NOT NULL,
                max_lat DOUBLE PRECISION NOT NULL,
                min_lng DOUBLE PRECISION NOT NULL,
                max_lng DOUBLE PRECISION NOT NULL,
                area DOUBLE PRECISION NOT NULL DEFAULT 0 CHECK (area >= 0),
                created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
                CHECK (min_lat <= max_lat AND min_lng <= max_lng)
            )
        """).format(table=self._table)

        indexes = [
            ("identity", sql.SQL("(state_name, district_name, subdistrict_name)")),
            ("population", sql.SQL("(population)")),
            ("bounds", sql.SQL("(min_lat, max_lat, min_lng, max_lng)")),
            ("geom", sql.SQL("USING GIST (geom)")),
        ]

        with self._get_cursor() as cursor:
            cursor.execute(ddl)
            for suffix, definition in indexes:
                cursor.execute(
                    sql.SQL("CREATE INDEX IF NOT EXISTS {name} ON {table} {definition}").format(
                        name=sql.Identifier(f"idx_{self.table_name}_{suffix}"),
                        table=self._table,
                        definition=definition
                    )
                )

        logger.info(f"✅ Village table ready: {self.schema_name}.{self.table_name}")

    def table_exists(self) -> bool:
        return self._table_exists(self.table_name)

    def count(self) -> int:
        row = self._execute_query(
            sql.SQL("SELECT count(*) AS n FROM {table}").format(table=self._table),
            fetch='one'
        )
        return row['n'] if row else 0

    # ========================================================================
    # WRITES
    # ========================================================================

    def insert_batch(self, records: Sequence[Any]) -> BatchWriteResult:
        """
        Insert records with per-record failure isolation.

        Args:
            records: VillageRecord instances

        Returns:
            BatchWriteResult with the committed count and per-record failures

        Raises:
            StoreWriteError: If the connection or the enclosing transaction fails
        """
        result = BatchWriteResult()
        if not records:
            return result

        query = sql.SQL("""
            INSERT INTO {table} (
                state_name, district_name, subdistrict_name, village_name,
                census_id, population, geom,
                centroid_lat, centroid_lng,
                min_lat, max_lat, min_lng, max_lng, area
            ) VALUES (
                %s, %s, %s, %s,
                %s, %s, ST_SetSRID(ST_GeomFromGeoJSON(%s), 4326),
                %s, %s,
                %s, %s, %s, %s, %s
            )
        """).format(table=self._table)

        try:
            with self._get_connection() as conn:
                with conn.transaction():
                    with conn.cursor() as cursor:
                        for index, record in enumerate(records):
                            try:
                                with conn.transaction():
                                    cursor.execute(query, self._record_params(record))
                                result.inserted += 1
                            except psycopg.errors.UniqueViolation as e:
                                result.failures.append(BatchFailure(index, "DUPLICATE_ENTRY", str(e).strip()))
                            except psycopg.IntegrityError as e:
                                result.failures.append(BatchFailure(index, "CONSTRAINT_VIOLATION", str(e).strip()))
                            except (psycopg.DataError, psycopg.InternalError) as e:
                                result.failures.append(BatchFailure(index, "INVALID_RECORD", str(e).strip()))

        except psycopg.Error as e:
            raise StoreWriteError(
                f"Bulk insert failed: {e}",
                {"records": len(records)}
            ) from e

        logger.debug(f"Batch insert: {result.inserted} inserted, {len(result.failures)} rejected")
        return result

    @staticmethod
    def _record_params(record: Any) -> Tuple:
        return (
            record.state_name,
            record.district_name,
            record.subdistrict_name,
            record.village_name,
            record.census_id,
            record.population,
            json.dumps(record.geometry),
            record.centroid.lat,
            record.centroid.lng,
            record.bounds.min_lat,
            record.bounds.max_lat,
            record.bounds.min_lng,
            record.bounds.max_lng,
            record.area,
        )

    def delete_all(self) -> int:
        """Delete every village. Returns the number of rows removed."""
        deleted = self._execute_query(
            sql.SQL("DELETE FROM {table}").format(table=self._table)
        )
        logger.warning(f"Deleted {deleted} villages from {self.schema_name}.{self.table_name}")
        return deleted or 0

    # ========================================================================
    # READS
    # ========================================================================

    def find_in_bounds(
        self,
        bounds: Dict[str, float],
        include_geometry: bool,
        limit: int
    ) -> List[Dict[str, Any]]:
        """
        Villages whose bounding box overlaps the viewport box.

        Args:
            bounds: min_lat, max_lat, min_lng, max_lng
            include_geometry: Add the GeoJSON geometry to each row
            limit: Maximum rows
        """
        where = sql.SQL(
            "min_lat <= %s AND max_lat >= %s AND min_lng <= %s AND max_lng >= %s"
        )
        params = [bounds["max_lat"], bounds["min_lat"], bounds["max_lng"], bounds["min_lng"]]

        query = sql.SQL("SELECT {columns} FROM {table} WHERE {where} LIMIT %s").format(
            columns=self._select_columns(include_geometry),
            table=self._table,
            where=where
        )
        return self._fetch_villages(query, params + [limit])

    def find(
        self,
        filters: Dict[str, Any],
        include_geometry: bool,
        limit: int
    ) -> List[Dict[str, Any]]:
        """Villages matching identity filters and a population range."""
        where, params = self._build_where_clause(filters)

        query = sql.SQL("SELECT {columns} FROM {table} {where} ORDER BY id LIMIT %s").format(
            columns=self._select_columns(include_geometry),
            table=self._table,
            where=self._where(where)
        )
        return self._fetch_villages(query, params + [limit])

    def search(self, term: str, filters: Dict[str, Any], limit: int) -> List[Dict[str, Any]]:
        """Case-insensitive substring match on village name, largest first."""
        where, params = self._build_where_clause(filters)

        pattern = "%" + term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"
        name_match = sql.SQL("village_name ILIKE %s")
        where = name_match if where is None else sql.SQL(" AND ").join([where, name_match])
        params.append(pattern)

        query = sql.SQL(
            "SELECT {columns} FROM {table} {where} ORDER BY population DESC LIMIT %s"
        ).format(
            columns=self._select_columns(False),
            table=self._table,
            where=self._where(where)
        )
        return self._fetch_villages(query, params + [limit])

    def get_by_id(self, village_id: int) -> Optional[Dict[str, Any]]:
        query = sql.SQL("SELECT {columns} FROM {table} WHERE id = %s").format(
            columns=self._select_columns(True),
            table=self._table
        )
        rows = self._fetch_villages(query, [village_id])
        return rows[0] if rows else None

    def distinct(self, key: str, filters: Dict[str, Any]) -> List[str]:
        """
        Sorted distinct non-blank values of an identity column.

        Args:
            key: 'state', 'district' or 'subdistrict'
            filters: Identity filters narrowing the values
        """
        if key not in FILTER_COLUMNS:
            raise ValueError(f"Unsupported distinct key: {key}")
        column = sql.Identifier(FILTER_COLUMNS[key])

        where, params = self._build_where_clause(filters)
        not_blank = sql.SQL("btrim({col}) <> ''").format(col=column)
        where = not_blank if where is None else sql.SQL(" AND ").join([where, not_blank])

        query = sql.SQL("SELECT DISTINCT {col} AS value FROM {table} {where} ORDER BY value").format(
            col=column,
            table=self._table,
            where=self._where(where)
        )
        with self._get_cursor() as cursor:
            self._set_timeout(cursor)
            cursor.execute(query, params)
            return [row['value'] for row in cursor.fetchall()]

    # ========================================================================
    # AGGREGATES
    # ========================================================================

    def aggregate_stats(self, filters: Dict[str, Any]) -> Dict[str, Any]:
        """Count, population totals and total area for matching villages."""
        where, params = self._build_where_clause(filters)

        query = sql.SQL("""
            SELECT
                count(*) AS total_villages,
                COALESCE(sum(population), 0) AS total_population,
                COALESCE(avg(population), 0) AS avg_population,
                COALESCE(min(population), 0) AS min_population,
                COALESCE(max(population), 0) AS max_population,
                COALESCE(sum(area), 0) AS total_area
            FROM {table} {where}
        """).format(table=self._table, where=self._where(where))

        with self._get_cursor() as cursor:
            self._set_timeout(cursor)
            cursor.execute(query, params)
            row = cursor.fetchone()

        return {
            "total_villages": int(row["total_villages"]),
            "total_population": int(row["total_population"]),
            "avg_population": float(row["avg_population"]),
            "min_population": int(row["min_population"]),
            "max_population": int(row["max_population"]),
            "total_area": float(row["total_area"]),
        }

    def population_distribution(
        self,
        filters: Dict[str, Any],
        boundaries: Sequence[int]
    ) -> List[Dict[str, Any]]:
        """
        Grouped counts per population bucket.

        Args:
            filters: Identity filters and population range
            boundaries: Ascending bucket lower bounds; the last bucket is open

        Returns:
            Non-empty buckets ordered by lower bound, each with
            lower_bound, count, total_population, avg_population
        """
        where, params = self._build_where_clause(filters)

        query = sql.SQL("""
            SELECT
                width_bucket(population, %s::int[]) AS bucket,
                count(*) AS count,
                sum(population) AS total_population,
                avg(population) AS avg_population
            FROM {table} {where}
            GROUP BY bucket
            ORDER BY bucket
        """).format(table=self._table, where=self._where(where))

        with self._get_cursor() as cursor:
            self._set_timeout(cursor)
            cursor.execute(query, [list(boundaries)] + params)
            rows = cursor.fetchall()

        buckets = []
        for row in rows:
            # width_bucket is 1-based; 0 means below the first boundary
            if row["bucket"] < 1:
                continue
            buckets.append({
                "lower_bound": boundaries[row["bucket"] - 1],
                "count": int(row["count"]),
                "total_population": int(row["total_population"]),
                "avg_population": float(row["avg_population"]),
            })
        return buckets

    # ========================================================================
    # QUERY HELPERS
    # ========================================================================

    def _build_where_clause(self, filters: Dict[str, Any]) -> Tuple[Optional[sql.Composed], List[Any]]:
        """
        Build WHERE conditions for identity filters and population range.

        Returns:
            Tuple of (where_clause_sql, params_list)
        """
        conditions = []
        params = []

        for key, column in FILTER_COLUMNS.items():
            value = filters.get(key)
            if value:
                conditions.append(sql.SQL("{col} = %s").format(col=sql.Identifier(column)))
                params.append(value)

        if filters.get("min_population") is not None:
            conditions.append(sql.SQL("population >= %s"))
            params.append(filters["min_population"])

        if filters.get("max_population") is not None:
            conditions.append(sql.SQL("population <= %s"))
            params.append(filters["max_population"])

        if not conditions:
            return None, []

        return sql.SQL(" AND ").join(conditions), params

    @staticmethod
    def _where(clause: Optional[sql.Composable]) -> sql.Composable:
        if clause is None:
            return sql.SQL("")
        return sql.SQL("WHERE ") + clause

    @staticmethod
    def _select_columns(include_geometry: bool) -> sql.Composed:
        columns = [sql.Identifier(c) for c in _BASE_COLUMNS]
        if include_geometry:
            columns.append(sql.SQL("ST_AsGeoJSON(geom)::json AS geometry"))
        return sql.SQL(", ").join(columns)

    def _set_timeout(self, cursor) -> None:
        cursor.execute(
            sql.SQL("SET statement_timeout = {}").format(
                sql.Literal(f"{self.query_timeout_seconds}s")
            )
        )

    def _fetch_villages(self, query: sql.Composed, params: List[Any]) -> List[Dict[str, Any]]:
        try:
            with self._get_cursor() as cursor:
                self._set_timeout(cursor)
                cursor.execute(query, params)
                rows = cursor.fetchall()
        except psycopg.Error as e:
            logger.error(f"Error querying villages: {e}")
            raise

        return [self._row_to_village(row) for row in rows]

    @staticmethod
    def _row_to_village(row: Dict[str, Any]) -> Dict[str, Any]:
        village = {
            "id": row["id"],
            "state_name": row["state_name"],
            "district_name": row["district_name"],
            "subdistrict_name": row["subdistrict_name"],
            "village_name": row["village_name"],
            "census_id": row["census_id"],
            "population": row["population"],
            "centroid": {"lat": row["centroid_lat"], "lng": row["centroid_lng"]},
            "bounds": {
                "min_lat": row["min_lat"],
                "max_lat": row["max_lat"],
                "min_lng": row["min_lng"],
                "max_lng": row["max_lng"],
            },
            "area": row["area"],
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
        }
        if "geometry" in row:
            geometry = row["geometry"]
            village["geometry"] = json.loads(geometry) if isinstance(geometry, str) else geometry
        return village
