# ============================================================================
# MODULE CONTEXT - POSTGRESQL REPOSITORY
# ============================================================================
# STATUS: Core Infrastructure - PostgreSQL connection management
# PURPOSE: Connection lifecycle and SQL helpers for the PostGIS village store
# EXPORTS: PostgreSQLRepository
# DEPENDENCIES: psycopg, config
# SCOPE: Base class for every repository that talks to PostgreSQL
# PATTERNS: Repository pattern, Per-request connections, Managed identity
# ============================================================================

"""
PostgreSQL Repository - Connection Base Class

Provides PostgreSQL connection management with support for:
- Password-based authentication (local development)
- Azure Managed Identity authentication (production)
- Per-operation connection creation (no pooling)
- Safe SQL execution with psycopg.sql composition
- Schema creation on first use

Usage:
    from infrastructure.postgresql import PostgreSQLRepository

    repo = PostgreSQLRepository(schema_name='geo')
    with repo._get_cursor() as cursor:
        cursor.execute("SELECT count(*) AS n FROM geo.villages")
        count = cursor.fetchone()['n']
"""

import logging
import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from typing import Optional, Tuple, Any
from contextlib import contextmanager

from config import get_postgres_connection_string

logger = logging.getLogger(__name__)


class PostgreSQLRepository:
    """
    PostgreSQL repository base class with connection management.

    Connection Strategy:
    -------------------
    Each operation creates a NEW connection and closes it immediately after use.
    Azure Functions instances are short lived and uploads run one batch per
    transaction, so a pool would hold connections idle between requests.

    Subclasses build every statement with psycopg.sql so schema and table
    names are always quoted identifiers.
    """

    def __init__(self, connection_string: Optional[str] = None,
                 schema_name: str = 'geo'):
        """
        Initialize PostgreSQL repository.

        Parameters:
        ----------
        connection_string : Optional[str]
            Explicit PostgreSQL connection string. If not provided,
            uses get_postgres_connection_string() from config module.

        schema_name : str
            Schema holding the village table.
        """
        self.schema_name = schema_name
        self._conn_string = connection_string
        logger.info(f"✅ PostgreSQLRepository initialized with schema: {self.schema_name}")

    @property
    def conn_string(self) -> str:
        """Connection string, resolved lazily so a managed identity token is fresh."""
        return self._conn_string or get_postgres_connection_string()

    @contextmanager
    def _get_connection(self):
        """
        Context manager for PostgreSQL database connections.

        1. Create connection using connection string
        2. Yield connection to caller
        3. On error: rollback transaction
        4. Always: close connection

        Yields:
        ------
        psycopg.Connection
            Connection with dict_row factory. Autocommit is OFF.

        Raises:
        ------
        psycopg.Error
            On connection failures (network, auth, etc.)
        """
        conn = None
        try:
            logger.debug(f"🔗 Attempting PostgreSQL connection to schema: {self.schema_name}")
            conn = psycopg.connect(self.conn_string, row_factory=dict_row)
            logger.debug("✅ PostgreSQL connection established")

            yield conn

        except psycopg.Error as e:
            logger.error(f"❌ PostgreSQL error: {e}")
            logger.error(f"  Error type: {type(e).__name__}")

            if conn and not conn.closed:
                try:
                    conn.rollback()
                except psycopg.Error as rollback_error:
                    logger.warning(f"Rollback failed: {rollback_error}")

            raise

        finally:
            if conn and not conn.closed:
                conn.close()
                logger.debug("🔒 Connection closed")

    @contextmanager
    def _get_cursor(self):
        """Cursor on a fresh connection, committed on success."""
        with self._get_connection() as conn:
            with conn.cursor() as cursor:
                yield cursor
                conn.commit()

    def _ensure_schema_exists(self) -> None:
        """Create the configured schema if it does not exist yet."""
        with self._get_cursor() as cursor:
            cursor.execute(
                sql.SQL("CREATE SCHEMA IF NOT EXISTS {schema}").format(
                    schema=sql.Identifier(self.schema_name)
                )
            )
        logger.debug(f"✅ Schema '{self.schema_name}' exists")

    def _execute_query(self, query: sql.Composed, params: Optional[Tuple] = None,
                       fetch: Optional[str] = None) -> Optional[Any]:
        """
        Execute a query with automatic commit and error handling.

        Parameters:
        ----------
        query : sql.Composed
            SQL built with psycopg.sql composition.
        params : Optional[Tuple]
            Values for %s placeholders.
        fetch : Optional[str]
            None | 'one' | 'all'

        Returns:
        -------
        Row, list of rows, or the affected row count when fetch is None.

        Raises:
        ------
        TypeError
            If query is not sql.Composed
        ValueError
            If fetch parameter is invalid
        RuntimeError
            For any database operation failure
        """
        if not isinstance(query, sql.Composed):
            raise TypeError(f"Query must be sql.Composed, got {type(query)}")

        if fetch and fetch not in ['one', 'all']:
            raise ValueError(f"Invalid fetch mode: {fetch}")

        try:
            with self._get_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(query, params)

                    result = None
                    if fetch == 'one':
                        result = cursor.fetchone()
                    elif fetch == 'all':
                        result = cursor.fetchall()

                    conn.commit()

                    if fetch:
                        return result
                    return cursor.rowcount if cursor.rowcount >= 0 else None

        except psycopg.Error as e:
            logger.error(f"❌ Query execution failed: {e}")
            raise RuntimeError(f"Database query failed: {e}") from e

    def _table_exists(self, table_name: str) -> bool:
        """Check if a table exists in the configured schema."""
        try:
            with self._get_cursor() as cursor:
                cursor.execute("""
                    SELECT EXISTS (
                        SELECT FROM information_schema.tables
                        WHERE table_schema = %s
                        AND table_name = %s
                    ) as exists
                """, (self.schema_name, table_name))
                result = cursor.fetchone()
                return result['exists'] if result else False
        except psycopg.Error as e:
            logger.error(f"Error checking table existence: {e}")
            return False
