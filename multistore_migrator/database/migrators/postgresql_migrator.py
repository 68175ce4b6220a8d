"""PostgreSQL store migrator implementation using psycopg2."""

import asyncio
import logging
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional, Sequence, Tuple

from psycopg2 import Error as PostgreSQLError
from psycopg2 import sql
from psycopg2.extras import execute_values
from psycopg2.pool import ThreadedConnectionPool

from multistore_migrator.core.exceptions import DatabaseError, DataIntegrityError
from multistore_migrator.models.config import PostgreSQLConfig, StoreKind
from multistore_migrator.models.state import MigrationState, TableTransferUnit
from ..base import StoreMigrator, UnitResult


logger = logging.getLogger(__name__)

SYSTEM_SCHEMAS = ('pg_catalog', 'information_schema')


def create_connection_string(config: PostgreSQLConfig) -> str:
    """Create a libpq connection string for ``config``."""
    conn_params = []

    if config.host:
        conn_params.append(f"host={config.host}")
    if config.port:
        conn_params.append(f"port={config.port}")
    if config.database:
        conn_params.append(f"dbname={config.database}")
    if config.username:
        conn_params.append(f"user={config.username}")
    if config.password:
        conn_params.append(f"password={config.password}")
    if config.sslmode:
        conn_params.append(f"sslmode={config.sslmode}")
    if config.connection_timeout:
        conn_params.append(f"connect_timeout={config.connection_timeout}")

    for key, value in config.extra_params.items():
        conn_params.append(f"{key}={value}")

    return " ".join(conn_params)


def table_identifier(table: str) -> sql.Identifier:
    """Quote a ``schema.table`` name as a qualified identifier."""
    schema, _, name = table.partition('.')
    if not name:
        return sql.Identifier(schema)
    return sql.Identifier(schema, name)


class PostgreSQLGateway:
    """Pooled access to one PostgreSQL database.

    Every method that touches data takes the connection to use, so a
    caller holding one connection per table is the only writer of it.
    """

    def __init__(self, config: PostgreSQLConfig, max_connections: int = 2, readonly: bool = False):
        self.config = config
        self.max_connections = max(2, max_connections)
        self.readonly = readonly
        self._pool: Optional[ThreadedConnectionPool] = None

    def open(self) -> None:
        try:
            self._pool = ThreadedConnectionPool(
                minconn=1,
                maxconn=self.max_connections,
                dsn=create_connection_string(self.config)
            )
        except PostgreSQLError as e:
            raise DatabaseError(
                f"Failed to connect to PostgreSQL at {self.config.describe()}: {e}",
                details={'store': self.config.describe()}
            ) from e
        logger.info(f"Connected to PostgreSQL database: {self.config.describe()}")

    def close(self) -> None:
        if self._pool:
            self._pool.closeall()
            self._pool = None

    @contextmanager
    def connection(self) -> Iterator[Any]:
        """Borrow a connection from the pool for the duration of the block."""
        if self._pool is None:
            raise DatabaseError("PostgreSQL connection pool is not open")
        conn = self._pool.getconn()
        try:
            if self.readonly:
                conn.set_session(readonly=True, autocommit=True)
            yield conn
        except Exception:
            if not conn.closed and not conn.autocommit:
                conn.rollback()
            raise
        finally:
            self._pool.putconn(conn)

    def list_tables(self, conn) -> List[str]:
        """Return schema-qualified names of all user base tables."""
        query = """
            SELECT table_schema, table_name
            FROM information_schema.tables
            WHERE table_type = 'BASE TABLE'
              AND table_schema NOT IN %s
            ORDER BY table_schema, table_name
        """
        try:
            with conn.cursor() as cursor:
                cursor.execute(query, (SYSTEM_SCHEMAS,))
                return [f"{schema}.{name}" for schema, name in cursor.fetchall()]
        except PostgreSQLError as e:
            raise DatabaseError(f"Failed to list tables: {e}") from e

    def count_rows(self, conn, table: str) -> int:
        query = sql.SQL("SELECT COUNT(*) FROM {}").format(table_identifier(table))
        try:
            with conn.cursor() as cursor:
                cursor.execute(query)
                return cursor.fetchone()[0]
        except PostgreSQLError as e:
            raise DatabaseError(
                f"Failed to count rows in {table}: {e}", details={'table': table}
            ) from e

    def fetch_batch(self, conn, table: str, limit: int, offset: int) -> Tuple[List[str], List[tuple]]:
        """Read one page of ``table`` ordered by its first column."""
        query = sql.SQL("SELECT * FROM {} ORDER BY 1 LIMIT %s OFFSET %s").format(
            table_identifier(table)
        )
        try:
            with conn.cursor() as cursor:
                cursor.execute(query, (limit, offset))
                columns = [desc[0] for desc in cursor.description]
                return columns, cursor.fetchall()
        except PostgreSQLError as e:
            raise DatabaseError(
                f"Failed to read {table} at offset {offset}: {e}",
                details={'table': table, 'offset': offset}
            ) from e

    def insert_batch(self, conn, table: str, columns: Sequence[str], rows: List[tuple]) -> int:
        """Insert ``rows`` in one statement, skipping rows that conflict.

        Commits on success and returns the number of rows actually inserted.
        """
        if not rows:
            return 0
        query = sql.SQL("INSERT INTO {} ({}) VALUES %s ON CONFLICT DO NOTHING").format(
            table_identifier(table),
            sql.SQL(', ').join(sql.Identifier(column) for column in columns)
        )
        try:
            with conn.cursor() as cursor:
                # A single page keeps rowcount equal to the rows inserted
                execute_values(cursor, query, rows, page_size=len(rows))
                inserted = cursor.rowcount
            conn.commit()
            return inserted
        except PostgreSQLError as e:
            conn.rollback()
            raise DatabaseError(
                f"Failed to write batch of {len(rows)} rows to {table}: {e}",
                details={'table': table, 'rows': len(rows)}
            ) from e


class PostgreSQLMigrator(StoreMigrator):
    """Copies every user table from the source database to the target."""

    store_kind = StoreKind.POSTGRESQL

    def __init__(self, source_config: PostgreSQLConfig, target_config: PostgreSQLConfig,
                 options=None, scheduler=None, source=None, target=None):
        """Initialize PostgreSQL migrator.

        Args:
            source_config: Source PostgreSQL configuration
            target_config: Target PostgreSQL configuration
            options: Run options
            scheduler: Optional batch scheduler
            source: Optional pre-built gateway for the source
            target: Optional pre-built gateway for the target
        """
        super().__init__(source_config, target_config, options, scheduler)
        connections = self.options.max_workers + 1
        self.source = source or PostgreSQLGateway(source_config, connections, readonly=True)
        self.target = target or PostgreSQLGateway(target_config, connections)

    async def connect(self) -> None:
        await asyncio.to_thread(self.source.open)
        await asyncio.to_thread(self.target.open)

    async def disconnect(self) -> None:
        await asyncio.to_thread(self.source.close)
        await asyncio.to_thread(self.target.close)
        logger.info("Disconnected from PostgreSQL databases")

    async def migrate(self, state: MigrationState) -> None:
        with self.source.connection() as conn:
            tables = await asyncio.to_thread(self.source.list_tables, conn)
        logger.info(f"Found {len(tables)} tables to migrate")

        async def worker(table: str) -> UnitResult:
            return await self.migrate_table(table, state)

        self.results = await self.scheduler.run_units(tables, worker)

        conflicts = sum(r.metadata.get('conflicts_skipped', 0) for r in self.results)
        logger.info(
            f"PostgreSQL migration finished: {len(self.results)} tables, "
            f"{sum(r.transferred for r in self.results)} rows, {conflicts} conflicting rows skipped"
        )

    async def migrate_table(self, table: str, state: MigrationState) -> UnitResult:
        """Copy one table in batches, then verify the target row count."""
        with self.source.connection() as src_conn, self.target.connection() as tgt_conn:
            total_rows = await asyncio.to_thread(self.source.count_rows, src_conn, table)
            unit = TableTransferUnit(table=table, total_rows=total_rows)
            result = UnitResult(name=table, source_count=total_rows)

            if total_rows == 0:
                logger.info(f"Skipping empty table {table}")
                state.increment('tables_processed')
                return result

            logger.info(f"Migrating {total_rows} rows from {table}")
            conflicts_skipped = 0

            while not unit.done:
                read, inserted = await self.scheduler.run_batch(
                    self._copy_batch, src_conn, tgt_conn, table, unit.offset,
                    description=f"Batch at offset {unit.offset} of {table}"
                )
                if read == 0:
                    logger.warning(f"Source table {table} returned no rows at offset {unit.offset}")
                    break
                state.increment('rows_migrated', read)
                result.transferred += read
                conflicts_skipped += read - inserted
                unit.advance(self.batch_size)
                logger.info(f"Migrated {unit.processed}/{total_rows} rows from {table}")

            target_count = await asyncio.to_thread(self.target.count_rows, tgt_conn, table)

        result.target_count = target_count
        result.metadata['conflicts_skipped'] = conflicts_skipped

        if target_count != total_rows:
            raise DataIntegrityError(
                f"Row count mismatch for {table}: source={total_rows}, target={target_count}",
                details={
                    'table': table,
                    'source_count': total_rows,
                    'target_count': target_count,
                    'conflicts_skipped': conflicts_skipped,
                }
            )

        if conflicts_skipped:
            logger.warning(
                f"{conflicts_skipped} rows of {table} already existed on the target and were "
                f"left unchanged; their contents may differ from the source"
            )

        state.increment('tables_processed')
        logger.info(f"Table {table} migrated and verified ({total_rows} rows)")
        return result

    def _copy_batch(self, src_conn, tgt_conn, table: str, offset: int) -> Tuple[int, int]:
        columns, rows = self.source.fetch_batch(src_conn, table, self.batch_size, offset)
        inserted = self.target.insert_batch(tgt_conn, table, columns, rows)
        return len(rows), inserted
