import io
import logging
from typing import Any, Dict, Optional, Sequence

import psycopg2
from psycopg2.extensions import connection as PostgresConnection
from psycopg2.extras import execute_batch

from oracle_to_postgresql_pkg.base import DataWriter, DatabaseConnectionError, ExecutionError

logger = logging.getLogger(__name__)


class PostgresWriter(DataWriter):
    """Executes DDL and loads rows into PostgreSQL.

    Every call commits on success and rolls back on failure, so a failed
    statement never leaves the connection in an aborted transaction.
    """

    def __init__(self, connect_params: Optional[Dict[str, Any]] = None, conn=None):
        self.connect_params = connect_params or {}
        self.conn: Optional[PostgresConnection] = conn

    def connect(self):
        """Create and return a PostgreSQL connection."""
        target = f"{self.connect_params.get('host', '')}:{self.connect_params.get('port', '')}" \
                 f"/{self.connect_params.get('dbname', '')}"
        try:
            self.conn = psycopg2.connect(**self.connect_params)
        except psycopg2.Error as e:
            raise DatabaseConnectionError(f"Cannot connect to target database {target}: {e}") from e
        logger.info(f"Connected to target database {target}")
        return self.conn

    def close(self):
        if self.conn:
            try:
                self.conn.close()
            except psycopg2.Error as e:
                logger.error(f"Error closing target connection: {e}")
            self.conn = None
            logger.info("Disconnected from target database")

    def _rollback(self):
        if self.conn:
            try:
                self.conn.rollback()
            except psycopg2.Error as e:
                logger.error(f"Rollback failed: {e}")

    def execute_ddl(self, sql: str) -> None:
        if not self.conn:
            raise RuntimeError("PostgreSQL connection not established")
        try:
            with self.conn.cursor() as cursor:
                cursor.execute(sql)
            self.conn.commit()
        except psycopg2.Error as e:
            self._rollback()
            raise ExecutionError(sql, e) from e

    def insert_batch(self, insert_sql: str, rows: Sequence[Sequence[Any]]) -> None:
        """Insert parameter rows with execute_batch in a single round of pages."""
        if not rows:
            return
        if not self.conn:
            raise RuntimeError("PostgreSQL connection not established")
        try:
            with self.conn.cursor() as cursor:
                execute_batch(cursor, insert_sql, rows, page_size=len(rows))
            self.conn.commit()
        except psycopg2.Error as e:
            self._rollback()
            raise ExecutionError(insert_sql, e) from e

    def copy_csv(self, copy_sql: str, data: str) -> None:
        """Stream CSV records through COPY ... FROM STDIN."""
        if not data:
            return
        if not self.conn:
            raise RuntimeError("PostgreSQL connection not established")
        try:
            with self.conn.cursor() as cursor:
                cursor.copy_expert(copy_sql, io.StringIO(data))
            self.conn.commit()
        except psycopg2.Error as e:
            self._rollback()
            raise ExecutionError(copy_sql, e) from e
