"""
tests/test_postgres_writer.py
-----------------------------
Unit tests for postgres_writer.py with a mocked psycopg2 connection.
Run with: python -m pytest tests/
"""
from __future__ import annotations

from unittest.mock import MagicMock, patch

import psycopg2
import pytest

from oracle_to_postgresql_pkg.base import DatabaseConnectionError, ExecutionError
from oracle_to_postgresql_pkg.postgres_writer import PostgresWriter


@pytest.fixture
def cursor() -> MagicMock:
    cur = MagicMock()
    cur.__enter__.return_value = cur
    cur.__exit__.return_value = False
    return cur


@pytest.fixture
def writer(cursor) -> PostgresWriter:
    conn = MagicMock()
    conn.cursor.return_value = cursor
    return PostgresWriter(conn=conn)


class TestConnect:
    def test_connect_failure(self) -> None:
        with patch("oracle_to_postgresql_pkg.postgres_writer.psycopg2.connect",
                   side_effect=psycopg2.OperationalError("refused")):
            with pytest.raises(DatabaseConnectionError, match="pg:5432/dw"):
                PostgresWriter({"host": "pg", "port": "5432", "dbname": "dw"}).connect()

    def test_not_connected(self) -> None:
        with pytest.raises(RuntimeError):
            PostgresWriter().execute_ddl("SELECT 1")


class TestExecuteDDL:
    def test_commits(self, writer, cursor) -> None:
        writer.execute_ddl("DROP TABLE S.T CASCADE")
        cursor.execute.assert_called_once_with("DROP TABLE S.T CASCADE")
        writer.conn.commit.assert_called_once()

    def test_failure_rolls_back(self, writer, cursor) -> None:
        cursor.execute.side_effect = psycopg2.ProgrammingError('table "t" does not exist')
        with pytest.raises(ExecutionError) as exc:
            writer.execute_ddl("DROP TABLE S.T CASCADE")
        assert exc.value.sql == "DROP TABLE S.T CASCADE"
        assert "does not exist" in str(exc.value)
        writer.conn.rollback.assert_called_once()
        writer.conn.commit.assert_not_called()


class TestInsertBatch:
    def test_execute_batch_with_whole_batch_as_page(self, writer, cursor) -> None:
        rows = [(1, "a"), (2, "b"), (3, "c")]
        with patch("oracle_to_postgresql_pkg.postgres_writer.execute_batch") as execute_batch:
            writer.insert_batch("INSERT INTO S.T (A, B) VALUES (%s, %s)", rows)
        execute_batch.assert_called_once_with(cursor, "INSERT INTO S.T (A, B) VALUES (%s, %s)", rows, page_size=3)
        writer.conn.commit.assert_called_once()

    def test_empty_batch_is_noop(self, writer) -> None:
        writer.insert_batch("INSERT ...", [])
        writer.conn.cursor.assert_not_called()


class TestCopyCsv:
    def test_copy_expert_receives_records(self, writer, cursor) -> None:
        writer.copy_csv("COPY S.T (A) FROM STDIN WITH DELIMITER ',' NULL 'null' CSV", "1\n2\n")
        sql, stream = cursor.copy_expert.call_args[0]
        assert sql.startswith("COPY S.T")
        assert stream.read() == "1\n2\n"
        writer.conn.commit.assert_called_once()

    def test_copy_failure(self, writer, cursor) -> None:
        cursor.copy_expert.side_effect = psycopg2.DataError("invalid input syntax")
        with pytest.raises(ExecutionError):
            writer.copy_csv("COPY S.T (A) FROM STDIN", "x\n")
        writer.conn.rollback.assert_called_once()
