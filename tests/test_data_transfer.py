"""
tests/test_data_transfer.py
---------------------------
Unit tests for data_transfer.py: CSV records, strategies and the sample cap.
Run with: python -m pytest tests/
"""
from __future__ import annotations

import csv
import datetime
import decimal
import io

import psycopg2
import pytest

from fakes import FakeFetcher, FakeTable, FakeWriter
from oracle_to_postgresql_pkg.base import ColumnDescriptor
from oracle_to_postgresql_pkg.data_transfer import (
    CopyTransfer,
    InsertTransfer,
    build_copy_sql,
    build_insert_sql,
    format_field,
    parse_csv_record,
    select_strategy,
    serialize_row,
    transfer_table,
)


PLAIN_COLUMNS = [
    ColumnDescriptor("ID", "NUMBER", 22, 0, 9, nullable=False),
    ColumnDescriptor("NAME", "VARCHAR2", 100),
]

LOB_COLUMNS = [
    ColumnDescriptor("ID", "NUMBER", 22, 0, 9, nullable=False),
    ColumnDescriptor("BODY", "CLOB", 4000),
    ColumnDescriptor("IMAGE", "BLOB", 4000),
]

AMOUNT_COLUMNS = [
    ColumnDescriptor("ID", "NUMBER", 22, 0, 9, nullable=False),
    ColumnDescriptor("AMOUNT", "NUMBER", 22, 2, 20),
    ColumnDescriptor("BODY", "CLOB", 4000),
]

WIDE_AMOUNT = decimal.Decimal("123456789012345678.91")


def fetcher_with_rows(columns, rows) -> FakeFetcher:
    return FakeFetcher({"T": FakeTable(columns=columns, rows=rows)})


# ---------------------------------------------------------------------------
# CSV records
# ---------------------------------------------------------------------------

class TestFormatField:
    def test_null(self) -> None:
        assert format_field(None) == "null"
        assert format_field(None, quote=True) == "null"

    def test_quoted_string_doubles_quotes(self) -> None:
        assert format_field('say "hi"', quote=True) == '"say ""hi"""'

    def test_numbers_and_dates_bare(self) -> None:
        assert format_field(42) == "42"
        assert format_field(decimal.Decimal("3.50")) == "3.50"
        assert format_field(datetime.datetime(2024, 1, 2, 3, 4, 5)) == "2024-01-02 03:04:05"

    def test_bytes_as_hex(self) -> None:
        assert format_field(b"\x00\xff") == "\\x00ff"

    def test_string_values_quoted_even_in_other_columns(self) -> None:
        assert format_field("a,b") == '"a,b"'


class TestCsvRecord:
    def test_record_layout(self) -> None:
        assert serialize_row((1, 'O"Neil', None), [False, True, True]) == '1,"O""Neil",null\n'

    def test_round_trip(self) -> None:
        row = (7, 'He said "null", then left', None, "null", "multi\nline", "")
        record = serialize_row(row, [False, True, True, True, True, True])
        assert parse_csv_record(record) == ["7", 'He said "null", then left', None, "null", "multi\nline", ""]

    def test_quoted_null_is_not_null(self) -> None:
        assert parse_csv_record('"null",null\n') == ["null", None]

    def test_unterminated_quote(self) -> None:
        with pytest.raises(ValueError):
            parse_csv_record('"abc\n')

    def test_null_token_distinguished_where_csv_reader_cannot(self) -> None:
        record = serialize_row(("null", None), [True, True])
        assert next(csv.reader(io.StringIO(record))) == ["null", "null"]
        assert parse_csv_record(record) == ["null", None]


class TestStatements:
    def test_insert_sql(self) -> None:
        assert build_insert_sql("S", "T", PLAIN_COLUMNS) == "INSERT INTO S.T (ID, NAME) VALUES (%s, %s)"

    def test_copy_sql(self) -> None:
        assert build_copy_sql("S", "T", PLAIN_COLUMNS) == (
            "COPY S.T (ID, NAME) FROM STDIN WITH DELIMITER ',' NULL 'null' CSV"
        )


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

class TestSelectStrategy:
    def test_copy_without_lobs(self) -> None:
        assert isinstance(select_strategy(FakeWriter(), "S", "T", PLAIN_COLUMNS, 10), CopyTransfer)

    def test_insert_with_lobs(self) -> None:
        assert isinstance(select_strategy(FakeWriter(), "S", "T", LOB_COLUMNS, 10), InsertTransfer)


class TestCopyTransfer:
    def test_flushes_every_chunk(self) -> None:
        writer = FakeWriter()
        count = CopyTransfer(writer, "S", "T", PLAIN_COLUMNS, 3).run([(i, f"n{i}") for i in range(7)])
        assert count == 7
        assert [data.count("\n") for _, data in writer.copies] == [3, 3, 1]

    def test_string_columns_quoted(self) -> None:
        writer = FakeWriter()
        CopyTransfer(writer, "S", "T", PLAIN_COLUMNS, 10).run([(1, "x"), (2, None)])
        assert writer.copies[0][1] == '1,"x"\n2,null\n'

    def test_empty_table_sends_nothing(self) -> None:
        writer = FakeWriter()
        assert CopyTransfer(writer, "S", "T", PLAIN_COLUMNS, 10).run([]) == 0
        assert writer.copies == []

    def test_wide_numeric_keeps_every_digit(self) -> None:
        writer = FakeWriter()
        CopyTransfer(writer, "S", "T", AMOUNT_COLUMNS[:2], 10).run([(1, WIDE_AMOUNT)])
        assert writer.copies[0][1] == "1,123456789012345678.91\n"


class TestInsertTransfer:
    def test_batches_and_final_flush(self) -> None:
        writer = FakeWriter()
        rows = [(i, "text", b"\x01") for i in range(5)]
        InsertTransfer(writer, "S", "T", LOB_COLUMNS, 2).run(rows)
        assert [len(batch) for _, batch in writer.inserts] == [2, 2, 1]
        assert writer.inserts[0][0] == "INSERT INTO S.T (ID, BODY, IMAGE) VALUES (%s, %s, %s)"

    def test_blob_values_wrapped(self) -> None:
        writer = FakeWriter()
        InsertTransfer(writer, "S", "T", LOB_COLUMNS, 10).run([(1, "text", b"\x01\x02")])
        _, batch = writer.inserts[0]
        assert batch[0][1] == "text"
        assert isinstance(batch[0][2], type(psycopg2.Binary(b"")))

    def test_wide_numeric_bound_as_decimal(self) -> None:
        writer = FakeWriter()
        InsertTransfer(writer, "S", "T", AMOUNT_COLUMNS, 10).run([(1, WIDE_AMOUNT, "text")])
        value = writer.inserts[0][1][0][1]
        assert isinstance(value, decimal.Decimal)
        assert str(value) == "123456789012345678.91"


# ---------------------------------------------------------------------------
# transfer_table
# ---------------------------------------------------------------------------

class TestTransferTable:
    @pytest.mark.parametrize("columns,make_row", [
        (PLAIN_COLUMNS, lambda i: (i, f"name {i}")),
        (LOB_COLUMNS, lambda i: (i, f"body {i}", b"\x00")),
    ])
    def test_sample_cap(self, columns, make_row) -> None:
        fetcher = fetcher_with_rows(columns, [make_row(i) for i in range(100)])
        writer = FakeWriter()
        result = transfer_table(fetcher, writer, "S", "T", columns, chunk_size=2000, sample_rows=5)
        assert result.ok
        assert result.rows == 5
        assert writer.records_copied + writer.rows_inserted == 5
        assert fetcher.rows_read <= 5
        assert fetcher.arraysizes == [5]

    def test_all_rows_without_cap(self) -> None:
        fetcher = fetcher_with_rows(PLAIN_COLUMNS, [(i, "x") for i in range(25)])
        writer = FakeWriter()
        result = transfer_table(fetcher, writer, "S", "T", PLAIN_COLUMNS, chunk_size=10, sample_rows=0)
        assert result.rows == 25
        assert result.strategy == "copy"
        assert len(writer.copies) == 3

    def test_row_count_logged(self, caplog) -> None:
        caplog.set_level("INFO")
        fetcher = fetcher_with_rows(PLAIN_COLUMNS, [(1, "x")])
        transfer_table(fetcher, FakeWriter(), "S", "T", PLAIN_COLUMNS, chunk_size=10)
        assert "S.T Copied 1 rows" in caplog.text

    def test_load_failure_reported(self) -> None:
        fetcher = fetcher_with_rows(PLAIN_COLUMNS, [(1, "x")])
        result = transfer_table(fetcher, FakeWriter(fail_on=["COPY"]), "S", "T", PLAIN_COLUMNS, chunk_size=10)
        assert not result.ok
        assert "rejected" in result.error

    def test_query_failure_reported(self) -> None:
        fetcher = FakeFetcher({}, failing_tables=["T"])
        result = transfer_table(fetcher, FakeWriter(), "S", "T", PLAIN_COLUMNS, chunk_size=10)
        assert not result.ok
        assert result.rows == 0
