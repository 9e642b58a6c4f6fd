"""Row transfer from Oracle tables into PostgreSQL.

Two loaders share one batching loop: parameterized INSERTs for tables with
LOB columns, and COPY ... FROM STDIN with CSV records for everything else.
"""
import datetime
import decimal
import logging
from abc import ABC, abstractmethod
from contextlib import closing
from dataclasses import dataclass
from itertools import islice
from typing import Any, Iterable, List, Optional, Sequence

import psycopg2

from oracle_to_postgresql_pkg.base import ColumnDescriptor, DataFetcher, DataWriter, ExecutionError, QueryError
from oracle_to_postgresql_pkg.oracle_postgres_mapping import is_lob_type, is_string_type

logger = logging.getLogger(__name__)

NULL_TOKEN = "null"
DELIMITER = ","
QUOTE = '"'

_UNQUOTED_TYPES = (int, float, decimal.Decimal, datetime.date, datetime.datetime)


# ========== CSV records ==========


def format_field(value: Any, quote: bool = False) -> str:
    """Render one value as a CSV field understood by COPY ... NULL 'null' CSV.

    NULL becomes the bare null token; quoted fields are never read as NULL,
    so a string that happens to be 'null' survives.
    """
    if value is None:
        return NULL_TOKEN
    if isinstance(value, (bytes, bytearray, memoryview)):
        return "\\x" + bytes(value).hex()
    if isinstance(value, bool):
        return "true" if value else "false"
    if not quote and isinstance(value, _UNQUOTED_TYPES):
        return str(value)
    return QUOTE + str(value).replace(QUOTE, QUOTE * 2) + QUOTE


def serialize_row(row: Sequence[Any], quoted: Optional[Sequence[bool]] = None) -> str:
    """One CSV record, newline terminated."""
    if quoted is None:
        quoted = [False] * len(row)
    return DELIMITER.join(format_field(value, flag) for value, flag in zip(row, quoted)) + "\n"


def parse_csv_record(record: str) -> List[Optional[str]]:
    """Split a record produced by :func:`serialize_row`.

    Quoted fields come back as strings with doubled quotes collapsed; the
    bare null token comes back as None; other bare fields as their text.

    csv.reader cannot stand in here: it drops the quoting, so a bare null
    and a quoted "null" both come back as the same string, while COPY reads
    only the bare one as NULL. The loaders only write records; this reader
    is kept beside :func:`format_field` so both halves of the format live in
    one module.
    """
    if record.endswith("\n"):
        record = record[:-1]
    fields: List[Optional[str]] = []
    i, n = 0, len(record)
    while True:
        if i < n and record[i] == QUOTE:
            i += 1
            chunks = []
            while True:
                end = record.find(QUOTE, i)
                if end < 0:
                    raise ValueError(f"Unterminated quoted field in record: {record!r}")
                chunks.append(record[i:end])
                if end + 1 < n and record[end + 1] == QUOTE:
                    chunks.append(QUOTE)
                    i = end + 2
                    continue
                i = end + 1
                break
            fields.append("".join(chunks))
        else:
            end = record.find(DELIMITER, i)
            if end < 0:
                end = n
            text = record[i:end]
            fields.append(None if text == NULL_TOKEN else text)
            i = end
        if i >= n:
            break
        if record[i] != DELIMITER:
            raise ValueError(f"Expected '{DELIMITER}' at position {i} in record: {record!r}")
        i += 1
        if i == n:
            fields.append("")
            break
    return fields


# ========== Statements ==========


def build_insert_sql(owner: str, table_name: str, columns: Sequence[ColumnDescriptor]) -> str:
    names = ", ".join(c.name for c in columns)
    placeholders = ", ".join(["%s"] * len(columns))
    return f"INSERT INTO {owner}.{table_name} ({names}) VALUES ({placeholders})"


def build_copy_sql(owner: str, table_name: str, columns: Sequence[ColumnDescriptor]) -> str:
    names = ", ".join(c.name for c in columns)
    return f"COPY {owner}.{table_name} ({names}) FROM STDIN WITH DELIMITER '{DELIMITER}' NULL '{NULL_TOKEN}' CSV"


# ========== Strategies ==========


class TransferStrategy(ABC):
    """Buffers rows and hands them to the target every ``chunk_size`` rows."""

    name = "abstract"

    def __init__(self, writer: DataWriter, owner: str, table_name: str,
                 columns: Sequence[ColumnDescriptor], chunk_size: int):
        self.writer = writer
        self.owner = owner
        self.table_name = table_name
        self.columns = list(columns)
        self.chunk_size = chunk_size

    @property
    @abstractmethod
    def pending(self) -> int:
        """Rows buffered but not yet sent."""

    @abstractmethod
    def add(self, row: Sequence[Any]) -> None:
        ...

    @abstractmethod
    def flush(self) -> None:
        """Send buffered rows and empty the buffer."""

    def run(self, rows: Iterable[Sequence[Any]]) -> int:
        """Load every row; return how many were sent."""
        count = 0
        for row in rows:
            self.add(row)
            count += 1
            if self.pending >= self.chunk_size:
                self.flush()
                logger.debug(f"{self.owner}.{self.table_name}: {count} rows sent")
        self.flush()
        return count


class InsertTransfer(TransferStrategy):
    """Parameterized INSERT batches; used when a table holds LOB columns."""

    name = "insert"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.sql = build_insert_sql(self.owner, self.table_name, self.columns)
        self._batch: List[tuple] = []

    @property
    def pending(self) -> int:
        return len(self._batch)

    def add(self, row: Sequence[Any]) -> None:
        self._batch.append(tuple(
            psycopg2.Binary(bytes(value)) if isinstance(value, (bytes, bytearray, memoryview)) else value
            for value in row
        ))

    def flush(self) -> None:
        if not self._batch:
            return
        batch, self._batch = self._batch, []
        self.writer.insert_batch(self.sql, batch)


class CopyTransfer(TransferStrategy):
    """CSV records streamed through COPY ... FROM STDIN."""

    name = "copy"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.sql = build_copy_sql(self.owner, self.table_name, self.columns)
        self._quoted = [is_string_type(c.data_type) for c in self.columns]
        self._records: List[str] = []

    @property
    def pending(self) -> int:
        return len(self._records)

    def add(self, row: Sequence[Any]) -> None:
        self._records.append(serialize_row(row, self._quoted))

    def flush(self) -> None:
        if not self._records:
            return
        data, self._records = "".join(self._records), []
        self.writer.copy_csv(self.sql, data)


def select_strategy(writer: DataWriter, owner: str, table_name: str,
                    columns: Sequence[ColumnDescriptor], chunk_size: int) -> TransferStrategy:
    """INSERT when any column is a LOB, COPY otherwise."""
    if any(is_lob_type(c.data_type) for c in columns):
        return InsertTransfer(writer, owner, table_name, columns, chunk_size)
    return CopyTransfer(writer, owner, table_name, columns, chunk_size)


# ========== Table transfer ==========


@dataclass
class TransferResult:
    owner: str
    table_name: str
    rows: int = 0
    strategy: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def transfer_table(
    fetcher: DataFetcher,
    writer: DataWriter,
    owner: str,
    table_name: str,
    columns: Sequence[ColumnDescriptor],
    chunk_size: int,
    sample_rows: int = 0,
) -> TransferResult:
    """Copy the rows of one table, at most ``sample_rows`` when it is positive.

    Query and load failures are logged and reported in the result; rows
    committed by earlier chunks stay in the target.
    """
    qualified = f"{owner}.{table_name}"
    result = TransferResult(owner=owner, table_name=table_name)
    if not columns:
        logger.warning(f"{qualified} has no columns, nothing to transfer")
        return result

    strategy = select_strategy(writer, owner, table_name, columns, chunk_size)
    result.strategy = strategy.name
    arraysize = min(chunk_size, sample_rows) if sample_rows > 0 else chunk_size
    logger.info(f"{qualified} Transfer rows ({strategy.name})")
    try:
        with closing(fetcher.iter_rows(owner, table_name, columns, arraysize)) as rows:
            source = islice(rows, sample_rows) if sample_rows > 0 else rows
            result.rows = strategy.run(source)
    except QueryError as e:
        result.error = str(e)
        logger.error(f"{qualified} Transfer failed: {e}")
        logger.debug(f"Failed query: {e.sql}")
        return result
    except ExecutionError as e:
        result.error = str(e)
        logger.error(f"{qualified} Transfer failed: {e}")
        logger.debug(f"Failed statement: {e.sql}")
        return result

    logger.info(f"{qualified} Copied {result.rows} rows")
    return result
