import decimal
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import oracledb

from oracle_to_postgresql_pkg.base import (
    ColumnDescriptor,
    ConstraintDescriptor,
    ConstraintKind,
    DataFetcher,
    DatabaseConnectionError,
    IndexDescriptor,
    QueryError,
)
from oracle_to_postgresql_pkg.oracle_postgres_mapping import TypeCategory, get_oracle_type_category, is_lob_type

logger = logging.getLogger(__name__)

NORMAL_INDEX = "NORMAL"

_TABLES_SQL = "SELECT table_name FROM all_tables WHERE owner = :owner"

_COLUMNS_SQL = (
    "SELECT column_name, data_type, data_length, data_scale, data_precision, nullable, data_default "
    "FROM all_tab_columns "
    "WHERE owner = :owner AND table_name = :table_name "
    "ORDER BY column_id"
)

_CONSTRAINTS_SQL = (
    "SELECT owner, constraint_name, constraint_type, search_condition "
    "FROM all_constraints "
    "WHERE owner = :owner AND table_name = :table_name AND constraint_type IN ('P', 'U', 'C') "
    "ORDER BY constraint_name"
)

_FOREIGN_KEYS_SQL = (
    "SELECT owner, constraint_name, r_owner, r_constraint_name, delete_rule "
    "FROM all_constraints "
    "WHERE owner = :owner AND table_name = :table_name AND constraint_type = 'R' "
    "ORDER BY constraint_name"
)

_CONSTRAINT_COLUMNS_SQL = (
    "SELECT column_name FROM all_cons_columns "
    "WHERE owner = :owner AND constraint_name = :constraint_name "
    "ORDER BY position"
)

_CONSTRAINT_EXISTS_SQL = (
    "SELECT 1 FROM all_constraints WHERE owner = :owner AND constraint_name = :constraint_name"
)

_CONSTRAINT_TABLE_SQL = (
    "SELECT owner || '.' || table_name FROM all_constraints "
    "WHERE owner = :owner AND constraint_name = :constraint_name"
)

_INDEXES_SQL = (
    "SELECT owner, index_name, index_type, uniqueness "
    "FROM all_indexes "
    "WHERE table_owner = :owner AND table_name = :table_name "
    "ORDER BY index_name"
)

_INDEX_COLUMNS_SQL = (
    "SELECT column_name FROM all_ind_columns "
    "WHERE index_owner = :owner AND index_name = :index_name "
    "ORDER BY column_position"
)

_TABLE_COMMENT_SQL = (
    "SELECT comments FROM all_tab_comments WHERE owner = :owner AND table_name = :table_name"
)

_COLUMN_COMMENTS_SQL = (
    "SELECT c.column_name, c.comments "
    "FROM all_col_comments c "
    "JOIN all_tab_columns t "
    "  ON t.owner = c.owner AND t.table_name = c.table_name AND t.column_name = c.column_name "
    "WHERE c.owner = :owner AND c.table_name = :table_name AND c.comments IS NOT NULL "
    "ORDER BY t.column_id"
)


def _text(value):
    """Dictionary LONG/CLOB values may arrive as LOB locators."""
    if value is not None and hasattr(value, "read"):
        return value.read()
    return value


def _keep(value):
    return value


def _bfile_name(value):
    """BFILE content stays on the database server; the locator is kept as DIRECTORY/filename."""
    if value is None:
        return None
    directory, filename = value.getfilename()
    return f"{directory}/{filename}"


def _row_converter(data_type: str):
    if is_lob_type(data_type):
        return _text
    if get_oracle_type_category(data_type) is TypeCategory.BFILE:
        return _bfile_name
    return _keep


def _number_as_decimal(cursor, metadata):
    """Fetch NUMBER columns with a scale or without precision as Decimal instead of float."""
    if metadata.type_code is oracledb.DB_TYPE_NUMBER and not (metadata.precision and metadata.scale == 0):
        return cursor.var(decimal.Decimal, arraysize=cursor.arraysize)
    return None


def _quote(identifier: str) -> str:
    return '"' + identifier.replace('"', '""') + '"'


class OracleFetcher(DataFetcher):
    """Read-only access to the Oracle data dictionary (ALL_* views)."""

    def __init__(self, connect_params: Optional[Dict[str, Any]] = None, conn=None):
        self.connect_params = connect_params or {}
        self.conn = conn

    def connect(self):
        """Create and return an Oracle connection."""
        dsn = self.connect_params.get("dsn")
        try:
            self.conn = oracledb.connect(**self.connect_params)
        except oracledb.Error as e:
            raise DatabaseConnectionError(f"Cannot connect to source database {dsn}: {e}") from e
        logger.info(f"Connected to source database {dsn}")
        return self.conn

    def close(self):
        if self.conn:
            try:
                self.conn.close()
            except oracledb.Error as e:
                logger.error(f"Error closing source connection: {e}")
            self.conn = None
            logger.info("Disconnected from source database")

    def _query(self, intent: str, sql: str, params: Dict[str, Any]) -> List[Tuple[Any, ...]]:
        assert self.conn is not None, "Connection not established. Call connect() first."
        try:
            with self.conn.cursor() as cursor:
                cursor.execute(sql, params)
                return list(cursor.fetchall())
        except oracledb.Error as e:
            raise QueryError(intent, sql, e) from e

    # ========== Tables and columns ==========

    def get_table_list(self, owner: str) -> List[str]:
        """Fetch the sorted list of tables owned by a schema."""
        rows = self._query(f"List tables of schema {owner}", _TABLES_SQL, {"owner": owner})
        return sorted({row[0] for row in rows})

    def get_columns(self, owner: str, table_name: str) -> List[ColumnDescriptor]:
        rows = self._query(
            f"Read columns of {owner}.{table_name}",
            _COLUMNS_SQL,
            {"owner": owner, "table_name": table_name},
        )
        return [
            ColumnDescriptor(
                name=name,
                data_type=data_type,
                data_length=data_length,
                data_scale=data_scale,
                data_precision=data_precision,
                nullable=(nullable != "N"),
                data_default=_text(data_default),
            )
            for name, data_type, data_length, data_scale, data_precision, nullable, data_default in rows
        ]

    # ========== Constraints ==========

    def get_constraints(self, owner: str, table_name: str) -> List[ConstraintDescriptor]:
        """Primary key, unique and check constraints of a table."""
        rows = self._query(
            f"Read constraints of {owner}.{table_name}",
            _CONSTRAINTS_SQL,
            {"owner": owner, "table_name": table_name},
        )
        return [
            ConstraintDescriptor(
                owner=constraint_owner,
                name=name,
                kind=ConstraintKind(constraint_type),
                search_condition=_text(search_condition),
            )
            for constraint_owner, name, constraint_type, search_condition in rows
        ]

    def get_foreign_keys(self, owner: str, table_name: str) -> List[ConstraintDescriptor]:
        rows = self._query(
            f"Read foreign keys of {owner}.{table_name}",
            _FOREIGN_KEYS_SQL,
            {"owner": owner, "table_name": table_name},
        )
        return [
            ConstraintDescriptor(
                owner=constraint_owner,
                name=name,
                kind=ConstraintKind.FOREIGN_KEY,
                r_owner=r_owner,
                r_constraint_name=r_constraint_name,
                delete_rule=delete_rule,
            )
            for constraint_owner, name, r_owner, r_constraint_name, delete_rule in rows
        ]

    def constraint_columns(self, owner: str, constraint_name: str) -> List[str]:
        rows = self._query(
            f"Read columns of constraint {owner}.{constraint_name}",
            _CONSTRAINT_COLUMNS_SQL,
            {"owner": owner, "constraint_name": constraint_name},
        )
        return [row[0] for row in rows]

    def constraint_exists(self, owner: str, constraint_name: str) -> bool:
        rows = self._query(
            f"Look up constraint {owner}.{constraint_name}",
            _CONSTRAINT_EXISTS_SQL,
            {"owner": owner, "constraint_name": constraint_name},
        )
        return bool(rows)

    def references_table(self, owner: str, constraint_name: str) -> Tuple[str, List[str]]:
        """Resolve a referenced constraint to its qualified table name and columns."""
        intent = f"Resolve referenced constraint {owner}.{constraint_name}"
        rows = self._query(intent, _CONSTRAINT_TABLE_SQL, {"owner": owner, "constraint_name": constraint_name})
        if not rows:
            raise QueryError(intent, _CONSTRAINT_TABLE_SQL, LookupError("constraint not found"))
        return rows[0][0], self.constraint_columns(owner, constraint_name)

    # ========== Indexes ==========

    def get_indexes(self, owner: str, table_name: str) -> List[IndexDescriptor]:
        rows = self._query(
            f"Read indexes of {owner}.{table_name}",
            _INDEXES_SQL,
            {"owner": owner, "table_name": table_name},
        )
        indexes = []
        for index_owner, name, index_type, uniqueness in rows:
            columns = self.index_columns(index_owner, name) if index_type == NORMAL_INDEX else []
            indexes.append(
                IndexDescriptor(
                    owner=index_owner,
                    name=name,
                    index_type=index_type,
                    unique=(uniqueness == "UNIQUE"),
                    columns=tuple(columns),
                )
            )
        return indexes

    def index_columns(self, owner: str, index_name: str) -> List[str]:
        rows = self._query(
            f"Read columns of index {owner}.{index_name}",
            _INDEX_COLUMNS_SQL,
            {"owner": owner, "index_name": index_name},
        )
        return [row[0] for row in rows]

    # ========== Comments ==========

    def get_table_comment(self, owner: str, table_name: str) -> Optional[str]:
        rows = self._query(
            f"Read comment of {owner}.{table_name}",
            _TABLE_COMMENT_SQL,
            {"owner": owner, "table_name": table_name},
        )
        return rows[0][0] if rows else None

    def get_column_comments(self, owner: str, table_name: str) -> List[Tuple[str, str]]:
        rows = self._query(
            f"Read column comments of {owner}.{table_name}",
            _COLUMN_COMMENTS_SQL,
            {"owner": owner, "table_name": table_name},
        )
        return [(name, comments) for name, comments in rows if comments]

    # ========== Rows ==========

    def iter_rows(self, owner: str, table_name: str, columns: Sequence[ColumnDescriptor], arraysize: int):
        """Yield all rows of a table, columns in declared order.

        LOB locators of BLOB/CLOB/NCLOB columns are read as each row is
        yielded, so at most one fetch array of LOB values is held in memory.
        BFILE columns yield their DIRECTORY/filename. Non-integer NUMBER
        values arrive as Decimal. Driver errors are raised as QueryError.
        """
        assert self.conn is not None, "Connection not established. Call connect() first."
        select_list = ", ".join(_quote(c.name) for c in columns)
        sql = f"SELECT {select_list} FROM {_quote(owner)}.{_quote(table_name)}"
        intent = f"Select rows of {owner}.{table_name}"
        converters = [_row_converter(c.data_type) for c in columns]
        cursor = self.conn.cursor()
        try:
            cursor.arraysize = arraysize
            cursor.outputtypehandler = _number_as_decimal
            cursor.execute(sql)
            while True:
                batch = cursor.fetchmany(arraysize)
                if not batch:
                    break
                for row in batch:
                    yield tuple(convert(value) for convert, value in zip(converters, row))
        except oracledb.Error as e:
            raise QueryError(intent, sql, e) from e
        finally:
            cursor.close()
