"""PostgreSQL DDL synthesis from the Oracle catalog.

Every statement is written to the DDL script. It is also executed on the
target when the matching toggle is on, except for neutralized statements
(commented out with ``--``), which stay in the script for review only.
"""
import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

from oracle_to_postgresql_pkg.base import (
    ColumnDescriptor,
    ConstraintDescriptor,
    ConstraintKind,
    DataFetcher,
    DataWriter,
    ExecutionError,
    IndexDescriptor,
    QueryError,
)
from oracle_to_postgresql_pkg.context import TransferContext
from oracle_to_postgresql_pkg.oracle_fetcher import NORMAL_INDEX
from oracle_to_postgresql_pkg.oracle_postgres_mapping import (
    map_oracle_to_postgres_type,
    quote_literal,
    rewrite_default,
)

logger = logging.getLogger(__name__)

# Oracle stores NOT NULL columns as check constraints; CREATE TABLE already covers them.
_NOT_NULL_CHECK_RE = re.compile(r'^\s*"?[\w$#]+"?\s+IS\s+NOT\s+NULL\s*$', re.IGNORECASE)

_DEFAULT_DELETE_RULE = "NO ACTION"


@dataclass
class StatementResult:
    """Outcome of one synthesized statement."""

    sql: str
    description: str
    executed: bool = False
    error: Optional[str] = None

    @property
    def neutralized(self) -> bool:
        return is_neutralized(self.sql)

    @property
    def ok(self) -> bool:
        return self.error is None


# ========== Statement builders ==========


def neutralize(sql: str) -> str:
    """Comment out every line so the statement is kept but never runs."""
    return "\n".join("--" + line for line in sql.split("\n"))


def is_neutralized(sql: str) -> bool:
    return sql.startswith("--")


def is_not_null_check(search_condition: Optional[str]) -> bool:
    return bool(search_condition) and bool(_NOT_NULL_CHECK_RE.match(search_condition))


def column_definition(column: ColumnDescriptor) -> str:
    parts = [
        column.name,
        map_oracle_to_postgres_type(column.data_type, column.data_length, column.data_scale, column.data_precision),
    ]
    if not column.nullable:
        parts.append("NOT NULL")
    default = rewrite_default(column.data_default)
    if default is not None:
        parts.append(f"DEFAULT {default}")
    return " ".join(parts)


def drop_table_sql(owner: str, table_name: str) -> str:
    return f"DROP TABLE {owner}.{table_name} CASCADE"


def create_table_sql(owner: str, table_name: str, columns: Sequence[ColumnDescriptor]) -> str:
    body = ",\n  ".join(column_definition(c) for c in columns)
    return f"CREATE TABLE {owner}.{table_name} (\n  {body}\n)"


def table_comment_sql(owner: str, table_name: str, comment: str) -> str:
    return f"COMMENT ON TABLE {owner}.{table_name} IS '{quote_literal(comment)}'"


def column_comment_sql(owner: str, table_name: str, column_name: str, comment: str) -> str:
    return f"COMMENT ON COLUMN {owner}.{table_name}.{column_name} IS '{quote_literal(comment)}'"


def constraint_sql(owner: str, table_name: str, constraint: ConstraintDescriptor, columns: Sequence[str]) -> str:
    """ALTER TABLE for a primary key, unique or check constraint."""
    if constraint.kind == ConstraintKind.PRIMARY_KEY:
        clause = f"PRIMARY KEY ({', '.join(columns)})"
    elif constraint.kind == ConstraintKind.UNIQUE:
        clause = f"UNIQUE ({', '.join(columns)})"
    elif constraint.kind == ConstraintKind.CHECK:
        clause = f"CHECK ({constraint.search_condition})"
    else:
        raise ValueError(f"Foreign key {constraint.name} must be built with foreign_key_sql")
    sql = f"ALTER TABLE {owner}.{table_name} ADD CONSTRAINT {constraint.name} {clause}"
    if constraint.kind == ConstraintKind.CHECK and is_not_null_check(constraint.search_condition):
        return neutralize(sql)
    return sql


def foreign_key_sql(
    owner: str,
    table_name: str,
    constraint: ConstraintDescriptor,
    columns: Sequence[str],
    referenced_table: str,
    referenced_columns: Sequence[str],
) -> str:
    sql = (
        f"ALTER TABLE {owner}.{table_name} ADD CONSTRAINT {constraint.name} "
        f"FOREIGN KEY ({', '.join(columns)}) "
        f"REFERENCES {referenced_table}({', '.join(referenced_columns)})"
    )
    delete_rule = (constraint.delete_rule or _DEFAULT_DELETE_RULE).strip()
    if delete_rule != _DEFAULT_DELETE_RULE:
        sql += f" ON DELETE {delete_rule}"
    return sql


def index_sql(owner: str, table_name: str, index: IndexDescriptor, duplicates_constraint: bool) -> str:
    unique = "UNIQUE " if index.unique else ""
    sql = f"CREATE {unique}INDEX {index.name} ON {owner}.{table_name}({', '.join(index.columns)})"
    return neutralize(sql) if duplicates_constraint else sql


def schema_sql(owner: str, username: str) -> List[str]:
    return [
        f"DROP SCHEMA {owner} CASCADE",
        f"CREATE SCHEMA {owner}\n  AUTHORIZATION {username}",
        f"COMMENT ON SCHEMA {owner}\n  IS 'schema {quote_literal(owner)}'",
    ]


# ========== Generator ==========


class DDLGenerator:
    """Writes (and optionally applies) the DDL of one worker's tables."""

    def __init__(self, fetcher: DataFetcher, writer: Optional[DataWriter], context: TransferContext):
        self.fetcher = fetcher
        self.writer = writer
        self.context = context

    @property
    def settings(self):
        return self.context.settings

    def _emit(self, sql: str, description: str, apply: bool) -> StatementResult:
        self.context.ddl.statement(sql)
        result = StatementResult(sql=sql, description=description)
        if not apply or self.writer is None:
            return result
        if result.neutralized:
            logger.info(f"{description} ... Skip")
            return result
        try:
            self.writer.execute_ddl(sql)
            result.executed = True
            logger.info(f"{description} ... Ok")
        except ExecutionError as e:
            result.error = str(e)
            logger.error(f"{description} ... Failed")
            logger.error(f"Execute SQL: {{{sql}}}")
            logger.error(f"Failed: {e}")
        return result

    # ========== Schema ==========

    def emit_schema_ddl(self) -> List[StatementResult]:
        owner = self.settings.owner
        apply = self.settings.create_schema
        logger.info(f"-- Schema: {owner}")
        self.context.ddl.section(f"Schema {owner}")
        drop, create, comment = schema_sql(owner, self.settings.dest_username)
        results = [
            self._emit(drop, f"Drop schema {owner}", apply),
            self._emit(create, f"Create schema {owner}", apply),
            self._emit(comment, f"Comment on schema {owner}", apply),
        ]
        self.context.ddl.comment(f"GRANT ALL ON SCHEMA {owner} TO postgres;")
        self.context.ddl.comment(f"GRANT ALL ON SCHEMA {owner} TO public;")
        return results

    # ========== Tables ==========

    def emit_table_ddl(
        self, owner: str, table_name: str, columns: Optional[Sequence[ColumnDescriptor]] = None
    ) -> List[StatementResult]:
        """Drop, create, comments, constraints and indexes of one table, in that order.

        Raises:
            QueryError: when the catalog cannot be read; statements written so
                far stay in the script.
        """
        apply = self.settings.create_table
        qualified = f"{owner}.{table_name}"
        logger.info(f"-- Table {qualified}")
        self.context.ddl.section(f"Table {qualified}")

        if columns is None:
            columns = self.fetcher.get_columns(owner, table_name)

        results = [
            self._emit(drop_table_sql(owner, table_name), f"Drop table {qualified}", apply),
            self._emit(create_table_sql(owner, table_name, columns), f"Create table {qualified}", apply),
        ]
        results += self._emit_comments(owner, table_name, apply)
        results += self._emit_constraints(owner, table_name, apply)
        results += self._emit_indexes(owner, table_name, apply)
        return results

    def _emit_comments(self, owner: str, table_name: str, apply: bool) -> List[StatementResult]:
        qualified = f"{owner}.{table_name}"
        logger.info(f"-- Comments for table {qualified}")
        self.context.ddl.subsection(f"Comments for table {qualified}")
        results = []
        comment = self.fetcher.get_table_comment(owner, table_name)
        if comment:
            results.append(self._emit(
                table_comment_sql(owner, table_name, comment),
                f"Create comment for table {qualified}",
                apply,
            ))
        for column_name, column_comment in self.fetcher.get_column_comments(owner, table_name):
            results.append(self._emit(
                column_comment_sql(owner, table_name, column_name, column_comment),
                f"Create comment for column {qualified}.{column_name}",
                apply,
            ))
        return results

    def _emit_constraints(self, owner: str, table_name: str, apply: bool) -> List[StatementResult]:
        qualified = f"{owner}.{table_name}"
        logger.info(f"-- Constraints for table {qualified}")
        self.context.ddl.subsection(f"Constraints for table {qualified}")
        results = []
        for constraint in self.fetcher.get_constraints(owner, table_name):
            columns: List[str] = []
            if constraint.kind in (ConstraintKind.PRIMARY_KEY, ConstraintKind.UNIQUE):
                columns = self.fetcher.constraint_columns(constraint.owner, constraint.name)
            results.append(self._emit(
                constraint_sql(owner, table_name, constraint, columns),
                f"Create constraint {constraint.owner}.{constraint.name}",
                apply,
            ))
        return results

    def _emit_indexes(self, owner: str, table_name: str, apply: bool) -> List[StatementResult]:
        qualified = f"{owner}.{table_name}"
        logger.info(f"-- Indexes for table {qualified}")
        self.context.ddl.subsection(f"Indexes for table {qualified}")
        results = []
        for index in self.fetcher.get_indexes(owner, table_name):
            if index.index_type != NORMAL_INDEX:
                logger.warning(f"Index {index.owner}.{index.name} of type '{index.index_type}' skipped")
                continue
            duplicate = self.fetcher.constraint_exists(index.owner, index.name)
            results.append(self._emit(
                index_sql(owner, table_name, index, duplicate),
                f"Create index {index.owner}.{index.name}",
                apply,
            ))
        return results

    # ========== Foreign keys ==========

    def emit_foreign_keys_ddl(self, owner: str, tables: Iterable[str]) -> List[StatementResult]:
        """Foreign keys of all tables; run only after every table exists."""
        logger.info(f"Constraints Foreign Key of Schema {owner}")
        self.context.ddl.section(f"Constraints Foreign Key of Schema {owner}")
        results = []
        for table_name in tables:
            try:
                results += self._emit_table_foreign_keys(owner, table_name)
            except QueryError as e:
                logger.error(f"Foreign keys for table {owner}.{table_name}: {e}")
                logger.debug(f"Failed query: {e.sql}")
        return results

    def _emit_table_foreign_keys(self, owner: str, table_name: str) -> List[StatementResult]:
        qualified = f"{owner}.{table_name}"
        apply = self.settings.create_table
        logger.info(f"-- Constraints FK for table {qualified}")
        self.context.ddl.subsection(f"Foreign keys for table {qualified}")
        results = []
        for constraint in self.fetcher.get_foreign_keys(owner, table_name):
            columns = self.fetcher.constraint_columns(constraint.owner, constraint.name)
            referenced_table, referenced_columns = self.fetcher.references_table(
                constraint.r_owner, constraint.r_constraint_name
            )
            results.append(self._emit(
                foreign_key_sql(owner, table_name, constraint, columns, referenced_table, referenced_columns),
                f"Create constraint {constraint.owner}.{constraint.name}",
                apply,
            ))
        return results
