"""Oracle to PostgreSQL migration package.

This package translates an Oracle schema into a PostgreSQL DDL script and
optionally applies it and copies table rows to the target.
"""

from oracle_to_postgresql_pkg.base import (
    ConfigurationError,
    DataFetcher,
    DataWriter,
    DatabaseConnectionError,
    ExecutionError,
    MigrationError,
    MigrationManager,
    QueryError,
)
from oracle_to_postgresql_pkg.config import (
    ORACLE_CONFIG,
    POSTGRES_CONFIG,
    TransferSettings,
    load_properties,
    prompt_settings,
)
from oracle_to_postgresql_pkg.context import DDLSink, JobQueue, TransferContext
from oracle_to_postgresql_pkg.oracle_fetcher import OracleFetcher
from oracle_to_postgresql_pkg.postgres_writer import PostgresWriter
from oracle_to_postgresql_pkg.ddl_generator import DDLGenerator, StatementResult
from oracle_to_postgresql_pkg.data_transfer import (
    CopyTransfer,
    InsertTransfer,
    TransferResult,
    TransferStrategy,
    select_strategy,
    transfer_table,
)
from oracle_to_postgresql_pkg.oracle_to_postgresql_manager import (
    OracleToPostgreSQLMigrationManager,
    RunResult,
    TableResult,
    TransferManager,
)
from oracle_to_postgresql_pkg.oracle_postgres_mapping import (
    get_oracle_type_category,
    map_oracle_to_postgres_type,
    rewrite_default,
)

__all__ = [
    # Base classes
    "MigrationManager",
    "DataFetcher",
    "DataWriter",
    # Errors
    "MigrationError",
    "ConfigurationError",
    "DatabaseConnectionError",
    "QueryError",
    "ExecutionError",
    # Config
    "ORACLE_CONFIG",
    "POSTGRES_CONFIG",
    "TransferSettings",
    "load_properties",
    "prompt_settings",
    # Shared state
    "DDLSink",
    "JobQueue",
    "TransferContext",
    # Fetcher and Writer
    "OracleFetcher",
    "PostgresWriter",
    # DDL and rows
    "DDLGenerator",
    "StatementResult",
    "TransferStrategy",
    "InsertTransfer",
    "CopyTransfer",
    "TransferResult",
    "select_strategy",
    "transfer_table",
    # Managers
    "OracleToPostgreSQLMigrationManager",
    "TransferManager",
    "TableResult",
    "RunResult",
    # Mapping functions
    "map_oracle_to_postgres_type",
    "get_oracle_type_category",
    "rewrite_default",
]

__version__ = "0.1.0"
