from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator, List, Optional, Sequence, Tuple


class MigrationError(Exception):
    """Base class for all errors raised by the migration tool."""


class ConfigurationError(MigrationError):
    """Settings could not be read or are malformed."""


class DatabaseConnectionError(MigrationError):
    """The source or target database cannot be reached."""


class QueryError(MigrationError):
    """A catalog query against the source database failed."""

    def __init__(self, intent: str, sql: str, cause: Optional[BaseException] = None):
        self.intent = intent
        self.sql = sql
        self.cause = cause
        message = f"{intent} failed"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class ExecutionError(MigrationError):
    """A statement or bulk load failed on the target database."""

    def __init__(self, sql: str, cause: Optional[BaseException] = None):
        self.sql = sql
        self.cause = cause
        super().__init__(str(cause) if cause is not None else f"Execution failed: {sql}")


# ========== Catalog descriptors ==========


class ConstraintKind(Enum):
    """Constraint kinds, keyed by the Oracle CONSTRAINT_TYPE code."""

    PRIMARY_KEY = "P"
    UNIQUE = "U"
    CHECK = "C"
    FOREIGN_KEY = "R"


@dataclass(frozen=True)
class ColumnDescriptor:
    name: str
    data_type: str
    data_length: Optional[int] = None
    data_scale: Optional[int] = None
    data_precision: Optional[int] = None
    nullable: bool = True
    data_default: Optional[str] = None


@dataclass(frozen=True)
class ConstraintDescriptor:
    owner: str
    name: str
    kind: ConstraintKind
    search_condition: Optional[str] = None
    r_owner: Optional[str] = None
    r_constraint_name: Optional[str] = None
    delete_rule: Optional[str] = None


@dataclass(frozen=True)
class IndexDescriptor:
    owner: str
    name: str
    index_type: str
    unique: bool
    columns: Tuple[str, ...] = field(default_factory=tuple)


# ========== Abstract source / target ==========


class MigrationManager(ABC):
    """Abstract base class for all migration types."""

    @abstractmethod
    def create_connections(self) -> None:
        """Create connections to source and target."""
        pass

    @abstractmethod
    def close_connections(self) -> None:
        """Close all connections."""
        pass

    def __enter__(self):
        """Enter context manager - establish connections."""
        self.create_connections()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager - close all connections."""
        self.close_connections()
        return False

    @abstractmethod
    def run(self) -> Any:
        """Run the migration."""
        pass


class DataFetcher(ABC):
    """Abstract base for catalog sources."""

    @abstractmethod
    def connect(self) -> Any:
        """Connect to data source and return connection object."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Close connection to data source."""
        ...

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @abstractmethod
    def get_table_list(self, owner: str) -> List[str]:
        """Get sorted list of all tables of a schema."""
        ...

    @abstractmethod
    def get_columns(self, owner: str, table_name: str) -> List[ColumnDescriptor]:
        """Get table columns in their declared order."""
        ...

    @abstractmethod
    def get_constraints(self, owner: str, table_name: str) -> List[ConstraintDescriptor]:
        """Get primary key, unique and check constraints."""
        ...

    @abstractmethod
    def get_foreign_keys(self, owner: str, table_name: str) -> List[ConstraintDescriptor]:
        """Get foreign key constraints."""
        ...

    @abstractmethod
    def get_indexes(self, owner: str, table_name: str) -> List[IndexDescriptor]:
        """Get table indexes with their columns."""
        ...

    @abstractmethod
    def constraint_columns(self, owner: str, constraint_name: str) -> List[str]:
        """Get constraint columns in key order."""
        ...

    @abstractmethod
    def constraint_exists(self, owner: str, constraint_name: str) -> bool:
        ...

    @abstractmethod
    def references_table(self, owner: str, constraint_name: str) -> Tuple[str, List[str]]:
        """Get the table and columns referenced through a primary or unique key."""
        ...

    @abstractmethod
    def get_table_comment(self, owner: str, table_name: str) -> Optional[str]:
        ...

    @abstractmethod
    def get_column_comments(self, owner: str, table_name: str) -> List[Tuple[str, str]]:
        ...

    @abstractmethod
    def iter_rows(self, owner: str, table_name: str, columns: Sequence[ColumnDescriptor],
                  arraysize: int) -> Iterator[Tuple[Any, ...]]:
        """Yield table rows in column order, fetching arraysize rows per round trip."""
        ...


class DataWriter(ABC):
    """Abstract base for data targets."""

    @abstractmethod
    def connect(self) -> Any:
        """Connect to data target and return connection object."""
        ...

    @abstractmethod
    def close(self) -> None:
        """Close connection to data target."""
        ...

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @abstractmethod
    def execute_ddl(self, sql: str) -> None:
        """Execute one DDL statement and commit it."""
        ...

    @abstractmethod
    def insert_batch(self, insert_sql: str, rows: Sequence[Sequence[Any]]) -> None:
        """Insert a batch of parameter rows and commit."""
        ...

    @abstractmethod
    def copy_csv(self, copy_sql: str, data: str) -> None:
        """Stream CSV text through COPY ... FROM STDIN and commit."""
        ...
