"""Load migration settings from environment variables, properties files or the console."""
import configparser
import getpass
import os
from dataclasses import dataclass, field, replace
from typing import Callable, Iterable, Optional, Tuple

from oracle_to_postgresql_pkg.base import ConfigurationError

# Oracle / oracledb connection keys
ORACLE_CONFIG = {
    "host": os.getenv("ORACLE_HOST", "localhost"),
    "port": os.getenv("ORACLE_PORT", "1521"),
    "database": os.getenv("ORACLE_DATABASE", os.getenv("ORACLE_SERVICE", "orcl")),
    "user": os.getenv("ORACLE_USER", "scott"),
    "password": os.getenv("ORACLE_PASSWORD", ""),
    "owner": os.getenv("ORACLE_OWNER", "SCOTT"),
}

# PostgreSQL / psycopg2 connection keys
POSTGRES_CONFIG = {
    "host": os.getenv("POSTGRES_HOST", "localhost"),
    "port": os.getenv("POSTGRES_PORT", "5432"),
    "user": os.getenv("POSTGRES_USER", "postgres"),
    "password": os.getenv("POSTGRES_PASSWORD", ""),
    "dbname": os.getenv("POSTGRES_DB", os.getenv("POSTGRES_DATABASE", "postgres")),
}

DEFAULT_SAMPLE_ROWS = 200
DEFAULT_CHUNK_SIZE = 2000
DEFAULT_THREADS_NUM = 1

_PROPERTIES_SECTION = "properties"


def _clean(config):
    """Remove None values to keep connection calls happy."""
    return {k: v for k, v in config.items() if v is not None and v != ""}


def _to_bool(value: Optional[str], default: bool) -> bool:
    if value is None:
        return default
    value = value.strip().lower()
    return value.startswith("y") or value == "true"


def _to_int(value: Optional[str], default: int, key: str) -> int:
    if value is None or value.strip() == "":
        return default
    try:
        return int(value.strip())
    except ValueError as e:
        raise ConfigurationError(f"Property '{key}' must be an integer, got {value!r}") from e


def parse_table_list(value: Optional[str]) -> Tuple[str, ...]:
    """Parse a comma separated table list; '*' or empty means all tables."""
    if value is None or value.strip() in ("", "*"):
        return ()
    return tuple(sorted({name.strip() for name in value.split(",") if name.strip()}))


@dataclass(frozen=True)
class TransferSettings:
    """Immutable settings of one migration run."""

    # Source Oracle database
    src_host: str = ORACLE_CONFIG["host"]
    src_port: str = ORACLE_CONFIG["port"]
    src_database: str = ORACLE_CONFIG["database"]
    src_username: str = ORACLE_CONFIG["user"]
    src_password: str = ORACLE_CONFIG["password"]

    # Objects for transfer; empty tables means the whole schema
    owner: str = ORACLE_CONFIG["owner"]
    tables: Tuple[str, ...] = field(default_factory=tuple)

    # Target PostgreSQL database
    dest_host: str = POSTGRES_CONFIG["host"]
    dest_port: str = POSTGRES_CONFIG["port"]
    dest_database: str = POSTGRES_CONFIG["dbname"]
    dest_username: str = POSTGRES_CONFIG["user"]
    dest_password: str = POSTGRES_CONFIG["password"]

    # Options
    create_schema: bool = False
    create_table: bool = False
    transfer_rows: bool = False
    sample_rows: int = DEFAULT_SAMPLE_ROWS
    chunk_size: int = DEFAULT_CHUNK_SIZE
    threads_num: int = DEFAULT_THREADS_NUM

    # Output files; None means stdout
    ddl_filename: Optional[str] = None
    log_filename: Optional[str] = None

    def __post_init__(self):
        if self.create_schema and not self.create_table:
            object.__setattr__(self, "create_table", True)
        object.__setattr__(self, "tables", tuple(sorted(set(self.tables))))
        if self.chunk_size < 1:
            raise ConfigurationError(f"Chunk size must be positive, got {self.chunk_size}")
        if self.threads_num < 1:
            raise ConfigurationError(f"Threads number must be positive, got {self.threads_num}")
        if self.sample_rows < 0:
            raise ConfigurationError(f"Sample rows must not be negative, got {self.sample_rows}")

    @classmethod
    def from_env(cls) -> "TransferSettings":
        return cls(tables=parse_table_list(os.getenv("ORACLE_TABLES")))

    @property
    def needs_target(self) -> bool:
        """A target connection is opened only when something is applied to it."""
        return self.create_table or self.transfer_rows

    def with_tables(self, tables: Iterable[str]) -> "TransferSettings":
        return replace(self, tables=tuple(tables))

    def oracle_connect_params(self) -> dict:
        return {
            "user": self.src_username,
            "password": self.src_password,
            "dsn": f"{self.src_host}:{self.src_port}/{self.src_database}",
        }

    def postgres_connect_params(self) -> dict:
        return _clean({
            "host": self.dest_host,
            "port": self.dest_port,
            "user": self.dest_username,
            "password": self.dest_password,
            "dbname": self.dest_database,
        })

    def describe(self) -> str:
        """Render settings for the log, passwords masked."""
        lines = [
            "Source Oracle database:",
            f"  Hostname: {self.src_host}",
            f"  Port: {self.src_port}",
            f"  Database name: {self.src_database}",
            f"  Username: {self.src_username}",
            f"  Password: {'*' * len(self.src_password)}",
            "",
            f"Owner: {self.owner}",
            f"Tables: {', '.join(self.tables) if self.tables else '*'}",
        ]
        if self.needs_target:
            lines += [
                "",
                "Target PostgreSQL database:",
                f"  Hostname: {self.dest_host}",
                f"  Port: {self.dest_port}",
                f"  Database name: {self.dest_database}",
                f"  Username: {self.dest_username}",
                f"  Password: {'*' * len(self.dest_password)}",
            ]
        lines += [
            "",
            "Options:",
            f"  Create target schema: {self.create_schema}",
            f"  Create target tables: {self.create_table}",
            f"  Transfer table rows: {self.transfer_rows}",
        ]
        if self.transfer_rows:
            lines += [
                f"  Sample rows: {self.sample_rows}",
                f"  Chunk size: {self.chunk_size}",
                f"  Threads num: {self.threads_num}",
            ]
        return "\n".join(lines)


def load_properties(path: str) -> TransferSettings:
    """Read settings from a Java style .properties file."""
    parser = configparser.ConfigParser(interpolation=None)
    parser.optionxform = str  # keep camelCase keys
    try:
        with open(path, encoding="utf-8") as fh:
            parser.read_string(f"[{_PROPERTIES_SECTION}]\n" + fh.read())
    except OSError as e:
        raise ConfigurationError(f"Cannot read properties file {path}: {e}") from e
    except configparser.Error as e:
        raise ConfigurationError(f"Malformed properties file {path}: {e}") from e

    props = parser[_PROPERTIES_SECTION]
    return TransferSettings(
        src_host=props.get("source.host", "localhost"),
        src_port=props.get("source.port", "1521"),
        src_database=props.get("source.database", "orcl"),
        src_username=props.get("source.username", "scott"),
        src_password=props.get("source.password", ""),
        owner=props.get("source.owner", "SCOTT"),
        tables=parse_table_list(props.get("source.tables", "*")),
        dest_host=props.get("target.host", "localhost"),
        dest_port=props.get("target.port", "5432"),
        dest_database=props.get("target.database", "postgres"),
        dest_username=props.get("target.username", "postgres"),
        dest_password=props.get("target.password", ""),
        create_schema=_to_bool(props.get("target.createSchema"), False),
        create_table=_to_bool(props.get("target.createTable"), False),
        transfer_rows=_to_bool(props.get("target.transferRows"), False),
        sample_rows=_to_int(props.get("transfer.sampleRows"), DEFAULT_SAMPLE_ROWS, "transfer.sampleRows"),
        chunk_size=_to_int(props.get("transfer.chunkSize"), DEFAULT_CHUNK_SIZE, "transfer.chunkSize"),
        threads_num=_to_int(props.get("transfer.threadsNum"), DEFAULT_THREADS_NUM, "transfer.threadsNum"),
        ddl_filename=props.get("ddl.filename") or None,
        log_filename=props.get("log.filename") or None,
    )


def prompt_settings(
    ask: Callable[[str], str] = input,
    ask_secret: Callable[[str], str] = getpass.getpass,
) -> TransferSettings:
    """Collect settings interactively; an empty answer keeps the default."""

    def value(message: str, default: Optional[str]) -> Optional[str]:
        answer = ask(message).strip()
        return answer if answer else default

    def yes_no(message: str) -> bool:
        return _to_bool(value(message, "no"), False)

    print("\n------------------------------------------")
    print("Enter source database settings:")
    print("------------------------------------------")
    src_host = value("- Hostname for source database (default 'localhost'): ", "localhost")
    src_port = value("- Port for source database (default '1521'): ", "1521")
    src_database = value("- Name of source database (default 'orcl'): ", "orcl")
    src_username = value("- Username on source database (default 'scott'): ", "scott")
    src_password = ask_secret("- Password for source database: ")

    owner = value("\n- Owner of source database (default: 'scott'): ", "scott").upper()
    tables = parse_table_list(value("- Table list on source database by comma (default: '*'): ", "*").upper())

    create_schema = yes_no("\n- Create target schema (default: 'no'): ")
    create_table = True if create_schema else yes_no("- Create target tables (default: 'no'): ")
    transfer_rows = yes_no("- Transfer rows to target tables (default: 'no'): ")
    sample_rows, chunk_size, threads_num = DEFAULT_SAMPLE_ROWS, DEFAULT_CHUNK_SIZE, DEFAULT_THREADS_NUM
    if transfer_rows:
        sample_rows = _to_int(value(f"- Sample rows for transfer (default: {DEFAULT_SAMPLE_ROWS}): ", None),
                              DEFAULT_SAMPLE_ROWS, "sample rows")
        chunk_size = _to_int(value(f"- Chunk size for transfer (default: {DEFAULT_CHUNK_SIZE}): ", None),
                             DEFAULT_CHUNK_SIZE, "chunk size")
        threads_num = _to_int(value(f"- Threads number (default: {DEFAULT_THREADS_NUM}): ", None),
                              DEFAULT_THREADS_NUM, "threads number")

    dest = {"dest_host": "localhost", "dest_port": "5432", "dest_database": "postgres",
            "dest_username": "postgres", "dest_password": ""}
    if create_table or transfer_rows:
        print("\n------------------------------------------")
        print("Enter target database settings:")
        print("------------------------------------------")
        dest["dest_host"] = value("- Hostname for target database (default 'localhost'): ", "localhost")
        dest["dest_port"] = value("- Port for target database (default '5432'): ", "5432")
        dest["dest_database"] = value("- Name of target database (default 'postgres'): ", "postgres")
        dest["dest_username"] = value("- Username on target database (default 'postgres'): ", "postgres")
        dest["dest_password"] = ask_secret("- Password for target database: ")

    ddl_filename = value("\n- Filename for DDL script (default: 'stdout'): ", None)
    log_filename = value("- Filename for logging (default: 'stdout'): ", None)

    return TransferSettings(
        src_host=src_host,
        src_port=src_port,
        src_database=src_database,
        src_username=src_username,
        src_password=src_password,
        owner=owner,
        tables=tables,
        create_schema=create_schema,
        create_table=create_table,
        transfer_rows=transfer_rows,
        sample_rows=sample_rows,
        chunk_size=chunk_size,
        threads_num=threads_num,
        ddl_filename=ddl_filename,
        log_filename=log_filename,
        **dest,
    )
