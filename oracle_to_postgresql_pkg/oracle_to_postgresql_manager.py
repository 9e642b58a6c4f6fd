import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from oracle_to_postgresql_pkg.base import DataFetcher, DataWriter, MigrationManager, QueryError
from oracle_to_postgresql_pkg.config import TransferSettings
from oracle_to_postgresql_pkg.context import DDLSink, TransferContext
from oracle_to_postgresql_pkg.data_transfer import TransferResult, transfer_table
from oracle_to_postgresql_pkg.ddl_generator import DDLGenerator, StatementResult
from oracle_to_postgresql_pkg.oracle_fetcher import OracleFetcher
from oracle_to_postgresql_pkg.postgres_writer import PostgresWriter

logger = logging.getLogger(__name__)


@dataclass
class TableResult:
    """DDL statements and row transfer of one table."""

    owner: str
    table_name: str
    statements: List[StatementResult] = field(default_factory=list)
    transfer: Optional[TransferResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        if self.error is not None:
            return False
        if self.transfer is not None and not self.transfer.ok:
            return False
        return all(s.ok for s in self.statements)


@dataclass
class RunResult:
    owner: str
    schema_statements: List[StatementResult] = field(default_factory=list)
    tables: List[TableResult] = field(default_factory=list)
    foreign_keys: List[StatementResult] = field(default_factory=list)
    worker_errors: List[str] = field(default_factory=list)
    completed: bool = False

    @property
    def failed_tables(self) -> List[TableResult]:
        return [t for t in self.tables if not t.ok]

    @property
    def rows_copied(self) -> int:
        return sum(t.transfer.rows for t in self.tables if t.transfer is not None)


class TransferManager(MigrationManager):
    """One worker: its own source and target connections, draining the shared queue."""

    def __init__(self, context: TransferContext, fetcher: Optional[DataFetcher] = None,
                 writer: Optional[DataWriter] = None):
        self.context = context
        self.fetcher: DataFetcher = fetcher or OracleFetcher(context.settings.oracle_connect_params())
        self.writer: Optional[DataWriter] = writer
        if self.writer is None and context.settings.needs_target:
            self.writer = PostgresWriter(context.settings.postgres_connect_params())

    @property
    def settings(self) -> TransferSettings:
        return self.context.settings

    def create_connections(self):
        self.fetcher.connect()
        if self.writer is not None:
            self.writer.connect()

    def close_connections(self):
        self.fetcher.close()
        if self.writer is not None:
            self.writer.close()

    def process_table(self, table_name: str) -> TableResult:
        owner = self.settings.owner
        result = TableResult(owner=owner, table_name=table_name)
        generator = DDLGenerator(self.fetcher, self.writer, self.context)
        try:
            columns = self.fetcher.get_columns(owner, table_name)
            result.statements = generator.emit_table_ddl(owner, table_name, columns)
        except QueryError as e:
            result.error = str(e)
            logger.error(f"Table {owner}.{table_name}: {e}")
            logger.debug(f"Failed query: {e.sql}")
            return result

        if self.settings.transfer_rows and self.writer is not None:
            result.transfer = transfer_table(
                self.fetcher,
                self.writer,
                owner,
                table_name,
                columns,
                chunk_size=self.settings.chunk_size,
                sample_rows=self.settings.sample_rows,
            )
        return result

    def process_jobs(self) -> List[TableResult]:
        """Pop tables until the queue is drained."""
        results = []
        while True:
            table_name = self.context.jobs.pop()
            if table_name is None:
                break
            results.append(self.process_table(table_name))
        return results

    def run(self) -> List[TableResult]:
        return self.process_jobs()


class OracleToPostgreSQLMigrationManager(MigrationManager):
    """Schema DDL, per-table DDL and rows over a worker pool, then foreign keys."""

    def __init__(
        self,
        settings: TransferSettings,
        ddl_sink: Optional[DDLSink] = None,
        worker_factory: Optional[Callable[[TransferContext], TransferManager]] = None,
    ):
        self.context = TransferContext(settings=settings, ddl=ddl_sink or DDLSink())
        self.worker_factory = worker_factory or TransferManager
        self.main_worker: Optional[TransferManager] = None

    @property
    def settings(self) -> TransferSettings:
        return self.context.settings

    def create_connections(self):
        """Connect the worker that runs on the calling thread."""
        self.main_worker = self.worker_factory(self.context)
        self.main_worker.create_connections()

    def close_connections(self):
        if self.main_worker is not None:
            self.main_worker.close_connections()
            self.main_worker = None

    def _run_worker(self) -> List[TableResult]:
        with self.worker_factory(self.context) as worker:
            return worker.run()

    def run(self) -> RunResult:
        if self.main_worker is None:
            raise RuntimeError("Connections not established. Use the manager as a context manager.")
        owner = self.settings.owner
        result = RunResult(owner=owner)
        fetcher = self.main_worker.fetcher

        if not self.settings.tables:
            self.context.settings = self.settings.with_tables(fetcher.get_table_list(owner))
        tables = list(self.settings.tables)
        logger.info(f"Transfer schema {owner}: {len(tables)} tables")

        generator = DDLGenerator(fetcher, self.main_worker.writer, self.context)
        result.schema_statements = generator.emit_schema_ddl()

        self.context.ddl.section(f"Tables of Schema {owner}")
        self.context.initialize_jobs()

        extra_workers = min(self.settings.threads_num - 1, max(len(tables) - 1, 0))
        if extra_workers > 0:
            logger.info(f"Starting {extra_workers} additional workers")
            with ThreadPoolExecutor(max_workers=extra_workers, thread_name_prefix="transfer") as ex:
                futures = [ex.submit(self._run_worker) for _ in range(extra_workers)]
                result.tables += self.main_worker.process_jobs()
                for fut in as_completed(futures):
                    try:
                        result.tables += fut.result()
                    except Exception as e:
                        result.worker_errors.append(str(e))
                        logger.error(f"Worker failed: {e}")
            # tables left behind by a failed worker
            result.tables += self.main_worker.process_jobs()
        else:
            result.tables += self.main_worker.process_jobs()

        result.tables.sort(key=lambda t: t.table_name)
        result.foreign_keys = generator.emit_foreign_keys_ddl(owner, tables)

        self.context.ddl.section("End of Script")
        result.completed = True

        failed = result.failed_tables
        logger.info(
            f"Transfer of schema {owner} finished: {len(result.tables)} tables, "
            f"{result.rows_copied} rows copied, {len(failed)} tables with errors"
        )
        return result
