"""CLI runner for the Oracle to PostgreSQL transfer."""
import argparse
import logging
import sys
from dataclasses import replace
from typing import List, Optional

from oracle_to_postgresql_pkg.base import ConfigurationError, MigrationError
from oracle_to_postgresql_pkg.config import load_properties, parse_table_list, prompt_settings
from oracle_to_postgresql_pkg.context import DDLSink
from oracle_to_postgresql_pkg.oracle_to_postgresql_manager import OracleToPostgreSQLMigrationManager

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(threadName)s] %(name)s: %(message)s"


def setup_logging(log_file: Optional[str] = None, level: int = logging.INFO) -> List[logging.Handler]:
    """Log to a file (or stdout) and echo warnings and errors to stderr."""
    formatter = logging.Formatter(LOG_FORMAT)
    sink = logging.FileHandler(log_file, encoding="utf-8") if log_file else logging.StreamHandler(sys.stdout)
    sink.setFormatter(formatter)
    sink.setLevel(level)
    errors = logging.StreamHandler(sys.stderr)
    errors.setFormatter(formatter)
    errors.setLevel(logging.WARNING)
    handlers = [sink, errors]
    logging.basicConfig(level=level, handlers=handlers, force=True)
    return handlers


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Transfer an Oracle schema to PostgreSQL")
    parser.add_argument("properties", nargs="?",
                        help="Properties file with the settings; prompts on the console when omitted")
    parser.add_argument("--config-preview", action="store_true", help="Print resolved settings and exit")
    parser.add_argument("--dry-run", action="store_true",
                        help="Only write the DDL script; nothing is applied to the target")
    parser.add_argument("--tables", help="Comma separated tables to transfer ('*' for all)")
    parser.add_argument("--threads", type=int, help="Number of worker threads")
    parser.add_argument("--sample-rows", type=int, help="Rows per table to transfer, 0 for all")
    parser.add_argument("--chunk-size", type=int, help="Rows per batch sent to the target")
    return parser


def resolve_settings(args):
    settings = load_properties(args.properties) if args.properties else prompt_settings()
    overrides = {}
    if args.tables is not None:
        overrides["tables"] = parse_table_list(args.tables.upper())
    if args.threads is not None:
        overrides["threads_num"] = args.threads
    if args.sample_rows is not None:
        overrides["sample_rows"] = args.sample_rows
    if args.chunk_size is not None:
        overrides["chunk_size"] = args.chunk_size
    if args.dry_run:
        overrides.update(create_schema=False, create_table=False, transfer_rows=False)
    return replace(settings, **overrides) if overrides else settings


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = resolve_settings(args)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    if args.config_preview:
        print(settings.describe())
        return 0

    handlers = setup_logging(settings.log_filename)
    logger.info("Transfer parameters:\n" + settings.describe())

    try:
        stream = open(settings.ddl_filename, "w", encoding="utf-8") if settings.ddl_filename else None
    except OSError as e:
        logger.error(f"Cannot open DDL script {settings.ddl_filename}: {e}")
        return 1

    sink = DDLSink(stream)
    completed = False
    try:
        with OracleToPostgreSQLMigrationManager(settings, ddl_sink=sink) as manager:
            result = manager.run()
        completed = result.completed
        if result.failed_tables:
            logger.warning(
                "Tables with errors: " + ", ".join(t.table_name for t in result.failed_tables)
            )
    except MigrationError as e:
        logger.error(f"Transfer aborted: {e}")
    finally:
        sink.close()
        for handler in handlers:
            handler.flush()

    return 0 if completed else 1


if __name__ == "__main__":
    sys.exit(main())
