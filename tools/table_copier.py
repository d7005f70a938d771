#!/usr/bin/env python3
"""
TableCopy Command Line
======================

Copy every table from one configured database connection to another in a
single destination transaction, or run the configured structure commands
that provision the destination first.

Supported databases: SQLite, PostgreSQL, MySQL/MariaDB (source and target).

Usage:
    # Provision the destination schema with the configured commands
    tablecopy create-structure --name destination

    # Copy rows, skipping tables the destination does not have
    tablecopy copy-tables --from source --to destination --batch 1000 --ignore-missing-tables

    # Execute every statement, then roll back
    tablecopy copy-tables --dry-run --verbose
"""

import argparse
import logging
import re
import sys
from typing import List, Optional

from tqdm import tqdm

from config.settings import get_config
from core.errors import TableCopyError
from core.migration import MigrationOptions, MigrationOrchestrator
from core.progress import ProgressListener
from core.structure import StructureRunner
from extensions.plugins import connect

logger = logging.getLogger(__name__)


def sanitize_error(e: Exception) -> str:
    """Mask credentials in error messages"""
    return re.sub(r'://([^:/@]+):([^@]+)@', r'://\1:***@', str(e))


class TqdmProgress(ProgressListener):
    """Progress bar over all rows of the run"""

    def __init__(self):
        self.bar = None

    def start(self, total: int):
        self.bar = tqdm(total=total, unit='rows', dynamic_ncols=True)

    def advance(self, count: int):
        if self.bar is not None:
            self.bar.update(count)

    def finish(self):
        if self.bar is not None:
            self.bar.close()
            self.bar = None


def configure_logging(verbose: bool = False):
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format='%(asctime)s - %(levelname)s - %(message)s')


def copy_tables(args) -> int:
    settings = get_config(args.config)
    source_profile = settings.get_profile(args.source)
    destination_profile = settings.get_profile(args.destination)

    options = MigrationOptions(
        batch_size=args.batch,
        ignore_missing_tables=args.ignore_missing_tables,
        truncate_before_insert=args.truncate_before_insert,
        dry_run=args.dry_run,
        verbose=args.verbose,
    )
    progress = None if args.quiet else TqdmProgress()

    source = connect(source_profile, verbose=args.verbose)
    try:
        destination = connect(destination_profile, verbose=args.verbose)
        try:
            orchestrator = MigrationOrchestrator(
                source,
                destination,
                ignore_tables=settings.ignore_tables,
                options=options,
                progress=progress,
            )
            outcome = orchestrator.run()
        finally:
            if progress is not None:
                progress.finish()
            destination.close()
    finally:
        source.close()

    for table, rows in outcome.rows_copied.items():
        logger.debug(f"  {table}: {rows} rows")
    if outcome.dry_run:
        logger.info(f"Dry run finished: {outcome.total_rows} rows copied and rolled back "
                    f"across {len(outcome.rows_copied)} tables")
    else:
        logger.info(f"Copied {outcome.total_rows} rows across {len(outcome.rows_copied)} tables")
    return 0


def create_structure(args) -> int:
    settings = get_config(args.config)
    settings.get_profile(args.name)
    StructureRunner(settings.structure_commands).run(args.name)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='tablecopy', description="TableCopy - copy tables between databases")
    parser.add_argument("--config", help="Settings file (default: tablecopy.yaml or $TABLECOPY_CONFIG)")
    subparsers = parser.add_subparsers(dest='command', required=True)

    copy_parser = subparsers.add_parser('copy-tables', help="Copy rows from the source to the destination database")
    copy_parser.add_argument("--from", dest='source', default='source', help="Source connection name")
    copy_parser.add_argument("--to", dest='destination', default='destination', help="Destination connection name")
    copy_parser.add_argument("--batch", type=int, default=1000, help="Rows per SELECT page")
    copy_parser.add_argument("--ignore-missing-tables", action="store_true",
                             help="Skip tables missing at the destination instead of aborting")
    copy_parser.add_argument("--truncate-before-insert", action="store_true",
                             help="Empty each destination table before copying into it")
    copy_parser.add_argument("--dry-run", action="store_true",
                             help="Execute every statement, then roll the transaction back")
    copy_parser.add_argument("--verbose", action="store_true", help="Log every executed query")
    copy_parser.add_argument("--quiet", action="store_true", help="Disable the progress bar")
    copy_parser.add_argument("--config", default=argparse.SUPPRESS, help="Settings file")
    copy_parser.set_defaults(handler=copy_tables)

    structure_parser = subparsers.add_parser('create-structure',
                                             help="Run the configured structure commands for a destination")
    structure_parser.add_argument("--name", default='destination', help="Destination connection name")
    structure_parser.add_argument("--verbose", action="store_true", help="Debug logging")
    structure_parser.add_argument("--config", default=argparse.SUPPRESS, help="Settings file")
    structure_parser.set_defaults(handler=create_structure)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if getattr(args, 'batch', 1) < 1:
        parser.error("--batch must be a positive integer")

    configure_logging(verbose=args.verbose)

    try:
        return args.handler(args)
    except TableCopyError as e:
        logger.error(f"ERROR: {sanitize_error(e)}")
        return 1
    except Exception as e:
        logger.error(f"Fatal error: {sanitize_error(e)}")
        logger.debug("Traceback", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
