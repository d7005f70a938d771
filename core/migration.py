"""
TableCopy Migration Orchestrator
================================

Sequences one copy run between two open connections:

    Idle -> Introspected -> Resolved -> FKDisabled -> Copying
         -> SequencesReconciled -> FKEnabled -> Committed | RolledBack

All destination writes (truncates, inserts, sequence updates and the
foreign key toggles) happen inside a single destination transaction. A dry
run executes every statement and rolls the transaction back at the end. Any
failure re-enables foreign key checks once and rolls back, so the
destination is never left half migrated.

Foreign key checks are suspended for the whole copy, so tables are copied
in plan order without regard to their dependencies.

Known behaviour: on the dry run path the foreign key re-enable statement is
issued inside the transaction and is undone by the rollback together with
everything else.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional

from core.copier import DEFAULT_BATCH_SIZE, BatchCopier
from core.dialect import SequenceUpdate
from core.errors import CopyError, MissingTablesError, QueryError
from core.inspector import SchemaInspector
from core.progress import NullProgress, ProgressListener
from core.resolver import CopyPlan, TableSetResolver

logger = logging.getLogger(__name__)


class MigrationState(Enum):
    IDLE = "idle"
    INTROSPECTED = "introspected"
    RESOLVED = "resolved"
    FK_DISABLED = "fk_disabled"
    COPYING = "copying"
    SEQUENCES_RECONCILED = "sequences_reconciled"
    FK_ENABLED = "fk_enabled"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass
class MigrationOptions:
    """Run parameters of one copy"""
    batch_size: int = DEFAULT_BATCH_SIZE
    ignore_missing_tables: bool = False
    truncate_before_insert: bool = False
    dry_run: bool = False
    verbose: bool = False

    def __post_init__(self):
        if int(self.batch_size) < 1:
            raise ValueError(f"batch_size must be a positive integer, got {self.batch_size}")
        self.batch_size = int(self.batch_size)


@dataclass
class RunOutcome:
    """What a finished run did; never persisted"""
    rows_copied: Dict[str, int] = field(default_factory=dict)
    expected_rows: int = 0
    missing_tables: List[str] = field(default_factory=list)
    sequences: List[SequenceUpdate] = field(default_factory=list)
    committed: bool = False
    dry_run: bool = False

    @property
    def total_rows(self) -> int:
        return sum(self.rows_copied.values())

    @property
    def tables(self) -> List[str]:
        return list(self.rows_copied)


class DestinationTransaction:
    """
    The single destination transaction of a run.

    Rolls back on every exit that did not go through commit() or
    rollback() explicitly, including exceptions and early returns.
    """

    def __init__(self, connection):
        self.connection = connection
        self.active = False

    def __enter__(self):
        self.connection.begin()
        self.active = True
        logger.debug(f"Transaction opened on {self.connection.name}")
        return self

    def commit(self):
        # Only a successful commit ends the transaction
        self.connection.commit()
        self.active = False
        logger.info(f"Committed {self.connection.name}")

    def rollback(self):
        self.active = False
        self.connection.rollback()
        logger.info(f"Rolled back {self.connection.name}")

    def __exit__(self, exc_type, exc_val, exc_tb):
        if not self.active:
            return False
        if exc_type is None:
            self.rollback()
            return False
        logger.error(f"Rolling back {self.connection.name} after failure: {exc_val}")
        try:
            self.rollback()
        except QueryError as e:
            logger.error(f"Rollback failed: {e.message}")
        return False


class MigrationOrchestrator:
    """Copies every table of the plan from source to destination in one transaction"""

    def __init__(self, source, destination, ignore_tables: Optional[Iterable[str]] = None,
                 options: Optional[MigrationOptions] = None,
                 progress: Optional[ProgressListener] = None):
        self.source = source
        self.destination = destination
        self.options = options or MigrationOptions()
        self.progress = progress or NullProgress()
        self.resolver = TableSetResolver(ignore_tables)
        self.state = MigrationState.IDLE
        self.plan: Optional[CopyPlan] = None

    @property
    def dialect(self):
        return self.destination.dialect

    def build_plan(self) -> CopyPlan:
        """Introspect both connections and resolve the tables to copy"""
        if self.options.verbose:
            logger.info("Generating source table stats")
        source_tables = SchemaInspector(self.source).inspect()
        if self.options.verbose:
            logger.info("Generating destination table stats")
        destination_tables = SchemaInspector(self.destination).inspect()
        self.state = MigrationState.INTROSPECTED

        self.plan = self.resolver.resolve(source_tables, destination_tables)
        self.state = MigrationState.RESOLVED
        return self.plan

    def run(self) -> RunOutcome:
        plan = self.build_plan()

        if plan.missing_tables:
            suffix = " and will be ignored" if self.options.ignore_missing_tables else ""
            logger.warning(f"The following tables are missing at the destination{suffix}: "
                           f"{', '.join(plan.missing_tables)}")
            if not self.options.ignore_missing_tables:
                raise MissingTablesError(list(plan.missing_tables))

        outcome = RunOutcome(
            expected_rows=plan.total_rows,
            missing_tables=list(plan.missing_tables),
            dry_run=self.options.dry_run,
        )

        try:
            self._copy(plan, outcome)
        except Exception:
            self.state = MigrationState.ROLLED_BACK
            raise

        return outcome

    def _copy(self, plan: CopyPlan, outcome: RunOutcome):
        copier = BatchCopier(
            self.source,
            self.destination,
            batch_size=self.options.batch_size,
            progress=self.progress,
            verbose=self.options.verbose,
        )
        self.progress.start(plan.total_rows)

        with DestinationTransaction(self.destination) as transaction:
            logger.info("Disable foreign key checks")
            self.dialect.toggle_foreign_key_checks(self.destination, False)
            self.state = MigrationState.FK_DISABLED

            try:
                self.state = MigrationState.COPYING
                for entry in plan:
                    if self.options.truncate_before_insert:
                        self._truncate(entry)
                    logger.info(f"Copy from {entry.name}")
                    outcome.rows_copied[entry.name] = copier.copy_table(entry)
                self.progress.finish()

                outcome.sequences = self.dialect.reconcile_sequences(self.destination)
                self.state = MigrationState.SEQUENCES_RECONCILED
            except Exception:
                self._enable_foreign_key_checks_after_failure()
                raise

            logger.info("Enable foreign key checks")
            self.dialect.toggle_foreign_key_checks(self.destination, True)
            self.state = MigrationState.FK_ENABLED

            if self.options.dry_run:
                logger.info(f"Dry run: discarding {outcome.total_rows} copied rows")
                transaction.rollback()
                self.state = MigrationState.ROLLED_BACK
            else:
                transaction.commit()
                outcome.committed = True
                self.state = MigrationState.COMMITTED

    def _truncate(self, entry):
        quoted_name = entry.destination.quoted_name
        logger.info(f"Truncate {entry.name}")
        try:
            self.dialect.truncate(self.destination, quoted_name)
        except QueryError as e:
            raise CopyError(f"Truncate of {entry.name} failed: {e.message}",
                            table=entry.name, statement=e.statement) from e

    def _enable_foreign_key_checks_after_failure(self):
        logger.info("Enable foreign key checks")
        try:
            self.dialect.toggle_foreign_key_checks(self.destination, True)
        except QueryError as e:
            # An aborted transaction rejects further statements; the rollback
            # that follows restores the setting anyway.
            logger.warning(f"Could not re-enable foreign key checks before rollback: {e.message}")
