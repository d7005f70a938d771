#!/usr/bin/env python3
"""
TableCopy Table Set Resolver

Turns the source and destination TableSets into a CopyPlan:

    plan = (source - ignored) ∩ (destination - ignored)

Tables present at the source but absent at the destination are reported on
the plan; whether that aborts the run is the orchestrator's decision.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Tuple

from core.schema import TableDescriptor, TableSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CopyPlanEntry:
    """One table to copy, as seen by both connections"""
    source: TableDescriptor
    destination: TableDescriptor

    @property
    def name(self) -> str:
        return self.source.name


@dataclass(frozen=True)
class CopyPlan:
    """Ordered tables to copy plus the source tables missing at the destination"""
    entries: Tuple[CopyPlanEntry, ...] = ()
    missing_tables: Tuple[str, ...] = ()

    @property
    def table_names(self) -> List[str]:
        return [entry.name for entry in self.entries]

    @property
    def total_rows(self) -> int:
        return sum(entry.source.row_count for entry in self.entries)

    def __iter__(self):
        return iter(self.entries)

    def __len__(self):
        return len(self.entries)


class TableSetResolver:
    """Applies the ignore list and intersects source and destination tables"""

    def __init__(self, ignore_tables: Optional[Iterable[str]] = None):
        self.ignore_tables = frozenset(ignore_tables or ())

    def is_ignored(self, table: TableDescriptor) -> bool:
        return table.name in self.ignore_tables or table.quoted_name in self.ignore_tables

    def filter(self, tables: TableSet) -> TableSet:
        """Drop ignored tables, matched by plain or quoted name"""
        if not self.ignore_tables:
            return dict(tables)
        return {name: table for name, table in tables.items() if not self.is_ignored(table)}

    def resolve(self, source_tables: TableSet, destination_tables: TableSet) -> CopyPlan:
        source = self.filter(source_tables)
        destination = self.filter(destination_tables)

        missing = tuple(name for name in source if name not in destination)
        entries = tuple(
            CopyPlanEntry(source=table, destination=destination[name])
            for name, table in source.items()
            if name in destination
        )

        logger.debug(f"Copy plan: {len(entries)} tables, {len(missing)} missing at destination")
        return CopyPlan(entries=entries, missing_tables=missing)
