#!/usr/bin/env python3
"""
TableCopy Batch Copier

Copies one table from the source to the destination connection:

1. Pages are read from the source in batches. A single column primary key
   gives keyset pagination (WHERE key > last seen, ORDER BY key); zero or
   composite keys give offset pagination ordered by every key column, or in
   table order when there is no key at all.
2. Every value is passed through the destination dialect's fixups.
3. Each page is split into chunks so that rows x columns stays within the
   bound parameter cap, and every chunk becomes one multi-row INSERT with
   positional parameters.
4. A progress increment is reported after every page.

Paging stops at the first empty page. Insert failures are not retried.

Known limitation: offset pagination over a table without a primary key
depends on the database returning rows in a stable order. Concurrent writes
on the source during the copy can duplicate or skip rows.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from core.errors import CopyError, QueryError
from core.progress import NullProgress, ProgressListener
from core.resolver import CopyPlanEntry
from core.schema import TableDescriptor

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000


class PaginationMode(Enum):
    """How successive pages of a table are addressed"""
    KEYSET = "keyset"
    OFFSET = "offset"


@dataclass(frozen=True)
class Cursor:
    """Pagination state threaded from one page fetch to the next"""
    offset: int = 0
    last_primary_key: Any = None

    def advance(self, rows: List[Dict[str, Any]], key_column: Optional[str] = None) -> 'Cursor':
        last_key = self.last_primary_key
        if key_column is not None and rows:
            last_key = rows[-1].get(key_column)
        return Cursor(offset=self.offset + len(rows), last_primary_key=last_key)


def pagination_mode(table: TableDescriptor) -> PaginationMode:
    if len(table.primary_key_columns) == 1:
        return PaginationMode.KEYSET
    return PaginationMode.OFFSET


def chunk_rows(rows: List[Dict[str, Any]], rows_per_chunk: int) -> Iterator[List[Dict[str, Any]]]:
    rows_per_chunk = max(1, rows_per_chunk)
    for start in range(0, len(rows), rows_per_chunk):
        yield rows[start:start + rows_per_chunk]


class BatchCopier:
    """Paginated read from the source, chunked multi-row insert into the destination"""

    def __init__(self, source, destination, batch_size: int = DEFAULT_BATCH_SIZE,
                 progress: Optional[ProgressListener] = None, verbose: bool = False):
        if batch_size < 1:
            raise ValueError(f"batch_size must be a positive integer, got {batch_size}")
        self.source = source
        self.destination = destination
        self.batch_size = batch_size
        self.progress = progress or NullProgress()
        self.verbose = verbose

        self.stats = {
            'pages_fetched': 0,
            'insert_statements': 0,
            'rows_copied': 0,
            'max_bound_parameters': 0,
        }

    # ----- reading -----

    def select_statement(self, table: TableDescriptor, cursor: Cursor) -> Tuple[str, tuple]:
        """SELECT for the page addressed by cursor, with its parameters"""
        dialect = self.source.dialect
        sql = f"SELECT * FROM {table.quoted_name}"
        params = ()

        if pagination_mode(table) is PaginationMode.KEYSET:
            key = dialect.quote_identifier(table.primary_key_columns[0])
            if cursor.last_primary_key is not None:
                sql += f" WHERE {key} > {self.source.placeholder}"
                params = (cursor.last_primary_key,)
            sql += f" ORDER BY {key}"
            sql += dialect.limit_clause(self.batch_size)
        else:
            if table.primary_key_columns:
                sql += " ORDER BY " + ", ".join(dialect.quote_columns(table.primary_key_columns))
            sql += dialect.limit_clause(self.batch_size, cursor.offset)

        return sql, params

    def fetch_page(self, table: TableDescriptor, cursor: Cursor) -> Tuple[List[Dict[str, Any]], Cursor]:
        """Read one page and return it with the cursor for the next one"""
        sql, params = self.select_statement(table, cursor)
        try:
            rows = self.source.query(sql, params)
        except QueryError as e:
            raise CopyError(f"Reading {table.name} failed: {e.message}", table=table.name, statement=sql) from e

        key_column = None
        if pagination_mode(table) is PaginationMode.KEYSET:
            key_column = table.primary_key_columns[0]
        next_cursor = cursor.advance(rows, key_column)

        if rows and key_column is not None and next_cursor.last_primary_key is None:
            raise CopyError(
                f"Primary key column {key_column} missing or NULL in rows of {table.name}",
                table=table.name, statement=sql,
            )
        if rows:
            self.stats['pages_fetched'] += 1
        return rows, next_cursor

    def iter_pages(self, table: TableDescriptor) -> Iterator[List[Dict[str, Any]]]:
        cursor = Cursor()
        while True:
            rows, cursor = self.fetch_page(table, cursor)
            if not rows:
                return
            yield rows

    # ----- writing -----

    def insert_statement(self, table: TableDescriptor, columns: List[str], row_count: int) -> str:
        dialect = self.destination.dialect
        p = self.destination.placeholder
        row_marks = "(" + ", ".join([p] * len(columns)) + ")"
        return (
            f"INSERT INTO {table.quoted_name} ({', '.join(dialect.quote_columns(columns))}) "
            f"VALUES " + ", ".join([row_marks] * row_count)
        )

    def insert_rows(self, entry: CopyPlanEntry, rows: List[Dict[str, Any]]) -> int:
        """Insert one page into the destination table, chunked by the parameter cap"""
        if not rows:
            return 0

        dialect = self.destination.dialect
        table = entry.destination
        rows = [dialect.sanitize_row(row, table) for row in rows]

        column_count = len(rows[0])
        rows_per_chunk = dialect.rows_per_chunk(column_count)
        if self.verbose:
            logger.info(f"Max chunk size: {rows_per_chunk}")

        inserted = 0
        for chunk in chunk_rows(rows, rows_per_chunk):
            columns = list(chunk[0].keys())
            sql = self.insert_statement(table, columns, len(chunk))
            params = [row[column] for row in chunk for column in columns]

            try:
                self.destination.execute(sql, params)
            except QueryError as e:
                raise CopyError(f"Insert into {table.name} failed: {e.message}",
                                table=table.name, statement=sql) from e

            self.stats['insert_statements'] += 1
            self.stats['max_bound_parameters'] = max(self.stats['max_bound_parameters'], len(params))
            inserted += len(chunk)

        return inserted

    # ----- table -----

    def copy_table(self, entry: CopyPlanEntry) -> int:
        """Copy every row of one table; returns the number of rows copied"""
        start_time = time.time()
        copied = 0

        for rows in self.iter_pages(entry.source):
            copied += self.insert_rows(entry, rows)
            self.progress.advance(len(rows))

        self.stats['rows_copied'] += copied
        logger.info(f"Copied {copied} rows into {entry.name} ({time.time() - start_time:.2f}s)")
        return copied
