#!/usr/bin/env python3
"""
TableCopy Connection Handle

Thin wrapper over an open DB-API 2.0 connection bound to one dialect. The
engine never opens or closes connections itself; the caller owns them.

Usage:
    handle = ConnectionHandle(sqlite3.connect('app.db', isolation_level=None),
                              get_dialect('sqlite'), name='source')
    rows = handle.query('SELECT * FROM "users" LIMIT 10')
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from core.errors import QueryError

logger = logging.getLogger(__name__)

_PLACEHOLDERS = {
    'qmark': '?',
    'format': '%s',
    'pyformat': '%s',
}


class ConnectionHandle:
    """An open database session together with the dialect that speaks to it"""

    def __init__(self, connection, dialect, name: str = '', paramstyle: str = 'qmark',
                 driver_error: type = Exception, verbose: bool = False):
        if paramstyle not in _PLACEHOLDERS:
            raise ValueError(f"Unsupported parameter style: {paramstyle}")
        self.raw = connection
        self.dialect = dialect
        self.name = name or dialect.name
        self.paramstyle = paramstyle
        self.driver_error = driver_error
        self.verbose = verbose

    @property
    def placeholder(self) -> str:
        """Positional bind marker for this driver"""
        return _PLACEHOLDERS[self.paramstyle]

    def _run(self, sql: str, params: Optional[Sequence[Any]]):
        if self.verbose:
            logger.info(f"[{self.name}] {sql}")
        cursor = None
        try:
            cursor = self.raw.cursor()
            if params:
                cursor.execute(sql, tuple(params))
            else:
                cursor.execute(sql)
        except self.driver_error as e:
            if cursor is not None:
                cursor.close()
            raise QueryError(f"{self.name}: {e}", statement=sql) from e
        return cursor

    def query(self, sql: str, params: Optional[Sequence[Any]] = None) -> List[Dict[str, Any]]:
        """Run a statement and return every row as a dict in select order"""
        cursor = self._run(sql, params)
        try:
            if not cursor.description:
                return []
            columns = [description[0] for description in cursor.description]
            rows = []
            for row in cursor.fetchall():
                if isinstance(row, dict):
                    rows.append(dict(row))
                else:
                    rows.append(dict(zip(columns, row)))
            return rows
        except self.driver_error as e:
            raise QueryError(f"{self.name}: {e}", statement=sql) from e
        finally:
            cursor.close()

    def scalar(self, sql: str, params: Optional[Sequence[Any]] = None) -> Any:
        """Return the first column of the first row, or None"""
        rows = self.query(sql, params)
        if not rows:
            return None
        return next(iter(rows[0].values()))

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None) -> int:
        """Run a statement without fetching; returns the driver rowcount"""
        cursor = self._run(sql, params)
        try:
            return cursor.rowcount
        finally:
            cursor.close()

    def begin(self):
        self.dialect.begin(self)

    def commit(self):
        try:
            self.raw.commit()
        except self.driver_error as e:
            raise QueryError(f"{self.name}: commit failed: {e}", statement='COMMIT') from e

    def rollback(self):
        try:
            self.raw.rollback()
        except self.driver_error as e:
            raise QueryError(f"{self.name}: rollback failed: {e}", statement='ROLLBACK') from e

    def close(self):
        if self.raw is not None:
            self.raw.close()
            self.raw = None
            logger.debug(f"Connection {self.name} closed")
