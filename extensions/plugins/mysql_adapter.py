#!/usr/bin/env python3
"""
TableCopy MySQL Adapter

MySQL / MariaDB dialect for the copy engine:
- Backtick quoted identifiers
- Foreign key checks suspended through the foreign_key_checks session variable
- DELETE FROM instead of TRUNCATE, which commits implicitly
- AUTO_INCREMENT counters maintain themselves, so no sequence work

Usage:
    handle = connect(profile)
"""

import logging
from typing import List, Tuple

import pymysql

from core.connection import ConnectionHandle
from core.dialect import Dialect, _normalize_type, _value

logger = logging.getLogger(__name__)


class MySQLDialect(Dialect):
    """MySQL / MariaDB family"""

    name = 'mysql'
    quote_char = '`'

    def begin(self, connection):
        connection.raw.begin()

    def foreign_key_checks_sql(self, enabled: bool) -> str:
        return f"SET foreign_key_checks = {1 if enabled else 0}"

    def truncate_sql(self, quoted_table: str) -> str:
        # TRUNCATE is DDL in MySQL and ends the open transaction.
        return f"DELETE FROM {quoted_table}"

    def list_tables(self, connection) -> List[str]:
        rows = connection.query("""
            SELECT table_name AS table_name
            FROM information_schema.tables
            WHERE table_schema = DATABASE()
            AND table_type = 'BASE TABLE'
            ORDER BY table_name
        """)
        return [row['table_name'] for row in rows]

    def list_columns(self, connection, table_name: str) -> List[Tuple[str, str]]:
        p = connection.placeholder
        rows = connection.query(f"""
            SELECT column_name AS column_name, data_type AS data_type
            FROM information_schema.columns
            WHERE table_schema = DATABASE()
            AND table_name = {p}
            ORDER BY ordinal_position
        """, (table_name,))
        return [(row['column_name'], _normalize_type(row['data_type'])) for row in rows]

    def list_primary_key_columns(self, connection, table_name: str) -> List[str]:
        p = connection.placeholder
        rows = connection.query(f"""
            SELECT column_name AS column_name
            FROM information_schema.key_column_usage
            WHERE table_schema = DATABASE()
            AND table_name = {p}
            AND constraint_name = 'PRIMARY'
            ORDER BY ordinal_position
        """, (table_name,))
        return [_value(row, 'column_name') for row in rows]


def connect(profile, verbose: bool = False) -> ConnectionHandle:
    """Open a PyMySQL connection for a profile"""
    params = {
        'host': profile.host or 'localhost',
        'port': profile.port or 3306,
        'database': profile.database,
        'user': profile.user,
        'password': profile.password or '',
        'charset': 'utf8mb4',
        'autocommit': False,
    }
    params.update(profile.options)
    connection = pymysql.connect(**{k: v for k, v in params.items() if v is not None})
    logger.info(f"Connected to MySQL {profile.safe_url()}")
    return ConnectionHandle(
        connection,
        MySQLDialect(),
        name=profile.name,
        paramstyle=pymysql.paramstyle,
        driver_error=pymysql.MySQLError,
        verbose=verbose,
    )
