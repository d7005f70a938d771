#!/usr/bin/env python3
"""
TableCopy PostgreSQL Adapter

PostgreSQL dialect for the copy engine:
- Double quoted identifiers
- Foreign key checks suspended through session_replication_role
- TRUNCATE ... CASCADE
- Column owned sequences moved to the max value of their column
- NUL characters stripped from text (the wire protocol cannot carry them)
- json and jsonb read back as text so rows bind unchanged on any destination

Usage:
    handle = connect(profile)
    handle.dialect.reconcile_sequences(handle)
"""

import logging
from typing import List, Tuple

import psycopg2
import psycopg2.extras

from core.connection import ConnectionHandle
from core.dialect import Dialect, SequenceUpdate, _normalize_type, _value

logger = logging.getLogger(__name__)

SEQUENCE_QUERY = """
    SELECT
        t.schemaname AS schema_name,
        t.tablename AS table_name,
        c.column_name AS column_name,
        pg_get_serial_sequence(quote_ident(t.schemaname) || '.' || quote_ident(t.tablename), c.column_name) AS sequence_name
    FROM pg_tables t
    JOIN information_schema.columns c
        ON c.table_schema = t.schemaname
        AND c.table_name = t.tablename
    WHERE t.schemaname <> 'pg_catalog'
    AND t.schemaname <> 'information_schema'
    AND pg_get_serial_sequence(quote_ident(t.schemaname) || '.' || quote_ident(t.tablename), c.column_name) IS NOT NULL
    ORDER BY t.schemaname, t.tablename, c.column_name
"""


class PostgreSQLDialect(Dialect):
    """PostgreSQL family"""

    name = 'postgresql'
    quote_char = '"'
    strips_nul_characters = True

    def begin(self, connection):
        # End the read-only transaction psycopg2 may have opened during
        # introspection, then let the driver open one on the next statement.
        connection.raw.rollback()
        connection.raw.autocommit = False

    def foreign_key_checks_sql(self, enabled: bool) -> str:
        role = 'origin' if enabled else 'replica'
        return f"SET session_replication_role = '{role}'"

    def truncate_sql(self, quoted_table: str) -> str:
        # Plain TRUNCATE refuses tables referenced by a foreign key even
        # with replication role relaxed.
        return f"TRUNCATE TABLE {quoted_table} CASCADE"

    def reconcile_sequences(self, connection) -> List[SequenceUpdate]:
        """
        Set every column owned sequence to the max value of its column.

        The sequence is marked as called so the next nextval() returns
        max + 1. Empty columns leave their sequence untouched.
        """
        updates = []
        for row in connection.query(SEQUENCE_QUERY):
            schema = row['schema_name']
            table = row['table_name']
            column = row['column_name']
            sequence = row['sequence_name']

            sql = (
                f"SELECT setval({connection.placeholder}, "
                f"(SELECT max({self.quote_identifier(column)}) "
                f"FROM {self.quote_identifier(schema)}.{self.quote_identifier(table)}), true) AS setval"
            )
            value = connection.scalar(sql, (sequence,))
            value = int(value) if value is not None else None

            if value is None:
                logger.info(f"Sequence {sequence} for {schema}.{table} column {column} unchanged (no rows)")
            else:
                logger.info(f"Sequence {sequence} for {schema}.{table} column {column} update to {value}")
            updates.append(SequenceUpdate(sequence, schema, table, column, value))

        return updates

    def list_tables(self, connection) -> List[str]:
        rows = connection.query("""
            SELECT table_name AS table_name
            FROM information_schema.tables
            WHERE table_schema = current_schema()
            AND table_type = 'BASE TABLE'
            ORDER BY table_name
        """)
        return [row['table_name'] for row in rows]

    def list_columns(self, connection, table_name: str) -> List[Tuple[str, str]]:
        p = connection.placeholder
        rows = connection.query(f"""
            SELECT
                column_name AS column_name,
                CASE WHEN data_type IN ('USER-DEFINED', 'ARRAY') THEN udt_name ELSE data_type END AS data_type
            FROM information_schema.columns
            WHERE table_schema = current_schema()
            AND table_name = {p}
            ORDER BY ordinal_position
        """, (table_name,))
        return [(row['column_name'], _normalize_type(row['data_type'])) for row in rows]

    def list_primary_key_columns(self, connection, table_name: str) -> List[str]:
        p = connection.placeholder
        rows = connection.query(f"""
            SELECT kcu.column_name AS column_name
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage kcu
                ON tc.constraint_name = kcu.constraint_name
                AND tc.table_schema = kcu.table_schema
                AND tc.table_name = kcu.table_name
            WHERE tc.constraint_type = 'PRIMARY KEY'
            AND tc.table_schema = current_schema()
            AND tc.table_name = {p}
            ORDER BY kcu.ordinal_position
        """, (table_name,))
        return [_value(row, 'column_name') for row in rows]


def _keep_json_text(value):
    return value


def connect(profile, verbose: bool = False) -> ConnectionHandle:
    """Open a psycopg2 connection for a profile"""
    params = {
        'host': profile.host or 'localhost',
        'port': profile.port or 5432,
        'dbname': profile.database,
        'user': profile.user,
        'password': profile.password,
    }
    params.update(profile.options)
    connection = psycopg2.connect(**{k: v for k, v in params.items() if v is not None})
    # Reads outside the copy transaction must not hold a snapshot open
    connection.autocommit = True
    psycopg2.extras.register_default_json(connection, loads=_keep_json_text)
    psycopg2.extras.register_default_jsonb(connection, loads=_keep_json_text)
    logger.info(f"Connected to PostgreSQL {profile.safe_url()}")
    return ConnectionHandle(
        connection,
        PostgreSQLDialect(),
        name=profile.name,
        paramstyle=psycopg2.paramstyle,
        driver_error=psycopg2.Error,
        verbose=verbose,
    )
