#!/usr/bin/env python3
"""
TableCopy Schema Inspector

Builds a TableSet for one connection: every visible table with its exact
row count, quoted columns with normalised type names and the ordered
primary key. Any failure is fatal; partial schema knowledge is not safe to
copy with.
"""

import logging

from core.errors import SchemaIntrospectionError, TableCopyError
from core.schema import ColumnDescriptor, TableDescriptor, TableSet

logger = logging.getLogger(__name__)


class SchemaInspector:
    """Reads the live schema of a connection through its dialect"""

    def __init__(self, connection):
        self.connection = connection
        self.dialect = connection.dialect

    def inspect(self) -> TableSet:
        """Return a fresh TableSet covering every table on the connection"""
        logger.info(f"Generating {self.connection.name} table stats")
        try:
            tables = {}
            for table_name in self.dialect.list_tables(self.connection):
                tables[table_name] = self.describe(table_name)
        except SchemaIntrospectionError:
            raise
        except TableCopyError as e:
            raise SchemaIntrospectionError(
                f"Cannot inspect schema of {self.connection.name}: {e.message}",
                connection=self.connection.name,
            ) from e

        logger.debug(f"{self.connection.name}: {len(tables)} tables, "
                     f"{sum(t.row_count for t in tables.values())} rows")
        return tables

    def describe(self, table_name: str) -> TableDescriptor:
        quoted_table = self.dialect.quote_identifier(table_name)

        columns = {}
        for column_name, type_name in self.dialect.list_columns(self.connection, table_name):
            columns[column_name] = ColumnDescriptor(
                name=column_name,
                quoted_name=self.dialect.quote_identifier(column_name),
                type_name=type_name,
            )

        row_count = self.connection.scalar(f"SELECT count(*) FROM {quoted_table}")

        return TableDescriptor(
            name=table_name,
            quoted_name=quoted_table,
            row_count=int(row_count or 0),
            primary_key_columns=self.dialect.list_primary_key_columns(self.connection, table_name),
            columns=columns,
        )
