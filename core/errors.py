#!/usr/bin/env python3
"""
TableCopy Error Hierarchy
Canonical exception classes for the table copy engine.
"""

from enum import Enum


class ErrorCode(Enum):
    UNKNOWN = "UNKNOWN_ERROR"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    INTROSPECTION_ERROR = "INTROSPECTION_ERROR"
    MISSING_TABLES = "MISSING_TABLES"
    QUERY_ERROR = "QUERY_ERROR"
    COPY_ERROR = "COPY_ERROR"
    STRUCTURE_ERROR = "STRUCTURE_ERROR"


class TableCopyError(Exception):
    """Base class for all TableCopy exceptions"""
    def __init__(self, message: str, code: ErrorCode = ErrorCode.UNKNOWN, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}


class ConfigurationError(TableCopyError):
    """Raised when a connection profile or setting is missing or invalid"""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


class SchemaIntrospectionError(TableCopyError):
    """Raised when tables, columns or keys of a connection cannot be read"""
    def __init__(self, message: str, connection: str = None):
        super().__init__(message, ErrorCode.INTROSPECTION_ERROR, {'connection': connection})


class MissingTablesError(TableCopyError):
    """Raised when source tables are absent at the destination and skipping them is not allowed"""
    def __init__(self, tables: list):
        message = f"Tables missing at the destination: {', '.join(tables)}"
        super().__init__(message, ErrorCode.MISSING_TABLES, {'tables': list(tables)})
        self.tables = list(tables)


class QueryError(TableCopyError):
    """Raised when the database driver rejects a statement"""
    def __init__(self, message: str, statement: str = None):
        super().__init__(message, ErrorCode.QUERY_ERROR, {'statement': statement})
        self.statement = statement


class CopyError(TableCopyError):
    """Raised when rows of a table cannot be copied"""
    def __init__(self, message: str, table: str = None, statement: str = None):
        super().__init__(message, ErrorCode.COPY_ERROR, {'table': table, 'statement': statement})
        self.table = table
        self.statement = statement


class StructureCommandError(TableCopyError):
    """Raised when an external structure command fails"""
    def __init__(self, message: str, command: str = None, returncode: int = None):
        super().__init__(message, ErrorCode.STRUCTURE_ERROR,
                         {'command': command, 'returncode': returncode})
