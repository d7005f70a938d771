#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
TableCopy Core Package Initialization
Exports the copy engine components for clean imports
"""

from .errors import (
    ErrorCode,
    TableCopyError,
    ConfigurationError,
    SchemaIntrospectionError,
    MissingTablesError,
    QueryError,
    CopyError,
    StructureCommandError,
)
from .schema import ColumnDescriptor, TableDescriptor, TableSet
from .connection import ConnectionHandle
from .dialect import Dialect, GenericDialect, SequenceUpdate, get_dialect, MAX_STATEMENT_PARAMETERS
from .inspector import SchemaInspector
from .resolver import CopyPlan, CopyPlanEntry, TableSetResolver
from .progress import ProgressListener, NullProgress, CountingProgress
from .copier import BatchCopier, Cursor, PaginationMode, DEFAULT_BATCH_SIZE
from .migration import (
    MigrationOrchestrator,
    MigrationOptions,
    MigrationState,
    DestinationTransaction,
    RunOutcome,
)
from .structure import StructureRunner

__all__ = [
    # Engine
    'MigrationOrchestrator',
    'MigrationOptions',
    'MigrationState',
    'DestinationTransaction',
    'RunOutcome',
    'BatchCopier',
    'Cursor',
    'PaginationMode',
    'DEFAULT_BATCH_SIZE',
    'SchemaInspector',
    'TableSetResolver',
    'CopyPlan',
    'CopyPlanEntry',
    'StructureRunner',

    # Connections and dialects
    'ConnectionHandle',
    'Dialect',
    'GenericDialect',
    'SequenceUpdate',
    'get_dialect',
    'MAX_STATEMENT_PARAMETERS',

    # Schema model
    'ColumnDescriptor',
    'TableDescriptor',
    'TableSet',

    # Progress
    'ProgressListener',
    'NullProgress',
    'CountingProgress',

    # Errors
    'ErrorCode',
    'TableCopyError',
    'ConfigurationError',
    'SchemaIntrospectionError',
    'MissingTablesError',
    'QueryError',
    'CopyError',
    'StructureCommandError',
]

# Version info
__version__ = '1.0.0'
__description__ = 'TableCopy - cross-database table copy engine'
