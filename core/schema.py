#!/usr/bin/env python3
"""
TableCopy Schema Model

Immutable descriptions of the tables visible on one connection. A TableSet is
rebuilt from the live schema on every run and never cached.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping, Optional, Tuple


@dataclass(frozen=True)
class ColumnDescriptor:
    """A single column as seen by one connection"""
    name: str
    quoted_name: str
    type_name: str

    @property
    def is_json(self) -> bool:
        return 'json' in self.type_name


@dataclass(frozen=True)
class TableDescriptor:
    """A table with its row count, ordered primary key and columns"""
    name: str
    quoted_name: str
    row_count: int
    primary_key_columns: Tuple[str, ...] = ()
    columns: Mapping[str, ColumnDescriptor] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, 'primary_key_columns', tuple(self.primary_key_columns))
        object.__setattr__(self, 'columns', MappingProxyType(dict(self.columns)))

    @property
    def column_count(self) -> int:
        return len(self.columns)

    def column(self, column_name: str) -> Optional[ColumnDescriptor]:
        """Look a column up by name; drivers may report it in another case"""
        column = self.columns.get(column_name)
        if column is None:
            lowered = column_name.lower()
            for name, candidate in self.columns.items():
                if name.lower() == lowered:
                    return candidate
        return column


TableSet = Dict[str, TableDescriptor]
