#!/usr/bin/env python3
"""
Batch Copier Tests

Pagination modes, page sizes, statement chunking and value fixups, checked
against real SQLite databases.
"""

import pytest

from conftest import build_sqlite, fetch_all, open_sqlite
from core.copier import BatchCopier, Cursor, PaginationMode, chunk_rows, pagination_mode
from core.dialect import Dialect
from core.errors import CopyError
from core.inspector import SchemaInspector
from core.progress import CountingProgress
from core.resolver import TableSetResolver
from core.schema import ColumnDescriptor, TableDescriptor
from extensions.plugins.postgresql_adapter import PostgreSQLDialect
from extensions.plugins.sqlite_adapter import SQLiteDialect


def plan_for(source, destination):
    return TableSetResolver().resolve(
        SchemaInspector(source).inspect(),
        SchemaInspector(destination).inspect(),
    )


@pytest.fixture
def pair(tmp_path):
    """Open (source, destination) handles over a given schema"""
    handles = []

    def make(statements, rows=None, destination_statements=None):
        source_path = build_sqlite(tmp_path / 'copy_source.db', statements, rows)
        destination_path = build_sqlite(tmp_path / 'copy_destination.db', destination_statements or statements)
        source = open_sqlite(source_path, 'source')
        destination = open_sqlite(destination_path, 'destination')
        handles.extend([source, destination])
        return source, destination, destination_path

    yield make
    for handle in handles:
        handle.close()


class TestCursor:

    def test_initial_cursor(self):
        cursor = Cursor()
        assert cursor.offset == 0
        assert cursor.last_primary_key is None

    def test_advance_tracks_offset_and_last_key(self):
        cursor = Cursor().advance([{'id': 4}, {'id': 9}], 'id')
        assert cursor.offset == 2
        assert cursor.last_primary_key == 9

    def test_advance_without_key_column_keeps_key(self):
        cursor = Cursor(offset=5).advance([{'a': 1}], None)
        assert cursor.offset == 6
        assert cursor.last_primary_key is None

    def test_advance_on_empty_page(self):
        cursor = Cursor(offset=3, last_primary_key=7).advance([], 'id')
        assert cursor == Cursor(offset=3, last_primary_key=7)


class TestChunking:

    def test_rows_per_chunk_respects_parameter_cap(self):
        dialect = Dialect()
        assert dialect.rows_per_chunk(1) == 65000
        assert dialect.rows_per_chunk(3) == 21666
        assert dialect.rows_per_chunk(3) * 3 <= 65000

    def test_rows_per_chunk_never_below_one(self):
        dialect = Dialect()
        assert dialect.rows_per_chunk(70000) == 1
        assert dialect.rows_per_chunk(0) == 1

    def test_chunk_rows(self):
        rows = [{'n': n} for n in range(7)]
        chunks = list(chunk_rows(rows, 3))
        assert [len(chunk) for chunk in chunks] == [3, 3, 1]
        assert [row for chunk in chunks for row in chunk] == rows


class TestSelectStatement:

    def test_keyset_pagination_for_single_column_key(self, pair):
        source, destination, _ = pair(['CREATE TABLE items (id INTEGER PRIMARY KEY, name TEXT)'])
        entry = plan_for(source, destination).entries[0]
        copier = BatchCopier(source, destination, batch_size=50)

        assert pagination_mode(entry.source) is PaginationMode.KEYSET

        sql, params = copier.select_statement(entry.source, Cursor())
        assert sql == 'SELECT * FROM "items" ORDER BY "id" LIMIT 50'
        assert params == ()

        sql, params = copier.select_statement(entry.source, Cursor(offset=50, last_primary_key=50))
        assert sql == 'SELECT * FROM "items" WHERE "id" > ? ORDER BY "id" LIMIT 50'
        assert params == (50,)

    def test_key_value_zero_still_filters(self, pair):
        source, destination, _ = pair(['CREATE TABLE items (id INTEGER PRIMARY KEY, name TEXT)'])
        entry = plan_for(source, destination).entries[0]
        copier = BatchCopier(source, destination, batch_size=2)

        sql, params = copier.select_statement(entry.source, Cursor(offset=1, last_primary_key=0))
        assert 'WHERE "id" > ?' in sql
        assert params == (0,)

    def test_offset_pagination_for_composite_key(self, pair):
        source, destination, _ = pair(['CREATE TABLE pairs (a INTEGER, b INTEGER, v TEXT, PRIMARY KEY (a, b))'])
        entry = plan_for(source, destination).entries[0]
        copier = BatchCopier(source, destination, batch_size=10)

        assert pagination_mode(entry.source) is PaginationMode.OFFSET
        sql, params = copier.select_statement(entry.source, Cursor(offset=20))
        assert sql == 'SELECT * FROM "pairs" ORDER BY "a", "b" LIMIT 10 OFFSET 20'
        assert params == ()

    def test_offset_pagination_without_key(self, pair):
        source, destination, _ = pair(['CREATE TABLE logs (message TEXT)'])
        entry = plan_for(source, destination).entries[0]
        copier = BatchCopier(source, destination, batch_size=10)

        assert pagination_mode(entry.source) is PaginationMode.OFFSET
        sql, _ = copier.select_statement(entry.source, Cursor())
        assert sql == 'SELECT * FROM "logs" LIMIT 10 OFFSET 0'


class TestCopyTable:

    def test_pages_of_batch_size(self, pair):
        rows = [(n, f'item {n}') for n in range(1, 2501)]
        source, destination, destination_path = pair(
            ['CREATE TABLE items (id INTEGER PRIMARY KEY, name TEXT)'], {'items': rows})
        entry = plan_for(source, destination).entries[0]
        progress = CountingProgress()
        copier = BatchCopier(source, destination, batch_size=1000, progress=progress)

        copied = copier.copy_table(entry)

        assert copied == 2500
        assert progress.increments == [1000, 1000, 500]
        assert copier.stats['pages_fetched'] == 3
        assert fetch_all(destination_path, 'SELECT count(*) FROM items') == [(2500,)]

    def test_exact_multiple_of_batch_size(self, pair):
        rows = [(n, 'x') for n in range(1, 7)]
        source, destination, _ = pair(['CREATE TABLE items (id INTEGER PRIMARY KEY, name TEXT)'], {'items': rows})
        entry = plan_for(source, destination).entries[0]
        progress = CountingProgress()
        copier = BatchCopier(source, destination, batch_size=3, progress=progress)

        assert copier.copy_table(entry) == 6
        assert progress.increments == [3, 3]

    def test_key_starting_at_zero_copies_every_row(self, pair):
        rows = [(0, 'zero'), (1, 'one'), (2, 'two')]
        source, destination, destination_path = pair(
            ['CREATE TABLE items (id INTEGER PRIMARY KEY, name TEXT)'], {'items': rows})
        entry = plan_for(source, destination).entries[0]

        assert BatchCopier(source, destination, batch_size=1).copy_table(entry) == 3
        assert fetch_all(destination_path, 'SELECT id, name FROM items ORDER BY id') == rows

    def test_empty_table(self, pair):
        source, destination, _ = pair(['CREATE TABLE items (id INTEGER PRIMARY KEY, name TEXT)'])
        entry = plan_for(source, destination).entries[0]
        progress = CountingProgress()
        copier = BatchCopier(source, destination, batch_size=10, progress=progress)

        assert copier.copy_table(entry) == 0
        assert progress.increments == []
        assert copier.stats['insert_statements'] == 0

    def test_composite_key_table(self, pair):
        rows = [(a, b, f'{a}-{b}') for a in range(5) for b in range(3)]
        source, destination, destination_path = pair(
            ['CREATE TABLE pairs (a INTEGER, b INTEGER, v TEXT, PRIMARY KEY (a, b))'], {'pairs': rows})
        entry = plan_for(source, destination).entries[0]

        assert BatchCopier(source, destination, batch_size=4).copy_table(entry) == 15
        assert fetch_all(destination_path, 'SELECT a, b, v FROM pairs ORDER BY a, b') == rows

    def test_table_without_key(self, pair):
        rows = [(f'line {n}',) for n in range(7)]
        source, destination, destination_path = pair(['CREATE TABLE logs (message TEXT)'], {'logs': rows})
        entry = plan_for(source, destination).entries[0]

        assert BatchCopier(source, destination, batch_size=3).copy_table(entry) == 7
        assert sorted(fetch_all(destination_path, 'SELECT message FROM logs')) == sorted(rows)

    def test_chunks_stay_under_parameter_cap(self, pair):
        rows = [(n, 'a', 'b') for n in range(1, 11)]
        source, destination, destination_path = pair(
            ['CREATE TABLE wide (id INTEGER PRIMARY KEY, x TEXT, y TEXT)'], {'wide': rows})
        entry = plan_for(source, destination).entries[0]
        destination.dialect.max_statement_parameters = 9
        copier = BatchCopier(source, destination, batch_size=10)

        assert copier.copy_table(entry) == 10
        # 3 columns, 9 parameters: 3 rows per INSERT, 10 rows -> 4 statements
        assert copier.stats['insert_statements'] == 4
        assert copier.stats['max_bound_parameters'] == 9
        assert fetch_all(destination_path, 'SELECT count(*) FROM wide') == [(10,)]

    def test_insert_statement_shape(self, pair):
        source, destination, _ = pair(['CREATE TABLE items (id INTEGER PRIMARY KEY, name TEXT)'])
        entry = plan_for(source, destination).entries[0]
        copier = BatchCopier(source, destination)

        sql = copier.insert_statement(entry.destination, ['id', 'name'], 2)
        assert sql == 'INSERT INTO "items" ("id", "name") VALUES (?, ?), (?, ?)'

    def test_empty_string_in_json_column(self, pair):
        source, destination, destination_path = pair(
            ['CREATE TABLE docs (id INTEGER PRIMARY KEY, payload JSON, note TEXT)'],
            {'docs': [(1, '', ''), (2, '{"a": 1}', 'kept')]})
        entry = plan_for(source, destination).entries[0]

        BatchCopier(source, destination).copy_table(entry)

        assert fetch_all(destination_path, 'SELECT id, payload, note FROM docs ORDER BY id') == [
            (1, '{}', ''),
            (2, '{"a": 1}', 'kept'),
        ]

    def test_insert_failure_raises_copy_error(self, pair):
        source, destination, _ = pair(
            ['CREATE TABLE items (id INTEGER PRIMARY KEY, name TEXT)'],
            {'items': [(1, 'a')]},
            destination_statements=['CREATE TABLE items (id INTEGER PRIMARY KEY, name TEXT NOT NULL CHECK (name <> \'a\'))'],
        )
        entry = plan_for(source, destination).entries[0]

        with pytest.raises(CopyError) as exc_info:
            BatchCopier(source, destination).copy_table(entry)

        assert exc_info.value.table == 'items'
        assert exc_info.value.statement.startswith('INSERT INTO "items"')

    def test_rejects_non_positive_batch_size(self, source, destination):
        with pytest.raises(ValueError):
            BatchCopier(source, destination, batch_size=0)


def column(name, type_name):
    return ColumnDescriptor(name, f'"{name}"', type_name)


class TestValueFixups:

    def test_postgresql_strips_nul_characters(self):
        dialect = PostgreSQLDialect()
        assert dialect.sanitize_value('a\x00b\x00', column('note', 'text')) == 'ab'
        assert dialect.sanitize_value('a\x00b') == 'ab'

    def test_postgresql_empty_json_becomes_empty_object(self):
        dialect = PostgreSQLDialect()
        assert dialect.sanitize_value('', column('payload', 'jsonb')) == '{}'
        assert dialect.sanitize_value('', column('payload', 'json')) == '{}'
        assert dialect.sanitize_value('', column('note', 'text')) == ''
        assert dialect.sanitize_value('') == ''

    def test_non_strings_untouched(self):
        dialect = PostgreSQLDialect()
        assert dialect.sanitize_value(None, column('payload', 'jsonb')) is None
        assert dialect.sanitize_value(0, column('id', 'integer')) == 0
        assert dialect.sanitize_value(b'\x00', column('blob', 'bytea')) == b'\x00'

    def test_sqlite_keeps_nul_characters(self):
        assert SQLiteDialect().sanitize_value('a\x00b', column('note', 'text')) == 'a\x00b'

    def test_sanitize_row_uses_destination_columns(self):
        table = TableDescriptor('docs', '"docs"', 0, ('id',), {
            'Payload': column('Payload', 'json'),
            'note': column('note', 'text'),
        })
        row = {'payload': '', 'note': '', 'extra': ''}

        assert Dialect().sanitize_row(row, table) == {'payload': '{}', 'note': '', 'extra': ''}

    def test_json_column_fixed_during_copy(self, pair):
        source, destination, destination_path = pair(
            ['CREATE TABLE docs (id INTEGER PRIMARY KEY, payload TEXT)'],
            {'docs': [(1, ''), (2, '{"a": 1}')]},
            ['CREATE TABLE docs (id INTEGER PRIMARY KEY, payload JSON)'],
        )
        entry = plan_for(source, destination).entries[0]

        BatchCopier(source, destination).copy_table(entry)

        assert fetch_all(destination_path, 'SELECT payload FROM docs ORDER BY id') == [('{}',), ('{"a": 1}',)]
