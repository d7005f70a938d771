#!/usr/bin/env python3
"""
TableCopy Test Configuration - PyTest Configuration and Fixtures

Shared fixtures for the copy engine tests. End-to-end behaviour runs on
file-backed SQLite databases; PostgreSQL and MySQL live tests are opt-in
through TABLECOPY_TEST_POSTGRES_URL / TABLECOPY_TEST_MYSQL_URL.
"""

import os
import sqlite3
import sys

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.settings import ConfigManager, ConnectionProfile
from extensions.plugins.sqlite_adapter import connect as connect_sqlite


def build_sqlite(path, statements, rows=None):
    """Create a SQLite file from DDL statements and {table: [tuples]} rows"""
    connection = sqlite3.connect(str(path))
    try:
        for statement in statements:
            connection.execute(statement)
        for table, table_rows in (rows or {}).items():
            if not table_rows:
                continue
            marks = ", ".join("?" * len(table_rows[0]))
            connection.executemany(f'INSERT INTO "{table}" VALUES ({marks})', table_rows)
        connection.commit()
    finally:
        connection.close()
    return path


def fetch_all(path, sql):
    connection = sqlite3.connect(str(path))
    try:
        return connection.execute(sql).fetchall()
    finally:
        connection.close()


def open_sqlite(path, name):
    return connect_sqlite(ConnectionProfile(name=name, driver='sqlite', database=str(path)))


BLOG_SCHEMA = [
    'CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL)',
    'CREATE TABLE posts (id INTEGER PRIMARY KEY, user_id INTEGER REFERENCES users(id), body TEXT)',
]

BLOG_ROWS = {
    'users': [(1, 'ada'), (2, 'grace'), (3, 'linus')],
    'posts': [(10, 1, 'hello'), (11, 1, 'again'), (12, 3, 'kernel')],
}


@pytest.fixture
def source_path(tmp_path):
    """Source database with the blog schema and rows"""
    return build_sqlite(tmp_path / 'source.db', BLOG_SCHEMA, BLOG_ROWS)


@pytest.fixture
def destination_path(tmp_path):
    """Empty destination database with the blog schema"""
    return build_sqlite(tmp_path / 'destination.db', BLOG_SCHEMA)


@pytest.fixture
def source(source_path):
    handle = open_sqlite(source_path, 'source')
    yield handle
    handle.close()


@pytest.fixture
def destination(destination_path):
    handle = open_sqlite(destination_path, 'destination')
    yield handle
    handle.close()


@pytest.fixture(autouse=True)
def reset_config():
    """Fresh settings singleton per test"""
    ConfigManager.reset()
    yield
    ConfigManager.reset()
