"""
tests/conftest.py
Shared fixtures for the tablegen test suite.

No external mocking libraries are used; introspection runs against real
SQLite databases and every file write happens inside pytest's tmp_path.
"""

from __future__ import annotations

import logging
import pathlib
from typing import List

import pytest
from sqlalchemy import create_engine, text

from tablegen.classifier import SemanticClassifier
from tablegen.config import GeneratorSettings, default_settings
from tablegen.descriptor import EntityDescriptorBuilder
from tablegen.history import HistoryJournal
from tablegen.introspector import build_column
from tablegen.models import ColumnInfo, EntityDescriptor, TableInfo
from tablegen.templates import TemplateRenderer


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------

SCHEMA_DDL: List[str] = [
    """
    CREATE TABLE sys_user (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_name varchar(50) NOT NULL,
        status tinyint DEFAULT 1,
        deleted_at datetime
    )
    """,
    "CREATE UNIQUE INDEX uk_user_name ON sys_user (user_name)",
    """
    CREATE TABLE sys_dept (
        id INTEGER PRIMARY KEY,
        parent_id integer NOT NULL DEFAULT 0,
        name varchar(30) NOT NULL,
        level integer,
        remark text
    )
    """,
    """
    CREATE TABLE t_order_item (
        order_id integer NOT NULL,
        line_no integer NOT NULL,
        amount decimal(10,2),
        PRIMARY KEY (order_id, line_no)
    )
    """,
]


@pytest.fixture()
def sqlite_db(tmp_path: pathlib.Path) -> pathlib.Path:
    """A SQLite file holding sys_user, sys_dept and t_order_item."""
    path = tmp_path / "app.db"
    engine = create_engine(f"sqlite:///{path}")
    with engine.begin() as conn:
        for ddl in SCHEMA_DDL:
            conn.execute(text(ddl))
    engine.dispose()
    return path


@pytest.fixture()
def sqlite_dsn(sqlite_db: pathlib.Path) -> str:
    return f"sqlite:{sqlite_db}"


@pytest.fixture()
def settings(tmp_path: pathlib.Path, sqlite_dsn: str) -> GeneratorSettings:
    """Default settings redirected into tmp_path and pointed at sqlite_db."""
    s = default_settings()
    s.database.dsn = sqlite_dsn
    s.history_dir = str(tmp_path / "history")
    s.generator.backend.output = str(tmp_path / "server")
    s.generator.frontend.output = str(tmp_path / "web")
    return s


# ---------------------------------------------------------------------------
# Model fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def user_columns() -> List[ColumnInfo]:
    """Unclassified columns of sys_user as a MySQL catalog would report them."""
    return [
        build_column(
            name="id",
            column_type="int(11)",
            comment="ID",
            nullable=False,
            is_primary=True,
            is_auto_inc=True,
            sort=0,
        ),
        build_column(
            name="user_name",
            column_type="varchar(50)",
            comment="用户名",
            nullable=False,
            sort=1,
        ),
        build_column(name="status", column_type="tinyint(1)", comment="状态", sort=2),
        build_column(name="deleted_at", column_type="datetime", sort=3),
    ]


@pytest.fixture()
def user_table(user_columns: List[ColumnInfo]) -> TableInfo:
    classifier = SemanticClassifier()
    return TableInfo(
        name="sys_user",
        comment="用户",
        columns=classifier.classify_columns(user_columns),
        primary_key="id",
    )


@pytest.fixture()
def user_entity(user_table: TableInfo) -> EntityDescriptor:
    return EntityDescriptorBuilder().build(
        user_table, "sys", ["list", "add", "edit", "delete", "view"]
    )


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def renderer() -> TemplateRenderer:
    return TemplateRenderer()


@pytest.fixture()
def journal(tmp_path: pathlib.Path) -> HistoryJournal:
    return HistoryJournal(tmp_path / "history")


@pytest.fixture(autouse=True)
def _reset_tablegen_logger():
    """The CLI reconfigures the ``tablegen`` logger; undo it per test so caplog works."""
    yield
    root = logging.getLogger("tablegen")
    root.handlers.clear()
    root.propagate = True
    root.setLevel(logging.NOTSET)
    logging.disable(logging.NOTSET)
