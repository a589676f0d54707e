"""
tests/test_introspector.py
Type mapping, DSN parsing, catalog row normalisation and live SQLite
introspection.
"""

from __future__ import annotations

import pathlib
import time

import pytest

from sqlalchemy import text

from tablegen import errors
from tablegen.introspector import (
    ConnectionDescriptor,
    MySQLCatalogReader,
    PostgresCatalogReader,
    SchemaIntrospector,
    SQLiteCatalogReader,
    build_column,
    extract_base_type,
    group_index_rows,
    map_python_type,
    map_ts_type,
    parse_type_modifiers,
    reader_for,
)
from tablegen.models import DataCategory


# ---------------------------------------------------------------------------
# Type mapping
# ---------------------------------------------------------------------------


class TestTypeMapping:
    @pytest.mark.parametrize(
        "column_type, expected",
        [
            ("VARCHAR(50)", "varchar"),
            ("decimal(10,2)", "decimal"),
            ("int(11) unsigned", "int unsigned"),
            ("timestamp(6) without time zone", "timestamp without time zone"),
        ],
    )
    def test_extract_base_type(self, column_type, expected):
        assert extract_base_type(column_type) == expected

    def test_parse_type_modifiers(self):
        assert parse_type_modifiers("varchar(50)") == (50, None)
        assert parse_type_modifiers("decimal(10, 2)") == (10, 2)
        assert parse_type_modifiers("text") == (None, None)

    @pytest.mark.parametrize(
        "data_type, py, ts",
        [
            ("bigint", "int", "number"),
            ("tinyint", "int", "number"),
            ("boolean", "bool", "boolean"),
            ("datetime", "datetime", "string"),
            ("timestamp", "datetime", "string"),
            ("date", "date", "string"),
            ("json", "Any", "any"),
            ("decimal", "str", "number"),
            ("double", "float", "number"),
            ("blob", "bytes", "string"),
            ("varchar", "str", "string"),
        ],
    )
    def test_python_and_ts_types(self, data_type, py, ts):
        assert map_python_type(data_type) == py
        assert map_ts_type(data_type) == ts

    def test_declared_length_overrides_catalog_length(self):
        column = build_column(name="price", column_type="decimal(12,4)", precision=12, scale=2)
        assert column.length == 12
        assert column.scale == 4
        assert column.category == DataCategory.DECIMAL.value

    def test_catalog_length_used_without_modifiers(self):
        column = build_column(name="bio", column_type="text", max_length=65535)
        assert column.length == 65535
        assert column.data_type == "text"

    def test_group_index_rows_keeps_column_order(self):
        indexes = group_index_rows(
            [("idx_a", "x", False), ("uk_b", "y", True), ("idx_a", "z", False)]
        )
        assert [i.name for i in indexes] == ["idx_a", "uk_b"]
        assert indexes[0].columns == ["x", "z"]
        assert indexes[1].unique is True


# ---------------------------------------------------------------------------
# Connection descriptors
# ---------------------------------------------------------------------------


class TestConnectionDescriptor:
    def test_driver_prefix(self):
        desc = ConnectionDescriptor.parse("postgres:host=db user=gen dbname=app")
        assert desc.driver == "postgres"
        assert desc.dsn == "host=db user=gen dbname=app"

    def test_driver_named_user_is_not_a_prefix(self):
        desc = ConnectionDescriptor.parse("mysql:pw@tcp(127.0.0.1:3306)/gen")
        assert desc.driver == "mysql"
        url = desc.sqlalchemy_url()
        assert url.username == "mysql"
        assert url.password == "pw"
        assert url.database == "gen"

        desc = ConnectionDescriptor.parse("postgres:pw@tcp(db:3306)/gen")
        assert desc.driver == "mysql"
        assert desc.sqlalchemy_url().username == "postgres"

    def test_prefixed_go_dsn(self):
        desc = ConnectionDescriptor.parse("mysql:root:pw@tcp(h:3306)/gen")
        assert desc.dsn == "root:pw@tcp(h:3306)/gen"
        assert desc.sqlalchemy_url().username == "root"

        desc = ConnectionDescriptor.parse("mysql:root:@tcp(h:3306)/gen")
        url = desc.sqlalchemy_url()
        assert url.username == "root"
        assert url.password is None

    def test_no_prefix_defaults_to_mysql(self):
        desc = ConnectionDescriptor.parse("root:secret@tcp(127.0.0.1:3306)/gen")
        assert desc.driver == "mysql"

    def test_url_scheme_selects_driver(self):
        assert ConnectionDescriptor.parse("sqlite:///tmp/app.db").driver == "sqlite"
        assert ConnectionDescriptor.parse("postgresql://u@h/db").driver == "postgres"

    def test_go_mysql_dsn_to_url(self):
        desc = ConnectionDescriptor.parse(
            "root:secret@tcp(127.0.0.1:3307)/gen?charset=utf8mb4&parseTime=True"
        )
        url = desc.sqlalchemy_url()
        assert url.drivername == "mysql+pymysql"
        assert url.username == "root"
        assert url.password == "secret"
        assert url.host == "127.0.0.1"
        assert url.port == 3307
        assert url.database == "gen"
        assert url.query["charset"] == "utf8mb4"

    def test_mysql_url_gets_pymysql_driver(self):
        url = ConnectionDescriptor.parse("mysql://u:p@h/db").sqlalchemy_url()
        assert url.drivername == "mysql+pymysql"

    def test_libpq_dsn_to_url(self):
        url = ConnectionDescriptor.parse(
            "postgres:host=db port=5433 user=gen password=pw dbname=app sslmode=disable"
        ).sqlalchemy_url()
        assert url.drivername == "postgresql+psycopg2"
        assert (url.host, url.port, url.database) == ("db", 5433, "app")
        assert url.query["sslmode"] == "disable"

    def test_sqlite_path(self, tmp_path: pathlib.Path):
        url = ConnectionDescriptor.parse(f"sqlite:{tmp_path / 'x.db'}").sqlalchemy_url()
        assert url.drivername == "sqlite"
        assert url.database == str(tmp_path / "x.db")

    def test_redacted_hides_password(self):
        desc = ConnectionDescriptor.parse("root:secret@tcp(localhost:3306)/gen")
        assert "secret" not in desc.redacted()

    def test_unsupported_driver(self):
        with pytest.raises(errors.ConfigError):
            ConnectionDescriptor.parse("dsn", driver="oracle")

    def test_reader_for(self):
        assert isinstance(reader_for("mysql"), MySQLCatalogReader)
        assert isinstance(reader_for("postgres"), PostgresCatalogReader)
        assert isinstance(reader_for("sqlite"), SQLiteCatalogReader)


# ---------------------------------------------------------------------------
# Row normalisation
# ---------------------------------------------------------------------------


class TestMySQLRows:
    def _row(self, **overrides):
        row = {
            "column_name": "id",
            "column_type": "bigint(20) unsigned",
            "data_type": "bigint",
            "column_comment": "主键",
            "max_length": None,
            "numeric_precision": 20,
            "numeric_scale": 0,
            "is_nullable": "NO",
            "column_default": None,
            "column_key": "PRI",
            "extra": "auto_increment",
        }
        row.update(overrides)
        return row

    def test_primary_auto_increment(self):
        column = MySQLCatalogReader.column_from_row(self._row(), 0)
        assert column.is_primary and column.is_auto_inc
        assert column.nullable is False
        assert column.python_type == "int"
        assert column.length == 20

    def test_plain_varchar(self):
        column = MySQLCatalogReader.column_from_row(
            self._row(
                column_name="user_name",
                column_type="varchar(50)",
                data_type="varchar",
                column_comment=None,
                max_length=50,
                numeric_precision=None,
                numeric_scale=None,
                is_nullable="YES",
                column_key="UNI",
                extra="",
            ),
            1,
        )
        assert not column.is_primary and not column.is_auto_inc
        assert column.comment == ""
        assert column.length == 50
        assert column.sort == 1


class TestPostgresRows:
    def _row(self, **overrides):
        row = {
            "column_name": "id",
            "column_type": "integer",
            "column_comment": None,
            "nullable": False,
            "column_default": "nextval('sys_user_id_seq'::regclass)",
            "is_identity": False,
            "is_primary": True,
        }
        row.update(overrides)
        return row

    def test_serial_is_auto_increment(self):
        column = PostgresCatalogReader.column_from_row(self._row(), 0)
        assert column.is_auto_inc and column.is_primary
        assert column.data_type == "integer"

    def test_identity_is_auto_increment(self):
        column = PostgresCatalogReader.column_from_row(
            self._row(column_default=None, is_identity=True), 0
        )
        assert column.is_auto_inc

    def test_varying_character_length(self):
        column = PostgresCatalogReader.column_from_row(
            self._row(
                column_name="email",
                column_type="character varying(120)",
                column_default=None,
                nullable=True,
                is_primary=False,
            ),
            3,
        )
        assert column.data_type == "character varying"
        assert column.length == 120
        assert not column.is_auto_inc

    def test_numeric_carries_precision_and_scale(self):
        column = PostgresCatalogReader.column_from_row(
            self._row(
                column_name="amount",
                column_type="numeric(12,4)",
                column_default=None,
                is_primary=False,
            ),
            2,
        )
        assert column.precision == 12
        assert column.scale == 4
        assert column.length == 12

    def test_varchar_has_no_precision(self):
        column = PostgresCatalogReader.column_from_row(
            self._row(column_name="code", column_type="character varying(20)", is_primary=False),
            1,
        )
        assert column.precision == 0


class TestSQLiteRows:
    def _row(self, name, type_, pk=0, not_null=0, dflt=None):
        return {"name": name, "type": type_, "pk": pk, "not_null": not_null, "dflt_value": dflt}

    def test_integer_primary_key_is_rowid_alias(self):
        columns = SQLiteCatalogReader.columns_from_rows(
            [self._row("id", "INTEGER", pk=1), self._row("name", "TEXT")]
        )
        assert columns[0].is_auto_inc and columns[0].is_primary
        assert columns[0].nullable is False

    def test_composite_key_is_not_auto_increment(self):
        columns = SQLiteCatalogReader.columns_from_rows(
            [self._row("a", "INTEGER", pk=1), self._row("b", "INTEGER", pk=2)]
        )
        assert all(c.is_primary for c in columns)
        assert not any(c.is_auto_inc for c in columns)

    def test_bigint_key_is_not_rowid_alias(self):
        columns = SQLiteCatalogReader.columns_from_rows([self._row("id", "BIGINT", pk=1)])
        assert not columns[0].is_auto_inc

    def test_composite_key_keeps_ordinal_order(self):
        columns = SQLiteCatalogReader.columns_from_rows(
            [self._row("a", "INTEGER", pk=2), self._row("b", "INTEGER", pk=1)]
        )
        assert [c.name for c in columns] == ["a", "b"]
        assert all(c.is_primary for c in columns)


# ---------------------------------------------------------------------------
# Live SQLite introspection
# ---------------------------------------------------------------------------


@pytest.fixture()
def introspector(sqlite_dsn: str):
    inspector = SchemaIntrospector(ConnectionDescriptor.parse(sqlite_dsn))
    yield inspector
    inspector.close()


class TestSQLiteIntrospection:
    def test_sys_user(self, introspector):
        table = introspector.introspect("sys_user")
        assert table.name == "sys_user"
        assert table.column_names == ["id", "user_name", "status", "deleted_at"]
        assert table.primary_key == "id"

        pk = table.get_column("id")
        assert pk.is_auto_inc and pk.is_primary

        user_name = table.get_column("user_name")
        assert user_name.length == 50
        assert user_name.nullable is False
        assert user_name.is_query_field is True

        assert table.get_column("status").default_value == "1"
        assert table.get_column("deleted_at").python_type == "datetime"
        assert table.get_column("deleted_at").is_list_field is False
        assert [(i.name, i.columns, i.unique) for i in table.indexes] == [
            ("uk_user_name", ["user_name"], True)
        ]

    def test_exactly_one_auto_increment_column_which_is_primary(self, introspector):
        for name in ("sys_user", "sys_dept", "t_order_item"):
            table = introspector.introspect(name)
            auto = [c for c in table.columns if c.is_auto_inc]
            assert len(auto) <= 1
            assert all(c.is_primary for c in auto)

    def test_tree_table(self, introspector):
        assert introspector.introspect("sys_dept").is_tree_table is True
        assert introspector.introspect("sys_user").is_tree_table is False

    def test_composite_key_designates_first_column(self, introspector):
        table = introspector.introspect("t_order_item")
        assert table.primary_key == "order_id"
        assert table.get_column("amount").scale == 2

    def test_composite_key_declared_out_of_order(self, introspector):
        with introspector.engine.begin() as conn:
            conn.execute(
                text(
                    "CREATE TABLE t_stock (warehouse_id INTEGER NOT NULL, "
                    "sku VARCHAR(32) NOT NULL, qty INTEGER, PRIMARY KEY (sku, warehouse_id))"
                )
            )
        table = introspector.introspect("t_stock")
        assert table.primary_key == "warehouse_id"
        assert [c.name for c in table.columns if c.is_primary] == ["warehouse_id", "sku"]

    def test_missing_table(self, introspector):
        with pytest.raises(errors.TableNotFoundError) as excinfo:
            introspector.introspect("sys_missing")
        assert excinfo.value.table_name == "sys_missing"

    def test_list_tables(self, introspector):
        names = [t.name for t in introspector.list_tables()]
        assert names == ["sys_dept", "sys_user", "t_order_item"]

    def test_timeout_within_deadline(self, introspector):
        table = introspector.introspect("sys_user", timeout=30)
        assert table.primary_key == "id"

    def test_expired_deadline_raises_timeout(self, introspector, monkeypatch):
        read_columns = introspector.reader.read_columns

        def slow_read_columns(conn, table_name):
            time.sleep(0.3)
            return read_columns(conn, table_name)

        monkeypatch.setattr(introspector.reader, "read_columns", slow_read_columns)
        with pytest.raises(errors.IntrospectionTimeoutError) as excinfo:
            introspector.introspect("sys_user", timeout=0.1)
        assert excinfo.value.table_name == "sys_user"

        monkeypatch.setattr(introspector.reader, "read_columns", read_columns)
        assert introspector.introspect("sys_user").primary_key == "id"

    def test_runaway_catalog_query_is_interrupted(self, introspector, monkeypatch):
        read_columns = introspector.reader.read_columns

        def runaway_read_columns(conn, table_name):
            conn.execute(
                text(
                    "WITH RECURSIVE c(x) AS (SELECT 1 UNION ALL "
                    "SELECT x + 1 FROM c WHERE x < 50000000) SELECT count(*) FROM c"
                )
            ).scalar()
            return read_columns(conn, table_name)

        monkeypatch.setattr(introspector.reader, "read_columns", runaway_read_columns)
        started = time.monotonic()
        with pytest.raises(errors.IntrospectionTimeoutError):
            introspector.introspect("sys_user", timeout=0.1)
        assert time.monotonic() - started < 5

        monkeypatch.setattr(introspector.reader, "read_columns", read_columns)
        assert introspector.introspect("sys_user", timeout=30).primary_key == "id"

    def test_non_positive_timeout_rejected(self, introspector):
        with pytest.raises(ValueError):
            introspector.introspect("sys_user", timeout=0)

    def test_unreachable_database(self, tmp_path: pathlib.Path):
        desc = ConnectionDescriptor.parse(f"sqlite:{tmp_path / 'no' / 'such' / 'dir.db'}")
        with pytest.raises(errors.ConnectionError):
            SchemaIntrospector(desc).connect()

    def test_context_manager_disposes_engine(self, sqlite_dsn: str):
        with SchemaIntrospector(ConnectionDescriptor.parse(sqlite_dsn)) as inspector:
            assert inspector.list_tables()
        assert inspector._engine is None
