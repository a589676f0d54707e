# File: tablegen/introspector.py
"""
TableGen - Schema Introspector
===============================
Reads a relational data source's catalog and produces a normalised,
classified ``TableInfo``.

Supported dialects:
    - MySQL      (``information_schema``)
    - PostgreSQL (``pg_catalog``)
    - SQLite     (``sqlite_master`` and the ``pragma_*`` table functions)

Every catalog query for one table runs on a single connection and the
``TableInfo`` is only constructed after all of them succeed, so a failed
or timed-out introspection never leaves a partial descriptor behind.

Length/scale resolution:
    catalog character length, else catalog numeric precision; then a
    parenthesised modifier in the declared type (``varchar(50)``,
    ``decimal(10,2)``) overrides both.
"""

from __future__ import annotations

import logging
import re
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, ValidationError
from sqlalchemy import create_engine, text
from sqlalchemy.engine import URL, Connection, Engine, make_url
from sqlalchemy.exc import ArgumentError, DBAPIError, NoSuchModuleError, SQLAlchemyError

from tablegen import errors
from tablegen.classifier import SemanticClassifier
from tablegen.models import (
    ColumnInfo,
    DataCategory,
    DatabaseDriver,
    IndexInfo,
    TableInfo,
    TableSummary,
)
from tablegen.utils import Timer

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("tablegen.introspector")

# ---------------------------------------------------------------------------
# Pre-compiled regex patterns
# ---------------------------------------------------------------------------

_TYPE_MODIFIER_RE: re.Pattern[str] = re.compile(r"\((\d+)(?:,\s*(\d+))?\)")
_PARENS_RE: re.Pattern[str] = re.compile(r"\([^)]*\)")
_DRIVER_PREFIX_RE: re.Pattern[str] = re.compile(
    r"^(mysql|postgres|postgresql|sqlite):(?!//)(.*)$", re.IGNORECASE
)
_GO_MYSQL_DSN_RE: re.Pattern[str] = re.compile(
    r"^(?:(?P<user>[^:@/]*)(?::(?P<password>[^@]*))?@)?"
    r"(?:(?P<net>\w+)\((?P<addr>[^)]*)\))?"
    r"/(?P<database>[^?]*)"
    r"(?:\?(?P<params>.*))?$"
)


# ---------------------------------------------------------------------------
# Type mapping
# ---------------------------------------------------------------------------


def extract_base_type(column_type: str) -> str:
    """
    Strip parenthesised modifiers from a declared type.

    Examples:
        >>> extract_base_type("VARCHAR(50)")
        'varchar'
        >>> extract_base_type("timestamp(6) without time zone")
        'timestamp without time zone'
    """
    return " ".join(_PARENS_RE.sub("", column_type).split()).lower()


def parse_type_modifiers(column_type: str) -> Tuple[Optional[int], Optional[int]]:
    """Return ``(length, scale)`` from ``type(n[,m])``; ``None`` where absent."""
    match = _TYPE_MODIFIER_RE.search(column_type)
    if match is None:
        return None, None
    scale: Optional[int] = int(match.group(2)) if match.group(2) else None
    return int(match.group(1)), scale


def map_python_type(data_type: str) -> str:
    """
    Map a catalog type name to the backend storage type.

    Case-insensitive substring table, first match wins. Decimal types map
    to ``str`` so generated code never rounds through a float.
    """
    t: str = data_type.lower()
    if "int" in t:
        # bigint included: Python ints are unbounded
        return "int"
    if "bool" in t:
        return "bool"
    if "datetime" in t or "timestamp" in t:
        return "datetime"
    if "date" in t:
        return "date"
    if "text" in t:
        return "str"
    if "json" in t:
        return "Any"
    if "decimal" in t or "numeric" in t:
        return "str"
    if "float" in t or "double" in t or "real" in t:
        return "float"
    if "blob" in t or "binary" in t or "bytea" in t:
        return "bytes"
    return "str"


def map_ts_type(data_type: str) -> str:
    """Map a catalog type name to the client (TypeScript) type."""
    t: str = data_type.lower()
    if any(k in t for k in ("int", "decimal", "numeric", "float", "double", "real")):
        return "number"
    if "bool" in t:
        return "boolean"
    if "datetime" in t or "timestamp" in t or "date" in t:
        return "string"
    if "json" in t:
        return "any"
    return "string"


def infer_category(data_type: str) -> DataCategory:
    t: str = data_type.lower()
    if "int" in t:
        return DataCategory.INTEGER
    if "bool" in t:
        return DataCategory.BOOLEAN
    if any(k in t for k in ("decimal", "numeric", "float", "double", "real")):
        return DataCategory.DECIMAL
    if any(k in t for k in ("date", "time")):
        return DataCategory.TEMPORAL
    if "json" in t:
        return DataCategory.JSON
    if any(k in t for k in ("blob", "binary", "bytea")):
        return DataCategory.BINARY
    return DataCategory.TEXT


def build_column(
    *,
    name: str,
    column_type: str,
    data_type: str = "",
    comment: Optional[str] = "",
    max_length: Optional[int] = None,
    precision: Optional[int] = None,
    scale: Optional[int] = None,
    nullable: bool = True,
    default_value: Optional[Any] = None,
    is_primary: bool = False,
    is_auto_inc: bool = False,
    sort: int = 0,
) -> ColumnInfo:
    """Normalise one catalog row into an unclassified ``ColumnInfo``."""
    data_type = (data_type or extract_base_type(column_type)).lower()

    length: int = int(max_length or 0)
    if length == 0 and precision:
        length = int(precision)
    col_scale: int = int(scale or 0)

    declared_length, declared_scale = parse_type_modifiers(column_type)
    if declared_length is not None:
        length = declared_length
        if declared_scale is not None:
            col_scale = declared_scale

    return ColumnInfo(
        name=name,
        column_type=column_type,
        data_type=data_type,
        category=infer_category(data_type),
        python_type=map_python_type(data_type),
        ts_type=map_ts_type(data_type),
        comment=comment or "",
        length=length,
        precision=int(precision or 0),
        scale=col_scale,
        nullable=nullable,
        default_value=None if default_value is None else str(default_value),
        is_primary=is_primary,
        is_auto_inc=is_auto_inc,
        sort=sort,
    )


def group_index_rows(rows: Iterable[Tuple[str, str, bool]]) -> List[IndexInfo]:
    """
    Group ``(index_name, column_name, unique)`` rows into indexes.

    A later row for an index already seen appends its column; indexes keep
    first-seen order.
    """
    grouped: Dict[str, IndexInfo] = {}
    for index_name, column_name, unique in rows:
        existing: Optional[IndexInfo] = grouped.get(index_name)
        if existing is None:
            grouped[index_name] = IndexInfo(
                name=index_name, columns=[column_name], unique=bool(unique)
            )
        else:
            existing.columns.append(column_name)
    return list(grouped.values())


# ---------------------------------------------------------------------------
# Connection descriptor
# ---------------------------------------------------------------------------


def _is_bare_go_dsn(raw: str, prefix: str, rest: str) -> bool:
    # "mysql:pw@tcp(...)/db" is user "mysql" with password "pw"
    if prefix.lower() == "sqlite":
        return False
    at: int = rest.find("@")
    if at < 0 or ":" in rest[:at]:
        return False
    match = _GO_MYSQL_DSN_RE.match(raw)
    return match is not None and match.group("net") is not None


class ConnectionDescriptor(BaseModel):
    """
    Driver kind plus connection string.

    ``dsn`` may be a SQLAlchemy URL, a Go-style MySQL DSN
    (``user:pass@tcp(host:3306)/db``), a libpq ``key=value`` string, or a
    SQLite file path.
    """

    model_config = ConfigDict(use_enum_values=True, extra="forbid")

    driver: DatabaseDriver = DatabaseDriver.MYSQL
    dsn: str

    @classmethod
    def parse(cls, raw: str, driver: Optional[str] = None) -> "ConnectionDescriptor":
        """
        Build a descriptor from ``driver:dsn`` or a bare DSN.

        An explicit ``driver:`` prefix wins over *driver*; with neither, a
        URL's scheme decides and anything else is taken as MySQL.

        A Go-style MySQL DSN whose user is named like a driver
        (``mysql:pw@tcp(host)/db``) is not a prefix. To prefix a DSN that has
        a user but no password, give the password as empty:
        ``mysql:root:@tcp(host)/db``.
        """
        raw = raw.strip()
        match = _DRIVER_PREFIX_RE.match(raw)
        if match is not None and not _is_bare_go_dsn(raw, match.group(1), match.group(2)):
            return cls(driver=_normalise_driver(match.group(1)), dsn=match.group(2))
        if driver:
            return cls(driver=_normalise_driver(driver), dsn=raw)
        if "://" in raw:
            scheme: str = raw.split("://", 1)[0].split("+", 1)[0]
            return cls(driver=_normalise_driver(scheme), dsn=raw)
        return cls(driver=DatabaseDriver.MYSQL, dsn=raw)

    def sqlalchemy_url(self) -> URL:
        """Translate the DSN into a SQLAlchemy ``URL``."""
        dsn: str = self.dsn.strip()
        if not dsn:
            raise errors.ConfigError("Empty DSN.")

        if "://" in dsn:
            url: URL = make_url(dsn)
            if url.drivername == "mysql":
                url = url.set(drivername="mysql+pymysql")
            elif url.drivername == "postgres":
                url = url.set(drivername="postgresql")
            return url

        if self.driver == DatabaseDriver.SQLITE.value:
            if dsn == ":memory:":
                return URL.create("sqlite")
            return URL.create("sqlite", database=dsn)

        if self.driver == DatabaseDriver.POSTGRES.value:
            return _libpq_to_url(dsn)

        return _go_mysql_to_url(dsn)

    def redacted(self) -> str:
        try:
            return self.sqlalchemy_url().render_as_string(hide_password=True)
        except (errors.ConfigError, ArgumentError):
            return f"{self.driver}:<unparsable dsn>"


def _normalise_driver(name: str) -> DatabaseDriver:
    key: str = name.lower()
    if key in ("postgres", "postgresql"):
        return DatabaseDriver.POSTGRES
    if key == "sqlite":
        return DatabaseDriver.SQLITE
    if key == "mysql":
        return DatabaseDriver.MYSQL
    raise errors.ConfigError(f"Unsupported driver: {name}")


def _split_host_port(addr: str) -> Tuple[Optional[str], Optional[int]]:
    if not addr:
        return None, None
    host, sep, port = addr.rpartition(":")
    if not sep:
        return addr, None
    if not port.isdigit():
        raise errors.ConfigError(f"Invalid port in address: {addr}")
    return host or None, int(port)


def _go_mysql_to_url(dsn: str) -> URL:
    match = _GO_MYSQL_DSN_RE.match(dsn)
    if match is None:
        raise errors.ConfigError(f"Unrecognised MySQL DSN: {dsn}")

    host, port = _split_host_port(match.group("addr") or "")
    query: Dict[str, str] = {}
    for pair in (match.group("params") or "").split("&"):
        key, _, value = pair.partition("=")
        if key == "charset" and value:
            query["charset"] = value

    return URL.create(
        "mysql+pymysql",
        username=match.group("user") or None,
        password=match.group("password") or None,
        host=host,
        port=port,
        database=match.group("database") or None,
        query=query,
    )


def _libpq_to_url(dsn: str) -> URL:
    params: Dict[str, str] = {}
    for token in dsn.split():
        key, sep, value = token.partition("=")
        if not sep:
            raise errors.ConfigError(f"Unrecognised PostgreSQL DSN token: {token}")
        params[key] = value
    port: Optional[str] = params.pop("port", None)
    query: Dict[str, str] = {}
    if "sslmode" in params:
        query["sslmode"] = params.pop("sslmode")
    return URL.create(
        "postgresql+psycopg2",
        username=params.get("user"),
        password=params.get("password"),
        host=params.get("host"),
        port=int(port) if port else None,
        database=params.get("dbname"),
        query=query,
    )


# ---------------------------------------------------------------------------
# Catalog readers
# ---------------------------------------------------------------------------


class CatalogReader(ABC):
    """Dialect-specific catalog queries and row normalisation."""

    dialect: DatabaseDriver

    @abstractmethod
    def read_comment(self, conn: Connection, table_name: str) -> str: ...

    @abstractmethod
    def read_columns(self, conn: Connection, table_name: str) -> List[ColumnInfo]: ...

    @abstractmethod
    def read_indexes(self, conn: Connection, table_name: str) -> List[IndexInfo]: ...

    @abstractmethod
    def list_tables(self, conn: Connection) -> List[TableSummary]: ...

    def begin_deadline(self, conn: Connection, seconds: float) -> None:
        """Install a server-side statement timeout for this connection."""

    def end_deadline(self, conn: Connection) -> None:
        """Remove whatever ``begin_deadline`` installed."""


class MySQLCatalogReader(CatalogReader):
    dialect = DatabaseDriver.MYSQL

    COMMENT_SQL: str = """
        SELECT TABLE_COMMENT AS table_comment
        FROM information_schema.TABLES
        WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = :table
    """
    COLUMNS_SQL: str = """
        SELECT
            COLUMN_NAME AS column_name,
            COLUMN_TYPE AS column_type,
            DATA_TYPE AS data_type,
            COLUMN_COMMENT AS column_comment,
            CHARACTER_MAXIMUM_LENGTH AS max_length,
            NUMERIC_PRECISION AS numeric_precision,
            NUMERIC_SCALE AS numeric_scale,
            IS_NULLABLE AS is_nullable,
            COLUMN_DEFAULT AS column_default,
            COLUMN_KEY AS column_key,
            EXTRA AS extra
        FROM information_schema.COLUMNS
        WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = :table
        ORDER BY ORDINAL_POSITION
    """
    INDEXES_SQL: str = """
        SELECT INDEX_NAME AS index_name, COLUMN_NAME AS column_name,
               NON_UNIQUE AS non_unique
        FROM information_schema.STATISTICS
        WHERE TABLE_SCHEMA = DATABASE() AND TABLE_NAME = :table
        ORDER BY INDEX_NAME, SEQ_IN_INDEX
    """
    TABLES_SQL: str = """
        SELECT TABLE_NAME AS table_name, TABLE_COMMENT AS table_comment
        FROM information_schema.TABLES
        WHERE TABLE_SCHEMA = DATABASE()
        ORDER BY TABLE_NAME
    """

    @staticmethod
    def column_from_row(row: Mapping[str, Any], sort: int) -> ColumnInfo:
        return build_column(
            name=row["column_name"],
            column_type=row["column_type"] or "",
            data_type=row["data_type"] or "",
            comment=row["column_comment"],
            max_length=row["max_length"],
            precision=row["numeric_precision"],
            scale=row["numeric_scale"],
            nullable=row["is_nullable"] == "YES",
            default_value=row["column_default"],
            is_primary=row["column_key"] == "PRI",
            is_auto_inc="auto_increment" in (row["extra"] or "").lower(),
            sort=sort,
        )

    def read_comment(self, conn: Connection, table_name: str) -> str:
        value = conn.execute(text(self.COMMENT_SQL), {"table": table_name}).scalar()
        return value or ""

    def read_columns(self, conn: Connection, table_name: str) -> List[ColumnInfo]:
        result = conn.execute(text(self.COLUMNS_SQL), {"table": table_name})
        return [
            self.column_from_row(row, i) for i, row in enumerate(result.mappings())
        ]

    def read_indexes(self, conn: Connection, table_name: str) -> List[IndexInfo]:
        result = conn.execute(text(self.INDEXES_SQL), {"table": table_name})
        return group_index_rows(
            (r["index_name"], r["column_name"], not r["non_unique"])
            for r in result.mappings()
        )

    def list_tables(self, conn: Connection) -> List[TableSummary]:
        result = conn.execute(text(self.TABLES_SQL))
        return [
            TableSummary(name=r["table_name"], comment=r["table_comment"] or "")
            for r in result.mappings()
        ]

    def begin_deadline(self, conn: Connection, seconds: float) -> None:
        ms: int = max(1, int(seconds * 1000))
        conn.execute(text(f"SET SESSION MAX_EXECUTION_TIME = {ms}"))

    def end_deadline(self, conn: Connection) -> None:
        conn.execute(text("SET SESSION MAX_EXECUTION_TIME = 0"))


class PostgresCatalogReader(CatalogReader):
    dialect = DatabaseDriver.POSTGRES

    COMMENT_SQL: str = """
        SELECT obj_description(c.oid, 'pg_class') AS table_comment
        FROM pg_class c
        JOIN pg_namespace n ON n.oid = c.relnamespace
        WHERE c.relname = :table AND n.nspname = current_schema()
    """
    COLUMNS_SQL: str = """
        SELECT
            a.attname AS column_name,
            format_type(a.atttypid, a.atttypmod) AS column_type,
            col_description(a.attrelid, a.attnum) AS column_comment,
            NOT a.attnotnull AS nullable,
            pg_get_expr(d.adbin, d.adrelid) AS column_default,
            a.attidentity <> '' AS is_identity,
            EXISTS (
                SELECT 1 FROM pg_index i
                WHERE i.indrelid = a.attrelid AND i.indisprimary
                  AND a.attnum = ANY(i.indkey)
            ) AS is_primary
        FROM pg_attribute a
        JOIN pg_class c ON c.oid = a.attrelid
        JOIN pg_namespace n ON n.oid = c.relnamespace
        LEFT JOIN pg_attrdef d ON d.adrelid = a.attrelid AND d.adnum = a.attnum
        WHERE c.relname = :table AND n.nspname = current_schema()
          AND a.attnum > 0 AND NOT a.attisdropped
        ORDER BY a.attnum
    """
    INDEXES_SQL: str = """
        SELECT ic.relname AS index_name, a.attname AS column_name,
               ix.indisunique AS is_unique
        FROM pg_index ix
        JOIN pg_class t ON t.oid = ix.indrelid
        JOIN pg_class ic ON ic.oid = ix.indexrelid
        JOIN pg_namespace n ON n.oid = t.relnamespace
        CROSS JOIN LATERAL unnest(ix.indkey) WITH ORDINALITY AS k(attnum, ord)
        JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = k.attnum
        WHERE t.relname = :table AND n.nspname = current_schema()
        ORDER BY ic.relname, k.ord
    """
    TABLES_SQL: str = """
        SELECT c.relname AS table_name,
               COALESCE(obj_description(c.oid, 'pg_class'), '') AS table_comment
        FROM pg_class c
        JOIN pg_namespace n ON n.oid = c.relnamespace
        WHERE c.relkind IN ('r', 'p') AND n.nspname = current_schema()
        ORDER BY c.relname
    """

    @staticmethod
    def column_from_row(row: Mapping[str, Any], sort: int) -> ColumnInfo:
        column_type: str = row["column_type"] or ""
        default: Optional[str] = row["column_default"]
        is_auto_inc: bool = bool(row["is_identity"]) or (
            default is not None and default.startswith("nextval(")
        )
        length, scale = parse_type_modifiers(column_type)
        is_decimal: bool = (
            infer_category(extract_base_type(column_type)) == DataCategory.DECIMAL
        )
        return build_column(
            name=row["column_name"],
            column_type=column_type,
            comment=row["column_comment"],
            max_length=length,
            precision=length if is_decimal else None,
            scale=scale,
            nullable=bool(row["nullable"]),
            default_value=default,
            is_primary=bool(row["is_primary"]),
            is_auto_inc=is_auto_inc,
            sort=sort,
        )

    def read_comment(self, conn: Connection, table_name: str) -> str:
        value = conn.execute(text(self.COMMENT_SQL), {"table": table_name}).scalar()
        return value or ""

    def read_columns(self, conn: Connection, table_name: str) -> List[ColumnInfo]:
        result = conn.execute(text(self.COLUMNS_SQL), {"table": table_name})
        return [
            self.column_from_row(row, i) for i, row in enumerate(result.mappings())
        ]

    def read_indexes(self, conn: Connection, table_name: str) -> List[IndexInfo]:
        result = conn.execute(text(self.INDEXES_SQL), {"table": table_name})
        return group_index_rows(
            (r["index_name"], r["column_name"], r["is_unique"])
            for r in result.mappings()
        )

    def list_tables(self, conn: Connection) -> List[TableSummary]:
        result = conn.execute(text(self.TABLES_SQL))
        return [
            TableSummary(name=r["table_name"], comment=r["table_comment"])
            for r in result.mappings()
        ]

    def begin_deadline(self, conn: Connection, seconds: float) -> None:
        ms: int = max(1, int(seconds * 1000))
        conn.execute(text(f"SET LOCAL statement_timeout = {ms}"))


class SQLiteCatalogReader(CatalogReader):
    """SQLite has no comments: table and column comments are always empty."""

    dialect = DatabaseDriver.SQLITE

    COLUMNS_SQL: str = """
        SELECT cid, name, type, "notnull" AS not_null, dflt_value, pk
        FROM pragma_table_info(:table)
        ORDER BY cid
    """
    INDEX_LIST_SQL: str = """
        SELECT name, "unique" AS is_unique FROM pragma_index_list(:table)
        ORDER BY name
    """
    INDEX_INFO_SQL: str = """
        SELECT name FROM pragma_index_info(:index) ORDER BY seqno
    """
    TABLES_SQL: str = """
        SELECT name FROM sqlite_master
        WHERE type = 'table' AND name NOT LIKE 'sqlite_%'
        ORDER BY name
    """

    @staticmethod
    def columns_from_rows(rows: Sequence[Mapping[str, Any]]) -> List[ColumnInfo]:
        """
        Normalise ``pragma_table_info`` rows.

        A lone ``INTEGER`` primary key aliases the rowid and is therefore
        auto-incrementing, with or without the ``AUTOINCREMENT`` keyword.
        Columns keep their ordinal order, so the designated key of a
        composite primary key is its first column by position, not the one
        with ``pk == 1``. This matches the MySQL and PostgreSQL readers,
        whose catalogs only flag key membership.
        """
        pk_rows: List[Mapping[str, Any]] = [r for r in rows if r["pk"]]
        rowid_alias: Optional[str] = None
        if len(pk_rows) == 1 and (pk_rows[0]["type"] or "").upper() == "INTEGER":
            rowid_alias = pk_rows[0]["name"]

        columns: List[ColumnInfo] = []
        for i, row in enumerate(rows):
            columns.append(
                build_column(
                    name=row["name"],
                    column_type=row["type"] or "",
                    nullable=not row["not_null"] and not row["pk"],
                    default_value=row["dflt_value"],
                    is_primary=bool(row["pk"]),
                    is_auto_inc=row["name"] == rowid_alias,
                    sort=i,
                )
            )
        return columns

    def read_comment(self, conn: Connection, table_name: str) -> str:
        return ""

    def read_columns(self, conn: Connection, table_name: str) -> List[ColumnInfo]:
        rows = list(
            conn.execute(text(self.COLUMNS_SQL), {"table": table_name}).mappings()
        )
        return self.columns_from_rows(rows)

    def read_indexes(self, conn: Connection, table_name: str) -> List[IndexInfo]:
        index_rows = list(
            conn.execute(text(self.INDEX_LIST_SQL), {"table": table_name}).mappings()
        )
        flat: List[Tuple[str, str, bool]] = []
        for idx in index_rows:
            for col in conn.execute(text(self.INDEX_INFO_SQL), {"index": idx["name"]}):
                flat.append((idx["name"], col[0], bool(idx["is_unique"])))
        return group_index_rows(flat)

    def list_tables(self, conn: Connection) -> List[TableSummary]:
        return [TableSummary(name=r[0]) for r in conn.execute(text(self.TABLES_SQL))]

    def begin_deadline(self, conn: Connection, seconds: float) -> None:
        deadline: float = time.monotonic() + seconds
        raw = conn.connection.dbapi_connection
        raw.set_progress_handler(lambda: int(time.monotonic() > deadline), 1000)

    def end_deadline(self, conn: Connection) -> None:
        conn.connection.dbapi_connection.set_progress_handler(None, 0)


_READERS: Dict[str, type] = {
    DatabaseDriver.MYSQL.value: MySQLCatalogReader,
    DatabaseDriver.POSTGRES.value: PostgresCatalogReader,
    DatabaseDriver.SQLITE.value: SQLiteCatalogReader,
}


def reader_for(driver: str) -> CatalogReader:
    try:
        return _READERS[DatabaseDriver(driver).value]()
    except (KeyError, ValueError) as exc:
        raise errors.ConfigError(f"Unsupported driver: {driver}") from exc


# ---------------------------------------------------------------------------
# Introspector
# ---------------------------------------------------------------------------

_TIMEOUT_MARKERS: Tuple[str, ...] = (
    "statement timeout",
    "max_execution_time",
    "maximum statement execution time",
    "interrupted",
)


def _is_timeout(exc: BaseException) -> bool:
    message: str = str(getattr(exc, "orig", exc)).lower()
    return any(marker in message for marker in _TIMEOUT_MARKERS)


class SchemaIntrospector:
    """
    Produces classified ``TableInfo`` snapshots from a live data source.

    Usage::

        conn = ConnectionDescriptor.parse("sqlite:./app.db")
        with SchemaIntrospector(conn) as inspector:
            table = inspector.introspect("sys_user")

    Args:
        connection: Driver kind and DSN.
        classifier: Semantic classifier applied to every column.
    """

    def __init__(
        self,
        connection: ConnectionDescriptor,
        classifier: Optional[SemanticClassifier] = None,
    ) -> None:
        self.connection: ConnectionDescriptor = connection
        self.classifier: SemanticClassifier = classifier or SemanticClassifier()
        self.reader: CatalogReader = reader_for(connection.driver)
        self._engine: Optional[Engine] = None

    # -- lifecycle ----------------------------------------------------------

    def connect(self) -> None:
        """
        Create the engine and verify the data source answers.

        Raises:
            ConnectionError: Unreachable, rejected credentials, or the
                DBAPI driver is not installed.
        """
        if self._engine is not None:
            return
        try:
            url: URL = self.connection.sqlalchemy_url()
            engine: Engine = create_engine(url, pool_pre_ping=True)
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except (ArgumentError, NoSuchModuleError) as exc:
            raise errors.ConnectionError(
                f"Cannot open {self.connection.driver} connection: {exc}",
                driver=self.connection.driver,
            ) from exc
        except SQLAlchemyError as exc:
            raise errors.ConnectionError(
                f"Failed to connect to {self.connection.redacted()}: {exc}",
                driver=self.connection.driver,
            ) from exc

        self._engine = engine
        logger.info("Connected to %s", self.connection.redacted())

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            logger.debug("Disposed engine for %s", self.connection.redacted())

    def __enter__(self) -> "SchemaIntrospector":
        self.connect()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self.connect()
        assert self._engine is not None
        return self._engine

    # -- queries ------------------------------------------------------------

    def list_tables(self) -> List[TableSummary]:
        """Name and comment of every table, in name order."""
        try:
            with self.engine.connect() as conn:
                tables: List[TableSummary] = self.reader.list_tables(conn)
        except DBAPIError as exc:
            raise errors.IntrospectionError(f"Failed to list tables: {exc}") from exc
        logger.info("Found %d tables", len(tables))
        return tables

    def introspect(self, table_name: str, timeout: Optional[float] = None) -> TableInfo:
        """
        Read, normalise and classify one table.

        Args:
            table_name: Table to read.
            timeout: Optional deadline in seconds for the whole read.

        Raises:
            TableNotFoundError: The catalog returned no columns.
            IntrospectionTimeoutError: *timeout* elapsed before completion.
            IntrospectionError: Any other catalog query failure.
        """
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout must be positive")

        deadline: Optional[float] = (
            time.monotonic() + timeout if timeout is not None else None
        )

        def check_deadline(stage: str) -> None:
            if deadline is not None and time.monotonic() > deadline:
                raise errors.IntrospectionTimeoutError(
                    f"Introspection of '{table_name}' exceeded {timeout}s ({stage})",
                    table_name=table_name,
                )

        with Timer(f"introspect {table_name}"):
            try:
                with self.engine.connect() as conn:
                    if timeout is not None:
                        self.reader.begin_deadline(conn, timeout)
                    try:
                        logger.debug("Reading columns of %s", table_name)
                        columns: List[ColumnInfo] = self.reader.read_columns(
                            conn, table_name
                        )
                        check_deadline("columns")
                        if not columns:
                            raise errors.TableNotFoundError(table_name)
                        comment: str = self.reader.read_comment(conn, table_name)
                        check_deadline("comment")
                        indexes: List[IndexInfo] = self.reader.read_indexes(
                            conn, table_name
                        )
                        check_deadline("indexes")
                    finally:
                        if timeout is not None:
                            self.reader.end_deadline(conn)
            except DBAPIError as exc:
                if timeout is not None and _is_timeout(exc):
                    raise errors.IntrospectionTimeoutError(
                        f"Introspection of '{table_name}' exceeded {timeout}s",
                        table_name=table_name,
                    ) from exc
                raise errors.IntrospectionError(
                    f"Catalog query failed for '{table_name}': {exc}",
                    table_name=table_name,
                ) from exc

        table: TableInfo = self._assemble(table_name, comment, columns, indexes)
        logger.info(
            "Introspected %s: %d columns, %d indexes",
            table_name,
            len(table.columns),
            len(table.indexes),
        )
        return table

    def _assemble(
        self,
        table_name: str,
        comment: str,
        columns: List[ColumnInfo],
        indexes: List[IndexInfo],
    ) -> TableInfo:
        classified: List[ColumnInfo] = self.classifier.classify_columns(columns)
        primary: List[ColumnInfo] = [c for c in classified if c.is_primary]
        try:
            return TableInfo(
                name=table_name,
                comment=comment,
                columns=classified,
                indexes=indexes,
                primary_key=primary[0].name if primary else "",
                is_tree_table=self.classifier.is_tree_table(classified),
            )
        except ValidationError as exc:
            raise errors.IntrospectionError(
                f"Inconsistent catalog data for '{table_name}': {exc}",
                table_name=table_name,
            ) from exc


__all__: List[str] = [
    "extract_base_type",
    "parse_type_modifiers",
    "map_python_type",
    "map_ts_type",
    "infer_category",
    "build_column",
    "group_index_rows",
    "ConnectionDescriptor",
    "CatalogReader",
    "MySQLCatalogReader",
    "PostgresCatalogReader",
    "SQLiteCatalogReader",
    "reader_for",
    "SchemaIntrospector",
]
