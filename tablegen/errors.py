# File: tablegen/errors.py
"""
TableGen - Error Taxonomy
==========================

Every failure raised by the pipeline derives from ``TablegenError`` so the
CLI and HTTP front ends can catch one base class and surface the message
verbatim.

Fatality per stage:
    - ``ConnectionError``: fatal to the current request; no retry here.
    - ``TableNotFoundError``: fatal to one table; batches continue.
    - ``TemplateNotFoundError`` / ``TemplateSyntaxError`` / ``RenderError``:
      fatal to the artifact and propagated immediately; already-written
      files from the same run are left in place.
    - ``RecordNotFoundError``: surfaced directly, no side effects.

``ConnectionError`` intentionally shares its name with the builtin; import
it through the module (``errors.ConnectionError``) where both are in scope.
"""

from __future__ import annotations

from typing import List, Optional, Sequence


class TablegenError(Exception):
    """Base class for every error raised by tablegen."""


class ConfigError(TablegenError):
    """Settings file missing, unreadable or invalid."""


class UnknownFeatureError(TablegenError, ValueError):
    """A requested feature is not one of the known feature names."""

    def __init__(self, feature: str, known: Sequence[str]) -> None:
        self.feature: str = feature
        self.known: List[str] = list(known)
        super().__init__(
            f"Unknown feature '{feature}'. Known features: {', '.join(self.known)}"
        )


# ---------------------------------------------------------------------------
# Introspection
# ---------------------------------------------------------------------------


class ConnectionError(TablegenError):  # noqa: A001
    """The data source is unreachable or rejected the credentials."""

    def __init__(self, message: str, *, driver: str = "") -> None:
        self.driver: str = driver
        super().__init__(message)


class TableNotFoundError(TablegenError):
    """The catalog returned no column rows for the requested table."""

    def __init__(self, table_name: str) -> None:
        self.table_name: str = table_name
        super().__init__(f"Table not found: {table_name}")


class IntrospectionError(TablegenError):
    """A catalog query failed after the connection was established."""

    def __init__(self, message: str, *, table_name: str = "") -> None:
        self.table_name: str = table_name
        super().__init__(message)


class IntrospectionTimeoutError(IntrospectionError):
    """A catalog query exceeded the caller-supplied deadline."""


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


class TemplateNotFoundError(TablegenError):
    """No template resource exists for the requested key."""

    def __init__(self, template_key: str, search_path: str = "") -> None:
        self.template_key: str = template_key
        self.search_path: str = search_path
        where: str = f" in {search_path}" if search_path else ""
        super().__init__(f"Template not found: {template_key}{where}")


class TemplateSyntaxError(TablegenError):
    """The template body could not be parsed."""

    def __init__(
        self, template_key: str, message: str, lineno: Optional[int] = None
    ) -> None:
        self.template_key: str = template_key
        self.lineno: Optional[int] = lineno
        line: str = f" (line {lineno})" if lineno else ""
        super().__init__(f"Syntax error in template {template_key}{line}: {message}")


class RenderError(TablegenError):
    """Template evaluation failed, typically on an undefined field."""

    def __init__(self, template_key: str, message: str) -> None:
        self.template_key: str = template_key
        super().__init__(f"Failed to render template {template_key}: {message}")


# ---------------------------------------------------------------------------
# History journal
# ---------------------------------------------------------------------------


class RecordNotFoundError(TablegenError):
    """No generation record carries the requested id."""

    def __init__(self, record_id: str) -> None:
        self.record_id: str = record_id
        super().__init__(f"Record not found: {record_id}")


class JournalCorruptError(TablegenError):
    """The journal file exists but cannot be parsed."""


class JournalLockError(TablegenError):
    """The journal lock could not be acquired in time."""


class DriftDetectedError(TablegenError):
    """On-disk files differ from the snapshot a rollback would restore."""

    def __init__(self, record_id: str, paths: Sequence[str]) -> None:
        self.record_id: str = record_id
        self.paths: List[str] = list(paths)
        super().__init__(
            f"Refusing to roll back {record_id}: {len(self.paths)} file(s) "
            f"changed since generation: {', '.join(self.paths)}"
        )


__all__: List[str] = [
    "TablegenError",
    "ConfigError",
    "UnknownFeatureError",
    "ConnectionError",
    "TableNotFoundError",
    "IntrospectionError",
    "IntrospectionTimeoutError",
    "TemplateNotFoundError",
    "TemplateSyntaxError",
    "RenderError",
    "RecordNotFoundError",
    "JournalCorruptError",
    "JournalLockError",
    "DriftDetectedError",
]
