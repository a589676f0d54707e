# File: tablegen/utils.py
"""
TableGen - Identifier Transforms & File Helpers
=================================================
String-casing conversions shared by every stage of the pipeline, plus the
small file-system and checksum helpers used by the renderer and the
history journal.

Naming contract:
- Word boundaries are ``_`` and ``-`` (any non-alphanumeric run, in fact),
  lowercase→uppercase transitions, and acronym→word transitions
  (``HTTPServer`` → ``http`` + ``server``).
- Every transform maps ``""`` to ``""``.
- Casing is ASCII/Unicode case mapping only; nothing is locale-sensitive.

All string-conversion functions are decorated with ``@lru_cache`` because
templates call them once per column per artifact.
"""

from __future__ import annotations

import functools
import hashlib
import logging
import os
import re
import shutil
import tempfile
import time
from pathlib import Path
from typing import List, Optional, Tuple

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("tablegen.utils")

# ---------------------------------------------------------------------------
# Pre-compiled regex patterns
# ---------------------------------------------------------------------------

_ACRONYM_BOUNDARY_RE: re.Pattern[str] = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CAMEL_BOUNDARY_RE: re.Pattern[str] = re.compile(r"([a-z0-9])([A-Z])")
_SEPARATOR_RE: re.Pattern[str] = re.compile(r"[^A-Za-z0-9]+")


# ---------------------------------------------------------------------------
# Cached string transformation functions
# ---------------------------------------------------------------------------


@functools.lru_cache(maxsize=None)
def split_words(name: str) -> Tuple[str, ...]:
    """
    Split an identifier in any convention into lowercase words.

    Examples:
        >>> split_words("user_name")
        ('user', 'name')
        >>> split_words("UserName")
        ('user', 'name')
        >>> split_words("user-name")
        ('user', 'name')
        >>> split_words("getHTTPResponse")
        ('get', 'http', 'response')
    """
    if not name:
        return ()
    s: str = _ACRONYM_BOUNDARY_RE.sub(r"\1_\2", name)
    s = _CAMEL_BOUNDARY_RE.sub(r"\1_\2", s)
    return tuple(w.lower() for w in _SEPARATOR_RE.split(s) if w)


@functools.lru_cache(maxsize=None)
def to_snake_case(name: str) -> str:
    """
    Convert any identifier to snake_case.

    Examples:
        >>> to_snake_case("UserProfile")
        'user_profile'
        >>> to_snake_case("user-profile")
        'user_profile'
        >>> to_snake_case("already_snake")
        'already_snake'
    """
    return "_".join(split_words(name))


@functools.lru_cache(maxsize=None)
def to_pascal_case(name: str) -> str:
    """
    Convert any identifier to PascalCase.

    Examples:
        >>> to_pascal_case("user_profile")
        'UserProfile'
        >>> to_pascal_case("userProfile")
        'UserProfile'
        >>> to_pascal_case("HTTP_server")
        'HttpServer'
    """
    return "".join(word.capitalize() for word in split_words(name))


@functools.lru_cache(maxsize=None)
def to_camel_case(name: str) -> str:
    """
    Convert any identifier to camelCase.

    Examples:
        >>> to_camel_case("user_profile")
        'userProfile'
        >>> to_camel_case("UserProfile")
        'userProfile'
    """
    words: Tuple[str, ...] = split_words(name)
    if not words:
        return ""
    return words[0] + "".join(w.capitalize() for w in words[1:])


@functools.lru_cache(maxsize=None)
def to_kebab_case(name: str) -> str:
    """Convert any identifier to kebab-case (used in URL paths)."""
    return "-".join(split_words(name))


@functools.lru_cache(maxsize=None)
def to_title_human(name: str) -> str:
    """
    Convert identifier to a human-readable title.

    Examples:
        >>> to_title_human("user_profile")
        'User Profile'
    """
    return " ".join(w.capitalize() for w in split_words(name))


def strip_table_prefix(table_name: str, prefixes: Tuple[str, ...]) -> str:
    """
    Remove at most one conventional prefix from *table_name*.

    Prefixes are tried in order; the first match wins and nothing else is
    stripped, so ``sys_t_user`` with ``("sys_", "t_")`` becomes ``t_user``.
    """
    for prefix in prefixes:
        if prefix and table_name.startswith(prefix):
            return table_name[len(prefix):]
    return table_name


# ---------------------------------------------------------------------------
# File I/O helpers
# ---------------------------------------------------------------------------


def ensure_directory(path: Path) -> None:
    """Create directory (and parents) if it doesn't exist."""
    path.mkdir(parents=True, exist_ok=True)
    logger.debug("Ensured directory exists: %s", path)


def write_file(path: Path, content: str, atomic: bool = True) -> int:
    """
    Write *content* to *path* as UTF-8, creating parent directories.

    When *atomic* is True, writes to a temporary file first then renames, so
    readers never observe a half-written file.

    Returns the number of bytes written.
    """
    ensure_directory(path.parent)

    encoded: bytes = content.encode("utf-8")
    byte_count: int = len(encoded)

    if atomic:
        fd: int
        tmp_path: str
        fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent),
            prefix=f".{path.name}.",
            suffix=".tmp",
        )
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(encoded)
            # mkstemp creates 0600; generated files are ordinary source files
            os.chmod(tmp_path, 0o644)
            shutil.move(tmp_path, str(path))
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
    else:
        path.write_bytes(encoded)

    logger.debug("Wrote %d bytes to %s", byte_count, path)
    return byte_count


def read_file(path: Path) -> str:
    """Read a UTF-8 file and return its content as a string."""
    return path.read_bytes().decode("utf-8")


# ---------------------------------------------------------------------------
# Checksum & metrics
# ---------------------------------------------------------------------------


def sha256_hex(content: str) -> str:
    """Return SHA-256 hex digest of a string."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def count_lines(content: str) -> int:
    """Count the number of lines in a string."""
    if not content:
        return 0
    return content.count("\n") + (1 if not content.endswith("\n") else 0)


# ---------------------------------------------------------------------------
# Timer context manager
# ---------------------------------------------------------------------------


class Timer:
    """
    Simple context-manager timer for profiling pipeline steps.

    Usage:
        with Timer("introspect sys_user") as t:
            ...
        print(t.elapsed)
    """

    __slots__ = ("label", "start_time", "end_time", "elapsed")

    def __init__(self, label: str = "operation") -> None:
        self.label: str = label
        self.start_time: float = 0.0
        self.end_time: float = 0.0
        self.elapsed: float = 0.0

    def __enter__(self) -> "Timer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[object],
    ) -> None:
        self.end_time = time.perf_counter()
        self.elapsed = self.end_time - self.start_time
        logger.debug("Timer [%s]: %.4f seconds", self.label, self.elapsed)

    def __repr__(self) -> str:
        return f"<Timer {self.label}: {self.elapsed:.4f}s>"


# ---------------------------------------------------------------------------
# Module-level exports
# ---------------------------------------------------------------------------

__all__: List[str] = [
    "split_words",
    "to_snake_case",
    "to_pascal_case",
    "to_camel_case",
    "to_kebab_case",
    "to_title_human",
    "strip_table_prefix",
    "ensure_directory",
    "write_file",
    "read_file",
    "sha256_hex",
    "count_lines",
    "Timer",
]
