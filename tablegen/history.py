# File: tablegen/history.py
"""
TableGen - Generation History Journal
======================================
Durable log of generation runs with exact-content rollback.

Storage:
    ``<history_dir>/history.json`` holds the full, ordered array of
    ``GenerationRecord`` objects. A missing file is an empty journal; a
    file that exists but cannot be parsed raises ``JournalCorruptError``.

Concurrency:
    ``append``, ``delete`` and ``clear`` are read-modify-write over the
    whole file. They run under an exclusive ``filelock.FileLock`` kept
    beside the journal, and the file is replaced atomically, so readers
    never observe a half-written journal. Every operation reloads from
    disk; no state is cached between calls.

Rollback:
    Rewrites every file of a record to its stored content verbatim. It
    does not diff and will clobber whatever is on disk at those paths,
    unless the caller opts in with ``check_drift=True``.
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from filelock import FileLock, Timeout
from pydantic import TypeAdapter, ValidationError

from tablegen.config import DEFAULT_HISTORY_DIR
from tablegen.errors import (
    DriftDetectedError,
    JournalCorruptError,
    JournalLockError,
    RecordNotFoundError,
)
from tablegen.models import GeneratedFile, GenerationRecord
from tablegen.utils import ensure_directory, read_file, sha256_hex, write_file

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("tablegen.history")

JOURNAL_FILE_NAME: str = "history.json"
LOCK_FILE_NAME: str = "history.json.lock"

_RECORDS_ADAPTER: TypeAdapter = TypeAdapter(List[GenerationRecord])


def new_record_id() -> str:
    """Time-ordered record id, ``gen_<nanoseconds since epoch>``."""
    return f"gen_{time.time_ns()}"


class HistoryJournal:
    """
    Append-only, checksummed store of ``GenerationRecord`` objects.

    Args:
        history_dir: Directory holding ``history.json``.
        lock_timeout: Seconds to wait for the journal lock.
    """

    def __init__(
        self,
        history_dir: Union[str, Path] = DEFAULT_HISTORY_DIR,
        lock_timeout: float = 30.0,
    ) -> None:
        self.history_dir: Path = Path(history_dir)
        self.lock_timeout: float = lock_timeout

    @property
    def path(self) -> Path:
        return self.history_dir / JOURNAL_FILE_NAME

    def _lock(self) -> FileLock:
        ensure_directory(self.history_dir)
        return FileLock(str(self.history_dir / LOCK_FILE_NAME), timeout=self.lock_timeout)

    # -- persistence --------------------------------------------------------

    def _load(self) -> List[GenerationRecord]:
        if not self.path.exists():
            return []
        try:
            raw: Any = json.loads(read_file(self.path))
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise JournalCorruptError(f"Malformed journal {self.path}: {exc}") from exc
        if raw is None:
            return []
        try:
            return _RECORDS_ADAPTER.validate_python(raw)
        except ValidationError as exc:
            raise JournalCorruptError(f"Invalid journal {self.path}: {exc}") from exc

    def _save(self, records: List[GenerationRecord]) -> None:
        data: List[Dict[str, Any]] = [r.model_dump(mode="json") for r in records]
        write_file(self.path, json.dumps(data, indent=2, ensure_ascii=False) + "\n")
        logger.debug("Persisted %d records to %s", len(records), self.path)

    def _mutate(self, fn: Any) -> Any:
        try:
            with self._lock():
                records: List[GenerationRecord] = self._load()
                result: Any = fn(records)
                self._save(records)
                return result
        except Timeout as exc:
            raise JournalLockError(
                f"Timed out after {self.lock_timeout}s waiting for {exc.lock_file}"
            ) from exc

    # -- public API ---------------------------------------------------------

    def append(self, record: GenerationRecord) -> GenerationRecord:
        """Insert *record*, re-sort by creation time, persist the full set."""

        def _append(records: List[GenerationRecord]) -> None:
            records.append(record)
            records.sort(key=lambda r: r.generated_at)

        self._mutate(_append)
        logger.info(
            "Recorded %s for %s (%d files)", record.id, record.table, record.file_count
        )
        return record

    def list(self) -> List[GenerationRecord]:
        """All records in storage order (creation time ascending)."""
        return self._load()

    def find(self, record_id: str) -> Optional[GenerationRecord]:
        for record in self._load():
            if record.id == record_id:
                return record
        return None

    def get(self, record_id: str) -> GenerationRecord:
        """Like ``find`` but raises ``RecordNotFoundError``."""
        record: Optional[GenerationRecord] = self.find(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        return record

    def records_for_table(self, table_name: str) -> List[GenerationRecord]:
        return [r for r in self._load() if r.table == table_name]

    def latest(self) -> Optional[GenerationRecord]:
        records: List[GenerationRecord] = self._load()
        return records[-1] if records else None

    def detect_drift(self, record_id: str) -> List[str]:
        """
        Paths of *record_id* whose on-disk content was edited after the
        last generation that wrote them.

        For each file the expected content is taken from the newest record
        containing that path. Missing files are not drift.
        """
        records: List[GenerationRecord] = self._load()
        target: Optional[GenerationRecord] = next(
            (r for r in records if r.id == record_id), None
        )
        if target is None:
            raise RecordNotFoundError(record_id)

        expected: Dict[str, str] = {}
        for record in records:
            for f in record.files:
                expected[f.path] = f.checksum

        drifted: List[str] = []
        for f in target.files:
            disk: Path = Path(f.path)
            if not disk.is_file():
                continue
            if sha256_hex(read_file(disk)) != expected.get(f.path, f.checksum):
                drifted.append(f.path)
        return drifted

    def rollback(self, record_id: str, check_drift: bool = False) -> List[str]:
        """
        Restore every file of *record_id* to its stored content.

        Args:
            record_id: Record to restore.
            check_drift: Refuse with ``DriftDetectedError`` (writing
                nothing) if any target file was edited by hand.

        Returns:
            The restored paths, in record order.

        Raises:
            RecordNotFoundError: No such record; nothing is written.
        """
        record: GenerationRecord = self.get(record_id)

        if check_drift:
            drifted: List[str] = self.detect_drift(record_id)
            if drifted:
                raise DriftDetectedError(record_id, drifted)

        restored: List[str] = []
        for f in record.files:
            write_file(Path(f.path), f.content)
            restored.append(f.path)
            logger.debug("Restored %s", f.path)

        logger.info("Rolled back %s: %d files restored", record_id, len(restored))
        return restored

    def delete(self, record_id: str) -> GenerationRecord:
        """Remove one record. Files on disk are left untouched."""

        def _delete(records: List[GenerationRecord]) -> GenerationRecord:
            for i, record in enumerate(records):
                if record.id == record_id:
                    return records.pop(i)
            raise RecordNotFoundError(record_id)

        removed: GenerationRecord = self._mutate(_delete)
        logger.info("Deleted record %s", record_id)
        return removed

    def clear(self) -> int:
        """Remove every record and return how many there were."""

        def _clear(records: List[GenerationRecord]) -> int:
            count: int = len(records)
            records.clear()
            return count

        count: int = self._mutate(_clear)
        logger.info("Cleared %d records from %s", count, self.path)
        return count

    def __len__(self) -> int:
        return len(self._load())


def capture_file(path: Union[str, Path], kind: str) -> GeneratedFile:
    """
    Snapshot one written artifact by reading it back from disk.

    Advisory: an unreadable file is captured with empty content and a
    warning instead of aborting the run.
    """
    content: str = ""
    try:
        content = read_file(Path(path))
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Could not read back %s, recording empty content: %s", path, exc)
    return GeneratedFile(path=str(path), type=kind, content=content)


__all__: List[str] = [
    "JOURNAL_FILE_NAME",
    "LOCK_FILE_NAME",
    "new_record_id",
    "HistoryJournal",
    "capture_file",
]
