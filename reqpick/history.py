"""reqpick history - previously entered variable values.

The log is a CSV file with one (variable_name, value, environment_name)
record per line. It is appended to as answers are confirmed and only
rewritten, atomically, when it grows past max_items.
"""

import csv
import os
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import structlog

from reqpick.errors import HistoryError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    variable_name: str
    value: str
    environment_name: str = ""


class HistoryStore:
    """One prompt session's view of the history log.

    Use HistoryStore.open() rather than constructing it directly.
    """

    def __init__(self, path: Path, handle, entries: list[HistoryEntry], max_items: int | None = None):
        self.path = path
        self.max_items = max_items
        self._handle = handle
        self._writer = csv.writer(handle, lineterminator="\n")
        self._existing = entries
        self._known = set(entries)
        self.new_entries: list[HistoryEntry] = []

    @classmethod
    @contextmanager
    def open(cls, path: str | Path, max_items: int | None = None):
        """Open the log for append+read for the duration of a session.

        On exit the log is trimmed to max_items if it grew past it.
        """
        path = Path(path).expanduser()
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            handle = open(path, "a+", encoding="utf-8", newline="")
        except OSError as e:
            raise HistoryError(f"Could not open history file {path}: {e}") from e

        try:
            handle.seek(0)
            entries = _read_entries(handle, path)
            handle.seek(0, os.SEEK_END)
        except (OSError, csv.Error, UnicodeDecodeError) as e:
            handle.close()
            raise HistoryError(f"Could not read history file {path}: {e}") from e

        store = cls(path, handle, entries, max_items)
        try:
            yield store
        finally:
            handle.close()
            store._evict()

    @property
    def entries(self) -> list[HistoryEntry]:
        """Everything in the log, oldest first, including this session's."""
        return self._existing + self.new_entries

    def matching(self, variable_name: str, environment_name: str = "") -> list[str]:
        """Values recorded for a variable in an environment, most recent first."""
        return [
            e.value
            for e in reversed(self.entries)
            if e.variable_name == variable_name and e.environment_name == environment_name
        ]

    def record(self, variable_name: str, value: str, environment_name: str = "") -> bool:
        """Append a new entry and flush it to disk.

        Returns False (and writes nothing) for an empty value or one
        already in the log.
        """
        if not value:
            return False
        entry = HistoryEntry(variable_name, value, environment_name)
        if entry in self._known:
            return False
        try:
            self._writer.writerow([entry.variable_name, entry.value, entry.environment_name])
            self._handle.flush()
            os.fsync(self._handle.fileno())
        except OSError as e:
            raise HistoryError(f"Could not write to history file {self.path}: {e}") from e
        self._known.add(entry)
        self.new_entries.append(entry)
        logger.debug("history_recorded", variable=variable_name, environment=environment_name)
        return True

    def _evict(self) -> None:
        if self.max_items is None:
            return
        entries = self.entries
        if len(entries) <= self.max_items:
            return
        keep = entries[len(entries) - self.max_items :] if self.max_items > 0 else []
        _rewrite(self.path, keep)
        logger.info("history_evicted", dropped=len(entries) - len(keep), kept=len(keep))


def _read_entries(handle, path: Path) -> list[HistoryEntry]:
    entries: list[HistoryEntry] = []
    seen: set[HistoryEntry] = set()
    for line_no, row in enumerate(csv.reader(handle), start=1):
        if len(row) != 3:
            logger.warning("history_row_skipped", path=str(path), line=line_no)
            continue
        entry = HistoryEntry(*row)
        if entry in seen:
            continue
        seen.add(entry)
        entries.append(entry)
    return entries


def _rewrite(path: Path, entries: list[HistoryEntry]) -> None:
    """Replace the log with entries via a temp file in the same directory."""
    try:
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="") as f:
                writer = csv.writer(f, lineterminator="\n")
                for e in entries:
                    writer.writerow([e.variable_name, e.value, e.environment_name])
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
    except OSError as e:
        raise HistoryError(f"Could not rewrite history file {path}: {e}") from e
