"""Shared state of a run: the job queue and the DDL script sink.

Every worker receives the same :class:`TransferContext`; the queue and the
sink serialize concurrent access with their own locks.
"""
import sys
import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, TextIO

from oracle_to_postgresql_pkg.config import TransferSettings


class JobQueue:
    """Thread-safe queue of table names waiting to be processed."""

    def __init__(self, names: Iterable[str] = ()):
        self._lock = threading.Lock()
        self._pending = deque()
        self.push(names)

    def push(self, names: Iterable[str]) -> int:
        """Append names that are not pending yet; return how many were added."""
        added = 0
        with self._lock:
            for name in names:
                if name not in self._pending:
                    self._pending.append(name)
                    added += 1
        return added

    def pop(self) -> Optional[str]:
        """Remove and return the first pending name, or None when drained."""
        with self._lock:
            if not self._pending:
                return None
            return self._pending.popleft()

    def initialize(self, names: Iterable[str]) -> None:
        with self._lock:
            self._pending.clear()
        self.push(names)

    def pending(self) -> List[str]:
        with self._lock:
            return list(self._pending)

    def __len__(self):
        with self._lock:
            return len(self._pending)


class DDLSink:
    """Serialized writer of the DDL script."""

    def __init__(self, stream: Optional[TextIO] = None):
        self._stream = stream if stream is not None else sys.stdout
        self._lock = threading.Lock()

    def _write(self, text: str) -> None:
        with self._lock:
            self._stream.write(text + "\n")
            self._stream.flush()

    def statement(self, sql: str) -> None:
        self._write(sql + ";")

    def section(self, title: str) -> None:
        """Major banner, e.g. one per schema or table."""
        self._write(f"\n--\n-- {title}\n--\n")

    def subsection(self, title: str) -> None:
        self._write(f"\n-- {title}")

    def comment(self, text: str) -> None:
        self._write(f"--{text}")

    def close(self) -> None:
        with self._lock:
            if self._stream not in (sys.stdout, sys.stderr):
                self._stream.close()
            else:
                self._stream.flush()


@dataclass
class TransferContext:
    """Settings plus the synchronized queue and sink handed to every worker."""

    settings: TransferSettings
    ddl: DDLSink = field(default_factory=DDLSink)
    jobs: JobQueue = field(default_factory=JobQueue)

    def initialize_jobs(self) -> None:
        self.jobs.initialize(self.settings.tables)
