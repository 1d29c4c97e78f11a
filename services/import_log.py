"""
Diagnostic log for import runs.

An ImportLog is passed into each import call. Entries are plain text
lines:

    [2024-06-01 14:03:22.517] [INFO] [import] Imported 12 Bus records | Data: {"sheet": "Buses"}

Every entry is also forwarded to structlog, so the same run shows up in
the application log. VERBOSE entries are dropped unless verbose_enabled.
"""

import json
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional, Union
import structlog

from config import settings

logger = structlog.get_logger(__name__)


class LogLevel(str, Enum):
    ERROR = "ERROR"
    INFO = "INFO"
    VERBOSE = "VERBOSE"


@dataclass(frozen=True)
class LogEntry:
    """One diagnostic line."""
    timestamp: datetime
    level: LogLevel
    category: str
    message: str
    data: Any = None

    def format(self) -> str:
        stamp = self.timestamp.strftime("%Y-%m-%d %H:%M:%S.") + f"{self.timestamp.microsecond // 1000:03d}"
        line = f"[{stamp}] [{self.level.value}] [{self.category}] {self.message}"
        if self.data is not None:
            line += f" | Data: {render_data(self.data)}"
        return line


def render_data(data: Any) -> str:
    """Render a structured payload as text (JSON for containers)."""
    if isinstance(data, str):
        return data
    if isinstance(data, (dict, list, tuple, set)):
        payload = sorted(data) if isinstance(data, set) else data
        return json.dumps(payload, default=str, ensure_ascii=False)
    return str(data)


class ImportLog(ABC):
    """
    Base diagnostic log.

    Subclasses implement _write(). Thread-safe for concurrent writers.
    """

    def __init__(self, verbose_enabled: bool = False):
        self.verbose_enabled = verbose_enabled
        self._lock = threading.Lock()

    def error(self, category: str, message: str, data: Any = None) -> None:
        self._log(LogLevel.ERROR, category, message, data)

    def info(self, category: str, message: str, data: Any = None) -> None:
        self._log(LogLevel.INFO, category, message, data)

    def verbose(self, category: str, message: str, data: Any = None) -> None:
        if self.verbose_enabled:
            self._log(LogLevel.VERBOSE, category, message, data)

    def _log(self, level: LogLevel, category: str, message: str, data: Any) -> None:
        entry = LogEntry(datetime.now(), level, category, message, data)
        _forward(entry)
        with self._lock:
            self._write(entry)

    @abstractmethod
    def _write(self, entry: LogEntry) -> None:
        """Persist one entry; called under the log lock."""


class FileImportLog(ImportLog):
    """Appends entries to a text file; the file is opened per write and closed."""

    def __init__(self, path: Union[str, Path], verbose_enabled: bool = False):
        super().__init__(verbose_enabled)
        self.path = Path(path)

    def _write(self, entry: LogEntry) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(entry.format() + "\n")


class MemoryImportLog(ImportLog):
    """Keeps entries in memory. Used by tests, audits and embedding callers."""

    def __init__(self, verbose_enabled: bool = True):
        super().__init__(verbose_enabled)
        self.entries: list[LogEntry] = []

    def _write(self, entry: LogEntry) -> None:
        self.entries.append(entry)

    def messages(self, level: Optional[LogLevel] = None) -> list[str]:
        return [e.message for e in self.entries if level is None or e.level == level]

    @property
    def errors(self) -> list[LogEntry]:
        return [e for e in self.entries if e.level == LogLevel.ERROR]

    def lines(self) -> list[str]:
        return [e.format() for e in self.entries]

    def contains(self, text: str, level: Optional[LogLevel] = None) -> bool:
        return any(text in m for m in self.messages(level))

    def clear(self) -> None:
        with self._lock:
            self.entries.clear()


def _forward(entry: LogEntry) -> None:
    context = {"category": entry.category}
    if entry.data is not None:
        context["data"] = entry.data
    if entry.level == LogLevel.ERROR:
        logger.error(entry.message, **context)
    elif entry.level == LogLevel.INFO:
        logger.info(entry.message, **context)
    else:
        logger.debug(entry.message, **context)


def get_default_log() -> ImportLog:
    """File-backed log configured from settings; in-memory if no log file is set."""
    if settings.log_file:
        return FileImportLog(settings.log_file, verbose_enabled=settings.verbose_logging)
    return MemoryImportLog(verbose_enabled=settings.verbose_logging)
