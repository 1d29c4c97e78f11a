"""
Unit tests for the import diagnostic log.
"""

import re
from datetime import datetime

import pytest

from config import settings
from services.import_log import (
    FileImportLog,
    ImportLog,
    LogEntry,
    LogLevel,
    MemoryImportLog,
    get_default_log,
    render_data,
)

LINE_PATTERN = re.compile(r"^\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\.\d{3}\] \[(ERROR|INFO|VERBOSE)\] \[\w+\] ")


# ===================
# FORMAT TESTS
# ===================

class TestLogEntryFormat:
    """Tests for the text line format."""

    def test_line_without_data(self):
        entry = LogEntry(datetime(2024, 6, 1, 14, 3, 22, 517000), LogLevel.INFO, "import", "Importing buses.csv")

        assert entry.format() == "[2024-06-01 14:03:22.517] [INFO] [import] Importing buses.csv"

    def test_line_with_dict_data(self):
        entry = LogEntry(datetime(2024, 6, 1), LogLevel.ERROR, "detect", "Header missing", {"row": 3})

        assert entry.format().endswith('Header missing | Data: {"row": 3}')

    def test_render_data(self):
        assert render_data("Base kV, Status") == "Base kV, Status"
        assert render_data(["a", "b"]) == '["a", "b"]'
        assert render_data({"b", "a"}) == '["a", "b"]'
        assert render_data(42) == "42"


# ===================
# MEMORY LOG TESTS
# ===================

class TestMemoryImportLog:
    """Tests for the in-memory log."""

    def test_levels_recorded(self):
        log = MemoryImportLog(verbose_enabled=True)

        log.error("import", "bad")
        log.info("import", "fine")
        log.verbose("import", "chatty")

        assert [e.level for e in log.entries] == [LogLevel.ERROR, LogLevel.INFO, LogLevel.VERBOSE]
        assert log.messages(LogLevel.ERROR) == ["bad"]
        assert [e.message for e in log.errors] == ["bad"]

    def test_verbose_gated(self):
        log = MemoryImportLog(verbose_enabled=False)

        log.verbose("import", "chatty")
        log.info("import", "fine")

        assert log.messages() == ["fine"]

    def test_contains_and_clear(self):
        log = MemoryImportLog()
        log.info("import", "Imported 3 Bus records")

        assert log.contains("3 Bus")
        assert not log.contains("3 Bus", LogLevel.ERROR)

        log.clear()
        assert log.entries == []

    def test_lines_use_format(self):
        log = MemoryImportLog()
        log.info("populate", "hello", {"row": 1})

        assert LINE_PATTERN.match(log.lines()[0])


# ===================
# FILE LOG TESTS
# ===================

class TestFileImportLog:
    """Tests for the append-only file log."""

    def test_appends_lines(self, tmp_path):
        path = tmp_path / "logs" / "import.log"
        log = FileImportLog(path)

        log.info("import", "first")
        log.error("import", "second", {"row": 2})
        log.verbose("import", "hidden")

        lines = path.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 2
        assert all(LINE_PATTERN.match(line) for line in lines)
        assert lines[1].endswith('second | Data: {"row": 2}')

    def test_existing_content_kept(self, tmp_path):
        path = tmp_path / "import.log"
        path.write_text("previous run\n", encoding="utf-8")

        FileImportLog(path).info("import", "next run")

        assert path.read_text(encoding="utf-8").splitlines()[0] == "previous run"


class TestImportLogBase:
    def test_subclass_without_writer_cannot_be_created(self):
        class NoWriterLog(ImportLog):
            pass

        with pytest.raises(TypeError):
            NoWriterLog()


class TestDefaultLog:
    def test_memory_when_no_log_file(self):
        assert isinstance(get_default_log(), MemoryImportLog)

    def test_file_when_configured(self, tmp_path, monkeypatch):
        monkeypatch.setattr(settings, "log_file", str(tmp_path / "engine.log"))

        log = get_default_log()

        assert isinstance(log, FileImportLog)
        assert log.path == tmp_path / "engine.log"
