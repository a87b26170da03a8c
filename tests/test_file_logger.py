"""
Tests for the file logger integration
"""

import gzip
import os
import shutil
import tempfile
import time
from pathlib import Path

from filelog import AgeType, FileLogger, LoggerConfig, MessageLog, Severity
from filelog.engine import OPEN_ERROR_MESSAGE


def _wait_for(predicate, timeout=2.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class FileLoggerTestCase:
    def setup_method(self):
        self.temp_dir = Path(tempfile.mkdtemp())
        self.log_dir = self.temp_dir / "logs"
        self.config = LoggerConfig(
            directory=str(self.log_dir),
            max_size_bytes=1024,
            flush_interval=0.05,
            delete_old_enabled=False,
        )
        self.source = MessageLog()
        self.file_logger = None

    def teardown_method(self):
        if self.file_logger:
            self.file_logger.close()
        if self.temp_dir.exists():
            shutil.rmtree(self.temp_dir)

    def start(self):
        self.file_logger = FileLogger(self.config, source=self.source)
        return self.file_logger

    def read_log(self, directory=None):
        return ((directory or self.log_dir) / "app.log").read_text(encoding="utf-8")


class TestStartup(FileLoggerTestCase):
    def test_replays_buffered_messages(self):
        self.source.add_message("first", Severity.INFO, timestamp=1_700_000_000)
        self.source.add_message("second", Severity.WARNING, timestamp=1_700_000_001)

        file_logger = self.start()
        file_logger.flush()

        lines = self.read_log().splitlines()
        assert len(lines) == 2
        assert lines[0].startswith("(I) ") and lines[0].endswith(" - first")
        assert lines[1].startswith("(W) ") and lines[1].endswith(" - second")

    def test_writes_new_messages(self):
        file_logger = self.start()

        self.source.add_message("live message", Severity.CRITICAL)
        file_logger.flush()

        assert "(C) " in self.read_log()
        assert "live message" in self.read_log()

    def test_oversized_file_is_rotated_at_startup(self):
        self.log_dir.mkdir()
        (self.log_dir / "app.log").write_text("x" * 2000)

        self.start()

        assert (self.log_dir / "app.log.bak").read_text() == "x" * 2000
        assert self.read_log() == ""


class TestFlushTimer(FileLoggerTestCase):
    def test_buffered_write_reaches_disk_after_interval(self):
        self.start()

        self.source.add_message("eventually on disk")

        assert _wait_for(lambda: "eventually on disk" in self.read_log())

    def test_record_written_after_rotation_is_flushed(self):
        self.config.max_size_bytes = 100
        self.start()

        self.source.add_message("a" * 40)
        assert _wait_for(lambda: "a" * 40 in self.read_log())
        time.sleep(0.1)

        # Does not fit next to the first record, so it starts a new file
        self.source.add_message("b" * 40)

        assert _wait_for(lambda: "b" * 40 in self.read_log())
        assert "a" * 40 in (self.log_dir / "app.log.bak").read_text()

    def test_pending_timer_is_reused(self):
        self.config.flush_interval = 60
        file_logger = self.start()

        self.source.add_message("one")
        timer = file_logger._flusher
        self.source.add_message("two")

        assert timer is not None
        assert file_logger._flusher is timer

    def test_close_cancels_timer(self):
        self.config.flush_interval = 60
        file_logger = self.start()
        self.source.add_message("pending")
        timer = file_logger._flusher

        file_logger.close()

        assert file_logger._flusher is None
        assert not timer.is_alive() or timer.finished.is_set()
        assert "pending" in self.read_log()


class TestRotation(FileLoggerTestCase):
    def test_rotates_when_size_is_reached(self):
        self.config.max_size_bytes = 200
        file_logger = self.start()

        for i in range(20):
            self.source.add_message(f"message number {i:02d}", Severity.INFO)
        file_logger.flush()

        backups = sorted(self.log_dir.glob("app.log.bak*"))
        assert backups
        for backup in backups:
            assert backup.stat().st_size <= 200
        total = "".join(p.read_text() for p in backups) + self.read_log()
        for i in range(20):
            assert f"message number {i:02d}" in total

    def test_compressed_backups(self):
        self.config.max_size_bytes = 200
        self.config.compress_backups = True
        file_logger = self.start()

        for i in range(10):
            self.source.add_message(f"compressed message {i}")
        file_logger.wait_for_compression(timeout=10)

        compressed = list(self.log_dir.glob("app.log.bak*.gz"))
        assert compressed
        text = "".join(gzip.decompress(p.read_bytes()).decode() for p in compressed)
        assert "compressed message 0" in text


class TestChangePath(FileLoggerTestCase):
    def test_same_directory_is_a_no_op(self):
        file_logger = self.start()
        stream = file_logger.engine.stream

        file_logger.change_path(str(self.log_dir))

        assert file_logger.engine.stream is stream

    def test_moves_logging_to_new_directory(self):
        file_logger = self.start()
        self.source.add_message("before move")

        new_dir = self.temp_dir / "elsewhere"
        file_logger.change_path(new_dir)
        self.source.add_message("after move")
        file_logger.flush()

        assert file_logger.path == new_dir / "app.log"
        assert "before move" in self.read_log()
        assert "after move" not in self.read_log()
        assert "after move" in self.read_log(new_dir)

    def test_open_failure_disables_logging_until_next_change(self):
        blocker = self.temp_dir / "blocker"
        blocker.write_text("")
        self.config.directory = str(blocker / "logs")

        file_logger = self.start()

        critical = [m for m in self.source.get_messages() if m.severity is Severity.CRITICAL]
        assert [m.text for m in critical] == [OPEN_ERROR_MESSAGE]
        assert not file_logger.engine.is_open

        self.source.add_message("dropped")
        file_logger.change_path(self.log_dir)
        self.source.add_message("kept")
        file_logger.flush()

        assert "kept" in self.read_log()
        assert "dropped" not in self.read_log()

    def test_obsolete_file_in_new_directory_is_deleted(self):
        file_logger = self.start()
        new_dir = self.temp_dir / "old"
        new_dir.mkdir()
        stale = new_dir / "app.log"
        stale.write_text("ancient history\n")
        past = time.time() - 400 * 86400
        os.utime(stale, (past, past))

        file_logger.change_path(new_dir)
        file_logger.flush()

        assert "ancient history" not in self.read_log(new_dir)


class TestSetters(FileLoggerTestCase):
    def test_setters_update_config(self):
        file_logger = self.start()

        file_logger.set_max_size(4096)
        file_logger.set_age(6)
        file_logger.set_age_type(AgeType.YEARS)
        file_logger.set_backup(False)
        file_logger.set_compress_backups(True)
        file_logger.set_delete_old(True)

        assert self.config.max_size_bytes == 4096
        assert self.config.max_age == 6
        assert self.config.age_type == AgeType.YEARS
        assert self.config.backup_enabled is False
        assert self.config.compress_backups is True
        assert self.config.delete_old_enabled is True

    def test_setters_are_idempotent(self):
        file_logger = self.start()

        file_logger.set_max_size(512)
        file_logger.set_max_size(512)

        assert self.config.max_size_bytes == 512
        assert file_logger.engine.is_open

    def test_age_type_accepts_integers(self):
        file_logger = self.start()

        file_logger.set_age_type(0)
        assert self.config.age_type is AgeType.DAYS

        file_logger.set_age_type(17)
        assert self.config.age_type == 17

    def test_delete_old_on_demand(self):
        file_logger = self.start()
        old = self.log_dir / "app.log.bak"
        old.write_text("old")
        past = time.time() - 90 * 86400
        os.utime(old, (past, past))

        assert file_logger.delete_old() == [old]
        assert not old.exists()


class TestClose(FileLoggerTestCase):
    def test_close_stops_listening(self):
        file_logger = self.start()
        file_logger.close()

        self.source.add_message("after close")

        assert file_logger.closed
        assert "after close" not in self.read_log()

    def test_close_is_idempotent(self):
        file_logger = self.start()
        file_logger.close()
        file_logger.close()

    def test_context_manager(self):
        with FileLogger(self.config, source=self.source) as file_logger:
            self.source.add_message("inside")

        assert file_logger.closed
        assert "inside" in self.read_log()
