"""Tests for replica_sync.cli — end-to-end single passes through main()."""

import io
import logging
import os
import signal
import sys
from unittest.mock import MagicMock

import pytest
from conftest import snapshot, write

from replica_sync.cli import _listen_for_quit, _run_forever, main
from replica_sync.ignore import IgnoreMatcher
from replica_sync.logs import LOGGER_NAME
from replica_sync.reconciler import PassResult, PassStats
from replica_sync.scheduler import PassScheduler

needs_posix_signals = pytest.mark.skipif(sys.platform == "win32", reason="needs POSIX signal delivery")


@pytest.fixture(autouse=True)
def reset_logger():
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


class TestMainOnce:
    def test_single_pass_mirrors_and_logs(self, tmp_path):
        source = tmp_path / "src"
        write(source / "a.txt", "X")
        (source / "sub").mkdir()
        replica = tmp_path / "dst"
        log_file = tmp_path / "sync.log"

        code = main([str(source), str(replica), "10", str(log_file), "--once"])

        assert code == 0
        assert snapshot(replica) == {"a.txt": b"X", "sub": None}
        text = log_file.read_text(encoding="utf-8")
        assert "MKDIR | Created replica directory:" in text
        assert "COPY | Copied file: a.txt" in text
        assert "MKDIR | Created folder: sub" in text
        assert "Synchronization completed." in text

    def test_second_run_appends_without_actions(self, tmp_path):
        source = tmp_path / "src"
        write(source / "a.txt", "X")
        argv = [str(source), str(tmp_path / "dst"), "10", str(tmp_path / "sync.log"), "--once"]
        assert main(argv) == 0
        first = tmp_path.joinpath("sync.log").read_text(encoding="utf-8")

        assert main(argv) == 0

        second = tmp_path.joinpath("sync.log").read_text(encoding="utf-8")[len(first):]
        assert "Synchronization completed." in second
        for action in ("MKDIR |", "COPY |", "UPDATE |", "DELETE |", "RMDIR |"):
            assert action not in second

    def test_excludes_applied(self, tmp_path):
        source = tmp_path / "src"
        write(source / "a.txt", "X")
        write(source / "b.tmp", "T")

        code = main(
            [str(source), str(tmp_path / "dst"), "10", str(tmp_path / "sync.log"), "--once", "--exclude", "*.tmp"]
        )

        assert code == 0
        assert snapshot(tmp_path / "dst") == {"a.txt": b"X"}

    def test_config_error_exit_code(self, tmp_path):
        log_file = tmp_path / "sync.log"

        code = main([str(tmp_path / "missing"), str(tmp_path / "dst"), "10", str(log_file), "--once"])

        assert code == 2
        assert "Config error: Source folder does not exist" in log_file.read_text(encoding="utf-8")
        assert not (tmp_path / "dst").exists()

    def test_nested_roots_rejected(self, tmp_path):
        source = tmp_path / "src"
        source.mkdir()

        code = main([str(source), str(source / "dst"), "10", str(tmp_path / "sync.log"), "--once"])

        assert code == 2

    def test_log_path_is_a_folder(self, tmp_path, capsys):
        (tmp_path / "src").mkdir()
        (tmp_path / "logdir").mkdir()

        code = main([str(tmp_path / "src"), str(tmp_path / "dst"), "10", str(tmp_path / "logdir"), "--once"])

        assert code == 2
        assert "Config error: Log file path is a folder" in capsys.readouterr().err

    def test_log_inside_source_rejected_before_file_is_created(self, tmp_path, capsys):
        source = tmp_path / "src"
        source.mkdir()

        code = main([str(source), str(tmp_path / "dst"), "10", str(source / "sync.log"), "--once"])

        assert code == 2
        assert "inside source" in capsys.readouterr().err
        assert list(source.iterdir()) == []

    def test_unopenable_log_file(self, tmp_path, capsys):
        (tmp_path / "src").mkdir()
        (tmp_path / "blocker").write_text("a file, not a folder")

        code = main(
            [str(tmp_path / "src"), str(tmp_path / "dst"), "10", str(tmp_path / "blocker" / "sync.log"), "--once"]
        )

        assert code == 2
        assert "Cannot open log file" in capsys.readouterr().err


# -------------------------------------------------------------------------
# Process lifecycle
# -------------------------------------------------------------------------


def make_scheduler(logger, on_pass):
    """A scheduler whose reconciler calls on_pass(scheduler) during each pass."""
    reconciler = MagicMock()
    scheduler = PassScheduler(reconciler, 3600, logger)

    def run_pass():
        on_pass(scheduler)
        return PassResult(PassStats(), 0.0)

    reconciler.run_pass.side_effect = run_pass
    return scheduler


class TestListenForQuit:
    def test_q_stops_scheduler(self, monkeypatch):
        monkeypatch.setattr(sys, "stdin", io.StringIO("hello\n  Q \nq\n"))
        scheduler = MagicMock()

        _listen_for_quit(scheduler)

        scheduler.stop.assert_called_once()

    def test_other_input_ignored(self, monkeypatch):
        monkeypatch.setattr(sys, "stdin", io.StringIO("quit\nexit\n"))
        scheduler = MagicMock()

        _listen_for_quit(scheduler)

        scheduler.stop.assert_not_called()


class TestRunForever:
    def run(self, tmp_path, logger, monkeypatch, on_pass):
        monkeypatch.setattr(sys, "stdin", io.StringIO(""))
        scheduler = make_scheduler(logger, on_pass)
        code = _run_forever(tmp_path, IgnoreMatcher(), scheduler, False, logger)
        return code, scheduler

    def test_scheduler_stopping_itself_ends_cleanly(self, tmp_path, logger, recorder, monkeypatch):
        code, scheduler = self.run(tmp_path, logger, monkeypatch, lambda s: s.stop())

        assert code == 0
        assert scheduler.passes == 1
        assert recorder.records[-1].getMessage() == "Stopped."

    
    def test_sigterm_stops_after_current_pass(self, tmp_path, logger, recorder, monkeypatch):
        before = signal.getsignal(signal.SIGTERM)

        code, scheduler = self.run(
            tmp_path, logger, monkeypatch, lambda s: os.kill(os.getpid(), signal.SIGTERM)
        )

        assert code == 0
        assert scheduler.passes == 1
        assert recorder.records[-1].getMessage() == "Stopped."
        assert signal.getsignal(signal.SIGTERM) is before

    
    def test_keyboard_interrupt_stops_after_current_pass(self, tmp_path, logger, recorder, monkeypatch):
        code, scheduler = self.run(
            tmp_path, logger, monkeypatch, lambda s: os.kill(os.getpid(), signal.SIGINT)
        )

        messages = [r.getMessage() for r in recorder.records]
        assert code == 0
        assert scheduler.passes == 1
        assert "Stopping... (waiting for the current pass)" in messages
        assert messages[-1] == "Stopped."
