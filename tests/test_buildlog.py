"""Tests for BuildLog redirection and the post-mortem summary."""

import io
import os
import subprocess
from datetime import datetime

import pytest

from phpbuild.buildlog import BuildLog


@pytest.fixture
def log_paths(tmp_path):
    return tmp_path / "logs" / "5.4.0.log", tmp_path / "logs" / "5.4.0.error.log"


class TestPaths:
    """Log file naming."""

    def test_paths_are_derived_from_target_and_time(self, test_config):
        started = datetime(2024, 3, 1, 12, 30, 45)
        log = BuildLog.for_target(test_config, "5.4.0", started)
        assert log.log_path.name == "5.4.0-20240301-123045.log"
        assert log.error_log_path.name == "5.4.0-20240301-123045.error.log"
        assert log.log_path.parent == test_config.log_path

    def test_different_targets_same_second_never_collide(self, test_config):
        started = datetime(2024, 3, 1, 12, 30, 45)
        first = BuildLog.for_target(test_config, "5.4.0", started)
        second = BuildLog.for_target(test_config, "5.3.29", started)
        paths = {first.log_path, first.error_log_path, second.log_path, second.error_log_path}
        assert len(paths) == 4


class TestRedirection:
    """fd 1/2 redirection while the log is open."""

    def test_descriptors_go_to_the_two_files(self, log_paths):
        log_path, error_log_path = log_paths
        with BuildLog(log_path, error_log_path, live=io.StringIO()):
            os.write(1, b"compiling main.c\n")
            os.write(2, b"warning: implicit declaration\n")

        assert log_path.read_text() == "compiling main.c\n"
        assert error_log_path.read_text() == "warning: implicit declaration\n"

    def test_child_processes_inherit_redirection(self, log_paths):
        log_path, error_log_path = log_paths
        with BuildLog(log_path, error_log_path, live=io.StringIO()):
            subprocess.run(["sh", "-c", "echo from-child; echo child-error >&2"], check=True)

        assert "from-child" in log_path.read_text()
        assert "child-error" in error_log_path.read_text()

    def test_descriptors_restored_after_exception(self, log_paths):
        log_path, error_log_path = log_paths
        log = BuildLog(log_path, error_log_path, live=io.StringIO())

        with pytest.raises(RuntimeError):
            with log:
                raise RuntimeError("boom")

        assert not log.is_open
        os.write(1, b"after-close\n")
        assert "after-close" not in log_path.read_text()

    def test_open_truncates_previous_contents(self, log_paths):
        log_path, error_log_path = log_paths
        log_path.parent.mkdir(parents=True)
        log_path.write_text("stale\n")
        with BuildLog(log_path, error_log_path, live=io.StringIO(), redirect=False):
            pass
        assert log_path.read_text() == ""


class TestSummarize:
    """Post-mortem error log summary."""

    def test_empty_log_never_tails(self, log_paths, monkeypatch):
        def fail_tail(*args, **kwargs):
            raise AssertionError("tail_lines must not be called for an empty log")

        monkeypatch.setattr("phpbuild.buildlog.tail_lines", fail_tail)
        live = io.StringIO()
        log = BuildLog(*log_paths, live=live, redirect=False).open()

        lines = log.summarize()
        log.close()

        assert lines == []
        assert "Error log appears empty" in live.getvalue()

    def test_shows_exactly_last_ten_lines(self, log_paths):
        live = io.StringIO()
        log = BuildLog(*log_paths, live=live, redirect=False).open()
        log.error_log_path.write_text("".join(f"error-{i:02d}\n" for i in range(1, 16)))

        lines = log.summarize()
        log.close()

        assert lines == [f"error-{i:02d}" for i in range(6, 16)]
        output = live.getvalue()
        assert "error-05" not in output
        assert "error-06" in output
        assert "error-15" in output

    def test_prints_both_log_paths(self, log_paths):
        live = io.StringIO()
        log = BuildLog(*log_paths, live=live, redirect=False).open()
        log.summarize()
        log.close()

        output = live.getvalue()
        assert str(log_paths[0]) in output
        assert str(log_paths[1]) in output
