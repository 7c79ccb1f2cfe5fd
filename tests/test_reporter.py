"""Tests for StepReporter line formatting and summaries."""

import io

from phpbuild.reporter import LINE_FORMAT, StepReporter


class TestFormatLine:
    """Tests for the fixed-width status line."""

    def test_marker_right_aligned_message_left_aligned(self):
        reporter = StepReporter(io.StringIO())
        line = reporter.format_line("Fetch", "running")
        assert line == LINE_FORMAT % ("Fetch", "running")
        assert line[:35] == " " * 30 + "Fetch"
        assert line[36:43] == "running"
        assert len(line) == 35 + 1 + 65

    def test_step_number_prefix(self):
        reporter = StepReporter(io.StringIO())
        line = reporter.format_line("Compile", "running", step_number=4)
        assert line[:35].endswith("[4] Compile")

    def test_long_message_is_not_truncated(self):
        reporter = StepReporter(io.StringIO())
        message = "x" * 80
        assert message in reporter.format_line("Configure", message)


class TestReport:
    """Tests for writing to the live channel."""

    def test_report_writes_full_width_lines(self):
        live = io.StringIO()
        reporter = StepReporter(live)

        reporter.report("Patch", "omitted", 2)
        reporter.report("Configure", "running", 3)

        lines = live.getvalue().splitlines()
        assert len(lines) == 2
        assert lines[0] == LINE_FORMAT % ("[2] Patch", "omitted")
        assert len(lines[1]) == 35 + 1 + 65
        assert reporter.lines_written == 2


class TestSummaries:
    """Tests for success, failure and interrupt summaries."""

    def test_success_mentions_prefix_and_logs(self, tmp_path):
        live = io.StringIO()
        StepReporter(live).success(
            "5.4.0", tmp_path / "5.4.0", 75.0, tmp_path / "a.log", tmp_path / "a.error.log"
        )
        output = live.getvalue()
        assert "PHP 5.4.0 installed" in output
        assert str(tmp_path / "5.4.0") in output
        assert "1m 15s" in output
        assert "a.error.log" in output

    def test_failure_names_step_code_and_resume_command(self):
        live = io.StringIO()
        StepReporter(live).failure("5.4.0", "Compile", 4, 2, "phpbuild install 5.4.0 --continue 3")
        output = live.getvalue()
        assert "Step [4] Compile failed with exit code 2" in output
        assert "Resume with: phpbuild install 5.4.0 --continue 3" in output

    def test_interrupted(self):
        live = io.StringIO()
        StepReporter(live).interrupted("5.4.0", 4)
        assert "Interrupted during step [4]" in live.getvalue()
