"""
Live progress output for a build run.

Every line is "%35s %-65s": a marker right-aligned in 35 columns and a
message left-aligned in 65. Numbered step lines carry the running step
counter, which the reporter reads from the workflow state but never
changes.
"""

import sys
from typing import Optional, TextIO

from rich.console import Console

from phpbuild.utils import format_duration


LINE_FORMAT = "%35s %-65s"


class StepReporter:
    """Formats status lines and final summaries on the live channel."""

    def __init__(self, live: Optional[TextIO] = None):
        self.live = live or sys.stderr
        self.lines_written = 0

    def format_line(self, marker: str, message: str, step_number: Optional[int] = None) -> str:
        if step_number is not None:
            marker = f"[{step_number}] {marker}"
        return LINE_FORMAT % (marker, message)

    def report(self, marker: str, message: str, step_number: Optional[int] = None) -> str:
        """Write one status line and return it."""
        line = self.format_line(marker, message, step_number)
        self.live.write(line + "\n")
        self.live.flush()
        self.lines_written += 1
        return line

    def _console(self) -> Console:
        return Console(file=self.live, highlight=False, soft_wrap=True)

    def success(self, target: str, install_prefix, duration_seconds: float, log_path, error_log_path) -> None:
        console = self._console()
        console.rule(f"[bold green]PHP {target} installed[/bold green]")
        console.print(f"Prefix:    {install_prefix}", markup=False)
        console.print(f"Duration:  {format_duration(duration_seconds)}", markup=False)
        console.print(f"Full log:  {log_path}", markup=False)
        console.print(f"Error log: {error_log_path}", markup=False)

    def failure(
        self,
        target: str,
        step_label: str,
        step_number: int,
        exit_code: int,
        resume_command: str,
    ) -> None:
        console = self._console()
        console.rule(f"[bold red]PHP {target} failed[/bold red]")
        console.print(
            f"Step [{step_number}] {step_label} failed with exit code {exit_code}",
            markup=False,
        )
        console.print(f"Resume with: {resume_command}", markup=False)

    def interrupted(self, target: str, step_number: int) -> None:
        console = self._console()
        console.rule(f"[bold yellow]PHP {target} interrupted[/bold yellow]")
        console.print(f"Interrupted during step [{step_number}]", markup=False)
