"""
Dual-stream build log.

While open, the process's file descriptors 1 and 2 point at two files:
the full-output log and the error-only log. Child processes inherit the
redirection, so compiler and git output land there too. The original
stderr is kept as the "live" channel for progress lines and the
post-mortem summary.
"""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional, TextIO

from rich.console import Console

from phpbuild.config import BuildConfig
from phpbuild.utils import count_lines, tail_lines


logger = logging.getLogger("phpbuild")

TAIL_LINES = 10

_LOG_FLAGS = os.O_WRONLY | os.O_CREAT | os.O_APPEND


class BuildLog:
    """
    Scoped redirection of stdout/stderr into two log files.

    Use as a context manager; the original descriptors are restored on
    every exit path, including KeyboardInterrupt.
    """

    def __init__(
        self,
        log_path: Path,
        error_log_path: Path,
        live: Optional[TextIO] = None,
        redirect: bool = True,
    ):
        """
        Initialize build log.

        Args:
            log_path: Full-output log (receives fd 1)
            error_log_path: Error-only log (receives fd 2)
            live: Explicit live channel. Defaults to a duplicate of the
                original stderr when redirecting, else sys.stderr.
            redirect: Redirect the process descriptors. Disabled in tests
                that only exercise summarize().
        """
        self.log_path = Path(log_path)
        self.error_log_path = Path(error_log_path)
        self.redirect = redirect
        self.live = live
        self._own_live = False
        self._saved_fds: Optional[tuple] = None
        self.is_open = False

    @classmethod
    def for_target(
        cls,
        config: BuildConfig,
        target: str,
        started_at: Optional[datetime] = None,
        **kwargs,
    ) -> "BuildLog":
        """Build log with paths derived from target and start time."""
        log_path, error_log_path = config.log_paths(target, started_at or datetime.now())
        return cls(log_path, error_log_path, **kwargs)

    def open(self) -> "BuildLog":
        """Truncate both logs and start redirecting."""
        if self.is_open:
            return self

        self.log_path.parent.mkdir(parents=True, exist_ok=True)
        self.error_log_path.parent.mkdir(parents=True, exist_ok=True)
        self.log_path.write_text("")
        self.error_log_path.write_text("")

        if self.redirect:
            sys.stdout.flush()
            sys.stderr.flush()
            saved_out = os.dup(1)
            saved_err = os.dup(2)
            self._saved_fds = (saved_out, saved_err)

            for target_fd, path in ((1, self.log_path), (2, self.error_log_path)):
                fd = os.open(path, _LOG_FLAGS, 0o644)
                try:
                    os.dup2(fd, target_fd)
                finally:
                    os.close(fd)

            if self.live is None:
                self.live = os.fdopen(os.dup(saved_err), "w", buffering=1)
                self._own_live = True
        elif self.live is None:
            self.live = sys.stderr

        self.is_open = True
        logger.debug(
            f"Build log opened: {self.log_path}",
            extra={
                "event": "buildlog_opened",
                "metadata": {"log": str(self.log_path), "error_log": str(self.error_log_path)},
            },
        )
        return self

    def close(self) -> None:
        """Restore the original stdout/stderr descriptors."""
        if not self.is_open:
            return

        try:
            sys.stdout.flush()
            sys.stderr.flush()
            if self.live is not None:
                self.live.flush()
        finally:
            if self._saved_fds is not None:
                saved_out, saved_err = self._saved_fds
                os.dup2(saved_out, 1)
                os.dup2(saved_err, 2)
                os.close(saved_out)
                os.close(saved_err)
                self._saved_fds = None
            if self._own_live and self.live is not None:
                self.live.close()
                self.live = None
                self._own_live = False
            self.is_open = False

    def __enter__(self) -> "BuildLog":
        return self.open()

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def console(self) -> Console:
        """Rich console bound to the live channel."""
        return Console(file=self.live or sys.stderr, highlight=False, soft_wrap=True)

    def summarize(self, limit: int = TAIL_LINES) -> List[str]:
        """
        Print the tail of the error log and both log paths to the live channel.

        Returns:
            The tail lines shown (empty when the error log is empty)
        """
        console = self.console()
        lines: List[str] = []

        if count_lines(self.error_log_path) == 0:
            console.print("Error log appears empty", markup=False)
        else:
            lines = tail_lines(self.error_log_path, limit)
            console.rule(f"last {len(lines)} lines of error log", characters="-")
            for line in lines:
                console.print(line, markup=False)
            console.rule(characters="-")

        console.print(f"Full log:  {self.log_path}", markup=False)
        console.print(f"Error log: {self.error_log_path}", markup=False)
        return lines

    def __repr__(self) -> str:
        return f"BuildLog(log={self.log_path}, error_log={self.error_log_path}, open={self.is_open})"
