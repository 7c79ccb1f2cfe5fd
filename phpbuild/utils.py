"""
Utility functions for phpbuild.

Includes logging, console output, interactive prompts, signal handling
and small file helpers.
"""

import json
import logging
import select
import signal
import sys
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, TextIO

from rich.console import Console
from rich.logging import RichHandler


# Global console for pretty output
console = Console()


def utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def setup_logging(
    log_file: Path,
    log_level: str = "INFO",
    log_format: str = "structured",
    console_output: bool = True,
) -> logging.Logger:
    """
    Set up logging for a build run.

    Args:
        log_file: Path to the structured event log
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: "structured" (JSON) or "pretty" (human-readable)
        console_output: Also log to standard output, which lands in the
            full build log while output is redirected

    Returns:
        Configured logger
    """
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("phpbuild")
    logger.setLevel(getattr(logging, log_level.upper()))
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers = []

    file_handler = logging.FileHandler(log_file)
    if log_format == "structured":
        file_handler.setFormatter(StructuredFormatter())
    else:
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
    logger.addHandler(file_handler)

    if console_output:
        if log_format == "pretty":
            console_handler = RichHandler(
                console=Console(file=sys.stdout), rich_tracebacks=True, show_time=False
            )
        else:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(
                logging.Formatter("%(levelname)s: %(message)s")
            )
        logger.addHandler(console_handler)

    return logger


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": utcnow().isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
        }

        if hasattr(record, "stage"):
            log_data["stage"] = record.stage
        if hasattr(record, "event"):
            log_data["event"] = record.event
        if hasattr(record, "metadata"):
            log_data["metadata"] = record.metadata

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def format_duration(seconds: float) -> str:
    """
    Format duration in seconds to human-readable string.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted string (e.g., "1m 23s", "45s")
    """
    if seconds < 60:
        return f"{int(seconds)}s"

    minutes = int(seconds // 60)
    remaining_seconds = int(seconds % 60)

    if minutes < 60:
        return f"{minutes}m {remaining_seconds}s"

    hours = minutes // 60
    remaining_minutes = minutes % 60
    return f"{hours}h {remaining_minutes}m {remaining_seconds}s"


def count_lines(path: Path) -> int:
    """Number of lines in a text file (0 when it does not exist)."""
    if not path.exists():
        return 0
    count = 0
    with open(path, "r", errors="replace") as f:
        for _ in f:
            count += 1
    return count


def tail_lines(path: Path, limit: int = 10) -> List[str]:
    """Last `limit` lines of a text file, without trailing newlines."""
    with open(path, "r", errors="replace") as f:
        return [line.rstrip("\n") for line in deque(f, maxlen=limit)]


def prompt_with_timeout(
    question: str,
    timeout: float,
    default: bool = False,
    stream: Optional[TextIO] = None,
    stdin: Optional[TextIO] = None,
) -> bool:
    """
    Ask a yes/no question, falling back to `default` after `timeout` seconds.

    A non-interactive stdin answers with the default immediately.
    """
    stream = stream or sys.stderr
    stdin = stdin or sys.stdin
    hint = "[Y/n]" if default else "[y/N]"
    stream.write(f"{question} {hint} (defaults to {'yes' if default else 'no'} in {int(timeout)}s) ")
    stream.flush()

    if not stdin.isatty():
        stream.write("\n")
        return default

    ready, _, _ = select.select([stdin], [], [], timeout)
    if not ready:
        stream.write("\n")
        return default

    answer = stdin.readline().strip().lower()
    if not answer:
        return default
    return answer in ("y", "yes")


def _raise_interrupt(signum, frame):
    raise KeyboardInterrupt(f"received signal {signum}")


def install_signal_handlers() -> None:
    """
    Turn SIGTERM and SIGHUP into KeyboardInterrupt.

    The interrupt unwinds through the build log's context manager, so the
    original stdout/stderr are restored before the process exits.
    """
    for signum in (signal.SIGTERM, signal.SIGHUP):
        signal.signal(signum, _raise_interrupt)


def print_banner(title: str) -> None:
    """
    Print a banner to console.

    Args:
        title: Banner title
    """
    console.rule(f"[bold blue]{title}[/bold blue]")


def print_success(message: str) -> None:
    """Print success message to console."""
    console.print(f"[bold green]✓[/bold green] {message}")


def print_error(message: str) -> None:
    """Print error message to console."""
    console.print(f"[bold red]✗[/bold red] {message}")


def print_warning(message: str) -> None:
    """Print warning message to console."""
    console.print(f"[bold yellow]⚠[/bold yellow] {message}")


def print_info(message: str) -> None:
    """Print info message to console."""
    console.print(f"[bold cyan]ℹ[/bold cyan] {message}")
