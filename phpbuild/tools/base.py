"""Base class for tool adapters."""

import logging
import shutil
import subprocess
from abc import ABC
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from phpbuild.errors import BuildEnvironmentError, ExternalToolFailure


class ToolAdapter(ABC):
    """
    Base class for tool adapters.

    Tool adapters give phpbuild a uniform way to drive external programs
    (git, patch, make, php). Output is not captured: it goes to whatever
    stdout/stderr currently point at, which is the build log during a run.
    A non-zero exit raises ExternalToolFailure carrying the tool's code.
    """

    name = "tool"
    executables: Sequence[str] = ()

    def __init__(self, workdir: Optional[Path] = None, logger: Optional[logging.Logger] = None):
        """
        Initialize the tool adapter.

        Args:
            workdir: Default working directory for commands
            logger: Logger instance (defaults to the phpbuild logger)
        """
        self.workdir = Path(workdir) if workdir else None
        self.logger = logger or logging.getLogger("phpbuild")

    def validate(self) -> Dict[str, Any]:
        """
        Validate that the tool can run on this machine.

        Returns:
            Dictionary with keys:
                - 'valid': bool indicating if validation passed
                - 'errors': list of error messages
                - 'warnings': list of warning messages
        """
        errors = [
            f"{exe} not found on PATH"
            for exe in self.executables
            if shutil.which(exe) is None
        ]
        return {"valid": not errors, "errors": errors, "warnings": []}

    def execute(self, *args: str, cwd: Optional[Path] = None, **kwargs) -> subprocess.CompletedProcess:
        """
        Run a command and fail loudly on a non-zero exit.

        Args:
            *args: Command and arguments
            cwd: Working directory (defaults to the adapter's workdir)
            **kwargs: Additional arguments passed to subprocess.run

        Returns:
            subprocess.CompletedProcess result

        Raises:
            BuildEnvironmentError: If the working directory is missing
            ExternalToolFailure: If the command exits non-zero
        """
        cmd: List[str] = [str(a) for a in args]
        cwd = Path(cwd) if cwd else self.workdir
        if cwd is not None and not cwd.is_dir():
            raise BuildEnvironmentError(f"Working directory does not exist: {cwd}", cwd)

        self.logger.info(
            " ".join(cmd),
            extra={"event": "command", "metadata": {"tool": self.name, "cwd": str(cwd) if cwd else None}},
        )
        try:
            result = subprocess.run(cmd, cwd=cwd, **kwargs)
        except FileNotFoundError as e:
            raise BuildEnvironmentError(f"Executable not found: {cmd[0]} ({e})", cmd[0])

        if result.returncode != 0:
            self.logger.error(
                f"{self.name} command failed with exit code {result.returncode}",
                extra={"event": "command_failed", "metadata": {"command": cmd, "exit_code": result.returncode}},
            )
            raise ExternalToolFailure(cmd, result.returncode)

        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(workdir={self.workdir})"
