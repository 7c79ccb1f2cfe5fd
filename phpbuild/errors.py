"""
Error classes for phpbuild.

The error types map one-to-one onto process exit codes:
- ValidationError: bad target, variant or resume point (no steps run)
- ExternalToolFailure: a collaborator (git, make, ...) exited non-zero
- BuildEnvironmentError: expected files or directories are missing mid-step

There are no retries. Every failure is terminal for the current invocation
and is surfaced by the installer with the step counter so the operator can
resume with --continue.
"""

from typing import Optional, Sequence


EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_TARGET_NOT_FOUND = 3
EXIT_LOCKED = 75
EXIT_INTERRUPTED = 130


class PhpBuildError(Exception):
    """Base exception for phpbuild."""

    exit_code = EXIT_FAILURE


class ValidationError(PhpBuildError):
    """
    Invalid input detected before any step runs.

    Examples:
    - Unknown release tag
    - Unknown variant name
    - Resume point outside the step range
    """
    pass


class TargetNotFoundError(ValidationError):
    """Requested target is not among the repository's release tags."""

    exit_code = EXIT_TARGET_NOT_FOUND

    def __init__(self, target: str, known: Sequence[str] = ()):
        self.target = target
        self.known = list(known)
        super().__init__(f"Unknown release: {target}")


class ConfigError(PhpBuildError):
    """Configuration file could not be loaded or is invalid."""
    pass


class LockContentionError(PhpBuildError):
    """Another live invocation holds the lock for this target."""

    exit_code = EXIT_LOCKED


class ExternalToolFailure(PhpBuildError):
    """
    An external tool exited with a non-zero status.

    The tool's own exit code is propagated unchanged as the process
    exit code.
    """

    def __init__(self, command: Sequence[str], exit_code: int, message: Optional[str] = None):
        self.command = list(command)
        self.exit_code = exit_code
        if message is None:
            message = f"Command failed with exit code {exit_code}: {' '.join(self.command)}"
        super().__init__(message)


class BuildEnvironmentError(ExternalToolFailure):
    """
    A file or directory a step depends on is missing.

    Treated exactly like a tool failure.
    """

    def __init__(self, message: str, path: Optional[object] = None):
        self.path = path
        super().__init__([], EXIT_FAILURE, message)
