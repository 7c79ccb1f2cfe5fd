"""
Installer - top-level orchestration for one phpbuild invocation.

Validates the request, then runs the workflow inside two scoped
resources: the per-target lock and the redirected build log. Every
collaborator failure ends up here; it is reported once (tail of the
error log, both log paths, resume command) and turned into a RunResult
whose exit_code is the failing tool's own code.
"""

import json
import logging
import shlex
import shutil
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, TextIO

from phpbuild.buildlog import BuildLog
from phpbuild.config import BuildConfig
from phpbuild.errors import (
    EXIT_INTERRUPTED,
    EXIT_OK,
    BuildEnvironmentError,
    ExternalToolFailure,
    TargetNotFoundError,
)
from phpbuild.locking import TargetLock
from phpbuild.options import ConfigureOptionSet
from phpbuild.reporter import StepReporter
from phpbuild.tools import Toolchain
from phpbuild.tools.extensions import clear_cache
from phpbuild.utils import prompt_with_timeout, setup_logging
from phpbuild.workflow import BuildPlan, Step, WorkflowMachine, WorkflowState, validate_resume_from


@dataclass
class RunResult:
    """Result of one install invocation."""

    target: str
    success: bool
    started_at: datetime
    ended_at: datetime
    duration_seconds: float
    completed: int = 0
    exit_code: int = EXIT_OK
    failed_step: Optional[str] = None
    resume_from: Optional[int] = None
    resume_cursor: Optional[int] = None
    error_message: Optional[str] = None
    log_path: Optional[Path] = None
    error_log_path: Optional[Path] = None
    note: Optional[str] = None
    variant: Optional[str] = None
    ini: Optional[str] = None
    with_options: List[str] = field(default_factory=list)
    without: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "target": self.target,
            "success": self.success,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "duration_seconds": self.duration_seconds,
            "completed": self.completed,
            "exit_code": self.exit_code,
            "failed_step": self.failed_step,
            "resume_from": self.resume_from,
            "resume_cursor": self.resume_cursor,
            "error_message": self.error_message,
            "log_path": str(self.log_path) if self.log_path else None,
            "error_log_path": str(self.error_log_path) if self.error_log_path else None,
            "note": self.note,
            "variant": self.variant,
            "ini": self.ini,
            "with_options": list(self.with_options),
            "without": list(self.without),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunResult":
        return cls(
            target=data["target"],
            success=data["success"],
            started_at=datetime.fromisoformat(data["started_at"]),
            ended_at=datetime.fromisoformat(data["ended_at"]),
            duration_seconds=data["duration_seconds"],
            completed=data.get("completed", 0),
            exit_code=data.get("exit_code", EXIT_OK),
            failed_step=data.get("failed_step"),
            resume_from=data.get("resume_from"),
            resume_cursor=data.get("resume_cursor"),
            error_message=data.get("error_message"),
            log_path=Path(data["log_path"]) if data.get("log_path") else None,
            error_log_path=Path(data["error_log_path"]) if data.get("error_log_path") else None,
            note=data.get("note"),
            variant=data.get("variant"),
            ini=data.get("ini"),
            with_options=list(data.get("with_options") or []),
            without=list(data.get("without") or []),
        )

    def resume_command(self) -> str:
        """Command that continues this run with the same build inputs."""
        return resume_command(
            self.target, self.variant, self.resume_cursor, self.ini, self.with_options, self.without
        )


def resume_command(
    target: str,
    variant: Optional[str],
    cursor: Optional[int],
    ini: Optional[str] = None,
    with_options: Sequence[str] = (),
    without: Sequence[str] = (),
) -> str:
    """
    Shell command that repeats an install from cursor.

    Carries every option that changes what the remaining steps produce,
    so the resumed build matches the interrupted one.
    """
    parts = ["phpbuild", "install", target]
    if variant:
        parts.append(variant)
    if cursor is not None:
        parts.extend(["--continue", str(cursor)])
    if ini:
        parts.extend(["--ini", ini])
    for token in with_options:
        parts.extend(["--with", token])
    for prefix in without:
        parts.extend(["--without", prefix])
    return " ".join(shlex.quote(part) for part in parts)


class Installer:
    """
    Main install orchestrator.

    Collaborators are injectable so tests can record calls instead of
    running git and make.
    """

    def __init__(
        self,
        config: BuildConfig,
        toolchain: Optional[Toolchain] = None,
        live: Optional[TextIO] = None,
        redirect: bool = True,
        confirm: Optional[Callable[[str, float], bool]] = None,
        configure_logging: bool = True,
    ):
        """
        Initialize installer.

        Args:
            config: phpbuild configuration
            toolchain: Collaborators (defaults to subprocess-backed adapters)
            live: Live progress channel (defaults to the original stderr)
            redirect: Redirect fd 1/2 into the build logs during a run
            confirm: Yes/no prompt used for an existing installation
            configure_logging: Install the phpbuild log handlers per run
        """
        self.config = config
        self.toolchain = toolchain or Toolchain.from_config(config)
        self.live = live
        self.redirect = redirect
        self.confirm = confirm or (lambda question, timeout: prompt_with_timeout(question, timeout))
        self.configure_logging = configure_logging
        self.logger = logging.getLogger("phpbuild")

    def known_releases(self, refresh: bool = False) -> List[str]:
        """Release versions in the source repository, oldest first."""
        repo = self.toolchain.repo
        repo.ensure_cloned()
        if refresh:
            repo.fetch_latest()
        return repo.list_tags()

    def validate_target(self, target: str) -> None:
        """
        Raises:
            TargetNotFoundError: If target is not a known release
        """
        releases = self.known_releases()
        if target not in releases:
            raise TargetNotFoundError(target, releases)

    def build_options(
        self,
        target: str,
        variant: Optional[str] = None,
        with_options: Sequence[str] = (),
        without: Sequence[str] = (),
    ) -> ConfigureOptionSet:
        """
        Compose configure options for a target.

        Order: configured defaults, variant tokens, user tokens, user
        removals, then the protected install-prefix bindings.
        """
        options = ConfigureOptionSet(self.config.configure_options)
        for token in [*self.config.variant_options(variant), *with_options]:
            options.set(token)
        for prefix in without:
            options.remove(prefix)

        prefix = self.config.install_prefix(target)
        options.bind("--with-config-file-path", str(prefix / "etc"))
        options.bind("--with-config-file-scan-dir", str(prefix / "etc" / "conf.d"))
        options.bind("--prefix", str(prefix))
        return options

    def _keep_existing(self, state: WorkflowState, assume_yes: bool) -> bool:
        """True when an existing install should be left alone."""
        if state.resume_from is not None or not state.install_prefix.exists():
            return False
        if assume_yes:
            replace = True
        else:
            replace = self.confirm(
                f"PHP {state.target} is already installed in {state.install_prefix}. Reinstall?",
                self.config.prompt_timeout,
            )
        if replace:
            try:
                shutil.rmtree(state.install_prefix)
            except OSError as e:
                raise BuildEnvironmentError(
                    f"Could not remove {state.install_prefix}: {e}", state.install_prefix
                ) from e
            return False
        return True

    def _setup_logging(self, verbose: bool) -> None:
        if not self.configure_logging:
            return
        level = "DEBUG" if verbose else self.config.get_log_level()
        setup_logging(
            self.config.get_log_file_path(),
            level,
            "structured",
            self.config.should_log_to_console(),
        )

    def install(
        self,
        target: str,
        variant: Optional[str] = None,
        resume_from: Optional[int] = None,
        ini: Optional[str] = None,
        with_options: Sequence[str] = (),
        without: Sequence[str] = (),
        assume_yes: bool = False,
        verbose: bool = False,
    ) -> RunResult:
        """
        Run or resume the workflow for target.

        Raises:
            ValidationError: Bad resume point, variant or target (before
                any output is redirected and before any step runs)
            LockContentionError: Another live invocation builds target

        Returns:
            RunResult; exit_code carries the failing tool's code
        """
        validate_resume_from(resume_from)
        options = self.build_options(target, variant, with_options, without)
        self.validate_target(target)

        state = WorkflowState(target, self.config.install_prefix(target), resume_from)
        started_at = datetime.now()
        start_time = time.time()

        plan = BuildPlan(options=options, ini=ini, extensions=list(self.config.extensions))
        build_log = BuildLog.for_target(
            self.config, target, started_at, live=self.live, redirect=self.redirect
        )
        run_id = uuid.uuid4().hex
        result = RunResult(
            target=target,
            success=False,
            started_at=started_at,
            ended_at=started_at,
            duration_seconds=0.0,
            resume_from=resume_from,
            log_path=build_log.log_path,
            error_log_path=build_log.error_log_path,
            variant=variant,
            ini=ini,
            with_options=list(with_options),
            without=list(without),
        )

        with TargetLock(self.config.lock_file(target), run_id):
            if self._keep_existing(state, assume_yes):
                return RunResult(
                    target=target,
                    success=True,
                    started_at=started_at,
                    ended_at=datetime.now(),
                    duration_seconds=time.time() - start_time,
                    resume_from=resume_from,
                    note=f"Kept existing installation in {state.install_prefix}",
                )

            with build_log:
                self._setup_logging(verbose)
                reporter = StepReporter(build_log.live)
                machine = WorkflowMachine(self.toolchain, plan, reporter, self.logger)
                self.logger.info(
                    f"Installing PHP {target}",
                    extra={
                        "event": "install_started",
                        "metadata": {"target": target, "variant": variant, "resume_from": resume_from, "run_id": run_id},
                    },
                )
                try:
                    machine.run(state)
                    result.success = True
                    result.duration_seconds = time.time() - start_time
                    reporter.success(
                        target, state.install_prefix, result.duration_seconds,
                        build_log.log_path, build_log.error_log_path,
                    )
                    self.logger.info(
                        f"PHP {target} installed",
                        extra={"event": "install_completed", "metadata": {"duration_seconds": result.duration_seconds}},
                    )
                except ExternalToolFailure as e:
                    failed = state.current if state.current is not None else Step(state.completed)
                    result.exit_code = e.exit_code
                    result.failed_step = failed.label
                    result.error_message = str(e)
                    self.logger.error(
                        f"Step {failed.label} failed: {e}",
                        extra={"stage": failed.label, "event": "install_failed", "metadata": {"exit_code": e.exit_code}},
                    )
                    build_log.summarize()
                    reporter.failure(
                        target, failed.label, state.completed, e.exit_code,
                        resume_command(target, variant, state.resume_cursor, ini, with_options, without),
                    )
                except KeyboardInterrupt:
                    result.exit_code = EXIT_INTERRUPTED
                    result.failed_step = state.current.label if state.current is not None else None
                    result.error_message = "Interrupted"
                    self.logger.warning("Install interrupted", extra={"event": "install_interrupted"})
                    reporter.interrupted(target, state.completed)
                    build_log.summarize()

        result.completed = state.completed
        result.resume_cursor = state.resume_cursor
        result.ended_at = datetime.now()
        result.duration_seconds = time.time() - start_time
        self._save_state(result)
        return result

    def clean(self, deep: bool = False) -> List[str]:
        """
        Reset the source tree; deep also resets extension trees and the cache.

        Returns:
            Human-readable list of what was cleaned
        """
        cleaned = []
        repo = self.toolchain.repo
        if repo.is_cloned:
            repo.reset_and_clean()
            cleaned.append(f"source tree {repo.path}")
        if deep:
            for source in self.toolchain.extensions.clean_all():
                cleaned.append(f"extension {source.name}")
            if clear_cache(self.config.cache_path):
                cleaned.append(f"cache {self.config.cache_path}")
        return cleaned

    def status(self, target: str) -> Optional[RunResult]:
        """
        Get the result of the last install run for target.

        Returns:
            RunResult from last run, or None if there is none
        """
        state_file = self.config.state_file(target)
        if not state_file.exists():
            return None
        try:
            with open(state_file, "r") as f:
                return RunResult.from_dict(json.load(f))
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            self.logger.warning(f"Could not load run state {state_file}: {e}")
            return None

    def _save_state(self, result: RunResult) -> None:
        state_file = self.config.state_file(result.target)
        state_file.parent.mkdir(parents=True, exist_ok=True)
        with open(state_file, "w") as f:
            json.dump(result.to_dict(), f, indent=2)
