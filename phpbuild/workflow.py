"""
Resumable build workflow.

The pipeline is a fixed, totally ordered sequence of steps. A run may
start with a continuation cursor (--continue N): every step whose index
is <= N is omitted instead of dispatched, so an interrupted build picks
up where it stopped without re-running work already on disk.

The machine never handles collaborator failures. They propagate to the
installer, which owns log redirection and the post-mortem report. An
OSError raised by a step (permissions, full disk) is re-raised as
BuildEnvironmentError so it takes the same path as a tool failure.
"""

import logging
import platform
import time
from dataclasses import dataclass, field
from enum import IntEnum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence

from phpbuild.errors import BuildEnvironmentError, ValidationError
from phpbuild.options import ConfigureOptionSet
from phpbuild.reporter import StepReporter
from phpbuild.tools import Toolchain
from phpbuild.utils import format_duration
from phpbuild.versions import Version, tag_for_version


class Step(IntEnum):
    """Pipeline stages in execution order."""

    FETCH = 0
    BRANCH = 1
    PATCH = 2
    CONFIGURE = 3
    COMPILE = 4
    WRITE_CONFIG = 5
    BOOTSTRAP_PACKAGE_MANAGER = 6
    BUILD_EXTRAS = 7

    @property
    def label(self) -> str:
        return _LABELS[self]

    @classmethod
    def last(cls) -> "Step":
        return max(cls)


_LABELS = {
    Step.FETCH: "Fetch",
    Step.BRANCH: "Branch",
    Step.PATCH: "Patch",
    Step.CONFIGURE: "Configure",
    Step.COMPILE: "Compile",
    Step.WRITE_CONFIG: "WriteConfig",
    Step.BOOTSTRAP_PACKAGE_MANAGER: "BootstrapPackageManager",
    Step.BUILD_EXTRAS: "BuildExtras",
}


def validate_resume_from(resume_from: Optional[int]) -> Optional[int]:
    """Reject resume points outside 0..7."""
    if resume_from is None:
        return None
    if isinstance(resume_from, bool) or not isinstance(resume_from, int):
        raise ValidationError(f"Resume point must be an integer, got {resume_from!r}")
    if resume_from < 0 or resume_from > Step.last():
        raise ValidationError(
            f"Resume point {resume_from} is out of range (0..{int(Step.last())})"
        )
    return resume_from


class WorkflowState:
    """
    Progress of one invocation.

    Attributes:
        target: Release being built (e.g. "5.4.0")
        install_prefix: Destination tree for the build
        completed: Running step counter. Each step raises it to its own
            index when omitted or dispatched, so after a failure it names
            the failed step and after a full run it is 7.
        current: Step in flight, None between steps
        finished: Steps omitted or completed successfully, in order
        omitted: Steps skipped by the continuation cursor
        dispatched: Steps handed to a collaborator
    """

    def __init__(self, target: str, install_prefix: Path, resume_from: Optional[int] = None):
        self.target = target
        self.install_prefix = Path(install_prefix)
        self._resume_from = validate_resume_from(resume_from)
        self.completed = 0
        self.current: Optional[Step] = None
        self.finished: List[Step] = []
        self.omitted: List[Step] = []
        self.dispatched: List[Step] = []

    @property
    def resume_from(self) -> Optional[int]:
        return self._resume_from

    @property
    def version(self) -> Version:
        return Version.parse(self.target)

    def should_skip(self, step: Step) -> bool:
        return self._resume_from is not None and step <= self._resume_from

    def advance(self, step: Step) -> int:
        """Raise the counter to step; it never goes down."""
        self.completed = max(self.completed, int(step))
        return self.completed

    def omit(self, step: Step) -> None:
        self.omitted.append(step)
        self.finished.append(step)

    def begin(self, step: Step) -> None:
        self.current = step
        self.dispatched.append(step)

    def finish(self, step: Step) -> None:
        self.finished.append(step)
        self.current = None

    @property
    def resume_cursor(self) -> Optional[int]:
        """Index of the last finished step, the value to pass to --continue."""
        if not self.finished:
            return None
        return int(max(self.finished))

    @property
    def is_complete(self) -> bool:
        return self.current is None and Step.last() in self.finished

    def __repr__(self) -> str:
        return (
            f"WorkflowState(target={self.target}, resume_from={self._resume_from}, "
            f"completed={self.completed}, current={self.current})"
        )


def current_platform() -> str:
    return platform.system().lower()


@dataclass
class BuildPlan:
    """Inputs the steps need beyond the collaborators themselves."""

    options: ConfigureOptionSet
    ini: Optional[str] = None
    extensions: Sequence[str] = field(default_factory=list)
    platform: str = field(default_factory=current_platform)


class WorkflowMachine:
    """Dispatches each step to its collaborator in order."""

    def __init__(
        self,
        toolchain: Toolchain,
        plan: BuildPlan,
        reporter: StepReporter,
        logger: Optional[logging.Logger] = None,
    ):
        self.toolchain = toolchain
        self.plan = plan
        self.reporter = reporter
        self.logger = logger or logging.getLogger("phpbuild")
        self._handlers: Dict[Step, Callable[[WorkflowState], str]] = {
            Step.FETCH: self._fetch,
            Step.BRANCH: self._branch,
            Step.PATCH: self._patch,
            Step.CONFIGURE: self._configure,
            Step.COMPILE: self._compile,
            Step.WRITE_CONFIG: self._write_config,
            Step.BOOTSTRAP_PACKAGE_MANAGER: self._bootstrap_package_manager,
            Step.BUILD_EXTRAS: self._build_extras,
        }

    def run(self, state: WorkflowState) -> WorkflowState:
        """
        Execute steps 0..7, omitting those at or below the resume point.

        Raises:
            ExternalToolFailure: From the first failing collaborator,
                with state.current still set to the failed step
            BuildEnvironmentError: A step hit an OSError
        """
        for step in Step:
            state.advance(step)

            if state.should_skip(step):
                state.omit(step)
                self.reporter.report(step.label, "omitted", state.completed)
                self.logger.info(
                    f"Step {step.label} omitted",
                    extra={"stage": step.label, "event": "step_omitted"},
                )
                continue

            state.begin(step)
            self.reporter.report(step.label, "running", state.completed)
            self.logger.info(
                f"Starting step: {step.label}",
                extra={"stage": step.label, "event": "step_started"},
            )
            start_time = time.time()

            try:
                detail = self._handlers[step](state)
            except OSError as e:
                raise BuildEnvironmentError(str(e), getattr(e, "filename", None)) from e

            duration = time.time() - start_time
            state.finish(step)
            self.reporter.report(step.label, f"{detail} ({format_duration(duration)})", state.completed)
            self.logger.info(
                f"Step {step.label} completed",
                extra={
                    "stage": step.label,
                    "event": "step_completed",
                    "metadata": {"duration_seconds": duration},
                },
            )

        return state

    def _fetch(self, state: WorkflowState) -> str:
        self.toolchain.repo.fetch_latest()
        return "done"

    def _branch(self, state: WorkflowState) -> str:
        branch = f"build-{state.target}"
        self.toolchain.repo.reset_and_clean()
        self.toolchain.repo.checkout_branch(branch, tag_for_version(state.target))
        return f"on {branch}"

    def _patch(self, state: WorkflowState) -> str:
        version = state.version
        applied = self.toolchain.patches.apply_if_applicable(
            version.major, version.minor, self.plan.platform
        )
        if not applied:
            return "skipped, no patches apply"
        return f"applied {len(applied)} patch(es)"

    def _configure(self, state: WorkflowState) -> str:
        args = self.plan.options.to_args()
        self.logger.info(
            "Configure options: " + " ".join(args),
            extra={"stage": Step.CONFIGURE.label, "event": "configure_options", "metadata": {"options": args}},
        )
        build_tool = self.toolchain.build_tool
        build_tool.clean_artifacts()
        build_tool.buildconf()
        build_tool.configure(args)
        return "done"

    def _compile(self, state: WorkflowState) -> str:
        self.toolchain.build_tool.compile()
        self.toolchain.build_tool.install()
        return "installed"

    def _write_config(self, state: WorkflowState) -> str:
        written = self.toolchain.config_writer.write(state.install_prefix, self.plan.ini)
        return f"wrote {Path(written).name}"

    def _bootstrap_package_manager(self, state: WorkflowState) -> str:
        version = state.version
        wrapper = self.toolchain.package_manager.install_if_compatible(
            version.major, version.minor, state.install_prefix
        )
        if wrapper is None:
            return f"skipped, PHP {version.major}.{version.minor} too old"
        return "pyrus installed"

    def _build_extras(self, state: WorkflowState) -> str:
        built = self.toolchain.extensions.build_all(list(self.plan.extensions), state.install_prefix)
        if not built:
            return "skipped, no extensions"
        return f"built {len(built)} extension(s)"
