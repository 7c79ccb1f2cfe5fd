"""Compiler toolchain adapter: buildconf, configure, make."""

from pathlib import Path
from typing import Sequence

from phpbuild.errors import BuildEnvironmentError
from phpbuild.tools.base import ToolAdapter


class BuildTool(ToolAdapter):
    """Drives the autotools build inside the php-src working tree."""

    name = "make"
    executables = ("make", "autoconf")

    def __init__(self, source_dir: Path, jobs: int = 1, **kwargs):
        super().__init__(workdir=source_dir, **kwargs)
        self.source_dir = Path(source_dir)
        self.jobs = max(1, int(jobs))

    def clean_artifacts(self) -> None:
        """Remove objects from a previous build, if any were configured."""
        if not (self.source_dir / "Makefile").exists():
            return
        self.execute("make", "distclean")

    def buildconf(self) -> int:
        """Generate ./configure for a git checkout."""
        if not (self.source_dir / "buildconf").exists():
            raise BuildEnvironmentError(
                f"buildconf not found in {self.source_dir}", self.source_dir
            )
        return self.execute("./buildconf", "--force").returncode

    def configure(self, options: Sequence[str]) -> int:
        return self.execute("./configure", *options).returncode

    def compile(self) -> int:
        return self.execute("make", f"-j{self.jobs}").returncode

    def install(self) -> int:
        return self.execute("make", "install").returncode
