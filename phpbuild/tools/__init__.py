"""Tool adapters for the external programs phpbuild drives."""

from dataclasses import dataclass
from typing import List

from phpbuild.config import BuildConfig
from phpbuild.tools.base import ToolAdapter
from phpbuild.tools.compiler import BuildTool
from phpbuild.tools.extensions import ExtensionBuilder
from phpbuild.tools.git import GitRepository
from phpbuild.tools.inifile import ConfigWriter
from phpbuild.tools.patches import PatchApplier
from phpbuild.tools.pyrus import PyrusBootstrap


@dataclass
class Toolchain:
    """The collaborators a workflow dispatches steps to."""

    repo: GitRepository
    patches: PatchApplier
    build_tool: BuildTool
    config_writer: ConfigWriter
    package_manager: PyrusBootstrap
    extensions: ExtensionBuilder

    @classmethod
    def from_config(cls, config: BuildConfig) -> "Toolchain":
        source = config.source_path
        return cls(
            repo=GitRepository(source, config.repository_url),
            patches=PatchApplier(source, config.patches_path, config.patch_rules()),
            build_tool=BuildTool(source, jobs=config.make_jobs),
            config_writer=ConfigWriter(source, config.default_ini),
            package_manager=PyrusBootstrap(config.pyrus_url, config.cache_path),
            extensions=ExtensionBuilder(config.extensions_path),
        )

    def adapters(self) -> List[ToolAdapter]:
        return [
            self.repo,
            self.patches,
            self.build_tool,
            self.config_writer,
            self.package_manager,
            self.extensions,
        ]


__all__ = [
    "ToolAdapter",
    "Toolchain",
    "BuildTool",
    "ConfigWriter",
    "ExtensionBuilder",
    "GitRepository",
    "PatchApplier",
    "PyrusBootstrap",
]
