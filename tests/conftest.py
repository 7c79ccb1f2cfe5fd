import io
from pathlib import Path

import pytest

from phpbuild.config import BuildConfig
from phpbuild.errors import ExternalToolFailure
from phpbuild.installer import Installer
from phpbuild.tools import Toolchain
from phpbuild.workflow import Step


# Collaborator calls each step makes when dispatched.
STEP_CALLS = {
    Step.FETCH: ["repo.fetch_latest"],
    Step.BRANCH: ["repo.reset_and_clean", "repo.checkout_branch"],
    Step.PATCH: ["patches.apply_if_applicable"],
    Step.CONFIGURE: ["build_tool.clean_artifacts", "build_tool.buildconf", "build_tool.configure"],
    Step.COMPILE: ["build_tool.compile", "build_tool.install"],
    Step.WRITE_CONFIG: ["config_writer.write"],
    Step.BOOTSTRAP_PACKAGE_MANAGER: ["package_manager.install_if_compatible"],
    Step.BUILD_EXTRAS: ["extensions.build_all"],
}

VALIDATION_CALLS = {"repo.ensure_cloned", "repo.list_tags"}


class Recorder:
    """Shared call log for fake collaborators."""

    def __init__(self):
        self.calls = []
        self.failures = {}

    def hit(self, name, *args):
        self.calls.append((name, args))
        if name in self.failures:
            raise ExternalToolFailure([name], self.failures[name])

    def names(self):
        return [name for name, _ in self.calls]

    def args_of(self, name):
        return [args for call, args in self.calls if call == name]


class FakeRepo:
    def __init__(self, recorder, tags):
        self.recorder = recorder
        self.tags = list(tags)
        self.path = Path("/nonexistent/php-src")
        self.is_cloned = True

    def ensure_cloned(self):
        self.recorder.hit("repo.ensure_cloned")

    def fetch_latest(self):
        self.recorder.hit("repo.fetch_latest")

    def list_tags(self):
        self.recorder.hit("repo.list_tags")
        return list(self.tags)

    def checkout_branch(self, name, base_tag):
        self.recorder.hit("repo.checkout_branch", name, base_tag)

    def reset_and_clean(self):
        self.recorder.hit("repo.reset_and_clean")


class FakePatches:
    def __init__(self, recorder):
        self.recorder = recorder

    def apply_if_applicable(self, major, minor, platform):
        self.recorder.hit("patches.apply_if_applicable", major, minor, platform)
        return []


class FakeBuildTool:
    def __init__(self, recorder):
        self.recorder = recorder

    def clean_artifacts(self):
        self.recorder.hit("build_tool.clean_artifacts")

    def buildconf(self):
        self.recorder.hit("build_tool.buildconf")
        return 0

    def configure(self, options):
        self.recorder.hit("build_tool.configure", list(options))
        return 0

    def compile(self):
        self.recorder.hit("build_tool.compile")
        return 0

    def install(self):
        self.recorder.hit("build_tool.install")
        return 0


class FakeConfigWriter:
    def __init__(self, recorder):
        self.recorder = recorder

    def write(self, install_prefix, template=None):
        self.recorder.hit("config_writer.write", install_prefix, template)
        return Path(install_prefix) / "etc" / "php.ini"


class FakePackageManager:
    def __init__(self, recorder):
        self.recorder = recorder

    def install_if_compatible(self, major, minor, install_prefix):
        self.recorder.hit("package_manager.install_if_compatible", major, minor)
        return None


class FakeExtensions:
    def __init__(self, recorder):
        self.recorder = recorder

    def build_all(self, names, install_prefix):
        self.recorder.hit("extensions.build_all", list(names))
        return [f"extension={name}.so" for name in names]

    def clean_all(self):
        self.recorder.hit("extensions.clean_all")
        return []


@pytest.fixture
def test_config(tmp_path):
    return BuildConfig(
        root=str(tmp_path / "phpbuild"),
        configure_options=["--enable-cli", "--with-openssl", "--with-mysql=/usr"],
        variants={"debug": ["--enable-debug"], "mysql": ["--with-mysql=/opt/mysql"]},
        logging={"console": False},
    )


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def toolchain(recorder):
    return Toolchain(
        repo=FakeRepo(recorder, ["5.3.29", "5.4.0", "5.4.1"]),
        patches=FakePatches(recorder),
        build_tool=FakeBuildTool(recorder),
        config_writer=FakeConfigWriter(recorder),
        package_manager=FakePackageManager(recorder),
        extensions=FakeExtensions(recorder),
    )


@pytest.fixture
def live():
    return io.StringIO()


@pytest.fixture
def installer(test_config, toolchain, live):
    return Installer(
        test_config,
        toolchain=toolchain,
        live=live,
        redirect=False,
        confirm=lambda question, timeout: False,
        configure_logging=False,
    )
