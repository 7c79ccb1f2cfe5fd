"""Git adapter for the php-src working tree."""

import subprocess
from pathlib import Path
from typing import List

from phpbuild.tools.base import ToolAdapter
from phpbuild.versions import sort_versions, version_from_tag


class GitRepository(ToolAdapter):
    """
    Source repository backed by a local git clone.

    The clone lives at a fixed path and is reused across targets; each
    target is built on its own local branch cut from the release tag.
    """

    name = "git"
    executables = ("git",)

    def __init__(self, path: Path, url: str, **kwargs):
        """
        Initialize GitRepository.

        Args:
            path: Working tree location (e.g. ~/.phpbuild/php-src)
            url: Remote to clone from
        """
        super().__init__(workdir=path, **kwargs)
        self.path = Path(path)
        self.url = url

    @property
    def is_cloned(self) -> bool:
        return (self.path / ".git").exists()

    def ensure_cloned(self) -> None:
        """Clone the repository unless a clone already exists."""
        if self.is_cloned:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.execute("git", "clone", self.url, str(self.path), cwd=self.path.parent)

    def fetch_latest(self) -> None:
        """Fetch new commits and tags from the remote."""
        self.ensure_cloned()
        self.execute("git", "fetch", "--tags", "--prune", "origin")

    def list_tags(self) -> List[str]:
        """Release versions known to the clone, oldest first."""
        result = self.execute(
            "git", "tag", "--list", "php-*",
            stdout=subprocess.PIPE,
            text=True,
        )
        versions = [version_from_tag(tag.strip()) for tag in result.stdout.splitlines()]
        return sort_versions(v for v in versions if v)

    def checkout_branch(self, name: str, base_tag: str) -> None:
        """Create (or reset) local branch `name` at `base_tag` and check it out."""
        self.execute("git", "checkout", "-B", name, base_tag)

    def reset_and_clean(self, untracked: bool = True) -> None:
        """Discard local changes and remove untracked and ignored files."""
        self.execute("git", "reset", "--hard")
        if untracked:
            self.execute("git", "clean", "-f", "-d", "-x")

