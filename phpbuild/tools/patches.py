"""
Version-conditional source patches.

PATCH_TABLE maps (major, minor, platform) to the patch files that branch
needs before it will configure and compile. Files are looked up in the
configured patches directory. Rules from config.yaml extend or override
the built-in table.
"""

from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from phpbuild.errors import BuildEnvironmentError
from phpbuild.tools.base import ToolAdapter


PatchKey = Tuple[int, int, str]

PATCH_TABLE: Dict[PatchKey, Tuple[str, ...]] = {
    (5, 2, "linux"): ("php-5.2-libxml2-2.9.patch", "php-5.2-openssl-1.0.patch"),
    (5, 2, "darwin"): ("php-5.2-libxml2-2.9.patch", "php-5.2-darwin-iconv.patch"),
    (5, 3, "darwin"): ("php-5.3-darwin-iconv.patch",),
    (5, 3, "linux"): ("php-5.3-openssl-1.0.patch",),
    (5, 4, "darwin"): ("php-5.4-darwin-dtrace.patch",),
}


class PatchApplier(ToolAdapter):
    """Applies the patches registered for a version/platform pair."""

    name = "patch"
    executables = ("patch",)

    def __init__(
        self,
        source_dir: Path,
        patches_dir: Path,
        extra_rules: Optional[Mapping[PatchKey, Sequence[str]]] = None,
        **kwargs,
    ):
        super().__init__(workdir=source_dir, **kwargs)
        self.patches_dir = Path(patches_dir)
        self.table: Dict[PatchKey, Tuple[str, ...]] = dict(PATCH_TABLE)
        for key, files in (extra_rules or {}).items():
            self.table[key] = tuple(files)

    def patches_for(self, major: int, minor: int, platform: str) -> Tuple[str, ...]:
        return self.table.get((major, minor, platform.lower()), ())

    def apply_if_applicable(self, major: int, minor: int, platform: str) -> List[Path]:
        """
        Apply every patch registered for (major, minor, platform).

        Returns:
            Patch files applied; empty when no rule matches

        Raises:
            BuildEnvironmentError: If a registered patch file is missing
            ExternalToolFailure: If patch exits non-zero
        """
        names = self.patches_for(major, minor, platform)
        if not names:
            self.logger.info(
                f"No patches for {major}.{minor} on {platform}",
                extra={"event": "patch_skipped", "stage": "Patch"},
            )
            return []

        files = [self.patches_dir / name for name in names]
        missing = [f for f in files if not f.is_file()]
        if missing:
            raise BuildEnvironmentError(
                f"Patch file not found: {missing[0]}", missing[0]
            )

        for patch_file in files:
            self.execute("patch", "-p1", "-N", "-i", str(patch_file))

        return files
