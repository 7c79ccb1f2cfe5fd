"""Pyrus (PEAR2 installer) bootstrap for a finished PHP install."""

import shutil
from pathlib import Path
from typing import Optional, Tuple
from urllib.error import URLError
from urllib.request import urlretrieve

from phpbuild.errors import BuildEnvironmentError
from phpbuild.tools.base import ToolAdapter


MINIMUM_VERSION: Tuple[int, int] = (5, 3)

WRAPPER_TEMPLATE = """#!/bin/sh
exec "{php}" -d phar.readonly=0 "{phar}" "{home}" "$@"
"""


class PyrusBootstrap(ToolAdapter):
    """
    Installs pyrus.phar into an install prefix.

    Pyrus needs PHP 5.3 or newer; older targets are skipped.
    """

    name = "pyrus"

    def __init__(self, url: str, cache_dir: Path, **kwargs):
        super().__init__(**kwargs)
        self.url = url
        self.cache_dir = Path(cache_dir)

    def is_compatible(self, major: int, minor: int) -> bool:
        return (major, minor) >= MINIMUM_VERSION

    def download(self) -> Path:
        """Fetch pyrus.phar into the cache unless it is already there."""
        phar = self.cache_dir / "pyrus.phar"
        if phar.exists():
            return phar
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.logger.info(f"Downloading {self.url}", extra={"event": "download"})
        try:
            urlretrieve(self.url, phar)
        except (URLError, OSError) as e:
            phar.unlink(missing_ok=True)
            raise BuildEnvironmentError(f"Could not download {self.url}: {e}", self.url)
        return phar

    def install_if_compatible(self, major: int, minor: int, install_prefix: Path) -> Optional[Path]:
        """
        Install Pyrus into install_prefix.

        Returns:
            Path of the pyrus wrapper script, or None when skipped
        """
        if not self.is_compatible(major, minor):
            self.logger.info(
                f"Skipping Pyrus: PHP {major}.{minor} is older than "
                f"{MINIMUM_VERSION[0]}.{MINIMUM_VERSION[1]}",
                extra={"event": "pyrus_skipped", "stage": "BootstrapPackageManager"},
            )
            return None

        prefix = Path(install_prefix)
        php = prefix / "bin" / "php"
        if not php.exists():
            raise BuildEnvironmentError(f"PHP binary not found: {php}", php)

        lib_dir = prefix / "lib"
        home = prefix / "share" / "pyrus"
        lib_dir.mkdir(parents=True, exist_ok=True)
        home.mkdir(parents=True, exist_ok=True)

        phar = lib_dir / "pyrus.phar"
        shutil.copyfile(self.download(), phar)

        wrapper = prefix / "bin" / "pyrus"
        wrapper.write_text(WRAPPER_TEMPLATE.format(php=php, phar=phar, home=home))
        wrapper.chmod(0o755)

        self.execute(str(wrapper), "set", "php_dir", str(prefix / "share" / "pear"), cwd=prefix)
        return wrapper
