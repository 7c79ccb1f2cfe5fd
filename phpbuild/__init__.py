"""
phpbuild - resumable PHP build-and-install pipeline

Builds PHP from a php-src git checkout in fixed steps and can resume
from any step after a failure (phpbuild install <version> --continue N).
"""

__version__ = "0.1.0"


__all__ = ["BuildConfig", "load_config", "get_phpbuild_home"]

from .config import BuildConfig, load_config, get_phpbuild_home
