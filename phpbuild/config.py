"""
Configuration management for phpbuild.

Loads config.yaml from the phpbuild home directory ($PHPBUILD_HOME,
default ~/.config/phpbuild). A missing file yields the built-in defaults.
"""

import os
import re
from dataclasses import dataclass, field, fields
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from phpbuild.errors import ConfigError, ValidationError


DEFAULT_CONFIGURE_OPTIONS = [
    "--disable-all",
    "--enable-cli",
    "--enable-fpm",
    "--enable-mbstring",
    "--enable-pdo",
    "--with-pdo-sqlite",
    "--with-sqlite3",
    "--with-openssl",
    "--with-zlib",
]

DEFAULT_VARIANTS: Dict[str, List[str]] = {
    "debug": ["--enable-debug"],
    "zts": ["--enable-maintainer-zts"],
    "full": ["--enable-intl", "--with-curl", "--with-readline", "--enable-sockets"],
}

_UNSAFE_NAME = re.compile(r"[^A-Za-z0-9._-]+")


def get_phpbuild_home() -> Path:
    """Directory holding config.yaml ($PHPBUILD_HOME or ~/.config/phpbuild)."""
    home = os.environ.get("PHPBUILD_HOME")
    if home:
        return Path(home).expanduser()
    return Path("~/.config/phpbuild").expanduser()


def safe_name(target: str) -> str:
    """Make a target identifier usable as a file name component."""
    return _UNSAFE_NAME.sub("_", target).strip("_") or "target"


@dataclass
class BuildConfig:
    """Complete phpbuild configuration."""

    root: str = "~/.phpbuild"
    source_dir: Optional[str] = None
    versions_dir: Optional[str] = None
    log_dir: Optional[str] = None
    state_dir: Optional[str] = None
    cache_dir: Optional[str] = None
    extensions_dir: Optional[str] = None
    patches_dir: Optional[str] = None
    repository_url: str = "https://github.com/php/php-src.git"
    configure_options: List[str] = field(default_factory=lambda: list(DEFAULT_CONFIGURE_OPTIONS))
    variants: Dict[str, List[str]] = field(default_factory=lambda: dict(DEFAULT_VARIANTS))
    extensions: List[str] = field(default_factory=list)
    default_ini: str = "development"
    pyrus_url: str = "https://pear2.php.net/pyrus.phar"
    prompt_timeout: int = 10
    make_jobs: int = 1
    patches: Dict[str, List[str]] = field(default_factory=dict)
    logging: Dict[str, Any] = field(default_factory=dict)

    def _dir(self, value: Optional[str], default: str) -> Path:
        if value:
            return Path(value).expanduser()
        return Path(self.root).expanduser() / default

    @property
    def source_path(self) -> Path:
        return self._dir(self.source_dir, "php-src")

    @property
    def versions_path(self) -> Path:
        return self._dir(self.versions_dir, "versions")

    @property
    def log_path(self) -> Path:
        return self._dir(self.log_dir, "logs")

    @property
    def state_path(self) -> Path:
        return self._dir(self.state_dir, "state")

    @property
    def cache_path(self) -> Path:
        return self._dir(self.cache_dir, "cache")

    @property
    def extensions_path(self) -> Path:
        return self._dir(self.extensions_dir, "extensions")

    @property
    def patches_path(self) -> Path:
        return self._dir(self.patches_dir, "patches")

    def install_prefix(self, target: str) -> Path:
        """Destination tree for a finished build of target."""
        return self.versions_path / target

    def log_paths(self, target: str, started_at: datetime) -> Tuple[Path, Path]:
        """
        Full-output and error-only log paths for one invocation.

        Keyed by target and start second, so different targets started in
        the same second never share a file.
        """
        stem = f"{safe_name(target)}-{started_at.strftime('%Y%m%d-%H%M%S')}"
        return self.log_path / f"{stem}.log", self.log_path / f"{stem}.error.log"

    def state_file(self, target: str) -> Path:
        return self.state_path / f"{safe_name(target)}.json"

    def lock_file(self, target: str) -> Path:
        return self.state_path / f"{safe_name(target)}.lock"

    def variant_options(self, name: Optional[str]) -> List[str]:
        """Option tokens seeded by a variant (none when name is empty)."""
        if not name:
            return []
        if name not in self.variants:
            available = ", ".join(sorted(self.variants)) or "none"
            raise ValidationError(f"Unknown variant: {name} (available: {available})")
        return list(self.variants[name] or [])

    def patch_rules(self) -> Dict[Tuple[int, int, str], List[str]]:
        """
        Extra patch rules from the config file.

        Keys look like "5.3/darwin"; values are patch file names relative
        to patches_dir.
        """
        rules: Dict[Tuple[int, int, str], List[str]] = {}
        for key, files in (self.patches or {}).items():
            try:
                version, platform_name = str(key).split("/", 1)
                major, minor = (int(part) for part in version.split(".", 1))
            except ValueError:
                raise ConfigError(f"Invalid patch rule key '{key}', expected MAJOR.MINOR/PLATFORM")
            rules[(major, minor, platform_name.lower())] = list(files or [])
        return rules

    def get_log_file_path(self) -> Path:
        """Structured event log path with date interpolation."""
        default = str(self.log_path / "phpbuild-{date}.jsonl")
        output = self.logging.get("output", default)
        output = output.replace("{date}", datetime.now().strftime("%Y-%m-%d"))
        return Path(output).expanduser()

    def get_log_level(self) -> str:
        return str(self.logging.get("level", "INFO")).upper()

    def should_log_to_console(self) -> bool:
        return bool(self.logging.get("console", True))

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def load_config(config_path: Optional[Path] = None) -> BuildConfig:
    """
    Load phpbuild configuration from YAML.

    Args:
        config_path: Explicit config file. Defaults to
            $PHPBUILD_HOME/config.yaml, which may be absent.

    Returns:
        BuildConfig instance

    Raises:
        ConfigError: If an explicit file is missing, or the YAML is invalid
    """
    explicit = config_path is not None
    if config_path is None:
        config_path = get_phpbuild_home() / "config.yaml"

    if not config_path.exists():
        if explicit:
            raise ConfigError(f"Configuration file not found: {config_path}")
        return BuildConfig()

    try:
        with open(config_path, "r") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax in {config_path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration root must be a mapping: {config_path}")

    known = {f.name for f in fields(BuildConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

    return BuildConfig(**data)
