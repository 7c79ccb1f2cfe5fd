"""Per-extension phpize builds against an installed PHP."""

import shutil
from pathlib import Path
from typing import List, Sequence

from phpbuild.errors import BuildEnvironmentError
from phpbuild.tools.base import ToolAdapter


EXTENSIONS_INI = "extensions.ini"


class ExtensionBuilder(ToolAdapter):
    """
    Builds PECL-style extensions found under extensions_dir/<name>.

    Each successful build appends an extension= line to
    <prefix>/etc/conf.d/extensions.ini.
    """

    name = "phpize"

    def __init__(self, extensions_dir: Path, **kwargs):
        super().__init__(**kwargs)
        self.extensions_dir = Path(extensions_dir)

    def build(self, name: str, install_prefix: Path) -> str:
        """Build and install one extension; returns the generated ini line."""
        prefix = Path(install_prefix)
        source = self.extensions_dir / name
        if not source.is_dir():
            raise BuildEnvironmentError(f"Extension source not found: {source}", source)

        phpize = prefix / "bin" / "phpize"
        php_config = prefix / "bin" / "php-config"
        for tool in (phpize, php_config):
            if not tool.exists():
                raise BuildEnvironmentError(f"{tool.name} not found: {tool}", tool)

        self.execute(str(phpize), cwd=source)
        self.execute("./configure", f"--with-php-config={php_config}", cwd=source)
        self.execute("make", cwd=source)
        self.execute("make", "install", cwd=source)

        line = f"extension={name}.so"
        conf_d = prefix / "etc" / "conf.d"
        conf_d.mkdir(parents=True, exist_ok=True)
        with open(conf_d / EXTENSIONS_INI, "a") as f:
            f.write(line + "\n")
        return line

    def build_all(self, names: Sequence[str], install_prefix: Path) -> List[str]:
        """Build every extension in order; an empty list is a logged no-op."""
        if not names:
            self.logger.info(
                "No extensions configured",
                extra={"event": "extensions_skipped", "stage": "BuildExtras"},
            )
            return []
        return [self.build(name, install_prefix) for name in names]

    def clean_all(self) -> List[Path]:
        """Reset every extension tree that is a git checkout."""
        cleaned = []
        if not self.extensions_dir.is_dir():
            return cleaned
        for source in sorted(p for p in self.extensions_dir.iterdir() if p.is_dir()):
            if (source / ".git").exists():
                self.execute("git", "clean", "-f", "-d", "-x", cwd=source)
                cleaned.append(source)
        return cleaned


def clear_cache(cache_dir: Path) -> bool:
    """Delete the download cache; returns True when something was removed."""
    cache_dir = Path(cache_dir)
    if not cache_dir.exists():
        return False
    shutil.rmtree(cache_dir)
    return True
