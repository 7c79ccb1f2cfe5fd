"""php.ini seeding for a fresh install prefix."""

import shutil
from pathlib import Path
from typing import Optional

from phpbuild.errors import BuildEnvironmentError
from phpbuild.tools.base import ToolAdapter


class ConfigWriter(ToolAdapter):
    """
    Copies a php.ini template into <prefix>/etc.

    The template is either a path to an existing file or a suffix naming
    one of the templates shipped in php-src (php.ini-development,
    php.ini-production, ...).
    """

    name = "ini"

    def __init__(self, source_dir: Path, default_template: str = "development", **kwargs):
        super().__init__(**kwargs)
        self.source_dir = Path(source_dir)
        self.default_template = default_template

    def resolve_template(self, template: Optional[str] = None) -> Path:
        template = template or self.default_template
        candidate = Path(template).expanduser()
        if candidate.is_file():
            return candidate

        shipped = self.source_dir / f"php.ini-{template}"
        if shipped.is_file():
            return shipped

        raise BuildEnvironmentError(
            f"php.ini template not found: {template} (looked for {candidate} and {shipped})",
            shipped,
        )

    def write(self, install_prefix: Path, template: Optional[str] = None) -> Path:
        """Install the template as <prefix>/etc/php.ini and create conf.d."""
        source = self.resolve_template(template)
        etc = Path(install_prefix) / "etc"
        (etc / "conf.d").mkdir(parents=True, exist_ok=True)
        destination = etc / "php.ini"
        shutil.copyfile(source, destination)
        self.logger.info(
            f"Wrote {destination} from {source}",
            extra={"event": "ini_written", "stage": "WriteConfig"},
        )
        return destination
