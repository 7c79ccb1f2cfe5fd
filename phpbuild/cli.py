"""
CLI interface for phpbuild.

Provides commands: install, status, steps, validate, init.
"""

from pathlib import Path

import click
import yaml

from phpbuild import __version__
from phpbuild.errors import EXIT_FAILURE, PhpBuildError, TargetNotFoundError
from phpbuild.utils import (
    format_duration,
    install_signal_handlers,
    print_banner,
    print_error,
    print_info,
    print_success,
    print_warning,
)
from phpbuild.workflow import Step


def _installer(ctx):
    """Installer for this invocation (tests may inject one through ctx.obj)."""
    from phpbuild.installer import Installer

    if ctx.obj.get("installer") is not None:
        return ctx.obj["installer"]
    return Installer(ctx.obj["config"])


def _fail(error: PhpBuildError) -> None:
    print_error(str(error))
    if isinstance(error, TargetNotFoundError) and error.known:
        print_info("Latest known releases: " + ", ".join(error.known[-10:]))
        print_info("Run 'phpbuild install --releases' to refresh the list")
    raise SystemExit(error.exit_code)


@click.group()
@click.version_option(version=__version__, prog_name="phpbuild")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    help="Custom configuration file (default: $PHPBUILD_HOME/config.yaml)",
)
@click.pass_context
def main(ctx, config_path):
    """
    phpbuild - resumable PHP build-and-install pipeline.

    Fetch → Branch → Patch → Configure → Compile → WriteConfig →
    BootstrapPackageManager → BuildExtras
    """
    from phpbuild.config import load_config

    ctx.ensure_object(dict)
    if "config" in ctx.obj:
        return
    try:
        ctx.obj["config"] = load_config(config_path)
    except PhpBuildError as e:
        _fail(e)


@main.command()
@click.argument("target", required=False)
@click.argument("variant", required=False)
@click.option(
    "-c",
    "--continue",
    "resume_from",
    type=int,
    default=None,
    metavar="STEP",
    help="Resume after STEP; steps 0..STEP are omitted (see 'phpbuild steps')",
)
@click.option("--releases", is_flag=True, help="Refresh and list known releases")
@click.option("--clean", is_flag=True, help="Reset the source tree")
@click.option("--deep-clean", is_flag=True, help="Reset source and extension trees, clear caches")
@click.option("-i", "--ini", help="php.ini template: a file path or a suffix like 'production'")
@click.option("--with", "with_options", multiple=True, metavar="TOKEN", help="Extra configure option (repeatable)")
@click.option("--without", multiple=True, metavar="PREFIX", help="Drop configure options by prefix (repeatable)")
@click.option("-y", "--yes", "assume_yes", is_flag=True, help="Reinstall over an existing installation without asking")
@click.option("--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def install(ctx, target, variant, resume_from, releases, clean, deep_clean, ini, with_options, without, assume_yes, verbose):
    """
    Build and install PHP TARGET, optionally with a VARIANT profile.

    Examples:

      # Full build
      phpbuild install 5.4.0

      # Debug variant, production php.ini
      phpbuild install 5.4.0 debug --ini production

      # Resume after a failed compile (steps 0-3 are omitted)
      phpbuild install 5.4.0 --continue 3

      # List releases
      phpbuild install --releases
    """
    try:
        installer = _installer(ctx)
        if releases:
            for version in installer.known_releases(refresh=True):
                click.echo(version)
            return

        if clean or deep_clean:
            cleaned = installer.clean(deep=deep_clean)
            if not cleaned:
                print_info("Nothing to clean")
            for item in cleaned:
                print_success(f"Cleaned {item}")
            return

        if not target:
            raise click.UsageError("Missing argument 'TARGET'")

        install_signal_handlers()
        result = installer.install(
            target,
            variant=variant,
            resume_from=resume_from,
            ini=ini,
            with_options=with_options,
            without=without,
            assume_yes=assume_yes,
            verbose=verbose,
        )
    except PhpBuildError as e:
        _fail(e)

    if result.note:
        print_info(result.note)
    raise SystemExit(result.exit_code)


@main.command()
@click.argument("target")
@click.pass_context
def status(ctx, target):
    """
    Show the last install run for TARGET.

    Examples:

      phpbuild status 5.4.0
    """
    try:
        last_run = _installer(ctx).status(target)
    except PhpBuildError as e:
        _fail(e)

    if not last_run:
        print_info(f"No previous runs found for {target}")
        return

    status_text = "SUCCESS" if last_run.success else "FAILED"
    print_banner(f"PHP {target}")
    click.echo(f"Last Run: {last_run.started_at.strftime('%Y-%m-%d %H:%M:%S')}")
    click.echo(f"Status: {status_text} (exit code {last_run.exit_code})")
    click.echo(f"Duration: {format_duration(last_run.duration_seconds)}")
    click.echo(f"Step counter: {last_run.completed}")

    if last_run.failed_step:
        click.echo(f"Failed step: {last_run.failed_step}")
    if last_run.error_message:
        click.echo(f"Error: {last_run.error_message}")
    if not last_run.success and last_run.resume_cursor is not None:
        click.echo(f"Resume with: {last_run.resume_command()}")

    if last_run.log_path:
        click.echo(f"\nLogs: {last_run.log_path}")
        click.echo(f"      {last_run.error_log_path}")


@main.command()
def steps():
    """List pipeline steps with the numbers --continue expects."""
    for step in Step:
        click.echo(f"{int(step)}  {step.label}")


@main.command()
@click.pass_context
def validate(ctx):
    """
    Check that every external tool is available.

    Examples:

      phpbuild validate
    """
    try:
        installer = _installer(ctx)
    except PhpBuildError as e:
        _fail(e)
    failed = False

    for adapter in installer.toolchain.adapters():
        result = adapter.validate()
        if result["valid"]:
            print_success(f"{adapter.name}: ok")
        else:
            failed = True
            for error in result["errors"]:
                print_error(f"{adapter.name}: {error}")
        for warning in result.get("warnings", []):
            print_warning(f"{adapter.name}: {warning}")

    if failed:
        raise SystemExit(EXIT_FAILURE)


@main.command("init")
@click.option("--force", is_flag=True, help="Overwrite existing configuration")
def init(force: bool):
    """Initialize phpbuild configuration."""
    from phpbuild.config import BuildConfig, get_phpbuild_home

    home = get_phpbuild_home()
    home.mkdir(parents=True, exist_ok=True)

    cfg_path = home / "config.yaml"
    if cfg_path.exists() and not force:
        click.echo(f"Config already exists at {cfg_path}. Use --force to overwrite.", err=True)
        raise SystemExit(EXIT_FAILURE)

    cfg_path.write_text(yaml.safe_dump(BuildConfig().to_dict(), sort_keys=False))
    click.echo(f"Initialized phpbuild config at {cfg_path}")


if __name__ == "__main__":
    main()
