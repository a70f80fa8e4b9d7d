"""CLI entrypoint for hotpatch."""

import sys
from pathlib import Path

import click

from . import __version__
from .config import DEFAULT_CONFIG_FILE, LOG_LEVELS, load_config
from .log import configure_logging


def parse_registration(value: str) -> tuple[str, Path]:
    """Split a NAME=PATH argument."""
    name, sep, path = value.partition("=")
    if not sep or not name or not path:
        raise click.BadParameter(f"expected NAME=PATH, got {value!r}")
    return name, Path(path)


def _registrations(values: tuple[str, ...]) -> list[tuple[str, Path]]:
    return [parse_registration(v) for v in values]


@click.group()
@click.version_option(__version__, prog_name="hotpatch")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help=f"Configuration file (defaults to ./{DEFAULT_CONFIG_FILE})",
)
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default=None,
    help="Override the configured log level",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, log_level: str | None) -> None:
    """hotpatch - Swap Python implementations in a running process.

    Register modules by name, reload them from disk, and roll them back
    to archived versions.
    """
    ctx.ensure_object(dict)
    try:
        config = load_config(config_path)
    except ValueError as e:
        raise click.ClickException(str(e))

    if log_level:
        config.log_level = log_level.upper()
    configure_logging(config.log_level)

    ctx.obj["config"] = config
    ctx.obj["config_path"] = config_path


@cli.command()
@click.option(
    "--register",
    "registrations",
    multiple=True,
    metavar="NAME=PATH",
    help="Register a module before the shell starts. Repeatable.",
)
@click.pass_context
def repl(ctx: click.Context, registrations: tuple[str, ...]) -> None:
    """Start the interactive patch shell.

    Examples:

        hotpatch repl

        hotpatch repl --register greeter=./greeter.py
    """
    from .commands.repl_cmd import run_repl

    exit_code = run_repl(
        ctx.obj["config"],
        _registrations(registrations),
        config_path=ctx.obj["config_path"],
    )
    sys.exit(exit_code)


@cli.command()
@click.argument("registrations", nargs=-1, required=True, metavar="NAME=PATH...")
@click.pass_context
def watch(ctx: click.Context, registrations: tuple[str, ...]) -> None:
    """Reload registered files whenever they change.

    Runs until interrupted (Ctrl+C).

    Examples:

        hotpatch watch greeter=./greeter.py
    """
    from .commands.watch_cmd import run_watch

    exit_code = run_watch(
        ctx.obj["config"],
        _registrations(registrations),
        config_path=ctx.obj["config_path"],
    )
    sys.exit(exit_code)


@cli.command()
@click.argument("name")
@click.option("--json", "output_json", is_flag=True, help="Output the version log as JSON")
@click.pass_context
def history(ctx: click.Context, name: str, output_json: bool) -> None:
    """Show archived versions of NAME."""
    from .commands.history_cmd import run_history

    exit_code = run_history(ctx.obj["config"], name, output_json=output_json)
    sys.exit(exit_code)


@cli.command()
@click.argument("name")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--steps", type=click.IntRange(min=1), default=1, show_default=True, help="Versions to go back")
@click.pass_context
def rollback(ctx: click.Context, name: str, path: Path, steps: int) -> None:
    """Restore an archived version of NAME into PATH.

    Examples:

        hotpatch rollback greeter ./greeter.py

        hotpatch rollback greeter ./greeter.py --steps 2
    """
    from .commands.history_cmd import run_rollback

    exit_code = run_rollback(
        ctx.obj["config"],
        name,
        path,
        steps=steps,
        config_path=ctx.obj["config_path"],
    )
    sys.exit(exit_code)


# -----------------------------------------------------------------------------
# Store commands - inspect archived artifacts
# -----------------------------------------------------------------------------


@cli.group()
def store() -> None:
    """Inspect the artifact store."""
    pass


@store.command("ls")
@click.option("--prefix", default=None, help="Only keys starting with this prefix (e.g. 'greeter@')")
@click.pass_context
def store_ls(ctx: click.Context, prefix: str | None) -> None:
    """List stored artifact keys."""
    from .commands.store_cmd import run_store_ls

    sys.exit(run_store_ls(ctx.obj["config"], prefix=prefix))


@store.command("show")
@click.argument("key")
@click.pass_context
def store_show(ctx: click.Context, key: str) -> None:
    """Print the source stored under KEY."""
    from .commands.store_cmd import run_store_show

    sys.exit(run_store_show(ctx.obj["config"], key))


@store.command("rm")
@click.argument("key")
@click.pass_context
def store_rm(ctx: click.Context, key: str) -> None:
    """Delete the artifact stored under KEY."""
    from .commands.store_cmd import run_store_rm

    sys.exit(run_store_rm(ctx.obj["config"], key))


# -----------------------------------------------------------------------------
# Config commands
# -----------------------------------------------------------------------------


@cli.group("config")
def config_group() -> None:
    """Show or change settings."""
    pass


@config_group.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show the effective configuration."""
    from .commands.config_cmd import run_config_show

    sys.exit(run_config_show(ctx.obj["config_path"]))


@config_group.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str) -> None:
    """Set KEY to VALUE and save the configuration file."""
    from .commands.config_cmd import run_config_set

    sys.exit(run_config_set(key, value, ctx.obj["config_path"]))


def main() -> None:
    """Main entrypoint."""
    cli()


if __name__ == "__main__":
    main()
