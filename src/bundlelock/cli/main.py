"""bundlelock CLI --- inspect bundle lockfiles and installation scopes.

Entry point for the ``bundlelock`` command-line tool. Registers all
subcommands under a single Click group.

Commands:
    show     --- Print the bundles and sources in a lockfile.
    validate --- Validate a lockfile against its JSON schema.
    drift    --- List locally modified files of a bundle.
    remove   --- Remove a bundle from the lockfile.
    scopes   --- Show which scopes hold a bundle.

Usage::

    bundlelock show
    bundlelock validate ./my-repo --format json
    bundlelock drift acme-tool --repo ./my-repo
    bundlelock remove acme-tool
    bundlelock --config bundlelock.yaml scopes acme-tool
"""

from __future__ import annotations

import logging
from pathlib import Path

import click
from rich.logging import RichHandler

from bundlelock import __version__
from bundlelock.cli.lockfile_cmd import (
    drift_command,
    remove_command,
    show_command,
    validate_command,
)
from bundlelock.cli.scopes_cmd import scopes_command
from bundlelock.config import load_settings
from bundlelock.exceptions import ConfigError


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(show_path=False, rich_tracebacks=verbose)],
        force=True,
    )


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Settings file (default: ./bundlelock.yaml when present).",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: str | None) -> None:
    """bundlelock: keep bundle installations consistent across scopes.

    Inspect the repository lockfile, validate it, detect local
    modifications of installed files, and find bundles installed at more
    than one scope.
    """
    _configure_logging(verbose)
    try:
        settings = load_settings(Path(config_path) if config_path else None)
    except ConfigError as exc:
        raise click.UsageError(str(exc)) from exc
    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings


# Register all subcommands
cli.add_command(show_command)
cli.add_command(validate_command)
cli.add_command(drift_command)
cli.add_command(remove_command)
cli.add_command(scopes_command)
