"""Lockfile inspection commands: ``show``, ``validate``, ``drift``, ``remove``.

Exit Codes:
    0 --- Success (valid lockfile, no drift).
    1 --- Invalid lockfile, drift detected, or a lockfile error.
    2 --- No lockfile in the repository.
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import click

from bundlelock.config import Settings
from bundlelock.core.lockfile import LockfileRepository
from bundlelock.exceptions import LockfileError

_FORMAT_OPTION = click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format (default: text).",
)

_REPO_OPTION = click.option(
    "--repo",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Repository root holding the lockfile (default: current directory).",
)


def open_repository(ctx: click.Context, repo: str) -> LockfileRepository:
    settings: Settings = ctx.obj["settings"]
    return LockfileRepository(
        Path(repo),
        lockfile_name=settings.lockfile_name,
        generated_by=settings.generated_by,
    )


def _fail(message: str, output_format: str, code: int) -> None:
    if output_format == "json":
        click.echo(json.dumps({"error": message}))
    else:
        click.echo(f"Error: {message}", err=True)
    sys.exit(code)


@click.command("show")
@click.argument("repo", type=click.Path(exists=True, file_okay=False), default=".")
@_FORMAT_OPTION
@click.pass_context
def show_command(ctx: click.Context, repo: str, output_format: str) -> None:
    """Show the bundles and sources recorded in REPO's lockfile.

    Exit code 2 if there is no lockfile, 1 if it cannot be parsed.
    """
    repository = open_repository(ctx, repo)
    try:
        lockfile = asyncio.run(repository.load())
    except LockfileError as exc:
        _fail(str(exc), output_format, 1)
        return
    if lockfile is None:
        _fail(f"No lockfile at {repository.lockfile_path}", output_format, 2)
        return

    if output_format == "json":
        click.echo(lockfile.to_json(), nl=False)
    else:
        from bundlelock.cli.output import print_lockfile
        print_lockfile(lockfile)


@click.command("validate")
@click.argument("repo", type=click.Path(exists=True, file_okay=False), default=".")
@_FORMAT_OPTION
@click.pass_context
def validate_command(ctx: click.Context, repo: str, output_format: str) -> None:
    """Validate REPO's lockfile against the lockfile JSON schema.

    Exit code 0 if valid, 1 otherwise.
    """
    repository = open_repository(ctx, repo)
    result = asyncio.run(repository.validate())

    if output_format == "json":
        click.echo(json.dumps({
            "valid": result.valid,
            "errors": result.errors,
            "warnings": result.warnings,
            "schemaVersion": result.schema_version,
        }, indent=2))
    else:
        from bundlelock.cli.output import print_validation
        print_validation(result)

    sys.exit(0 if result.valid else 1)


@click.command("drift")
@click.argument("bundle_id")
@_REPO_OPTION
@_FORMAT_OPTION
@click.pass_context
def drift_command(ctx: click.Context, bundle_id: str, repo: str, output_format: str) -> None:
    """Report files of BUNDLE_ID changed since they were installed.

    Exit code 0 if every tracked file matches, 1 on drift.
    """
    repository = open_repository(ctx, repo)
    files = asyncio.run(repository.detect_modified_files(bundle_id))

    if output_format == "json":
        click.echo(json.dumps({
            "bundleId": bundle_id,
            "modifiedFiles": [f.to_dict() for f in files],
        }, indent=2))
    else:
        from bundlelock.cli.output import print_drift
        print_drift(bundle_id, files)

    sys.exit(1 if files else 0)


@click.command("remove")
@click.argument("bundle_id")
@_REPO_OPTION
@_FORMAT_OPTION
@click.pass_context
def remove_command(ctx: click.Context, bundle_id: str, repo: str, output_format: str) -> None:
    """Remove BUNDLE_ID from the lockfile.

    Installed files are left in place. The lockfile is deleted when its
    last bundle is removed.
    """
    repository = open_repository(ctx, repo)

    async def _remove() -> tuple[bool, object]:
        existed = await repository.get_bundle(bundle_id) is not None
        return existed, await repository.remove(bundle_id)

    try:
        existed, remaining = asyncio.run(_remove())
    except LockfileError as exc:
        _fail(str(exc), output_format, 1)
        return

    if output_format == "json":
        click.echo(json.dumps({
            "bundleId": bundle_id,
            "removed": existed,
            "lockfileDeleted": existed and remaining is None,
        }))
        return
    if not existed:
        click.echo(f"{bundle_id} is not in the lockfile.")
    elif remaining is None:
        click.echo(f"Removed {bundle_id}; lockfile deleted (no bundles left).")
    else:
        click.echo(f"Removed {bundle_id}.")
