"""``bundlelock scopes <bundle-id>`` --- list every scope holding a bundle.

A bundle must live at one scope at most; more than one is a conflict.

Exit Codes:
    0 --- Installed at zero or one scope.
    1 --- Installed at more than one scope.
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import click

from bundlelock.core.scope import (
    InstallationScope,
    InstalledBundle,
    ScopeConflictResolver,
    ScopedBundleStore,
    build_scoped_store,
)


async def _find(
    store: ScopedBundleStore, bundle_id: str
) -> tuple[list[InstallationScope], list[InstalledBundle]]:
    scopes = await ScopeConflictResolver(store).get_conflicting_scopes(bundle_id)
    found: list[InstalledBundle] = []
    for scope in scopes:
        installed = await store.get_installed_bundle(bundle_id, scope)
        if installed is not None:
            found.append(installed)
    return scopes, found


@click.command("scopes")
@click.argument("bundle_id")
@click.option(
    "--repo",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Repository root holding the lockfile (default: current directory).",
)
@click.option(
    "--format", "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format (default: text).",
)
@click.pass_context
def scopes_command(ctx: click.Context, bundle_id: str, repo: str, output_format: str) -> None:
    """Show the scopes BUNDLE_ID is installed at.

    Exit code 1 if the bundle is installed at more than one scope.
    """
    store = build_scoped_store(ctx.obj["settings"], Path(repo))
    scopes, installed = asyncio.run(_find(store, bundle_id))
    conflict = len(scopes) > 1

    if output_format == "json":
        click.echo(json.dumps({
            "bundleId": bundle_id,
            "scopes": [
                {"scope": b.scope.value, "version": b.version, "sourceId": b.source_id}
                for b in installed
            ],
            "conflict": conflict,
        }, indent=2))
    else:
        from bundlelock.cli.output import print_scopes
        print_scopes(bundle_id, installed)

    sys.exit(1 if conflict else 0)
