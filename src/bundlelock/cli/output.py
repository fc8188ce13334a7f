"""Rich output formatting helpers for the bundlelock CLI.

Modification types are colored consistently:
    modified = yellow, missing = bold red, new = cyan
"""

from __future__ import annotations

from rich.console import Console
from rich.table import Table
from rich.text import Text

from bundlelock.core.lockfile import Lockfile, LockfileValidationResult, ModifiedFileInfo
from bundlelock.core.scope import InstalledBundle

_MODIFICATION_STYLES: dict[str, str] = {
    "modified": "yellow",
    "missing": "bold red",
    "new": "cyan",
}

console = Console()


def modification_style(modification_type: str) -> str:
    return _MODIFICATION_STYLES.get(modification_type, "white")


def print_lockfile(lockfile: Lockfile) -> None:
    """Print the bundles and sources of a lockfile as tables."""
    console.print(
        f"[bold]Lockfile[/bold] v{lockfile.version} "
        f"[dim]generated {lockfile.generated_at} by {lockfile.generated_by}[/dim]"
    )

    if not lockfile.bundles:
        console.print("[dim]No bundles recorded.[/dim]")
        return

    table = Table(title="Bundles", show_header=True, header_style="bold")
    table.add_column("Bundle", style="bold")
    table.add_column("Version")
    table.add_column("Source", style="dim")
    table.add_column("Commit Mode", justify="center")
    table.add_column("Files", justify="right")
    table.add_column("Installed At", style="dim")
    for bundle_id, entry in sorted(lockfile.bundles.items()):
        mode_style = "green" if entry.commit_mode == "commit" else "yellow"
        table.add_row(
            bundle_id,
            entry.version,
            f"{entry.source_id} ({entry.source_type})",
            Text(entry.commit_mode, style=mode_style),
            str(len(entry.files)),
            entry.installed_at,
        )
    console.print(table)

    sources = Table(title="Sources", show_header=True, header_style="bold")
    sources.add_column("Source", style="bold")
    sources.add_column("Type")
    sources.add_column("URL", style="dim")
    sources.add_column("Branch")
    for source_id, source in sorted(lockfile.sources.items()):
        sources.add_row(source_id, source.type, source.url, source.branch or "-")
    console.print(sources)


def print_validation(result: LockfileValidationResult) -> None:
    if result.valid:
        console.print(Text("VALID", style="bold green"))
    else:
        console.print(Text("INVALID", style="bold red"))
    for error in result.errors:
        console.print(f"  [red]error:[/red] {error}")
    for warning in result.warnings:
        console.print(f"  [yellow]warning:[/yellow] {warning}")


def print_drift(bundle_id: str, files: list[ModifiedFileInfo]) -> None:
    if not files:
        console.print(f"[green]No local modifications in {bundle_id}.[/green]")
        return

    table = Table(title=f"Local modifications: {bundle_id}", show_header=True, header_style="bold")
    table.add_column("File", style="bold")
    table.add_column("Change", justify="center")
    table.add_column("Recorded", style="dim")
    table.add_column("Current", style="dim")
    for info in files:
        table.add_row(
            info.path,
            Text(info.modification_type.upper(), style=modification_style(info.modification_type)),
            info.original_checksum[:12],
            info.current_checksum[:12] or "-",
        )
    console.print(table)


def print_scopes(bundle_id: str, installed: list[InstalledBundle]) -> None:
    if not installed:
        console.print(f"[dim]{bundle_id} is not installed at any scope.[/dim]")
        return

    table = Table(title=f"Scopes holding {bundle_id}", show_header=True, header_style="bold")
    table.add_column("Scope", style="bold")
    table.add_column("Version")
    table.add_column("Source", style="dim")
    table.add_column("Installed At", style="dim")
    for bundle in installed:
        table.add_row(bundle.scope.value, bundle.version, bundle.source_id, bundle.installed_at)
    console.print(table)
    if len(installed) > 1:
        scopes = ", ".join(b.scope.value for b in installed)
        console.print(f"[bold red]Conflict:[/bold red] installed at {scopes}")

