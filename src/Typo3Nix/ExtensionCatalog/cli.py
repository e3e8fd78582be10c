# === NAVMAP v1 ===
# {
#   "module": "Typo3Nix.ExtensionCatalog.cli",
#   "purpose": "Typer CLI for updating and inspecting the extension manifest",
#   "sections": [
#     {"id": "main", "name": "main", "anchor": "function-main", "kind": "function"},
#     {"id": "update", "name": "update", "anchor": "function-update", "kind": "function"},
#     {"id": "show", "name": "show", "anchor": "function-show", "kind": "function"},
#     {"id": "verify-integrity", "name": "verify_integrity", "anchor": "function-verify-integrity", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Typer CLI for the TYPO3 extension catalog.

Commands:
- ``update``: page through the registry and rewrite ``extensions.json``
- ``show``: print one record of a manifest
- ``verify-integrity``: check the format of an integrity string

Exit codes: 0 on success, 1 on transfer/parse/resolution failures, 2 on
configuration errors.
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from Typo3Nix.ExtensionCatalog import __version__
from Typo3Nix.ExtensionCatalog.checksums import parse_integrity
from Typo3Nix.ExtensionCatalog.errors import (
    ConfigError,
    EntryResolutionError,
    ExtensionCatalogError,
    ParseError,
)
from Typo3Nix.ExtensionCatalog.logging_config import setup_logging
from Typo3Nix.ExtensionCatalog.manifests import load_manifest
from Typo3Nix.ExtensionCatalog.pipeline import RunReport, run_update
from Typo3Nix.ExtensionCatalog.settings import DEFAULT_MANIFEST_PATH, load_settings

EXIT_FAILURE = 1
EXIT_CONFIG = 2

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="typo3nix-extensions",
    help="Catalog TYPO3 extensions into a reproducible Nix manifest",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"typo3nix-extensions {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit",
    ),
) -> None:
    """Catalog TYPO3 extensions into a reproducible Nix manifest."""


def _render_report(report: RunReport) -> None:
    table = Table(title="Extension catalog run", show_header=False)
    table.add_column("field", style="cyan")
    table.add_column("value")
    table.add_row("Run", report.correlation_id)
    table.add_row("Pages", f"{report.pages_fetched}/{report.total_pages}")
    table.add_row("Extensions", str(report.scheduled))
    table.add_row("Reused hashes", str(report.reused))
    table.add_row("Computed hashes", str(report.recomputed))
    if report.cancelled:
        table.add_row("Interrupted", "yes, stopped after the current page")
    if report.manifest_path:
        table.add_row("Manifest", report.manifest_path)
    console.print(table)


@app.command()
def update(
    manifest: Optional[Path] = typer.Option(
        None,
        "--manifest",
        "-m",
        help="Manifest to read and rewrite (default: extensions.json)",
    ),
    per_page: Optional[int] = typer.Option(None, "--per-page", help="Catalog page size"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Console log level"),
    log_dir: Optional[Path] = typer.Option(None, "--log-dir", help="Write JSON logs here"),
    verbose: bool = typer.Option(False, "-v", "--verbose", help="Shortcut for --log-level DEBUG"),
) -> None:
    """Fetch the registry catalog and rewrite the manifest."""

    try:
        settings = load_settings(
            manifest_path=manifest,
            per_page=per_page,
            log_level="DEBUG" if verbose else log_level,
            log_dir=log_dir,
        )
    except ConfigError as exc:
        err_console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(code=EXIT_CONFIG)

    setup_logging(settings.log_level, settings.log_dir)

    try:
        report = run_update(settings)
    except ConfigError as exc:
        err_console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(code=EXIT_CONFIG)
    except EntryResolutionError as exc:
        err_console.print(f"[red]{len(exc.failures)} extensions failed:[/red] {exc}")
        raise typer.Exit(code=EXIT_FAILURE)
    except ExtensionCatalogError as exc:
        err_console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=EXIT_FAILURE)

    if report.test_mode:
        console.print("[green]Test mode - success[/green]")
        return
    _render_report(report)


@app.command()
def show(
    key: str = typer.Argument(..., help="Extension key"),
    manifest: Path = typer.Option(DEFAULT_MANIFEST_PATH, "--manifest", "-m", help="Manifest path"),
) -> None:
    """Print the manifest record of one extension."""

    try:
        records = load_manifest(manifest)
    except ConfigError as exc:
        err_console.print(f"[red]Configuration error:[/red] {exc}")
        raise typer.Exit(code=EXIT_CONFIG)

    record = records.get(key)
    if record is None:
        err_console.print(f"[yellow]{key} is not in {manifest}[/yellow]")
        raise typer.Exit(code=EXIT_FAILURE)

    table = Table(title=key, show_header=False)
    table.add_column("field", style="cyan")
    table.add_column("value")
    table.add_row("version", record.version)
    table.add_row("t3_versions", ", ".join(str(item) for item in record.compatibility))
    table.add_row("description", record.description)
    table.add_row("hash", record.hash)
    console.print(table)


@app.command("verify-integrity")
def verify_integrity(value: str = typer.Argument(..., help="Integrity string to check")) -> None:
    """Check that VALUE is a well-formed integrity string."""

    try:
        algorithm, digest = parse_integrity(value)
    except ParseError as exc:
        err_console.print(f"[red]Invalid:[/red] {exc}")
        raise typer.Exit(code=EXIT_FAILURE)
    console.print(f"[green]✓[/green] {algorithm} digest, {len(digest)} bytes")


if __name__ == "__main__":  # pragma: no cover
    app()
