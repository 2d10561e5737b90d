"""
objid CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import typer
from rich.console import Console

from objid import __version__
from objid.cli import allocate, analyze, config, sync

# Help panel names for command grouping
PANEL_IDS = "Allocate IDs"
PANEL_PROJECT = "Inspect Your Project"

app = typer.Typer(
    name="objid",
    help="Object ID allocation for AL projects",
    no_args_is_help=True,
    add_completion=True,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
) -> None:
    """
    objid - Object ID allocation for AL projects.

    Finds the object IDs a project already uses, previews the next free ones
    within the ranges declared in .objidconfig, and reserves or returns IDs
    through the shared remote allocator.

    Common Workflows:
        objid config write . '{"idRanges": [{"from": 50100, "to": 50199}]}'
        objid analyze .                          # What is used?
        objid allocate preview . --type table    # What is free?
        objid allocate reserve . --type table    # Claim it
        objid sync run .                         # Push local usage to the allocator
    """
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


app.add_typer(allocate.app, name="allocate", rich_help_panel=PANEL_IDS)
app.add_typer(sync.app, name="sync", rich_help_panel=PANEL_IDS)
app.command(name="consumption", rich_help_panel=PANEL_IDS)(sync.consumption)

app.add_typer(config.app, name="config", rich_help_panel=PANEL_PROJECT)
app.command(name="analyze", rich_help_panel=PANEL_PROJECT)(analyze.analyze)


@app.command()
def version() -> None:
    """Show objid version and exit."""
    console.print(f"objid version {__version__}")
    raise typer.Exit(0)


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main"]
