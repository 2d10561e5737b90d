"""
objid CLI - Config commands.

Read, write and validate a project's `.objidconfig`.
"""

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from objid.cli.context import get_config_store, is_debug, open_project
from objid.cli.errors import ExitCode, handle_error
from objid.core.config.models import RangeConfig
from objid.core.config.store import find_overlaps, get_config_path
from objid.core.errors import InvalidParameterError, ObjIdError

console = Console()
app = typer.Typer(
    name="config",
    help="Read, write and validate .objidconfig",
    no_args_is_help=True,
)

ProjectArg = Annotated[Path, typer.Argument(help="Project directory (or its app.json)")]
JsonOpt = Annotated[bool, typer.Option("--json", help="Output as JSON")]

_SEVERITY_STYLES = {"error": "red", "warning": "yellow", "info": "dim"}


def _print_config(config: RangeConfig, path: Path) -> None:
    table = Table(title=f"ID ranges ({path})")
    table.add_column("Scope", style="cyan")
    table.add_column("Ranges")

    if config.id_ranges:
        table.add_row("all types", ", ".join(str(r) for r in config.id_ranges))
    for object_type, ranges in sorted(config.object_ranges.items()):
        table.add_row(object_type, ", ".join(str(r) for r in ranges) or "[dim](none)[/dim]")
    console.print(table)

    for label, value in (
        ("Object name prefix", config.object_name_prefix),
        ("Object name suffix", config.object_name_suffix),
        ("License", config.bc_license),
        ("App pool", config.app_pool_id),
    ):
        if value:
            console.print(f"[dim]{label}:[/dim] {value}")

    for finding in find_overlaps(config):
        console.print(f"[yellow]Warning:[/yellow] {finding.message}")


@app.command()
def read(
    ctx: typer.Context,
    project: ProjectArg,
    json_output: JsonOpt = False,
) -> None:
    """
    Show the declared ID ranges.

    Examples:
        objid config read .
        objid config read . --json
    """
    try:
        workspace = open_project(ctx, project)
        config = get_config_store(ctx).read(workspace)
    except ObjIdError as e:
        handle_error(e, json_output=json_output, debug=is_debug(ctx))

    if config is None:
        if json_output:
            typer.echo("null")
        else:
            console.print(f"[dim]No .objidconfig in {workspace}[/dim]")
        return

    if json_output:
        typer.echo(json.dumps(config.to_document(), indent=2))
    else:
        _print_config(config, get_config_path(workspace))


@app.command()
def write(
    ctx: typer.Context,
    project: ProjectArg,
    patch: Annotated[str, typer.Argument(help="JSON object with the fields to write")],
    replace: Annotated[
        bool, typer.Option("--replace", help="Replace the whole document instead of merging")
    ] = False,
    json_output: JsonOpt = False,
) -> None:
    """
    Write fields to .objidconfig, merging into the existing document.

    Examples:
        objid config write . '{"objectRanges": {"table": [{"from": 50100, "to": 50149}]}}'
        objid config write . '{"idRanges": [{"from": 50000, "to": 50999}]}' --replace
    """
    try:
        workspace = open_project(ctx, project)
        try:
            document = json.loads(patch)
        except json.JSONDecodeError as e:
            raise InvalidParameterError(f"PATCH is not valid JSON: {e.msg}") from e
        if not isinstance(document, dict):
            raise InvalidParameterError("PATCH must be a JSON object")

        config = get_config_store(ctx).write(workspace, document, merge=not replace)
    except ObjIdError as e:
        handle_error(e, json_output=json_output, debug=is_debug(ctx))

    if json_output:
        typer.echo(json.dumps(config.to_document(), indent=2))
    else:
        console.print(f"[green]✓[/green] Wrote {get_config_path(workspace)}")


@app.command()
def validate(
    ctx: typer.Context,
    project: ProjectArg,
    json_output: JsonOpt = False,
) -> None:
    """
    Check .objidconfig and report problems.

    Exits with code 2 when the configuration is missing or invalid.

    Examples:
        objid config validate .
    """
    try:
        workspace = open_project(ctx, project)
    except ObjIdError as e:
        handle_error(e, json_output=json_output, debug=is_debug(ctx))

    report = get_config_store(ctx).validate(workspace)

    if json_output:
        typer.echo(report.model_dump_json(indent=2, by_alias=True))
    else:
        status = "[green]valid[/green]" if report.valid else "[red]invalid[/red]"
        console.print(f"{get_config_path(workspace)}: {status}")
        for finding in report.findings:
            style = _SEVERITY_STYLES[finding.severity]
            console.print(
                f"  [{style}]{finding.severity}[/{style}] {finding.path}: {finding.message}"
            )

    if not report.valid:
        raise typer.Exit(ExitCode.USER_ERROR)
