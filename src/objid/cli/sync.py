"""
objid CLI - Sync commands.

Push the IDs used in the working tree to the remote allocator's consumption
ledger, and inspect that ledger.
"""

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from objid.cli.context import (
    allocator_client,
    get_config_store,
    get_scanner,
    is_debug,
    open_project,
)
from objid.cli.errors import handle_error, source_read_error
from objid.core.errors import ObjIdError
from objid.core.sync.models import SyncMode
from objid.core.sync.service import SyncService

console = Console()
app = typer.Typer(
    name="sync",
    help="Sync local ID consumption with the allocator",
    no_args_is_help=True,
)

ProjectArg = Annotated[Path, typer.Argument(help="Project directory (or its app.json)")]
JsonOpt = Annotated[bool, typer.Option("--json", help="Output as JSON")]


def _format_ids(by_type: dict[str, list[int]], limit: int = 5) -> list[str]:
    lines = []
    for object_type, ids in sorted(by_type.items()):
        shown = ", ".join(str(i) for i in ids[:limit])
        if len(ids) > limit:
            shown += ", ..."
        lines.append(f"{object_type}: {len(ids)} ({shown})")
    return lines


@app.command()
def run(
    ctx: typer.Context,
    project: ProjectArg,
    full: Annotated[
        bool,
        typer.Option("--full", help="Replace the allocator's ledger instead of merging into it"),
    ] = False,
    dry_run: Annotated[
        bool, typer.Option("--dry-run", help="Show what would be pushed without pushing")
    ] = False,
    force: Annotated[
        bool, typer.Option("--force", help="Push even if IDs lie outside the declared ranges")
    ] = False,
    json_output: JsonOpt = False,
) -> None:
    """
    Push local consumption to the allocator.

    By default IDs are merged into the allocator's ledger. With --full the
    ledger is replaced, which also drops IDs no longer used locally.

    Examples:
        objid sync run .
        objid sync run . --full --dry-run
    """
    mode = SyncMode.FULL if full else SyncMode.INCREMENTAL
    try:
        workspace = open_project(ctx, project)
        with allocator_client(ctx) as client:
            service = SyncService(get_config_store(ctx), client, scanner=get_scanner(ctx))
            result = service.sync(workspace, mode=mode, dry_run=dry_run, force=force)
    except ObjIdError as e:
        handle_error(e, json_output=json_output, debug=is_debug(ctx))
    except (OSError, UnicodeDecodeError) as e:
        handle_error(source_read_error(e), json_output=json_output, debug=is_debug(ctx))

    if json_output:
        typer.echo(result.model_dump_json(indent=2))
        return

    console.print(f"[green]✓[/green] {result.summary()}")
    plan = result.plan
    for line in _format_ids(plan.to_add):
        console.print(f"  [green]+[/green] {line}")
    for line in _format_ids(plan.to_remove):
        console.print(f"  [red]-[/red] {line}")
    for conflict in plan.conflicts:
        console.print(
            f"  [yellow]![/yellow] {conflict.type} {conflict.id} is outside the declared ranges"
        )


@app.command()
def status(
    ctx: typer.Context,
    project: ProjectArg,
    json_output: JsonOpt = False,
) -> None:
    """
    Compare the working tree with the allocator's ledger.

    Examples:
        objid sync status .
    """
    try:
        workspace = open_project(ctx, project)
        with allocator_client(ctx) as client:
            service = SyncService(get_config_store(ctx), client, scanner=get_scanner(ctx))
            report = service.status(workspace)
    except ObjIdError as e:
        handle_error(e, json_output=json_output, debug=is_debug(ctx))
    except (OSError, UnicodeDecodeError) as e:
        handle_error(source_read_error(e), json_output=json_output, debug=is_debug(ctx))

    if json_output:
        typer.echo(report.model_dump_json(indent=2))
        return

    if not report.app_known:
        console.print("[yellow]The allocator does not know this app yet[/yellow]")
    if report.in_sync:
        console.print(f"[green]✓[/green] In sync ({report.local_count} ids)")
        return

    console.print(
        f"[yellow]Drift:[/yellow] {report.local_count} ids locally, "
        f"{report.remote_count} in the allocator ledger"
    )
    for line in _format_ids(report.missing_remote):
        console.print(f"  not in ledger: {line}")
    for line in _format_ids(report.missing_local):
        console.print(f"  not used locally: {line}")


def consumption(
    ctx: typer.Context,
    project: ProjectArg,
    available: Annotated[
        bool,
        typer.Option("--available", help="Also count free IDs in the declared ranges"),
    ] = False,
    json_output: JsonOpt = False,
) -> None:
    """
    Show the allocator's consumption ledger for a project.

    Examples:
        objid consumption .
        objid consumption . --available --json
    """
    try:
        workspace = open_project(ctx, project)
        with allocator_client(ctx) as client:
            service = SyncService(get_config_store(ctx), client, scanner=get_scanner(ctx))
            report = service.consumption_report(workspace, include_available=available)
    except ObjIdError as e:
        handle_error(e, json_output=json_output, debug=is_debug(ctx))

    if json_output:
        data = report.model_dump(mode="json")
        data["total"] = report.total
        typer.echo(json.dumps(data, indent=2))
        return

    if not report.by_type:
        console.print("[dim]No consumption recorded by the allocator[/dim]")
        return

    table = Table(title="Consumption report")
    table.add_column("Type", style="cyan")
    table.add_column("Used", justify="right")
    table.add_column("IDs")
    if available:
        table.add_column("Free", justify="right")
    for object_type, usage in report.by_type.items():
        ids = ", ".join(str(i) for i in usage.consumed[:5])
        if usage.count > 5:
            ids += ", ..."
        row = [object_type, str(usage.count), ids]
        if available:
            row.append(str(len(usage.available or [])))
        table.add_row(*row)
    console.print(table)
    console.print(f"[dim]{report.total} ids total[/dim]")
