"""
objid CLI - Analyze command.

Summarize the object IDs used in a project's source files.
"""

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.table import Table

from objid.cli.context import get_scanner, is_debug, open_project
from objid.cli.errors import handle_error, source_read_error
from objid.core.errors import ObjIdError
from objid.core.workspace.index import build_snapshot

console = Console()


def analyze(
    ctx: typer.Context,
    project: Annotated[Path, typer.Argument(help="Project directory (or its app.json)")],
    include: Annotated[
        list[str] | None,
        typer.Option("--include", help="Glob of files to scan (repeatable)"),
    ] = None,
    exclude: Annotated[
        list[str] | None,
        typer.Option("--exclude", help="Glob of files to skip (repeatable)"),
    ] = None,
    object_types: Annotated[
        list[str] | None,
        typer.Option("--type", "-t", help="Only report these object types (repeatable)"),
    ] = None,
    detailed: Annotated[
        bool, typer.Option("--detailed", help="List every object declaration")
    ] = False,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
) -> None:
    """
    Show which object IDs a project uses, per type, and any duplicates.

    Examples:
        objid analyze .
        objid analyze . --type table --type page --detailed
        objid analyze . --exclude "test/**" --json
    """
    try:
        workspace = open_project(ctx, project)
        scanner = get_scanner(ctx, include=include, exclude=exclude)
        records = scanner.scan(workspace, object_types)
    except ObjIdError as e:
        handle_error(e, json_output=json_output, debug=is_debug(ctx))
    except (OSError, UnicodeDecodeError) as e:
        handle_error(source_read_error(e), json_output=json_output, debug=is_debug(ctx))

    snapshot = build_snapshot(records)

    if json_output:
        data = snapshot.model_dump(mode="json", by_alias=True)
        if detailed:
            data["objects"] = [r.model_dump(mode="json") for r in records]
        typer.echo(json.dumps(data, indent=2))
        return

    if not records:
        console.print(f"[dim]No object declarations found in {workspace}[/dim]")
        return

    table = Table(title=f"Object IDs in {workspace.name}")
    table.add_column("Type", style="cyan")
    table.add_column("Objects", justify="right")
    table.add_column("Used ranges")
    for object_type, usage in snapshot.by_type.items():
        table.add_row(object_type, str(usage.count), ", ".join(str(r) for r in usage.ranges))
    console.print(table)
    console.print(f"[dim]{snapshot.total_objects} objects total[/dim]")

    for collision in snapshot.collisions:
        places = ", ".join(
            f"{r.name or '?'} ({r.file.relative_to(workspace)}:{r.line})"
            for r in collision.records
        )
        console.print(
            f"[red]Collision:[/red] {collision.type} {collision.id} declared by {places}"
        )

    if detailed:
        details = Table(title="Declarations")
        details.add_column("Type", style="cyan")
        details.add_column("ID", justify="right")
        details.add_column("Name")
        details.add_column("Location", style="dim")
        for record in records:
            details.add_row(
                record.type,
                str(record.id),
                record.name,
                f"{record.file.relative_to(workspace)}:{record.line}",
            )
        console.print(details)
