"""
objid CLI - Allocate commands.

Preview, reserve and reclaim object IDs for a project.
"""

from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console

from objid.cli.context import (
    allocator_client,
    get_config_store,
    get_scanner,
    is_debug,
    open_project,
    parse_ids,
)
from objid.cli.errors import handle_error, source_read_error
from objid.core.allocation.coordinator import AllocationCoordinator
from objid.core.allocation.models import (
    AllocationMode,
    AllocationRequest,
    ObjectMetadata,
    PreviewResult,
    ReclaimResult,
    ReserveResult,
)
from objid.core.config.models import Range
from objid.core.errors import Finding, InvalidParameterError, ObjIdError

console = Console()
app = typer.Typer(
    name="allocate",
    help="Preview, reserve and reclaim object IDs",
    no_args_is_help=True,
)

ProjectArg = Annotated[
    Path, typer.Argument(help="Project directory (or its app.json)")
]
TypeOpt = Annotated[
    str, typer.Option("--type", "-t", help="Object type, e.g. table, page, codeunit")
]
JsonOpt = Annotated[bool, typer.Option("--json", help="Output as JSON")]
DryRunOpt = Annotated[
    bool, typer.Option("--dry-run", help="Compute the result without contacting the allocator")
]


def _preferred_range(range_from: int | None, range_to: int | None) -> Range | None:
    if range_from is None and range_to is None:
        return None
    if range_from is None or range_to is None:
        raise InvalidParameterError("--from and --to must be given together")
    try:
        return Range(from_=range_from, to=range_to)
    except ValidationError as e:
        raise InvalidParameterError(
            f"Invalid range {range_from}-{range_to}: from must not exceed to"
        ) from e


def _build_request(
    ctx: typer.Context, mode: AllocationMode, project: Path, object_type: str, **fields
) -> AllocationRequest:
    workspace = open_project(ctx, project)
    try:
        return AllocationRequest(
            project_path=workspace,
            mode=mode,
            object_type=object_type,
            **fields,
        )
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise InvalidParameterError(f"Invalid request: {problems}") from e


def _print_warnings(warnings: list[Finding]) -> None:
    for warning in warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning.message} [dim]({warning.code.value})[/dim]")


def _print_result(result: PreviewResult | ReserveResult | ReclaimResult) -> None:
    if isinstance(result, ReclaimResult):
        prefix = "[dim](dry run)[/dim] " if result.dry_run else ""
        console.print(
            f"{prefix}Reclaimed [bold]{result.reclaimed_count}[/bold] "
            f"{result.object_type} id(s): {', '.join(map(str, result.ids)) or '-'}"
        )
        if result.failed_ids:
            console.print(
                f"[yellow]Allocator refused:[/yellow] {', '.join(map(str, result.failed_ids))}"
            )
        return

    if isinstance(result, ReserveResult):
        title = "Reserved IDs" if result.reserved else "Reservable IDs (dry run)"
    else:
        title = "Available IDs"

    console.print(f"{title} for [cyan]{result.object_type}[/cyan]:")
    for object_id in result.ids:
        console.print(f"  [bold green]{object_id}[/bold green]")

    if isinstance(result, PreviewResult) and result.pool_info:
        info = result.pool_info
        console.print(f"[dim]Pool {info.name} ({info.size} ids in eligible ranges)[/dim]")
    if isinstance(result, ReserveResult) and result.tracking and result.tracking.failed:
        console.print(
            "[yellow]Not recorded in the allocator ledger:[/yellow] "
            f"{', '.join(map(str, result.tracking.failed))}"
        )
    _print_warnings(result.warnings)


def _run(ctx: typer.Context, request_factory, json_output: bool) -> None:
    try:
        request = request_factory()
        with allocator_client(ctx) as client:
            coordinator = AllocationCoordinator(
                get_config_store(ctx), client, scanner=get_scanner(ctx)
            )
            result = coordinator.allocate(request)
    except ObjIdError as e:
        handle_error(e, json_output=json_output, debug=is_debug(ctx))
    except (OSError, UnicodeDecodeError) as e:
        handle_error(source_read_error(e), json_output=json_output, debug=is_debug(ctx))

    if json_output:
        typer.echo(result.model_dump_json(indent=2))
    else:
        _print_result(result)


@app.command()
def preview(
    ctx: typer.Context,
    project: ProjectArg,
    object_type: TypeOpt,
    count: Annotated[int, typer.Option("--count", "-n", min=1, help="Number of IDs")] = 1,
    range_from: Annotated[
        int | None, typer.Option("--from", help="Preferred range start (with --to)")
    ] = None,
    range_to: Annotated[
        int | None, typer.Option("--to", help="Preferred range end (with --from)")
    ] = None,
    pool: Annotated[str | None, typer.Option("--pool", help="Pool the preview is for")] = None,
    json_output: JsonOpt = False,
) -> None:
    """
    Show the next free IDs without reserving them.

    Examples:
        objid allocate preview . --type table
        objid allocate preview . --type page --count 3 --from 50200 --to 50299
    """
    _run(
        ctx,
        lambda: _build_request(
            ctx,
            AllocationMode.PREVIEW,
            project,
            object_type,
            count=count,
            preferred_range=_preferred_range(range_from, range_to),
            pool_id=pool,
        ),
        json_output,
    )


@app.command()
def reserve(
    ctx: typer.Context,
    project: ProjectArg,
    object_type: TypeOpt,
    count: Annotated[int, typer.Option("--count", "-n", min=1, help="Number of IDs")] = 1,
    range_from: Annotated[
        int | None, typer.Option("--from", help="Preferred range start (dry run only)")
    ] = None,
    range_to: Annotated[
        int | None, typer.Option("--to", help="Preferred range end (dry run only)")
    ] = None,
    name: Annotated[str | None, typer.Option("--name", help="Object name")] = None,
    file: Annotated[str | None, typer.Option("--file", help="Source file of the object")] = None,
    dry_run: DryRunOpt = False,
    json_output: JsonOpt = False,
) -> None:
    """
    Reserve IDs through the remote allocator.

    Examples:
        objid allocate reserve . --type table
        objid allocate reserve . --type codeunit --count 2 --dry-run
    """
    metadata = ObjectMetadata(name=name, file=file) if (name or file) else None
    _run(
        ctx,
        lambda: _build_request(
            ctx,
            AllocationMode.RESERVE,
            project,
            object_type,
            count=count,
            preferred_range=_preferred_range(range_from, range_to),
            dry_run=dry_run,
            metadata=metadata,
        ),
        json_output,
    )


@app.command()
def reclaim(
    ctx: typer.Context,
    project: ProjectArg,
    object_type: TypeOpt,
    ids: Annotated[
        str | None, typer.Option("--ids", help="Comma-separated IDs to return, e.g. 50100,50101")
    ] = None,
    dry_run: DryRunOpt = False,
    json_output: JsonOpt = False,
) -> None:
    """
    Return IDs to the remote allocator.

    Examples:
        objid allocate reclaim . --type table --ids 50100,50101
    """
    _run(
        ctx,
        lambda: _build_request(
            ctx,
            AllocationMode.RECLAIM,
            project,
            object_type,
            ids=parse_ids(ids),
            dry_run=dry_run,
        ),
        json_output,
    )
