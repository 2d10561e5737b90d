"""
Shared wiring for CLI commands.

The root callback only records global flags. Each command opens its project
with `open_project`, which layers in that project's `.env` files, loads the
Settings and configures logging. Services are then built from the context
object; callers (tests, embedding tools) may preload `settings`,
`config_store`, `allocator` or `scanner` into it to replace the defaults.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer

from objid.core.backend.client import AllocatorClient
from objid.core.config.env import load_layered_env
from objid.core.config.settings import Settings, load_settings
from objid.core.config.store import RangeConfigStore
from objid.core.errors import InvalidParameterError
from objid.core.workspace.project import validate_project_path
from objid.core.workspace.scanner import SourceObjectScanner


def setup_logging(debug: bool = False, level: str = "WARNING") -> None:
    """
    Configure logging for objid commands.

    Args:
        debug: If True, enable DEBUG level logging regardless of `level`
        level: Log level name used when not debugging
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else getattr(logging, level, logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _state(ctx: typer.Context) -> dict:
    ctx.ensure_object(dict)
    return ctx.obj


def _load_settings(state: dict, project_dir: Path | None) -> Settings:
    if state.get("settings") is None:
        load_layered_env(project_dir)
        state["settings"] = load_settings()
    return state["settings"]


def get_settings(ctx: typer.Context) -> Settings:
    """Settings for this invocation, reading env files from cwd if no project is open."""
    return _load_settings(_state(ctx), None)


def open_project(ctx: typer.Context, project: Path) -> Path:
    """
    Validate the PROJECT argument and prepare the invocation for it.

    Raises:
        InvalidParameterError: If the path is not a usable project
    """
    workspace = validate_project_path(project)
    settings = _load_settings(_state(ctx), workspace)
    setup_logging(is_debug(ctx), settings.log_level)
    return workspace


def is_debug(ctx: typer.Context) -> bool:
    return bool(_state(ctx).get("debug", False))


def get_config_store(ctx: typer.Context) -> RangeConfigStore:
    state = _state(ctx)
    if state.get("config_store") is None:
        state["config_store"] = RangeConfigStore.from_settings(get_settings(ctx))
    return state["config_store"]


def get_scanner(
    ctx: typer.Context,
    include: list[str] | None = None,
    exclude: list[str] | None = None,
) -> SourceObjectScanner:
    """Scanner from the context, or a new one when patterns are given."""
    if include or exclude:
        return SourceObjectScanner(include=include, exclude=exclude)
    state = _state(ctx)
    if state.get("scanner") is None:
        state["scanner"] = SourceObjectScanner()
    return state["scanner"]


@contextmanager
def allocator_client(ctx: typer.Context) -> Iterator[AllocatorClient]:
    """Yield the allocator client, closing it afterwards if it was created here."""
    preset = _state(ctx).get("allocator")
    if preset is not None:
        yield preset
        return
    with AllocatorClient.from_settings(get_settings(ctx)) as client:
        yield client


def parse_ids(value: str | None) -> list[int] | None:
    """
    Parse a comma-separated id list such as "50100,50101".

    Raises:
        InvalidParameterError: If any item is not an integer
    """
    if value is None:
        return None
    items = [item.strip() for item in value.split(",") if item.strip()]
    try:
        return [int(item) for item in items]
    except ValueError as e:
        raise InvalidParameterError(f"Invalid id list: {value}", ids=value) from e
