"""
Standardized error handling and exit codes for the objid CLI.

This module provides consistent error messaging with actionable guidance
and standardized exit codes across all CLI commands.
"""

import json
import traceback
from enum import IntEnum
from typing import NoReturn

import typer
from rich.console import Console

from objid.core.errors import (
    BackendError,
    BackendErrorCategory,
    ErrorCode,
    ObjIdError,
    SourceReadError,
)
from objid.core.workspace.scanner import SourceDecodeError

console = Console()


class ExitCode(IntEnum):
    """Standard exit codes for objid CLI operations."""

    SUCCESS = 0
    """Operation completed successfully."""

    GENERAL_ERROR = 1
    """Remote allocator failure or unexpected error."""

    USER_ERROR = 2
    """Configuration or input error (actionable by user)."""

    SIGINT = 130
    """Terminated by SIGINT (Ctrl+C) - Unix standard."""


_SOLUTIONS: dict[ErrorCode, str] = {
    ErrorCode.NO_RANGES_DEFINED: (
        "objid config write PROJECT '{\"idRanges\": [{\"from\": 50000, \"to\": 50099}]}'"
    ),
    ErrorCode.CONFIG_INVALID: "objid config validate PROJECT",
    ErrorCode.SYNC_CONFLICT: "objid sync run PROJECT --force  # to push anyway",
    ErrorCode.SOURCE_READ_ERROR: "re-save the file as UTF-8, or skip it with --exclude",
}

_BACKEND_SOLUTIONS: dict[BackendErrorCategory, str] = {
    BackendErrorCategory.AUTH_REQUIRED: "export OBJID_AUTH_KEY=...  # or add it to .env",
    BackendErrorCategory.RATE_LIMITED: "wait a moment and try again",
    BackendErrorCategory.UNAVAILABLE: "check OBJID_BACKEND_URL and your network connection",
}


def print_error(
    problem: str,
    *,
    reason: str | None = None,
    solution: str | None = None,
) -> None:
    """
    Print a standardized error message with actionable guidance.

    Args:
        problem: Brief description of what went wrong
        reason: Optional explanation of why it happened
        solution: Optional command or action to fix it

    Example:
        >>> print_error(
        ...     "No ID ranges defined for table",
        ...     reason="NO_RANGES_DEFINED",
        ...     solution="objid config write . '{\"idRanges\": [...]}'",
        ... )
    """
    console.print(f"[red]Error:[/red] {problem}")

    if reason:
        console.print(f"[dim]{reason}[/dim]")

    if solution:
        console.print(f"[cyan]→ Try:[/cyan] {solution}")


def source_read_error(error: OSError | UnicodeDecodeError) -> SourceReadError:
    """Wrap a source file read failure so it renders like any other objid error."""
    if isinstance(error, SourceDecodeError):
        return SourceReadError(
            f"Cannot decode {error.path} as {error.encoding}: {error.reason}",
            path=str(error.path),
            encoding=error.encoding,
            position=error.start,
        )
    if isinstance(error, UnicodeDecodeError):
        return SourceReadError(
            f"Cannot decode source file as {error.encoding}: {error.reason}",
            encoding=error.encoding,
        )
    return SourceReadError(
        f"Cannot read {error.filename or 'source file'}: {error.strerror or error}",
        path=error.filename,
    )


def exit_code_for(error: ObjIdError) -> ExitCode:
    """Backend failures are general errors; everything else is user-actionable."""
    if isinstance(error, BackendError):
        return ExitCode.GENERAL_ERROR
    return ExitCode.USER_ERROR


def handle_error(error: ObjIdError, *, json_output: bool = False, debug: bool = False) -> NoReturn:
    """
    Render an ObjIdError and exit with the matching code.

    With `json_output` the error's dict form is written to stdout so scripted
    callers always get parseable output.
    """
    if json_output:
        typer.echo(json.dumps({"error": error.to_dict()}, indent=2))
    else:
        if isinstance(error, BackendError):
            solution = _BACKEND_SOLUTIONS.get(error.category)
            reason = f"{error.code.value} ({error.category.value})"
        else:
            solution = _SOLUTIONS.get(error.code)
            reason = error.code.value
        print_error(error.message, reason=reason, solution=solution)

        if debug:
            console.print("\n[dim]Full traceback:[/dim]")
            console.print(traceback.format_exc())

    raise typer.Exit(exit_code_for(error))
