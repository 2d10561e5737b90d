"""
Project root handling.

A project is a directory holding an `app.json` manifest. Callers may pass
either the directory or the manifest file itself.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from objid.core.errors import InvalidParameterError

APP_MANIFEST = "app.json"


def normalize_project_path(project_path: Path | str) -> Path:
    """
    Resolve a project path to its workspace directory.

    Args:
        project_path: Project directory or path to its app.json

    Returns:
        Absolute path of the project directory
    """
    path = Path(project_path).expanduser()
    if path.name == APP_MANIFEST:
        path = path.parent
    return path.resolve()


def validate_project_path(project_path: Path | str) -> Path:
    """
    Check that a path points at a project and return its directory.

    Raises:
        InvalidParameterError: If the path does not exist or has no app.json
    """
    path = Path(project_path).expanduser()
    if not path.exists():
        raise InvalidParameterError(f"Path does not exist: {path}", project_path=str(path))
    if path.is_file() and path.name != APP_MANIFEST:
        raise InvalidParameterError(
            "Path is not a directory or app.json file", project_path=str(path)
        )

    workspace = normalize_project_path(path)
    if not (workspace / APP_MANIFEST).is_file():
        raise InvalidParameterError(
            f"{APP_MANIFEST} not found in {workspace}", project_path=str(workspace)
        )
    return workspace


def read_app_manifest(project_path: Path | str) -> dict[str, Any] | None:
    """
    Load the project's app.json.

    Returns:
        Parsed manifest, or None if it is missing or not a JSON object
    """
    manifest = normalize_project_path(project_path) / APP_MANIFEST
    try:
        data = json.loads(manifest.read_text(encoding="utf-8-sig"))
    except (OSError, json.JSONDecodeError):
        return None
    return data if isinstance(data, dict) else None
