"""Environment loading helpers.

Tool settings come from the process environment. Before they are read, the
values from `.env` files are layered in, later files winning:

  ~/.config/objid/.env  <  PROJECT/.env  <  PROJECT/.env.local

PROJECT is the project directory a command operates on, not the working
directory. A variable already exported in the shell always wins over every
file.
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import dotenv_values

PROJECT_ENV_FILES: tuple[str, ...] = (".env", ".env.local")


def user_env_path() -> Path:
    """Path of the per-user env file, honouring XDG_CONFIG_HOME."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    base = Path(config_home) if config_home else Path.home() / ".config"
    return base / "objid" / ".env"


def read_env_file(path: Path) -> dict[str, str]:
    """Variables assigned in one env file; keys without a value are skipped."""
    if not path.is_file():
        return {}
    return {key: value for key, value in dotenv_values(path).items() if value is not None}


def load_layered_env(
    project_dir: Path | None = None,
    *,
    user_env: Path | None = None,
) -> dict[str, str]:
    """
    Apply the user and project env files to os.environ.

    Args:
        project_dir: Project whose `.env` / `.env.local` apply (defaults to cwd)
        user_env: Per-user env file (defaults to user_env_path())

    Returns:
        The variables that were set, i.e. those not already exported
    """
    layered = read_env_file(user_env or user_env_path())
    root = project_dir or Path.cwd()
    for name in PROJECT_ENV_FILES:
        layered.update(read_env_file(root / name))

    applied = {key: value for key, value in layered.items() if key not in os.environ}
    os.environ.update(applied)
    return applied
