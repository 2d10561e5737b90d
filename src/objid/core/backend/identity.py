"""
App identity for allocator requests.

The allocator knows a project by the SHA-256 of the `id` field of its
app.json. Projects without a readable manifest id fall back to the hash of
their resolved path, which keeps the identity stable per machine.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

from objid.core.workspace.project import normalize_project_path, read_app_manifest

logger = logging.getLogger(__name__)


def app_identity(project_path: Path | str) -> str:
    """
    Compute the allocator identity of a project.

    Args:
        project_path: Project directory (or its app.json)

    Returns:
        Hex SHA-256 digest
    """
    root = normalize_project_path(project_path)
    manifest = read_app_manifest(root)
    app_id = manifest.get("id") if manifest else None

    if isinstance(app_id, str) and app_id:
        return hashlib.sha256(app_id.encode()).hexdigest()

    logger.warning("No app id in %s/app.json, deriving identity from path", root)
    return hashlib.sha256(str(root).encode()).hexdigest()
