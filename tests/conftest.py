"""
Pytest configuration and shared fixtures.

Provides temporary AL project trees (app.json, .objidconfig, .al sources),
a config store without caching surprises, and a mock allocator client.
"""

import json
from pathlib import Path
from unittest.mock import Mock

import pytest

from objid.core.backend.client import AllocatorClient
from objid.core.backend.models import ReclaimResponse, ReserveResponse, TrackResponse
from objid.core.config.store import RangeConfigStore

APP_ID = "9f3c1c8e-2d4b-4a57-9a51-0c3f2b7d1e42"


def _write_project(
    root: Path,
    config: dict | str | None = None,
    sources: dict[str, str] | None = None,
    app_id: str = APP_ID,
) -> Path:
    """Create a project directory with app.json, optional config and sources."""
    root.mkdir(parents=True, exist_ok=True)
    (root / "app.json").write_text(json.dumps({"id": app_id, "name": "Rating"}))
    if config is not None:
        text = config if isinstance(config, str) else json.dumps(config, indent=2)
        (root / ".objidconfig").write_text(text)
    for relative, content in (sources or {}).items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root


# ==============================================================================
# Project Fixtures
# ==============================================================================


@pytest.fixture
def project_dir(tmp_path):
    """
    Provide a temporary AL project.

    Creates:
    - app.json
    - .objidconfig with table 50100-50149 and page 50200-50249
    - src/ with two tables (50100, 50101) and one page (50200)
    """
    return _write_project(
        tmp_path / "project",
        config={
            "idRanges": [{"from": 50000, "to": 50999}],
            "objectRanges": {
                "table": [{"from": 50100, "to": 50149}],
                "page": [{"from": 50200, "to": 50249}],
            },
        },
        sources={
            "src/Rating.Table.al": 'table 50100 "Customer Rating"\n{\n}\n',
            "src/RatingSetup.Table.al": "table 50101 RatingSetup\n{\n}\n",
            "src/Rating.Page.al": 'page 50200 "Customer Rating Card"\n{\n}\n',
        },
    )


@pytest.fixture
def make_project(tmp_path):
    """Factory fixture: make_project(name, config=..., sources=...) -> project dir."""

    def _make(name: str = "app", **kwargs) -> Path:
        return _write_project(tmp_path / name, **kwargs)

    return _make


@pytest.fixture
def config_store():
    """A config store with caching disabled so tests always see the disk."""
    return RangeConfigStore(cache_enabled=False)


@pytest.fixture
def mock_allocator():
    """
    Provide a mock AllocatorClient.

    Defaults: reserve returns [50102], reclaim accepts everything, tracking
    succeeds, the ledger is empty and the app is unknown.
    """
    allocator = Mock(spec=AllocatorClient)
    allocator.reserve_next.return_value = ReserveResponse(ids=[50102])
    allocator.reclaim_ids.side_effect = lambda identity, object_type, ids: ReclaimResponse(
        reclaimed_ids=list(ids)
    )
    allocator.track_assignment.return_value = TrackResponse(updated=True)
    allocator.get_consumption.return_value = {}
    allocator.sync_ids.return_value = {}
    allocator.check_app.return_value = False
    return allocator
