"""
Consumption sync service.

Reconciles the IDs declared in a project's source files with the remote
allocator's consumption ledger:

- plan(): compare local and remote consumption
- sync(): push local consumption (merge or replace)
- status(): report drift without pushing
- consumption_report(): the ledger per type, optionally with free IDs

Local IDs a sync would add that fall outside the declared ranges are
conflicts. A dry run reports them in its plan; a real sync refuses to push
them unless forced.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime, timezone
from pathlib import Path

from objid.core.allocation.coordinator import find_candidates
from objid.core.backend.client import AllocatorClient
from objid.core.backend.identity import app_identity
from objid.core.config.models import RangeConfig
from objid.core.config.store import RangeConfigStore
from objid.core.errors import BackendError, SyncConflictError
from objid.core.sync.models import (
    ConsumptionReport,
    SyncConflict,
    SyncMode,
    SyncPlan,
    SyncResult,
    SyncStatusReport,
    TypeUsage,
)
from objid.core.workspace.index import group_by_type
from objid.core.workspace.models import ObjectRecord
from objid.core.workspace.scanner import SourceObjectScanner

logger = logging.getLogger(__name__)


def _difference(
    left: Mapping[str, Iterable[int]], right: Mapping[str, Iterable[int]]
) -> dict[str, list[int]]:
    """IDs in `left` missing from `right`, per type; empty types omitted."""
    result = {}
    for object_type, ids in left.items():
        missing = sorted(set(ids) - set(right.get(object_type, ())))
        if missing:
            result[object_type] = missing
    return result


def find_conflicts(
    records: Iterable[ObjectRecord],
    config: RangeConfig,
    only: Mapping[str, Iterable[int]] | None = None,
) -> list[SyncConflict]:
    """
    Local IDs that fall outside every declared range for their type.

    Args:
        records: Scanned declarations
        config: Declared ranges
        only: If given, check just these IDs per type (e.g. the ones a sync
            would add)
    """
    conflicts = []
    for object_type, typed in sorted(group_by_type(records).items()):
        ranges = config.ranges_for(object_type)
        checked = set(only.get(object_type, ())) if only is not None else None
        files_by_id: dict[int, set[str]] = {}
        for record in typed:
            if checked is not None and record.id not in checked:
                continue
            if not any(r.contains(record.id) for r in ranges):
                files_by_id.setdefault(record.id, set()).add(str(record.file))
        for object_id, files in sorted(files_by_id.items()):
            conflicts.append(SyncConflict(type=object_type, id=object_id, files=sorted(files)))
    return conflicts


class SyncService:
    """
    Pushes local consumption to the remote allocator.

    Attributes:
        config_store: Source of declared ranges, for conflict detection
        allocator: Remote allocator client
        scanner: Source scanner
    """

    def __init__(
        self,
        config_store: RangeConfigStore,
        allocator: AllocatorClient,
        scanner: SourceObjectScanner | None = None,
        identity_resolver: Callable[[Path], str] = app_identity,
    ) -> None:
        self.config_store = config_store
        self.allocator = allocator
        self.scanner = scanner or SourceObjectScanner()
        self._identity_resolver = identity_resolver

    def plan(self, project_path: Path, mode: SyncMode = SyncMode.INCREMENTAL) -> SyncPlan:
        """
        Compare local consumption with the allocator's ledger.

        Raises:
            ConfigInvalidError: If the project's config is malformed
            BackendError: If the ledger cannot be fetched
        """
        records = self.scanner.scan(project_path)
        local = {
            object_type: sorted({r.id for r in typed})
            for object_type, typed in sorted(group_by_type(records).items())
        }
        remote = self.allocator.get_consumption(self._identity_resolver(project_path))
        to_add = _difference(local, remote)

        config = self.config_store.read(project_path)
        if config is None:
            logger.info("No .objidconfig in %s; skipping range conflict checks", project_path)
            conflicts = []
        else:
            conflicts = find_conflicts(records, config, only=to_add)

        return SyncPlan(
            mode=mode,
            local=local,
            remote={k: sorted(set(v)) for k, v in remote.items()},
            to_add=to_add,
            to_remove=_difference(remote, local) if mode is SyncMode.FULL else {},
            conflicts=conflicts,
        )

    def sync(
        self,
        project_path: Path,
        mode: SyncMode = SyncMode.INCREMENTAL,
        dry_run: bool = False,
        force: bool = False,
    ) -> SyncResult:
        """
        Push local consumption to the allocator.

        Args:
            project_path: Project directory
            mode: Merge into (incremental) or replace (full) the ledger
            dry_run: Compute the plan only
            force: Push even when local IDs lie outside the declared ranges

        Raises:
            SyncConflictError: If a real (non-dry) sync has conflicts and force
                is not set
            BackendError: If the allocator call fails
        """
        started_at = datetime.now(timezone.utc)
        plan = self.plan(project_path, mode)

        if dry_run:
            return SyncResult(
                success=True,
                mode=mode,
                dry_run=True,
                plan=plan,
                started_at=started_at,
                completed_at=datetime.now(timezone.utc),
            )

        if plan.conflicts and not force:
            raise SyncConflictError(
                f"{len(plan.conflicts)} local ids lie outside the declared ranges",
                conflicts=[f"{c.type} {c.id}" for c in plan.conflicts],
            )

        if not plan.has_changes:
            logger.debug("Consumption for %s already in sync", project_path)
            return SyncResult(
                success=True,
                mode=mode,
                plan=plan,
                message="already in sync",
                started_at=started_at,
                completed_at=datetime.now(timezone.utc),
            )

        identity = self._identity_resolver(project_path)
        try:
            self.allocator.sync_ids(identity, plan.local, merge=mode is SyncMode.INCREMENTAL)
        except BackendError as e:
            e.annotate(mode=f"sync:{mode.value}")
            raise

        logger.info(
            "Synced %s consumption for %s: +%d -%d",
            mode.value,
            project_path,
            plan.add_count,
            plan.remove_count,
        )
        return SyncResult(
            success=True,
            mode=mode,
            pushed=True,
            plan=plan,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        )

    def status(self, project_path: Path) -> SyncStatusReport:
        """Report drift between the working tree and the ledger."""
        identity = self._identity_resolver(project_path)
        app_known = self.allocator.check_app(identity)
        plan = self.plan(project_path, SyncMode.FULL)

        missing_remote = plan.to_add
        missing_local = plan.to_remove
        return SyncStatusReport(
            app_known=app_known,
            in_sync=not missing_remote and not missing_local,
            local_count=sum(len(v) for v in plan.local.values()),
            remote_count=sum(len(v) for v in plan.remote.values()),
            missing_remote=missing_remote,
            missing_local=missing_local,
        )

    def consumption_report(
        self, project_path: Path, include_available: bool = False
    ) -> ConsumptionReport:
        """
        Fetch the allocator's consumption ledger.

        Args:
            project_path: Project directory
            include_available: Also list free IDs per type within its
                declared ranges (types without ranges get an empty list)
        """
        remote = self.allocator.get_consumption(self._identity_resolver(project_path))
        config = self.config_store.read(project_path) if include_available else None

        by_type = {}
        for object_type, ids in sorted(remote.items()):
            consumed = sorted(set(ids))
            available = None
            if include_available:
                ranges = config.ranges_for(object_type) if config is not None else []
                available = find_candidates(ranges, set(consumed), sum(r.size for r in ranges))
            by_type[object_type] = TypeUsage(consumed=consumed, available=available)
        return ConsumptionReport(by_type=by_type)
