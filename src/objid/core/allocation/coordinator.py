"""
Allocation coordinator.

Composes the range config store, the source scanner and the allocator client
to answer three kinds of request:

- preview: which IDs look free locally (never contacts the allocator)
- reserve: ask the allocator to commit IDs, then record them in its ledger
- reclaim: hand IDs back to the allocator

The coordinator holds no state between calls. Every preview rescans the
working tree, and every call reads the config through the store (which may
serve it from its TTL cache).

Example:
    >>> coordinator = AllocationCoordinator(store, client)
    >>> result = coordinator.allocate(
    ...     AllocationRequest(project_path=Path("MyApp"), mode="preview", object_type="table")
    ... )
    >>> result.ids
    [50102]
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

from objid.core.allocation.models import (
    AllocationMode,
    AllocationRequest,
    PoolInfo,
    PreviewResult,
    ReclaimResult,
    ReserveResult,
    TrackingReport,
)
from objid.core.backend.client import AllocatorClient
from objid.core.backend.identity import app_identity
from objid.core.config.models import Range, RangeConfig
from objid.core.config.store import RangeConfigStore, find_overlaps
from objid.core.errors import (
    BackendError,
    Finding,
    FindingCode,
    InvalidParameterError,
    NoIdsAvailableError,
    NoRangesDefinedError,
)
from objid.core.workspace.index import consumed_ids, find_collisions
from objid.core.workspace.scanner import SourceObjectScanner

logger = logging.getLogger(__name__)

Result = PreviewResult | ReserveResult | ReclaimResult


def find_candidates(
    ranges: Sequence[Range],
    consumed: set[int],
    count: int,
    preferred: Range | None = None,
) -> list[int]:
    """
    Collect up to `count` free IDs from the declared ranges.

    Ranges are walked in declared order and each one ascending. An ID that an
    earlier overlapping range already produced is not repeated.

    Args:
        ranges: Declared ranges for one object type
        consumed: IDs already in use
        count: Maximum number of candidates
        preferred: If given, only ranges with exactly these bounds are used

    Returns:
        Candidate IDs in discovery order
    """
    candidates: list[int] = []
    seen: set[int] = set()
    for declared in ranges:
        if preferred is not None and (
            declared.from_ != preferred.from_ or declared.to != preferred.to
        ):
            continue
        for object_id in range(declared.from_, declared.to + 1):
            if len(candidates) >= count:
                return candidates
            if object_id in consumed or object_id in seen:
                continue
            seen.add(object_id)
            candidates.append(object_id)
    return candidates


def _collision_findings(records: Iterable) -> list[Finding]:
    findings = []
    for collision in find_collisions(records):
        files = sorted({str(r.file) for r in collision.records})
        findings.append(
            Finding(
                code=FindingCode.ID_COLLISION,
                message=(
                    f"{collision.type} {collision.id} is declared "
                    f"{len(collision.records)} times"
                ),
                details={
                    "type": collision.type,
                    "id": collision.id,
                    "files": files,
                    "names": [r.name for r in collision.records],
                },
            )
        )
    return findings


class AllocationCoordinator:
    """
    Runs preview, reserve and reclaim requests.

    Attributes:
        config_store: Source of declared ranges
        allocator: Remote allocator client
        scanner: Source scanner used for previews
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

    def allocate(self, request: AllocationRequest) -> Result:
        """
        Run one allocation request.

        Raises:
            InvalidParameterError: Reclaim without ids
            ConfigInvalidError: The config file is malformed
            NoRangesDefinedError: No ranges declared for the object type
            NoIdsAvailableError: Every eligible ID is consumed
            BackendError: The allocator call failed
        """
        if request.mode is AllocationMode.RECLAIM and not request.ids:
            raise InvalidParameterError(
                "Reclaim requires at least one id",
                mode=request.mode.value,
                object_type=request.object_type,
            )

        config = self.config_store.read(request.project_path)
        if config is None:
            raise NoRangesDefinedError(
                "No .objidconfig found for project",
                project_path=request.project_path,
            )
        ranges = config.ranges_for(request.object_type)
        if not ranges:
            raise NoRangesDefinedError(
                f"No ID ranges defined for {request.object_type}",
                object_type=request.object_type,
            )

        if request.mode is AllocationMode.PREVIEW:
            return self.preview(request, config, ranges)
        if request.mode is AllocationMode.RESERVE:
            return self.reserve(request, config, ranges)
        return self.reclaim(request)

    def preview(
        self, request: AllocationRequest, config: RangeConfig, ranges: list[Range]
    ) -> PreviewResult:
        """Compute candidate IDs from the working tree; no remote calls."""
        records = self.scanner.scan(request.project_path, [request.object_type])
        consumed = consumed_ids(records, request.object_type)

        candidates = find_candidates(
            ranges, consumed, request.count, request.preferred_range
        )
        if not candidates:
            raise NoIdsAvailableError(
                f"No free IDs left for {request.object_type}",
                object_type=request.object_type,
                ranges=[str(r) for r in ranges],
                preferred_range=(
                    str(request.preferred_range) if request.preferred_range else None
                ),
            )

        warnings = find_overlaps(config, request.object_type)
        warnings.extend(_collision_findings(records))

        pool_info = None
        if request.pool_id:
            eligible = [
                r
                for r in ranges
                if request.preferred_range is None
                or (r.from_, r.to) == (request.preferred_range.from_, request.preferred_range.to)
            ]
            pool_info = PoolInfo(
                pool_id=request.pool_id,
                name=config.app_pool_id or request.pool_id,
                size=sum(r.size for r in eligible),
            )

        return PreviewResult(
            object_type=request.object_type,
            ids=candidates,
            available_count=len(candidates),
            pool_info=pool_info,
            warnings=warnings,
        )

    def reserve(
        self, request: AllocationRequest, config: RangeConfig, ranges: list[Range]
    ) -> ReserveResult:
        """
        Commit IDs through the allocator and record them in its ledger.

        A dry run returns the preview relabelled as a reserve. The allocator's
        ids are authoritative even when they fall outside the declared ranges;
        those are reported as warnings. Tracking failures never fail the
        reservation.
        """
        if request.dry_run:
            preview = self.preview(request, config, ranges)
            return ReserveResult(
                object_type=request.object_type,
                ids=preview.ids,
                reserved=False,
                dry_run=True,
                available_count=preview.available_count,
                metadata=request.metadata,
                warnings=preview.warnings,
            )

        identity = self._identity_resolver(request.project_path)
        try:
            response = self.allocator.reserve_next(
                identity, request.object_type, ranges, request.count
            )
        except BackendError as e:
            e.annotate(mode=request.mode.value, object_type=request.object_type)
            raise

        if not response.ids:
            raise NoIdsAvailableError(
                f"Allocator has no free IDs left for {request.object_type}",
                object_type=request.object_type,
                ranges=[str(r) for r in ranges],
            )

        warnings: list[Finding] = []
        outside = [i for i in response.ids if not any(r.contains(i) for r in ranges)]
        if outside:
            logger.warning(
                "Allocator returned %s ids outside declared ranges: %s",
                request.object_type,
                outside,
            )
            warnings.append(
                Finding(
                    code=FindingCode.ID_OUT_OF_RANGE,
                    message=f"Reserved ids outside declared ranges: {outside}",
                    details={"type": request.object_type, "ids": outside},
                )
            )
        for message in response.warnings:
            warnings.append(Finding(code=FindingCode.BACKEND_WARNING, message=message))

        tracking = self.record_assignments(identity, request.object_type, response.ids)
        if not tracking.complete:
            warnings.append(
                Finding(
                    code=FindingCode.TRACKING_FAILED,
                    message=f"Could not record assignment of ids {tracking.failed}",
                    details={"type": request.object_type, "ids": tracking.failed},
                )
            )

        return ReserveResult(
            object_type=request.object_type,
            ids=response.ids,
            reserved=True,
            metadata=request.metadata,
            warnings=warnings,
            tracking=tracking,
        )

    def record_assignments(
        self, identity: str, object_type: str, ids: Iterable[int]
    ) -> TrackingReport:
        """
        Record reserved IDs in the allocator's ledger, one call per id.

        Failures are logged and collected; this never raises BackendError.
        """
        report = TrackingReport()
        for object_id in ids:
            try:
                self.allocator.track_assignment(identity, object_type, object_id)
            except BackendError as e:
                logger.warning(
                    "Failed to record assignment of %s %d: %s", object_type, object_id, e
                )
                report.failed.append(object_id)
            else:
                report.tracked.append(object_id)
        return report

    def reclaim(self, request: AllocationRequest) -> ReclaimResult:
        """Return IDs to the allocator and report which were accepted."""
        ids = list(request.ids or [])
        if not ids:
            raise InvalidParameterError(
                "Reclaim requires at least one id", object_type=request.object_type
            )

        if request.dry_run:
            return ReclaimResult(
                object_type=request.object_type,
                ids=ids,
                reclaimed_count=len(ids),
                dry_run=True,
            )

        identity = self._identity_resolver(request.project_path)
        try:
            response = self.allocator.reclaim_ids(identity, request.object_type, ids)
        except BackendError as e:
            e.annotate(mode=request.mode.value, object_type=request.object_type)
            raise

        refused = set(response.failed_ids)
        failed = [i for i in ids if i in refused]
        if failed:
            logger.info("Allocator refused to reclaim %s ids %s", request.object_type, failed)

        return ReclaimResult(
            object_type=request.object_type,
            ids=[i for i in ids if i not in refused],
            reclaimed_count=len(ids) - len(failed),
            failed_ids=failed,
        )
