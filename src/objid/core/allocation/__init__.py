"""
ID allocation.

`AllocationCoordinator` answers preview, reserve and reclaim requests against
a project's declared ranges and the remote allocator.
"""

from .coordinator import AllocationCoordinator, find_candidates
from .models import (
    AllocationMode,
    AllocationRequest,
    AllocationResult,
    ObjectMetadata,
    PoolInfo,
    PreviewResult,
    ReclaimResult,
    ReserveResult,
    TrackingReport,
)

__all__ = [
    "AllocationCoordinator",
    "AllocationMode",
    "AllocationRequest",
    "AllocationResult",
    "ObjectMetadata",
    "PoolInfo",
    "PreviewResult",
    "ReclaimResult",
    "ReserveResult",
    "TrackingReport",
    "find_candidates",
]
