"""
Consumption sync with the remote allocator.
"""

from .models import (
    ConsumptionReport,
    SyncConflict,
    SyncMode,
    SyncPlan,
    SyncResult,
    SyncStatusReport,
    TypeUsage,
)
from .service import SyncService, find_conflicts

__all__ = [
    "ConsumptionReport",
    "SyncConflict",
    "SyncMode",
    "SyncPlan",
    "SyncResult",
    "SyncService",
    "SyncStatusReport",
    "TypeUsage",
    "find_conflicts",
]
