"""
objid - Object ID allocation for AL projects.

Scans a project's source tree for declared object IDs, reconciles them with
the ranges declared in `.objidconfig`, and drives preview / reserve / reclaim
against the remote ID allocator.
"""

__version__ = "0.4.0"

from objid.core.allocation.models import AllocationMode, AllocationRequest
from objid.core.config.models import Range, RangeConfig

__all__ = ["AllocationMode", "AllocationRequest", "Range", "RangeConfig", "__version__"]
