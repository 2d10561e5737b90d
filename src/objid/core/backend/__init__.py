"""
Remote allocator client.

The allocator durably owns the canonical "next free ID" and the consumption
ledger per app. This package wraps its HTTP API.
"""

from .client import AllocatorClient
from .identity import app_identity
from .models import ReclaimResponse, ReserveResponse, TrackResponse

__all__ = [
    "AllocatorClient",
    "ReclaimResponse",
    "ReserveResponse",
    "TrackResponse",
    "app_identity",
]
