"""
Remote allocator response models.

The allocator has answered in several shapes over time; the parsers here
accept all of them and normalize to one model per operation.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class ReserveResponse(BaseModel):
    """IDs the allocator committed for a reservation."""

    ids: list[int] = Field(default_factory=list)
    available: bool = True
    warnings: list[str] = Field(default_factory=list)

    @classmethod
    def from_payload(cls, data: Any) -> ReserveResponse:
        """
        Parse a getNext response.

        Accepts a bare list of IDs, `{"ids": [...]}`, or `{"id": n | [...]}`.
        """
        if isinstance(data, list):
            return cls(ids=data)
        if isinstance(data, int) and not isinstance(data, bool):
            return cls(ids=[data])
        if not isinstance(data, dict):
            return cls(ids=[], available=False)

        raw = data.get("ids", data.get("id"))
        if raw is None:
            ids: list[int] = []
        elif isinstance(raw, list):
            ids = raw
        else:
            ids = [raw]

        warnings = data.get("warnings") or []
        if isinstance(warnings, str):
            warnings = [warnings]
        return cls(ids=ids, available=bool(data.get("available", bool(ids))), warnings=warnings)


class ReclaimResponse(BaseModel):
    """Outcome of returning IDs to the allocator."""

    reclaimed_ids: list[int] = Field(default_factory=list)
    failed_ids: list[int] = Field(default_factory=list)

    @classmethod
    def from_payload(cls, data: Any, requested: list[int]) -> ReclaimResponse:
        """
        Parse a returnIds response.

        Missing `reclaimedIds` means every requested ID not listed as failed
        was reclaimed.
        """
        if not isinstance(data, dict):
            return cls(reclaimed_ids=list(requested))
        failed = data.get("failedIds", data.get("failed")) or []
        reclaimed = data.get("reclaimedIds", data.get("reclaimed"))
        if not isinstance(reclaimed, list):
            failed_set = set(failed)
            reclaimed = [i for i in requested if i not in failed_set]
        return cls(reclaimed_ids=reclaimed, failed_ids=failed)


class TrackResponse(BaseModel):
    """Outcome of recording one assignment in the allocator's ledger."""

    updated: bool = False
