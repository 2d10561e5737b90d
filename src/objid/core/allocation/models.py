"""
Allocation request and result models.

A request is built per call and never shared. The result is a union tagged
by `mode`, each variant carrying the mode-specific fields:

    preview -> PreviewResult  (candidate ids, available_count)
    reserve -> ReserveResult  (committed ids, reserved flag, tracking report)
    reclaim -> ReclaimResult  (reclaimed_count, failed_ids)
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, field_validator

from objid.core.config.models import Range
from objid.core.errors import Finding


class AllocationMode(str, Enum):
    """The three allocation modes."""

    PREVIEW = "preview"
    RESERVE = "reserve"
    RECLAIM = "reclaim"


class ObjectMetadata(BaseModel):
    """Caller-supplied description of the object an ID is reserved for."""

    name: str | None = None
    file: str | None = None
    tag: str | None = None


class AllocationRequest(BaseModel):
    """
    One allocation call.

    `count` applies to preview and reserve; `ids` is required by reclaim.
    """

    project_path: Path
    mode: AllocationMode
    object_type: str
    count: int = Field(default=1, ge=1)
    ids: list[int] | None = None
    preferred_range: Range | None = None
    dry_run: bool = False
    pool_id: str | None = None
    metadata: ObjectMetadata | None = None

    @field_validator("object_type")
    @classmethod
    def normalize_object_type(cls, v: str) -> str:
        value = v.strip().lower()
        if not value:
            raise ValueError("object_type must not be empty")
        return value


class PoolInfo(BaseModel):
    """Pool the preview was computed for."""

    pool_id: str
    name: str
    size: int = Field(..., description="Total number of IDs in the eligible ranges")


class TrackingReport(BaseModel):
    """Outcome of recording reserved IDs in the allocator's ledger."""

    tracked: list[int] = Field(default_factory=list)
    failed: list[int] = Field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed


class PreviewResult(BaseModel):
    mode: Literal["preview"] = "preview"
    object_type: str
    ids: list[int]
    available_count: int
    pool_info: PoolInfo | None = None
    warnings: list[Finding] = Field(default_factory=list)


class ReserveResult(BaseModel):
    mode: Literal["reserve"] = "reserve"
    object_type: str
    ids: list[int]
    reserved: bool
    dry_run: bool = False
    available_count: int | None = Field(
        default=None, description="Set on dry runs, from the underlying preview"
    )
    metadata: ObjectMetadata | None = None
    warnings: list[Finding] = Field(default_factory=list)
    tracking: TrackingReport | None = None


class ReclaimResult(BaseModel):
    mode: Literal["reclaim"] = "reclaim"
    object_type: str
    ids: list[int]
    reclaimed_count: int
    failed_ids: list[int] = Field(default_factory=list)
    dry_run: bool = False


AllocationResult = Annotated[
    Union[PreviewResult, ReserveResult, ReclaimResult],
    Field(discriminator="mode"),
]
