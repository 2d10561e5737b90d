"""
Data models for consumption sync.

Sync pushes the IDs found in the working tree to the remote allocator's
consumption ledger. A plan is computed first and can be inspected without
touching the allocator's ledger.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class SyncMode(str, Enum):
    """How local consumption is pushed to the allocator."""

    INCREMENTAL = "incremental"  # merge into the ledger (PATCH)
    FULL = "full"  # replace the ledger (POST)


class SyncConflict(BaseModel):
    """A local ID that lies outside every declared range for its type."""

    type: str
    id: int
    files: list[str] = Field(default_factory=list)


class SyncPlan(BaseModel):
    """
    Difference between local and remote consumption.

    `to_remove` is only populated in full mode; an incremental sync never
    drops IDs from the ledger.
    """

    mode: SyncMode
    local: dict[str, list[int]] = Field(default_factory=dict)
    remote: dict[str, list[int]] = Field(default_factory=dict)
    to_add: dict[str, list[int]] = Field(
        default_factory=dict,
        description="IDs used locally but unknown to the allocator",
    )
    to_remove: dict[str, list[int]] = Field(
        default_factory=dict,
        description="IDs the allocator has but the working tree does not",
    )
    conflicts: list[SyncConflict] = Field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return any(self.to_add.values()) or any(self.to_remove.values())

    @property
    def add_count(self) -> int:
        return sum(len(ids) for ids in self.to_add.values())

    @property
    def remove_count(self) -> int:
        return sum(len(ids) for ids in self.to_remove.values())


class SyncResult(BaseModel):
    """
    Result of a sync run.

    Provides detailed feedback about what was (or would have been) pushed.
    """

    success: bool = Field(description="Whether the operation succeeded")
    mode: SyncMode
    dry_run: bool = False
    pushed: bool = Field(default=False, description="Whether the allocator was called")
    plan: SyncPlan
    message: str = ""
    started_at: datetime | None = Field(default=None)
    completed_at: datetime | None = Field(default=None)

    @property
    def duration_seconds(self) -> float | None:
        if self.started_at and self.completed_at:
            return (self.completed_at - self.started_at).total_seconds()
        return None

    def summary(self) -> str:
        """Generate a human-readable summary of the result."""
        if not self.success:
            return f"sync failed: {self.message}"

        verb = "would push" if self.dry_run else "pushed"
        if not self.pushed and not self.dry_run:
            return "already in sync"

        parts = [f"{verb} {sum(len(v) for v in self.plan.local.values())} ids ({self.mode.value})"]
        if self.plan.add_count:
            parts.append(f"{self.plan.add_count} new")
        if self.plan.remove_count:
            parts.append(f"{self.plan.remove_count} removed")
        if self.plan.conflicts:
            parts.append(f"{len(self.plan.conflicts)} outside declared ranges")
        return ", ".join(parts)


class SyncStatusReport(BaseModel):
    """Drift between the working tree and the allocator's ledger."""

    app_known: bool
    in_sync: bool
    local_count: int
    remote_count: int
    missing_remote: dict[str, list[int]] = Field(
        default_factory=dict, description="Used locally, not in the ledger"
    )
    missing_local: dict[str, list[int]] = Field(
        default_factory=dict, description="In the ledger, not used locally"
    )


class TypeUsage(BaseModel):
    """Remote consumption of one object type."""

    consumed: list[int] = Field(default_factory=list)
    available: list[int] | None = Field(
        default=None, description="Free IDs in the declared ranges, when requested"
    )

    @property
    def count(self) -> int:
        return len(self.consumed)


class ConsumptionReport(BaseModel):
    """The allocator's consumption ledger for one app."""

    by_type: dict[str, TypeUsage] = Field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(usage.count for usage in self.by_type.values())
