"""
Workspace scan models.

An ObjectRecord is one object declaration header found in a source file.
Records live for one scan pass; everything derived from them (consumed ID
sets, range summaries, collisions) is rebuilt from a fresh scan on every
request.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from objid.core.config.models import Range

# Object type keywords recognized in declaration headers, longest first where
# one is a prefix of another.
OBJECT_TYPES: tuple[str, ...] = (
    "tableextension",
    "table",
    "pageextension",
    "page",
    "reportextension",
    "report",
    "codeunit",
    "xmlport",
    "enumextension",
    "enum",
    "query",
    "permissionsetextension",
    "permissionset",
    "profile",
    "controladdin",
)


class ObjectRecord(BaseModel):
    """One object declaration found in the workspace."""

    model_config = ConfigDict(frozen=True)

    type: str = Field(..., description="Lower-cased object type keyword")
    id: int = Field(..., description="Declared object ID")
    name: str = Field(default="", description="Object name, quotes removed")
    file: Path = Field(..., description="File the declaration was found in")
    line: int | None = Field(default=None, ge=1, description="1-based line of the header")


class Collision(BaseModel):
    """Two or more declarations of the same object type sharing one ID."""

    type: str
    id: int
    records: list[ObjectRecord]


class TypeConsumption(BaseModel):
    """Consumption summary for one object type."""

    count: int = Field(..., description="Number of declarations (duplicates included)")
    ids: list[int] = Field(..., description="Sorted distinct IDs")
    ranges: list[Range] = Field(..., description="Maximal contiguous runs of ids")


class ConsumptionSnapshot(BaseModel):
    """Derived view of which IDs the workspace currently uses."""

    model_config = ConfigDict(frozen=True)

    by_type: dict[str, TypeConsumption] = Field(default_factory=dict)
    collisions: list[Collision] = Field(default_factory=list)
    total_objects: int = 0

    def ids_for(self, object_type: str) -> set[int]:
        entry = self.by_type.get(object_type.lower())
        return set(entry.ids) if entry else set()
