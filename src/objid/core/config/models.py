"""
Range configuration models.

These models define the structure of the per-project `.objidconfig` file:
the ID ranges a developer may allocate from, declared either as a flat list
(legacy shape, applies to every object type) or as a mapping from object type
to an ordered list of ranges.

Example `.objidconfig`:

    {
        // legacy flat list, used for any type without its own ranges
        "idRanges": [{"from": 50000, "to": 50099}],
        "objectRanges": {
            "table": [{"from": 50100, "to": 50149}],
        },
        "objectNamePrefix": "ABC",
        "appPoolId": "pool-1",
    }
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator, model_validator


class Range(BaseModel):
    """
    A closed interval of object IDs, `from <= to`.

    Serialized with the JSON keys `from` and `to`; the Python attribute is
    `from_` because `from` is a keyword.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_: StrictInt = Field(..., alias="from", description="First ID in the range")
    to: StrictInt = Field(..., description="Last ID in the range (inclusive)")

    @model_validator(mode="after")
    def check_bounds(self) -> Range:
        """Reject inverted ranges."""
        if self.from_ > self.to:
            raise ValueError(f"Invalid range: from ({self.from_}) > to ({self.to})")
        return self

    @property
    def size(self) -> int:
        return self.to - self.from_ + 1

    def contains(self, object_id: int) -> bool:
        return self.from_ <= object_id <= self.to

    def overlaps(self, other: Range) -> bool:
        return self.from_ <= other.to and other.from_ <= self.to

    def __str__(self) -> str:
        return f"{self.from_}-{self.to}"


class RangeConfig(BaseModel):
    """
    Parsed and validated `.objidconfig` document.

    Unknown keys are preserved so that a read/write round-trip does not drop
    settings owned by other tools.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    id_ranges: list[Range] = Field(
        default_factory=list,
        alias="idRanges",
        description="Flat list of ranges applying to every object type",
    )
    object_ranges: dict[str, list[Range]] = Field(
        default_factory=dict,
        alias="objectRanges",
        description="Ranges per object type (lower-cased type keyword)",
    )
    object_name_prefix: str | None = Field(default=None, alias="objectNamePrefix")
    object_name_suffix: str | None = Field(default=None, alias="objectNameSuffix")
    bc_license: str | None = Field(default=None, alias="bcLicense")
    app_pool_id: str | None = Field(default=None, alias="appPoolId")

    @field_validator("object_ranges", mode="before")
    @classmethod
    def lower_case_types(cls, v: Any) -> Any:
        if isinstance(v, dict):
            return {str(k).lower(): ranges for k, ranges in v.items()}
        return v

    def ranges_for(self, object_type: str) -> list[Range]:
        """
        Get the declared ranges for an object type.

        Typed ranges win when present and non-empty; otherwise the flat list
        applies.
        """
        typed = self.object_ranges.get(object_type.lower())
        if typed:
            return list(typed)
        return list(self.id_ranges)

    def has_ranges(self) -> bool:
        """True if at least one range is declared anywhere in the document."""
        return bool(self.id_ranges) or any(self.object_ranges.values())

    def to_document(self) -> dict[str, Any]:
        """Serialize back to the on-disk JSON shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class ConfigFinding(BaseModel):
    """One line of a configuration validation report."""

    path: str
    message: str
    severity: Literal["error", "warning", "info"]


class ConfigReport(BaseModel):
    """Result of validating a project's `.objidconfig`."""

    exists: bool
    valid: bool
    config: RangeConfig | None = None
    findings: list[ConfigFinding] = Field(default_factory=list)
