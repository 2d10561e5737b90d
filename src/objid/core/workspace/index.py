"""
Consumption index.

Pure functions deriving consumption data from a list of ObjectRecords:
grouping by type, duplicate-ID collisions, and maximal contiguous ranges of
used IDs.

Example:
    >>> consumed_ranges(records)
    {'table': [Range(from_=50100, to=50102), Range(from_=50110, to=50110)]}
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable

from objid.core.config.models import Range
from objid.core.workspace.models import (
    Collision,
    ConsumptionSnapshot,
    ObjectRecord,
    TypeConsumption,
)


def group_by_type(records: Iterable[ObjectRecord]) -> dict[str, list[ObjectRecord]]:
    """Group records by object type."""
    grouped: dict[str, list[ObjectRecord]] = defaultdict(list)
    for record in records:
        grouped[record.type].append(record)
    return dict(grouped)


def consumed_ids(
    records: Iterable[ObjectRecord], object_type: str | None = None
) -> set[int]:
    """Set of IDs in use, optionally restricted to one object type."""
    if object_type is None:
        return {r.id for r in records}
    wanted = object_type.lower()
    return {r.id for r in records if r.type == wanted}


def find_collisions(records: Iterable[ObjectRecord]) -> list[Collision]:
    """
    Find IDs declared more than once within the same object type.

    Each collision lists every contributing record so callers can report all
    files and names involved.
    """
    collisions = []
    for object_type, typed in group_by_type(records).items():
        by_id: dict[int, list[ObjectRecord]] = defaultdict(list)
        for record in typed:
            by_id[record.id].append(record)
        for object_id, group in sorted(by_id.items()):
            if len(group) > 1:
                collisions.append(Collision(type=object_type, id=object_id, records=group))
    return collisions


def compress_ids(ids: Iterable[int]) -> list[Range]:
    """
    Run-length compress IDs into maximal closed intervals.

    Example:
        >>> compress_ids([5, 1, 2, 3, 9, 3])
        [Range(from_=1, to=3), Range(from_=5, to=5), Range(from_=9, to=9)]
    """
    ordered = sorted(set(ids))
    if not ordered:
        return []

    ranges = []
    start = end = ordered[0]
    for value in ordered[1:]:
        if value == end + 1:
            end = value
        else:
            ranges.append(Range(from_=start, to=end))
            start = end = value
    ranges.append(Range(from_=start, to=end))
    return ranges


def consumed_ranges(records: Iterable[ObjectRecord]) -> dict[str, list[Range]]:
    """Maximal contiguous ranges of used IDs, per object type."""
    return {
        object_type: compress_ids(r.id for r in typed)
        for object_type, typed in group_by_type(records).items()
    }


def build_snapshot(records: Iterable[ObjectRecord]) -> ConsumptionSnapshot:
    """Build a ConsumptionSnapshot from one scan's records."""
    records = list(records)
    by_type = {}
    for object_type, typed in sorted(group_by_type(records).items()):
        ids = sorted({r.id for r in typed})
        by_type[object_type] = TypeConsumption(
            count=len(typed), ids=ids, ranges=compress_ids(ids)
        )
    return ConsumptionSnapshot(
        by_type=by_type,
        collisions=find_collisions(records),
        total_objects=len(records),
    )
