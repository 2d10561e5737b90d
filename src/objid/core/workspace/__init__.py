"""
Workspace scanning and consumption analysis.

`SourceObjectScanner` extracts object declarations from a project's source
files; the functions in `index` derive consumed IDs, contiguous ranges and
collisions from them.
"""

from .index import (
    build_snapshot,
    compress_ids,
    consumed_ids,
    consumed_ranges,
    find_collisions,
    group_by_type,
)
from .models import OBJECT_TYPES, Collision, ConsumptionSnapshot, ObjectRecord, TypeConsumption
from .project import normalize_project_path, read_app_manifest, validate_project_path
from .scanner import SourceDecodeError, SourceObjectScanner, parse_content, parse_file

__all__ = [
    "OBJECT_TYPES",
    "Collision",
    "ConsumptionSnapshot",
    "ObjectRecord",
    "SourceDecodeError",
    "SourceObjectScanner",
    "TypeConsumption",
    "build_snapshot",
    "compress_ids",
    "consumed_ids",
    "consumed_ranges",
    "find_collisions",
    "group_by_type",
    "normalize_project_path",
    "parse_content",
    "parse_file",
    "read_app_manifest",
    "validate_project_path",
]
