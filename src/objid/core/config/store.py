"""
Range configuration store.

Loads, validates and persists the per-project `.objidconfig` file.

The file is relaxed JSON: line comments, block comments and trailing commas
are accepted on read. Writes emit plain pretty-printed JSON, so comments do
not survive a round-trip.

Reads may be served from a TTL cache keyed by project path. Writes never use
the cache: they always re-read the file before merging so that an older
cached snapshot cannot overwrite newer content on disk.

Example:
    >>> store = RangeConfigStore(cache_ttl=60)
    >>> config = store.read(Path("~/src/MyApp"))
    >>> config.ranges_for("table")
    [Range(from_=50100, to=50149)]
    >>> store.write(Path("~/src/MyApp"), {"objectRanges": {"page": [{"from": 50200, "to": 50249}]}})
"""

from __future__ import annotations

import json
import logging
import re
import threading
import time
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from objid.core.config.models import ConfigFinding, ConfigReport, Range, RangeConfig
from objid.core.errors import (
    ConfigInvalidError,
    ConfigWriteError,
    Finding,
    FindingCode,
    NoRangesDefinedError,
    ObjIdError,
)
from objid.core.workspace.project import normalize_project_path

if TYPE_CHECKING:
    from objid.core.config.settings import Settings

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".objidconfig"

_TRAILING_COMMA = re.compile(r",(\s*[}\]])")


def get_config_path(project_path: Path | str) -> Path:
    """Path of the `.objidconfig` file for a project."""
    return normalize_project_path(project_path) / CONFIG_FILENAME


# ==============================================================================
# Parsing
# ==============================================================================


def _strip_comments(text: str) -> str:
    out: list[str] = []
    i = 0
    n = len(text)
    in_string = False
    while i < n:
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
        elif ch == '"':
            in_string = True
            out.append(ch)
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = n if end == -1 else end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            if end == -1:
                raise ConfigInvalidError("Invalid JSON: unterminated block comment")
            i = end + 2
        else:
            out.append(ch)
            i += 1
    return "".join(out)


def _strip_trailing_commas(text: str) -> str:
    out: list[str] = []
    i = 0
    n = len(text)
    in_string = False
    while i < n:
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
            out.append(ch)
        elif ch == "," and _TRAILING_COMMA.match(text, i):
            pass
        else:
            out.append(ch)
        i += 1
    return "".join(out)


def parse_relaxed_json(text: str, *, source: Path | None = None) -> Any:
    """
    Parse JSON that may contain comments and trailing commas.

    Args:
        text: Document text
        source: File the text came from, for error context

    Returns:
        The parsed JSON value

    Raises:
        ConfigInvalidError: If the text is not valid relaxed JSON
    """
    cleaned = _strip_trailing_commas(_strip_comments(text))
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ConfigInvalidError(
            f"Invalid JSON: {e.msg} (line {e.lineno}, column {e.colno})",
            path=str(source) if source else None,
        ) from e


# ==============================================================================
# Validation
# ==============================================================================


def migrate_legacy_shape(document: Mapping[str, Any]) -> tuple[dict[str, Any], bool]:
    """
    Repair documents written by older releases with `idRanges` as a mapping.

    Those releases stored per-type ranges under `idRanges` (which must be a
    flat list) instead of `objectRanges`. When `idRanges` is a mapping and no
    typed map is present, the mapping moves to `objectRanges` and `idRanges`
    becomes an empty list. Any other shape is returned untouched.

    Returns:
        Tuple of (document, migrated)
    """
    result = dict(document)
    legacy = result.get("idRanges")
    if isinstance(legacy, Mapping) and not result.get("objectRanges"):
        result["objectRanges"] = dict(legacy)
        result["idRanges"] = []
        return result, True
    return result, False


def _describe_validation_error(error: ValidationError) -> list[str]:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "<root>"
        messages.append(f"{location}: {item['msg']}")
    return messages


def validate_config(document: Any, *, source: Path | None = None) -> RangeConfig:
    """
    Validate a parsed `.objidconfig` document.

    Args:
        document: Parsed JSON value
        source: File the document came from, for error context

    Returns:
        Validated RangeConfig

    Raises:
        ConfigInvalidError: If the document is not an object or a range is malformed
        NoRangesDefinedError: If no non-empty range is declared anywhere
    """
    path = str(source) if source else None
    if not isinstance(document, Mapping):
        raise ConfigInvalidError("Config must be a JSON object", path=path)

    document, migrated = migrate_legacy_shape(document)
    if migrated:
        logger.info("Migrated legacy idRanges mapping to objectRanges in %s", path or "<config>")

    try:
        config = RangeConfig.model_validate(document)
    except ValidationError as e:
        problems = _describe_validation_error(e)
        raise ConfigInvalidError(
            f"Invalid config: {'; '.join(problems)}", path=path, errors=problems
        ) from e

    if not config.has_ranges():
        raise NoRangesDefinedError(
            "No ID ranges defined (need idRanges list or objectRanges mapping)", path=path
        )
    return config


def _overlaps_in(scope: str, ranges: list[Range]) -> list[Finding]:
    findings = []
    for i, first in enumerate(ranges):
        for second in ranges[i + 1 :]:
            if first.overlaps(second):
                findings.append(
                    Finding(
                        code=FindingCode.RANGE_OVERLAP,
                        message=f"Overlapping ranges in {scope}: [{first}] and [{second}]",
                        details={"path": scope, "ranges": [str(first), str(second)]},
                    )
                )
    return findings


def find_overlaps(config: RangeConfig, object_type: str | None = None) -> list[Finding]:
    """
    Find pairs of overlapping ranges.

    Overlaps are reported, never rejected; allocation walks ranges in
    declared order regardless.

    Args:
        config: Validated configuration
        object_type: If given, only check the ranges that apply to this type

    Returns:
        One RANGE_OVERLAP finding per overlapping pair
    """
    if object_type is not None:
        object_type = object_type.lower()
        scope = (
            f"objectRanges.{object_type}" if config.object_ranges.get(object_type) else "idRanges"
        )
        return _overlaps_in(scope, config.ranges_for(object_type))

    findings = _overlaps_in("idRanges", config.id_ranges)
    for type_name, ranges in config.object_ranges.items():
        findings.extend(_overlaps_in(f"objectRanges.{type_name}", ranges))
    return findings


def inspect_config(config: RangeConfig) -> list[ConfigFinding]:
    """Build the validation report for an already-valid configuration."""
    findings: list[ConfigFinding] = []

    for type_name, ranges in config.object_ranges.items():
        if not ranges:
            findings.append(
                ConfigFinding(
                    path=f"objectRanges.{type_name}",
                    message="No ranges defined for type",
                    severity="warning",
                )
            )

    for overlap in find_overlaps(config):
        findings.append(
            ConfigFinding(
                path=str(overlap.details["path"]), message=overlap.message, severity="warning"
            )
        )

    if config.bc_license:
        findings.append(
            ConfigFinding(path="bcLicense", message="License file configured", severity="info")
        )
    if config.app_pool_id:
        findings.append(
            ConfigFinding(
                path="appPoolId",
                message=f"App pool configured: {config.app_pool_id}",
                severity="info",
            )
        )
    return findings


def merge_documents(existing: Mapping[str, Any], patch: Mapping[str, Any]) -> dict[str, Any]:
    """
    Shallow per-field merge of a patch into an existing document.

    List values replace the existing value wholesale, mapping values are
    merged key-by-key (patch keys win), everything else is replaced.

    Example:
        >>> merge_documents(
        ...     {"idRanges": [{"from": 1, "to": 9}], "objectRanges": {"table": [], "page": []}},
        ...     {"idRanges": [], "objectRanges": {"page": [{"from": 5, "to": 6}]}},
        ... )
        {'idRanges': [], 'objectRanges': {'table': [], 'page': [{'from': 5, 'to': 6}]}}
    """
    merged = dict(existing)
    for key, value in patch.items():
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            merged[key] = {**current, **value}
        else:
            merged[key] = value
    return merged


def _normalize_patch(patch: Mapping[str, Any] | RangeConfig) -> dict[str, Any]:
    document = patch.to_document() if isinstance(patch, RangeConfig) else dict(patch)
    typed = document.get("objectRanges")
    if isinstance(typed, Mapping):
        document["objectRanges"] = {str(k).lower(): v for k, v in typed.items()}
    return document


# ==============================================================================
# Store
# ==============================================================================


class RangeConfigStore:
    """
    Reads and writes `.objidconfig` files with an optional TTL read cache.

    One store instance is meant to be shared by everything in a process that
    reads range configuration; construct it once and pass it in.

    Attributes:
        cache_ttl: Seconds a cached entry stays valid
        cache_enabled: Whether reads consult and fill the cache
    """

    def __init__(
        self,
        cache_ttl: float = 300.0,
        cache_enabled: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.cache_ttl = cache_ttl
        self.cache_enabled = cache_enabled
        self._clock = clock
        self._cache: dict[Path, tuple[RangeConfig, float]] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> RangeConfigStore:
        return cls(cache_ttl=settings.cache_ttl, cache_enabled=settings.cache_enabled)

    def read(self, project_path: Path | str) -> RangeConfig | None:
        """
        Read a project's range configuration.

        Args:
            project_path: Project directory (or its app.json)

        Returns:
            Validated RangeConfig, or None if the project has no `.objidconfig`

        Raises:
            ConfigInvalidError: If the file exists but is malformed
            NoRangesDefinedError: If the file declares no ranges at all
        """
        key = normalize_project_path(project_path)

        if self.cache_enabled:
            with self._lock:
                entry = self._cache.get(key)
            if entry is not None:
                config, stored_at = entry
                if self._clock() - stored_at < self.cache_ttl:
                    return config

        config = self._load(key)
        if self.cache_enabled:
            with self._lock:
                if config is None:
                    self._cache.pop(key, None)
                else:
                    self._cache[key] = (config, self._clock())
        return config

    def write(
        self,
        project_path: Path | str,
        patch: Mapping[str, Any] | RangeConfig,
        merge: bool = True,
    ) -> RangeConfig:
        """
        Write range configuration, merging into the existing file by default.

        Args:
            project_path: Project directory (or its app.json)
            patch: Document fields to write
            merge: Merge into the existing document instead of replacing it

        Returns:
            The validated configuration that was written

        Raises:
            ConfigInvalidError: If the existing file or the result is malformed
            NoRangesDefinedError: If the result declares no ranges
            ConfigWriteError: If the file cannot be written
        """
        key = normalize_project_path(project_path)
        path = key / CONFIG_FILENAME
        document = _normalize_patch(patch)

        if merge:
            existing = self._load(key)
            if existing is not None:
                document = merge_documents(existing.to_document(), document)

        config = validate_config(document, source=path)

        try:
            path.write_text(json.dumps(config.to_document(), indent=2) + "\n", encoding="utf-8")
        except OSError as e:
            raise ConfigWriteError(f"Failed to write config: {e}", path=str(path)) from e

        logger.debug("Wrote %s (merge=%s)", path, merge)

        if self.cache_enabled:
            with self._lock:
                self._cache[key] = (config, self._clock())
        return config

    def validate(self, project_path: Path | str) -> ConfigReport:
        """
        Build a validation report for a project's configuration.

        Never raises for configuration problems; they are reported as
        error findings instead.
        """
        key = normalize_project_path(project_path)
        path = key / CONFIG_FILENAME
        if not path.exists():
            return ConfigReport(
                exists=False,
                valid=False,
                findings=[
                    ConfigFinding(
                        path=CONFIG_FILENAME,
                        message="Configuration file not found",
                        severity="error",
                    )
                ],
            )

        try:
            config = self._load(key)
        except ObjIdError as e:
            return ConfigReport(
                exists=True,
                valid=False,
                findings=[ConfigFinding(path=CONFIG_FILENAME, message=str(e), severity="error")],
            )

        findings = inspect_config(config) if config is not None else []
        return ConfigReport(
            exists=True,
            valid=not any(f.severity == "error" for f in findings),
            config=config,
            findings=findings,
        )

    def clear_cache(self, project_path: Path | str | None = None) -> None:
        """Drop one cached entry, or all of them."""
        with self._lock:
            if project_path is None:
                self._cache.clear()
            else:
                self._cache.pop(normalize_project_path(project_path), None)

    def _load(self, project_path: Path) -> RangeConfig | None:
        path = project_path / CONFIG_FILENAME
        try:
            text = path.read_text(encoding="utf-8-sig")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise ConfigInvalidError(f"Failed to read config: {e}", path=str(path)) from e
        return validate_config(parse_relaxed_json(text, source=path), source=path)
