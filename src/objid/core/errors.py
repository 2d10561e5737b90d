"""
Error taxonomy and structured warnings for objid.

Every hard failure carries a stable machine-readable code plus a human-readable
message. Non-fatal findings (range overlaps, ID collisions, out-of-range
reservations, tracking failures) are reported as `Finding` objects alongside
successful results instead of being raised.

Exception Hierarchy:
    ObjIdError (base)
    ├── ConfigInvalidError (malformed or missing range data)
    ├── ConfigWriteError (config could not be persisted)
    ├── NoRangesDefinedError (object type has zero declared capacity)
    ├── NoIdsAvailableError (declared ranges are fully consumed)
    ├── InvalidParameterError (incomplete request)
    ├── SyncConflictError (local IDs outside declared ranges during sync)
    └── BackendError (remote allocator call failed)

Example:
    >>> from objid.core.errors import NoRangesDefinedError
    >>> try:
    ...     raise NoRangesDefinedError("No ID ranges defined for table", object_type="table")
    ... except NoRangesDefinedError as e:
    ...     print(e.code, e.context["object_type"])
    NO_RANGES_DEFINED table
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Stable error codes surfaced to callers."""

    CONFIG_INVALID = "CONFIG_INVALID"
    CONFIG_WRITE_ERROR = "CONFIG_WRITE_ERROR"
    NO_RANGES_DEFINED = "NO_RANGES_DEFINED"
    NO_IDS_AVAILABLE = "NO_IDS_AVAILABLE"
    INVALID_PARAMETER = "INVALID_PARAMETER"
    SYNC_CONFLICT = "SYNC_CONFLICT"
    SOURCE_READ_ERROR = "SOURCE_READ_ERROR"
    BACKEND_ERROR = "BACKEND_ERROR"


class BackendErrorCategory(str, Enum):
    """Transport-derived classification of a remote allocator failure."""

    AUTH_REQUIRED = "auth_required"
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    UNAVAILABLE = "unavailable"
    GENERIC = "generic"

    @classmethod
    def from_status(cls, status_code: int | None) -> BackendErrorCategory:
        """Map an HTTP status code to a category."""
        if status_code in (401, 403):
            return cls.AUTH_REQUIRED
        if status_code == 404:
            return cls.NOT_FOUND
        if status_code == 429:
            return cls.RATE_LIMITED
        if status_code in (500, 502, 503, 504):
            return cls.UNAVAILABLE
        return cls.GENERIC


class ObjIdError(Exception):
    """
    Base exception for all objid errors.

    Attributes:
        code: Stable machine-readable error code
        message: Human-readable error message
        context: Additional diagnostic context (object type, mode, path, ...)
    """

    code: ErrorCode = ErrorCode.CONFIG_INVALID

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, object] = dict(context)

    def __str__(self) -> str:
        return self.message

    def to_dict(self) -> dict[str, Any]:
        """Serialize for JSON output."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": {k: _jsonable(v) for k, v in self.context.items()},
        }


class ConfigInvalidError(ObjIdError):
    """The configuration document exists but fails structural validation."""

    code = ErrorCode.CONFIG_INVALID


class ConfigWriteError(ObjIdError):
    """The configuration document could not be written."""

    code = ErrorCode.CONFIG_WRITE_ERROR


class NoRangesDefinedError(ObjIdError):
    """No non-empty ID range is declared for the requested object type."""

    code = ErrorCode.NO_RANGES_DEFINED


class NoIdsAvailableError(ObjIdError):
    """Every ID in the eligible ranges is already consumed."""

    code = ErrorCode.NO_IDS_AVAILABLE


class InvalidParameterError(ObjIdError):
    """The caller supplied an incomplete or contradictory request."""

    code = ErrorCode.INVALID_PARAMETER


class SyncConflictError(ObjIdError):
    """Local IDs conflict with the declared ranges and sync was not forced."""

    code = ErrorCode.SYNC_CONFLICT


class SourceReadError(ObjIdError):
    """A project source file could not be read or decoded."""

    code = ErrorCode.SOURCE_READ_ERROR


class BackendError(ObjIdError):
    """
    A remote allocator call failed.

    Raised after exactly one attempt. The category is derived from the HTTP
    status when one is available; network failures are `UNAVAILABLE`.

    Attributes:
        category: Transport-derived failure category
        status_code: HTTP status code, if the server answered
    """

    code = ErrorCode.BACKEND_ERROR

    def __init__(
        self,
        message: str,
        category: BackendErrorCategory = BackendErrorCategory.GENERIC,
        status_code: int | None = None,
        **context: object,
    ) -> None:
        super().__init__(message, **context)
        self.category = category
        self.status_code = status_code

    def annotate(self, **context: object) -> BackendError:
        """Attach calling-site context without overwriting existing keys."""
        for key, value in context.items():
            self.context.setdefault(key, value)
        return self

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["category"] = self.category.value
        if self.status_code is not None:
            data["status_code"] = self.status_code
        return data


# ---------------------------------------------------------------------------
# Structured warnings
# ---------------------------------------------------------------------------


class FindingCode(str, Enum):
    """Codes for non-fatal findings."""

    RANGE_OVERLAP = "RANGE_OVERLAP"
    ID_COLLISION = "ID_COLLISION"
    ID_OUT_OF_RANGE = "ID_OUT_OF_RANGE"
    TRACKING_FAILED = "TRACKING_FAILED"
    BACKEND_WARNING = "BACKEND_WARNING"


class Finding(BaseModel):
    """A non-fatal finding reported alongside a successful result."""

    code: FindingCode
    message: str
    details: dict[str, Any] = Field(default_factory=dict)


def _jsonable(value: object) -> object:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json", by_alias=True)
    return str(value)
