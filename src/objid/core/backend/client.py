"""
HTTP client for the remote ID allocator.

The allocator is the authority on which IDs are committed. This client sends
exactly one request per call and never retries; failures are raised as
BackendError with a category derived from the HTTP status (auth required,
not found, rate limited, unavailable, generic).

Endpoints:
    POST  /api/v2/getNext          reserve IDs within ranges
    POST  /api/v2/returnIds        return IDs to the pool
    GET   /api/v2/getConsumption   full consumption ledger (JSON body)
    POST  /api/v2/storeAssignment  record one assignment
    POST  /api/v2/syncIds          replace the ledger with local consumption
    PATCH /api/v2/syncIds          merge local consumption into the ledger
    GET   /api/v2/checkApp         whether the allocator knows the app

Example:
    >>> with AllocatorClient.from_settings(load_settings()) as client:
    ...     response = client.reserve_next(identity, "table", ranges, count=2)
    ...     response.ids
    [50102, 50103]
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from types import TracebackType
from typing import TYPE_CHECKING, Any

import httpx

from objid.core.backend.models import ReclaimResponse, ReserveResponse, TrackResponse
from objid.core.config.models import Range
from objid.core.config.settings import DEFAULT_BACKEND_URL
from objid.core.errors import BackendError, BackendErrorCategory

if TYPE_CHECKING:
    from objid.core.config.settings import Settings

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v2"


def _error_from_response(operation: str, response: httpx.Response) -> BackendError:
    status = response.status_code
    category = BackendErrorCategory.from_status(status)

    if category is BackendErrorCategory.AUTH_REQUIRED:
        message = f"Authorization required for {operation}"
    elif category is BackendErrorCategory.NOT_FOUND:
        message = f"Resource not found: {operation}"
    elif category is BackendErrorCategory.RATE_LIMITED:
        message = "Rate limit exceeded"
    elif category is BackendErrorCategory.UNAVAILABLE:
        message = "Backend service unavailable"
    else:
        body = response.text.strip() or response.reason_phrase
        message = f"Backend error: {body}"

    return BackendError(message, category, status, operation=operation)


def _malformed_response(operation: str, error: Exception) -> BackendError:
    return BackendError(
        f"Malformed allocator response for {operation}: {error}",
        BackendErrorCategory.GENERIC,
        operation=operation,
    )


def _parse_consumption(data: Mapping[str, Any]) -> dict[str, list[int]]:
    consumption: dict[str, list[int]] = {}
    for object_type, ids in data.items():
        # Metadata keys such as _appInfo are not object types
        if object_type.startswith("_") or not isinstance(ids, list):
            continue
        consumption[object_type] = [
            int(item["id"] if isinstance(item, Mapping) else item) for item in ids
        ]
    return consumption


class AllocatorClient:
    """
    Synchronous client for the remote allocator.

    Attributes:
        base_url: Allocator base URL
        auth_key: App authorization key sent in request bodies
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BACKEND_URL,
        api_key: str | None = None,
        auth_key: str | None = None,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["x-api-key"] = api_key

        self.base_url = base_url
        self.auth_key = auth_key
        self._client = httpx.Client(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.BaseTransport | None = None
    ) -> AllocatorClient:
        return cls(
            base_url=settings.backend_url,
            api_key=settings.api_key,
            auth_key=settings.auth_key,
            timeout=settings.timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> AllocatorClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def reserve_next(
        self,
        identity: str,
        object_type: str,
        ranges: Iterable[Range],
        count: int = 1,
    ) -> ReserveResponse:
        """
        Allocate and durably record `count` fresh IDs within `ranges`.

        The ranges sent here are the ones the client declared locally, so the
        allocator enforces the same legal domain the client previews against.
        """
        payload = {
            "appId": identity,
            "authKey": self.auth_key or "",
            "type": object_type,
            "ranges": [r.model_dump(by_alias=True) for r in ranges],
            "count": count,
        }
        data = self._request("POST", "/getNext", payload, "reserve")
        try:
            return ReserveResponse.from_payload(data)
        except (TypeError, ValueError) as e:
            raise _malformed_response("reserve", e) from e

    def reclaim_ids(
        self, identity: str, object_type: str, ids: Iterable[int]
    ) -> ReclaimResponse:
        """Return IDs to the pool; the response lists any the allocator refused."""
        requested = list(ids)
        payload = {
            "appId": identity,
            "authKey": self.auth_key or "",
            "type": object_type,
            "ids": requested,
        }
        data = self._request("POST", "/returnIds", payload, "reclaim")
        try:
            return ReclaimResponse.from_payload(data, requested)
        except (TypeError, ValueError) as e:
            raise _malformed_response("reclaim", e) from e

    def get_consumption(self, identity: str) -> dict[str, list[int]]:
        """
        Fetch the allocator's consumption ledger for an app.

        Returns:
            Mapping of object type to consumed IDs; empty if the app is unknown

        Raises:
            BackendError: If the request fails or an entry is not an ID
        """
        payload = {"appId": identity, "authKey": self.auth_key or ""}
        data = self._request(
            "GET", "/getConsumption", payload, "consumption", allow_not_found=True
        )
        if not isinstance(data, Mapping):
            return {}
        try:
            return _parse_consumption(data)
        except (KeyError, TypeError, ValueError) as e:
            raise _malformed_response("consumption", e) from e

    def track_assignment(self, identity: str, object_type: str, object_id: int) -> TrackResponse:
        """Record one assigned ID in the allocator's ledger."""
        payload = {
            "appId": identity,
            "authKey": self.auth_key or "",
            "type": object_type,
            "id": object_id,
        }
        data = self._request("POST", "/storeAssignment", payload, "track_assignment")
        if isinstance(data, Mapping):
            return TrackResponse(updated=bool(data.get("updated", False)))
        return TrackResponse(updated=False)

    def sync_ids(
        self, identity: str, ids: Mapping[str, Iterable[int]], merge: bool = False
    ) -> dict[str, Any]:
        """
        Push local consumption to the allocator.

        Args:
            identity: App identity
            ids: Consumed IDs per object type
            merge: Merge into the ledger (PATCH) instead of replacing it (POST)
        """
        payload = {
            "appId": identity,
            "authKey": self.auth_key or "",
            "ids": {object_type: sorted(set(values)) for object_type, values in ids.items()},
        }
        data = self._request("PATCH" if merge else "POST", "/syncIds", payload, "sync")
        return dict(data) if isinstance(data, Mapping) else {}

    def check_app(self, identity: str) -> bool:
        """True if the allocator knows the app."""
        data = self._request(
            "GET", "/checkApp", {"appId": identity}, "check_app", allow_not_found=True
        )
        return data is True or data == "true"

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(
        self,
        method: str,
        endpoint: str,
        payload: Mapping[str, Any],
        operation: str,
        *,
        allow_not_found: bool = False,
    ) -> Any:
        url = f"{API_PREFIX}{endpoint}"
        logger.debug("%s %s (%s)", method, url, operation)

        try:
            # The allocator reads JSON bodies on GET requests as well
            response = self._client.request(method, url, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            if allow_not_found and e.response.status_code == 404:
                return None
            raise _error_from_response(operation, e.response) from e
        except httpx.TimeoutException as e:
            raise BackendError(
                f"Backend request timed out: {operation}",
                BackendErrorCategory.UNAVAILABLE,
                operation=operation,
            ) from e
        except httpx.RequestError as e:
            raise BackendError(
                f"Backend service unreachable: {e}",
                BackendErrorCategory.UNAVAILABLE,
                operation=operation,
            ) from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text.strip()
