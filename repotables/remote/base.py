"""Remote store protocol and helpers shared by the HTTP adapters."""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from repotables.exceptions import (
    InvalidContentError,
    RemoteAlreadyExistsError,
    RemoteConflictError,
    RemoteError,
    RemoteNotFoundError,
    RemoteServerError,
    RemoteUnauthorizedError,
)

if TYPE_CHECKING:
    import httpx

    from repotables.location import RepositoryRef, TableLocation


@dataclass(frozen=True)
class FetchResult:
    """Content of a table file and the revision it was read at."""

    content: dict[str, Any]
    revision: str


@runtime_checkable
class RemoteStore(Protocol):
    """Protocol for host-specific table file storage."""

    async def fetch(self, location: TableLocation) -> FetchResult:
        """Read a table file. Raises RemoteNotFoundError if it does not exist."""
        ...

    async def write(
        self,
        location: TableLocation,
        content: dict[str, Any],
        revision: str | None = None,
    ) -> str:
        """Overwrite a table file and return its new revision."""
        ...

    async def create(self, location: TableLocation, content: dict[str, Any]) -> str:
        """Create a table file and return its revision."""
        ...

    async def delete(self, location: TableLocation, revision: str | None = None) -> None:
        """Delete a table file."""
        ...

    async def probe(self, repository: RepositoryRef) -> None:
        """Check that the repository exists and the credentials can reach it."""
        ...

    async def aclose(self) -> None:
        """Release network resources."""
        ...


def encode_content(content: dict[str, Any]) -> str:
    """Serialize a table to the base64 form expected by the host APIs."""
    text = json.dumps(content, indent=2, ensure_ascii=False)
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def decode_content(encoded: str, location: TableLocation) -> dict[str, Any]:
    """Decode a base64 file body into a table."""
    try:
        raw = base64.b64decode(encoded)
    except (binascii.Error, ValueError) as exc:
        msg = f"Table file {location} is not valid base64"
        raise InvalidContentError(msg) from exc
    return parse_content(raw, location)


def parse_content(raw: bytes, location: TableLocation) -> dict[str, Any]:
    """Parse raw file bytes into a table. An empty file is an empty table."""
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        msg = f"Table file {location} is not valid JSON"
        raise InvalidContentError(msg) from exc
    if not isinstance(data, dict):
        msg = f"Table file {location} must hold a JSON object, got {type(data).__name__}"
        raise InvalidContentError(msg)
    return data


def raise_for_status(
    response: httpx.Response,
    action: str,
    *,
    conflict_statuses: frozenset[int] = frozenset({409}),
    exists_statuses: frozenset[int] = frozenset(),
) -> None:
    """Map an unsuccessful host response onto the remote error taxonomy."""
    status = response.status_code
    if response.is_success:
        return
    msg = f"{action} failed: {status} {response.text[:200]}"
    if status in exists_statuses:
        raise RemoteAlreadyExistsError(msg, status)
    if status in conflict_statuses:
        raise RemoteConflictError(msg, status)
    if status in (401, 403):
        raise RemoteUnauthorizedError(msg, status)
    if status == 404:
        raise RemoteNotFoundError(msg, status)
    if status >= 500:
        raise RemoteServerError(msg, status)
    raise RemoteError(msg, status)
