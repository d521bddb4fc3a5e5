"""GitHub table storage using the repository contents API."""

from __future__ import annotations

import base64
import logging
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from repotables.exceptions import RemoteServerError
from repotables.remote.base import (
    FetchResult,
    decode_content,
    encode_content,
    parse_content,
    raise_for_status,
)

if TYPE_CHECKING:
    from repotables.location import RepositoryRef, TableLocation

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
_JSON_MEDIA_TYPE = "application/vnd.github+json"
_RAW_MEDIA_TYPE = "application/vnd.github.raw+json"
_CREATE_EXISTS_STATUSES = frozenset({409, 422})
_WRITE_CONFLICT_STATUSES = frozenset({409, 422})


def _auth_header(token: str, username: str | None) -> dict[str, str]:
    if not token:
        return {}
    if username:
        basic = base64.b64encode(f"{username}:{token}".encode()).decode("ascii")
        return {"Authorization": f"Basic {basic}"}
    return {"Authorization": f"Bearer {token}"}


def _contents_url(location: TableLocation) -> str:
    repo = location.repository
    return f"/repos/{quote(repo.owner)}/{quote(repo.name)}/contents/{quote(location.full_path)}"


class GitHubStore:
    """Stores table files in a GitHub repository.

    Revisions are blob SHAs. GitHub requires the current SHA to overwrite or
    delete a file, so ``write`` and ``delete`` look it up when none is given.
    """

    def __init__(
        self,
        token: str,
        username: str | None = None,
        *,
        api_url: str = GITHUB_API_URL,
        commit_message: str = "repotables: update table",
        author_name: str = "repotables",
        author_email: str = "repotables@localhost",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._commit_message = commit_message
        self._committer = {"name": author_name, "email": author_email}
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers={"Accept": _JSON_MEDIA_TYPE, **_auth_header(token, username)},
            timeout=timeout,
            transport=transport,
        )

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            msg = f"GitHub request {method} {url} failed: {exc}"
            raise RemoteServerError(msg) from exc

    async def fetch(self, location: TableLocation) -> FetchResult:
        resp = await self._request(
            "GET", _contents_url(location), params={"ref": location.repository.branch}
        )
        raise_for_status(resp, f"Fetching {location}")
        data = resp.json()
        if not isinstance(data, dict) or data.get("type", "file") != "file":
            msg = f"Fetching {location} failed: path is not a file"
            raise RemoteServerError(msg, resp.status_code)

        if data.get("encoding") == "none":
            # Files over 1 MB come back without inline content.
            logger.debug("Fetching raw content of large file %s", location)
            raw = await self._request(
                "GET",
                _contents_url(location),
                params={"ref": location.repository.branch},
                headers={"Accept": _RAW_MEDIA_TYPE},
            )
            raise_for_status(raw, f"Fetching raw {location}")
            content = parse_content(raw.content, location)
        else:
            content = decode_content(data.get("content", ""), location)
        return FetchResult(content=content, revision=data["sha"])

    async def _current_sha(self, location: TableLocation) -> str:
        resp = await self._request(
            "GET", _contents_url(location), params={"ref": location.repository.branch}
        )
        raise_for_status(resp, f"Looking up revision of {location}")
        sha: str = resp.json()["sha"]
        return sha

    async def _put(
        self,
        location: TableLocation,
        content: dict[str, Any],
        sha: str | None,
        *,
        action: str,
        exists_statuses: frozenset[int] = frozenset(),
        conflict_statuses: frozenset[int] = frozenset({409}),
    ) -> str:
        body: dict[str, Any] = {
            "message": self._commit_message,
            "content": encode_content(content),
            "branch": location.repository.branch,
            "committer": self._committer,
        }
        if sha:
            body["sha"] = sha
        resp = await self._request("PUT", _contents_url(location), json=body)
        raise_for_status(
            resp,
            action,
            exists_statuses=exists_statuses,
            conflict_statuses=conflict_statuses,
        )
        new_sha: str = resp.json()["content"]["sha"]
        return new_sha

    async def write(
        self,
        location: TableLocation,
        content: dict[str, Any],
        revision: str | None = None,
    ) -> str:
        sha = revision or await self._current_sha(location)
        return await self._put(
            location,
            content,
            sha,
            action=f"Writing {location}",
            conflict_statuses=_WRITE_CONFLICT_STATUSES,
        )

    async def create(self, location: TableLocation, content: dict[str, Any]) -> str:
        # Without a sha GitHub refuses to overwrite an existing file.
        return await self._put(
            location,
            content,
            None,
            action=f"Creating {location}",
            exists_statuses=_CREATE_EXISTS_STATUSES,
        )

    async def delete(self, location: TableLocation, revision: str | None = None) -> None:
        sha = revision or await self._current_sha(location)
        body = {
            "message": self._commit_message,
            "sha": sha,
            "branch": location.repository.branch,
            "committer": self._committer,
        }
        resp = await self._request("DELETE", _contents_url(location), json=body)
        raise_for_status(
            resp, f"Deleting {location}", conflict_statuses=_WRITE_CONFLICT_STATUSES
        )

    async def probe(self, repository: RepositoryRef) -> None:
        resp = await self._request(
            "GET", f"/repos/{quote(repository.owner)}/{quote(repository.name)}"
        )
        raise_for_status(resp, f"Probing {repository}")

    async def aclose(self) -> None:
        await self._client.aclose()
