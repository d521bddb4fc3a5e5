"""GitLab table storage using the repository files API."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from urllib.parse import quote

import httpx

from repotables.exceptions import RemoteServerError
from repotables.remote.base import FetchResult, decode_content, encode_content, raise_for_status

if TYPE_CHECKING:
    from repotables.location import RepositoryRef, TableLocation

GITLAB_API_URL = "https://gitlab.com/api/v4"
_LAST_COMMIT_HEADER = "X-Gitlab-Last-Commit-Id"
# GitLab answers 400 both for "file already exists" on create and for a
# stale last_commit_id on update/delete.
_CREATE_EXISTS_STATUSES = frozenset({400, 409})
_WRITE_CONFLICT_STATUSES = frozenset({400, 409})


def _project_url(repository: RepositoryRef) -> str:
    return f"/projects/{quote(repository.slug, safe='')}"


def _file_url(location: TableLocation) -> str:
    project = _project_url(location.repository)
    return f"{project}/repository/files/{quote(location.full_path, safe='')}"


class GitLabStore:
    """Stores table files in a GitLab project.

    Revisions are the id of the last commit that touched the file; GitLab
    checks them when passed as ``last_commit_id``.
    """

    def __init__(
        self,
        token: str,
        username: str | None = None,
        *,
        api_url: str = GITLAB_API_URL,
        commit_message: str = "repotables: update table",
        author_name: str = "repotables",
        author_email: str = "repotables@localhost",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        # GitLab tokens identify their owner; the username is not needed.
        del username
        self._commit_fields = {
            "commit_message": commit_message,
            "author_name": author_name,
            "author_email": author_email,
        }
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            msg = f"GitLab request {method} {url} failed: {exc}"
            raise RemoteServerError(msg) from exc

    async def fetch(self, location: TableLocation) -> FetchResult:
        resp = await self._request(
            "GET", _file_url(location), params={"ref": location.repository.branch}
        )
        raise_for_status(resp, f"Fetching {location}")
        data = resp.json()
        content = decode_content(data.get("content", ""), location)
        return FetchResult(content=content, revision=data["last_commit_id"])

    async def _head_revision(self, location: TableLocation) -> str:
        resp = await self._request(
            "HEAD", _file_url(location), params={"ref": location.repository.branch}
        )
        raise_for_status(resp, f"Looking up revision of {location}")
        revision = resp.headers.get(_LAST_COMMIT_HEADER)
        if not revision:
            msg = f"Looking up revision of {location} failed: missing {_LAST_COMMIT_HEADER}"
            raise RemoteServerError(msg, resp.status_code)
        return revision

    def _body(self, location: TableLocation, **fields: Any) -> dict[str, Any]:
        return {"branch": location.repository.branch, **self._commit_fields, **fields}

    async def write(
        self,
        location: TableLocation,
        content: dict[str, Any],
        revision: str | None = None,
    ) -> str:
        body = self._body(location, content=encode_content(content), encoding="base64")
        if revision:
            body["last_commit_id"] = revision
        resp = await self._request("PUT", _file_url(location), json=body)
        raise_for_status(
            resp, f"Writing {location}", conflict_statuses=_WRITE_CONFLICT_STATUSES
        )
        # The update response carries only file_path and branch, so the new
        # commit id comes from a HEAD request. A commit to this file landing
        # between the two requests is recorded as ours; the next write then
        # overwrites it without a conflict.
        return await self._head_revision(location)

    async def create(self, location: TableLocation, content: dict[str, Any]) -> str:
        body = self._body(location, content=encode_content(content), encoding="base64")
        resp = await self._request("POST", _file_url(location), json=body)
        raise_for_status(
            resp,
            f"Creating {location}",
            exists_statuses=_CREATE_EXISTS_STATUSES,
            conflict_statuses=frozenset(),
        )
        return await self._head_revision(location)

    async def delete(self, location: TableLocation, revision: str | None = None) -> None:
        body = self._body(location)
        if revision:
            body["last_commit_id"] = revision
        resp = await self._request("DELETE", _file_url(location), json=body)
        raise_for_status(
            resp, f"Deleting {location}", conflict_statuses=_WRITE_CONFLICT_STATUSES
        )

    async def probe(self, repository: RepositoryRef) -> None:
        resp = await self._request("GET", _project_url(repository))
        raise_for_status(resp, f"Probing {repository}")

    async def aclose(self) -> None:
        await self._client.aclose()
