"""In-process table storage with the same revision semantics as the hosts.

Thread-safety: safe under asyncio's single-threaded cooperative model. No
method awaits between reading and mutating ``_files``.
"""

from __future__ import annotations

import copy
import itertools
from typing import TYPE_CHECKING, Any

from repotables.exceptions import (
    RemoteAlreadyExistsError,
    RemoteConflictError,
    RemoteNotFoundError,
)
from repotables.remote.base import FetchResult

if TYPE_CHECKING:
    from collections.abc import Iterable

    from repotables.location import RepositoryRef, TableLocation


class MemoryStore:
    """Keeps table files in a dict keyed by repository and file path."""

    def __init__(self, repositories: Iterable[RepositoryRef] | None = None) -> None:
        self._files: dict[tuple[str, str], tuple[dict[str, Any], str]] = {}
        self._revisions = itertools.count(1)
        self._repositories = (
            None if repositories is None else {repo.slug for repo in repositories}
        )

    @staticmethod
    def _key(location: TableLocation) -> tuple[str, str]:
        return str(location.repository), location.full_path

    def _next_revision(self) -> str:
        return f"r{next(self._revisions)}"

    def files(self) -> dict[str, dict[str, Any]]:
        """Return a copy of every stored table keyed by full path."""
        return {path: copy.deepcopy(content) for (_, path), (content, _) in self._files.items()}

    async def fetch(self, location: TableLocation) -> FetchResult:
        entry = self._files.get(self._key(location))
        if entry is None:
            msg = f"No file at {location}"
            raise RemoteNotFoundError(msg, 404)
        content, revision = entry
        return FetchResult(content=copy.deepcopy(content), revision=revision)

    async def write(
        self,
        location: TableLocation,
        content: dict[str, Any],
        revision: str | None = None,
    ) -> str:
        key = self._key(location)
        entry = self._files.get(key)
        if entry is None:
            msg = f"No file at {location}"
            raise RemoteNotFoundError(msg, 404)
        if revision is not None and revision != entry[1]:
            msg = f"Stale revision {revision} for {location} (current {entry[1]})"
            raise RemoteConflictError(msg, 409)
        new_revision = self._next_revision()
        self._files[key] = (copy.deepcopy(content), new_revision)
        return new_revision

    async def create(self, location: TableLocation, content: dict[str, Any]) -> str:
        key = self._key(location)
        if key in self._files:
            msg = f"File already exists at {location}"
            raise RemoteAlreadyExistsError(msg, 422)
        revision = self._next_revision()
        self._files[key] = (copy.deepcopy(content), revision)
        return revision

    async def delete(self, location: TableLocation, revision: str | None = None) -> None:
        key = self._key(location)
        entry = self._files.get(key)
        if entry is None:
            msg = f"No file at {location}"
            raise RemoteNotFoundError(msg, 404)
        if revision is not None and revision != entry[1]:
            msg = f"Stale revision {revision} for {location} (current {entry[1]})"
            raise RemoteConflictError(msg, 409)
        del self._files[key]

    async def probe(self, repository: RepositoryRef) -> None:
        if self._repositories is not None and repository.slug not in self._repositories:
            msg = f"Unknown repository {repository}"
            raise RemoteNotFoundError(msg, 404)

    async def aclose(self) -> None:
        return None
