"""Shared test fixtures for repotables."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import pytest

from repotables.config import Settings
from repotables.exceptions import RemoteServerError
from repotables.manager import TableManager
from repotables.remote.memory import MemoryStore

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from repotables.location import RepositoryRef, TableLocation
    from repotables.remote.base import FetchResult

REPOSITORY_URL = "https://github.com/octo/data/blob/main/"


class RecordingStore(MemoryStore):
    """MemoryStore that records calls and can fail or stall writes."""

    def __init__(self, repositories: list[RepositoryRef] | None = None) -> None:
        super().__init__(repositories)
        self.calls: list[tuple[str, str]] = []
        self.written: list[tuple[str, dict[str, Any]]] = []
        self.fail_writes = 0
        self.fail_fetch: Exception | None = None
        self.write_gate: asyncio.Event | None = None
        self.write_started = asyncio.Event()

    def count(self, operation: str, path: str | None = None) -> int:
        return sum(
            1 for op, p in self.calls if op == operation and (path is None or p == path)
        )

    async def seed(self, location: TableLocation, content: dict[str, Any]) -> str:
        return await super().create(location, content)

    async def fetch(self, location: TableLocation) -> FetchResult:
        self.calls.append(("fetch", location.path))
        if self.fail_fetch is not None:
            raise self.fail_fetch
        return await super().fetch(location)

    async def write(
        self,
        location: TableLocation,
        content: dict[str, Any],
        revision: str | None = None,
    ) -> str:
        self.calls.append(("write", location.path))
        self.write_started.set()
        if self.write_gate is not None:
            await self.write_gate.wait()
        if self.fail_writes:
            self.fail_writes -= 1
            msg = "simulated outage"
            raise RemoteServerError(msg, 503)
        self.written.append((location.path, content))
        return await super().write(location, content, revision)

    async def create(self, location: TableLocation, content: dict[str, Any]) -> str:
        self.calls.append(("create", location.path))
        self.written.append((location.path, content))
        return await super().create(location, content)

    async def delete(self, location: TableLocation, revision: str | None = None) -> None:
        self.calls.append(("delete", location.path))
        await super().delete(location, revision)

    async def probe(self, repository: RepositoryRef) -> None:
        self.calls.append(("probe", repository.slug))
        await super().probe(repository)


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "repository_url": REPOSITORY_URL,
        "token": "test-token",
        "username": "tester",
        "flush_interval_ms": 10,
        "retry_interval_ms": 10,
        "db_filename": None,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


async def wait_settled(*futures: asyncio.Future[Any], timeout: float = 2.0) -> list[Any]:
    """Await futures with a timeout so a missed flush fails instead of hanging."""
    return await asyncio.wait_for(asyncio.gather(*futures), timeout=timeout)


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def store() -> RecordingStore:
    return RecordingStore()


@pytest.fixture
async def manager(settings: Settings, store: RecordingStore) -> AsyncGenerator[TableManager, None]:
    mgr = TableManager(settings, store=store)
    yield mgr
    await mgr.aclose()
