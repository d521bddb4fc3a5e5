"""Table manager: the set of tables sharing one repository and credentials."""

from __future__ import annotations

import asyncio
import logging
from types import MappingProxyType
from typing import TYPE_CHECKING

from repotables.remote.registry import create_store
from repotables.table import Table

if TYPE_CHECKING:
    from collections.abc import Mapping

    from repotables.config import Settings
    from repotables.hooks import TableHooks
    from repotables.location import RepositoryRef
    from repotables.remote.base import RemoteStore

logger = logging.getLogger(__name__)


class TableManager:
    """Owns the tables of one repository and their shared commit policy.

    Args:
        settings: Repository, credentials and commit policy.
        store: Remote store adapter. Defaults to the adapter registered for
            the repository's host.

    Raises:
        InvalidConfigurationError: If ``settings.repository_url`` is malformed.
    """

    def __init__(self, settings: Settings, *, store: RemoteStore | None = None) -> None:
        self.settings = settings
        self.repository: RepositoryRef = settings.repository()
        self.store: RemoteStore = store if store is not None else create_store(
            settings, self.repository
        )
        self.closed = False
        self._tables: dict[str, Table] = {}
        self.database: Table | None = None
        if settings.db_filename:
            self.database = self.create_table(settings.db_filename)

    async def __aenter__(self) -> TableManager:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    @property
    def tables(self) -> Mapping[str, Table]:
        """Registered tables keyed by path, in creation order."""
        return MappingProxyType(self._tables)

    @property
    def flush_interval(self) -> float:
        return self.settings.flush_interval

    @property
    def retry_interval(self) -> float:
        return self.settings.retry_interval

    def create_table(self, path: str, hooks: TableHooks | None = None) -> Table:
        """Register a table for the JSON file at ``path``.

        Registering a path twice replaces the earlier table.
        """
        location = self.repository.locate(path)
        if location.path in self._tables:
            logger.warning("Replacing table registered for %s", location)
        table = Table(self, location, hooks)
        self._tables[location.path] = table
        return table

    async def connect_all(self) -> None:
        """Connect every table that is not yet connected, one at a time.

        The first failure aborts and propagates; tables connected before it
        stay connected. The manager reopens only after all succeed.
        """
        pending = [table for table in self._tables.values() if not table.connected]
        total = len(pending)
        for index, table in enumerate(pending, start=1):
            await table.connect()
            logger.info("Tables connected: %d/%d", index, total)

        self._reopen()

    async def reconnect(self) -> None:
        """Check the repository is reachable and reopen the manager.

        Table contents are not fetched again.
        """
        await self.store.probe(self.repository)
        self._reopen()

    def _reopen(self) -> None:
        if self.closed:
            logger.info("Reopening table manager for %s", self.repository)
        self.closed = False
        for table in self._tables.values():
            table.resume()

    def close(self) -> None:
        """Reject new writes and pause scheduled flushes.

        Pending writes stay queued; their futures settle only after the
        manager reopens and a flush succeeds.
        """
        self.closed = True
        logger.info("Closed table manager for %s", self.repository)

    async def commit_all(self) -> None:
        """Flush every table with at least ``min_queue_size`` pending writes.

        Flushes run concurrently. Each failure is logged; once all have
        settled the first one is raised.
        """
        threshold = self.settings.min_queue_size
        eligible = [
            table
            for table in self._tables.values()
            if table.connected and table.pending >= threshold
        ]
        if not eligible:
            return

        results = await asyncio.gather(
            *(table.flush() for table in eligible), return_exceptions=True
        )
        errors: list[BaseException] = []
        for table, result in zip(eligible, results, strict=True):
            if isinstance(result, BaseException):
                logger.error("Commit of %s failed: %s", table.location, result)
                errors.append(result)
        if errors:
            raise errors[0]

    async def aclose(self) -> None:
        """Cancel all flush timers and release the remote store.

        Pending writes are not flushed.
        """
        for table in self._tables.values():
            await table.aclose()
        await self.store.aclose()
