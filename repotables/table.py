"""Table cache: an in-memory view of one JSON file with deferred commits.

Reads are served from memory. ``set`` and ``delete`` update memory at once and
return a future that resolves when a flush containing the change has been
written to the remote store. Flushes are batched: every mutation made within
one flush interval is committed with a single remote write.

Thread-safety: safe under asyncio's single-threaded cooperative model. Store
reads and writes never await. Flushes of one table are serialized by
``_flush_lock``; flushes of different tables may run concurrently.
"""

from __future__ import annotations

import asyncio
import copy
import inspect
import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from repotables.exceptions import (
    ClosedError,
    NotConnectedError,
    RemoteConflictError,
    RemoteNotFoundError,
)
from repotables.hooks import TableHooks

if TYPE_CHECKING:
    from repotables.location import TableLocation
    from repotables.manager import TableManager

logger = logging.getLogger(__name__)

Key = str | int | float | bool
_EXPONENT_THRESHOLD = 1e21


def canonical_key(key: Key) -> str:
    """Return the string form under which ``key`` is stored."""
    if isinstance(key, bool):
        return "true" if key else "false"
    if isinstance(key, float):
        # Match the number-to-string spelling of files written by JavaScript clients.
        if math.isnan(key):
            return "NaN"
        if math.isinf(key):
            return "Infinity" if key > 0 else "-Infinity"
        if key.is_integer() and abs(key) < _EXPONENT_THRESHOLD:
            return str(int(key))
    return str(key)


@dataclass
class _PendingWrite:
    future: asyncio.Future[bool]
    result: bool


@dataclass
class Work:
    """A value checked out with ``Table.work`` and a way to store it back."""

    table: Table
    key: str
    data: Any

    def save(self) -> asyncio.Future[bool]:
        return self.table.set(self.key, self.data)


class Table:
    """Cache of one table file, owned by a ``TableManager``."""

    def __init__(
        self,
        manager: TableManager,
        location: TableLocation,
        hooks: TableHooks | None = None,
    ) -> None:
        self._manager = manager
        self._location = location
        self._hooks = hooks or TableHooks()
        self._store: dict[str, Any] = {}
        self._connected = False
        self._revision: str | None = None
        self._conflicted = False
        self._pending: list[_PendingWrite] = []
        self._timer: asyncio.Task[None] | None = None
        self._flush_lock = asyncio.Lock()
        self._hook_tasks: set[asyncio.Task[None]] = set()

    def __repr__(self) -> str:
        return f"Table({self._location.path!r}, connected={self._connected}, pending={self.pending})"

    @property
    def path(self) -> str:
        return self._location.path

    @property
    def location(self) -> TableLocation:
        return self._location

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def revision(self) -> str | None:
        """Revision of the remote file as of the last fetch or flush."""
        return self._revision

    @property
    def pending(self) -> int:
        """Number of mutations waiting for a successful flush."""
        return len(self._pending)

    @property
    def closed(self) -> bool:
        """Whether the owning manager is closed."""
        return self._manager.closed

    @property
    def flush_scheduled(self) -> bool:
        return self._timer is not None

    @property
    def conflicted(self) -> bool:
        """Whether the last flush was rejected for a stale revision.

        Scheduled flushes stop until ``refresh_revision`` is called.
        """
        return self._conflicted

    # -- connection ---------------------------------------------------------

    async def connect(self) -> None:
        """Load the table file, creating it empty if it does not exist.

        Does nothing once connected. Any error other than a missing file
        propagates and leaves the table disconnected.
        """
        if self._connected:
            return

        store = self._manager.store
        try:
            result = await store.fetch(self._location)
        except RemoteNotFoundError:
            logger.info("No file found at %s, creating it", self._location)
            self._revision = await store.create(self._location, {})
            self._store = {}
        else:
            self._store = result.content
            self._revision = result.revision

        self._connected = True
        logger.info("Connected table %s (%d keys)", self._location, len(self._store))
        self._run_after_connect()

    def _run_after_connect(self) -> None:
        callback = self._hooks.after_connect
        if callback is None:
            return
        task = asyncio.get_running_loop().create_task(self._call_after_connect(callback))
        self._hook_tasks.add(task)
        task.add_done_callback(self._hook_done)

    @staticmethod
    async def _call_after_connect(callback: Any) -> None:
        result = callback()
        if inspect.isawaitable(result):
            await result

    def _hook_done(self, task: asyncio.Task[None]) -> None:
        self._hook_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "after_connect hook of %s failed", self._location, exc_info=exc
            )

    def _require_connected(self) -> dict[str, Any]:
        if not self._connected:
            msg = f"Table {self._location.path!r} is not connected; call TableManager.connect_all()"
            raise NotConnectedError(msg)
        return self._store

    # -- reads ----------------------------------------------------------------

    def get(self, key: Key) -> Any:
        """Return the value for ``key`` (``None`` if absent) after ``before_get``."""
        store = self._require_connected()
        skey = canonical_key(key)
        return self._hooks.apply_get(skey, store.get(skey))

    def has(self, key: Key) -> bool:
        return canonical_key(key) in self._require_connected()

    def keys(self) -> list[str]:
        return list(self._require_connected())

    def values(self) -> list[Any]:
        store = self._require_connected()
        return [self._hooks.apply_get(key, value) for key, value in store.items()]

    def collection(self) -> dict[str, Any]:
        """Return every key with its value after ``before_get``."""
        store = self._require_connected()
        return {key: self._hooks.apply_get(key, value) for key, value in store.items()}

    def work(self, key: Key) -> Work:
        """Check out a value for in-place edits.

        Example::

            work = table.work("admin")
            work.data["visits"] += 1
            await work.save()
        """
        skey = canonical_key(key)
        return Work(table=self, key=skey, data=self.get(skey))

    # -- writes ---------------------------------------------------------------

    def _check_writable(self) -> dict[str, Any]:
        if self._manager.closed:
            msg = f"Cannot modify table {self._location.path!r}: the manager is closed"
            raise ClosedError(msg)
        return self._require_connected()

    def set(self, key: Key, value: Any) -> asyncio.Future[bool]:
        """Store ``value`` under ``key``.

        The change is visible to reads immediately. The returned future
        resolves to ``True`` once it has been committed.
        """
        store = self._check_writable()
        skey = canonical_key(key)
        store[skey] = self._hooks.apply_set(skey, value)
        return self._enqueue(True)

    def delete(self, key: Key) -> asyncio.Future[bool]:
        """Remove ``key``.

        The returned future resolves, once committed, to whether the key
        existed.
        """
        store = self._check_writable()
        skey = canonical_key(key)
        existed = skey in store
        store.pop(skey, None)
        return self._enqueue(existed)

    def _enqueue(self, result: bool) -> asyncio.Future[bool]:
        future: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        self._pending.append(_PendingWrite(future=future, result=result))
        self._schedule_flush()
        return future

    # -- flushing -------------------------------------------------------------

    def _schedule_flush(self, delay: float | None = None) -> None:
        if self._timer is not None or self._conflicted:
            return
        if delay is None:
            delay = self._manager.flush_interval
        self._timer = asyncio.get_running_loop().create_task(
            self._flush_later(delay), name=f"repotables-flush:{self._location.path}"
        )

    async def _flush_later(self, delay: float) -> None:
        next_delay = self._manager.flush_interval
        try:
            await asyncio.sleep(delay)
            if self._manager.closed:
                logger.warning(
                    "Manager closed, skipping scheduled flush of %s (%d pending)",
                    self._location,
                    len(self._pending),
                )
                return
            if not self._pending:
                return
            try:
                await self.flush()
            except RemoteConflictError:
                logger.error(
                    "Scheduled flush of %s rejected, the remote file has a newer revision; "
                    "%d writes stay pending until refresh_revision()",
                    self._location,
                    len(self._pending),
                )
                return
            except Exception:
                logger.exception(
                    "Scheduled flush of %s failed; %d writes stay pending",
                    self._location,
                    len(self._pending),
                )
                next_delay = max(self._manager.retry_interval, next_delay)
        finally:
            if self._timer is asyncio.current_task():
                self._timer = None

        # Retries a failed flush and picks up writes made while it ran.
        if self._pending and not self._manager.closed:
            self._schedule_flush(next_delay)

    def resume(self) -> None:
        """Schedule a flush if writes are pending. Called when the manager reopens."""
        if self._pending and self._connected:
            self._schedule_flush()

    async def refresh_revision(self) -> None:
        """Adopt the remote file's current revision, keeping the local contents.

        Clears a conflict: the next flush overwrites the remote file with this
        table's contents. Pending writes are flushed on the usual schedule.
        """
        self._require_connected()
        async with self._flush_lock:
            result = await self._manager.store.fetch(self._location)
            self._revision = result.revision
            self._conflicted = False
        logger.info("Refreshed revision of %s to %s", self._location, self._revision)
        if not self._manager.closed:
            self.resume()

    async def flush(self) -> None:
        """Write the whole table to the remote store now.

        On success every mutation made before the flush started is resolved.
        On failure the error propagates and those mutations stay pending.
        A ``RemoteConflictError`` also stops scheduled flushes until
        ``refresh_revision`` is called.
        """
        self._require_connected()
        async with self._flush_lock:
            batch = list(self._pending)
            snapshot = copy.deepcopy(self._store)
            logger.debug("Flushing %s (%d pending writes)", self._location, len(batch))

            try:
                self._revision = await self._manager.store.write(
                    self._location, snapshot, self._revision
                )
            except RemoteConflictError:
                self._conflicted = True
                raise
            self._conflicted = False

            # Writes queued while awaiting stay for the next cycle.
            del self._pending[: len(batch)]
            for write in batch:
                if not write.future.done():
                    write.future.set_result(write.result)
            logger.debug("Flushed %s at revision %s", self._location, self._revision)

    # -- teardown -------------------------------------------------------------

    async def _cancel_timer(self) -> None:
        timer, self._timer = self._timer, None
        if timer is None or timer.done():
            return
        timer.cancel()
        try:
            await timer
        except asyncio.CancelledError:
            pass

    async def drop(self) -> None:
        """Delete the table file and reset the table to disconnected.

        Writes still pending are cancelled.
        """
        self._require_connected()
        await self._cancel_timer()
        async with self._flush_lock:
            await self._manager.store.delete(self._location, self._revision)
            for write in self._pending:
                write.future.cancel()
            self._pending.clear()
            self._store = {}
            self._revision = None
            self._conflicted = False
            self._connected = False
        logger.info("Dropped table file %s", self._location)

    async def aclose(self) -> None:
        """Cancel the flush timer and running hooks without flushing."""
        await self._cancel_timer()
        for task in list(self._hook_tasks):
            task.cancel()
