"""In-memory query cache.

This is the only component allowed to write cache entries. Entries change
in exactly two ways: a fetch settles, or :meth:`QueryCache.invalidate`
marks them stale. There is deliberately no public ``set_data``.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from propsync._constants import DEFAULT_GC_TIME, DEFAULT_STALE_TIME
from propsync.cache.entry import CacheEntry, CacheStatus
from propsync.cache.policy import is_collectable, is_stale
from propsync.exceptions import PropSyncError
from propsync.query_key import QueryKey, Segment, hash_key, is_prefix, normalize_key

_logger = logging.getLogger(__name__)

FetchFn = Callable[[QueryKey], Awaitable[Any]]
Listener = Callable[[QueryKey, CacheEntry], None]
KeyLike = Sequence[Segment] | str


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


@dataclass(slots=True)
class _Record:
    """Store-private bookkeeping around a :class:`CacheEntry`."""

    entry: CacheEntry
    fetch_fn: FetchFn | None = None
    task: asyncio.Task[None] | None = None
    # Bumped by every invalidation; a fetch only clears ``is_invalidated``
    # when no invalidation happened while it was in flight.
    generation: int = 0
    task_generation: int = 0
    status_before_fetch: CacheStatus = CacheStatus.IDLE
    idle_since: datetime | None = None
    gc_handle: asyncio.TimerHandle | None = None


class Subscription:
    """A view's registration for change notifications.

    Obtained from :meth:`QueryCache.subscribe`. Once :meth:`unsubscribe`
    has been called the callback is never invoked again, including for
    fetches that were already in flight.
    """

    def __init__(
        self,
        cache: QueryCache,
        keys: tuple[QueryKey, ...],
        callback: Listener,
        fetch_fn: FetchFn | None,
        *,
        enabled: bool,
        prefix: bool,
    ) -> None:
        self._cache = cache
        self._callback = callback
        self.keys = keys
        self.fetch_fn = fetch_fn
        self.enabled = enabled
        self.prefix = prefix
        self.active = True

    def matches(self, key: QueryKey) -> bool:
        if self.prefix:
            return any(is_prefix(k, key) for k in self.keys)
        return key in self.keys

    def watches(self, key: QueryKey) -> bool:
        """Whether this subscription keeps *key* live (drives refetches)."""
        return self.active and self.enabled and not self.prefix and key in self.keys

    def deliver(self, key: QueryKey, entry: CacheEntry) -> None:
        if not self.active:
            return
        try:
            self._callback(key, entry)
        except Exception:
            _logger.warning("Subscriber callback failed for key=%s", key, exc_info=True)

    def results(self) -> dict[QueryKey, CacheEntry | None]:
        """Current snapshot of every subscribed key."""
        return {key: self._cache.get_entry(key) for key in self.keys}

    def set_enabled(self, enabled: bool) -> None:
        """Toggle fetching; enabling behaves like a fresh mount."""
        if not self.active or enabled == self.enabled:
            return
        self.enabled = enabled
        if enabled:
            self._cache._mount(self)

    async def refetch(self) -> None:
        """Manual refresh of every subscribed key."""
        await asyncio.gather(*(self._cache.fetch(key, self.fetch_fn) for key in self.keys))

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._cache._release(self)


class QueryCache:
    """Cache of server resources addressed by query key.

    Guarantees at most one outstanding fetch per key: concurrent reads join
    the in-flight fetch instead of starting their own.

    Parameters
    ----------
    default_fetch_fn
        Fetcher used when neither the caller nor an earlier read supplied
        one for a key.
    stale_time
        Seconds before successfully fetched data goes stale on its own.
    gc_time
        Seconds an unsubscribed entry is kept before being dropped.
    clock
        Source of timestamps; injectable for tests.
    """

    def __init__(
        self,
        *,
        default_fetch_fn: FetchFn | None = None,
        stale_time: float = DEFAULT_STALE_TIME,
        gc_time: float = DEFAULT_GC_TIME,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._default_fetch_fn = default_fetch_fn
        self._stale_time = stale_time
        self._gc_time = gc_time
        self._clock = clock
        self._records: dict[str, _Record] = {}
        self._subscriptions: list[Subscription] = []
        self._closed = False

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def read(self, key: KeyLike, fetch_fn: FetchFn | None = None) -> CacheEntry:
        """Return the entry for *key*, fetching first if it is absent or stale.

        Fetch failures never raise here; they land on ``entry.error``.
        """
        qk = normalize_key(key)
        record = self._record(qk)
        fn = self._resolve_fetch_fn(record, fetch_fn)
        if not is_stale(record.entry, self._clock(), self._stale_time):
            return record.entry.snapshot()
        await self._await_settled(record, fn)
        return record.entry.snapshot()

    async def fetch(self, key: KeyLike, fetch_fn: FetchFn | None = None) -> CacheEntry:
        """Fetch *key* even if fresh, joining a fetch already in flight."""
        qk = normalize_key(key)
        record = self._record(qk)
        fn = self._resolve_fetch_fn(record, fetch_fn)
        await self._await_settled(record, fn)
        return record.entry.snapshot()

    def get_entry(self, key: KeyLike) -> CacheEntry | None:
        """Snapshot of the entry for *key* without triggering a fetch."""
        record = self._records.get(hash_key(key))
        if record is None:
            return None
        return record.entry.snapshot()

    def is_stale(self, key: KeyLike) -> bool:
        record = self._records.get(hash_key(key))
        if record is None:
            return True
        return is_stale(record.entry, self._clock(), self._stale_time)

    def keys(self, prefix: KeyLike | None = None) -> list[QueryKey]:
        """Cached keys, optionally restricted to those under *prefix*."""
        cached = [record.entry.key for record in self._records.values()]
        if prefix is None:
            return cached
        return [key for key in cached if is_prefix(prefix, key)]

    # ------------------------------------------------------------------
    # Invalidation
    # ------------------------------------------------------------------

    def invalidate(self, key: KeyLike, *, exact: bool = False, refetch: bool = True) -> list[QueryKey]:
        """Mark every entry equal to or under *key* as stale.

        Entries with an enabled subscriber are refetched on the next loop
        iteration, so callers running inside a mutation callback finish
        before any subscriber sees the refetch. The rest are refetched
        lazily on their next read. Returns the matched keys.
        """
        target = normalize_key(key)
        matched: list[QueryKey] = []
        loop = _running_loop()
        for hashed, record in list(self._records.items()):
            entry_key = record.entry.key
            hit = entry_key == target if exact else is_prefix(target, entry_key)
            if not hit:
                continue
            record.generation += 1
            record.entry.is_invalidated = True
            matched.append(entry_key)
            # In-flight fetches predate this invalidation; _after_settle refetches.
            if refetch and record.task is None and self._is_watched(entry_key):
                if loop is None:
                    _logger.debug("No running loop; key=%s will refetch on next read", entry_key)
                    continue
                loop.call_soon(self._refetch_invalidated, hashed)
        _logger.debug("Invalidated key=%s exact=%s matched=%d", target, exact, len(matched))
        return matched

    def invalidate_many(self, keys: Iterable[KeyLike], *, refetch: bool = True) -> list[QueryKey]:
        matched: list[QueryKey] = []
        for key in keys:
            for hit in self.invalidate(key, refetch=refetch):
                if hit not in matched:
                    matched.append(hit)
        return matched

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(
        self,
        key: KeyLike,
        callback: Listener,
        fetch_fn: FetchFn | None = None,
        *,
        enabled: bool = True,
        prefix: bool = False,
    ) -> Subscription:
        """Register *callback* for changes to *key*.

        Unless ``enabled`` is false, a fetch starts for the key if it has no
        fresh entry (mount behaviour). The callback may fire before this
        method returns. A ``prefix`` subscription only observes entries
        under *key*; it never fetches and does not keep entries alive.
        """
        return self.subscribe_many([key], callback, fetch_fn, enabled=enabled, prefix=prefix)

    def subscribe_many(
        self,
        keys: Iterable[KeyLike],
        callback: Listener,
        fetch_fn: FetchFn | None = None,
        *,
        enabled: bool = True,
        prefix: bool = False,
    ) -> Subscription:
        if self._closed:
            raise PropSyncError("QueryCache is closed")
        normalized = tuple(dict.fromkeys(normalize_key(k) for k in keys))
        if not normalized:
            raise ValueError("subscribe needs at least one key")
        sub = Subscription(self, normalized, callback, fetch_fn, enabled=enabled, prefix=prefix)
        self._subscriptions.append(sub)
        if prefix:
            return sub
        for qk in normalized:
            record = self._record(qk)
            self._cancel_gc(record)
            record.idle_since = None
            record.entry.subscriber_count += 1
            if fetch_fn is not None:
                record.fetch_fn = fetch_fn
        if enabled:
            self._mount(sub)
        return sub

    def _mount(self, sub: Subscription) -> None:
        now = self._clock()
        for qk in sub.keys:
            record = self._record(qk)
            if record.task is None and is_stale(record.entry, now, self._stale_time):
                self._start_fetch(record, self._resolve_fetch_fn(record, sub.fetch_fn))

    def _release(self, sub: Subscription) -> None:
        if sub in self._subscriptions:
            self._subscriptions.remove(sub)
        if sub.prefix:
            return
        for qk in sub.keys:
            record = self._records.get(hash_key(qk))
            if record is None:
                continue
            record.entry.subscriber_count = max(0, record.entry.subscriber_count - 1)
            if record.entry.subscriber_count == 0:
                self._schedule_gc(record)

    def _is_watched(self, key: QueryKey) -> bool:
        return any(sub.watches(key) for sub in self._subscriptions)

    def _notify(self, record: _Record) -> None:
        key = record.entry.key
        for sub in list(self._subscriptions):
            if sub.active and sub.matches(key):
                sub.deliver(key, record.entry.snapshot())

    # ------------------------------------------------------------------
    # Fetch lifecycle
    # ------------------------------------------------------------------

    def _record(self, key: QueryKey) -> _Record:
        hashed = hash_key(key)
        record = self._records.get(hashed)
        if record is None:
            record = _Record(entry=CacheEntry(key=key))
            self._records[hashed] = record
        return record

    def _resolve_fetch_fn(self, record: _Record, fetch_fn: FetchFn | None) -> FetchFn:
        fn = fetch_fn or record.fetch_fn or self._default_fetch_fn
        if fn is None:
            raise PropSyncError(f"No fetch function for key {record.entry.key!r}")
        return fn

    async def _await_settled(self, record: _Record, fetch_fn: FetchFn) -> None:
        while True:
            task = record.task
            if task is None:
                task = self._start_fetch(record, fetch_fn)
                await asyncio.wait((task,))
                return
            current = record.task_generation == record.generation
            _logger.debug("Joining in-flight fetch key=%s current=%s", record.entry.key, current)
            await asyncio.wait((task,))
            if current:
                return

    def _start_fetch(self, record: _Record, fetch_fn: FetchFn) -> asyncio.Task[None]:
        if self._closed:
            raise PropSyncError("QueryCache is closed")
        entry = record.entry
        self._cancel_gc(record)
        record.fetch_fn = fetch_fn
        record.task_generation = record.generation
        record.status_before_fetch = entry.status
        entry.status = CacheStatus.LOADING
        entry.is_fetching = True
        entry.fetch_count += 1
        task = asyncio.get_running_loop().create_task(
            self._run_fetch(record, fetch_fn, record.generation),
            name=f"propsync-fetch:{hash_key(entry.key)}",
        )
        record.task = task
        _logger.debug("Fetch started key=%s count=%d", entry.key, entry.fetch_count)
        self._notify(record)
        return task

    async def _run_fetch(self, record: _Record, fetch_fn: FetchFn, generation: int) -> None:
        entry = record.entry
        try:
            data = await fetch_fn(entry.key)
        except asyncio.CancelledError:
            entry.is_fetching = False
            entry.status = record.status_before_fetch
            record.task = None
            raise
        except Exception as exc:
            entry.error = exc
            entry.status = CacheStatus.ERROR
            entry.last_fetched_at = self._clock()
            _logger.debug("Fetch failed key=%s: %s", entry.key, exc)
        else:
            now = self._clock()
            entry.data = data
            entry.error = None
            entry.status = CacheStatus.SUCCESS
            entry.last_fetched_at = now
            entry.data_updated_at = now
            if record.generation == generation:
                entry.is_invalidated = False
            _logger.debug("Fetch succeeded key=%s", entry.key)
        entry.is_fetching = False
        record.task = None
        self._notify(record)
        self._after_settle(record, generation)

    def _after_settle(self, record: _Record, generation: int) -> None:
        if self._closed:
            return
        if record.generation != generation and self._is_watched(record.entry.key):
            _logger.debug("Key=%s invalidated mid-fetch; refetching", record.entry.key)
            self._start_fetch(record, self._resolve_fetch_fn(record, None))
        elif record.entry.subscriber_count == 0:
            self._schedule_gc(record)

    def _refetch_invalidated(self, hashed: str) -> None:
        record = self._records.get(hashed)
        if record is None or self._closed or record.task is not None:
            return
        if not record.entry.is_invalidated or not self._is_watched(record.entry.key):
            return
        try:
            fn = self._resolve_fetch_fn(record, None)
        except PropSyncError:
            _logger.debug("No fetch function to refetch key=%s", record.entry.key)
            return
        self._start_fetch(record, fn)

    # ------------------------------------------------------------------
    # Garbage collection & teardown
    # ------------------------------------------------------------------

    def _cancel_gc(self, record: _Record) -> None:
        if record.gc_handle is not None:
            record.gc_handle.cancel()
            record.gc_handle = None

    def _schedule_gc(self, record: _Record) -> None:
        self._cancel_gc(record)
        if record.entry.subscriber_count > 0 or record.task is not None or self._closed:
            return
        record.idle_since = self._clock()
        loop = _running_loop()
        if loop is None or math.isinf(self._gc_time):
            return
        record.gc_handle = loop.call_later(self._gc_time, self._collect_one, hash_key(record.entry.key))

    def _collect_one(self, hashed: str) -> None:
        record = self._records.get(hashed)
        if record is None:
            return
        record.gc_handle = None
        if record.entry.subscriber_count == 0 and record.task is None:
            del self._records[hashed]
            _logger.debug("Collected idle key=%s", record.entry.key)

    def collect_garbage(self) -> int:
        """Drop unsubscribed entries idle for longer than ``gc_time``."""
        now = self._clock()
        dropped = 0
        for hashed, record in list(self._records.items()):
            if is_collectable(record.entry, idle_since=record.idle_since, now=now, gc_time=self._gc_time):
                self._cancel_gc(record)
                del self._records[hashed]
                dropped += 1
        if dropped:
            _logger.debug("Garbage-collected %d idle entries", dropped)
        return dropped

    def clear(self) -> None:
        """Drop every entry and cancel in-flight fetches (a "reload").

        Subscriptions stay registered: their keys get fresh entries that
        keep counting them, and enabled ones refetch straight away.
        """
        dropped = self._records
        self._records = {}
        for record in dropped.values():
            self._cancel_gc(record)
            if record.task is not None:
                record.task.cancel()
        if self._closed:
            return
        live = [sub for sub in self._subscriptions if sub.active and not sub.prefix]
        for sub in live:
            for qk in sub.keys:
                record = self._record(qk)
                record.entry.subscriber_count += 1
                previous = dropped.get(hash_key(qk))
                record.fetch_fn = sub.fetch_fn or record.fetch_fn or (previous.fetch_fn if previous else None)
        if _running_loop() is None:
            return
        for sub in live:
            if sub.enabled:
                self._mount(sub)

    async def close(self) -> None:
        """Cancel outstanding work; the cache is unusable afterwards."""
        self._closed = True
        tasks = [record.task for record in self._records.values() if record.task is not None]
        self.clear()
        for sub in list(self._subscriptions):
            sub.active = False
        self._subscriptions.clear()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
