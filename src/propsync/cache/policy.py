"""Staleness and garbage-collection policy.

Pure functions of an entry and the current time, so the store stays
deterministic under an injected clock.
"""

from __future__ import annotations

import math
from datetime import datetime

from propsync.cache.entry import CacheEntry


def is_stale(entry: CacheEntry, now: datetime, stale_time: float) -> bool:
    """Whether a read of *entry* has to go to the network.

    Policy:
    - invalidated entries are always stale
    - entries that never fetched successfully are stale
    - otherwise the age of ``data`` is compared against *stale_time*
    """
    if entry.is_invalidated:
        return True
    if entry.data_updated_at is None:
        return True
    if math.isinf(stale_time):
        return False
    return (now - entry.data_updated_at).total_seconds() >= stale_time


def is_collectable(
    entry: CacheEntry,
    *,
    idle_since: datetime | None,
    now: datetime,
    gc_time: float,
) -> bool:
    """Whether an entry nobody watches can be dropped."""
    if entry.subscriber_count > 0 or entry.is_fetching:
        return False
    if idle_since is None or math.isinf(gc_time):
        return False
    return (now - idle_since).total_seconds() >= gc_time
