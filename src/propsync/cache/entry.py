"""Cache entry model.

One entry per query key. Only :class:`propsync.cache.store.QueryCache`
mutates entries; everything handed out is a snapshot.
"""

from __future__ import annotations

import copy
from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from propsync.query_key import QueryKey


class CacheStatus(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class CacheEntry(BaseModel):
    """Stored state for one query key."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    key: QueryKey
    status: CacheStatus = CacheStatus.IDLE
    data: Any = None
    error: Exception | None = None
    last_fetched_at: datetime | None = Field(
        default=None,
        description="When the most recent fetch settled, successfully or not.",
    )
    data_updated_at: datetime | None = Field(
        default=None,
        description="When ``data`` was last replaced by a successful fetch.",
    )
    is_invalidated: bool = False
    is_fetching: bool = False
    fetch_count: int = 0
    subscriber_count: int = 0

    @property
    def has_data(self) -> bool:
        """Whether any fetch for this key has ever succeeded."""
        return self.data_updated_at is not None

    @property
    def is_loading(self) -> bool:
        """First load: fetching with nothing to show yet."""
        return self.is_fetching and not self.has_data

    @property
    def is_refetching(self) -> bool:
        """Background refetch of data that is already present."""
        return self.is_fetching and self.has_data

    def snapshot(self) -> CacheEntry:
        """Detached copy; edits to it never reach the cache."""
        return self.model_copy(update={"data": copy.deepcopy(self.data)})
