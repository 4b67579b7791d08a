"""Per-page view binding over the query cache.

A :class:`CollectionView` is what a page holds: it subscribes to one
collection key while mounted and walks the page through its states::

    Idle -> Loading -> Empty | Populated
    Populated -> Editing -> Submitting -> Populated | Editing (with message)
    Populated -> ConfirmPending -> Submitting | Populated

Nothing here raises into the caller for fetch or request failures; they
land on :attr:`CollectionView.error_message` and go out through ``notify``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any, Generic, TypeVar

from propsync.cache.entry import CacheEntry, CacheStatus
from propsync.cache.store import KeyLike, QueryCache, Subscription
from propsync.exceptions import FormValidationError
from propsync.models.forms import FormModel, validate_form
from propsync.mutation import MutationResult
from propsync.query_key import QueryKey, normalize_key

_logger = logging.getLogger(__name__)

F = TypeVar("F", bound=FormModel)

NOTIFY_SUCCESS = "success"
NOTIFY_ERROR = "error"

Notify = Callable[[str, str], Any]
SaveFn = Callable[[F, Any], Awaitable[MutationResult[Any]]]
RemoveFn = Callable[[Any], Awaitable[MutationResult[Any]]]


class ViewState(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    EMPTY = "empty"
    POPULATED = "populated"
    EDITING = "editing"
    SUBMITTING = "submitting"
    CONFIRM_PENDING = "confirm_pending"


# States that simply mirror the cache entry; the rest are user-driven.
_DATA_STATES = frozenset({ViewState.IDLE, ViewState.LOADING, ViewState.EMPTY, ViewState.POPULATED})


def _is_empty(data: Any) -> bool:
    if data is None:
        return True
    if isinstance(data, list | tuple | dict):
        return len(data) == 0
    return False


class CollectionView(Generic[F]):
    """State machine for one list page.

    Parameters
    ----------
    cache
        The client's query cache.
    key
        Collection key the page renders.
    form_cls
        Form schema guarding ``Editing -> Submitting``.
    save
        ``save(form, item)`` performs the create (``item is None``) or
        update write and returns its :class:`MutationResult`.
    remove
        ``remove(item)`` performs the delete write.
    notify
        Receives ``(level, message)`` for transient notifications.
    keep_previous_data
        Keep showing the old rows while a refetch is in flight. When
        false, every refetch shows ``Loading``.
    """

    def __init__(
        self,
        cache: QueryCache,
        key: KeyLike,
        *,
        form_cls: type[F] | None = None,
        save: SaveFn[F] | None = None,
        remove: RemoveFn | None = None,
        notify: Notify | None = None,
        keep_previous_data: bool = True,
        success_message: str = "Saved",
        delete_message: str = "Deleted",
    ) -> None:
        self._cache = cache
        self.key: QueryKey = normalize_key(key)
        self._form_cls = form_cls
        self._save = save
        self._remove = remove
        self._notify_fn = notify
        self._keep_previous_data = keep_previous_data
        self._success_message = success_message
        self._delete_message = delete_message
        self._subscription: Subscription | None = None

        self.state = ViewState.IDLE
        self.entry: CacheEntry | None = None
        self.editing_item: Any = None
        self.pending_delete: Any = None
        self.field_errors: dict[str, list[str]] = {}
        self.error_message: str | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def mounted(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def mount(self, *, enabled: bool = True) -> None:
        """Subscribe and start loading (no-op when already mounted)."""
        if self.mounted:
            return
        self._subscription = self._cache.subscribe(self.key, self._on_change, enabled=enabled)
        self.entry = self._cache.get_entry(self.key)
        self._sync_state()

    def unmount(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def set_enabled(self, enabled: bool) -> None:
        if self._subscription is not None:
            self._subscription.set_enabled(enabled)

    async def refresh(self) -> None:
        """Manual refetch; the only retry path after a failed load."""
        if self._subscription is not None:
            await self._subscription.refetch()

    # ------------------------------------------------------------------
    # Derived data
    # ------------------------------------------------------------------

    @property
    def data(self) -> Any:
        return None if self.entry is None else self.entry.data

    @property
    def is_refetching(self) -> bool:
        return self.entry is not None and self.entry.is_refetching

    def _on_change(self, key: QueryKey, entry: CacheEntry) -> None:
        self.entry = entry
        if self.state in _DATA_STATES:
            self._sync_state()

    def _sync_state(self) -> None:
        entry = self.entry
        if entry is None or (entry.status == CacheStatus.IDLE and not entry.is_fetching):
            self.state = ViewState.IDLE
            return
        if entry.is_fetching and (not entry.has_data or not self._keep_previous_data):
            self.state = ViewState.LOADING
            return
        if entry.status == CacheStatus.ERROR:
            self.error_message = str(entry.error) if entry.error is not None else None
        elif entry.status == CacheStatus.SUCCESS:
            self.error_message = None
        self.state = ViewState.EMPTY if _is_empty(entry.data) else ViewState.POPULATED

    def _notify(self, level: str, message: str) -> None:
        if not self.mounted or self._notify_fn is None:
            return
        try:
            self._notify_fn(level, message)
        except Exception:
            _logger.warning("notify callback failed", exc_info=True)

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def start_create(self) -> None:
        self._start_editing(None)

    def start_edit(self, item: Any) -> None:
        self._start_editing(item)

    def _start_editing(self, item: Any) -> None:
        if self.state not in (ViewState.EMPTY, ViewState.POPULATED):
            raise RuntimeError(f"Cannot open a form while {self.state}")
        self.editing_item = item
        self.field_errors = {}
        self.error_message = None
        self.state = ViewState.EDITING

    def cancel_edit(self) -> None:
        if self.state != ViewState.EDITING:
            return
        self.editing_item = None
        self.field_errors = {}
        self._sync_state()

    async def submit(self, values: F | dict[str, Any]) -> MutationResult[Any] | None:
        """Validate and send the open form.

        Returns ``None`` without any request when validation fails; the
        per-field messages are on :attr:`field_errors`.
        """
        if self.state != ViewState.EDITING:
            raise RuntimeError(f"Cannot submit while {self.state}")
        if self._form_cls is None or self._save is None:
            raise RuntimeError("View has no form configured")
        try:
            form = validate_form(self._form_cls, values)
        except FormValidationError as exc:
            self.field_errors = exc.field_errors
            return None
        self.field_errors = {}
        self.state = ViewState.SUBMITTING
        try:
            result = await self._save(form, self.editing_item)
        except Exception as exc:
            _logger.warning("save raised instead of returning a result", exc_info=True)
            result = MutationResult(error=exc)
        if result.ok:
            self.editing_item = None
            self.error_message = None
            self.state = ViewState.POPULATED
            self._sync_state()
            self._notify(NOTIFY_SUCCESS, _success_text(result, self._success_message))
        else:
            self.error_message = result.message
            self.state = ViewState.EDITING
            self._notify(NOTIFY_ERROR, result.message or "")
        return result

    # ------------------------------------------------------------------
    # Two-step delete
    # ------------------------------------------------------------------

    def request_delete(self, item: Any) -> None:
        if self.state != ViewState.POPULATED:
            raise RuntimeError(f"Cannot delete while {self.state}")
        self.pending_delete = item
        self.state = ViewState.CONFIRM_PENDING

    def cancel_delete(self) -> None:
        if self.state != ViewState.CONFIRM_PENDING:
            return
        self.pending_delete = None
        self.state = ViewState.POPULATED
        self._sync_state()

    async def confirm_delete(self) -> MutationResult[Any]:
        if self.state != ViewState.CONFIRM_PENDING:
            raise RuntimeError(f"Nothing to confirm while {self.state}")
        if self._remove is None:
            raise RuntimeError("View has no delete configured")
        item, self.pending_delete = self.pending_delete, None
        self.state = ViewState.SUBMITTING
        try:
            result = await self._remove(item)
        except Exception as exc:
            _logger.warning("remove raised instead of returning a result", exc_info=True)
            result = MutationResult(error=exc)
        self.state = ViewState.POPULATED
        self._sync_state()
        if result.ok:
            self._notify(NOTIFY_SUCCESS, _success_text(result, self._delete_message))
        else:
            self.error_message = result.message
            self._notify(NOTIFY_ERROR, result.message or "")
        return result


def _success_text(result: MutationResult[Any], default: str) -> str:
    # Prefer a message the server sent back with the write.
    data = result.data
    if isinstance(data, dict) and isinstance(data.get("message"), str):
        return data["message"]
    return default
