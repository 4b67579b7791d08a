"""Mutation runner.

Runs one user-triggered write and reports its lifecycle. The runner
never writes to the cache; on success it asks the cache to invalidate the
keys the caller declared. There is no automatic retry: every write here
is non-idempotent, so a retry could submit twice.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from propsync._constants import WRITE_METHODS
from propsync.cache.store import KeyLike, QueryCache
from propsync.query_key import QueryKey, normalize_key

_logger = logging.getLogger(__name__)

T = TypeVar("T")

SuccessCallback = Callable[[Any], Any]
ErrorCallback = Callable[[Exception], Any]


@dataclass(frozen=True, slots=True)
class MutationRequest:
    """One write: ``method`` + ``url`` + JSON ``body``.

    ``invalidates`` is the set of query keys that go stale once the write
    succeeds.
    """

    method: str
    url: str
    body: Any = None
    invalidates: tuple[QueryKey, ...] = ()

    def __post_init__(self) -> None:
        method = self.method.upper()
        if method not in WRITE_METHODS:
            raise ValueError(f"{self.method!r} is not a write method")
        object.__setattr__(self, "method", method)
        object.__setattr__(self, "invalidates", tuple(normalize_key(k) for k in self.invalidates))


@dataclass(slots=True)
class MutationResult(Generic[T]):
    """Outcome of one mutation; exactly one of ``data``/``error`` is meaningful."""

    data: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def message(self) -> str | None:
        """Server message for display, unmodified."""
        return None if self.error is None else str(self.error)


async def _invoke(callback: Callable[[Any], Any] | None, value: Any, label: str) -> None:
    if callback is None:
        return
    try:
        outcome = callback(value)
        if inspect.isawaitable(outcome):
            await outcome
    except Exception:
        _logger.warning("Mutation %s callback failed", label, exc_info=True)


class MutationRunner:
    """Executes writes for one call site and tracks ``is_pending``."""

    def __init__(self, cache: QueryCache) -> None:
        self._cache = cache
        self._in_flight = 0
        self.last_result: MutationResult[Any] | None = None

    @property
    def is_pending(self) -> bool:
        return self._in_flight > 0

    async def run(
        self,
        request_fn: Callable[[], Awaitable[Any]],
        *,
        on_success: SuccessCallback | None = None,
        on_error: ErrorCallback | None = None,
        invalidates: Iterable[KeyLike] = (),
        parse: Callable[[Any], T] | None = None,
    ) -> MutationResult[T]:
        """Run *request_fn* once.

        On success ``on_success`` runs first, then the ``invalidates`` keys
        are invalidated, so subscribers refetch only after the callback
        has finished. When the request itself fails only ``on_error`` runs
        and the cache is left untouched. Never raises for request failures.

        ``parse`` turns the response payload into the result data. It runs
        after the request, so a response that fails to parse is reported
        through ``on_error`` while the declared keys are still invalidated:
        the write already landed on the server.
        """
        keys = list(invalidates)
        self._in_flight += 1
        try:
            try:
                payload = await request_fn()
            except Exception as exc:
                _logger.debug("Mutation failed: %s", exc)
                return await self._fail(exc, on_error)
            try:
                data = parse(payload) if parse is not None else payload
            except Exception as exc:
                _logger.warning("Mutation succeeded but its response could not be parsed: %s", exc)
                result = await self._fail(exc, on_error)
            else:
                result = MutationResult(data=data)
                self.last_result = result
                await _invoke(on_success, data, "on_success")
        finally:
            self._in_flight -= 1

        if keys:
            matched = self._cache.invalidate_many(keys)
            _logger.debug("Mutation invalidated %d cached keys", len(matched))
        return result

    async def _fail(self, exc: Exception, on_error: ErrorCallback | None) -> MutationResult[Any]:
        failed: MutationResult[Any] = MutationResult(error=exc)
        self.last_result = failed
        await _invoke(on_error, exc, "on_error")
        return failed
