from __future__ import annotations

import asyncio
import logging
from typing import Any

import pytest

from propsync.cache.entry import CacheEntry, CacheStatus
from propsync.cache.store import QueryCache
from propsync.exceptions import ApiError
from propsync.mutation import MutationRequest, MutationRunner
from propsync.query_key import QueryKey

LEASES: QueryKey = ("/api/leases",)


async def _settle(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


class CountingFetcher:
    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self, key: QueryKey) -> Any:
        self.calls += 1
        await asyncio.sleep(0)
        return [{"id": n} for n in range(self.calls)]


@pytest.mark.asyncio
async def test_success_runs_callback_then_invalidates() -> None:
    fetcher = CountingFetcher()
    cache = QueryCache(default_fetch_fn=fetcher)
    events: list[str] = []

    def on_change(_key: QueryKey, entry: CacheEntry) -> None:
        if entry.status == CacheStatus.LOADING:
            events.append("refetch-started")
        elif entry.status == CacheStatus.SUCCESS:
            events.append(f"rows={len(entry.data)}")

    cache.subscribe(LEASES, on_change)
    await _settle()
    events.clear()

    async def create_lease() -> dict[str, Any]:
        return {"id": 42}

    runner = MutationRunner(cache)
    result = await runner.run(
        create_lease,
        on_success=lambda data: events.append(f"on_success:{data['id']}"),
        invalidates=[LEASES],
    )
    await _settle()

    assert result.ok
    assert result.data == {"id": 42}
    # Subscribers see the refetch only after on_success returned.
    assert events == ["on_success:42", "refetch-started", "rows=2"]


@pytest.mark.asyncio
async def test_failure_returns_error_and_leaves_cache_alone() -> None:
    fetcher = CountingFetcher()
    cache = QueryCache(default_fetch_fn=fetcher)
    await cache.read(LEASES)
    errors: list[Exception] = []
    successes: list[Any] = []

    async def rejected() -> Any:
        raise ApiError("Unit is already leased for these dates", status_code=409)

    result = await MutationRunner(cache).run(
        rejected,
        on_success=successes.append,
        on_error=errors.append,
        invalidates=[LEASES],
    )

    assert not result.ok
    assert result.message == "Unit is already leased for these dates"
    assert successes == []
    assert len(errors) == 1
    assert errors[0] is result.error
    assert not cache.is_stale(LEASES)


@pytest.mark.asyncio
async def test_unparsable_response_still_invalidates() -> None:
    fetcher = CountingFetcher()
    cache = QueryCache(default_fetch_fn=fetcher)
    await cache.read(LEASES)
    errors: list[Exception] = []
    successes: list[Any] = []

    async def create_lease() -> dict[str, Any]:
        return {"message": "Lease created"}

    def parse(payload: dict[str, Any]) -> int:
        return payload["id"]

    runner = MutationRunner(cache)
    result = await runner.run(
        create_lease,
        on_success=successes.append,
        on_error=errors.append,
        invalidates=[LEASES],
        parse=parse,
    )

    assert not result.ok
    assert isinstance(result.error, KeyError)
    assert errors == [result.error]
    assert successes == []
    assert not runner.is_pending
    assert cache.is_stale(LEASES)


@pytest.mark.asyncio
async def test_parse_result_reaches_on_success() -> None:
    cache = QueryCache()

    async def create_lease() -> dict[str, Any]:
        return {"id": 42}

    seen: list[int] = []
    result = await MutationRunner(cache).run(create_lease, on_success=seen.append, parse=lambda p: p["id"])

    assert result.data == 42
    assert seen == [42]


@pytest.mark.asyncio
async def test_failed_write_is_not_retried() -> None:
    cache = QueryCache()
    attempts = 0

    async def flaky() -> Any:
        nonlocal attempts
        attempts += 1
        raise ApiError("Service unavailable", status_code=503)

    await MutationRunner(cache).run(flaky)

    assert attempts == 1


@pytest.mark.asyncio
async def test_is_pending_covers_request_and_callback() -> None:
    cache = QueryCache()
    runner = MutationRunner(cache)
    gate = asyncio.Event()
    pending_in_callback: list[bool] = []

    async def slow() -> str:
        await gate.wait()
        return "ok"

    task = asyncio.create_task(runner.run(slow, on_success=lambda _data: pending_in_callback.append(runner.is_pending)))
    await _settle()
    assert runner.is_pending

    gate.set()
    result = await task

    assert result.data == "ok"
    assert pending_in_callback == [True]
    assert not runner.is_pending
    assert runner.last_result is result


@pytest.mark.asyncio
async def test_async_callbacks_are_awaited() -> None:
    cache = QueryCache()
    seen: list[str] = []

    async def request() -> str:
        return "done"

    async def on_success(data: str) -> None:
        await asyncio.sleep(0)
        seen.append(data)

    await MutationRunner(cache).run(request, on_success=on_success)

    assert seen == ["done"]


@pytest.mark.asyncio
async def test_callback_failure_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    cache = QueryCache()

    async def request() -> str:
        return "done"

    def on_success(_data: str) -> None:
        raise RuntimeError("toast failed")

    with caplog.at_level(logging.WARNING, logger="propsync.mutation"):
        result = await MutationRunner(cache).run(request, on_success=on_success)

    assert result.ok
    assert "on_success callback failed" in caplog.text


def test_mutation_request_normalizes_method_and_keys() -> None:
    request = MutationRequest("post", "/api/leases", {"rentAmount": "1200"}, invalidates=(["/api/leases"],))
    assert request.method == "POST"
    assert request.invalidates == (("/api/leases",),)


def test_mutation_request_rejects_read_verbs() -> None:
    with pytest.raises(ValueError, match="not a write method"):
        MutationRequest("get", "/api/leases")
