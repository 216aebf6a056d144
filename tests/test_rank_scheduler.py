import asyncio

import pytest

from app.services.rank_scheduler import RankScheduler


def make_scheduler(calls):
    scheduler = RankScheduler(debounce_seconds=0.2, recovery_interval=3600)
    scheduler._recompute = lambda: calls.append("recompute")
    return scheduler


def test_request_runs_inline_when_not_started():
    calls = []
    scheduler = make_scheduler(calls)
    scheduler.request()
    scheduler.request()
    assert calls == ["recompute", "recompute"]


@pytest.mark.anyio("asyncio")
async def test_requests_are_coalesced():
    calls = []
    scheduler = make_scheduler(calls)
    await scheduler.start()
    try:
        # Requests from worker threads, as sync endpoints would send them
        await asyncio.to_thread(scheduler.request)
        for _ in range(5):
            scheduler.request()
        await asyncio.sleep(0.6)
        assert calls == ["recompute"]

        scheduler.request()
        await asyncio.sleep(0.6)
        assert calls == ["recompute", "recompute"]
    finally:
        await scheduler.stop()

    assert not scheduler.is_running
    assert scheduler.task is None


@pytest.mark.anyio("asyncio")
async def test_start_twice_and_stop_when_idle():
    calls = []
    scheduler = make_scheduler(calls)
    await scheduler.stop()
    await scheduler.start()
    first_task = scheduler.task
    await scheduler.start()
    assert scheduler.task is first_task
    await scheduler.stop()
    assert calls == []


@pytest.mark.anyio("asyncio")
async def test_failing_recompute_keeps_scheduler_alive(caplog):
    calls = []
    scheduler = make_scheduler(calls)

    def flaky():
        calls.append("attempt")
        if len(calls) == 1:
            raise RuntimeError("database unavailable")

    scheduler._recompute = flaky
    await scheduler.start()
    try:
        scheduler.request()
        await asyncio.sleep(0.6)
        scheduler.request()
        await asyncio.sleep(0.6)
    finally:
        await scheduler.stop()

    assert calls == ["attempt", "attempt"]
    assert "Error in rank scheduler" in caplog.text
