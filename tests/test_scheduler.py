"""Tests for the asyncio task scheduler."""
import asyncio
import pytest

from app.services.scheduler import AsyncioTaskScheduler


@pytest.mark.asyncio
async def test_submit_runs_task():
    scheduler = AsyncioTaskScheduler()
    done = asyncio.Event()

    async def task():
        done.set()

    scheduler.submit(task)
    await asyncio.wait_for(done.wait(), timeout=1)

    await asyncio.sleep(0.01)
    assert scheduler.pending_count == 0


@pytest.mark.asyncio
async def test_schedule_after_waits_for_delay():
    """Test a delayed task does not run before its delay."""
    scheduler = AsyncioTaskScheduler()
    ran = []

    async def task():
        ran.append(True)

    scheduler.schedule_after(0.05, task)
    await asyncio.sleep(0)
    assert ran == []
    assert scheduler.get_stats() == {"pending_tasks": 1}

    await asyncio.sleep(0.2)
    assert ran == [True]


@pytest.mark.asyncio
async def test_failing_task_is_logged_not_raised(caplog):
    """Test a failing task does not break the scheduler."""
    scheduler = AsyncioTaskScheduler()
    done = asyncio.Event()

    async def failing():
        raise RuntimeError("boom")

    async def succeeding():
        done.set()

    scheduler.submit(failing)
    scheduler.submit(succeeding)
    await asyncio.wait_for(done.wait(), timeout=1)
    await asyncio.sleep(0)

    assert "Scheduled task failed: boom" in caplog.text


@pytest.mark.asyncio
async def test_shutdown_cancels_pending():
    """Test shutdown drops work that has not started."""
    scheduler = AsyncioTaskScheduler()
    ran = []

    async def task():
        ran.append(True)

    scheduler.schedule_after(60, task)
    assert scheduler.pending_count == 1

    await scheduler.shutdown()

    assert scheduler.pending_count == 0
    assert ran == []
