import asyncio

from feed.timers import ManagedTimers, RepeatingTask

async def test_timeout_fires_and_unregisters(timers):
    fired = []
    timers.register_timeout(lambda: fired.append(1), 0.01)
    assert timers.pending == 1
    await asyncio.sleep(0.05)
    assert fired == [1]
    assert timers.pending == 0

async def test_cleared_timeout_never_fires(timers):
    fired = []
    h = timers.register_timeout(lambda: fired.append(1), 0.01)
    timers.clear_timeout(h)
    await asyncio.sleep(0.05)
    assert fired == []

async def test_async_timeout_callback_is_awaited(timers):
    seen = []

    async def cb():
        seen.append("ran")

    timers.register_timeout(cb, 0)
    await asyncio.sleep(0.01)
    await timers.drain()
    assert seen == ["ran"]

async def test_repeating_task_cap_and_exhaustion():
    exhausted = []
    task = RepeatingTask(lambda: None, 0, max_runs=3, on_exhausted=lambda: exhausted.append(True)).start()
    await task.wait()
    assert task.runs == 3
    assert task.exhausted and task.stopped
    assert exhausted == [True]

async def test_repeating_task_survives_callback_errors():
    calls = []

    def boom():
        calls.append(1)
        raise ValueError("nope")

    task = RepeatingTask(boom, 0, max_runs=2).start()
    await task.wait()
    assert len(calls) == 2

async def test_self_stop_skips_exhaustion():
    exhausted = []
    holder = {}

    def cb():
        if holder["t"].runs == 2:
            holder["t"].stop()

    holder["t"] = RepeatingTask(cb, 0, max_runs=5, on_exhausted=lambda: exhausted.append(1)).start()
    await holder["t"].wait()
    assert holder["t"].runs == 2
    assert exhausted == []

async def test_clear_all_cancels_everything():
    timers = ManagedTimers()
    fired = []
    timers.register_timeout(lambda: fired.append("t"), 0.01)
    task = timers.register_interval(lambda: fired.append("i"), 0.01)
    timers.clear_all()
    await asyncio.sleep(0.05)
    assert fired == []
    assert task.stopped
    assert timers.pending == 0
