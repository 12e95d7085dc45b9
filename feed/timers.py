from __future__ import annotations
import asyncio, inspect, logging
from typing import Any, Awaitable, Callable, List, Optional, Union

log = logging.getLogger(__name__)

Callback = Callable[[], Union[None, Awaitable[Any]]]

class RepeatingTask:
    """Runs `callback` every `interval` seconds until stopped.

    With `max_runs`, the task stops by itself after that many runs that did
    not stop it, and calls `on_exhausted` once. A callback may call `stop()`
    on its own task. Errors raised by the callback are logged and the task
    keeps running.
    """

    def __init__(self, callback: Callback, interval: float, *, max_runs: Optional[int] = None,
                 on_exhausted: Optional[Callback] = None, name: str = "repeating-task"):
        self.callback = callback
        self.interval = interval
        self.max_runs = max_runs
        self.on_exhausted = on_exhausted
        self.name = name
        self.runs = 0
        self.exhausted = False
        self._stopped = False
        self._task: Optional[asyncio.Task] = None

    @property
    def stopped(self) -> bool:
        return self._stopped

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "RepeatingTask":
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._loop(), name=self.name)
        return self

    def stop(self) -> None:
        self._stopped = True
        task = self._task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def wait(self) -> None:
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            pass

    async def _call(self, fn: Callback) -> None:
        result = fn()
        if inspect.isawaitable(result):
            await result

    async def _loop(self) -> None:
        while not self._stopped:
            await asyncio.sleep(self.interval)
            if self._stopped:
                return
            self.runs += 1
            try:
                await self._call(self.callback)
            except Exception:
                log.exception("%s: run %d failed", self.name, self.runs)
            if self._stopped:
                return
            if self.max_runs is not None and self.runs >= self.max_runs:
                self._stopped = True
                self.exhausted = True
                log.info("%s: gave up after %d runs", self.name, self.runs)
                if self.on_exhausted:
                    try:
                        await self._call(self.on_exhausted)
                    except Exception:
                        log.exception("%s: exhaustion handler failed", self.name)
                return

class ManagedTimers:
    """Registry of every timeout and repeating task a screen starts.

    `clear_all()` cancels whatever is still outstanding in one sweep.
    """

    def __init__(self):
        self._timeouts: List[asyncio.TimerHandle] = []
        self._intervals: List[RepeatingTask] = []
        self._tasks: set = set()

    @property
    def pending(self) -> int:
        return len(self._timeouts) + sum(1 for t in self._intervals if not t.stopped)

    def register_timeout(self, callback: Callback, delay: float) -> asyncio.TimerHandle:
        loop = asyncio.get_running_loop()
        handle: Optional[asyncio.TimerHandle] = None

        def fire():
            if handle in self._timeouts:
                self._timeouts.remove(handle)
            self.spawn(callback)

        handle = loop.call_later(delay, fire)
        self._timeouts.append(handle)
        return handle

    def clear_timeout(self, handle: Optional[asyncio.TimerHandle]) -> None:
        if handle is None:
            return
        handle.cancel()
        if handle in self._timeouts:
            self._timeouts.remove(handle)

    def register_interval(self, callback: Callback, interval: float, *, max_runs: Optional[int] = None,
                          on_exhausted: Optional[Callback] = None, name: str = "interval") -> RepeatingTask:
        task = RepeatingTask(callback, interval, max_runs=max_runs, on_exhausted=on_exhausted, name=name)
        self._intervals.append(task)
        return task.start()

    def clear_interval(self, task: Optional[RepeatingTask]) -> None:
        if task is None:
            return
        task.stop()
        if task in self._intervals:
            self._intervals.remove(task)

    def spawn(self, callback: Callback) -> None:
        """Run a sync or async callback from timer context, logging failures."""
        try:
            result = callback()
        except Exception:
            log.exception("timer callback failed")
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Future) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            log.error("timer callback failed", exc_info=task.exception())

    async def drain(self) -> None:
        """Wait for callbacks spawned from timers to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def clear_all(self) -> None:
        for handle in self._timeouts:
            handle.cancel()
        self._timeouts = []
        for task in self._intervals:
            task.stop()
        self._intervals = []
