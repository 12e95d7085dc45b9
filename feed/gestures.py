from __future__ import annotations
import asyncio, logging
from typing import Any, Callable, Dict, Optional

from shared.config import settings
from .timers import ManagedTimers

log = logging.getLogger(__name__)

class TapGestures:
    """Tells single taps from double taps per feed item.

    A tap arms a timer keyed by the item id. A second tap on the same item
    before it fires is a double tap: the like handler runs once and a heart is
    shown, then hidden after `heart_duration`. When the timer fires instead,
    the single-tap handler runs.
    """

    def __init__(self, timers: ManagedTimers, on_single: Callable[[str], Any], on_double: Callable[[str], Any],
                 *, window: Optional[float] = None, heart_duration: Optional[float] = None):
        self.timers = timers
        self.on_single = on_single
        self.on_double = on_double
        self.window = settings.double_tap_window if window is None else window
        self.heart_duration = settings.heart_duration if heart_duration is None else heart_duration
        self.hearts: Dict[str, bool] = {}
        self.heart_cycles: Dict[str, int] = {}
        self._pending: Dict[str, asyncio.TimerHandle] = {}
        self._hide: Dict[str, asyncio.TimerHandle] = {}

    def is_pending(self, item_id: str) -> bool:
        return item_id in self._pending

    def tap(self, item_id: str) -> str:
        handle = self._pending.pop(item_id, None)
        if handle is not None:
            self.timers.clear_timeout(handle)
            self._double(item_id)
            return "double"
        self._pending[item_id] = self.timers.register_timeout(lambda: self._single(item_id), self.window)
        return "single"

    def _single(self, item_id: str):
        self._pending.pop(item_id, None)
        return self.on_single(item_id)

    def _double(self, item_id: str) -> None:
        log.debug("double tap on %s", item_id)
        self.timers.spawn(lambda: self.on_double(item_id))
        self.hearts[item_id] = True
        self.heart_cycles[item_id] = self.heart_cycles.get(item_id, 0) + 1
        self.timers.clear_timeout(self._hide.pop(item_id, None))
        self._hide[item_id] = self.timers.register_timeout(lambda: self._hide_heart(item_id), self.heart_duration)

    def _hide_heart(self, item_id: str) -> None:
        self._hide.pop(item_id, None)
        self.hearts[item_id] = False

    def cancel_all(self) -> None:
        for handle in list(self._pending.values()) + list(self._hide.values()):
            self.timers.clear_timeout(handle)
        self._pending.clear()
        self._hide.clear()
        self.hearts.clear()
