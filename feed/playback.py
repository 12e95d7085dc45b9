from __future__ import annotations
import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from shared.config import settings
from shared.models import PlaybackState
from media.fallback import FallbackOverrides
from media.video import QualityOptions
from .gestures import TapGestures
from .timers import ManagedTimers

log = logging.getLogger(__name__)

class ItemPhase(str, Enum):
    IDLE = "idle"
    PRELOADING = "preloading"
    ACTIVE = "active"
    CLEANUP_PENDING = "cleanup-pending"

def _call(player, method: str, *args) -> None:
    # player errors never take the feed down
    fn = getattr(player, method, None)
    if fn is None:
        return
    try:
        fn(*args)
    except Exception:
        log.exception("player.%s failed", method)

class FeedController:
    """Playback bookkeeping for one vertically paged feed.

    Players are objects with play/pause/stop/unload/set_muted. Only the item
    at `current_index` and the one after it may hold a mounted player; the
    current item is the only one that plays.
    """

    def __init__(self, item_ids: Iterable[str] = (), *, window: Optional[int] = None,
                 overrides: Optional[FallbackOverrides] = None, timers: Optional[ManagedTimers] = None,
                 on_like: Optional[Callable[[str], Any]] = None):
        self.item_ids: List[str] = list(item_ids)
        self.window = settings.feed_window if window is None else window
        self.overrides = overrides or FallbackOverrides()
        self.timers = timers or ManagedTimers()
        self.on_like = on_like
        self.gestures = TapGestures(self.timers, on_single=lambda _id: self.toggle_mute(), on_double=self._like)
        self.current_index = 0
        self.muted = False
        self.focused = True
        self.states: Dict[str, PlaybackState] = {}
        self.loading: Dict[str, bool] = {}
        self.ready: Dict[str, bool] = {}
        self.fade: Dict[str, float] = {}
        self._players: Dict[str, Any] = {}
        self._phases: Dict[str, ItemPhase] = {}
        self._sheets: List[Any] = []

    @property
    def current_id(self) -> Optional[str]:
        if 0 <= self.current_index < len(self.item_ids):
            return self.item_ids[self.current_index]
        return None

    @property
    def mounted_ids(self) -> List[str]:
        return [i for i in self.item_ids if i in self._players]

    def phase(self, item_id: str) -> ItemPhase:
        return self._phases.get(item_id, ItemPhase.IDLE)

    def player(self, item_id: str):
        return self._players.get(item_id)

    def _index(self, item_id: str) -> Optional[int]:
        try:
            return self.item_ids.index(item_id)
        except ValueError:
            return None

    def _track(self, item_id: str) -> PlaybackState:
        state = self.states.get(item_id)
        if state is None:
            state = self.states[item_id] = PlaybackState(is_playing=False, is_muted=self.muted)
        return state

    # ---------- mounting ----------
    def attach(self, item_id: str, player) -> bool:
        """Mount a player for an item; refused outside the current/next pair."""
        idx = self._index(item_id)
        if idx is None or idx - self.current_index not in (0, 1):
            log.debug("refusing to mount %s at index %s (current %d)", item_id, idx, self.current_index)
            return False
        old = self._players.get(item_id)
        if old is not None and old is not player:
            self._release(item_id)
        self._players[item_id] = player
        self._track(item_id)
        _call(player, "set_muted", self.muted)
        self._apply()
        return True

    def detach(self, item_id: str) -> None:
        self._release(item_id)

    def _release(self, item_id: str) -> None:
        player = self._players.pop(item_id, None)
        if player is None:
            return
        _call(player, "stop")
        _call(player, "unload")
        state = self.states.get(item_id)
        if state:
            state.is_playing = False

    def _forget(self, item_id: str) -> None:
        self.states.pop(item_id, None)
        self.loading.pop(item_id, None)
        self.ready.pop(item_id, None)
        if item_id in self.fade:
            self.fade[item_id] = 0.0

    # ---------- scrolling ----------
    def set_items(self, item_ids: Iterable[str]) -> None:
        self.item_ids = list(item_ids)
        keep = set(self.item_ids)
        for item_id in list(self._players):
            if item_id not in keep:
                self._release(item_id)
        for item_id in list(self.states):
            if item_id not in keep:
                self._forget(item_id)
                self._phases.pop(item_id, None)
        if self.item_ids:
            self.current_index = min(self.current_index, len(self.item_ids) - 1)
        else:
            self.current_index = 0
        self._apply()

    def on_scroll_settled(self, index: int) -> None:
        if not self.item_ids:
            return
        index = max(0, min(index, len(self.item_ids) - 1))
        if index != self.current_index:
            log.debug("current index %d -> %d", self.current_index, index)
        self.current_index = index
        self._apply()

    def _apply(self) -> None:
        for i, item_id in enumerate(self.item_ids):
            distance = i - self.current_index
            if distance == 0:
                self._phases[item_id] = ItemPhase.ACTIVE
                state = self._track(item_id)
                state.is_playing = self.focused
                player = self._players.get(item_id)
                if player is not None:
                    _call(player, "play" if self.focused else "pause")
            elif distance == 1:
                self._phases[item_id] = ItemPhase.PRELOADING
                self._track(item_id).is_playing = False
                player = self._players.get(item_id)
                if player is not None:
                    _call(player, "pause")
            else:
                self._release(item_id)
                state = self.states.get(item_id)
                if state:
                    state.is_playing = False
                if abs(distance) > self.window:
                    self._forget(item_id)
                    self._phases[item_id] = ItemPhase.IDLE
                else:
                    self._phases[item_id] = ItemPhase.CLEANUP_PENDING

    # ---------- controls ----------
    def toggle_play(self, item_id: str) -> Optional[bool]:
        """Play/pause the current item. Other items are left alone."""
        if item_id != self.current_id:
            return None
        state = self._track(item_id)
        state.is_playing = not state.is_playing
        player = self._players.get(item_id)
        if player is not None:
            _call(player, "play" if state.is_playing else "pause")
        return state.is_playing

    def set_muted(self, muted: bool) -> None:
        self.muted = muted
        for item_id, state in self.states.items():
            state.is_muted = muted
            player = self._players.get(item_id)
            if player is not None:
                _call(player, "set_muted", muted)

    def toggle_mute(self, item_id: Optional[str] = None) -> bool:
        self.set_muted(not self.muted)
        return self.muted

    def tap(self, item_id: str) -> str:
        return self.gestures.tap(item_id)

    def _like(self, item_id: str):
        if self.on_like is None:
            return None
        return self.on_like(item_id)

    def add_sheet(self, sheet) -> None:
        """Register a bottom sheet (anything with close()) to tear down on blur."""
        if sheet not in self._sheets:
            self._sheets.append(sheet)

    def _close_sheets(self) -> None:
        for sheet in self._sheets:
            _call(sheet, "close")

    def blur(self) -> None:
        """Pause every mounted player and cancel everything the screen scheduled."""
        self.focused = False
        for item_id, player in self._players.items():
            _call(player, "pause")
            state = self.states.get(item_id)
            if state:
                state.is_playing = False
        self._close_sheets()
        self.gestures.cancel_all()
        self.timers.clear_all()

    def focus(self) -> None:
        self.focused = True
        item_id = self.current_id
        if item_id is None:
            return
        self._track(item_id).is_playing = True
        player = self._players.get(item_id)
        if player is not None:
            _call(player, "play")

    # ---------- loading / media ----------
    def mark_loading(self, item_id: str) -> None:
        self.loading[item_id] = True
        self.ready[item_id] = False
        self.fade.setdefault(item_id, 0.0)

    def mark_ready(self, item_id: str) -> None:
        self.loading[item_id] = False
        self.ready[item_id] = True
        self.fade[item_id] = 1.0

    def source_for(self, raw_url: Optional[str], options: Optional[QualityOptions] = None) -> str:
        return self.overrides.source_for(raw_url, options)

    def on_playback_error(self, item_id: str, url: str, error_code: Optional[str] = None) -> Optional[str]:
        """Record a fallback for a failing source; the item picks it up on its next mount."""
        self.loading[item_id] = False
        self.ready[item_id] = False
        return self.overrides.on_playback_error(url, error_code)

    def close(self) -> None:
        self._close_sheets()
        self._sheets.clear()
        self.gestures.cancel_all()
        self.timers.clear_all()
        for item_id in list(self._players):
            self._release(item_id)
        self.states.clear()
        self.loading.clear()
        self.ready.clear()
        self.fade.clear()
        self._phases.clear()
        self.overrides.clear()
