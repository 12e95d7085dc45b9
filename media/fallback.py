from __future__ import annotations
import logging
from typing import Dict, Optional, Set

from .urls import resolve
from .video import fallback_candidate, playable_video_url, QualityOptions

log = logging.getLogger(__name__)

class FallbackOverrides:
    """Session-scoped map from a failing video URL to its substitute.

    One instance per feed. Overrides never expire while the instance lives and
    are shared by every item that references the same URL.
    """

    def __init__(self):
        self._overrides: Dict[str, str] = {}
        self._origins: Dict[str, str] = {}
        self._logged: Set[str] = set()

    def __len__(self) -> int:
        return len(self._overrides)

    def get_override(self, url: Optional[str]) -> Optional[str]:
        return self._overrides.get(url) if url else None

    def record_failure(self, original_url: str, fallback_url: Optional[str]) -> bool:
        if not original_url or not fallback_url or fallback_url == original_url:
            return False
        if original_url in self._overrides:
            return False
        self._overrides[original_url] = fallback_url
        log.warning("switching %s to fallback %s", original_url, fallback_url)
        return True

    def normalize(self, raw_url: Optional[str], options: Optional[QualityOptions] = None) -> str:
        """Playable form of a stored video URL, remembering where it came from."""
        playable = playable_video_url(raw_url or "", options, origins=self._origins)
        return resolve(playable, "video") if playable else resolve(raw_url, "video")

    def source_for(self, raw_url: Optional[str], options: Optional[QualityOptions] = None) -> str:
        """What a player should load: the override if one exists, else the normalized URL."""
        return self.follow(self.normalize(raw_url, options))

    def follow(self, url: str) -> str:
        """Last substitute in the chain of overrides starting at `url`."""
        seen = {url}
        while url in self._overrides:
            nxt = self._overrides[url]
            if nxt in seen:
                break
            seen.add(nxt)
            url = nxt
        return url

    def on_playback_error(self, url: str, error_code: Optional[str] = None) -> Optional[str]:
        """Derive and record a fallback for a URL the player could not load.

        Returns the recorded substitute, or None when nothing new was recorded.
        """
        if url not in self._logged:
            self._logged.add(url)
            log.error("playback failed for %s (code=%s)", url, error_code)
        if url in self._overrides:
            return None
        candidate = fallback_candidate(url, error_code, origins=self._origins)
        return candidate if self.record_failure(url, candidate) else None

    def clear(self) -> None:
        self._overrides.clear()
        self._origins.clear()
        self._logged.clear()
