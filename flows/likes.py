from __future__ import annotations
import logging
from typing import Dict, Optional, Set

from shared.notify import Notifier
from .optimistic import Optimistic, revert

log = logging.getLogger(__name__)

class LikesFlow:
    def __init__(self, backend, notifier: Notifier, user_id: Optional[str]):
        self.backend = backend
        self.notifier = notifier
        self.user_id = user_id
        self.liked: Dict[str, Optimistic[bool]] = {}
        self.counts: Dict[str, Optimistic[int]] = {}

    def is_liked(self, product_id: str) -> bool:
        entry = self.liked.get(product_id)
        return bool(entry and entry.value)

    def count(self, product_id: str) -> int:
        entry = self.counts.get(product_id)
        return entry.value if entry else 0

    async def load(self) -> Set[str]:
        if not self.user_id:
            return set()
        ids = set(await self.backend.list_likes(self.user_id))
        self.liked = {pid: Optimistic(True) for pid in ids}
        return ids

    async def load_count(self, product_id: str) -> int:
        n = await self.backend.count_likes(product_id)
        self.counts[product_id] = Optimistic(n)
        return n

    async def toggle(self, product_id: str) -> Optional[bool]:
        """Flip the like state; returns the new state, or None if nothing changed."""
        if not product_id:
            return None
        if not self.user_id:
            self.notifier.info("Login Required", "Please login to like products.")
            return None
        was_liked = self.is_liked(product_id)
        prev_count = self.count(product_id)
        self.liked[product_id] = Optimistic(was_liked).propose(not was_liked)
        self.counts[product_id] = Optimistic(prev_count).propose(max(0, prev_count + (-1 if was_liked else 1)))
        try:
            if was_liked:
                await self.backend.remove_like(self.user_id, product_id)
            else:
                await self.backend.add_like(self.user_id, product_id)
        except Exception:
            log.exception("like toggle failed for %s", product_id)
            self.liked[product_id] = revert(was_liked)
            self.counts[product_id] = revert(prev_count)
            self.notifier.error("Error", "Failed to update like.")
            return None
        self.liked[product_id] = self.liked[product_id].confirm()
        self.counts[product_id] = self.counts[product_id].confirm()
        if was_liked:
            self.notifier.info("Removed from likes")
        else:
            self.notifier.success("Added to likes")
        return not was_liked

    async def like_if_needed(self, product_id: str) -> bool:
        """Double-tap like: never unlikes."""
        if self.is_liked(product_id):
            return True
        return bool(await self.toggle(product_id))
