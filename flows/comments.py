from __future__ import annotations
import logging
from typing import List, Optional, Set

from shared.config import settings
from shared.models import Comment
from shared.notify import Notifier
from feed.timers import ManagedTimers, RepeatingTask

log = logging.getLogger(__name__)

BANNED_WORDS = ("abuse", "hate", "violence", "porn", "nsfw")

class CommentsFlow:
    """Q&A thread of one product sheet.

    While the sheet is open, new comments are picked up by polling; `close()`
    tears the subscription down.
    """

    def __init__(self, backend, notifier: Notifier, timers: ManagedTimers, user_id: Optional[str],
                 *, poll_interval: Optional[float] = None):
        self.backend = backend
        self.notifier = notifier
        self.timers = timers
        self.user_id = user_id
        self.poll_interval = settings.comments_poll_interval if poll_interval is None else poll_interval
        self.product_id: Optional[str] = None
        self.comments: List[Comment] = []
        self.blocked: Set[str] = set()
        self._subscription: Optional[RepeatingTask] = None

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None and not self._subscription.stopped

    def _visible(self, items) -> List[Comment]:
        return [Comment.from_item(i) for i in items if i.get("user_id") not in self.blocked]

    async def open(self, product_id: str) -> List[Comment]:
        self.close()
        self.product_id = product_id
        if self.user_id:
            self.blocked = set(await self.backend.list_blocked(self.user_id))
        self.comments = self._visible(await self.backend.list_comments(product_id))
        self._subscription = self.timers.register_interval(self.refresh, self.poll_interval,
                                                           name=f"comments-{product_id}")
        return self.comments

    async def refresh(self) -> List[Comment]:
        if not self.product_id:
            return []
        after = self.comments[-1].comment_id if self.comments else None
        fresh = [c for c in self._visible(await self.backend.list_comments(self.product_id, after=after))
                 if c.comment_id not in {x.comment_id for x in self.comments}]
        self.comments.extend(fresh)
        return fresh

    async def post(self, content: str, user_name: Optional[str] = None) -> Optional[Comment]:
        text = (content or "").strip()
        if not self.user_id or not self.product_id or not text:
            return None
        lowered = text.lower()
        if any(w in lowered for w in BANNED_WORDS):
            self.notifier.error("Content Not Allowed", "Your comment contains objectionable content.")
            return None
        try:
            item = await self.backend.put_comment(self.product_id, self.user_id, text, user_name=user_name)
        except Exception:
            log.exception("posting comment on %s failed", self.product_id)
            self.notifier.error("Error", "Failed to post comment.")
            return None
        comment = Comment.from_item(item)
        self.comments.append(comment)
        return comment

    async def block_user(self, blocked_user_id: str) -> bool:
        if not self.user_id or not blocked_user_id or blocked_user_id == self.user_id:
            return False
        try:
            await self.backend.block_user(self.user_id, blocked_user_id)
        except Exception:
            log.exception("blocking %s failed", blocked_user_id)
            self.notifier.error("Error", "Failed to block user.")
            return False
        self.blocked.add(blocked_user_id)
        self.comments = [c for c in self.comments if c.user_id != blocked_user_id]
        self.notifier.success("User blocked")
        return True

    def close(self) -> None:
        if self._subscription is not None:
            self.timers.clear_interval(self._subscription)
            self._subscription = None
        self.product_id = None
        self.comments = []
