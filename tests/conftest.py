from __future__ import annotations
import itertools
from typing import Any, Dict, List, Optional, Set

import pytest

from feed.timers import ManagedTimers
from shared.notify import Notifier

class InMemoryBackend:
    """Same async surface as DynamoBackend, kept in dicts.

    Names in `fail` make the matching method raise, to exercise rollbacks.
    """

    def __init__(self):
        self.fail: Set[str] = set()
        self.calls: List[str] = []
        self.products: Dict[str, Dict[str, Any]] = {}
        self.variants: List[Dict[str, Any]] = []
        self.collections: Dict[str, Dict[str, Any]] = {}
        self.collection_products: Set[tuple] = set()
        self.likes: Set[tuple] = set()
        self.coins: Dict[str, int] = {}
        self.tasks: Dict[str, Dict[str, Any]] = {}
        self.results: Dict[tuple, List[str]] = {}
        self.comments: Dict[str, List[Dict[str, Any]]] = {}
        self.blocked: Set[tuple] = set()
        self._seq = itertools.count(1)

    def _hit(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail:
            raise RuntimeError(f"{name} failed")

    async def get_product(self, product_id):
        self._hit("get_product")
        return self.products.get(product_id)

    async def list_products(self, limit=20):
        self._hit("list_products")
        return list(self.products.values())[:limit]

    async def list_variants(self, product_id):
        self._hit("list_variants")
        return [v for v in self.variants if v["product_id"] == product_id]

    async def list_collections(self, user_id):
        self._hit("list_collections")
        return [c for c in self.collections.values() if c["user_id"] == user_id]

    async def get_collection(self, collection_id):
        self._hit("get_collection")
        return self.collections.get(collection_id)

    async def find_collection(self, user_id, name):
        self._hit("find_collection")
        return next((c for c in self.collections.values()
                     if c["user_id"] == user_id and c["name"] == name), None)

    async def create_collection(self, user_id, name, *, is_private=True, is_default=False, description=None):
        self._hit("create_collection")
        n = next(self._seq)
        item = {"collection_id": f"col_{n}", "user_id": user_id, "name": name,
                "is_private": is_private, "is_default": is_default, "created_at": f"{n:013d}"}
        self.collections[item["collection_id"]] = item
        return item

    async def delete_collection(self, collection_id):
        self._hit("delete_collection")
        self.collection_products = {r for r in self.collection_products if r[0] != collection_id}
        self.collections.pop(collection_id, None)

    async def count_collection_products(self, collection_id):
        self._hit("count_collection_products")
        return sum(1 for r in self.collection_products if r[0] == collection_id)

    async def list_collection_products(self, collection_id):
        self._hit("list_collection_products")
        return [{"collection_id": c, "product_id": p} for c, p in sorted(self.collection_products) if c == collection_id]

    async def has_collection_product(self, collection_id, product_id):
        self._hit("has_collection_product")
        return (collection_id, product_id) in self.collection_products

    async def add_collection_product(self, collection_id, product_id):
        self._hit("add_collection_product")
        self.collection_products.add((collection_id, product_id))

    async def remove_collection_product(self, collection_id, product_id):
        self._hit("remove_collection_product")
        self.collection_products.discard((collection_id, product_id))

    async def list_likes(self, user_id):
        self._hit("list_likes")
        return [p for u, p in self.likes if u == user_id]

    async def add_like(self, user_id, product_id):
        self._hit("add_like")
        self.likes.add((user_id, product_id))

    async def remove_like(self, user_id, product_id):
        self._hit("remove_like")
        self.likes.discard((user_id, product_id))

    async def count_likes(self, product_id):
        self._hit("count_likes")
        return sum(1 for _, p in self.likes if p == product_id)

    async def get_coin_balance(self, user_id):
        self._hit("get_coin_balance")
        return self.coins.get(user_id, 0)

    async def adjust_coin_balance(self, user_id, delta):
        self._hit("adjust_coin_balance")
        self.coins[user_id] = self.coins.get(user_id, 0) + delta
        return self.coins[user_id]

    async def put_tryon_task(self, item):
        self._hit("put_tryon_task")
        item = {"task_id": f"try_{next(self._seq)}", **item}
        self.tasks[item["task_id"]] = item
        return item

    async def update_tryon_task(self, task_id, **fields):
        self._hit("update_tryon_task")
        self.tasks[task_id].update(fields)

    async def get_tryon_task(self, task_id):
        self._hit("get_tryon_task")
        task = self.tasks.get(task_id)
        return dict(task) if task else None

    async def save_tryon_results(self, user_id, product_id, result_images):
        self._hit("save_tryon_results")
        self.results[(user_id, product_id)] = list(result_images)

    async def get_tryon_results(self, user_id, product_id):
        self._hit("get_tryon_results")
        return self.results.get((user_id, product_id))

    async def list_comments(self, product_id, after: Optional[str] = None):
        self._hit("list_comments")
        items = self.comments.get(product_id, [])
        return [c for c in items if after is None or c["comment_id"] > after]

    async def put_comment(self, product_id, user_id, content, user_name=None):
        self._hit("put_comment")
        item = {"product_id": product_id, "comment_id": f"{next(self._seq):013d}_abc123",
                "user_id": user_id, "content": content, "created_at": "0"}
        if user_name:
            item["user_name"] = user_name
        self.comments.setdefault(product_id, []).append(item)
        return item

    async def list_blocked(self, user_id):
        self._hit("list_blocked")
        return [b for u, b in self.blocked if u == user_id]

    async def block_user(self, user_id, blocked_user_id):
        self._hit("block_user")
        self.blocked.add((user_id, blocked_user_id))

class FakePlayer:
    def __init__(self, name: str = "player"):
        self.name = name
        self.calls: List[tuple] = []
        self.playing = False
        self.muted: Optional[bool] = None
        self.loaded = True

    def play(self):
        self.calls.append(("play",))
        self.playing = True

    def pause(self):
        self.calls.append(("pause",))
        self.playing = False

    def stop(self):
        self.calls.append(("stop",))
        self.playing = False

    def unload(self):
        self.calls.append(("unload",))
        self.loaded = False

    def set_muted(self, muted):
        self.calls.append(("set_muted", muted))
        self.muted = muted

@pytest.fixture
def backend():
    return InMemoryBackend()

@pytest.fixture
def notifier():
    return Notifier()

@pytest.fixture
async def timers():
    t = ManagedTimers()
    yield t
    t.clear_all()

@pytest.fixture
def make_player():
    return FakePlayer
