from __future__ import annotations
import logging
from typing import Callable, Dict, FrozenSet, List, Optional

from shared.models import Collection
from shared.notify import Notifier
from .optimistic import Optimistic, revert

log = logging.getLogger(__name__)

DEFAULT_COLLECTION = "All"

class CollectionsFlow:
    """Wishlist folders of one user, with membership shown optimistically.

    `membership[product_id]` holds the collection ids a product is known to be
    in. Writes update it before the backend answers and roll back on failure.
    """

    def __init__(self, backend, notifier: Notifier, user_id: Optional[str],
                 on_login_required: Optional[Callable[[], None]] = None):
        self.backend = backend
        self.notifier = notifier
        self.user_id = user_id
        self.on_login_required = on_login_required
        self.collections: List[Collection] = []
        self.membership: Dict[str, Optimistic[FrozenSet[str]]] = {}

    def _require_user(self) -> bool:
        if self.user_id:
            return True
        self.notifier.info("Login Required", "Please login to save products.")
        if self.on_login_required:
            self.on_login_required()
        return False

    def member_of(self, product_id: str) -> FrozenSet[str]:
        entry = self.membership.get(product_id)
        return entry.value if entry else frozenset()

    async def list_collections(self) -> List[Collection]:
        if not self.user_id:
            return []
        out: List[Collection] = []
        try:
            for item in await self.backend.list_collections(self.user_id):
                count = await self.backend.count_collection_products(item["collection_id"])
                out.append(Collection.from_item(item, product_count=count))
        except Exception:
            log.exception("listing collections for %s failed", self.user_id)
            self.notifier.error("Error", "Failed to load collections.")
            return []
        # default folder first, then newest first
        out.sort(key=lambda c: c.created_at, reverse=True)
        out.sort(key=lambda c: c.name != DEFAULT_COLLECTION)
        self.collections = out
        return out

    async def ensure_default_collection(self) -> Optional[str]:
        if not self.user_id:
            return None
        found = await self.backend.find_collection(self.user_id, DEFAULT_COLLECTION)
        if found:
            return found["collection_id"]
        created = await self.backend.create_collection(self.user_id, DEFAULT_COLLECTION,
                                                       is_private=True, is_default=True)
        log.info("created default collection %s for %s", created["collection_id"], self.user_id)
        return created["collection_id"]

    async def _insert_if_absent(self, collection_id: str, product_id: str) -> None:
        if not await self.backend.has_collection_product(collection_id, product_id):
            await self.backend.add_collection_product(collection_id, product_id)

    async def load_membership(self, product_id: str) -> FrozenSet[str]:
        if not self.user_id or not product_id:
            return frozenset()
        ids = set()
        try:
            for item in await self.backend.list_collections(self.user_id):
                if await self.backend.has_collection_product(item["collection_id"], product_id):
                    ids.add(item["collection_id"])
        except Exception:
            log.exception("loading collections of %s failed", product_id)
            self.notifier.error("Error", "Failed to load collections.")
            return self.member_of(product_id)
        self.membership[product_id] = Optimistic(frozenset(ids))
        return self.membership[product_id].value

    async def save_to_collection(self, product_id: str, collection_id: Optional[str] = None,
                                 product_name: str = "") -> bool:
        """Add a product to a folder and to "All"; with no folder, "All" only."""
        if not product_id or not self._require_user():
            return False
        previous = self.member_of(product_id)
        targets = {collection_id} if collection_id else set()
        self.membership[product_id] = Optimistic(previous).propose(previous | targets)
        try:
            all_id = await self.ensure_default_collection()
            if all_id:
                await self._insert_if_absent(all_id, product_id)
                targets.add(all_id)
            if collection_id and collection_id != all_id:
                await self._insert_if_absent(collection_id, product_id)
        except Exception:
            log.exception("save %s to collection %s failed", product_id, collection_id)
            self.membership[product_id] = revert(previous)
            self.notifier.error("Error", "Failed to add to collection.")
            return False
        self.membership[product_id] = Optimistic(previous | targets)
        self.notifier.success("Added to Wishlist", f"{product_name or 'Product'} saved to {DEFAULT_COLLECTION} folder")
        return True

    async def create_collection(self, name: str, is_private: bool = True) -> Optional[Collection]:
        name = (name or "").strip()
        if not name or not self._require_user():
            return None
        try:
            item = await self.backend.create_collection(self.user_id, name, is_private=is_private)
        except Exception:
            log.exception("create collection %r failed", name)
            self.notifier.error("Error", "Failed to create collection.")
            return None
        created = Collection.from_item(item)
        pos = 1 if self.collections and self.collections[0].name == DEFAULT_COLLECTION else 0
        self.collections.insert(pos, created)
        return created

    async def remove_from_collection(self, product_id: str, collection_id: str) -> bool:
        if not product_id or not collection_id or not self._require_user():
            return False
        previous = self.member_of(product_id)
        self.membership[product_id] = Optimistic(previous).propose(previous - {collection_id})
        try:
            await self.backend.remove_collection_product(collection_id, product_id)
        except Exception:
            log.exception("remove %s from %s failed", product_id, collection_id)
            self.membership[product_id] = revert(previous)
            self.notifier.error("Error", "Failed to remove from collection.")
            return False
        self.membership[product_id] = self.membership[product_id].confirm()
        return True

    async def remove_from_all_collections(self, product_id: str) -> bool:
        if not product_id or not self._require_user():
            return False
        previous = self.member_of(product_id)
        self.membership[product_id] = Optimistic(previous).propose(frozenset())
        try:
            for item in await self.backend.list_collections(self.user_id):
                await self.backend.remove_collection_product(item["collection_id"], product_id)
        except Exception:
            log.exception("remove %s from all collections failed", product_id)
            self.membership[product_id] = revert(previous)
            self.notifier.error("Error", "Failed to remove from wishlist")
            return False
        self.membership[product_id] = self.membership[product_id].confirm()
        self.notifier.success("Removed from Wishlist", "Item removed from all collections")
        return True

    async def delete_collection(self, collection_id: str) -> bool:
        if not collection_id or not self._require_user():
            return False
        try:
            item = await self.backend.get_collection(collection_id)
        except Exception:
            log.exception("loading collection %s failed", collection_id)
            self.notifier.error("Error", "Failed to delete collection.")
            return False
        if not item or item.get("user_id") != self.user_id:
            self.notifier.error("Error", "Collection not found.")
            return False
        if item.get("is_default") or item.get("name") == DEFAULT_COLLECTION:
            self.notifier.error("Error", f"The {DEFAULT_COLLECTION} collection cannot be deleted.")
            return False
        previous = list(self.collections)
        self.collections = [c for c in self.collections if c.id != collection_id]
        try:
            await self.backend.delete_collection(collection_id)
        except Exception:
            log.exception("delete collection %s failed", collection_id)
            self.collections = previous
            self.notifier.error("Error", "Failed to delete collection.")
            return False
        for pid, entry in list(self.membership.items()):
            if collection_id in entry.value:
                self.membership[pid] = Optimistic(entry.value - {collection_id})
        return True

    async def collection_products(self, collection_id: str, viewer_id: Optional[str] = None) -> Optional[List[str]]:
        """Product ids in a folder, or None when the viewer may not see it."""
        try:
            item = await self.backend.get_collection(collection_id)
            if not item:
                return None
            viewer = viewer_id if viewer_id is not None else self.user_id
            if item.get("is_private", True) and item.get("user_id") != viewer:
                return None
            rows = await self.backend.list_collection_products(collection_id)
        except Exception:
            log.exception("loading products of %s failed", collection_id)
            self.notifier.error("Error", "Failed to load collection.")
            return None
        return [r["product_id"] for r in rows]
