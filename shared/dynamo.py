from __future__ import annotations
import asyncio, uuid, time
from decimal import Decimal
from typing import Dict, Any, List, Optional
from boto3.dynamodb.conditions import Attr, Key
from .aws import dynamodb_resource
from .config import settings

def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"

def _now_ms_str() -> str: return f"{int(time.time() * 1000):013d}"

def to_jsonable(x):
    if isinstance(x, list):  return [to_jsonable(v) for v in x]
    if isinstance(x, dict):  return {k: to_jsonable(v) for k, v in x.items()}
    if isinstance(x, Decimal):
        return int(x) if x == x.to_integral_value() else float(x)
    return x

def _scan_all(table, **kwargs) -> List[Dict[str, Any]]:
    items: List[Dict[str, Any]] = []
    while True:
        resp = table.scan(**kwargs)
        items.extend(resp.get("Items", []))
        last = resp.get("LastEvaluatedKey")
        if not last:
            return items
        kwargs["ExclusiveStartKey"] = last

def _query_all(table, **kwargs) -> List[Dict[str, Any]]:
    items: List[Dict[str, Any]] = []
    while True:
        resp = table.query(**kwargs)
        items.extend(resp.get("Items", []))
        last = resp.get("LastEvaluatedKey")
        if not last:
            return items
        kwargs["ExclusiveStartKey"] = last

def _count(table, **kwargs) -> int:
    total = 0
    while True:
        resp = table.query(Select="COUNT", **kwargs)
        total += int(resp.get("Count", 0))
        last = resp.get("LastEvaluatedKey")
        if not last:
            return total
        kwargs["ExclusiveStartKey"] = last

class DynamoBackend:
    """Async facade over the DynamoDB tables backing the feed.

    boto3 is synchronous; every call runs in a worker thread so handlers on
    the event loop stay responsive while they await the backend.
    """

    def __init__(self, resource=None):
        ddb = resource or dynamodb_resource()
        self.products = ddb.Table(settings.ddb_products)
        self.variants = ddb.Table(settings.ddb_variants)
        self.collections = ddb.Table(settings.ddb_collections)
        self.collection_products = ddb.Table(settings.ddb_collection_products)
        self.likes = ddb.Table(settings.ddb_likes)
        self.comments = ddb.Table(settings.ddb_comments)
        self.blocked = ddb.Table(settings.ddb_blocked)
        self.users = ddb.Table(settings.ddb_users)
        self.tryon_tasks = ddb.Table(settings.ddb_tryon_tasks)
        self.tryon_results = ddb.Table(settings.ddb_tryon_results)

    async def _run(self, fn, *args, **kwargs):
        return await asyncio.to_thread(fn, *args, **kwargs)

    # ---------- products ----------
    async def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        r = await self._run(self.products.get_item, Key={"product_id": product_id})
        return r.get("Item")

    async def list_products(self, limit: int = 20) -> List[Dict[str, Any]]:
        r = await self._run(self.products.scan, Limit=limit)
        return r.get("Items", [])

    async def list_variants(self, product_id: str) -> List[Dict[str, Any]]:
        return await self._run(_scan_all, self.variants, FilterExpression=Attr("product_id").eq(product_id))

    # ---------- collections ----------
    async def list_collections(self, user_id: str) -> List[Dict[str, Any]]:
        return await self._run(_scan_all, self.collections, FilterExpression=Attr("user_id").eq(user_id))

    async def get_collection(self, collection_id: str) -> Optional[Dict[str, Any]]:
        r = await self._run(self.collections.get_item, Key={"collection_id": collection_id})
        return r.get("Item")

    async def find_collection(self, user_id: str, name: str) -> Optional[Dict[str, Any]]:
        fe = Attr("user_id").eq(user_id) & Attr("name").eq(name)
        items = await self._run(_scan_all, self.collections, FilterExpression=fe)
        return items[0] if items else None

    async def create_collection(self, user_id: str, name: str, *, is_private: bool = True,
                                is_default: bool = False, description: Optional[str] = None) -> Dict[str, Any]:
        item = {
            "collection_id": new_id("col"),
            "user_id": user_id,
            "name": name,
            "is_private": is_private,
            "is_default": is_default,
            "created_at": _now_ms_str(),
        }
        if description:
            item["description"] = description
        await self._run(self.collections.put_item, Item=item)
        return item

    async def delete_collection(self, collection_id: str) -> None:
        rows = await self.list_collection_products(collection_id)
        for row in rows:
            await self.remove_collection_product(collection_id, row["product_id"])
        await self._run(self.collections.delete_item, Key={"collection_id": collection_id})

    async def count_collection_products(self, collection_id: str) -> int:
        return await self._run(_count, self.collection_products,
                               KeyConditionExpression=Key("collection_id").eq(collection_id))

    async def list_collection_products(self, collection_id: str) -> List[Dict[str, Any]]:
        return await self._run(_query_all, self.collection_products,
                               KeyConditionExpression=Key("collection_id").eq(collection_id))

    async def has_collection_product(self, collection_id: str, product_id: str) -> bool:
        r = await self._run(self.collection_products.get_item,
                            Key={"collection_id": collection_id, "product_id": product_id})
        return "Item" in r

    async def add_collection_product(self, collection_id: str, product_id: str) -> None:
        await self._run(self.collection_products.put_item, Item={
            "collection_id": collection_id,
            "product_id": product_id,
            "added_at": _now_ms_str(),
        })

    async def remove_collection_product(self, collection_id: str, product_id: str) -> None:
        await self._run(self.collection_products.delete_item,
                        Key={"collection_id": collection_id, "product_id": product_id})

    # ---------- likes ----------
    async def list_likes(self, user_id: str) -> List[str]:
        items = await self._run(_query_all, self.likes, KeyConditionExpression=Key("user_id").eq(user_id))
        return [i["product_id"] for i in items]

    async def add_like(self, user_id: str, product_id: str) -> None:
        await self._run(self.likes.put_item, Item={
            "user_id": user_id, "product_id": product_id, "created_at": _now_ms_str(),
        })

    async def remove_like(self, user_id: str, product_id: str) -> None:
        await self._run(self.likes.delete_item, Key={"user_id": user_id, "product_id": product_id})

    async def count_likes(self, product_id: str) -> int:
        items = await self._run(_scan_all, self.likes, FilterExpression=Attr("product_id").eq(product_id))
        return len(items)

    # ---------- coins ----------
    async def get_coin_balance(self, user_id: str) -> int:
        r = await self._run(self.users.get_item, Key={"user_id": user_id})
        return int(to_jsonable((r.get("Item") or {}).get("coin_balance") or 0))

    async def adjust_coin_balance(self, user_id: str, delta: int) -> int:
        r = await self._run(
            self.users.update_item,
            Key={"user_id": user_id},
            UpdateExpression="ADD coin_balance :d",
            ExpressionAttributeValues={":d": delta},
            ReturnValues="UPDATED_NEW",
        )
        return int(to_jsonable(r.get("Attributes", {}).get("coin_balance", 0)))

    # ---------- try-on ----------
    async def put_tryon_task(self, item: Dict[str, Any]) -> Dict[str, Any]:
        item = {"task_id": new_id("try"), "created_at": _now_ms_str(), **item}
        await self._run(self.tryon_tasks.put_item, Item=item)
        return item

    async def update_tryon_task(self, task_id: str, **fields) -> None:
        if not fields:
            return
        names = {f"#{k}": k for k in fields}
        values = {f":{k}": v for k, v in fields.items()}
        expr = "SET " + ", ".join(f"#{k} = :{k}" for k in fields)
        await self._run(
            self.tryon_tasks.update_item,
            Key={"task_id": task_id},
            UpdateExpression=expr,
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=values,
        )

    async def get_tryon_task(self, task_id: str) -> Optional[Dict[str, Any]]:
        r = await self._run(self.tryon_tasks.get_item, Key={"task_id": task_id})
        item = r.get("Item")
        return to_jsonable(item) if item else None

    async def save_tryon_results(self, user_id: str, product_id: str, result_images: List[str]) -> None:
        await self._run(self.tryon_results.put_item, Item={
            "user_id": user_id,
            "product_id": product_id,
            "result_images": list(result_images),
            "updated_at": _now_ms_str(),
        })

    async def get_tryon_results(self, user_id: str, product_id: str) -> Optional[List[str]]:
        r = await self._run(self.tryon_results.get_item, Key={"user_id": user_id, "product_id": product_id})
        item = r.get("Item")
        return list(item.get("result_images") or []) if item else None

    # ---------- comments / blocking ----------
    async def list_comments(self, product_id: str, after: Optional[str] = None) -> List[Dict[str, Any]]:
        kce = Key("product_id").eq(product_id)
        if after:
            kce = kce & Key("comment_id").gt(after)
        return await self._run(_query_all, self.comments, KeyConditionExpression=kce)

    async def put_comment(self, product_id: str, user_id: str, content: str,
                          user_name: Optional[str] = None) -> Dict[str, Any]:
        now = _now_ms_str()
        item = {
            "product_id": product_id,
            "comment_id": f"{now}_{uuid.uuid4().hex[:6]}",
            "user_id": user_id,
            "content": content,
            "created_at": now,
        }
        if user_name:
            item["user_name"] = user_name
        await self._run(self.comments.put_item, Item=item)
        return item

    async def list_blocked(self, user_id: str) -> List[str]:
        items = await self._run(_query_all, self.blocked, KeyConditionExpression=Key("user_id").eq(user_id))
        return [i["blocked_user_id"] for i in items]

    async def block_user(self, user_id: str, blocked_user_id: str) -> None:
        await self._run(self.blocked.put_item, Item={
            "user_id": user_id, "blocked_user_id": blocked_user_id, "created_at": _now_ms_str(),
        })
