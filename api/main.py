from __future__ import annotations
import logging
from functools import lru_cache
from typing import List, Optional, Dict, Any
from fastapi import FastAPI, Query, Depends, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from shared.config import settings
from shared.dynamo import DynamoBackend, to_jsonable
from shared.models import Product
from shared.notify import Notifier
from media import cloudinary
from media.urls import FALLBACK_IMAGES, resolve
from media.product import all_safe_product_media, feed_media
from flows.collections import CollectionsFlow

logging.basicConfig(level=settings.log_level,
                    format="%(asctime)s %(levelname)s %(name)s: %(message)s")
log = logging.getLogger(__name__)

app = FastAPI(title="Trend Feed API", version="1.0.0")
app.add_middleware(CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_methods=["*"], allow_headers=["*"])

@lru_cache(maxsize=1)
def get_backend() -> DynamoBackend:
    return DynamoBackend()

class CreateCollectionIn(BaseModel):
    user_id: str
    name: str
    is_private: bool = True

class AddProductIn(BaseModel):
    user_id: str
    product_id: str

def _flow(backend, user_id: str) -> CollectionsFlow:
    return CollectionsFlow(backend, Notifier(), user_id)

def _last_error(flow: CollectionsFlow, default: str) -> str:
    errors = [m for m in flow.notifier.messages if m.kind == "error"]
    return errors[-1].body if errors else default

@app.get("/ping")
def ping():
    return {"ok": True, "region": settings.aws_region, "stage": settings.stage}

# ---------- media ----------
@app.get("/media/resolve")
def media_resolve(url: str = Query("", description="Stored media reference"),
                  kind: str = Query("product")):
    if kind not in FALLBACK_IMAGES:
        raise HTTPException(status_code=400, detail=f"unknown kind: {kind}")
    return {"url": resolve(url, kind), "kind": kind}

@app.get("/media/thumbnail")
def media_thumbnail(url: str, width: int = Query(400, ge=1), height: int = Query(600, ge=1),
                    time: float = Query(0, ge=0)):
    if not cloudinary.is_cloudinary_url(url):
        raise HTTPException(status_code=400, detail="not a Cloudinary url")
    return {"url": cloudinary.video_thumbnail_url(url, width=width, height=height, time=time)}

@app.get("/products/{product_id}/media")
async def product_media(product_id: str, backend=Depends(get_backend)):
    item = await backend.get_product(product_id)
    if not item:
        raise HTTPException(status_code=404, detail="product not found")
    product = Product.from_item(item, variants=await backend.list_variants(product_id))
    return {
        "product_id": product.id,
        "feed": feed_media(product).__dict__,
        "media": [m.__dict__ for m in all_safe_product_media(product)],
    }

# ---------- collections ----------
@app.get("/collections/user/{user_id}")
async def user_collections(user_id: str, backend=Depends(get_backend)):
    flow = _flow(backend, user_id)
    await flow.ensure_default_collection()
    cols = await flow.list_collections()
    return {"items": [c.__dict__ for c in cols], "count": len(cols)}

@app.post("/collections", status_code=201)
async def create_collection(body: CreateCollectionIn, backend=Depends(get_backend)):
    flow = _flow(backend, body.user_id)
    created = await flow.create_collection(body.name, is_private=body.is_private)
    if not created:
        raise HTTPException(status_code=400, detail=_last_error(flow, "collection name required"))
    return created.__dict__

@app.get("/collections/{collection_id}/products")
async def collection_products(collection_id: str, user_id: Optional[str] = None, backend=Depends(get_backend)):
    ids = await _flow(backend, user_id).collection_products(collection_id, viewer_id=user_id)
    if ids is None:
        raise HTTPException(status_code=404, detail="collection not found")
    products: List[Dict[str, Any]] = []
    for pid in ids:
        item = await backend.get_product(pid)
        if item:
            products.append(to_jsonable(item))
    return {"collection_id": collection_id, "product_ids": ids, "items": products}

@app.post("/collections/{collection_id}/products", status_code=201)
async def add_to_collection(collection_id: str, body: AddProductIn, backend=Depends(get_backend)):
    col = await backend.get_collection(collection_id)
    if not col or col.get("user_id") != body.user_id:
        raise HTTPException(status_code=404, detail="collection not found")
    flow = _flow(backend, body.user_id)
    if not await flow.save_to_collection(body.product_id, collection_id):
        raise HTTPException(status_code=400, detail=_last_error(flow, "could not save product"))
    return {"collection_id": collection_id, "product_id": body.product_id,
            "collections": sorted(flow.member_of(body.product_id))}

@app.delete("/collections/{collection_id}/products/{product_id}")
async def remove_from_collection(collection_id: str, product_id: str, user_id: str,
                                 backend=Depends(get_backend)):
    col = await backend.get_collection(collection_id)
    if not col or col.get("user_id") != user_id:
        raise HTTPException(status_code=404, detail="collection not found")
    flow = _flow(backend, user_id)
    if not await flow.remove_from_collection(product_id, collection_id):
        raise HTTPException(status_code=400, detail=_last_error(flow, "could not remove product"))
    return {"ok": True}

@app.delete("/collections/{collection_id}/user/{user_id}")
async def delete_collection(collection_id: str, user_id: str, backend=Depends(get_backend)):
    col = await backend.get_collection(collection_id)
    if not col or col.get("user_id") != user_id:
        raise HTTPException(status_code=404, detail="collection not found")
    flow = _flow(backend, user_id)
    if not await flow.delete_collection(collection_id):
        raise HTTPException(status_code=400, detail=_last_error(flow, "could not delete collection"))
    return {"ok": True, "deleted": collection_id}

# ---------- try-on ----------
@app.get("/tryon/{task_id}")
async def tryon_task(task_id: str, backend=Depends(get_backend)):
    task = await backend.get_tryon_task(task_id)
    if not task:
        raise HTTPException(status_code=404, detail="task not found")
    return {
        "task_id": task_id,
        "status": task.get("status"),
        "result_images": task.get("result_images") or [],
        "error": task.get("error_message"),
    }
