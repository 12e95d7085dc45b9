from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Dict, Any

def _num(v, default=0):
    if v is None:
        return default
    if isinstance(v, Decimal):
        return int(v) if v == v.to_integral_value() else float(v)
    return v

def _strs(v) -> List[str]:
    return [str(x) for x in (v or []) if x]

@dataclass
class Variant:
    id: str
    product_id: str
    size_id: Optional[str] = None
    size: Optional[str] = None
    color: Optional[str] = None
    price: float = 0.0
    quantity: int = 0
    image_urls: List[str] = field(default_factory=list)
    video_urls: List[str] = field(default_factory=list)

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "Variant":
        return cls(
            id=str(item.get("variant_id") or item.get("id") or ""),
            product_id=str(item.get("product_id") or ""),
            size_id=item.get("size_id"),
            size=item.get("size"),
            color=item.get("color"),
            price=float(_num(item.get("price"), 0.0)),
            quantity=int(_num(item.get("quantity"), 0)),
            image_urls=_strs(item.get("image_urls")),
            video_urls=_strs(item.get("video_urls")),
        )

@dataclass
class Product:
    id: str
    name: str
    description: str = ""
    category: Optional[str] = None
    vendor_id: Optional[str] = None
    influencer_id: Optional[str] = None
    image_urls: List[str] = field(default_factory=list)
    video_urls: List[str] = field(default_factory=list)
    variants: List[Variant] = field(default_factory=list)

    @classmethod
    def from_item(cls, item: Dict[str, Any], variants: Optional[List[Dict[str, Any]]] = None) -> "Product":
        raw_variants = variants if variants is not None else (item.get("variants") or [])
        return cls(
            id=str(item.get("product_id") or item.get("id") or ""),
            name=item.get("name") or "",
            description=item.get("description") or "",
            category=item.get("category"),
            vendor_id=item.get("vendor_id"),
            influencer_id=item.get("influencer_id"),
            image_urls=_strs(item.get("image_urls")),
            video_urls=_strs(item.get("video_urls")),
            variants=[v if isinstance(v, Variant) else Variant.from_item(v) for v in raw_variants],
        )

    @property
    def stock(self) -> int:
        return sum(v.quantity for v in self.variants)

@dataclass
class MediaItem:
    type: str  # image, video
    url: str
    thumbnail: Optional[str] = None

@dataclass
class PlaybackState:
    is_playing: bool = False
    is_muted: bool = False

@dataclass
class Collection:
    id: str
    user_id: str
    name: str
    is_private: bool = True
    is_default: bool = False
    created_at: str = ""
    product_count: int = 0

    @classmethod
    def from_item(cls, item: Dict[str, Any], product_count: int = 0) -> "Collection":
        return cls(
            id=item["collection_id"],
            user_id=item.get("user_id", ""),
            name=item.get("name", ""),
            is_private=bool(item.get("is_private", True)),
            is_default=bool(item.get("is_default", False)),
            created_at=str(item.get("created_at", "")),
            product_count=product_count,
        )

@dataclass
class Comment:
    product_id: str
    comment_id: str
    user_id: str
    content: str
    created_at: str
    user_name: Optional[str] = None

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "Comment":
        return cls(
            product_id=item["product_id"],
            comment_id=item.get("comment_id", ""),
            user_id=item.get("user_id", ""),
            content=item.get("content", ""),
            created_at=str(item.get("created_at", "")),
            user_name=item.get("user_name"),
        )

@dataclass
class TryOnRequest:
    user_image_url: str
    product_image_url: str
    user_id: str
    product_id: str
    batch_size: int = 1

@dataclass
class TaskStatus:
    status: str  # pending, processing, completed, failed
    result_urls: List[str] = field(default_factory=list)
    error: Optional[str] = None
