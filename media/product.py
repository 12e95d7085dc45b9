from __future__ import annotations
from typing import Dict, List, Optional

from shared.models import MediaItem, Product, Variant
from . import cloudinary
from .urls import FALLBACK_IMAGES, safe_image_url
from .video import playable_video_url

def product_images(product: Optional[Product]) -> List[str]:
    """Images of the first variant that has any, else the product's own."""
    if not product:
        return []
    for v in product.variants:
        if v.image_urls:
            return list(v.image_urls)
    return list(product.image_urls)

def first_safe_product_image(product: Optional[Product]) -> str:
    if not product:
        return FALLBACK_IMAGES["product"]
    for v in product.variants:
        if v.image_urls and v.image_urls[0]:
            return safe_image_url(v.image_urls[0])
    if product.image_urls and product.image_urls[0]:
        return safe_image_url(product.image_urls[0])
    return FALLBACK_IMAGES["product"]

def all_safe_product_media(product: Optional[Product],
                           origins: Optional[Dict[str, str]] = None) -> List[MediaItem]:
    if not product:
        return [MediaItem(type="image", url=FALLBACK_IMAGES["product"])]

    media: List[MediaItem] = []
    for v in product.variants:
        media.extend(MediaItem(type="image", url=safe_image_url(u)) for u in v.image_urls if u)
        for u in v.video_urls:
            playable = playable_video_url(u, origins=origins) if u else ""
            if playable:
                media.append(MediaItem(type="video", url=playable, thumbnail=_thumbnail(playable)))
    media.extend(MediaItem(type="image", url=safe_image_url(u)) for u in product.image_urls if u)
    for u in product.video_urls:
        playable = playable_video_url(u, origins=origins) if u else ""
        if playable:
            media.append(MediaItem(type="video", url=playable, thumbnail=_thumbnail(playable)))

    # last one wins on duplicate urls, order of first appearance is kept
    unique: Dict[str, MediaItem] = {}
    for m in media:
        unique[m.url] = m
    return list(unique.values()) or [MediaItem(type="image", url=FALLBACK_IMAGES["product"])]

def _thumbnail(url: str) -> Optional[str]:
    if cloudinary.is_cloudinary_url(url):
        return cloudinary.video_thumbnail_url(url, width=400, height=600, time=0)
    return None

def feed_media(product: Product, variant: Optional[Variant] = None,
               origins: Optional[Dict[str, str]] = None) -> MediaItem:
    """The single media entry a feed card shows for a product.

    Media of the selected variant (or the first variant) wins over the
    product's own media.
    """
    variant = variant or (product.variants[0] if product.variants else None)
    videos = [u for u in ((variant.video_urls if variant else []) or product.video_urls) if u]
    images = [u for u in ((variant.image_urls if variant else []) or product.image_urls) if u]
    poster = safe_image_url(images[0]) if images else None

    if videos:
        url = playable_video_url(videos[0], origins=origins)
        thumb = _thumbnail(url) or poster
        return MediaItem(type="video", url=url, thumbnail=thumb)
    if poster:
        return MediaItem(type="image", url=poster, thumbnail=poster)
    return MediaItem(type="image", url=FALLBACK_IMAGES["video"], thumbnail=FALLBACK_IMAGES["video"])
