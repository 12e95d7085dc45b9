from __future__ import annotations
import logging, re
from typing import List, Optional
from urllib.parse import urlparse

from .drive import clean, convert_google_drive_url
from .video import playable_video_url

log = logging.getLogger(__name__)

FALLBACK_IMAGES = {
    "product": "https://images.unsplash.com/photo-1610030469983-98e550d6193c?w=300&h=300&fit=crop",
    "placeholder": "https://via.placeholder.com/300x300?text=No+Image",
    "fashion": "https://images.unsplash.com/photo-1441986300917-64674bd600d8?w=300&h=300&fit=crop",
    "video": "https://via.placeholder.com/400x600/cccccc/999999?text=No+Image",
}

_API_RENDERED_RE = re.compile(r"theapi\.app|piapi\.ai", re.I)

def fallback_for(kind: str) -> str:
    return FALLBACK_IMAGES.get(kind, FALLBACK_IMAGES["product"])

def is_valid_url(url: str) -> bool:
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc) and " " not in url

def safe_image_url(url, kind: str = "product") -> str:
    cleaned = clean(url)
    if not cleaned:
        return fallback_for(kind)
    if "drive.google.com" in cleaned:
        return convert_google_drive_url(cleaned) or fallback_for(kind)
    return cleaned if is_valid_url(cleaned) else fallback_for(kind)

def safe_image_urls(urls, kind: str = "product") -> List[str]:
    fallback = fallback_for(kind)
    if not urls or not isinstance(urls, (list, tuple)):
        return [fallback]
    safe = [safe_image_url(u, kind) for u in urls]
    # keep the fallback only if it is the sole image
    safe = [u for u in safe if u != fallback or len(urls) == 1]
    return safe or [fallback]

def first_safe_image_url(urls, kind: str = "product") -> str:
    return safe_image_urls(urls, kind)[0]

def prefer_api_rendered_first(urls) -> List[str]:
    if not urls:
        return []
    urls = list(urls)
    rendered = next((u for u in urls if isinstance(u, str) and _API_RENDERED_RE.search(u)), None)
    if not rendered:
        return urls
    return [rendered] + [u for u in urls if u != rendered]

def resolve(raw_url, kind: str = "product") -> str:
    """Displayable URL for a stored media reference; never raises.

    `kind` selects the fallback constant: product, placeholder, fashion or video.
    Video references are additionally rewritten to a directly playable form.
    """
    try:
        cleaned = clean(raw_url)
        if not cleaned:
            return fallback_for(kind)
        if "drive.google.com" in cleaned:
            return convert_google_drive_url(cleaned) or fallback_for(kind)
        if kind == "video":
            cleaned = playable_video_url(cleaned)
        return cleaned if is_valid_url(cleaned) else fallback_for(kind)
    except Exception:
        log.exception("resolve failed for %r", raw_url)
        return fallback_for(kind)
