from __future__ import annotations
import logging, re
from dataclasses import dataclass
from typing import Dict, Optional
from urllib.parse import urlparse, urlunparse

from . import cloudinary
from .drive import drive_download_url, extract_drive_file_id, is_google_drive_url

log = logging.getLogger(__name__)

VIDEO_EXTENSIONS = (".mp4", ".mov", ".avi", ".mkv", ".webm", ".m4v", ".m3u8")
BUNNY_HOST_KEYWORDS = (
    "b-cdn.net", "bunnycdn.com", "bunny.net", "storage.bunnycdn.com",
    "video.bunnycdn", "mediadelivery.net",
)
QUALITIES = ("360p", "480p", "720p", "1080p", "hls")

_EMBED_RE = re.compile(r"/embed/([a-zA-Z0-9-]+)/([a-zA-Z0-9-]+)")

@dataclass
class QualityOptions:
    preferred: Optional[str] = None
    prefer_hls: bool = False
    is_preload: bool = False
    connection: Optional[str] = None  # wifi, cellular, slow

def _norm(url: Optional[str]) -> str:
    return url.strip() if isinstance(url, str) else ""

def is_video_url(url: Optional[str]) -> bool:
    lower = _norm(url).lower()
    if not lower:
        return False
    return (
        any(ext in lower for ext in VIDEO_EXTENSIONS)
        or "video" in lower
        or "drive.google.com" in lower
        or "cloudfront" in lower
        or "b-cdn.net" in lower
        or "bunnycdn.com" in lower
        or "mediadelivery.net" in lower
    )

def is_bunny_stream_url(url: Optional[str]) -> bool:
    lower = _norm(url).lower()
    return bool(lower) and any(k in lower for k in BUNNY_HOST_KEYWORDS)

def is_bunny_embed_url(url: Optional[str]) -> bool:
    lower = _norm(url).lower()
    return "mediadelivery.net" in lower or "mediaembed.net" in lower

def is_hls_url(url: Optional[str]) -> bool:
    return ".m3u8" in _norm(url).lower()

def optimal_quality(options: Optional[QualityOptions] = None) -> str:
    o = options or QualityOptions()
    if o.prefer_hls:
        return "hls"
    if o.preferred:
        return o.preferred
    if o.is_preload:
        return "360p"
    if o.connection == "wifi":
        return "720p"
    return "480p"

def _quality_file(quality: str) -> str:
    if quality == "hls":
        return "playlist.m3u8"
    if quality not in QUALITIES:
        quality = "480p"
    return f"play_{quality}.mp4"

def bunny_embed_to_direct(url: str, quality: str = "480p") -> str:
    """iframe.mediadelivery.net/embed/{lib}/{video} -> video.bunnycdn.com/{lib}/{video}/play_{q}.mp4"""
    normalized = _norm(url)
    if not normalized or not is_bunny_embed_url(normalized):
        return normalized
    m = _EMBED_RE.search(normalized)
    if not m:
        log.warning("could not parse bunny embed url %s", normalized)
        return normalized
    library_id, video_id = m.group(1), m.group(2)
    return f"https://video.bunnycdn.com/{library_id}/{video_id}/{_quality_file(quality)}"

def bunny_direct_url(url: str, quality: str = "hls") -> str:
    normalized = _norm(url)
    if not normalized or not is_bunny_stream_url(normalized):
        return normalized
    parsed = urlparse(normalized)
    segments = [s for s in parsed.path.split("/") if s]
    if not segments:
        return normalized
    is_mp4 = ".mp4" in normalized or "play_" in normalized
    if quality == "hls" or not is_mp4:
        segments[-1] = "playlist.m3u8"
    else:
        segments[-1] = _quality_file(quality)
    return urlunparse(parsed._replace(path="/" + "/".join(segments)))

def drive_video_url(url: str) -> str:
    normalized = _norm(url)
    if not normalized or not is_google_drive_url(normalized):
        return normalized
    file_id = extract_drive_file_id(normalized)
    return drive_download_url(file_id) if file_id else normalized

def playable_video_url(url: str, options: Optional[QualityOptions] = None,
                       origins: Optional[Dict[str, str]] = None) -> str:
    """Directly playable URL for a stored video reference.

    When `origins` is given, the resolved URL is registered against the raw
    one so a later playback error can fall back to the source.
    """
    normalized = _norm(url)
    if not normalized:
        return normalized
    quality = optimal_quality(options)

    if "b-cdn.net" in normalized and "playlist.m3u8" in normalized:
        out = normalized
    elif is_bunny_embed_url(normalized):
        out = bunny_embed_to_direct(normalized, quality)
    elif is_bunny_stream_url(normalized):
        if ".mp4" in normalized and "play_" not in normalized:
            out = bunny_direct_url(normalized, quality)
        elif ".mp4" not in normalized and "playlist.m3u8" not in normalized:
            out = bunny_direct_url(normalized, "hls")
        else:
            out = normalized
    elif is_google_drive_url(normalized):
        out = drive_video_url(normalized)
    elif cloudinary.is_cloudinary_url(normalized):
        out = cloudinary.optimize_video_url(normalized)
    else:
        out = normalized

    if origins is not None and out and out not in origins:
        origins[out] = normalized
    return out

_LADDER = (
    ("play_720p.mp4", "play_480p.mp4"),
    ("play_480p.mp4", "play_360p.mp4"),
    ("play_360p.mp4", "play.mp4"),
)

def fallback_candidate(url: Optional[str], error_code: Optional[str] = None,
                       origins: Optional[Dict[str, str]] = None) -> Optional[str]:
    """Next URL to try after `url` failed to play, or None."""
    normalized = _norm(url)
    if not normalized:
        return None
    if error_code == "403" and "b-cdn.net" in normalized:
        log.error("bunny stream returned 403 for %s; token authentication is likely enabled", normalized)

    origin = (origins or {}).get(normalized)
    if origin and origin != normalized:
        return origin

    if "b-cdn.net" in normalized and "playlist.m3u8" in normalized:
        return normalized.replace("/playlist.m3u8", "/play_720p.mp4")

    if ("b-cdn.net" in normalized and ".mp4" in normalized) or "video.bunnycdn.com" in normalized:
        for current, lower in _LADDER:
            if current in normalized:
                return normalized.replace(current, lower)

    if cloudinary.is_cloudinary_url(normalized) and cloudinary.is_transformed(normalized):
        candidate = cloudinary.rederive(normalized, cloudinary.LOW_QUALITY)
        if candidate != normalized:
            return candidate

    return None
