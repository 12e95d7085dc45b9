from __future__ import annotations
import logging, re
from dataclasses import dataclass
from typing import List, Optional
from urllib.parse import urlparse

log = logging.getLogger(__name__)

_UPLOAD_RE = re.compile(r"/upload/(?:v\d+/)?(.+?)$")
_CLOUD_RE = re.compile(r"(?:https?://)?(?:res\.)?cloudinary\.com/([^/]+)", re.I)
_EXT_RE = re.compile(r"\.(mp4|mov|avi|webm|mkv|flv|wmv|m4v|jpg|jpeg|png|m3u8|mpd)$", re.I)
_VERSION_RE = re.compile(r"^v\d+/")
_TRANSFORM_KEYS = {
    "a", "ac", "ar", "b", "br", "c", "dpr", "du", "e", "eo", "f", "fl", "fps",
    "g", "h", "l", "o", "q", "r", "so", "sp", "t", "vc", "w", "x", "y",
}

@dataclass
class VideoOptions:
    quality: str = "auto:good"  # auto, auto:low, auto:good, auto:best
    format: str = "auto"        # auto, mp4, webm
    streaming: bool = True
    width: int = 1080
    height: Optional[int] = None
    bitrate: str = "2m"
    fps: int = 30

LOW_QUALITY = VideoOptions(quality="auto:low", bitrate="1m", width=720, streaming=False)

def is_cloudinary_url(url: Optional[str]) -> bool:
    if not url:
        return False
    return "cloudinary.com" in url

def is_transformed(url: str) -> bool:
    """True when the first path segment after /upload/ is a transformation set."""
    m = _UPLOAD_RE.search(urlparse(url or "").path)
    if not m or "/" not in m.group(1):
        return False
    first = m.group(1).split("/", 1)[0]
    for token in first.split(","):
        key, sep, value = token.partition("_")
        if not sep or not value or key not in _TRANSFORM_KEYS:
            return False
    return True

def extract_public_id(url: str) -> Optional[str]:
    if not is_cloudinary_url(url):
        return None
    m = _UPLOAD_RE.search(urlparse(url).path or url)
    if not m:
        return None
    public_id = _EXT_RE.sub("", m.group(1))
    public_id = _VERSION_RE.sub("", public_id)
    return public_id or None

def extract_cloud_name(url: str) -> Optional[str]:
    if not is_cloudinary_url(url):
        return None
    m = _CLOUD_RE.search(url)
    if m:
        return m.group(1)
    segments = [s for s in urlparse(url).path.split("/") if s]
    return segments[0] if segments else None

def _parts(url: str):
    cloud_name = extract_cloud_name(url)
    public_id = extract_public_id(url)
    if not cloud_name or not public_id:
        log.debug("could not extract cloudinary details from %s", url)
        return None
    return cloud_name, public_id

def optimize_video_url(url: str, options: Optional[VideoOptions] = None) -> str:
    """Transformation-qualified mp4 URL for mobile playback.

    Non-Cloudinary and already transformed URLs come back unchanged.
    """
    if not url or not is_cloudinary_url(url) or is_transformed(url):
        return url
    parts = _parts(url)
    if not parts:
        return url
    cloud_name, public_id = parts
    o = options or VideoOptions()
    tokens = [
        f"q_{o.quality}",
        f"f_{o.format}",
        f"w_{o.width}",
        f"h_{o.height}" if o.height else None,
        "c_limit",
        f"br_{o.bitrate}",
        f"fps_{o.fps}",
        "ac_none",
        "sp_hd" if o.streaming else None,
        "vc_auto",
    ]
    transforms = ",".join(t for t in tokens if t)
    return f"https://res.cloudinary.com/{cloud_name}/video/upload/{transforms}/{public_id}.mp4"

def video_thumbnail_url(url: str, width: int = 400, height: int = 600, time: float = 0) -> str:
    if not url or not is_cloudinary_url(url):
        return url
    parts = _parts(_untransformed(url))
    if not parts:
        return url
    cloud_name, public_id = parts
    seconds = int(time) if float(time).is_integer() else time
    transforms = ",".join([
        f"w_{width}", f"h_{height}", "c_fill", "g_auto", "q_auto:good", "f_auto", f"so_{seconds}",
    ])
    return f"https://res.cloudinary.com/{cloud_name}/video/upload/{transforms}/{public_id}.jpg"

def streaming_url(url: str, fmt: str = "hls") -> str:
    if not url or not is_cloudinary_url(url):
        return url
    parts = _parts(_untransformed(url))
    if not parts:
        return url
    cloud_name, public_id = parts
    ext = "m3u8" if fmt == "hls" else "mpd"
    return f"https://res.cloudinary.com/{cloud_name}/video/upload/q_auto:good,f_auto,sp_hd/{public_id}.{ext}"

def batch_optimize(urls: List[str], options: Optional[VideoOptions] = None) -> List[str]:
    return [optimize_video_url(u, options) for u in urls]

def _untransformed(url: str) -> str:
    """Drop a leading transformation set so the public id can be re-derived."""
    if not is_transformed(url):
        return url
    head, _, tail = url.partition("/upload/")
    return f"{head}/upload/{tail.split('/', 1)[1]}"

def rederive(url: str, options: VideoOptions) -> str:
    """Rebuild an optimized URL from its source with different parameters."""
    return optimize_video_url(_untransformed(url), options)
