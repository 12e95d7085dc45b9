from __future__ import annotations
import re
from typing import Optional

_DRIVE_FILE_RE = re.compile(r"/file/d/([a-zA-Z0-9_-]+)")
_DRIVE_ID_RE = re.compile(r"[?&]id=([a-zA-Z0-9_-]+)")
_DRIVE_THUMB_RE = re.compile(r"thumbnail\?id=([a-zA-Z0-9_-]+)")

def clean(url) -> str:
    if not isinstance(url, str):
        return ""
    return url.strip().lstrip("@")

def is_google_drive_url(url: Optional[str]) -> bool:
    return "drive.google.com" in clean(url)

def extract_drive_file_id(url: str) -> Optional[str]:
    # later shapes win when a link carries more than one
    file_id = None
    for rx in (_DRIVE_FILE_RE, _DRIVE_ID_RE, _DRIVE_THUMB_RE):
        m = rx.search(url)
        if m:
            file_id = m.group(1)
    return file_id

def drive_download_url(file_id: str) -> str:
    return f"https://drive.google.com/uc?export=download&id={file_id}"

def convert_google_drive_url(url) -> Optional[str]:
    """Direct download form of a Drive share/view/thumbnail link, or None."""
    cleaned = clean(url)
    if not cleaned or "drive.google.com" not in cleaned:
        return None
    file_id = extract_drive_file_id(cleaned)
    return drive_download_url(file_id) if file_id else None
