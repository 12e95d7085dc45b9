from __future__ import annotations
import mimetypes
from typing import Optional
from .aws import s3_client
from .config import settings

def presign_get(bucket: str, key: str, expires: Optional[int] = None, inline: bool = True) -> str:
    params = {"Bucket": bucket, "Key": key}
    if inline:
        params["ResponseContentDisposition"] = "inline"
    ct = mimetypes.guess_type(key)[0]
    if ct:
        params["ResponseContentType"] = ct
    return s3_client().generate_presigned_url(
        "get_object",
        Params=params,
        ExpiresIn=expires or settings.s3_presign_expires,
        HttpMethod="GET",
    )

def public_url_for(ref: str) -> str:
    """Turn an `s3://bucket/key` reference or a bare uploads key into a fetchable URL.

    http(s) URLs are returned unchanged.
    """
    ref = (ref or "").strip()
    if not ref or ref.startswith(("http://", "https://")):
        return ref
    if ref.startswith("s3://"):
        bucket, _, key = ref[len("s3://"):].partition("/")
        return presign_get(bucket, key)
    return presign_get(settings.s3_bucket_uploads, ref.lstrip("/"))
