from __future__ import annotations
import logging, re
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import httpx

from shared.config import settings
from shared.models import TaskStatus, TryOnRequest
from shared.s3 import public_url_for
from media.drive import convert_google_drive_url

log = logging.getLogger(__name__)

_IMAGE_RE = re.compile(r"\.(png|jpg|jpeg|webp|gif)(\?|$)")
_IMAGE_HOSTS = ("piapi.ai", "theapi.app", "amazonaws.com", "googleusercontent", "cloudfront")
MAX_RESULTS = 6

class TryOnError(Exception):
    """Submission to the try-on provider failed; the message is user-facing."""

def _prepare_url(url: str) -> str:
    url = (url or "").strip()
    if "drive.google.com" in url:
        return convert_google_drive_url(url) or url
    if "://" in url and not url.startswith("s3://"):
        return url
    return public_url_for(url)

def _is_http(url: str) -> bool:
    return url.startswith(("http://", "https://"))

def _error_message(data: Dict[str, Any], result: Dict[str, Any], default: str) -> str:
    err = data.get("error") or {}
    if isinstance(err, dict):
        msg = err.get("message") or err.get("raw_message")
        if msg:
            return msg
    return result.get("message") or default

def _collect_result_urls(payload: Any) -> List[str]:
    urls: List[str] = []

    def visit(value):
        if not value:
            return
        if isinstance(value, str):
            if re.match(r"^https?://", value):
                urls.append(value)
        elif isinstance(value, list):
            for v in value:
                visit(v)
        elif isinstance(value, dict):
            for v in value.values():
                visit(v)

    if isinstance(payload, dict):
        visit(payload.get("output"))
        visit((payload.get("data") or {}).get("output") if isinstance(payload.get("data"), dict) else None)
        visit(payload.get("result"))
    visit(payload)
    return _normalize_result_urls(urls)

def _normalize_result_urls(raw: List[str]) -> List[str]:
    deduped: List[str] = []
    for url in raw:
        if not isinstance(url, str):
            continue
        url = url.strip()
        if re.match(r"^https?://", url, re.I) and url not in deduped:
            deduped.append(url)
    image_like = [u for u in deduped
                  if _IMAGE_RE.search(u.lower()) or any(h in u.lower() for h in _IMAGE_HOSTS)]
    return (image_like or deduped)[:MAX_RESULTS]

class TryOnService:
    """Face-swap jobs against the PiAPI task endpoint, mirrored into the try-on tasks table.

    `submit` returns our own task id; `poll` maps the provider's state onto a
    TaskStatus and records terminal states on the task row.
    """

    def __init__(self, backend, client: Optional[httpx.AsyncClient] = None,
                 base_url: Optional[str] = None, api_key: Optional[str] = None):
        self.backend = backend
        self.client = client
        self.base_url = (base_url or settings.tryon_api_base).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.tryon_api_key

    @asynccontextmanager
    async def _http(self):
        if self.client is not None:
            yield self.client
        else:
            async with httpx.AsyncClient(timeout=settings.tryon_request_timeout) as client:
                yield client

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json", "Accept": "application/json", "x-api-key": self.api_key}

    async def _fail_task(self, task_id: str, message: str, provider_task_id: Optional[str] = None) -> None:
        fields: Dict[str, Any] = {"status": "failed", "error_message": message}
        if provider_task_id:
            fields["provider_task_id"] = provider_task_id
        await self.backend.update_tryon_task(task_id, **fields)

    async def submit(self, request: TryOnRequest) -> str:
        if not self.api_key:
            raise RuntimeError("TRYON_API_KEY is not configured")
        if not request.user_image_url or not request.user_image_url.strip():
            raise TryOnError("Invalid user image URL")
        if not request.product_image_url or not request.product_image_url.strip():
            raise TryOnError("Invalid product image URL")
        user_url = _prepare_url(request.user_image_url)
        product_url = _prepare_url(request.product_image_url)

        task = await self.backend.put_tryon_task({
            "user_id": request.user_id,
            "product_id": request.product_id,
            "user_image_url": user_url,
            "product_image_url": product_url,
            "status": "pending",
            "task_type": "face_swap",
        })
        task_id = task["task_id"]

        if not _is_http(user_url):
            await self._fail_task(task_id, "User image URL must be HTTP/HTTPS")
            raise TryOnError("User image URL must be a valid HTTP/HTTPS URL")
        if not _is_http(product_url):
            await self._fail_task(task_id, "Product image URL must be HTTP/HTTPS")
            raise TryOnError("Product image URL must be a valid HTTP/HTTPS URL")

        body = {
            "model": settings.tryon_model,
            "task_type": settings.tryon_task_type,
            "input": {"target_image": product_url, "swap_image": user_url},
        }
        try:
            async with self._http() as client:
                resp = await client.post(f"{self.base_url}/api/v1/task", json=body, headers=self._headers(),
                                         timeout=settings.tryon_request_timeout)
            result = resp.json()
        except httpx.TimeoutException:
            await self._fail_task(task_id, "timeout")
            raise TryOnError("Request timeout. Please check your internet connection and try again.")
        except (httpx.HTTPError, ValueError) as e:
            await self._fail_task(task_id, str(e))
            raise TryOnError(str(e) or "Face swap request failed")

        data = result.get("data") or result
        if resp.status_code >= 400 or result.get("code") != 200:
            msg = _error_message(data, result, f"HTTP {resp.status_code}")
            log.error("try-on provider rejected task %s: %s", task_id, msg)
            await self._fail_task(task_id, msg, data.get("task_id"))
            raise TryOnError(msg)
        if str(data.get("status", "")).lower() == "failed":
            msg = _error_message(data, result, "Task failed during processing")
            await self._fail_task(task_id, msg, data.get("task_id"))
            raise TryOnError(msg)
        provider_id = data.get("task_id")
        if not provider_id:
            msg = result.get("message") or "No task_id received from provider"
            await self._fail_task(task_id, msg)
            raise TryOnError(msg)

        await self.backend.update_tryon_task(task_id, provider_task_id=provider_id, status="processing")
        log.info("try-on task %s submitted as %s", task_id, provider_id)
        return task_id

    async def _poll_provider(self, provider_id: str) -> TaskStatus:
        async with self._http() as client:
            resp = await client.get(f"{self.base_url}/api/v1/task/{provider_id}", headers=self._headers())
        if resp.status_code >= 400:
            return TaskStatus(status="failed", error=f"HTTP {resp.status_code}: {resp.text}")
        result = resp.json()
        data = result.get("data") or result
        status = str(data.get("status") or "").lower()
        if status == "completed":
            urls = _collect_result_urls(data)
            if urls:
                return TaskStatus(status="completed", result_urls=urls)
            return TaskStatus(status="failed", error="Completed without image URL")
        if status == "failed":
            return TaskStatus(status="failed", error=_error_message(data, result, "Task failed"))
        # pending, processing, staged
        return TaskStatus(status="processing")

    async def poll(self, task_id: str) -> TaskStatus:
        task = await self.backend.get_tryon_task(task_id)
        if not task:
            return TaskStatus(status="failed", error="Task not found")
        status = task.get("status")
        if status == "completed":
            return TaskStatus(status="completed", result_urls=list(task.get("result_images") or []))
        if status == "failed":
            return TaskStatus(status="failed", error=task.get("error_message"))
        if status != "processing" or not task.get("provider_task_id"):
            return TaskStatus(status=status or "pending")

        try:
            st = await self._poll_provider(task["provider_task_id"])
        except (httpx.HTTPError, ValueError):
            log.exception("polling provider for %s failed", task_id)
            return TaskStatus(status="processing")
        if st.status == "completed":
            await self.backend.update_tryon_task(task_id, status="completed", result_images=st.result_urls)
        elif st.status == "failed":
            st.error = st.error or "Face swap task failed"
            await self.backend.update_tryon_task(task_id, status="failed", error_message=st.error)
        return st

    async def results_for(self, user_id: str, product_id: str) -> Optional[List[str]]:
        return await self.backend.get_tryon_results(user_id, product_id)
