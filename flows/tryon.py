from __future__ import annotations
import logging, time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from shared.config import settings
from shared.models import Product, TaskStatus, TryOnRequest
from shared.notify import Notifier
from media.urls import prefer_api_rendered_first
from feed.timers import ManagedTimers, RepeatingTask
from .coins import CoinWallet

log = logging.getLogger(__name__)

class TryOnState(str, Enum):
    IDLE = "idle"
    SUBMITTED = "submitted"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed-out"

TERMINAL = (TryOnState.COMPLETED, TryOnState.FAILED, TryOnState.TIMED_OUT)

@dataclass
class TryOnJob:
    product: Product
    user_id: str
    image_url: str
    task_id: Optional[str] = None
    state: TryOnState = TryOnState.IDLE
    attempts: int = 0
    result_urls: List[str] = field(default_factory=list)
    error: Optional[str] = None
    poller: Optional[RepeatingTask] = None

    @property
    def done(self) -> bool:
        return self.state in TERMINAL

def pick_product_image(product: Product, size_id: Optional[str] = None) -> Optional[str]:
    """Size-matching variant image, else first variant with an image, else the product's."""
    if size_id:
        for v in product.variants:
            if v.size_id == size_id and v.image_urls:
                return v.image_urls[0]
    for v in product.variants:
        if v.image_urls:
            return v.image_urls[0]
    return product.image_urls[0] if product.image_urls else None

def personalized_product(product: Product, result_urls: List[str]) -> Product:
    return Product(
        id=f"personalized_{product.id}_{int(time.time() * 1000)}",
        name=product.name,
        description=f"Personalized {product.name} with your face",
        category=product.category,
        vendor_id=product.vendor_id,
        influencer_id=product.influencer_id,
        image_urls=prefer_api_rendered_first(result_urls),
    )

class TryOnFlow:
    """Submits face-swap jobs and polls each one on its own repeating task."""

    def __init__(self, backend, service, wallet: CoinWallet, timers: ManagedTimers, notifier: Notifier,
                 preview: Optional[List[Product]] = None, *, cost: Optional[int] = None,
                 poll_interval: Optional[float] = None, max_attempts: Optional[int] = None):
        self.backend = backend
        self.service = service
        self.wallet = wallet
        self.timers = timers
        self.notifier = notifier
        self.preview: List[Product] = preview if preview is not None else []
        self.cost = settings.tryon_cost_coins if cost is None else cost
        self.poll_interval = settings.tryon_poll_interval if poll_interval is None else poll_interval
        self.max_attempts = settings.tryon_max_attempts if max_attempts is None else max_attempts
        self.jobs: Dict[str, TryOnJob] = {}

    async def start(self, product: Product, user: Optional[Dict[str, Any]],
                    size_id: Optional[str] = None) -> Optional[TryOnJob]:
        user_id = (user or {}).get("user_id") or (user or {}).get("id")
        if not user_id:
            self.notifier.info("Login Required", "Please login to use Face Swap.")
            return None
        photo = (user or {}).get("profile_photo")
        if not photo:
            self.notifier.info("Profile Photo Required", "Add a profile photo to try products on.")
            return None
        if not self.wallet.can_afford(self.cost):
            self.notifier.error("Insufficient Coins",
                                f"You need at least {self.cost} coins for Face Swap. Please purchase more coins.")
            return None
        image_url = pick_product_image(product, size_id)
        if not image_url:
            self.notifier.error("Error", "Product image not available")
            return None

        job = TryOnJob(product=product, user_id=user_id, image_url=image_url)
        if not await self.wallet.deduct(self.cost):
            self.notifier.error("Error", "Failed to start face swap. Please try again.")
            return None
        try:
            job.task_id = await self.service.submit(TryOnRequest(
                user_image_url=photo, product_image_url=image_url,
                user_id=user_id, product_id=product.id, batch_size=1,
            ))
        except Exception as e:
            log.exception("try-on submission failed for %s", product.id)
            await self.wallet.refund(self.cost)
            job.state = TryOnState.FAILED
            job.error = str(e) or "Failed to start face swap"
            self.notifier.error("Error", job.error)
            return job

        job.state = TryOnState.SUBMITTED
        self.jobs[job.task_id] = job
        self.notifier.success("Face Swap Started", "Your face swap is being processed. This may take a few minutes.")
        job.poller = self.timers.register_interval(
            lambda: self._poll(job), self.poll_interval, max_runs=self.max_attempts,
            on_exhausted=lambda: self._time_out(job), name=f"tryon-{job.task_id}",
        )
        job.state = TryOnState.POLLING
        return job

    async def _poll(self, job: TryOnJob) -> None:
        if job.done:
            return
        job.attempts += 1
        log.debug("polling %s attempt %d/%d", job.task_id, job.attempts, self.max_attempts)
        status: TaskStatus = await self.service.poll(job.task_id)
        if status.status == "completed" and status.result_urls:
            await self._complete(job, status.result_urls)
        elif status.status == "failed":
            await self._fail(job, status.error)

    def _stop(self, job: TryOnJob) -> None:
        self.timers.clear_interval(job.poller)

    async def _complete(self, job: TryOnJob, result_urls: List[str]) -> None:
        if job.done:
            return
        job.state = TryOnState.COMPLETED
        job.result_urls = list(result_urls)
        self._stop(job)
        try:
            await self.backend.save_tryon_results(job.user_id, job.product.id, job.result_urls)
        except Exception:
            log.exception("saving try-on results for %s failed", job.task_id)
        self.preview.append(personalized_product(job.product, job.result_urls))
        self.notifier.success("Preview Ready!", "Your personalized product has been added to Your Preview.")

    async def _fail(self, job: TryOnJob, error: Optional[str]) -> None:
        if job.done:
            return
        job.state = TryOnState.FAILED
        job.error = error
        self._stop(job)
        await self.wallet.refund(self.cost)
        self.notifier.error("Error", error or "Face swap failed. Please try again.")

    def _time_out(self, job: TryOnJob) -> None:
        if job.done:
            return
        job.state = TryOnState.TIMED_OUT
        self._stop(job)
        log.warning("try-on %s timed out after %d attempts", job.task_id, job.attempts)
        self.notifier.error(
            "Processing Timeout",
            "Face swap is taking longer than expected. Please try again later or contact support if the issue persists.",
        )

    def cancel_all(self) -> None:
        for job in self.jobs.values():
            self._stop(job)
