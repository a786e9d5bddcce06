"""
Delivery simulation: a stand-in for a courier integration.

Each created order gets exactly one deferred callback, after a random delay, that posts a terminal delivery
event to our own webhook. No retry, no persistence: a restart drops pending timers. The scheduler is
injectable so tests can advance virtual time instead of sleeping.
"""
import asyncio
import logging
import random
from datetime import datetime, timezone
from functools import partial
from typing import Awaitable, Callable, Protocol

import httpx

from pizzeria.config import settings
from pizzeria.metrics import delivery_simulations_total

logger = logging.getLogger(__name__)

GRACEFUL_SHUTDOWN_WAIT_SEC = 5

Callback = Callable[[], Awaitable[None]]
Sender = Callable[[dict], Awaitable[int]]


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callback) -> None: ...


class LoopScheduler:
    """Runs coroutine callbacks on the running event loop after `delay` seconds."""

    def __init__(self) -> None:
        self._handles: set[asyncio.TimerHandle] = set()
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._handles)

    def call_later(self, delay: float, callback: Callback) -> None:
        loop = asyncio.get_running_loop()
        handle: asyncio.TimerHandle | None = None

        def fire() -> None:
            self._handles.discard(handle)
            t = loop.create_task(callback())
            self._tasks.add(t)
            t.add_done_callback(self._tasks.discard)

        handle = loop.call_later(delay, fire)
        self._handles.add(handle)

    async def close(self) -> None:
        """Drop timers that have not fired; give in-flight callbacks a short grace period."""
        dropped = len(self._handles)
        for handle in self._handles:
            handle.cancel()
        self._handles.clear()
        if dropped:
            logger.info("Dropped %d pending delivery simulation(s)", dropped)
        if self._tasks:
            _, pending = await asyncio.wait(self._tasks, timeout=GRACEFUL_SHUTDOWN_WAIT_SEC)
            for t in pending:
                t.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)


class HttpWebhookSender:
    """POSTs a delivery event to the webhook URL; returns the response status code."""

    def __init__(self, url: str | None = None, timeout: float = 5.0):
        self.url = url or settings.delivery_webhook_url
        self._client = httpx.AsyncClient(timeout=timeout)

    async def __call__(self, payload: dict) -> int:
        response = await self._client.post(self.url, json=payload)
        return response.status_code

    async def aclose(self) -> None:
        await self._client.aclose()


class DeliverySimulator:
    def __init__(
        self,
        scheduler: Scheduler,
        send: Sender,
        status: str | None = None,
        min_delay: float | None = None,
        max_delay: float | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.scheduler = scheduler
        self.send = send
        self.status = status or settings.delivery_simulated_status
        self.min_delay = min_delay if min_delay is not None else settings.delivery_min_delay_sec
        self.max_delay = max_delay if max_delay is not None else settings.delivery_max_delay_sec
        self.rng = rng or random.Random()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def schedule(self, order_id: int) -> float:
        """
        Schedule one simulated courier callback for order_id. Returns the delay in seconds.

        The callback posts a plain "delivered" status, so it only lands if the order has reached
        out_for_delivery by then. Otherwise the webhook answers 409 and the attempt counts as rejected.
        """
        delay = self.rng.uniform(self.min_delay, self.max_delay)
        self.scheduler.call_later(delay, partial(self._fire, order_id))
        delivery_simulations_total.labels(outcome="scheduled").inc()
        logger.info("Scheduling delivery update for order %s in %.1fs", order_id, delay)
        return delay

    async def _fire(self, order_id: int) -> None:
        payload = {
            "orderId": order_id,
            "status": self.status,
            "timestamp": self.clock().isoformat(),
        }
        try:
            status_code = await self.send(payload)
        except Exception as e:
            delivery_simulations_total.labels(outcome="failed").inc()
            logger.exception("Error sending delivery update for order %s: %s", order_id, e)
            return
        if status_code >= 400:
            delivery_simulations_total.labels(outcome="rejected").inc()
            logger.warning("Delivery update for order %s rejected by webhook (HTTP %d)", order_id, status_code)
        else:
            delivery_simulations_total.labels(outcome="sent").inc()
            logger.info("Delivery update sent for order %s. Status: %s", order_id, self.status)
