from __future__ import annotations

import asyncio
import json
import logging
import threading
from dataclasses import dataclass

logger = logging.getLogger(__name__)

BANCAS_CHANGED = "bancas-changed"
PAGAMENTOS_CHANGED = "pagamentos-changed"
PING = "ping"


@dataclass(frozen=True)
class ChangeEvent:
    """A change signal only: viewers re-fetch the lists to see what changed."""

    name: str
    reason: str = ""

    def encode(self) -> str:
        data = json.dumps({"reason": self.reason}) if self.reason else "{}"
        return f"event: {self.name}\ndata: {data}\n\n"


class Subscription:
    def __init__(self, loop: asyncio.AbstractEventLoop, max_pending: int) -> None:
        self.loop = loop
        self.queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=max_pending)

    def offer(self, event: ChangeEvent) -> None:
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.warning("notifier.dropped", extra={"event": event.name, "reason": "queue_full"})

    async def next_event(self, timeout: float) -> ChangeEvent:
        """Wait for the next event; a keep-alive ping when nothing arrives in time."""
        try:
            return await asyncio.wait_for(self.queue.get(), timeout=timeout)
        except asyncio.TimeoutError:
            return ChangeEvent(PING)


class ChangeNotifier:
    """Best-effort fan-out of ledger change signals to live viewers.

    ``publish`` may be called from worker threads; delivery hops onto each
    subscriber's event loop and never blocks or fails the publisher.
    Subscriptions are removed by the transport (stream close), not on failed
    delivery.
    """

    def __init__(self, max_pending: int = 100) -> None:
        self.max_pending = max_pending
        self._subscribers: set[Subscription] = set()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def subscribe(self) -> Subscription:
        subscription = Subscription(asyncio.get_running_loop(), self.max_pending)
        with self._lock:
            self._subscribers.add(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscribers.discard(subscription)

    def publish(self, name: str, reason: str = "") -> None:
        event = ChangeEvent(name, reason)
        with self._lock:
            subscribers = list(self._subscribers)
        for subscription in subscribers:
            try:
                subscription.loop.call_soon_threadsafe(subscription.offer, event)
            except RuntimeError:
                # Loop already closed; the stream's own cleanup will unsubscribe it.
                logger.debug("notifier.dropped", extra={"event": name, "reason": "loop_closed"})
