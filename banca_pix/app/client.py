"""Client-side polling of a charge's status, for QR-code payments.

The loop is bounded (attempts x interval) and ends in exactly one terminal
outcome. A 404 means the server no longer knows the token; the payment may
still have succeeded and will show up in the operator area via the webhook.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from typing import Optional
from urllib.parse import quote

import httpx

logger = logging.getLogger(__name__)


class PollOutcome(str, enum.Enum):
    CONFIRMED = "confirmed"
    TIMED_OUT = "timed_out"
    INDETERMINATE = "indeterminate"
    CANCELLED = "cancelled"


class ChargeStatusPoller:
    def __init__(
        self,
        http: httpx.AsyncClient,
        token: str,
        *,
        attempts: int = 36,
        interval: float = 5.0,
    ) -> None:
        self.http = http
        self.token = token
        self.attempts = attempts
        self.interval = interval
        self.attempts_used = 0
        self._cancelled = asyncio.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    async def _check(self) -> Optional[PollOutcome]:
        response = await self.http.get(f"/charge/status/{quote(self.token, safe='')}")
        if response.status_code == 404:
            return PollOutcome.INDETERMINATE
        response.raise_for_status()
        if response.json().get("status") == "CONCLUIDA":
            return PollOutcome.CONFIRMED
        return None

    async def _wait(self) -> bool:
        """Sleep one interval; True when cancelled meanwhile."""
        if self._cancelled.is_set():
            return True
        try:
            await asyncio.wait_for(self._cancelled.wait(), timeout=self.interval)
        except asyncio.TimeoutError:
            return self._cancelled.is_set()
        return True

    async def run(self) -> PollOutcome:
        while self.attempts_used < self.attempts:
            if await self._wait():
                return PollOutcome.CANCELLED
            self.attempts_used += 1
            try:
                outcome = await self._check()
            except (httpx.HTTPError, ValueError) as exc:
                logger.debug("poll.retry", extra={"attempt": self.attempts_used, "error": str(exc)})
                continue
            if outcome is not None:
                return outcome
        return PollOutcome.TIMED_OUT
