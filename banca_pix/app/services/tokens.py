from __future__ import annotations

import logging
import secrets
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from ..core.errors import TokenNotFoundError

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "tok_"


@dataclass(frozen=True)
class ChargeContext:
    """What the payer declared when the charge was created.

    Lets the polling path credit the deposit without waiting for a webhook.
    """

    name: str
    amount_cents: int
    pix_type: Optional[str] = None
    pix_key: Optional[str] = None


@dataclass(frozen=True)
class TokenEntry:
    provider_payment_id: str
    created_at: float
    context: Optional[ChargeContext] = None


class TokenRegistry(Protocol):
    def issue(self, provider_payment_id: str, context: Optional[ChargeContext] = None) -> str:
        ...

    def resolve(self, token: str) -> TokenEntry:
        ...

    def sweep(self) -> int:
        ...


class InMemoryTokenRegistry:
    """Maps opaque client tokens to provider payment ids for a fixed TTL.

    Process-local and lossy by nature: it only speeds up status polling, the
    provider and its webhook remain the source of truth.
    """

    def __init__(
        self,
        ttl_seconds: float = 30 * 60,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, TokenEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _expired(self, entry: TokenEntry, now: float) -> bool:
        return now - entry.created_at >= self.ttl_seconds

    def issue(self, provider_payment_id: str, context: Optional[ChargeContext] = None) -> str:
        token = TOKEN_PREFIX + secrets.token_hex(18)
        entry = TokenEntry(
            provider_payment_id=provider_payment_id,
            created_at=self._clock(),
            context=context,
        )
        with self._lock:
            self._entries[token] = entry
        return token

    def resolve(self, token: str) -> TokenEntry:
        with self._lock:
            entry = self._entries.get(token)
            if entry is not None and self._expired(entry, self._clock()):
                del self._entries[token]
                entry = None
        if entry is None:
            raise TokenNotFoundError("Token not found or expired")
        return entry

    def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            stale = [token for token, entry in self._entries.items() if self._expired(entry, now)]
            for token in stale:
                del self._entries[token]
        if stale:
            logger.debug("tokens.swept", extra={"removed": len(stale)})
        return len(stale)
