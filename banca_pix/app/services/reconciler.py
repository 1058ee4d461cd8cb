"""Payment confirmation: one path for webhooks, one for polling, one ledger write.

Per payment the logical states are ``Created -> Pending -> Confirmed`` or
``Created -> Pending -> Expired`` (token TTL elapsed; the ledger is untouched
and the client sees a time-out). Both confirmation paths end in
``LedgerService.record_confirmed_payment``, which dedups on
``(provider, provider_payment_id)``.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Optional

from ..core.errors import (
    BancaPixError,
    InvalidAmountError,
    IpNotAllowedError,
    ProviderNotConfiguredError,
)
from ..models import BancaResponse
from .ledger import LedgerService
from .providers import PaymentProvider, PaymentStatus
from .providers.base import DEFAULT_PAYER_NAME
from .tokens import TokenRegistry

logger = logging.getLogger(__name__)

STATUS_PENDING = "PENDING"
STATUS_CONFIRMED = "CONCLUIDA"


@dataclass(frozen=True)
class WebhookOutcome:
    ignored: bool = False
    duplicate: bool = False
    banca_id: Optional[str] = None
    banca: Optional[BancaResponse] = None


def body_fingerprint(raw_body: bytes) -> str:
    return "sha256:" + hashlib.sha256(raw_body).hexdigest()


class ConfirmationReconciler:
    def __init__(
        self,
        ledger: LedgerService,
        registry: TokenRegistry,
        provider: Optional[PaymentProvider],
        *,
        allowed_ips: Sequence[str] = (),
    ) -> None:
        self.ledger = ledger
        self.registry = registry
        self.provider = provider
        self.allowed_ips = tuple(allowed_ips)

    def _require_provider(self, name: Optional[str] = None) -> PaymentProvider:
        if self.provider is None or (name is not None and name != self.provider.name):
            raise ProviderNotConfiguredError("Payment provider is not configured")
        return self.provider

    def check_status(self, token: str) -> str:
        """Ask the provider about a charge; credit the deposit when it reports paid.

        Unknown or expired tokens raise TokenNotFoundError, which clients
        must read as "cannot determine", never as a failed payment.
        """
        provider = self._require_provider()
        entry = self.registry.resolve(token)
        status = provider.get_status(entry.provider_payment_id)
        if status is not PaymentStatus.PAID:
            return STATUS_PENDING

        context = entry.context
        if context is not None:
            self.ledger.record_confirmed_payment(
                provider=provider.name,
                provider_payment_id=entry.provider_payment_id,
                nome=context.name,
                amount_cents=context.amount_cents,
                pix_type=context.pix_type,
                pix_key=context.pix_key,
                reason="poll-paid",
            )
        logger.info(
            "charge.status",
            extra={"provider_payment_id": entry.provider_payment_id, "status": STATUS_CONFIRMED},
        )
        return STATUS_CONFIRMED

    def handle_webhook(
        self,
        provider_name: str,
        raw_body: bytes,
        headers: Mapping[str, str],
        client_ip: Optional[str] = None,
    ) -> WebhookOutcome:
        provider = self._require_provider(provider_name)
        try:
            if self.allowed_ips and (client_ip or "") not in self.allowed_ips:
                raise IpNotAllowedError("Source address not allowed")
            event = provider.verify_inbound_event(raw_body, headers)
            if event.paid and (event.amount_cents is None or event.amount_cents < 1):
                raise InvalidAmountError("Webhook amount is missing or zero")
        except BancaPixError as exc:
            logger.warning(
                "webhook.rejected",
                extra={"provider": provider_name, "error": exc.code, "client_ip": client_ip},
            )
            raise

        if not event.paid:
            logger.info(
                "webhook.ignored",
                extra={"provider": provider_name, "provider_payment_id": event.provider_payment_id},
            )
            return WebhookOutcome(ignored=True)

        result = self.ledger.record_confirmed_payment(
            provider=provider.name,
            provider_payment_id=event.provider_payment_id or body_fingerprint(raw_body),
            nome=event.payer_name or DEFAULT_PAYER_NAME,
            amount_cents=event.amount_cents,
            pix_type=event.pix_type,
            pix_key=event.pix_key,
            reason="webhook-paid",
        )
        return WebhookOutcome(
            duplicate=not result.created,
            banca_id=result.banca_id,
            banca=result.banca,
        )
