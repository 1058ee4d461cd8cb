from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Optional
from urllib.parse import quote

import httpx

from ...core.errors import ProviderUnavailableError
from ..validation import DepositIntent
from .base import (
    ChargeResult,
    HttpProviderMixin,
    ParsedEvent,
    PaymentStatus,
    cents_to_decimal_string,
    header_value,
    is_paid,
    load_json_body,
    normalize_event,
    verify_signature,
)

logger = logging.getLogger(__name__)

SIGNATURE_HEADERS = ("X-LivePix-Signature", "X-Signature")


class LivePixProvider(HttpProviderMixin):
    """Redirect-style provider: the payer finishes the payment on a hosted checkout page.

    The webhook is the authoritative confirmation; ``get_status`` only asks
    the provider on behalf of a polling client.
    """

    name = "livepix"

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        api_base: str,
        redirect_url: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        http: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.api_base = api_base.rstrip("/")
        self.redirect_url = redirect_url or None
        self.webhook_secret = webhook_secret
        self.http = http or httpx.Client(timeout=timeout)

    def _access_token(self) -> str:
        data = self._request(
            "POST",
            f"{self.api_base}/oauth/token",
            data={"grant_type": "client_credentials"},
            auth=(self.client_id, self.client_secret),
        )
        token = data.get("access_token")
        if not token:
            raise ProviderUnavailableError("Payment provider did not issue an access token")
        return token

    def create_charge(self, intent: DepositIntent) -> ChargeResult:
        access = self._access_token()
        body = {
            "amount": cents_to_decimal_string(intent.amount_cents),
            "currency": "BRL",
            "payer_name": intent.name,
            "description": "Depósito via site",
            "metadata": {"tipo": intent.pix_type, "chave": intent.pix_key},
        }
        if self.redirect_url:
            body["success_url"] = self.redirect_url
            body["cancel_url"] = self.redirect_url

        data = self._request(
            "POST",
            f"{self.api_base}/v1/payments",
            json=body,
            headers={"Authorization": f"Bearer {access}"},
        )
        payment_id = data.get("id")
        if not payment_id:
            raise ProviderUnavailableError("Payment provider did not return a payment id")
        return ChargeResult(
            provider_payment_id=str(payment_id),
            redirect_url=data.get("checkout_url") or data.get("url"),
        )

    def get_status(self, provider_payment_id: str) -> PaymentStatus:
        access = self._access_token()
        data = self._request(
            "GET",
            f"{self.api_base}/v1/payments/{quote(provider_payment_id, safe='')}",
            headers={"Authorization": f"Bearer {access}"},
        )
        return PaymentStatus.PAID if is_paid(data) else PaymentStatus.PENDING

    def verify_inbound_event(self, raw_body: bytes, headers: Mapping[str, str]) -> ParsedEvent:
        verify_signature(self.webhook_secret, raw_body, header_value(headers, *SIGNATURE_HEADERS))
        return normalize_event(load_json_body(raw_body))
