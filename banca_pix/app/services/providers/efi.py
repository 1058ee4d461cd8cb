from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, Optional
from urllib.parse import quote

import httpx

from ...core.errors import InvalidInputError, ProviderUnavailableError
from ..validation import DepositIntent
from .base import (
    DEFAULT_PAYER_NAME,
    ChargeResult,
    HttpProviderMixin,
    ParsedEvent,
    PaymentStatus,
    amount_to_cents,
    cents_to_decimal_string,
    header_value,
    load_json_body,
    render_qr_data_uri,
    verify_signature,
)

logger = logging.getLogger(__name__)

SIGNATURE_HEADERS = ("X-Efi-Signature", "X-Signature")


class EfiProvider(HttpProviderMixin):
    """QR-code provider: an immediate charge (``cob``) paid by scanning or pasting the code."""

    name = "efi"

    def __init__(
        self,
        *,
        client_id: str,
        client_secret: str,
        api_base: str,
        pix_key: str,
        certificate: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        charge_expiration: int = 3600,
        http: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.api_base = api_base.rstrip("/")
        self.pix_key = pix_key
        self.webhook_secret = webhook_secret
        self.charge_expiration = charge_expiration
        if http is None:
            # Efí requires mutual TLS in production.
            options: dict[str, Any] = {"timeout": timeout}
            if certificate:
                options["cert"] = certificate
            http = httpx.Client(**options)
        self.http = http

    def _auth_headers(self) -> dict[str, str]:
        data = self._request(
            "POST",
            f"{self.api_base}/oauth/token",
            json={"grant_type": "client_credentials"},
            auth=(self.client_id, self.client_secret),
        )
        token = data.get("access_token")
        if not token:
            raise ProviderUnavailableError("Payment provider did not issue an access token")
        return {"Authorization": f"Bearer {token}"}

    def create_charge(self, intent: DepositIntent) -> ChargeResult:
        headers = self._auth_headers()
        body = {
            "calendario": {"expiracao": self.charge_expiration},
            "valor": {"original": cents_to_decimal_string(intent.amount_cents)},
            "chave": self.pix_key,
            "solicitacaoPagador": "Depósito via site",
        }
        cob = self._request("POST", f"{self.api_base}/v2/cob", json=body, headers=headers)
        txid = cob.get("txid")
        if not txid:
            raise ProviderUnavailableError("Payment provider did not return a txid")

        payment_code = cob.get("pixCopiaECola")
        image: Optional[str] = None
        loc_id = (cob.get("loc") or {}).get("id")
        if not payment_code and loc_id is not None:
            qr = self._request("GET", f"{self.api_base}/v2/loc/{loc_id}/qrcode", headers=headers)
            payment_code = qr.get("qrcode")
            image = qr.get("imagemQrcode")
        if not payment_code:
            raise ProviderUnavailableError("Payment provider did not return a payment code")

        return ChargeResult(
            provider_payment_id=str(txid),
            payment_code=payment_code,
            qr_image=image or render_qr_data_uri(payment_code),
        )

    def get_status(self, provider_payment_id: str) -> PaymentStatus:
        data = self._request(
            "GET",
            f"{self.api_base}/v2/cob/{quote(provider_payment_id, safe='')}",
            headers=self._auth_headers(),
        )
        return PaymentStatus.PAID if data.get("status") == "CONCLUIDA" else PaymentStatus.PENDING

    def verify_inbound_event(self, raw_body: bytes, headers: Mapping[str, str]) -> ParsedEvent:
        verify_signature(self.webhook_secret, raw_body, header_value(headers, *SIGNATURE_HEADERS))
        payload = load_json_body(raw_body)
        entries = payload.get("pix")
        if not isinstance(entries, list) or not entries or not isinstance(entries[0], dict):
            raise InvalidInputError("Webhook payload has no pix entries")
        # Every entry in a pix notification is a settled payment.
        entry: dict[str, Any] = entries[0]
        payer = entry.get("pagador")
        if not isinstance(payer, dict):
            payer = {}
        payer_name = str(payer.get("nome") or "").strip()
        return ParsedEvent(
            provider_payment_id=entry.get("txid") or entry.get("endToEndId"),
            paid=True,
            amount_cents=amount_to_cents(entry.get("valor")),
            payer_name=payer_name or DEFAULT_PAYER_NAME,
            raw=payload,
        )
