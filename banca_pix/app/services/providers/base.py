"""Provider-neutral contract for PIX charge providers.

Each deployment runs exactly one provider, picked from configuration at
startup. The payer's PIX key is never needed by a provider: it travels as
opaque metadata for the operator's bookkeeping only.
"""

from __future__ import annotations

import base64
import enum
import hashlib
import hmac
import io
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional, Protocol

import httpx
import qrcode

from ...core.errors import InvalidInputError, InvalidSignatureError, ProviderUnavailableError
from ..validation import DepositIntent

logger = logging.getLogger(__name__)

DEFAULT_PAYER_NAME = "Contribuinte"
PAID_STATES = ("paid", "succeeded")


class PaymentStatus(str, enum.Enum):
    PAID = "PAID"
    PENDING = "PENDING"


@dataclass(frozen=True)
class ChargeResult:
    provider_payment_id: str
    redirect_url: Optional[str] = None
    payment_code: Optional[str] = None
    qr_image: Optional[str] = None


@dataclass(frozen=True)
class ParsedEvent:
    """Inbound provider notification, normalised to integer cents."""

    provider_payment_id: Optional[str]
    paid: bool
    amount_cents: Optional[int]
    payer_name: str = DEFAULT_PAYER_NAME
    pix_type: Optional[str] = None
    pix_key: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict, repr=False)


class PaymentProvider(Protocol):
    name: str

    def create_charge(self, intent: DepositIntent) -> ChargeResult:
        ...

    def get_status(self, provider_payment_id: str) -> PaymentStatus:
        ...

    def verify_inbound_event(self, raw_body: bytes, headers: Mapping[str, str]) -> ParsedEvent:
        ...


# ----------------------------------------------------------------------
# Helpers shared by the provider variants
# ----------------------------------------------------------------------
def sign_payload(secret: str, raw_body: bytes) -> str:
    return hmac.new(secret.encode(), raw_body, hashlib.sha256).hexdigest()


def verify_signature(secret: Optional[str], raw_body: bytes, signature: Optional[str]) -> None:
    if not secret:
        # Unsigned deposits are never credited.
        raise InvalidSignatureError("Webhook secret is not configured")
    if not signature:
        raise InvalidSignatureError("Missing signature")
    expected = sign_payload(secret, raw_body)
    if not hmac.compare_digest(expected.encode(), signature.strip().lower().encode("utf-8")):
        raise InvalidSignatureError("Invalid signature")


def header_value(headers: Mapping[str, str], *names: str) -> Optional[str]:
    lowered = {key.lower(): value for key, value in headers.items()}
    for name in names:
        value = lowered.get(name.lower())
        if value:
            return value
    return None


def load_json_body(raw_body: bytes) -> dict[str, Any]:
    try:
        payload = json.loads(raw_body.decode("utf-8")) if raw_body else {}
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidInputError("Invalid JSON payload") from exc
    if not isinstance(payload, dict):
        raise InvalidInputError("Invalid JSON payload")
    return payload


def cents_to_decimal_string(amount_cents: int) -> str:
    return f"{Decimal(amount_cents) / 100:.2f}"


def amount_to_cents(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value))
        if not amount.is_finite():
            return None
        cents = (amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    except InvalidOperation:
        return None
    return int(cents)


def normalize_amount_cents(data: Mapping[str, Any]) -> Optional[int]:
    """Integer ``amount_cents`` wins; otherwise a decimal ``amount``/``value``/``valor``."""
    cents = data.get("amount_cents")
    if isinstance(cents, int) and not isinstance(cents, bool):
        return cents
    for key in ("amount", "value", "valor"):
        if data.get(key) not in (None, ""):
            return amount_to_cents(data[key])
    return None


def is_paid(data: Mapping[str, Any]) -> bool:
    return str(data.get("status", "")).lower() in PAID_STATES or data.get("paid") is True


def normalize_event(payload: Mapping[str, Any]) -> ParsedEvent:
    data = payload.get("data") or payload.get("object") or payload
    if not isinstance(data, Mapping):
        data = payload
    meta = data.get("metadata") or {}
    if not isinstance(meta, Mapping):
        meta = {}
    payment_id = data.get("id") or data.get("payment_id") or payload.get("id")
    name = data.get("payer_name") or data.get("customer_name") or data.get("name")
    name = str(name).strip() if name else ""
    return ParsedEvent(
        provider_payment_id=str(payment_id) if payment_id else None,
        paid=is_paid(data),
        amount_cents=normalize_amount_cents(data),
        payer_name=name or DEFAULT_PAYER_NAME,
        pix_type=meta.get("tipo"),
        pix_key=meta.get("chave"),
        raw=dict(payload),
    )


def render_qr_data_uri(payment_code: str) -> str:
    image = qrcode.make(payment_code)
    buffered = io.BytesIO()
    image.save(buffered, "PNG")
    encoded = base64.b64encode(buffered.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


class HttpProviderMixin:
    """Wraps httpx calls so any transport or HTTP failure surfaces as ProviderUnavailable."""

    name = "base"
    http: httpx.Client

    def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self.http.request(method, url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "provider.error",
                extra={
                    "provider": self.name,
                    "url": url,
                    "status_code": exc.response.status_code,
                    "body": exc.response.text[:500],
                },
            )
            raise ProviderUnavailableError("Payment provider rejected the request") from exc
        except httpx.HTTPError as exc:
            logger.error("provider.error", extra={"provider": self.name, "url": url, "error": str(exc)})
            raise ProviderUnavailableError("Payment provider is unavailable") from exc
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderUnavailableError("Payment provider returned an invalid response") from exc
