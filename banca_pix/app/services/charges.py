from __future__ import annotations

import logging
from typing import Optional

from ..core.errors import ProviderNotConfiguredError
from ..models import ChargeCreateRequest, ChargeCreateResponse
from .providers import PaymentProvider
from .tokens import ChargeContext, TokenRegistry
from .validation import validate_deposit_intent

logger = logging.getLogger(__name__)


class ChargeService:
    def __init__(
        self,
        provider: Optional[PaymentProvider],
        registry: TokenRegistry,
        min_amount_cents: int = 1000,
    ) -> None:
        self.provider = provider
        self.registry = registry
        self.min_amount_cents = min_amount_cents

    def create_charge(self, payload: ChargeCreateRequest) -> ChargeCreateResponse:
        intent = validate_deposit_intent(payload, self.min_amount_cents)
        if self.provider is None:
            raise ProviderNotConfiguredError("No payment provider configured")

        result = self.provider.create_charge(intent)
        token = self.registry.issue(
            result.provider_payment_id,
            ChargeContext(
                name=intent.name,
                amount_cents=intent.amount_cents,
                pix_type=intent.pix_type,
                pix_key=intent.pix_key,
            ),
        )
        logger.info(
            "charge.created",
            extra={
                "provider": self.provider.name,
                "provider_payment_id": result.provider_payment_id,
                "amount_cents": intent.amount_cents,
            },
        )
        return ChargeCreateResponse(
            token=token,
            redirect_url=result.redirect_url,
            payment_code=result.payment_code,
            qr_image=result.qr_image,
        )
