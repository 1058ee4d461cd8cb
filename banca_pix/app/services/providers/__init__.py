from __future__ import annotations

from typing import Optional

from ...core.config import Settings
from .base import ChargeResult, ParsedEvent, PaymentProvider, PaymentStatus
from .efi import EfiProvider
from .livepix import LivePixProvider


def _require(settings: Settings, *fields: str) -> None:
    missing = [name for name in fields if not getattr(settings, name)]
    if missing:
        env = ", ".join(f"BANCA_{name.upper()}" for name in missing)
        raise ValueError(f"{settings.pix_provider} provider selected but {env} not set")


def build_provider(settings: Settings) -> Optional[PaymentProvider]:
    """Build the single provider variant selected by ``pix_provider``."""
    if settings.pix_provider == "livepix":
        _require(settings, "livepix_client_id", "livepix_client_secret", "livepix_api_base")
        return LivePixProvider(
            client_id=settings.livepix_client_id,
            client_secret=settings.livepix_client_secret,
            api_base=settings.livepix_api_base,
            redirect_url=settings.livepix_redirect_url,
            webhook_secret=settings.livepix_webhook_secret,
            timeout=settings.provider_timeout_seconds,
        )
    if settings.pix_provider == "efi":
        _require(settings, "efi_client_id", "efi_client_secret", "efi_api_base", "efi_pix_key")
        return EfiProvider(
            client_id=settings.efi_client_id,
            client_secret=settings.efi_client_secret,
            api_base=settings.efi_api_base,
            pix_key=settings.efi_pix_key,
            certificate=settings.efi_certificate_path,
            webhook_secret=settings.efi_webhook_secret,
            charge_expiration=settings.efi_charge_expiration_seconds,
            timeout=settings.provider_timeout_seconds,
        )
    return None


__all__ = [
    "ChargeResult",
    "EfiProvider",
    "LivePixProvider",
    "ParsedEvent",
    "PaymentProvider",
    "PaymentStatus",
    "build_provider",
]
