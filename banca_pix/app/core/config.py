from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Banca PIX API"
    database_url: str = "sqlite:///banca_pix.db"
    log_level: str = "INFO"

    pix_provider: Literal["livepix", "efi", "none"] = "none"
    provider_timeout_seconds: float = 10.0

    livepix_client_id: Optional[str] = None
    livepix_client_secret: Optional[str] = None
    livepix_api_base: Optional[str] = None
    livepix_redirect_url: Optional[str] = None
    livepix_webhook_secret: Optional[str] = None

    efi_client_id: Optional[str] = None
    efi_client_secret: Optional[str] = None
    efi_api_base: Optional[str] = None
    efi_pix_key: Optional[str] = None
    efi_certificate_path: Optional[str] = None
    efi_webhook_secret: Optional[str] = None
    efi_charge_expiration_seconds: int = 3600

    # Comma-separated source IPs; empty accepts any sender.
    webhook_allowlist: str = ""

    token_ttl_seconds: int = 30 * 60
    token_sweep_interval_seconds: int = 60
    min_amount_cents: int = 1000

    admin_user: str = "admin"
    admin_password_hash: str = ""
    session_secret: str = "dev-change-me"
    session_ttl_minutes: int = 120
    cookie_secure: bool = False

    events_ping_seconds: float = 25.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="BANCA_",
        extra="ignore",
    )

    @property
    def allowed_webhook_ips(self) -> list[str]:
        return [ip.strip() for ip in self.webhook_allowlist.split(",") if ip.strip()]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
