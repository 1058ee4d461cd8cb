from typing import Optional

from fastapi import Depends, Request
from sqlmodel import Session

from ..services import (
    ChangeNotifier,
    ChargeService,
    ConfirmationReconciler,
    LedgerRepository,
    LedgerService,
)
from ..services.providers import PaymentProvider
from ..services.tokens import TokenRegistry
from .config import Settings, get_settings
from .db import get_session


def get_notifier(request: Request) -> ChangeNotifier:
    return request.app.state.notifier


def get_token_registry(request: Request) -> TokenRegistry:
    return request.app.state.token_registry


def get_payment_provider(request: Request) -> Optional[PaymentProvider]:
    return request.app.state.provider


def get_ledger_service(
    session: Session = Depends(get_session),
    notifier: ChangeNotifier = Depends(get_notifier),
) -> LedgerService:
    repository = LedgerRepository(session)
    return LedgerService(session, repository, notifier)


def get_charge_service(
    provider: Optional[PaymentProvider] = Depends(get_payment_provider),
    registry: TokenRegistry = Depends(get_token_registry),
    settings: Settings = Depends(get_settings),
) -> ChargeService:
    return ChargeService(provider, registry, min_amount_cents=settings.min_amount_cents)


def get_reconciler(
    ledger: LedgerService = Depends(get_ledger_service),
    registry: TokenRegistry = Depends(get_token_registry),
    provider: Optional[PaymentProvider] = Depends(get_payment_provider),
    settings: Settings = Depends(get_settings),
) -> ConfirmationReconciler:
    return ConfirmationReconciler(
        ledger,
        registry,
        provider,
        allowed_ips=settings.allowed_webhook_ips,
    )
