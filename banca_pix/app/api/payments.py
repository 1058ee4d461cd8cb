from typing import Optional

from fastapi import APIRouter, Depends, Request

from ..core.dependencies import get_charge_service, get_reconciler
from ..models import ChargeCreateRequest, ChargeCreateResponse, ChargeStatusResponse
from ..services import ChargeService, ConfirmationReconciler


async def raw_body(request: Request) -> bytes:
    """The exact inbound bytes; webhook signatures are computed over them."""
    return await request.body()


def client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for", "")
    first = forwarded.split(",")[0].strip()
    if first:
        return first
    return request.client.host if request.client else None


charge_router = APIRouter(prefix="/charge", tags=["charges"])

@charge_router.post(
    "/create", response_model=ChargeCreateResponse, response_model_exclude_none=True
)
def create_charge(
    payload: ChargeCreateRequest,
    service: ChargeService = Depends(get_charge_service),
) -> ChargeCreateResponse:
    return service.create_charge(payload)

@charge_router.get("/status/{token}", response_model=ChargeStatusResponse)
def charge_status(
    token: str,
    reconciler: ConfirmationReconciler = Depends(get_reconciler),
) -> ChargeStatusResponse:
    return ChargeStatusResponse(status=reconciler.check_status(token))

webhook_router = APIRouter(prefix="/webhook", tags=["webhooks"])

@webhook_router.post("/{provider}")
def provider_webhook(
    provider: str,
    request: Request,
    body: bytes = Depends(raw_body),
    reconciler: ConfirmationReconciler = Depends(get_reconciler),
) -> dict:
    outcome = reconciler.handle_webhook(provider, body, request.headers, client_ip(request))
    if outcome.ignored:
        return {"ok": True, "ignored": True}
    if outcome.duplicate:
        return {"ok": True, "duplicate": True, "id": outcome.banca_id}
    return {"ok": True, **outcome.banca.model_dump(mode="json", by_alias=True)}

__all__ = ["charge_router", "webhook_router"]
