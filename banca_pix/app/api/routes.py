from fastapi import APIRouter, Body, Depends

from ..core.dependencies import get_ledger_service
from ..core.security import require_operator
from ..models import (
    BancaCreate,
    BancaResponse,
    BancaUpdate,
    PagamentoResponse,
    PagamentoStatusUpdate,
    PromoteRequest,
)
from ..services import LedgerService


router = APIRouter(prefix="/bancas", tags=["bancas"], dependencies=[Depends(require_operator)])

@router.get("", response_model=list[BancaResponse])
def list_bancas(service: LedgerService = Depends(get_ledger_service)) -> list[BancaResponse]:
    return service.list_bancas()

@router.post("", response_model=BancaResponse)
def create_banca(
    payload: BancaCreate,
    service: LedgerService = Depends(get_ledger_service),
) -> BancaResponse:
    return service.insert_banca(payload)

@router.patch("/{banca_id}", response_model=BancaResponse)
def update_banca(
    banca_id: str,
    payload: BancaUpdate,
    service: LedgerService = Depends(get_ledger_service),
) -> BancaResponse:
    return service.update_banca_amount(banca_id, payload.banca_cents)

@router.delete("/{banca_id}")
def delete_banca(
    banca_id: str,
    service: LedgerService = Depends(get_ledger_service),
) -> dict:
    service.delete_banca(banca_id)
    return {"ok": True}

@router.post("/{banca_id}/promote", response_model=PagamentoResponse)
def promote_banca(
    banca_id: str,
    payload: PromoteRequest | None = Body(default=None),
    service: LedgerService = Depends(get_ledger_service),
) -> PagamentoResponse:
    override = payload.banca_cents if payload is not None else None
    return service.promote(banca_id, override)

pagamentos_router = APIRouter(
    prefix="/pagamentos", tags=["pagamentos"], dependencies=[Depends(require_operator)]
)

@pagamentos_router.get("", response_model=list[PagamentoResponse])
def list_pagamentos(
    service: LedgerService = Depends(get_ledger_service),
) -> list[PagamentoResponse]:
    return service.list_pagamentos()

@pagamentos_router.patch("/{pagamento_id}", response_model=PagamentoResponse)
def update_pagamento(
    pagamento_id: str,
    payload: PagamentoStatusUpdate,
    service: LedgerService = Depends(get_ledger_service),
) -> PagamentoResponse:
    return service.update_pagamento_status(pagamento_id, payload.status)

@pagamentos_router.delete("/{pagamento_id}")
def delete_pagamento(
    pagamento_id: str,
    service: LedgerService = Depends(get_ledger_service),
) -> dict:
    service.delete_pagamento(pagamento_id)
    return {"ok": True}

__all__ = ["router", "pagamentos_router"]
