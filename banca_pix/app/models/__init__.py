from .db import Banca as BancaModel
from .db import Pagamento as PagamentoModel
from .db import PaymentConfirmation as PaymentConfirmationModel
from .schemas import (
    BancaCreate,
    BancaResponse,
    BancaUpdate,
    ChargeCreateRequest,
    ChargeCreateResponse,
    ChargeStatusResponse,
    LoginRequest,
    PagamentoResponse,
    PagamentoStatusUpdate,
    PromoteRequest,
)

__all__ = [
    "BancaCreate",
    "BancaResponse",
    "BancaUpdate",
    "ChargeCreateRequest",
    "ChargeCreateResponse",
    "ChargeStatusResponse",
    "LoginRequest",
    "PagamentoResponse",
    "PagamentoStatusUpdate",
    "PromoteRequest",
    "BancaModel",
    "PagamentoModel",
    "PaymentConfirmationModel",
]
