from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChargeCreateRequest(CamelModel):
    name: Optional[str] = None
    amount_cents: Optional[int] = Field(default=None, description="Amount in cents (>= 1000)")
    key_type: Optional[str] = Field(default=None, description="cpf, email, telefone or aleatoria")
    key_value: Optional[str] = None


class ChargeCreateResponse(CamelModel):
    token: str
    redirect_url: Optional[str] = None
    payment_code: Optional[str] = Field(default=None, description="PIX copy-and-paste code")
    qr_image: Optional[str] = Field(default=None, description="PNG data URI of the QR code")


class ChargeStatusResponse(CamelModel):
    status: Literal["PENDING", "CONCLUIDA"]


class BancaCreate(CamelModel):
    nome: Optional[str] = None
    deposito_cents: Optional[int] = None
    pix_type: Optional[str] = None
    pix_key: Optional[str] = None


class BancaUpdate(CamelModel):
    banca_cents: Optional[int] = None


class PromoteRequest(CamelModel):
    banca_cents: Optional[int] = Field(
        default=None, description="Overrides the carried-over amount when >= 0"
    )


class BancaResponse(CamelModel):
    id: str
    nome: str
    deposito_cents: int
    banca_cents: Optional[int] = None
    pix_type: Optional[str] = None
    pix_key: Optional[str] = None
    created_at: datetime


class PagamentoStatusUpdate(CamelModel):
    status: Optional[str] = None


class PagamentoResponse(CamelModel):
    id: str
    nome: str
    pagamento_cents: int
    pix_type: Optional[str] = None
    pix_key: Optional[str] = None
    status: Literal["pago", "nao_pago"]
    created_at: datetime
    paid_at: Optional[datetime] = None


class LoginRequest(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
