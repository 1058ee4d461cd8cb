from __future__ import annotations

import secrets
import time
from datetime import UTC, datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

NOME_MAX_LENGTH = 120


def new_record_id() -> str:
    """Time-sortable opaque id: 12 hex digits of epoch millis + 12 random hex digits."""
    return f"{int(time.time() * 1000):012x}{secrets.token_hex(6)}"


def utcnow() -> datetime:
    return datetime.now(UTC)


class Banca(SQLModel, table=True):
    __tablename__ = "bancas"

    id: str = Field(default_factory=new_record_id, primary_key=True, max_length=32)
    nome: str = Field(max_length=NOME_MAX_LENGTH)
    deposito_cents: int
    banca_cents: Optional[int] = None
    pix_type: Optional[str] = None
    pix_key: Optional[str] = None
    created_at: datetime = Field(
        default_factory=utcnow, sa_type=DateTime(timezone=True), index=True
    )


class Pagamento(SQLModel, table=True):
    __tablename__ = "pagamentos"

    id: str = Field(primary_key=True, max_length=32)
    nome: str = Field(max_length=NOME_MAX_LENGTH)
    pagamento_cents: int
    pix_type: Optional[str] = None
    pix_key: Optional[str] = None
    status: str = Field(default="nao_pago", max_length=16)
    created_at: datetime = Field(sa_type=DateTime(timezone=True), index=True)
    paid_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))


class PaymentConfirmation(SQLModel, table=True):
    """One row per provider payment ever credited; outlives the banca it created."""

    __tablename__ = "payment_confirmations"

    provider: str = Field(primary_key=True, max_length=32)
    provider_payment_id: str = Field(primary_key=True, max_length=128)
    banca_id: str = Field(max_length=32)
    amount_cents: int
    confirmed_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
