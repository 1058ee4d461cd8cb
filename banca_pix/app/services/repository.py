from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlmodel import Session, select

from ..models import BancaModel, PagamentoModel, PaymentConfirmationModel


class LedgerRepository:
    """Thin data access layer around the SQLModel session."""

    def __init__(self, session: Session) -> None:
        self.session = session

    # Bancas -------------------------------------------------------------
    def add_banca(
        self,
        *,
        nome: str,
        deposito_cents: int,
        pix_type: Optional[str],
        pix_key: Optional[str],
    ) -> BancaModel:
        banca = BancaModel(
            nome=nome,
            deposito_cents=deposito_cents,
            pix_type=pix_type,
            pix_key=pix_key,
        )
        self.session.add(banca)
        self.session.flush()
        self.session.refresh(banca)
        return banca

    def get_banca(self, banca_id: str, *, for_update: bool = False) -> Optional[BancaModel]:
        stmt = select(BancaModel).where(BancaModel.id == banca_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.exec(stmt).first()

    def list_bancas(self) -> list[BancaModel]:
        stmt = select(BancaModel).order_by(BancaModel.created_at.desc(), BancaModel.id.desc())
        return list(self.session.exec(stmt))

    def delete_banca(self, banca: BancaModel) -> None:
        self.session.delete(banca)
        self.session.flush()

    # Pagamentos ---------------------------------------------------------
    def add_pagamento(
        self,
        *,
        pagamento_id: str,
        nome: str,
        pagamento_cents: int,
        pix_type: Optional[str],
        pix_key: Optional[str],
        created_at: datetime,
    ) -> PagamentoModel:
        pagamento = PagamentoModel(
            id=pagamento_id,
            nome=nome,
            pagamento_cents=pagamento_cents,
            pix_type=pix_type,
            pix_key=pix_key,
            status="nao_pago",
            created_at=created_at,
            paid_at=None,
        )
        self.session.add(pagamento)
        self.session.flush()
        return pagamento

    def get_pagamento(self, pagamento_id: str, *, for_update: bool = False) -> Optional[PagamentoModel]:
        stmt = select(PagamentoModel).where(PagamentoModel.id == pagamento_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.exec(stmt).first()

    def list_pagamentos(self) -> list[PagamentoModel]:
        stmt = select(PagamentoModel).order_by(
            PagamentoModel.created_at.desc(), PagamentoModel.id.desc()
        )
        return list(self.session.exec(stmt))

    def delete_pagamento(self, pagamento: PagamentoModel) -> None:
        self.session.delete(pagamento)
        self.session.flush()

    # Payment confirmations (dedup store) ---------------------------------
    def fetch_confirmation(
        self, provider: str, provider_payment_id: str
    ) -> Optional[PaymentConfirmationModel]:
        return self.session.get(PaymentConfirmationModel, (provider, provider_payment_id))

    def save_confirmation(
        self,
        *,
        provider: str,
        provider_payment_id: str,
        banca_id: str,
        amount_cents: int,
    ) -> None:
        record = PaymentConfirmationModel(
            provider=provider,
            provider_payment_id=provider_payment_id,
            banca_id=banca_id,
            amount_cents=amount_cents,
        )
        self.session.add(record)
        self.session.flush()
