from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session

from ..core.errors import (
    InvalidInputError,
    RecordNotFoundError,
    StorageFailureError,
    TransitionConflictError,
)
from ..models import (
    BancaCreate,
    BancaModel,
    BancaResponse,
    PagamentoModel,
    PagamentoResponse,
)
from ..models.db import NOME_MAX_LENGTH, utcnow
from .notifier import BANCAS_CHANGED, PAGAMENTOS_CHANGED, ChangeNotifier
from .repository import LedgerRepository
from .validation import PIX_KEY_TYPES

logger = logging.getLogger(__name__)

PAGAMENTO_STATUSES = ("pago", "nao_pago")


@dataclass(frozen=True)
class ConfirmationResult:
    banca_id: str
    created: bool
    banca: Optional[BancaResponse] = None


class LedgerService:
    """Two-stage ledger: confirmed deposits land in ``bancas`` and are promoted to ``pagamentos``."""

    def __init__(
        self,
        session: Session,
        repository: Optional[LedgerRepository] = None,
        notifier: Optional[ChangeNotifier] = None,
    ) -> None:
        self.session = session
        self.repository = repository or LedgerRepository(session)
        self.notifier = notifier

    # ------------------------------------------------------------------
    # Helper utilities
    # ------------------------------------------------------------------
    def _notify(self, name: str, reason: str) -> None:
        if self.notifier is not None:
            self.notifier.publish(name, reason)

    def _commit(self, action: str) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("ledger.storage_failure", extra={"action": action})
            raise StorageFailureError(f"Could not {action}") from exc

    def _banca_to_response(self, banca: BancaModel) -> BancaResponse:
        return BancaResponse(
            id=banca.id,
            nome=banca.nome,
            deposito_cents=banca.deposito_cents,
            banca_cents=banca.banca_cents,
            pix_type=banca.pix_type,
            pix_key=banca.pix_key,
            created_at=banca.created_at,
        )

    def _pagamento_to_response(self, pagamento: PagamentoModel) -> PagamentoResponse:
        return PagamentoResponse(
            id=pagamento.id,
            nome=pagamento.nome,
            pagamento_cents=pagamento.pagamento_cents,
            pix_type=pagamento.pix_type,
            pix_key=pagamento.pix_key,
            status=pagamento.status,
            created_at=pagamento.created_at,
            paid_at=pagamento.paid_at,
        )

    def _add_banca(
        self,
        nome: str,
        deposito_cents: int,
        pix_type: Optional[str],
        pix_key: Optional[str],
    ) -> BancaModel:
        return self.repository.add_banca(
            nome=nome.strip()[:NOME_MAX_LENGTH],
            deposito_cents=deposito_cents,
            pix_type=pix_type or None,
            pix_key=pix_key or None,
        )

    # ------------------------------------------------------------------
    # Bancas
    # ------------------------------------------------------------------
    def list_bancas(self) -> list[BancaResponse]:
        return [self._banca_to_response(banca) for banca in self.repository.list_bancas()]

    def insert_banca(self, payload: BancaCreate) -> BancaResponse:
        nome = (payload.nome or "").strip()
        if not nome:
            raise InvalidInputError("nome is required")
        if payload.deposito_cents is None or payload.deposito_cents <= 0:
            raise InvalidInputError("depositoCents must be a positive integer")
        if payload.pix_type is not None and payload.pix_type not in PIX_KEY_TYPES:
            raise InvalidInputError(f"pixType must be one of: {', '.join(PIX_KEY_TYPES)}")

        try:
            banca = self._add_banca(nome, payload.deposito_cents, payload.pix_type, payload.pix_key)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageFailureError("Could not insert banca") from exc
        response = self._banca_to_response(banca)
        self._commit("insert banca")
        logger.info("banca.created", extra={"banca_id": banca.id, "deposito_cents": banca.deposito_cents})
        self._notify(BANCAS_CHANGED, "insert")
        return response

    def update_banca_amount(self, banca_id: str, banca_cents: Optional[int]) -> BancaResponse:
        if banca_cents is None or banca_cents < 0:
            raise InvalidInputError("bancaCents must be a non-negative integer")

        banca = self.repository.get_banca(banca_id, for_update=True)
        if banca is None:
            self.session.rollback()
            raise RecordNotFoundError(f"Banca {banca_id} not found")
        banca.banca_cents = banca_cents
        self.session.add(banca)
        response = self._banca_to_response(banca)
        self._commit("update banca")
        logger.info("banca.updated", extra={"banca_id": banca_id, "banca_cents": banca_cents})
        self._notify(BANCAS_CHANGED, "update")
        return response

    def delete_banca(self, banca_id: str) -> None:
        banca = self.repository.get_banca(banca_id, for_update=True)
        if banca is None:
            self.session.rollback()
            raise RecordNotFoundError(f"Banca {banca_id} not found")
        try:
            self.repository.delete_banca(banca)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageFailureError("Could not delete banca") from exc
        self._commit("delete banca")
        logger.info("banca.deleted", extra={"banca_id": banca_id})
        self._notify(BANCAS_CHANGED, "delete")

    def promote(self, banca_id: str, override_banca_cents: Optional[int] = None) -> PagamentoResponse:
        """Move a banca into ``pagamentos`` in one transaction.

        The carried amount is the override when given and non-negative, else
        the current ``banca_cents`` when positive, else the original deposit.
        Any failure rolls back, leaving the banca as the only record.
        """
        try:
            banca = self.repository.get_banca(banca_id, for_update=True)
            if banca is None:
                self.session.rollback()
                raise TransitionConflictError(f"Banca {banca_id} not found")

            if override_banca_cents is not None and override_banca_cents >= 0:
                amount = override_banca_cents
            elif banca.banca_cents is not None and banca.banca_cents > 0:
                amount = banca.banca_cents
            else:
                amount = banca.deposito_cents

            pagamento = self.repository.add_pagamento(
                pagamento_id=banca.id,
                nome=banca.nome,
                pagamento_cents=amount,
                pix_type=banca.pix_type,
                pix_key=banca.pix_key,
                created_at=banca.created_at,
            )
            self.repository.delete_banca(banca)
            response = self._pagamento_to_response(pagamento)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("ledger.storage_failure", extra={"action": "promote", "banca_id": banca_id})
            raise StorageFailureError("Could not promote banca") from exc

        logger.info("banca.promoted", extra={"banca_id": banca_id, "pagamento_cents": amount})
        self._notify(BANCAS_CHANGED, "moved")
        self._notify(PAGAMENTOS_CHANGED, "moved")
        return response

    # ------------------------------------------------------------------
    # Pagamentos
    # ------------------------------------------------------------------
    def list_pagamentos(self) -> list[PagamentoResponse]:
        return [self._pagamento_to_response(p) for p in self.repository.list_pagamentos()]

    def update_pagamento_status(self, pagamento_id: str, status: Optional[str]) -> PagamentoResponse:
        if status not in PAGAMENTO_STATUSES:
            raise InvalidInputError("status must be 'pago' or 'nao_pago'")

        pagamento = self.repository.get_pagamento(pagamento_id, for_update=True)
        if pagamento is None:
            self.session.rollback()
            raise RecordNotFoundError(f"Pagamento {pagamento_id} not found")
        pagamento.status = status
        pagamento.paid_at = utcnow() if status == "pago" else None
        self.session.add(pagamento)
        response = self._pagamento_to_response(pagamento)
        self._commit("update pagamento")
        logger.info("pagamento.status", extra={"pagamento_id": pagamento_id, "status": status})
        self._notify(PAGAMENTOS_CHANGED, "update-status")
        return response

    def delete_pagamento(self, pagamento_id: str) -> None:
        pagamento = self.repository.get_pagamento(pagamento_id, for_update=True)
        if pagamento is None:
            self.session.rollback()
            raise RecordNotFoundError(f"Pagamento {pagamento_id} not found")
        try:
            self.repository.delete_pagamento(pagamento)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StorageFailureError("Could not delete pagamento") from exc
        self._commit("delete pagamento")
        logger.info("pagamento.deleted", extra={"pagamento_id": pagamento_id})
        self._notify(PAGAMENTOS_CHANGED, "delete")

    # ------------------------------------------------------------------
    # Confirmed payments
    # ------------------------------------------------------------------
    def record_confirmed_payment(
        self,
        *,
        provider: str,
        provider_payment_id: str,
        nome: str,
        amount_cents: int,
        pix_type: Optional[str] = None,
        pix_key: Optional[str] = None,
        reason: str = "webhook-paid",
    ) -> ConfirmationResult:
        """Ensure exactly one banca exists per ``(provider, provider_payment_id)``.

        The dedup row and the banca are written in the same transaction; the
        dedup row is kept after the banca is promoted or deleted.
        """
        existing = self.repository.fetch_confirmation(provider, provider_payment_id)
        if existing is not None:
            self.session.rollback()
            logger.info(
                "payment.duplicate",
                extra={"provider": provider, "provider_payment_id": provider_payment_id},
            )
            return ConfirmationResult(banca_id=existing.banca_id, created=False)

        if pix_type not in PIX_KEY_TYPES:
            pix_type = None
        try:
            banca = self._add_banca(nome, amount_cents, pix_type, pix_key)
            self.repository.save_confirmation(
                provider=provider,
                provider_payment_id=provider_payment_id,
                banca_id=banca.id,
                amount_cents=amount_cents,
            )
            response = self._banca_to_response(banca)
            self.session.commit()
        except IntegrityError:
            # Lost a race against a concurrent delivery of the same payment.
            self.session.rollback()
            existing = self.repository.fetch_confirmation(provider, provider_payment_id)
            if existing is None:
                raise StorageFailureError("Could not record payment")
            logger.info(
                "payment.duplicate",
                extra={"provider": provider, "provider_payment_id": provider_payment_id},
            )
            return ConfirmationResult(banca_id=existing.banca_id, created=False)
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.exception("ledger.storage_failure", extra={"action": "record payment"})
            raise StorageFailureError("Could not record payment") from exc

        logger.info(
            "payment.confirmed",
            extra={
                "provider": provider,
                "provider_payment_id": provider_payment_id,
                "banca_id": response.id,
                "amount_cents": amount_cents,
            },
        )
        self._notify(BANCAS_CHANGED, reason)
        return ConfirmationResult(banca_id=response.id, created=True, banca=response)
