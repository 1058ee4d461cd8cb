from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from ..core.errors import BancaPixError, ProviderNotConfiguredError, StorageFailureError

logger = logging.getLogger(__name__)


def _error_body(exc: BancaPixError) -> dict:
    return {"error": exc.code, "detail": str(exc)}


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ProviderNotConfiguredError)
    async def provider_not_configured_handler(
        request: Request, exc: ProviderNotConfiguredError
    ) -> JSONResponse:
        # Clients fall back to the other provider variant on this answer.
        body = _error_body(exc)
        body["notAvailable"] = True
        return JSONResponse(status_code=exc.status_code, content=body)

    @app.exception_handler(BancaPixError)
    async def banca_pix_error_handler(request: Request, exc: BancaPixError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "invalid_input", "detail": "Malformed request body"},
        )

    @app.exception_handler(SQLAlchemyError)
    async def storage_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error("ledger.storage_failure", exc_info=exc, extra={"path": request.url.path})
        return JSONResponse(status_code=500, content=_error_body(StorageFailureError("Storage failure")))
