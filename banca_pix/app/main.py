import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from typing import Optional

from fastapi import Depends, FastAPI
from sqlmodel import Session

from .api.auth import router as auth_router
from .api.events import router as events_router
from .api.exceptions import register_exception_handlers
from .api.payments import charge_router, webhook_router
from .api.routes import pagamentos_router, router as bancas_router
from .core.config import get_settings
from .core.db import check_database, get_session, init_db
from .core.dependencies import get_payment_provider
from .services import ChangeNotifier, InMemoryTokenRegistry
from .services.providers import PaymentProvider, build_provider

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)


async def sweep_tokens(registry: InMemoryTokenRegistry, interval: float) -> None:
    while True:
        await asyncio.sleep(interval)
        registry.sweep()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    registry = InMemoryTokenRegistry(ttl_seconds=settings.token_ttl_seconds)
    app.state.token_registry = registry
    app.state.notifier = ChangeNotifier()
    app.state.provider = build_provider(settings)
    logger.info("app.started", extra={"provider": settings.pix_provider})

    sweeper = asyncio.create_task(sweep_tokens(registry, settings.token_sweep_interval_seconds))
    try:
        yield
    finally:
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper

app = FastAPI(title=settings.app_name, lifespan=lifespan)

app.include_router(charge_router)
app.include_router(webhook_router)
app.include_router(bancas_router)
app.include_router(pagamentos_router)
app.include_router(auth_router)
app.include_router(events_router)
register_exception_handlers(app)

@app.get("/health")
def read_health(
    session: Session = Depends(get_session),
    provider: Optional[PaymentProvider] = Depends(get_payment_provider),
) -> dict[str, str]:
    check_database(session)
    return {"status": "ok", "provider": provider.name if provider is not None else "none"}
