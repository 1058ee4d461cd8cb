from __future__ import annotations

from collections.abc import Generator
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

from ..models import db as _db_models  # noqa: F401 - ensure models register with metadata
from .config import get_settings


def create_engine_for_url(database_url: str) -> Engine:
    connect_args: dict[str, Any] = {}
    options: dict[str, Any] = {}
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
    else:
        # Hosted Postgres drops idle connections.
        options["pool_pre_ping"] = True
    return create_engine(database_url, echo=False, connect_args=connect_args, **options)


engine = create_engine_for_url(get_settings().database_url)


def init_db() -> None:
    SQLModel.metadata.create_all(engine)


def get_session() -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


def check_database(session: Session) -> None:
    session.connection().execute(text("select 1"))


def set_engine(new_engine: Engine) -> None:
    global engine
    engine = new_engine
