import json

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from ..core import db as db_module
from ..core.config import Settings, get_settings
from ..core.db import create_engine_for_url, get_session, set_engine
from ..core.dependencies import get_payment_provider
from ..core.errors import ProviderUnavailableError
from ..core.security import hash_password
from ..main import app
from ..services.providers import ChargeResult, PaymentStatus
from ..services.providers.base import (
    header_value,
    load_json_body,
    normalize_event,
    sign_payload,
    verify_signature,
)

WEBHOOK_SECRET = "whsec-test"
ADMIN_PASSWORD = "s3nha-forte"


class FakeProvider:
    """In-memory redirect-style provider driven by the tests."""

    name = "livepix"

    def __init__(self) -> None:
        self.intents = {}
        self.paid: set[str] = set()
        self.unavailable = False

    def create_charge(self, intent):
        if self.unavailable:
            raise ProviderUnavailableError("Payment provider is unavailable")
        payment_id = f"pay_{len(self.intents) + 1}"
        self.intents[payment_id] = intent
        return ChargeResult(
            provider_payment_id=payment_id,
            redirect_url=f"https://checkout.example/{payment_id}",
        )

    def get_status(self, provider_payment_id):
        if self.unavailable:
            raise ProviderUnavailableError("Payment provider is unavailable")
        if provider_payment_id in self.paid:
            return PaymentStatus.PAID
        return PaymentStatus.PENDING

    def verify_inbound_event(self, raw_body, headers):
        verify_signature(WEBHOOK_SECRET, raw_body, header_value(headers, "X-Signature"))
        return normalize_event(load_json_body(raw_body))


@pytest.fixture(scope="session")
def password_hash() -> str:
    return hash_password(ADMIN_PASSWORD)


@pytest.fixture
def settings(password_hash) -> Settings:
    return Settings(
        _env_file=None,
        admin_user="admin",
        admin_password_hash=password_hash,
        session_secret="test-session-secret",
    )


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def engine(tmp_path):
    test_db = tmp_path / "test.db"
    engine = create_engine_for_url(f"sqlite:///{test_db}")
    SQLModel.metadata.drop_all(engine)
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture
def client(engine, settings, provider) -> TestClient:
    original_engine = db_module.engine
    set_engine(engine)

    def _get_session_override():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _get_session_override
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_payment_provider] = lambda: provider

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    set_engine(original_engine)


@pytest.fixture
def operator(client: TestClient) -> TestClient:
    response = client.post("/auth/login", json={"username": "admin", "password": ADMIN_PASSWORD})
    assert response.status_code == 200
    client.headers["X-CSRF-Token"] = client.cookies["csrf"]
    return client


def post_webhook(client: TestClient, payload: dict, secret: str = WEBHOOK_SECRET, headers=None):
    raw = json.dumps(payload).encode()
    all_headers = {"Content-Type": "application/json", "X-Signature": sign_payload(secret, raw)}
    all_headers.update(headers or {})
    return client.post("/webhook/livepix", content=raw, headers=all_headers)
