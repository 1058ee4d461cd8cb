import json

from fastapi.testclient import TestClient

from ..core.dependencies import get_payment_provider
from ..main import app
from .conftest import ADMIN_PASSWORD, post_webhook


def paid_event(payment_id: str = "pay_1", amount="15.00", **extra) -> dict:
    data = {
        "id": payment_id,
        "status": "paid",
        "amount": amount,
        "payer_name": "Maria",
        "metadata": {"tipo": "email", "chave": "m@x.com"},
    }
    data.update(extra)
    return {"event": "payment.updated", "data": data}


def test_deposit_flow_end_to_end(operator: TestClient) -> None:
    created = operator.post(
        "/charge/create",
        json={"name": "Maria", "amountCents": 1500, "keyType": "email", "keyValue": "m@x.com"},
    )
    assert created.status_code == 200
    body = created.json()
    assert body["token"].startswith("tok_")
    assert body["redirectUrl"] == "https://checkout.example/pay_1"

    webhook = post_webhook(operator, paid_event("pay_1"))
    assert webhook.status_code == 200
    assert webhook.json()["ok"] is True
    assert webhook.json()["depositoCents"] == 1500

    bancas = operator.get("/bancas").json()
    assert len(bancas) == 1
    banca = bancas[0]
    assert banca["depositoCents"] == 1500
    assert banca["nome"] == "Maria"
    assert banca["pixType"] == "email"
    assert banca["pixKey"] == "m@x.com"
    assert banca["bancaCents"] is None

    promoted = operator.post(f"/bancas/{banca['id']}/promote")
    assert promoted.status_code == 200
    assert promoted.json()["status"] == "nao_pago"

    assert operator.get("/bancas").json() == []
    pagamentos = operator.get("/pagamentos").json()
    assert len(pagamentos) == 1
    assert pagamentos[0]["id"] == banca["id"]
    assert pagamentos[0]["status"] == "nao_pago"
    assert pagamentos[0]["pagamentoCents"] == 1500
    assert pagamentos[0]["paidAt"] is None


def test_create_charge_rejects_amount_below_minimum(client: TestClient) -> None:
    response = client.post(
        "/charge/create",
        json={"name": "Maria", "amountCents": 999, "keyType": "cpf", "keyValue": "529.982.247-25"},
    )
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_amount"


def test_create_charge_requires_name(client: TestClient) -> None:
    response = client.post("/charge/create", json={"name": "  ab ", "amountCents": 1500})
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_input"

    missing = client.post("/charge/create", json={"amountCents": 1500})
    assert missing.status_code == 400


def test_create_charge_rejects_invalid_cpf_key(client: TestClient) -> None:
    response = client.post(
        "/charge/create",
        json={"name": "Maria", "amountCents": 1500, "keyType": "cpf", "keyValue": "123.456.789-00"},
    )
    assert response.status_code == 400


def test_create_charge_without_key_is_accepted(client: TestClient, provider) -> None:
    response = client.post("/charge/create", json={"name": "Maria", "amountCents": 1000})
    assert response.status_code == 200
    intent = provider.intents["pay_1"]
    assert intent.pix_type is None
    assert intent.pix_key is None


def test_create_charge_without_provider_reports_not_available(client: TestClient) -> None:
    app.dependency_overrides[get_payment_provider] = lambda: None
    response = client.post("/charge/create", json={"name": "Maria", "amountCents": 1500})
    assert response.status_code == 404
    assert response.json()["notAvailable"] is True


def test_create_charge_provider_unavailable(client: TestClient, provider) -> None:
    provider.unavailable = True
    response = client.post("/charge/create", json={"name": "Maria", "amountCents": 1500})
    assert response.status_code == 502
    assert response.json() == {
        "error": "provider_unavailable",
        "detail": "Payment provider is unavailable",
    }


def test_status_of_unknown_token_is_not_found(client: TestClient) -> None:
    response = client.get("/charge/status/tok_missing")
    assert response.status_code == 404
    assert response.json()["error"] == "token_not_found"


def test_polling_confirms_once(operator: TestClient, provider) -> None:
    token = operator.post(
        "/charge/create",
        json={"name": "Joana", "amountCents": 2500, "keyType": "telefone", "keyValue": "(11) 91234-5678"},
    ).json()["token"]

    assert operator.get(f"/charge/status/{token}").json() == {"status": "PENDING"}
    assert operator.get("/bancas").json() == []

    provider.paid.add("pay_1")
    assert operator.get(f"/charge/status/{token}").json() == {"status": "CONCLUIDA"}
    assert operator.get(f"/charge/status/{token}").json() == {"status": "CONCLUIDA"}

    # The webhook arriving after the poll must not add a second record.
    late = post_webhook(operator, paid_event("pay_1", amount="25.00"))
    assert late.status_code == 200
    assert late.json()["duplicate"] is True

    bancas = operator.get("/bancas").json()
    assert len(bancas) == 1
    assert bancas[0]["depositoCents"] == 2500
    assert bancas[0]["nome"] == "Joana"
    assert bancas[0]["pixType"] == "telefone"


def test_webhook_replay_creates_single_banca(operator: TestClient) -> None:
    first = post_webhook(operator, paid_event("pay_9"))
    second = post_webhook(operator, paid_event("pay_9"))

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json() == {"ok": True, "duplicate": True, "id": first.json()["id"]}
    assert len(operator.get("/bancas").json()) == 1


def test_webhook_replay_without_payment_id_is_deduplicated(operator: TestClient) -> None:
    payload = {"data": {"status": "paid", "amount_cents": 1200, "name": "Ana"}}
    post_webhook(operator, payload)
    post_webhook(operator, payload)

    bancas = operator.get("/bancas").json()
    assert len(bancas) == 1
    assert bancas[0]["depositoCents"] == 1200


def test_webhook_after_promotion_does_not_recreate_banca(operator: TestClient) -> None:
    banca_id = post_webhook(operator, paid_event("pay_3")).json()["id"]
    operator.post(f"/bancas/{banca_id}/promote")

    replay = post_webhook(operator, paid_event("pay_3"))
    assert replay.json()["duplicate"] is True
    assert operator.get("/bancas").json() == []
    assert len(operator.get("/pagamentos").json()) == 1


def test_webhook_rejects_bad_signature(operator: TestClient) -> None:
    response = post_webhook(operator, paid_event(), secret="wrong-secret")
    assert response.status_code == 401
    assert response.json()["error"] == "invalid_signature"
    assert operator.get("/bancas").json() == []


def test_webhook_rejects_missing_signature(client: TestClient) -> None:
    response = client.post("/webhook/livepix", json=paid_event())
    assert response.status_code == 401


def test_webhook_ip_allowlist(operator: TestClient, settings) -> None:
    settings.webhook_allowlist = "10.0.0.1, 10.0.0.2"

    blocked = post_webhook(operator, paid_event(), headers={"X-Forwarded-For": "10.9.9.9"})
    assert blocked.status_code == 403
    assert blocked.json()["error"] == "ip_not_allowed"

    allowed = post_webhook(
        operator, paid_event(), headers={"X-Forwarded-For": "10.0.0.2, 172.16.0.1"}
    )
    assert allowed.status_code == 200
    assert len(operator.get("/bancas").json()) == 1


def test_webhook_ignores_unpaid_events(operator: TestClient) -> None:
    response = post_webhook(operator, paid_event(status="pending"))
    assert response.status_code == 200
    assert response.json() == {"ok": True, "ignored": True}
    assert operator.get("/bancas").json() == []


def test_webhook_rejects_zero_amount(operator: TestClient) -> None:
    response = post_webhook(operator, paid_event(amount="0"))
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_amount"
    assert operator.get("/bancas").json() == []


def test_webhook_rejects_non_numeric_amount(operator: TestClient) -> None:
    response = post_webhook(operator, paid_event("pay_nan", amount="NaN"))
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_amount"
    assert operator.get("/bancas").json() == []


def test_webhook_rejects_non_ascii_signature(client: TestClient) -> None:
    response = client.post(
        "/webhook/livepix",
        content=json.dumps(paid_event()).encode(),
        headers={"Content-Type": "application/json", "X-Signature": "éabc".encode("latin-1")},
    )
    assert response.status_code == 401
    assert response.json()["error"] == "invalid_signature"


def test_webhook_for_other_provider_is_not_configured(client: TestClient) -> None:
    response = client.post("/webhook/efi", content=b"{}")
    assert response.status_code == 404


def test_operator_routes_require_session(client: TestClient) -> None:
    assert client.get("/bancas").status_code == 401
    assert client.get("/pagamentos").status_code == 401
    assert client.get("/events").status_code == 401
    assert client.get("/auth/me").status_code == 401


def test_mutations_require_csrf_header(operator: TestClient) -> None:
    banca_id = post_webhook(operator, paid_event("pay_5")).json()["id"]

    operator.headers.pop("X-CSRF-Token")
    response = operator.patch(f"/bancas/{banca_id}", json={"bancaCents": 100})
    assert response.status_code == 403
    assert response.json()["error"] == "invalid_csrf"

    operator.headers["X-CSRF-Token"] = "not-the-cookie"
    assert operator.delete(f"/bancas/{banca_id}").status_code == 403
    assert len(operator.get("/bancas").json()) == 1


def test_login_rejects_wrong_password(client: TestClient) -> None:
    response = client.post("/auth/login", json={"username": "admin", "password": "nope"})
    assert response.status_code == 401
    missing = client.post("/auth/login", json={"username": "admin"})
    assert missing.status_code == 400


def test_me_and_logout(client: TestClient) -> None:
    client.post("/auth/login", json={"username": "admin", "password": ADMIN_PASSWORD})
    assert client.get("/auth/me").json() == {"user": {"username": "admin"}}

    client.post("/auth/logout")
    assert client.get("/auth/me").status_code == 401


def test_manual_banca_update_and_promote_with_edited_amount(operator: TestClient) -> None:
    created = operator.post(
        "/bancas", json={"nome": "Carlos", "depositoCents": 5000, "pixType": "aleatoria"}
    )
    assert created.status_code == 200
    banca_id = created.json()["id"]

    updated = operator.patch(f"/bancas/{banca_id}", json={"bancaCents": 7300})
    assert updated.status_code == 200
    assert updated.json()["bancaCents"] == 7300
    assert updated.json()["depositoCents"] == 5000

    pagamento = operator.post(f"/bancas/{banca_id}/promote").json()
    assert pagamento["pagamentoCents"] == 7300


def test_promote_with_override(operator: TestClient) -> None:
    banca_id = operator.post("/bancas", json={"nome": "Rita", "depositoCents": 5000}).json()["id"]
    pagamento = operator.post(f"/bancas/{banca_id}/promote", json={"bancaCents": 0})
    assert pagamento.status_code == 200
    assert pagamento.json()["pagamentoCents"] == 0


def test_promote_missing_banca_is_conflict(operator: TestClient) -> None:
    response = operator.post("/bancas/does-not-exist/promote")
    assert response.status_code == 404
    assert response.json()["error"] == "transition_conflict"


def test_banca_validation(operator: TestClient) -> None:
    assert operator.post("/bancas", json={"nome": "X", "depositoCents": 0}).status_code == 400
    assert operator.post("/bancas", json={"depositoCents": 100}).status_code == 400
    banca_id = operator.post("/bancas", json={"nome": "Léo", "depositoCents": 100}).json()["id"]
    assert operator.patch(f"/bancas/{banca_id}", json={"bancaCents": -1}).status_code == 400
    assert operator.patch("/bancas/unknown", json={"bancaCents": 1}).status_code == 404


def test_pagamento_status_transitions(operator: TestClient) -> None:
    banca_id = operator.post("/bancas", json={"nome": "Bia", "depositoCents": 1000}).json()["id"]
    operator.post(f"/bancas/{banca_id}/promote")

    paid = operator.patch(f"/pagamentos/{banca_id}", json={"status": "pago"})
    assert paid.status_code == 200
    assert paid.json()["status"] == "pago"
    assert paid.json()["paidAt"] is not None

    invalid = operator.patch(f"/pagamentos/{banca_id}", json={"status": "cancelado"})
    assert invalid.status_code == 400
    assert operator.get("/pagamentos").json()[0]["status"] == "pago"

    unpaid = operator.patch(f"/pagamentos/{banca_id}", json={"status": "nao_pago"})
    assert unpaid.json()["status"] == "nao_pago"
    assert unpaid.json()["paidAt"] is None


def test_delete_records(operator: TestClient) -> None:
    first = operator.post("/bancas", json={"nome": "Davi", "depositoCents": 1000}).json()["id"]
    second = operator.post("/bancas", json={"nome": "Eva", "depositoCents": 2000}).json()["id"]
    operator.post(f"/bancas/{second}/promote")

    assert operator.delete(f"/bancas/{first}").json() == {"ok": True}
    assert operator.delete(f"/bancas/{first}").status_code == 404
    assert operator.delete(f"/pagamentos/{second}").json() == {"ok": True}
    assert operator.delete(f"/pagamentos/{second}").status_code == 404
    assert operator.get("/bancas").json() == []
    assert operator.get("/pagamentos").json() == []


def test_lists_are_newest_first(operator: TestClient) -> None:
    for nome in ("Primeiro", "Segundo", "Terceiro"):
        operator.post("/bancas", json={"nome": nome, "depositoCents": 1000})
    nomes = [b["nome"] for b in operator.get("/bancas").json()]
    assert nomes == ["Terceiro", "Segundo", "Primeiro"]


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["provider"] == "livepix"


def test_non_ascii_csrf_header_is_rejected(operator: TestClient) -> None:
    banca_id = post_webhook(operator, paid_event("pay_csrf")).json()["id"]

    response = operator.patch(
        f"/bancas/{banca_id}",
        json={"bancaCents": 100},
        headers={"X-CSRF-Token": "tökén".encode("latin-1")},
    )
    assert response.status_code == 403
    assert response.json()["error"] == "invalid_csrf"
