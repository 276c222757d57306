"""
HTTP-level tests: routing, auth gates and error mapping.
"""
from functools import partial

import pytest

from upi_gateway import main, payment_service, payments, pool
from upi_gateway.auth import create_token
from upi_gateway.principals import set_sub_admin_active

from .conftest import PASSWORD


@pytest.fixture
def upi(db):
    return pool.create_address(db, "demo@ybl")


def _generate(client, amount="100.00", **extra):
    resp = client.post("/payment/generate", json={"amount": amount, **extra})
    assert resp.status_code == 201, resp.text
    return resp.json()


# ---------- Payment ----------

def test_generate_returns_qr_and_pending_status(client, upi):
    body = _generate(client, "100.00", description="Coffee")

    assert body["status"] == "pending"
    assert body["amount"] == "100.00"
    assert body["upi_id"] == "demo@ybl"
    assert body["txn_id"].startswith("TXN")
    assert body["qr_code"].startswith("data:image/png;base64,")


@pytest.mark.parametrize("amount", ["0", "-10"])
def test_generate_rejects_non_positive_amount(client, upi, amount):
    resp = client.post("/payment/generate", json={"amount": amount})
    assert resp.status_code == 400
    assert resp.json() == {"detail": "Amount must be greater than 0", "code": "invalid_amount", "field": "amount"}


def test_generate_without_active_upi_id(client):
    resp = client.post("/payment/generate", json={"amount": "10"})
    assert resp.status_code == 503
    assert resp.json()["code"] == "no_address_available"


def test_rendering_failure_does_not_leak_cause(client, upi, monkeypatch):
    def broken(uri):
        raise OSError("/var/lib/secret/font.ttf missing")

    monkeypatch.setattr(payments, "create_request", partial(payment_service.create_request, renderer=broken))

    resp = client.post("/payment/generate", json={"amount": "10"})

    assert resp.status_code == 500
    assert resp.json() == {"detail": "QR rendering failed", "code": "rendering_failed"}
    assert "secret" not in resp.text


def test_status_poll(client, upi):
    txn = _generate(client)
    resp = client.get(f"/payment/status/{txn['txn_id']}")
    assert resp.status_code == 200
    assert resp.json()["status"] == "pending"
    assert resp.json()["amount"] == "100.00"

    assert client.get("/payment/status/TXN0").status_code == 404


def test_confirm_requires_token(client, upi):
    txn = _generate(client)

    assert client.post(f"/payment/confirm/{txn['txn_id']}").status_code == 401
    resp = client.post(f"/payment/confirm/{txn['txn_id']}", headers={"Authorization": "Bearer nope"})
    assert resp.status_code == 401
    resp = client.post(f"/payment/confirm/{txn['txn_id']}", headers={"Authorization": "Token abc"})
    assert resp.status_code == 401


def test_confirm_then_reject_conflicts(client, upi, sub_headers):
    txn = _generate(client)

    resp = client.post(f"/payment/confirm/{txn['txn_id']}", headers=sub_headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "success"

    resp = client.post(f"/payment/reject/{txn['txn_id']}", headers=sub_headers)
    assert resp.status_code == 409
    assert resp.json()["code"] == "already_finalized"
    assert client.get(f"/payment/status/{txn['txn_id']}").json()["status"] == "success"


def test_confirm_unknown_transaction(client, sub_headers):
    assert client.post("/payment/confirm/TXN0", headers=sub_headers).status_code == 404


# ---------- Webhook ----------

def test_sms_webhook_failed_updates_stats(client, upi, sub_headers):
    _generate(client, "75.00")
    txn = _generate(client, "50.00")
    before = client.get("/admin/stats", headers=sub_headers).json()["pending_transactions"]

    resp = client.post("/webhook/sms", json={"txn_id": txn["txn_id"], "status": "failed"})
    assert resp.status_code == 200
    assert resp.json()["status"] == "failed"

    after = client.get("/admin/stats", headers=sub_headers).json()["pending_transactions"]
    assert after == before - 1


def test_sms_webhook_errors(client, upi):
    txn = _generate(client)

    resp = client.post("/webhook/sms", json={"txn_id": "TXN0", "status": "success"})
    assert resp.status_code == 404

    resp = client.post("/webhook/sms", json={"txn_id": txn["txn_id"], "status": "maybe"})
    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_status"

    resp = client.post(
        "/webhook/sms", json={"txn_id": txn["txn_id"], "status": "success", "bank_reference": "UTR42"}
    )
    assert resp.json()["bank_reference"] == "UTR42"

    resp = client.post("/webhook/sms", json={"txn_id": txn["txn_id"], "status": "failed"})
    assert resp.status_code == 409


def test_simulate_hidden_outside_demo_mode(client, upi, monkeypatch):
    monkeypatch.setattr(payments, "DEMO_MODE", False)
    txn = _generate(client)
    assert client.post(f"/payment/simulate/{txn['txn_id']}").status_code == 404


def test_simulate_goes_through_gateway(client, upi, sub_headers, monkeypatch):
    monkeypatch.setattr(payments, "DEMO_MODE", True)
    txn = _generate(client)
    client.post(f"/payment/reject/{txn['txn_id']}", headers=sub_headers)

    resp = client.post(f"/payment/simulate/{txn['txn_id']}")
    assert resp.status_code == 409
    assert client.get(f"/payment/status/{txn['txn_id']}").json()["status"] == "failed"


# ---------- Admin auth ----------

def test_login_and_me(client, sub_admin):
    resp = client.post("/admin/login", json={"username": "clerk", "password": "wrong"})
    assert resp.status_code == 401

    resp = client.post("/admin/login", json={"username": "clerk", "password": PASSWORD})
    assert resp.status_code == 200
    body = resp.json()
    assert body["user"]["role"] == "sub_admin"
    assert body["user"]["last_login_at"] is not None
    assert "password" not in body["user"] and "password_hash" not in body["user"]

    me = client.get("/admin/me", headers={"Authorization": f"Bearer {body['token']}"})
    assert me.status_code == 200
    assert me.json()["username"] == "clerk"


def test_deactivated_principal_is_locked_out(client, db, sub_admin, sub_headers):
    set_sub_admin_active(db, sub_admin.id, False)

    assert client.get("/admin/me", headers=sub_headers).status_code == 401
    resp = client.post("/admin/login", json={"username": "clerk", "password": PASSWORD})
    assert resp.status_code == 401


def test_sub_admin_is_forbidden_from_super_routes(client, sub_headers):
    calls = [
        client.get("/admin/upiids", headers=sub_headers),
        client.post("/admin/upiids", json={"identifier": "x@ybl"}, headers=sub_headers),
        client.post("/admin/upiids/bulk", json={"identifiers": ["x@ybl"]}, headers=sub_headers),
        client.get("/admin/subadmins", headers=sub_headers),
        client.post("/admin/subadmins", json={"username": "u", "password": "pppppp"}, headers=sub_headers),
    ]
    for resp in calls:
        assert resp.status_code == 403
        assert resp.json()["code"] == "forbidden"


def test_token_with_unknown_role_rejected(client, super_admin):
    super_admin.role = "emperor"
    headers = {"Authorization": f"Bearer {create_token(super_admin)}"}
    assert client.get("/admin/me", headers=headers).status_code == 401


# ---------- UPI IDs ----------

def test_upi_id_management(client, super_headers):
    resp = client.post("/admin/upiids", json={"identifier": "shop@phonepe"}, headers=super_headers)
    assert resp.status_code == 201
    address_id = resp.json()["id"]

    resp = client.post("/admin/upiids", json={"identifier": "shop@phonepe"}, headers=super_headers)
    assert resp.status_code == 409
    assert resp.json()["code"] == "duplicate_identifier"

    resp = client.post("/admin/upiids", json={"identifier": "not-an-upi-id"}, headers=super_headers)
    assert resp.status_code == 400

    resp = client.patch(f"/admin/upiids/{address_id}/toggle", json={"active": False}, headers=super_headers)
    assert resp.json()["active"] is False

    listing = client.get("/admin/upiids", headers=super_headers).json()
    assert [a["identifier"] for a in listing] == ["shop@phonepe"]

    assert client.delete(f"/admin/upiids/{address_id}", headers=super_headers).status_code == 204
    assert client.delete(f"/admin/upiids/{address_id}", headers=super_headers).status_code == 404


def test_bulk_upi_ids(client, super_headers):
    client.post("/admin/upiids", json={"identifier": "demo@ybl"}, headers=super_headers)

    resp = client.post(
        "/admin/upiids/bulk",
        json={"identifiers": ["a@ybl", "demo@ybl", "b@paytm"]},
        headers=super_headers,
    )
    assert resp.status_code == 200
    statuses = [r["status"] for r in resp.json()["results"]]
    assert statuses == ["success", "error", "success"]

    listing = client.get("/admin/upiids", headers=super_headers).json()
    assert {a["identifier"] for a in listing} == {"demo@ybl", "a@ybl", "b@paytm"}


def test_deleting_upi_id_keeps_transaction_label(client, db, upi, super_headers, sub_headers):
    txn = _generate(client)
    client.delete(f"/admin/upiids/{upi.id}", headers=super_headers)

    rows = client.get("/admin/transactions", headers=sub_headers).json()
    assert rows[0]["txn_id"] == txn["txn_id"]
    assert rows[0]["upi_id"] == "demo@ybl"


# ---------- Sub-admins ----------

def test_create_sub_admin(client, super_headers):
    resp = client.post("/admin/subadmins", json={"username": "newbie", "password": "hunter22"}, headers=super_headers)
    assert resp.status_code == 201
    assert resp.json()["role"] == "sub_admin"

    resp = client.post("/admin/subadmins", json={"username": "newbie", "password": "hunter22"}, headers=super_headers)
    assert resp.status_code == 409

    resp = client.post("/admin/login", json={"username": "newbie", "password": "hunter22"})
    assert resp.status_code == 200

    names = [a["username"] for a in client.get("/admin/subadmins", headers=super_headers).json()]
    assert names == ["newbie"]


def test_toggle_sub_admin(client, super_headers, super_admin, sub_admin):
    resp = client.patch(f"/admin/subadmins/{sub_admin.id}/toggle", json={"active": False}, headers=super_headers)
    assert resp.status_code == 200
    assert resp.json()["active"] is False

    # super admins are not managed through this route
    resp = client.patch(f"/admin/subadmins/{super_admin.id}/toggle", json={"active": False}, headers=super_headers)
    assert resp.status_code == 404


# ---------- Listings & analytics ----------

def test_transaction_listings(client, upi, sub_headers):
    first = _generate(client, "10")
    second = _generate(client, "20")
    client.post(f"/payment/confirm/{first['txn_id']}", headers=sub_headers)

    all_rows = client.get("/admin/transactions", headers=sub_headers).json()
    assert [r["txn_id"] for r in all_rows] == [second["txn_id"], first["txn_id"]]

    pending = client.get("/admin/transactions/pending", headers=sub_headers).json()
    assert [r["txn_id"] for r in pending] == [second["txn_id"]]

    history = client.get("/admin/transactions/history?status=success&limit=5", headers=sub_headers).json()
    assert [r["txn_id"] for r in history] == [first["txn_id"]]

    bad = client.get("/admin/transactions/history?status=lost", headers=sub_headers)
    assert bad.status_code == 400


def test_analytics_endpoint(client, upi, sub_headers):
    txn = _generate(client, "40.00")
    client.post("/webhook/sms", json={"txn_id": txn["txn_id"], "status": "success"})

    resp = client.get("/admin/analytics?period=24h", headers=sub_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["period"] == "24h"
    assert body["total_revenue"] == "40.00"
    assert body["successful_transactions"] == 1
    assert body["average_transaction_value"] == "40.00"
    assert len(body["daily_stats"]) == 1

    assert client.get("/admin/analytics", headers=sub_headers).json()["period"] == "7d"
    assert client.get("/admin/analytics?period=1y", headers=sub_headers).status_code == 400
    assert client.get("/admin/analytics").status_code == 401


# ---------- Seed ----------

def test_seed_disabled_by_default(client, monkeypatch):
    monkeypatch.setattr(main, "ENABLE_SEED", False)
    assert client.post("/seed").status_code == 404


def test_seed_is_idempotent(client, monkeypatch):
    monkeypatch.setattr(main, "ENABLE_SEED", True)

    first = client.post("/seed").json()
    assert first["admins"] == ["superadmin", "subadmin"]
    assert len(first["upi_ids"]) == 4

    second = client.post("/seed").json()
    assert second["admins"] == [] and second["upi_ids"] == []

    resp = client.post("/admin/login", json={"username": "superadmin", "password": "123456"})
    assert resp.json()["user"]["role"] == "super_admin"


def test_healthz(client):
    assert client.get("/healthz").json() == {"ok": True}
