# backend/tests/test_signature_sync.py
from __future__ import annotations

from fastapi.testclient import TestClient

from hunt_engine.clients.signature_service import SignatureStatus, get_signature_service
from hunt_engine.db import SessionLocal
from hunt_engine.main import create_app
from hunt_engine.models import HuntContract, PaymentItem
from hunt_engine.services import contract_lifecycle as lifecycle
from hunt_engine.workers.signature_tasks import _backoff_seconds, sync_once

from helpers import DownSigner, FakeSigner, Scenario

WEBHOOK_SECRET = "dev-webhook-secret"


def _sent_contract(db) -> HuntContract:
    s = Scenario(db)
    res = s.book()
    lifecycle.review_contract(db, principal=s.admin, contract_id=res.contract.id, action="approve")
    return lifecycle.send_for_signature(db, principal=s.admin, contract_id=res.contract.id, signer=FakeSigner())


def test_sync_advances_signed_contracts():
    db = SessionLocal()
    try:
        c = _sent_contract(db)

        res = sync_once(db, FakeSigner(SignatureStatus(client_signed=True, admin_signed=False)))
        assert res == {"checked": 1, "advanced": 1, "failed": 0}
        assert c.status == "client_signed"

        res = sync_once(db, FakeSigner(SignatureStatus(client_signed=True, admin_signed=True)))
        assert res == {"checked": 1, "advanced": 1, "failed": 0}
        assert c.status == "fully_executed"
        assert db.query(PaymentItem).count() == 1

        # nothing left to poll
        assert sync_once(db, FakeSigner())["checked"] == 0
    finally:
        db.close()


def test_sync_skips_when_service_is_down():
    db = SessionLocal()
    try:
        c = _sent_contract(db)
        res = sync_once(db, DownSigner())
        assert res == {"checked": 1, "advanced": 0, "failed": 1}
        db.refresh(c)
        assert c.status == "sent_to_signature_service"
    finally:
        db.close()


def test_backoff_is_bounded():
    assert 4 <= _backoff_seconds(0) <= 6
    assert _backoff_seconds(10) <= 144


def test_webhook_applies_status():
    db = SessionLocal()
    try:
        c = _sent_contract(db)
        contract_id, ref = c.id, c.signature_tracking_ref
    finally:
        db.close()

    client = TestClient(create_app())
    r = client.post(
        "/api/signature/webhook",
        json={"tracking_ref": ref, "client_signed": True, "admin_signed": True},
        headers={"X-Signature-Secret": WEBHOOK_SECRET},
    )
    assert r.status_code == 200, r.text
    assert r.json() == {"ok": True, "contract_id": contract_id, "status": "fully_executed"}

    db = SessionLocal()
    try:
        assert db.get(HuntContract, contract_id).status == "fully_executed"
        assert db.query(PaymentItem).filter(PaymentItem.contract_id == contract_id).count() == 1
    finally:
        db.close()


def test_webhook_rejects_wrong_secret():
    client = TestClient(create_app())
    r = client.post(
        "/api/signature/webhook",
        json={"tracking_ref": "env-1", "client_signed": True},
        headers={"X-Signature-Secret": "nope"},
    )
    assert r.status_code == 401


def test_webhook_acknowledges_unknown_envelope():
    client = TestClient(create_app())
    r = client.post(
        "/api/signature/webhook",
        json={"tracking_ref": "env-does-not-exist", "client_signed": True},
        headers={"X-Signature-Secret": WEBHOOK_SECRET},
    )
    assert r.status_code == 200
    assert r.json()["ok"] is False


def test_send_route_uses_injected_signature_service():
    db = SessionLocal()
    try:
        s = Scenario(db)
        res = s.book()
        lifecycle.review_contract(db, principal=s.admin, contract_id=res.contract.id, action="approve")
        contract_id = res.contract.id
    finally:
        db.close()

    signer = FakeSigner()
    app = create_app()
    app.dependency_overrides[get_signature_service] = lambda: signer
    client = TestClient(app)
    hdr = {"X-Outfitter-Slug": "alpha", "X-User-Email": "owner@alpha.test", "X-User-Role": "owner"}

    r = client.post(f"/api/contracts/{contract_id}/send-for-signature", headers=hdr)
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "sent_to_signature_service"
    assert r.json()["signature_tracking_ref"] == f"env-{contract_id}"
    assert signer.sent == [contract_id]

    app.dependency_overrides[get_signature_service] = lambda: DownSigner()
    r = client.post(f"/api/contracts/{contract_id}/send-for-signature", headers=hdr)
    assert r.status_code == 409
    assert r.json()["error"] == "IllegalTransition"
