from sqlalchemy import select

from corgi_buddy.models.pending_reward import PendingReward
from corgi_buddy.tests.api.test_reward_flow import ALICE, BOB, become_buddies, seed_bank
from corgi_buddy.tests.factories import BANK_ADDRESS, auth_headers

ADMIN = {"X-Admin-Key": "admin-key"}


def test_admin_key_required(client):
    assert client.post("/api/admin/reconcile").status_code == 401
    assert client.post("/api/admin/reconcile", headers={"X-Admin-Key": "wrong"}).status_code == 401


def test_reconcile_returns_report(client):
    r = client.post("/api/admin/reconcile", headers=ADMIN)
    assert r.status_code == 200
    assert r.json()["interrupted"] is False
    assert r.json()["sightings_settled"] == 0


def test_initialize_bank(client):
    r = client.post(
        "/api/admin/bank/initialize",
        json={"walletAddress": BANK_ADDRESS, "currentBalance": 42},
        headers=ADMIN,
    )
    assert r.status_code == 200, r.text
    assert r.json()["currentBalance"] == 42
    assert client.get("/api/bank/status", headers=auth_headers(ALICE)).json()["walletAddress"] == BANK_ADDRESS


def test_bank_status_before_initialization_is_not_found(client):
    r = client.get("/api/bank/status", headers=auth_headers(ALICE))
    assert r.status_code == 404
    assert r.json()["error"] == "BANK_WALLET_NOT_FOUND"


def test_cancelled_pending_reward_is_not_reissued(client, session_factory, chain):
    seed_bank(session_factory)
    become_buddies(client)
    sid = client.post("/api/corgi/sightings", json={"corgiCount": 2}, headers=auth_headers(ALICE)).json()["id"]
    client.post(f"/api/corgi/confirm/{sid}", json={"confirmed": True}, headers=auth_headers(BOB))

    r = client.get("/api/admin/pending-rewards?status=pending", headers=ADMIN)
    (reward,) = r.json()["rewards"]
    assert reward["sightingId"] == sid

    r = client.post(f"/api/admin/pending-rewards/{reward['id']}/cancel", headers=ADMIN)
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"

    again = client.post(f"/api/admin/pending-rewards/{reward['id']}/cancel", headers=ADMIN)
    assert again.status_code == 409

    report = client.post("/api/admin/reconcile", headers=ADMIN).json()
    assert report["sightings_settled"] == 0
    assert chain.sent == []

    db = session_factory()
    try:
        rewards = db.execute(select(PendingReward)).scalars().all()
        assert [r.status for r in rewards] == ["cancelled"]
    finally:
        db.close()
