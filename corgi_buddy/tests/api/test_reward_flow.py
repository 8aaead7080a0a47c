from corgi_buddy.tests.factories import UNIT, auth_headers, make_bank, wallet

ALICE = 1001
BOB = 1002


def seed_bank(session_factory, balance_coins=1000):
    db = session_factory()
    try:
        make_bank(db, balance_coins=balance_coins)
    finally:
        db.close()


def become_buddies(client, a=ALICE, b=BOB):
    client.get("/api/onboarding/status", headers=auth_headers(b))
    r = client.post("/api/buddy/request", json={"targetUserId": b}, headers=auth_headers(a))
    assert r.status_code == 201, r.text
    r = client.post("/api/buddy/accept", json={"buddyPairId": r.json()["id"]}, headers=auth_headers(b))
    assert r.status_code == 200, r.text
    return r.json()


def test_sighting_confirmation_pays_reward_end_to_end(client, session_factory, chain, notifications):
    seed_bank(session_factory)
    alice = auth_headers(ALICE, "Alice")
    bob = auth_headers(BOB, "Bob")

    r = client.post("/api/wallet/connect", json={"walletAddress": wallet(ALICE)}, headers=alice)
    assert r.status_code == 200, r.text
    assert r.json()["connected"] is True

    pair = become_buddies(client)
    assert pair["status"] == "active"

    r = client.get("/api/onboarding/status", headers=alice)
    assert r.json()["onboarding"] == {"wallet_connected": True, "buddy_confirmed": True, "current_step": "complete"}

    r = client.post("/api/corgi/sightings", json={"corgiCount": 5}, headers=alice)
    assert r.status_code == 201, r.text
    sighting_id = r.json()["id"]
    assert r.json()["buddyId"] == BOB

    r = client.get("/api/corgi/confirmations", headers=bob)
    assert [s["id"] for s in r.json()["confirmations"]] == [sighting_id]

    r = client.post(f"/api/corgi/confirm/{sighting_id}", json={"confirmed": True}, headers=bob)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["status"] == "confirmed"
    assert body["rewardEarned"] == 5
    assert body["settlementStatus"] == "completed"

    r = client.get("/api/transactions", headers=alice)
    (tx,) = r.json()["transactions"]
    assert tx["transactionType"] == "reward"
    assert tx["status"] == "completed"
    assert tx["amount"] == 5 * UNIT
    assert tx["toWallet"] == wallet(ALICE)

    r = client.get("/api/bank/status", headers=alice)
    assert r.json()["totalDistributed"] == 5 * UNIT
    assert r.json()["currentBalance"] == 995 * UNIT

    r = client.get("/api/corgi/sightings", headers=alice)
    assert r.json()["totalRewards"] == "5"

    assert len(chain.sent) == 1
    sent = [p for m, p in notifications.calls if m == "sendMessage"]
    assert any(p["chat_id"] == BOB and "reply_markup" in p for p in sent)
    assert any(p["chat_id"] == ALICE and "Reward: 5" in p["text"] for p in sent)


def test_confirming_twice_is_a_conflict(client, session_factory):
    seed_bank(session_factory)
    become_buddies(client)
    r = client.post("/api/corgi/sightings", json={"corgiCount": 1}, headers=auth_headers(ALICE))
    sid = r.json()["id"]

    first = client.post(f"/api/corgi/confirm/{sid}", json={"confirmed": False}, headers=auth_headers(BOB))
    second = client.post(f"/api/corgi/confirm/{sid}", json={"confirmed": True}, headers=auth_headers(BOB))

    assert first.status_code == 200
    assert first.json()["status"] == "denied"
    assert "rewardEarned" not in first.json()
    assert second.status_code == 409
    assert second.json()["error"] == "ALREADY_RESPONDED"


def test_reward_without_wallet_waits_for_connection(client, session_factory, chain):
    seed_bank(session_factory)
    become_buddies(client)
    r = client.post("/api/corgi/sightings", json={"corgiCount": 2}, headers=auth_headers(ALICE))
    sid = r.json()["id"]

    r = client.post(f"/api/corgi/confirm/{sid}", json={"confirmed": True}, headers=auth_headers(BOB))
    assert r.json()["settlementStatus"] == "pending_reward"
    assert "rewardEarned" not in r.json()
    assert chain.sent == []

    r = client.post("/api/wallet/connect", json={"walletAddress": wallet(ALICE)}, headers=auth_headers(ALICE))
    assert r.json()["pendingRewardsProcessed"] == 1
    assert chain.sent[0][1] == 2 * UNIT


def test_sighting_count_validation(client, session_factory):
    seed_bank(session_factory)
    become_buddies(client)
    headers = auth_headers(ALICE)

    for bad in (0, 101, "5", 2.5):
        r = client.post("/api/corgi/sightings", json={"corgiCount": bad}, headers=headers)
        assert r.status_code == 400, bad
        assert r.json()["error"] == "VALIDATION_ERROR"

    assert client.post("/api/corgi/sightings", json={"corgiCount": 100}, headers=headers).status_code == 201


def test_sighting_requires_buddy(client):
    r = client.post("/api/corgi/sightings", json={"corgiCount": 1}, headers=auth_headers(ALICE))
    assert r.status_code == 400
    assert r.json()["error"] == "NO_ACTIVE_BUDDY"


def test_unknown_sighting_is_not_found(client):
    r = client.post("/api/corgi/confirm/999", json={"confirmed": True}, headers=auth_headers(BOB))
    assert r.status_code == 404
    assert r.json()["error"] == "SIGHTING_NOT_FOUND"
