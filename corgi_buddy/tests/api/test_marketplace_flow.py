from corgi_buddy.tests.api.test_reward_flow import ALICE, BOB, become_buddies
from corgi_buddy.tests.factories import auth_headers, wallet

CAROL = 1003


def connect(client, user_id):
    r = client.post("/api/wallet/connect", json={"walletAddress": wallet(user_id)}, headers=auth_headers(user_id))
    assert r.status_code == 200, r.text


def test_wish_purchase_lifecycle(client, notifications):
    become_buddies(client)
    connect(client, ALICE)
    connect(client, CAROL)

    r = client.post(
        "/api/wishes",
        json={"description": "Walk my corgi", "proposedAmount": 12.5},
        headers=auth_headers(ALICE),
    )
    assert r.status_code == 201, r.text
    wish = r.json()
    assert wish["proposedAmount"] == "12.50"
    assert wish["status"] == "pending"

    r = client.get("/api/wishes/pending", headers=auth_headers(BOB))
    assert [w["id"] for w in r.json()["wishes"]] == [wish["id"]]

    r = client.post(f"/api/wishes/{wish['id']}/respond", json={"accepted": True}, headers=auth_headers(BOB))
    assert r.json()["status"] == "accepted"

    r = client.get("/api/marketplace", headers=auth_headers(CAROL))
    assert [w["id"] for w in r.json()["wishes"]] == [wish["id"]]

    r = client.post(f"/api/marketplace/{wish['id']}/purchase", headers=auth_headers(CAROL))
    assert r.status_code == 201, r.text
    purchase = r.json()
    assert purchase["tonTransaction"] == {
        "to": wallet(ALICE),
        "amount": "12500000000",
        "payload": f"corgi-wish:{wish['id']}:buyer:{CAROL}",
    }

    r = client.post(
        f"/api/transactions/{purchase['transactionId']}/confirm",
        json={"transactionHash": "0xfeed"},
        headers=auth_headers(CAROL),
    )
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "completed"

    r = client.get("/api/wishes", headers=auth_headers(ALICE))
    (mine,) = r.json()["wishes"]
    assert mine["status"] == "purchased"
    assert mine["purchasedBy"] == CAROL

    assert client.get("/api/marketplace", headers=auth_headers(CAROL)).json()["wishes"] == []
    texts = [p["text"] for m, p in notifications.calls if m == "sendMessage" and p["chat_id"] == ALICE]
    assert any("purchased" in t for t in texts)


def test_wish_validation(client):
    become_buddies(client)
    headers = auth_headers(ALICE)

    cases = [
        {"description": "x" * 501, "proposedAmount": 1},
        {"description": "", "proposedAmount": 1},
        {"description": "ok", "proposedAmount": 0},
        {"description": "ok", "proposedAmount": 1000.01},
    ]
    for body in cases:
        r = client.post("/api/wishes", json=body, headers=headers)
        assert r.status_code == 400, body
        assert r.json()["error"] == "VALIDATION_ERROR"

    ok = client.post("/api/wishes", json={"description": "x" * 500, "proposedAmount": 1000}, headers=headers)
    assert ok.status_code == 201


def test_transaction_listing_limit_bounds(client):
    headers = auth_headers(ALICE)
    assert client.get("/api/transactions?limit=0", headers=headers).status_code == 400
    assert client.get("/api/transactions?limit=101", headers=headers).status_code == 400
    assert client.get("/api/transactions?type=gift", headers=headers).status_code == 400
    assert client.get("/api/transactions?limit=100&type=reward", headers=headers).status_code == 200


def test_buddy_search_and_cancel(client):
    client.get("/api/onboarding/status", headers=auth_headers(BOB, "Bob", username="bobby"))

    r = client.get("/api/buddy/search?username=bob", headers=auth_headers(ALICE))
    assert [u["id"] for u in r.json()["users"]] == [BOB]

    r = client.post("/api/buddy/request", json={"username": "bobby"}, headers=auth_headers(ALICE))
    assert r.status_code == 201

    r = client.get("/api/buddy/status", headers=auth_headers(BOB))
    assert r.json()["status"] == "pending"
    assert r.json()["isInitiator"] is False

    r = client.post("/api/buddy/cancel", headers=auth_headers(ALICE))
    assert r.status_code == 200
    assert client.get("/api/buddy/status", headers=auth_headers(ALICE)).json()["status"] == "no_buddy"
