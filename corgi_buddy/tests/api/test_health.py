import os

from jose import jwt

from corgi_buddy.tests.factories import auth_headers


def test_health(client):
    r = client.get("/api/health", headers={"X-Request-Id": "req-1"})
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "request_id": "req-1"}
    assert r.headers["X-Request-Id"] == "req-1"


def test_missing_token_is_unauthorized(client):
    r = client.get("/api/buddy/status")
    assert r.status_code == 401
    assert r.json()["error"] == "UNAUTHORIZED"


def test_bad_token_is_unauthorized(client):
    r = client.get("/api/buddy/status", headers={"Authorization": "Bearer nope"})
    assert r.status_code == 401


def test_token_without_usable_user_id_is_unauthorized(client):
    for claims in ({"first_name": "x"}, {"sub": "abc"}, {"sub": "-4"}):
        token = jwt.encode(claims, os.environ["JWT_SECRET_KEY"], algorithm="HS256")
        r = client.get("/api/buddy/status", headers={"Authorization": f"Bearer {token}"})
        assert r.status_code == 401, claims


def test_first_login_creates_user_from_claims(client):
    r = client.get("/api/onboarding/status", headers=auth_headers(55, "Corgi Fan", username="corgifan"))
    assert r.status_code == 200
    assert r.json()["onboarding"]["current_step"] == "welcome"

    r = client.get("/api/buddy/search?username=corgi", headers=auth_headers(56))
    (found,) = r.json()["users"]
    assert found["firstName"] == "Corgi Fan"
    assert found["telegramUsername"] == "corgifan"
