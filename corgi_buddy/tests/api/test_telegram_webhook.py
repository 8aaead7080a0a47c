import pytest

from corgi_buddy.api.v1.telegram import parse_callback_data
from corgi_buddy.tests.api.test_reward_flow import ALICE, BOB, become_buddies, seed_bank
from corgi_buddy.tests.factories import auth_headers

SECRET = {"X-Telegram-Bot-Api-Secret-Token": "hook-secret"}


def callback(data, from_id=BOB):
    return {
        "update_id": 1,
        "callback_query": {
            "id": "cb-1",
            "from": {"id": from_id, "is_bot": False, "first_name": "Bob"},
            "data": data,
            "message": {"message_id": 77, "chat": {"id": from_id}},
        },
    }


@pytest.mark.parametrize(
    "data, expected",
    [
        ("approve:12", (True, 12)),
        ("reject:3", (False, 3)),
        ("approve:x", None),
        ("delete:3", None),
        ("approve:-1", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_callback_data(data, expected):
    assert parse_callback_data(data) == expected


def test_wrong_secret_is_rejected(client):
    r = client.post("/api/telegram/webhook", json={"update_id": 1}, headers={"X-Telegram-Bot-Api-Secret-Token": "x"})
    assert r.status_code == 401


def test_approve_button_confirms_sighting(client, session_factory, notifications):
    seed_bank(session_factory)
    become_buddies(client)
    sid = client.post("/api/corgi/sightings", json={"corgiCount": 3}, headers=auth_headers(ALICE)).json()["id"]

    r = client.post("/api/telegram/webhook", json=callback(f"approve:{sid}"), headers=SECRET)

    assert r.status_code == 200
    assert r.json() == {"ok": True}
    history = client.get("/api/corgi/sightings", headers=auth_headers(ALICE)).json()["sightings"]
    assert history[0]["status"] == "confirmed"

    methods = notifications.methods()
    assert "answerCallbackQuery" in methods
    assert "editMessageReplyMarkup" in methods


def test_reporter_cannot_approve_own_sighting(client, session_factory, notifications):
    seed_bank(session_factory)
    become_buddies(client)
    sid = client.post("/api/corgi/sightings", json={"corgiCount": 3}, headers=auth_headers(ALICE)).json()["id"]

    r = client.post("/api/telegram/webhook", json=callback(f"approve:{sid}", from_id=ALICE), headers=SECRET)

    assert r.status_code == 200
    answers = [p for m, p in notifications.calls if m == "answerCallbackQuery"]
    assert answers[-1]["show_alert"] is True
    history = client.get("/api/corgi/sightings", headers=auth_headers(ALICE)).json()["sightings"]
    assert history[0]["status"] == "pending"


def test_updates_without_callbacks_are_acknowledged(client):
    r = client.post("/api/telegram/webhook", json={"update_id": 5}, headers=SECRET)
    assert r.json() == {"ok": True}
