import asyncio

import pytest
from fastapi.testclient import TestClient

from conftest import FakeExchange, RecordingStore
from profile_sync.app import create_app
from profile_sync.services.identity import GoogleIdentityProvider
from profile_sync.services.profile_store import ProfileStore
from profile_sync.services.session_controller import SessionController


def fake_verifier(raw_token):
    if raw_token != "good-token":
        raise ValueError("Token expired")
    return {"sub": "u1", "email": "a@x.com", "picture": "http://p"}


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def app_instance(store):
    provider = GoogleIdentityProvider("client-id", verifier=fake_verifier)
    controller = SessionController(provider, FakeExchange(), ProfileStore(store))
    return create_app(controller=controller, identity_provider=provider)


def _sign_in(client):
    r = client.post("/session/sign-in")
    assert r.status_code == 202
    assert r.json() == {"status": "signing_in"}
    r = client.post("/session/sign-in/result", json={"id_token": "good-token"})
    assert r.status_code == 200
    return r.json()


def test_sign_in_edit_and_sign_out_over_http(app_instance, store):
    with TestClient(app_instance) as client:
        assert client.get("/session").json() == {"status": "signed_out"}

        body = _sign_in(client)
        assert body["status"] == "signed_in"
        assert body["identity"] == {"id": "u1", "email": "a@x.com", "photoUrl": "http://p"}
        assert body["profile"]["displayName"] == "Username"

        r = client.post("/profile/edit")
        assert r.json()["editing"] is True
        assert r.json()["pendingDisplayName"] == "Username"

        r = client.post("/profile/edit/commit", json={"display_name": "Alicia"})
        assert r.status_code == 202
        assert r.json()["profile"]["displayName"] == "Alicia"
        assert r.json()["editing"] is False

        notices = client.get("/notices").json()["notices"]
        assert notices[0] == {"level": "info", "message": "Successfully logged in!", "error": None}

    snapshot = asyncio.run(store.get("users", "u1"))
    assert snapshot.data["displayName"] == "Alicia"


def test_rejected_token_returns_to_signed_out_with_notice(app_instance):
    with TestClient(app_instance) as client:
        client.post("/session/sign-in")
        r = client.post("/session/sign-in/result", json={"id_token": "forged"})

        assert r.json() == {"status": "signed_out"}
        notices = client.get("/notices").json()["notices"]
        assert len(notices) == 1
        assert notices[0]["level"] == "error"
        assert notices[0]["error"] == "ProviderError"


def test_cancelled_sign_in_is_silent(app_instance):
    with TestClient(app_instance) as client:
        client.post("/session/sign-in")
        r = client.post("/session/sign-in/cancel")

        assert r.json() == {"status": "signed_out"}
        assert client.get("/notices").json() == {"notices": []}


def test_conflicting_transitions_return_409(app_instance):
    with TestClient(app_instance) as client:
        assert client.post("/session/sign-in/result", json={"id_token": "good-token"}).status_code == 409
        assert client.post("/profile/edit").status_code == 409
        assert client.post("/session/sign-out").status_code == 409

        _sign_in(client)
        assert client.post("/session/sign-in").status_code == 409
        assert client.post("/profile/edit/cancel").status_code == 409


def test_blank_display_name_is_unprocessable(app_instance):
    with TestClient(app_instance) as client:
        _sign_in(client)
        client.post("/profile/edit")

        r = client.post("/profile/edit/commit", json={"display_name": "  "})

        assert r.status_code == 422
        assert client.get("/session").json()["editing"] is True


def test_sign_out_over_http(app_instance):
    with TestClient(app_instance) as client:
        _sign_in(client)

        r = client.post("/session/sign-out")

        assert r.json() == {"status": "signed_out"}
        assert client.post("/session/sign-in").status_code == 202
