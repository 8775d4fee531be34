# tests/test_google_oauth.py
from urllib.parse import parse_qs, urlparse
from uuid import uuid4

import pytest
from httpx import AsyncClient

from app.core.config import settings

pytestmark = pytest.mark.asyncio


@pytest.fixture
def google_configured(monkeypatch):
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_ID", "client-id", raising=False)
    monkeypatch.setattr(settings, "GOOGLE_CLIENT_SECRET", "client-secret", raising=False)


async def _start(client: AsyncClient) -> str:
    r = await client.get("/v1/user/google")
    assert r.status_code == 302, r.text
    location = r.headers["location"]
    assert location.startswith("https://accounts.google.com/")
    return parse_qs(urlparse(location).query)["state"][0]


async def test_google_not_configured(client: AsyncClient):
    r = await client.get("/v1/user/google")
    assert r.status_code == 503


async def test_google_callback_creates_user_and_authorizes(client: AsyncClient, google_configured, monkeypatch):
    email = f"google-{uuid4().hex[:10]}@example.com"

    async def _fake_profile(code: str):
        assert code == "auth-code"
        return {"email": email, "email_verified": True, "given_name": "Gabi", "family_name": "Ruiz"}

    monkeypatch.setattr("app.services.oauth.fetch_google_profile", _fake_profile)

    state = await _start(client)
    r = await client.get("/v1/user/google/callback", params={"code": "auth-code", "state": state})
    assert r.status_code == 200, r.text
    assert r.json()["user"]["email"] == email
    assert r.cookies.get("access_token") and r.cookies.get("refresh_token")

    r = await client.get("/v1/user/me")
    assert r.status_code == 200
    assert r.json()["name"] == "Gabi"

    # 同一個 Google 帳號再登入一次不會重複建人
    state = await _start(client)
    r = await client.get("/v1/user/google/callback", params={"code": "auth-code", "state": state})
    assert r.status_code == 200, r.text

    r = await client.post("/v1/user/logout")
    assert r.status_code == 200


async def test_google_callback_rejects_bad_state(client: AsyncClient, google_configured):
    await _start(client)
    r = await client.get("/v1/user/google/callback", params={"code": "auth-code", "state": "forged"})
    assert r.status_code == 401


async def test_google_callback_requires_code(client: AsyncClient, google_configured):
    state = await _start(client)
    r = await client.get("/v1/user/google/callback", params={"state": state})
    assert r.status_code == 400
