# tests/test_auth_e2e.py
import time
from uuid import uuid4

import pytest
from httpx import AsyncClient
from jose import jwt  # 使用 python-jose

from app.core.config import settings
from app.db.session import AsyncSessionLocal
from app.repositories.auth_repository import find_auth_by_id_user
from app.repositories.invalid_token_repository import is_token_invalidated
from app.repositories.user_repository import find_user_by_email

pytestmark = pytest.mark.asyncio


def _email() -> str:
    return f"e2e-{uuid4().hex[:10]}@example.com"


async def _register(client: AsyncClient, email: str, password: str = "pw1"):
    return await client.post(
        "/v1/user/register",
        json={"email": email, "password": password, "name": "Ana", "last_name": "Lopez"},
    )


async def _login(client: AsyncClient, email: str, password: str):
    return await client.post("/v1/user/login", json={"email": email, "password": password})


async def _me(client: AsyncClient, token: str = None):
    headers = {"Authorization": f"Bearer {token}"} if token else None
    return await client.get("/v1/user/me", headers=headers)


# ✅ 會自動使用 tests/conftest.py 的 AsyncClient
async def test_register_me_logout_flow(client: AsyncClient):
    """整合測試：register → me（cookie）→ logout → 舊 token 重放應 401"""
    email = _email()

    r = await _register(client, email)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["user"]["email"] == email
    assert "password" not in body["user"] and "id_user" not in body["user"]
    access = r.cookies.get("access_token")
    refresh = r.cookies.get("refresh_token")
    assert access and refresh

    # cookie 由 client 自動帶上
    r = await _me(client)
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["email"] == email
    assert data["name"] == "Ana"
    assert "password" not in data and "id_user" not in data

    r = await client.post("/v1/user/logout")
    assert r.status_code == 200, r.text
    assert r.json()["message"] == "You have successfully logged out"
    assert client.cookies.get("access_token") is None

    # 簽章與 exp 都還有效，但已列入黑名單
    r = await _me(client, access)
    assert r.status_code == 401
    r = await client.post("/v1/user/refresh_token", json={"refresh_token": refresh})
    assert r.status_code == 401


async def test_register_duplicate_email(client: AsyncClient):
    email = _email()
    r = await _register(client, email)
    assert r.status_code == 200, r.text

    r = await _register(client, email, password="other")
    assert r.status_code == 400
    assert r.json()["detail"] == "User already exists"

    # 原本的密碼仍可登入（沒有產生重複帳號）
    r = await _login(client, email, "pw1")
    assert r.status_code == 200, r.text


async def test_login_failures_share_message(client: AsyncClient):
    email = _email()
    await _register(client, email)

    wrong_password = await _login(client, email, "nope")
    unknown_email = await _login(client, _email(), "pw1")

    assert wrong_password.status_code == unknown_email.status_code == 404
    assert wrong_password.json() == unknown_email.json() == {"detail": "Email or password are incorrect"}


async def test_login_sets_cookies_and_rotates_refresh(client: AsyncClient):
    email = _email()
    r = await _register(client, email)
    first_refresh = r.cookies.get("refresh_token")

    client.cookies.clear()
    r = await _login(client, email, "pw1")
    assert r.status_code == 200, r.text
    assert r.cookies.get("access_token")
    second_refresh = r.cookies.get("refresh_token")
    assert second_refresh and second_refresh != first_refresh

    # 新的登入覆寫 refresh：舊的那組不能再換 token
    client.cookies.clear()
    r = await client.post("/v1/user/refresh_token", json={"refresh_token": first_refresh})
    assert r.status_code == 401


async def test_refresh_token_rotation(client: AsyncClient):
    r = await _register(client, _email())
    old_refresh = r.cookies.get("refresh_token")

    r = await client.post("/v1/user/refresh_token")
    assert r.status_code == 200, r.text
    new_access = r.cookies.get("access_token")
    assert r.cookies.get("refresh_token") != old_refresh

    r = await _me(client, new_access)
    assert r.status_code == 200

    client.cookies.clear()
    r = await client.post("/v1/user/refresh_token", json={"refresh_token": old_refresh})
    assert r.status_code == 401


async def test_logout_without_session_still_clears(client: AsyncClient):
    r = await client.post("/v1/user/logout")
    assert r.status_code == 200
    assert r.json()["message"] == "You have successfully logged out"


async def test_jwt_decode_errors_and_expired(client: AsyncClient):
    """JWT 解析錯誤／過期／type 錯誤都應 401"""
    r = await _me(client, "not.a.jwt")
    assert r.status_code == 401

    now = int(time.time())
    payload = {"sub": "1", "id_user": 1, "type": "access", "exp": now - 1, "iat": now - 2}
    expired = jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    r = await _me(client, expired)
    assert r.status_code == 401

    # refresh token 不能拿來當 access token
    r = await _register(client, _email())
    refresh = r.cookies.get("refresh_token")
    client.cookies.clear()
    r = await _me(client, refresh)
    assert r.status_code == 401


async def test_feedback_requires_auth(client: AsyncClient):
    r = await client.post("/v1/user/feedback", json={"comment": "great app"})
    assert r.status_code == 401

    await _register(client, _email())
    r = await client.post("/v1/user/feedback", json={"comment": "great app"})
    assert r.status_code == 201, r.text
    assert r.json()["message"] == "Feedback sent"


def _expired_access(id_user: int) -> str:
    now = int(time.time())
    payload = {"sub": str(id_user), "id_user": id_user, "type": "access", "exp": now - 60, "iat": now - 120}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


async def _id_user(email: str) -> int:
    async with AsyncSessionLocal() as db:
        return (await find_user_by_email(db, email)).id_user


async def test_logout_after_access_expired_revokes_refresh(client: AsyncClient):
    """access 已過期時登出，refresh 仍必須失效"""
    email = _email()
    r = await _register(client, email)
    refresh = r.cookies.get("refresh_token")
    id_user = await _id_user(email)
    expired = _expired_access(id_user)

    client.cookies.clear()
    client.cookies.set("access_token", expired)
    client.cookies.set("refresh_token", refresh)
    r = await client.post("/v1/user/logout")
    assert r.status_code == 200, r.text

    async with AsyncSessionLocal() as db:
        assert await is_token_invalidated(db, id_user, refresh)
        assert await is_token_invalidated(db, id_user, expired)
        assert (await find_auth_by_id_user(db, id_user)).refresh_token is None

    client.cookies.clear()
    r = await client.post("/v1/user/refresh_token", json={"refresh_token": refresh})
    assert r.status_code == 401


async def test_logout_with_only_refresh_cookie(client: AsyncClient):
    email = _email()
    r = await _register(client, email)
    refresh = r.cookies.get("refresh_token")

    client.cookies.clear()
    client.cookies.set("refresh_token", refresh)
    r = await client.post("/v1/user/logout")
    assert r.status_code == 200, r.text

    client.cookies.clear()
    r = await client.post("/v1/user/refresh_token", json={"refresh_token": refresh})
    assert r.status_code == 401


async def test_logout_twice_is_harmless(client: AsyncClient):
    r = await _register(client, _email())
    access = r.cookies.get("access_token")
    refresh = r.cookies.get("refresh_token")

    r = await client.post("/v1/user/logout")
    assert r.status_code == 200

    # 已在黑名單的 token 再登出一次不會重複寫入或出錯
    client.cookies.clear()
    client.cookies.set("access_token", access)
    client.cookies.set("refresh_token", refresh)
    r = await client.post("/v1/user/logout")
    assert r.status_code == 200, r.text


async def test_email_letter_case_is_ignored(client: AsyncClient):
    local = f"case-{uuid4().hex[:10]}"
    mixed = f"{local.upper()}@Example.COM"

    r = await _register(client, mixed)
    assert r.status_code == 200, r.text
    assert r.json()["user"]["email"] == f"{local}@example.com"

    client.cookies.clear()
    r = await _login(client, mixed, "pw1")
    assert r.status_code == 200, r.text
    r = await _login(client, f"  {local}@example.com ", "pw1")
    assert r.status_code == 200, r.text

    r = await _register(client, f"{local}@EXAMPLE.com", password="other")
    assert r.status_code == 400
    assert r.json()["detail"] == "User already exists"
