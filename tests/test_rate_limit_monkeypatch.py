# tests/test_rate_limit_monkeypatch.py
import pytest
from httpx import AsyncClient

from app.core.config import settings
from app.services import rate_limit

pytestmark = pytest.mark.asyncio


async def test_login_rate_limited_via_monkeypatch(client: AsyncClient, monkeypatch):
    # ！！關鍵！！：patch 到路由實際引用的位置，且路由端以 await 呼叫 -> 假函式必須是 async
    calls = []

    async def _deny(action, ip, email):
        calls.append((action, email))
        return False, 60  # 不允許、建議 60 秒後再試

    monkeypatch.setattr("app.api.v1.endpoints.auth.check_limit_and_hit", _deny, raising=True)

    r = await client.post("/v1/user/login", json={"email": "someone@example.com", "password": "pw"})
    assert r.status_code == 429, r.text
    assert r.headers["Retry-After"] == "60"
    assert calls == [("login", "someone@example.com")]

    r = await client.post("/v1/user/forgot_password", json={"email": "someone@example.com"})
    assert r.status_code == 429
    assert calls[-1] == ("forgot_password", "someone@example.com")


async def test_disabled_limiter_never_touches_redis(monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", False, raising=False)

    def _boom():
        raise AssertionError("redis should not be used")

    monkeypatch.setattr(rate_limit, "get_redis", _boom)
    assert await rate_limit.check_limit_and_hit("login", "127.0.0.1", "a@example.com") == (True, 0)
    await rate_limit.reset_success("login", "127.0.0.1", "a@example.com")
