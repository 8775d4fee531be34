import pytest
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio

# --- Monitoring & Health ---
async def test_metrics_and_health(client: AsyncClient):
    """測試 /metrics, /healthz, /readyz 都能正確回應"""
    r = await client.get("/metrics")
    assert r.status_code == 200
    assert "# HELP" in r.text  # Prometheus metrics 格式驗證

    r = await client.get("/healthz")
    assert r.status_code == 200
    assert r.json().get("ok") is True

    r = await client.get("/readyz")
    assert r.status_code == 200
    assert r.json().get("ready") is True
    assert r.json()["checks"] == {"database": True}


async def test_readyz_reports_unreachable_redis(client: AsyncClient, monkeypatch):
    from app.core.config import settings

    class _DownRedis:
        async def ping(self):
            raise ConnectionError("redis down")

    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", True, raising=False)
    monkeypatch.setattr("app.main.get_redis", lambda: _DownRedis())
    r = await client.get("/readyz")
    assert r.status_code == 503
    assert r.json() == {"ready": False, "checks": {"database": True, "redis": False}}

# --- Protected routes ---
@pytest.mark.parametrize(
    "method,path",
    [
        ("GET", "/v1/user/me"),
        ("PATCH", "/v1/user/me"),
        ("POST", "/v1/user/feedback"),
    ],
)
async def test_protected_routes_require_auth(client: AsyncClient, method, path):
    r = await client.request(method, path)
    assert r.status_code == 401
