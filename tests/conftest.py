# tests/conftest.py
import asyncio
import os
import tempfile
from typing import List, Tuple

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# ---- 測試期環境變數（先於 app 載入）----
os.environ.setdefault("RATE_LIMIT_ENABLED", "0")
os.environ.setdefault("ENV", "test")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="fittrack-media-"))
os.environ.setdefault("RESET_PASSWORD_URL_BASE", "http://frontend.test/reset_password")

from app.main import app  # noqa: E402
from app.db.session import engine  # noqa: E402
from app.models import Base  # noqa: E402


@pytest.fixture(scope="session", autouse=True)
def create_test_db():
    """測試前自動 create_all，測試後 drop_all（用 asyncio.run 避免事件圈衝突）。"""
    async def init_models():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)

    async def drop_models():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()

    asyncio.run(init_models())
    yield
    asyncio.run(drop_models())


@pytest_asyncio.fixture
async def client():
    """使用 ASGITransport 直接掛載 app，不需啟動伺服器。"""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


@pytest.fixture
def sent_emails(monkeypatch) -> List[Tuple[str, str]]:
    """攔截重設密碼信：記錄 (收件人, 連結)，不真的寄出。"""
    outbox: List[Tuple[str, str]] = []

    async def _fake_send(to_email: str, reset_password_url: str) -> bool:
        outbox.append((to_email, reset_password_url))
        return True

    monkeypatch.setattr("app.api.v1.endpoints.auth.send_reset_password_email", _fake_send)
    return outbox


@pytest.fixture
def upload_dir() -> str:
    return os.environ["UPLOAD_DIR"]
