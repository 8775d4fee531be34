# tests/test_invalid_token_ledger.py
from datetime import timedelta
from uuid import uuid4

import pytest
from jose import jwt

from app.core.config import settings
from app.core.security import issue_token_pair
from app.db.session import AsyncSessionLocal
from app.models.base import utcnow_naive
from app.repositories.invalid_token_repository import (
    create_new_invalid_token,
    delete_expired_invalid_tokens,
    delete_invalid_tokens_by_id_user,
    is_token_invalidated,
)
from app.repositories.user_repository import create_new_user, find_user_by_email
from app.services.ledger_cleanup import run_cleanup_job

pytestmark = pytest.mark.asyncio


async def _seed_user() -> int:
    email = f"ledger-{uuid4().hex[:10]}@example.com"
    async with AsyncSessionLocal() as db:
        assert await create_new_user(db, {"email": email, "name": "Led", "password": "x"}) == 1
        return (await find_user_by_email(db, email)).id_user


def _expired_token(id_user: int) -> str:
    payload = {"sub": str(id_user), "id_user": id_user, "type": "access",
               "exp": utcnow_naive() - timedelta(minutes=1)}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


async def test_ledger_lookup_is_per_user():
    id_user = await _seed_user()
    other = await _seed_user()
    access, refresh = issue_token_pair(id_user)

    async with AsyncSessionLocal() as db:
        assert await create_new_invalid_token(db, id_user, access, "access") == 1
        assert await is_token_invalidated(db, id_user, access)
        assert not await is_token_invalidated(db, id_user, refresh)
        assert not await is_token_invalidated(db, other, access)


async def test_delete_by_user():
    id_user = await _seed_user()
    access, refresh = issue_token_pair(id_user)
    async with AsyncSessionLocal() as db:
        await create_new_invalid_token(db, id_user, access, "access")
        await create_new_invalid_token(db, id_user, refresh, "refresh")
        assert await delete_invalid_tokens_by_id_user(db, id_user) == 2
        assert not await is_token_invalidated(db, id_user, access)


async def test_cleanup_removes_only_expired():
    id_user = await _seed_user()
    live, _ = issue_token_pair(id_user)
    expired = _expired_token(id_user)
    async with AsyncSessionLocal() as db:
        await create_new_invalid_token(db, id_user, live, "access")
        await create_new_invalid_token(db, id_user, expired, "access")
        assert await delete_expired_invalid_tokens(db) >= 1
        assert await is_token_invalidated(db, id_user, live)
        assert not await is_token_invalidated(db, id_user, expired)


async def test_cleanup_job_runs_with_own_session():
    id_user = await _seed_user()
    async with AsyncSessionLocal() as db:
        await create_new_invalid_token(db, id_user, _expired_token(id_user), "access")
    assert await run_cleanup_job() >= 1
