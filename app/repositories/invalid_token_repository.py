# app/repositories/invalid_token_repository.py
from typing import Optional

from sqlalchemy import delete, insert, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import token_expiration
from app.models.base import utcnow_naive
from app.models.invalid_token import InvalidToken
from app.repositories._base import execute_write, fetch_one


async def create_new_invalid_token(
    db: AsyncSession,
    id_user: int,
    token: str,
    token_type: Optional[str] = None,
) -> int:
    stmt = insert(InvalidToken).values(
        id_user=id_user,
        token=token,
        token_type=token_type,
        expires_at=token_expiration(token),
        created_at=utcnow_naive(),
    )
    return await execute_write(db, stmt)


async def is_token_invalidated(db: AsyncSession, id_user: int, token: str) -> bool:
    stmt = (
        select(InvalidToken.id)
        .where(InvalidToken.id_user == id_user, InvalidToken.token == token)
        .limit(1)
    )
    return await fetch_one(db, stmt) is not None


async def delete_invalid_tokens_by_id_user(db: AsyncSession, id_user: int) -> int:
    return await execute_write(db, delete(InvalidToken).where(InvalidToken.id_user == id_user))


async def delete_expired_invalid_tokens(db: AsyncSession) -> int:
    """刪除 token 本身已過期的紀錄（過期 token 本來就驗不過），回傳刪除數量。"""
    now = utcnow_naive()
    stmt = delete(InvalidToken).where(InvalidToken.expires_at < now)
    return await execute_write(db, stmt)
