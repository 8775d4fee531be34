# app/repositories/auth_repository.py
from typing import Any, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.auth import Auth
from app.repositories._base import execute_write, fetch_one


async def find_auth_by_id_user(db: AsyncSession, id_user: int) -> Optional[Auth]:
    return await fetch_one(db, select(Auth).where(Auth.id_user == id_user))


async def update_auth(db: AsyncSession, id_user: int, values: Dict[str, Any], commit: bool = True) -> int:
    """只更新有給的欄位；回傳受影響列數（auth 紀錄不存在時為 0）"""
    stmt = (
        update(Auth)
        .where(Auth.id_user == id_user)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return await execute_write(db, stmt, commit=commit)
