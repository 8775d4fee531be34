# app/repositories/user_repository.py
import logging
from typing import Any, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import DatabaseError
from app.models.auth import Auth
from app.models.users import User
from app.repositories._base import execute_write, fetch_one

log = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    """email 一律以去空白、小寫的形式儲存與查詢"""
    return email.strip().lower()


async def find_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    return await fetch_one(db, select(User).where(User.email == normalize_email(email)))


async def find_user_by_id_user(db: AsyncSession, id_user: int) -> Optional[User]:
    return await fetch_one(db, select(User).where(User.id_user == id_user))


async def create_new_user(db: AsyncSession, new_user: Dict[str, Any]) -> int:
    """
    新增使用者，並在同一個交易內建立對應的 auth 紀錄（一對一，註冊與 OAuth 共用）。
    回傳新增的使用者筆數（正常為 1）。
    """
    try:
        user = User(**{**new_user, "email": normalize_email(new_user["email"])})
        db.add(user)
        await db.flush()  # 先拿到 id_user，不 commit
        db.add(Auth(id_user=user.id_user))
        await db.commit()
        return 1 if user.id_user is not None else 0
    except SQLAlchemyError as exc:
        log.error("Create user failed: %s", exc)
        await db.rollback()
        raise DatabaseError() from exc


async def update_user(db: AsyncSession, id_user: int, values: Dict[str, Any], commit: bool = True) -> int:
    stmt = (
        update(User)
        .where(User.id_user == id_user)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return await execute_write(db, stmt, commit=commit)
