# app/repositories/_base.py
import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import DatabaseError

log = logging.getLogger(__name__)


async def execute_write(db: AsyncSession, stmt: Any, commit: bool = True) -> int:
    """
    執行 INSERT / UPDATE / DELETE，回傳受影響列數。
    commit=False 時交由呼叫端決定何時 commit（多筆寫入同一個交易）。
    任何 DB 錯誤都 rollback 並轉成 DatabaseError（500）。
    """
    try:
        res = await db.execute(stmt)
        if commit:
            await db.commit()
        return res.rowcount or 0
    except SQLAlchemyError as exc:
        log.error("Database write failed: %s", exc)
        await db.rollback()
        raise DatabaseError() from exc


async def fetch_one(db: AsyncSession, stmt: Any) -> Any:
    try:
        res = await db.execute(stmt)
        return res.scalar_one_or_none()
    except SQLAlchemyError as exc:
        log.error("Database read failed: %s", exc)
        await db.rollback()
        raise DatabaseError() from exc
