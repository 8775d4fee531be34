# app/repositories/feedback_repository.py
from sqlalchemy import delete, insert
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.feedback import Feedback
from app.repositories._base import execute_write


async def create_new_feedback(db: AsyncSession, id_user: int, comment: str) -> int:
    return await execute_write(db, insert(Feedback).values(id_user=id_user, comment=comment))


async def delete_feedback_by_id_user(db: AsyncSession, id_user: int) -> int:
    return await execute_write(db, delete(Feedback).where(Feedback.id_user == id_user))
