# app/services/ledger_cleanup.py
import logging

from app.db.session import AsyncSessionLocal
from app.repositories.invalid_token_repository import delete_expired_invalid_tokens

logger = logging.getLogger(__name__)


async def run_cleanup_job() -> int:
    """排程作業：建立一次性 DB session 來清理已過期的登出 token。"""
    async with AsyncSessionLocal() as db:
        deleted = await delete_expired_invalid_tokens(db)
    logger.info("Invalid token cleanup done: deleted=%s", deleted)
    return deleted
