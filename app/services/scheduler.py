# app/services/scheduler.py
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from fastapi import FastAPI

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from app.core.config import settings
from app.core.errors import AppError
from app.services.ledger_cleanup import run_cleanup_job
from app.services.rate_limit import close_redis

logger = logging.getLogger(__name__)

scheduler: Optional[AsyncIOScheduler] = None


async def _cleanup_job() -> None:
    try:
        await run_cleanup_job()
    except AppError as e:
        # DB 錯誤已在 repository 記錄；排程下一輪再試
        logger.error("Invalid token cleanup failed: %s", e.message)


@asynccontextmanager
async def lifespan_scheduler(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan：啟動 / 關閉 APScheduler，關閉時一併收掉 Redis 連線。
    """
    global scheduler
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(_cleanup_job, IntervalTrigger(minutes=settings.LEDGER_CLEANUP_MINUTES))
    scheduler.start()
    logger.info("APScheduler started: invalid token cleanup every %s minutes", settings.LEDGER_CLEANUP_MINUTES)
    try:
        yield
    finally:
        if scheduler:
            scheduler.shutdown(wait=False)
            logger.info("APScheduler shutdown")
        await close_redis()
