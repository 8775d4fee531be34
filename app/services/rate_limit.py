# app/services/rate_limit.py
from __future__ import annotations

import time
from typing import Optional, Tuple

from redis.asyncio import Redis
from app.core.config import settings

# 單例 Redis（lazy-init）
_redis: Optional[Redis] = None


def rate_limit_enabled() -> bool:
    # 每次呼叫都讀 settings，測試可用 monkeypatch 切換
    return bool(settings.RATE_LIMIT_ENABLED)


def get_redis() -> Redis:
    """Lazy 初始化 Redis 連線（redis.asyncio）。"""
    global _redis
    if _redis is None:
        _redis = Redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,  # 用字串便於除錯
        )
    return _redis


async def close_redis() -> None:
    global _redis
    if _redis is not None:
        await _redis.aclose()
        _redis = None


def _key_ip(action: str, ip: str) -> str:
    return f"rl:{action}:ip:{ip or 'unknown'}"


def _key_email_ip(action: str, email: str, ip: str) -> str:
    return f"rl:{action}:ei:{(email or '').lower()}|{ip or 'unknown'}"


async def _prune(redis: Redis, key: str, now_s: float) -> None:
    """移除滑動視窗外的紀錄（score < now - window）。"""
    await redis.zremrangebyscore(key, "-inf", now_s - settings.RATE_LIMIT_WINDOW_SEC)


async def _retry_after(redis: Redis, key: str, now_s: float) -> int:
    """距離窗口內最舊紀錄出窗的剩餘秒數（>=1）。"""
    data = await redis.zrange(key, 0, 0, withscores=True)
    oldest = float(data[0][1]) if data else now_s
    return max(1, int(settings.RATE_LIMIT_WINDOW_SEC - (now_s - oldest)))


async def _hit(redis: Redis, key: str, now_s: float) -> None:
    member = f"{now_s:.6f}"
    await redis.zadd(key, {member: now_s})
    await redis.expire(key, settings.RATE_LIMIT_WINDOW_SEC)


async def check_limit_and_hit(action: str, ip: str, email: Optional[str]) -> Tuple[bool, int]:
    """
    檢查 action（login / forgot_password）是否超出限流；若允許，會「順便記一次嘗試」。
    回傳：(allowed, retry_after_seconds)
      先看 IP 維度，再看 email+IP 維度。
    """
    if not rate_limit_enabled():
        return True, 0

    r = get_redis()
    now_s = time.time()

    # ---- IP 維度 ----
    kip = _key_ip(action, ip)
    await _prune(r, kip, now_s)
    if int(await r.zcard(kip)) >= settings.RATE_LIMIT_MAX_PER_IP:
        return False, await _retry_after(r, kip, now_s)

    # ---- email+IP 維度 ----
    kei = _key_email_ip(action, email, ip) if email else None
    if kei:
        await _prune(r, kei, now_s)
        if int(await r.zcard(kei)) >= settings.RATE_LIMIT_MAX_PER_EMAIL_IP:
            return False, await _retry_after(r, kei, now_s)

    await _hit(r, kip, now_s)
    if kei:
        await _hit(r, kei, now_s)
    return True, 0


async def reset_success(action: str, ip: str, email: Optional[str]) -> None:
    """
    成功後清空 email+IP 的桶，降低誤鎖風險。
    IP 維度不清空，保留反掃號的保護力。
    """
    if not email or not rate_limit_enabled():
        return
    await get_redis().delete(_key_email_ip(action, email, ip))
