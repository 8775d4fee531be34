# app/services/authorization.py
import logging
from typing import Dict

from fastapi import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import InternalError
from app.core.security import issue_token_pair
from app.models.users import User
from app.repositories.auth_repository import update_auth
from app.schemas.user import UserProfile

log = logging.getLogger(__name__)

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"


def set_auth_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    common = {
        "httponly": True,
        "secure": settings.COOKIE_SECURE,
        "samesite": settings.COOKIE_SAMESITE,
        "path": "/",
    }
    response.set_cookie(ACCESS_COOKIE, access_token, max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60, **common)
    response.set_cookie(REFRESH_COOKIE, refresh_token, max_age=settings.REFRESH_TOKEN_EXPIRE_MINUTES * 60, **common)


def clear_auth_cookies(response: Response) -> None:
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(
            name,
            path="/",
            secure=settings.COOKIE_SECURE,
            httponly=True,
            samesite=settings.COOKIE_SAMESITE,
        )


async def get_authorization(db: AsyncSession, user: User, response: Response) -> Dict:
    """
    登入成功後的共同流程（註冊 / 登入 / Google / refresh）：
      1️⃣ 簽發 access + refresh
      2️⃣ 覆寫 auth.refresh_token（同一使用者只保留最新一組，其他裝置的 refresh 隨即失效）
      3️⃣ 兩個 token 寫進 cookie
    """
    access_token, refresh_token = issue_token_pair(user.id_user)

    updated = await update_auth(db, user.id_user, {"refresh_token": refresh_token})
    if updated != 1:
        raise InternalError("Something went wrong. Authorization not granted")

    set_auth_cookies(response, access_token, refresh_token)
    log.info("User %s authorized", user.id_user)
    return {
        "message": "You have been successfully authorized",
        "user": UserProfile.model_validate(user),
    }
