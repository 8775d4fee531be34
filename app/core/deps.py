# app/core/deps.py
from dataclasses import dataclass
from typing import Optional
from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.errors import UnauthenticatedError
from app.core.security import decode_access_token
from app.db.session import get_db
from app.repositories.invalid_token_repository import is_token_invalidated
from app.services.authorization import ACCESS_COOKIE, REFRESH_COOKIE


# 只用來讓 OpenAPI 顯示 Bearer；缺 header 時不自動 401，改看 cookie
oauth2_scheme = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_PREFIX}/user/login",
    auto_error=False,
)


@dataclass(frozen=True)
class AuthContext:
    """單一請求的身分：由 get_auth_context 建立，明確傳給各個 handler"""

    id_user: int
    access_token: str
    refresh_token: Optional[str] = None


async def get_auth_context(
    request: Request,
    bearer: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> AuthContext:
    """
    驗證目前請求：
      1️⃣ 取 access token（Authorization: Bearer 優先，其次 access_token cookie）
      2️⃣ 驗證 JWT 簽章、exp 與 type
      3️⃣ 查登出黑名單（已登出的 token 即使還沒過期也拒絕）
      4️⃣ 回傳 AuthContext
    """
    token = bearer or request.cookies.get(ACCESS_COOKIE)
    if not token:
        raise UnauthenticatedError("You must be logged in")

    payload = decode_access_token(token)
    id_user = payload["id_user"]

    if await is_token_invalidated(db, id_user, token):
        raise UnauthenticatedError("Token has been revoked")

    return AuthContext(
        id_user=id_user,
        access_token=token,
        refresh_token=request.cookies.get(REFRESH_COOKIE),
    )


async def get_auth_context_optional(
    request: Request,
    bearer: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> Optional[AuthContext]:
    """
    不強制登入：
      - 有帶且有效 -> 回傳 AuthContext
      - 沒帶 / 無效 / 已登出 -> 回傳 None
    """
    try:
        return await get_auth_context(request, bearer, db)
    except UnauthenticatedError:
        return None
