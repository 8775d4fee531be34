# app/services/oauth.py
"""
Google OAuth（authorization code flow）。

路由只負責把解析好的 User 交給 get_authorization；
state 驗證、code 交換、取個資、找人或建人都在這裡完成。
"""
import logging
import secrets
from typing import Any, Dict
from urllib.parse import urlencode

import httpx
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from app.core.config import settings
from app.core.errors import AppError, BadRequestError, UnauthenticatedError
from app.core.security import hash_password
from app.db.session import get_db
from app.models.users import User
from app.repositories.user_repository import create_new_user, find_user_by_email, normalize_email

log = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"

SESSION_STATE_KEY = "oauth_state"
SESSION_PROVIDER_KEY = "oauth_provider"


def _ensure_configured() -> None:
    if not settings.google_oauth_enabled:
        raise AppError("Google login is not configured", status_code=503)


def build_google_login_url(request: Request) -> str:
    """產生 Google 同意畫面網址，並把 state 存進 session（防 CSRF）"""
    _ensure_configured()
    state = secrets.token_urlsafe(24)
    request.session[SESSION_STATE_KEY] = state
    params = {
        "client_id": settings.GOOGLE_CLIENT_ID,
        "redirect_uri": settings.GOOGLE_REDIRECT_URI,
        "response_type": "code",
        "scope": "openid email profile",
        "state": state,
        "prompt": "select_account",
    }
    return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"


async def fetch_google_profile(code: str) -> Dict[str, Any]:
    async with httpx.AsyncClient(timeout=10.0) as client:
        token_resp = await client.post(
            GOOGLE_TOKEN_URL,
            data={
                "code": code,
                "client_id": settings.GOOGLE_CLIENT_ID,
                "client_secret": settings.GOOGLE_CLIENT_SECRET,
                "redirect_uri": settings.GOOGLE_REDIRECT_URI,
                "grant_type": "authorization_code",
            },
        )
        if token_resp.status_code != 200:
            log.warning("Google token exchange failed: %s", token_resp.status_code)
            raise UnauthenticatedError("Google authentication failed")

        access_token = token_resp.json().get("access_token")
        info_resp = await client.get(
            GOOGLE_USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
        )
        if info_resp.status_code != 200:
            log.warning("Google userinfo failed: %s", info_resp.status_code)
            raise UnauthenticatedError("Google authentication failed")
        return info_resp.json()


async def find_or_create_google_user(db: AsyncSession, profile: Dict[str, Any]) -> User:
    email = normalize_email(profile.get("email") or "")
    if not email or not profile.get("email_verified", False):
        raise UnauthenticatedError("Google account email is not verified")

    user = await find_user_by_email(db, email)
    if user is not None:
        return user

    # 新使用者：隨機密碼（只能走 Google 或忘記密碼），auth 紀錄同交易建立
    new_user = {
        "email": email,
        "name": profile.get("given_name") or profile.get("name") or email.split("@", 1)[0],
        "last_name": profile.get("family_name"),
        "password": await run_in_threadpool(hash_password, secrets.token_urlsafe(32)),
    }
    if profile.get("picture"):
        new_user["url_profile_photo"] = profile["picture"]
    await create_new_user(db, new_user)
    log.info("Created user from Google account %s", email.split("@", 1)[-1])
    return await find_user_by_email(db, email)


async def get_oauth_user(request: Request, db: AsyncSession = Depends(get_db)) -> User:
    """
    FastAPI 依賴：處理 Google callback 的 query string，回傳已存在或剛建立的 User。
    成功後在 session 標記 provider，登出時一併清除。
    """
    _ensure_configured()
    if request.query_params.get("error"):
        raise UnauthenticatedError("Google authentication was cancelled")

    code = request.query_params.get("code")
    state = request.query_params.get("state")
    expected = request.session.pop(SESSION_STATE_KEY, None)
    if not code:
        raise BadRequestError("Missing authorization code")
    if not state or not expected or not secrets.compare_digest(state, expected):
        raise UnauthenticatedError("Invalid OAuth state")

    profile = await fetch_google_profile(code)
    user = await find_or_create_google_user(db, profile)
    if user is None:
        raise UnauthenticatedError("Google authentication failed")
    request.session[SESSION_PROVIDER_KEY] = "google"
    return user
