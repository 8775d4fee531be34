# app/api/v1/endpoints/auth.py
import logging
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Request, Response
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from app.core.deps import AuthContext, get_auth_context_optional, oauth2_scheme
from app.core.errors import (
    BadRequestError,
    ConflictError,
    InternalError,
    InvalidTokenError,
    NotFoundError,
    TooManyRequestsError,
    UnauthenticatedError,
)
from app.core.security import (
    create_reset_password_token,
    decode_access_token,
    decode_refresh_token,
    decode_reset_password_token,
    hash_password,
    verify_password,
)
from app.db.session import get_db
from app.models.base import utcnow_naive
from app.models.users import User
from app.repositories.auth_repository import find_auth_by_id_user, update_auth
from app.repositories.invalid_token_repository import create_new_invalid_token, is_token_invalidated
from app.repositories.user_repository import (
    create_new_user,
    find_user_by_email,
    find_user_by_id_user,
    normalize_email,
    update_user,
)
from app.schemas.auth import (
    AuthorizationResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
)
from app.services.authorization import (
    ACCESS_COOKIE,
    REFRESH_COOKIE,
    clear_auth_cookies,
    get_authorization,
)
from app.services.email import build_reset_password_url, send_reset_password_email
from app.services.oauth import build_google_login_url, get_oauth_user
from app.services.rate_limit import check_limit_and_hit, reset_success

log = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

LOGIN_FAILED = "Email or password are incorrect"


def _client_ip(request: Request) -> str:
    return (request.client.host if request.client else "unknown") or "unknown"


async def _enforce_rate_limit(action: str, request: Request, email: str) -> None:
    allowed, retry_after = await check_limit_and_hit(action, _client_ip(request), email)
    if not allowed:
        raise TooManyRequestsError("Too many attempts. Please try again later.", retry_after=retry_after)


# === 註冊：建立帳號後直接登入，不必再打一次 /login ===
@router.post("/register", response_model=AuthorizationResponse)
async def register(
    payload: RegisterRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    if await find_user_by_email(db, payload.email) is not None:
        raise ConflictError("User already exists")

    new_user = {
        "email": payload.email,
        "name": payload.name,
        "last_name": payload.last_name,
        "password": await run_in_threadpool(hash_password, payload.password),
    }
    if await create_new_user(db, new_user) != 1:
        raise InternalError("Something went wrong. User not created")

    user = await find_user_by_email(db, payload.email)
    log.info("User registered: %s", user.id_user)
    return await get_authorization(db, user, response)


# === 登入（含 Redis Rate Limit） ===
@router.post("/login", response_model=AuthorizationResponse)
async def login(
    payload: LoginRequest,
    request: Request,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    email = normalize_email(payload.email)
    await _enforce_rate_limit("login", request, email)

    user = await find_user_by_email(db, email)
    # 統一訊息避免帳號探測
    if user is None or not await run_in_threadpool(verify_password, payload.password, user.password):
        raise NotFoundError(LOGIN_FAILED)

    await reset_success("login", _client_ip(request), email)
    return await get_authorization(db, user, response)


# === Google 登入 ===
@router.get("/google", summary="Redirect to Google consent screen")
async def google_login(request: Request):
    return RedirectResponse(build_google_login_url(request), status_code=302)


@router.get("/google/callback", response_model=AuthorizationResponse)
async def google_authentication(
    response: Response,
    user: User = Depends(get_oauth_user),
    db: AsyncSession = Depends(get_db),
):
    return await get_authorization(db, user, response)


# === 忘記密碼：寫入新的重設 token（舊 token 隨即失效）並寄信 ===
@router.post("/forgot_password", response_model=MessageResponse)
async def forgot_password(
    payload: ForgotPasswordRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    email = normalize_email(payload.email)
    await _enforce_rate_limit("forgot_password", request, email)

    user = await find_user_by_email(db, email)
    if user is None:
        raise NotFoundError("User not found")

    reset_password_token, expiration = create_reset_password_token(user.id_user)
    updated = await update_auth(db, user.id_user, {
        "reset_password_token": reset_password_token,
        "reset_password_token_expiration": expiration,
    })
    if updated != 1:
        raise InternalError("Something went wrong. Try again later")

    # 不等寄信結果；失敗只會出現在 log
    background_tasks.add_task(
        send_reset_password_email,
        user.email,
        build_reset_password_url(reset_password_token),
    )
    return {"message": "Email sent. Go to your email account and finish the operation"}


# === 重設密碼 ===
@router.post("/reset_password", response_model=MessageResponse, include_in_schema=False)
@router.post("/reset_password/{reset_password_token}", response_model=MessageResponse)
async def reset_password(
    reset_password_token: str = "",
    payload: Optional[ResetPasswordRequest] = None,
    db: AsyncSession = Depends(get_db),
):
    """
    依序檢查，任何一關失敗就結束：
      token 缺少 → 密碼缺少 → 簽章/exp → 使用者 → auth 紀錄 → 是否為最新 token → DB 到期時間
    成功後 users 與 auth 兩個更新放在同一個交易。
    """
    if not reset_password_token:
        raise BadRequestError("Any verification code was provided")
    if payload is None or not payload.password:
        raise BadRequestError("Any password was provided")

    claims = decode_reset_password_token(reset_password_token)

    user = await find_user_by_id_user(db, claims["id_user"])
    if user is None:
        raise NotFoundError("User not found")

    auth = await find_auth_by_id_user(db, user.id_user)
    if auth is None:
        raise NotFoundError("Authentication not found")

    # 只接受最新一次 forgot_password 發出的 token；用過即清空
    if auth.reset_password_token != reset_password_token:
        raise UnauthenticatedError("Invalid authorization")

    now = utcnow_naive().replace(microsecond=0)
    if auth.reset_password_token_expiration is None or auth.reset_password_token_expiration < now:
        raise BadRequestError("Your verification token has expired")

    new_password = await run_in_threadpool(hash_password, payload.password)
    updated_user = await update_user(db, user.id_user, {"password": new_password}, commit=False)
    updated_auth = await update_auth(db, user.id_user, {
        "reset_password_token": None,
        "reset_password_token_expiration": now,
    }, commit=False)
    if updated_user != 1 or updated_auth != 1:
        await db.rollback()
        raise InternalError("Something went wrong. Try again later")
    await db.commit()

    log.info("Password reset for user %s", user.id_user)
    return {"message": "Password changed successfully"}


# === Refresh：用 refresh token 換新的一組（舊的同時失效） ===
@router.post("/refresh_token", response_model=AuthorizationResponse)
async def refresh_token(
    request: Request,
    response: Response,
    payload: Optional[RefreshRequest] = None,
    db: AsyncSession = Depends(get_db),
):
    token = request.cookies.get(REFRESH_COOKIE) or (payload.refresh_token if payload else None)
    if not token:
        raise UnauthenticatedError("Refresh token is missing")

    claims = decode_refresh_token(token)
    id_user = claims["id_user"]

    if await is_token_invalidated(db, id_user, token):
        raise UnauthenticatedError("Token has been revoked")

    auth = await find_auth_by_id_user(db, id_user)
    if auth is None or auth.refresh_token != token:
        raise UnauthenticatedError("Invalid or expired refresh token")

    user = await find_user_by_id_user(db, id_user)
    if user is None:
        raise UnauthenticatedError("Invalid or expired refresh token")

    return await get_authorization(db, user, response)


# === 登出：兩個 token 寫入黑名單，cookie 與 OAuth session 一律清除 ===
def _token_owner(token: Optional[str], decode: Callable[[str], Dict[str, Any]]) -> Optional[int]:
    if not token:
        return None
    try:
        return decode(token)["id_user"]
    except InvalidTokenError:
        return None


async def _revoke(db: AsyncSession, id_user: int, token: str, token_type: str) -> None:
    if not await is_token_invalidated(db, id_user, token):
        await create_new_invalid_token(db, id_user, token, token_type)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    ctx: Optional[AuthContext] = Depends(get_auth_context_optional),
    bearer: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
):
    """
    access token 過期（或已在黑名單）時 gate 回 None，但 refresh token 可能還有效，
    所以兩個 token 都各自驗簽找出擁有者再寫入黑名單。
    """
    access_token = ctx.access_token if ctx else (bearer or request.cookies.get(ACCESS_COOKIE))
    access_owner = ctx.id_user if ctx else _token_owner(
        access_token, lambda t: decode_access_token(t, allow_expired=True)
    )
    if access_owner is not None:
        await _revoke(db, access_owner, access_token, "access")

    refresh_token = request.cookies.get(REFRESH_COOKIE)
    refresh_owner = _token_owner(refresh_token, decode_refresh_token)
    if refresh_owner is not None:
        await _revoke(db, refresh_owner, refresh_token, "refresh")
        auth = await find_auth_by_id_user(db, refresh_owner)
        if auth is not None and auth.refresh_token == refresh_token:
            await update_auth(db, refresh_owner, {"refresh_token": None})

    owner = access_owner if access_owner is not None else refresh_owner
    if owner is not None:
        log.info("User %s logged out", owner)

    clear_auth_cookies(response)
    request.session.clear()
    return {"message": "You have successfully logged out"}
