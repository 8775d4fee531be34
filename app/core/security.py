# app/core/security.py
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple
from uuid import uuid4

from jose import jwt, JWTError
from passlib.context import CryptContext

from app.core.config import settings
from app.core.errors import InvalidTokenError

ACCESS = "access"
REFRESH = "refresh"
RESET = "reset"

# === Password Hashing ===
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__ident="2b",
    # 若密碼超過 72 bytes，不拋錯（與現有流程相容）
    bcrypt__truncate_error=False,
)

def _sanitize_password(p: str) -> str:
    # bcrypt 只吃前 72 bytes，避免極長密碼在某些環境報錯
    return p[:72] if isinstance(p, str) else p

def hash_password(plain: str) -> str:
    return pwd_context.hash(_sanitize_password(plain))

def verify_password(plain: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return pwd_context.verify(_sanitize_password(plain), password_hash)
    except ValueError:
        # 資料庫中的 hash 格式不對（例如 OAuth 使用者的空值）視為比對失敗
        return False

# === JWT Helpers ===
def _now_utc() -> datetime:
    return datetime.now(timezone.utc)

def _exp(minutes: int) -> datetime:
    return _now_utc() + timedelta(minutes=minutes)

def _refresh_secret() -> str:
    # 若沒有設定 REFRESH_SECRET_KEY，會 fallback 至 SECRET_KEY（相容）
    return settings.REFRESH_SECRET_KEY or settings.SECRET_KEY

def _reset_secret() -> str:
    return settings.RESET_PASSWORD_SECRET_KEY or settings.SECRET_KEY

def _encode(claims: Dict[str, Any], key: str) -> str:
    return jwt.encode(claims, key, algorithm=settings.JWT_ALGORITHM)

def _create_token(id_user: int, token_type: str, key: str, expires_at: datetime) -> str:
    claims = {
        "sub": str(id_user),
        "id_user": int(id_user),
        "type": token_type,
        "jti": str(uuid4()),
        "iat": int(_now_utc().timestamp()),
        "exp": expires_at,
    }
    return _encode(claims, key)

# === Issue Tokens ===
def create_access_token(id_user: int, expires_minutes: Optional[int] = None) -> str:
    """簽發 Access Token（type=access），用 SECRET_KEY 簽章"""
    expires_at = _exp(expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    return _create_token(id_user, ACCESS, settings.SECRET_KEY, expires_at)

def create_refresh_token(id_user: int, expires_minutes: Optional[int] = None) -> str:
    """
    簽發 Refresh Token（type=refresh）
    使用 REFRESH_SECRET_KEY；若未設定則回退到 SECRET_KEY。
    """
    expires_at = _exp(expires_minutes or settings.REFRESH_TOKEN_EXPIRE_MINUTES)
    return _create_token(id_user, REFRESH, _refresh_secret(), expires_at)

def issue_token_pair(id_user: int) -> Tuple[str, str]:
    """
    一次發出 Access/Refresh
    回傳：(access_token, refresh_token)
    """
    return create_access_token(id_user), create_refresh_token(id_user)

def create_reset_password_token(id_user: int) -> Tuple[str, datetime]:
    """
    簽發重設密碼用的 token，並回傳絕對到期時間（naive UTC）寫入 auth 表。
    token 自帶 exp，資料庫的到期時間是第二道檢查。
    """
    expires_at = _exp(settings.RESET_PASSWORD_TOKEN_EXPIRE_MINUTES)
    token = _create_token(id_user, RESET, _reset_secret(), expires_at)
    return token, expires_at.replace(tzinfo=None, microsecond=0)

# === Verify / Decode ===
def verify_token(token: str, key: str, expected_type: str, verify_exp: bool = True) -> Dict[str, Any]:
    """
    驗證簽章與 exp，並確認 type 與 id_user；任何失敗一律拋 InvalidTokenError。
    verify_exp=False 只給登出用：過期但簽章正確的 token 仍要能辨識擁有者。
    """
    if not token:
        raise InvalidTokenError()
    try:
        payload = jwt.decode(
            token,
            key,
            algorithms=[settings.JWT_ALGORITHM],
            options={"verify_exp": verify_exp},
        )
    except JWTError as exc:
        raise InvalidTokenError() from exc

    if payload.get("type") != expected_type:
        raise InvalidTokenError(f"Invalid token type (need {expected_type} token)")
    try:
        payload["id_user"] = int(payload["id_user"])
    except (KeyError, TypeError, ValueError) as exc:
        raise InvalidTokenError("Invalid token payload") from exc
    return payload

def decode_access_token(token: str, allow_expired: bool = False) -> Dict[str, Any]:
    return verify_token(token, settings.SECRET_KEY, ACCESS, verify_exp=not allow_expired)

def decode_refresh_token(token: str) -> Dict[str, Any]:
    return verify_token(token, _refresh_secret(), REFRESH)

def decode_reset_password_token(token: str) -> Dict[str, Any]:
    return verify_token(token, _reset_secret(), RESET)

def token_expiration(token: str) -> Optional[datetime]:
    """
    不驗簽取出 exp（naive UTC），給黑名單清理排程用；解析失敗回 None。
    """
    try:
        exp = jwt.get_unverified_claims(token).get("exp")
    except JWTError:
        return None
    if exp is None:
        return None
    try:
        return datetime.fromtimestamp(int(exp), tz=timezone.utc).replace(tzinfo=None)
    except (TypeError, ValueError, OverflowError):
        return None
