# app/api/v1/endpoints/users.py
import logging
from datetime import date
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from pydantic import EmailStr
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.deps import AuthContext, get_auth_context  # 保護需要登入的路由
from app.core.errors import (
    BadRequestError,
    ConflictError,
    ForbiddenError,
    InternalError,
    NotFoundError,
)
from app.db.session import get_db
from app.repositories.feedback_repository import create_new_feedback
from app.repositories.user_repository import (
    find_user_by_email,
    find_user_by_id_user,
    normalize_email,
    update_user,
)
from app.schemas.auth import MessageResponse
from app.schemas.user import FeedbackCreate, UserProfile
from app.services.image_storage import StoredImage, delete_image, upload_image

log = logging.getLogger(__name__)

router = APIRouter(tags=["users"])

# 可由 PATCH /me 更新的欄位（沒給的欄位沿用資料庫原值）
PROFILE_FIELDS = (
    "email",
    "name",
    "last_name",
    "username",
    "date_birth",
    "theme",
    "experience",
    "weight",
    "goal",
    "rating",
    "public_id_profile_photo",
    "url_profile_photo",
)


# === 取得目前登入者 ===
@router.get("/me", response_model=UserProfile)
async def get_current_user(
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    user = await find_user_by_id_user(db, ctx.id_user)
    if user is None:
        raise NotFoundError("User not found")
    return UserProfile.model_validate(user)


async def _apply_profile_update(
    db: AsyncSession,
    id_user: int,
    changes: Dict[str, Any],
    password: Optional[str],
    uploaded: Optional[StoredImage],
) -> Tuple[UserProfile, Optional[str]]:
    """回傳 (更新後的個人資料, 被換掉的舊大頭貼 public_id)"""
    if password:
        raise ForbiddenError("You cannot change your password here")

    user = await find_user_by_id_user(db, id_user)
    if user is None:
        raise NotFoundError("User not found")

    new_email = changes.get("email")
    if new_email and new_email != user.email:
        if await find_user_by_email(db, new_email) is not None:
            raise ConflictError("There is already a user with this email address")

    if uploaded is not None:
        changes["public_id_profile_photo"] = uploaded.public_id
        changes["url_profile_photo"] = uploaded.url

    # 逐欄位合併：沒給的欄位保留原值
    merged = {field: changes.get(field, getattr(user, field)) for field in PROFILE_FIELDS}
    previous_photo = user.public_id_profile_photo
    created_at = user.created_at

    if await update_user(db, id_user, merged) != 1:
        raise InternalError("User not updated")

    replaced = previous_photo if uploaded is not None and previous_photo != uploaded.public_id else None
    return UserProfile(**merged, created_at=created_at), replaced


# === 更新目前登入者（multipart，可附大頭貼） ===
@router.patch("/me", response_model=UserProfile)
async def update_current_user(
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
    email: Optional[EmailStr] = Form(None),
    name: Optional[str] = Form(None, max_length=100),
    last_name: Optional[str] = Form(None, max_length=100),
    username: Optional[str] = Form(None, max_length=100),
    date_birth: Optional[date] = Form(None),
    theme: Optional[str] = Form(None, max_length=20),
    experience: Optional[str] = Form(None, max_length=50),
    weight: Optional[float] = Form(None, gt=0),
    goal: Optional[str] = Form(None, max_length=255),
    rating: Optional[int] = Form(None, ge=1, le=5),
    password: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
):
    submitted = {
        "email": email,
        "name": name,
        "last_name": last_name,
        "username": username,
        "date_birth": date_birth,
        "theme": theme,
        "experience": experience,
        "weight": weight,
        "goal": goal,
        "rating": rating,
    }
    changes = {k: v for k, v in submitted.items() if v not in (None, "")}
    if "email" in changes:
        changes["email"] = normalize_email(changes["email"])
    has_photo = photo is not None and bool(photo.filename)
    if not changes and not has_photo and not password:
        raise BadRequestError("You must update, at least, one attribute")

    uploaded = await upload_image(photo) if has_photo else None
    try:
        profile, replaced_photo = await _apply_profile_update(db, ctx.id_user, changes, password, uploaded)
    except Exception:
        # 任何失敗都不能留下沒人引用的新圖
        if uploaded is not None:
            await delete_image(uploaded.public_id)
        raise

    if replaced_photo:
        await delete_image(replaced_photo)
    return profile


# === 意見回饋 ===
@router.post("/feedback", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def send_feedback(
    payload: FeedbackCreate,
    ctx: AuthContext = Depends(get_auth_context),
    db: AsyncSession = Depends(get_db),
):
    if await create_new_feedback(db, ctx.id_user, payload.comment) != 1:
        raise InternalError("Something went wrong with the database")
    return {"message": "Feedback sent"}
