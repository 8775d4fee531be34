# app/schemas/auth.py
from typing import Optional
from pydantic import BaseModel, EmailStr, Field

from app.schemas.user import UserProfile


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)

class LoginRequest(BaseModel):
    # 不驗 email 格式：格式錯也一律回「Email or password are incorrect」
    email: str
    password: str

class ForgotPasswordRequest(BaseModel):
    email: EmailStr

class ResetPasswordRequest(BaseModel):
    # 缺少時由流程回 400，而不是 422
    password: Optional[str] = None

class RefreshRequest(BaseModel):
    refresh_token: Optional[str] = None

class MessageResponse(BaseModel):
    message: str

class AuthorizationResponse(MessageResponse):
    user: UserProfile
