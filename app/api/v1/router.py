# app/api/v1/router.py
from fastapi import APIRouter

# 匯入所有已定義的 endpoint 模組
from .endpoints import health, users, auth

# === API v1 主路由 ===
api_router = APIRouter()

# 系統健康檢查（含 DB 探針）
api_router.include_router(health.router, prefix="/health", tags=["health"])

# 認證：註冊 / 登入 / Google / 忘記與重設密碼 / refresh / 登出
api_router.include_router(auth.router, prefix="/user", tags=["auth"])

# 使用者：個人資料、意見回饋（需要登入）
api_router.include_router(users.router, prefix="/user", tags=["users"])
