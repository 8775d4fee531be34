# app/models/__init__.py
# 匯入所有模型，讓 Base.metadata 完整（Alembic / 測試 create_all 用）
from app.models.base import Base
from app.models.users import User
from app.models.auth import Auth
from app.models.invalid_token import InvalidToken
from app.models.feedback import Feedback

__all__ = ["Base", "User", "Auth", "InvalidToken", "Feedback"]
