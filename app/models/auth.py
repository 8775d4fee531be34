# app/models/auth.py
from datetime import datetime
from typing import Optional
from sqlalchemy import String, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.models.base import Base


class Auth(Base):
    """每個 User 剛好一筆：目前有效的 refresh token 與重設密碼狀態"""

    __tablename__ = "auth"

    id_user: Mapped[int] = mapped_column(
        ForeignKey("users.id_user", ondelete="CASCADE"), primary_key=True
    )
    # 同一時間只允許一組有效 refresh token（新登入直接覆蓋）
    refresh_token: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    reset_password_token: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    # naive UTC
    reset_password_token_expiration: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    user: Mapped["User"] = relationship(back_populates="auth")
