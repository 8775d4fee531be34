# app/models/invalid_token.py
from datetime import datetime
from typing import Optional
from sqlalchemy import String, Integer, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column
from app.models.base import Base, utcnow_naive


class InvalidToken(Base):
    """
    已登出的 token（access / refresh）。只新增不修改；
    簽章與 exp 仍有效也不得再通過驗證。
    """

    __tablename__ = "invalid_token"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    # 只參照 User，不擁有（不 cascade）
    id_user: Mapped[int] = mapped_column(ForeignKey("users.id_user"), nullable=False)
    token: Mapped[str] = mapped_column(String(1024), nullable=False)
    # access / refresh
    token_type: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)

    # token 本身的到期時間（用來定期清理過期紀錄）
    expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive, nullable=False)

    __table_args__ = (
        Index("ix_invalid_token_user_token", "id_user", "token"),
    )
