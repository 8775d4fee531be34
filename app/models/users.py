# app/models/users.py
from datetime import date, datetime
from typing import Optional
from sqlalchemy import String, Integer, Date, DateTime, Float, SmallInteger
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.core.config import settings
from app.models.base import Base, utcnow_naive


class User(Base):
    __tablename__ = "users"

    id_user: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    # bcrypt hash；不會出現在任何輸出 schema
    password: Mapped[str] = mapped_column(String(255), nullable=False)

    # --- 個人資料 ---
    date_birth: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    theme: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    weight: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    goal: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    experience: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    rating: Mapped[Optional[int]] = mapped_column(SmallInteger, nullable=True)
    public_id_profile_photo: Mapped[str] = mapped_column(
        String(255), nullable=False, default=settings.DEFAULT_PROFILE_PHOTO_ID
    )
    url_profile_photo: Mapped[Optional[str]] = mapped_column(String(512), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive, nullable=False)

    auth: Mapped["Auth"] = relationship(back_populates="user", uselist=False, cascade="all, delete-orphan")
