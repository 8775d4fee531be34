# app/models/base.py
from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


def utcnow_naive() -> datetime:
    # 資料庫一律存 naive UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)
