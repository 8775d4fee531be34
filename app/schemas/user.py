# app/schemas/user.py
from typing import Optional
from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, EmailStr, Field

class UserProfile(BaseModel):
    """對外輸出的個人資料：不含 id_user 與 password"""

    model_config = ConfigDict(from_attributes=True)

    email: EmailStr
    name: str
    last_name: Optional[str] = None
    username: Optional[str] = None
    date_birth: Optional[date] = None
    theme: Optional[str] = None
    weight: Optional[float] = None
    goal: Optional[str] = None
    experience: Optional[str] = None
    rating: Optional[int] = None
    public_id_profile_photo: Optional[str] = None
    url_profile_photo: Optional[str] = None
    created_at: Optional[datetime] = None

class FeedbackCreate(BaseModel):
    comment: str = Field(..., min_length=1, max_length=2000)
