from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class NoticeCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    content: str = Field(..., min_length=1)
    publish_date: Optional[date] = None
    expiry_date: Optional[date] = None
    is_active: bool = True


class NoticeUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    content: Optional[str] = Field(None, min_length=1)
    publish_date: Optional[date] = None
    expiry_date: Optional[date] = None
    is_active: Optional[bool] = None


class NoticeResponse(BaseModel):
    id: UUID
    title: str
    content: str
    publish_date: date
    expiry_date: Optional[date] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True
