from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class HolidayCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    holiday_date: date
    description: Optional[str] = Field(None, max_length=500)


class HolidayUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    holiday_date: Optional[date] = None
    description: Optional[str] = Field(None, max_length=500)


class HolidayResponse(BaseModel):
    id: UUID
    title: str
    holiday_date: date
    description: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
