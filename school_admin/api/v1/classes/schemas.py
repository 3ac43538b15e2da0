from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class ClassCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    section: Optional[str] = Field(None, max_length=50)
    year_level: Optional[int] = Field(None, ge=1, le=20)
    description: Optional[str] = Field(None, max_length=500)


class ClassUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    section: Optional[str] = Field(None, max_length=50)
    year_level: Optional[int] = Field(None, ge=1, le=20)
    description: Optional[str] = Field(None, max_length=500)


class ClassResponse(BaseModel):
    id: UUID
    name: str
    section: Optional[str] = None
    name_with_section: str
    year_level: Optional[int] = None
    description: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
