from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime


class JobSeekerCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    registered_by_id: Optional[int] = None
    onsite_block_minutes: Optional[int] = Field(None, ge=0, le=24 * 60)
    online_block_minutes: Optional[int] = Field(None, ge=0, le=24 * 60)


class BlockSettingsUpdate(BaseModel):
    # None clears the override and falls back to the configured default
    onsite_block_minutes: Optional[int] = Field(None, ge=0, le=24 * 60)
    online_block_minutes: Optional[int] = Field(None, ge=0, le=24 * 60)


class JobSeekerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    schedule_token: str
    onsite_block_minutes: Optional[int] = None
    online_block_minutes: Optional[int] = None
    registered_by_id: Optional[int] = None
    created_at: Optional[datetime] = None
