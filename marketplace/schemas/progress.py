from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime

from marketplace.core.constants import ProgressStatusEnum


class WatchProgressUpdate(BaseModel):
    watch_seconds: int = Field(..., ge=0)


class Progress(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    course_id: int
    lecture_id: Optional[int] = None
    lecture_key: str
    lecture_title: str
    status: ProgressStatusEnum
    watch_seconds: int
    total_duration: int
    completion_percentage: float
    is_completed: bool
    completed_at: Optional[datetime] = None
    last_accessed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
