from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal

from marketplace.core.constants import EnrollmentStatusEnum


class EnrollmentCreate(BaseModel):
    course_id: int
    amount_paid: Decimal = Field(Decimal("0.00"), ge=0, max_digits=10, decimal_places=2)
    is_free: bool = False


class Enrollment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    course_id: int
    status: EnrollmentStatusEnum
    amount_paid: Decimal
    progress_percentage: float
    completed_lectures: int
    total_watch_seconds: int
    last_accessed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
