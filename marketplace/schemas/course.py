from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal

from marketplace.core.constants import LectureTypeEnum


class CourseBase(BaseModel):
    title: str = Field(..., min_length=1)
    description: Optional[str] = None
    price: Decimal = Field(Decimal("0.00"), ge=0, max_digits=10, decimal_places=2)
    is_free: bool = False
    is_published: bool = False


class CourseCreate(CourseBase):
    pass


class CourseUpdate(BaseModel):
    """Editable catalog fields; counters and rating are not accepted here."""
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    is_free: Optional[bool] = None
    is_published: Optional[bool] = None


class Course(CourseBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    instructor_id: int
    published_at: Optional[datetime] = None
    rating: float
    total_reviews: int
    total_students: int
    total_lectures: int
    total_duration_seconds: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class LectureCreate(BaseModel):
    title: str = Field(..., min_length=1)
    lecture_type: LectureTypeEnum = LectureTypeEnum.VIDEO
    duration_seconds: int = Field(0, ge=0)
    position: Optional[int] = Field(None, ge=0)


class Lecture(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    course_id: int
    title: str
    lecture_type: LectureTypeEnum
    duration_seconds: int
    position: int
