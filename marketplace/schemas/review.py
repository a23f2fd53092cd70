from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Dict
from datetime import datetime


class ReviewBase(BaseModel):
    rating: int = Field(..., ge=1, le=5)
    title: Optional[str] = None
    comment: Optional[str] = None


class ReviewCreate(ReviewBase):
    course_id: int


class ReviewUpdate(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    title: Optional[str] = None
    comment: Optional[str] = None
    is_visible: Optional[bool] = None


class Review(ReviewBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    course_id: int
    is_visible: bool
    is_verified: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ReviewStats(BaseModel):
    course_id: int
    total_reviews: int
    average_rating: float
    rating_distribution: Dict[int, int]
