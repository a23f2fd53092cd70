from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean, Float, Index, Enum as SQLEnum, func
from sqlalchemy.orm import relationship
from marketplace.core.database import Base
from marketplace.core.constants import ProgressStatusEnum


class Progress(Base):
    __tablename__ = "progress"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False)
    lecture_id = Column(Integer, ForeignKey("lectures.id"), nullable=True)
    lecture_key = Column(String, nullable=False)  # lecture id, or the placeholder key
    lecture_title = Column(String, nullable=False)
    status = Column(SQLEnum(ProgressStatusEnum), nullable=False, default=ProgressStatusEnum.NOT_STARTED)
    watch_seconds = Column(Integer, nullable=False, default=0)
    total_duration = Column(Integer, nullable=False, default=0)
    completion_percentage = Column(Float, nullable=False, default=0.0)
    is_completed = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime, nullable=True)
    last_accessed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=True)

    __table_args__ = (
        Index('ix_progress_user_course', 'user_id', 'course_id'),
        Index('ux_progress_user_course_lecture', 'user_id', 'course_id', 'lecture_key', unique=True),
    )

    lecture = relationship("Lecture")

