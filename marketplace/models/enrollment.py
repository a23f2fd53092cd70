from decimal import Decimal
from sqlalchemy import Column, Integer, ForeignKey, DateTime, Numeric, Float, UniqueConstraint, Enum as SQLEnum, func
from sqlalchemy.orm import relationship
from marketplace.core.database import Base
from marketplace.core.constants import EnrollmentStatusEnum

class Enrollment(Base):
    __tablename__ = "enrollments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False)
    status = Column(SQLEnum(EnrollmentStatusEnum), nullable=False, default=EnrollmentStatusEnum.ACTIVE)
    amount_paid = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    progress_percentage = Column(Float, nullable=False, default=0.0)
    completed_lectures = Column(Integer, nullable=False, default=0)
    total_watch_seconds = Column(Integer, nullable=False, default=0)
    last_accessed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=True)

    __table_args__ = (
        UniqueConstraint('user_id', 'course_id', name='unique_user_course_enrollment'),
    )

    user = relationship("User", back_populates="enrollments")
    course = relationship("Course", back_populates="enrollments")

