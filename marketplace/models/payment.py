from decimal import Decimal
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey, Numeric, JSON, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from marketplace.core.database import Base
from marketplace.core.constants import PaymentStatusEnum, PaymentMethodEnum, CurrencyEnum

class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=True, index=True)
    status = Column(SQLEnum(PaymentStatusEnum), nullable=False, default=PaymentStatusEnum.PENDING)
    payment_method = Column(SQLEnum(PaymentMethodEnum), nullable=False, default=PaymentMethodEnum.STRIPE)
    currency = Column(SQLEnum(CurrencyEnum), nullable=False, default=CurrencyEnum.USD)
    amount = Column(Numeric(10, 2), nullable=False)
    fee = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    tax = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    net_amount = Column(Numeric(10, 2), nullable=False)
    description = Column(Text, nullable=True)

    transaction_id = Column(String, nullable=True)  # processor-side id
    payment_intent_id = Column(String, nullable=True)
    invoice_url = Column(String, nullable=True)
    receipt_url = Column(String, nullable=True)
    payment_metadata = Column(JSON, nullable=True)
    error_details = Column(JSON, nullable=True)

    is_refunded = Column(Boolean, nullable=False, default=False)
    refunded_amount = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    refunded_at = Column(DateTime, nullable=True)
    refund_reason = Column(Text, nullable=True)
    # set while a charge or refund is outstanding at the processor
    is_processing = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="payments")
    course = relationship("Course")

    @property
    def is_successful(self) -> bool:
        return self.status == PaymentStatusEnum.COMPLETED

    @property
    def total_amount(self) -> Decimal:
        return Decimal(self.amount) + Decimal(self.fee) + Decimal(self.tax)
