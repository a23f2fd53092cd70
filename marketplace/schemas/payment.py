from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, Dict, Any
from datetime import datetime
from decimal import Decimal

from marketplace.core.constants import PaymentStatusEnum, PaymentMethodEnum, CurrencyEnum


class PaymentCreate(BaseModel):
    course_id: Optional[int] = None
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    currency: CurrencyEnum = CurrencyEnum.USD
    payment_method: PaymentMethodEnum = PaymentMethodEnum.STRIPE
    description: Optional[str] = None
    payment_metadata: Optional[Dict[str, Any]] = None


class PaymentRefund(BaseModel):
    reason: Optional[str] = None


class Payment(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    course_id: Optional[int] = None
    status: PaymentStatusEnum
    payment_method: PaymentMethodEnum
    currency: CurrencyEnum
    amount: Decimal
    fee: Decimal
    tax: Decimal
    net_amount: Decimal
    description: Optional[str] = None
    transaction_id: Optional[str] = None
    payment_intent_id: Optional[str] = None
    invoice_url: Optional[str] = None
    receipt_url: Optional[str] = None
    error_details: Optional[Dict[str, Any]] = None
    is_refunded: bool
    refunded_amount: Decimal
    refunded_at: Optional[datetime] = None
    refund_reason: Optional[str] = None
    is_processing: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PaymentStats(BaseModel):
    total_payments: int
    total_revenue: Decimal
    monthly_revenue: Decimal
