"""Gateways that actually move money.

``PaymentService`` only needs a yes/no answer from a charge or refund attempt;
these classes hide whether that answer comes from Stripe or from a local
simulation.
"""
import asyncio
import logging
import random
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Optional

import stripe

from marketplace.core.config import settings
from marketplace.core.constants import CurrencyEnum
from marketplace.core.exceptions import ExternalServiceError
from marketplace.models.payment import Payment

logger = logging.getLogger(__name__)

ZERO_DECIMAL_CURRENCIES = {CurrencyEnum.JPY}


class PaymentProcessor(ABC):

    @abstractmethod
    async def attempt_charge(self, payment: Payment) -> bool:
        ...

    @abstractmethod
    async def attempt_refund(self, payment: Payment) -> bool:
        ...


class MockPaymentProcessor(PaymentProcessor):
    """Simulates gateway latency and an occasional decline."""

    def __init__(
        self,
        charge_delay: float = None,
        refund_delay: float = None,
        charge_success_rate: float = None,
        refund_success_rate: float = None,
        rng: Optional[random.Random] = None,
    ):
        self.charge_delay = settings.MOCK_CHARGE_DELAY_SECONDS if charge_delay is None else charge_delay
        self.refund_delay = settings.MOCK_REFUND_DELAY_SECONDS if refund_delay is None else refund_delay
        self.charge_success_rate = (
            settings.MOCK_CHARGE_SUCCESS_RATE if charge_success_rate is None else charge_success_rate
        )
        self.refund_success_rate = (
            settings.MOCK_REFUND_SUCCESS_RATE if refund_success_rate is None else refund_success_rate
        )
        self._rng = rng or random.Random()

    async def attempt_charge(self, payment: Payment) -> bool:
        await asyncio.sleep(self.charge_delay)
        return self._rng.random() < self.charge_success_rate

    async def attempt_refund(self, payment: Payment) -> bool:
        await asyncio.sleep(self.refund_delay)
        return self._rng.random() < self.refund_success_rate


def _to_minor_units(amount: Decimal, currency: CurrencyEnum) -> int:
    if currency in ZERO_DECIMAL_CURRENCIES:
        return int(Decimal(amount).quantize(Decimal("1")))
    return int((Decimal(amount) * 100).quantize(Decimal("1")))


class StripePaymentProcessor(PaymentProcessor):
    """Charges through Stripe PaymentIntents.

    The card to charge is read from ``payment_metadata["payment_method_id"]``.
    The SDK is synchronous, so calls run in a worker thread and stay
    cancellable by the caller's timeout.
    """

    def __init__(self, api_key: str):
        stripe.api_key = api_key

    async def _make_request(self, stripe_api_call, *args, **kwargs):
        try:
            return await asyncio.to_thread(stripe_api_call, *args, **kwargs)
        except stripe.CardError as e:
            logger.warning(f"Stripe declined the request: {e.code}")
            return None
        except stripe.StripeError as e:
            raise ExternalServiceError(
                f"Stripe error: {e.user_message or 'request failed'}", code="PROCESSOR_ERROR"
            )

    async def attempt_charge(self, payment: Payment) -> bool:
        metadata = payment.payment_metadata or {}
        intent = await self._make_request(
            stripe.PaymentIntent.create,
            amount=_to_minor_units(payment.amount, payment.currency),
            currency=payment.currency.value.lower(),
            payment_method=metadata.get("payment_method_id"),
            confirm=True,
            automatic_payment_methods={"enabled": True, "allow_redirects": "never"},
            description=payment.description,
            metadata={"payment_id": str(payment.id), "user_id": str(payment.user_id)},
            idempotency_key=f"payment-{payment.id}",
        )
        if intent is None:
            return False
        payment.payment_intent_id = intent.id
        return intent.status == "succeeded"

    async def attempt_refund(self, payment: Payment) -> bool:
        if not payment.payment_intent_id:
            logger.warning(f"Payment {payment.id} has no Stripe payment intent to refund")
            return False
        refund = await self._make_request(
            stripe.Refund.create,
            payment_intent=payment.payment_intent_id,
            idempotency_key=f"refund-{payment.id}",
        )
        return refund is not None and refund.status in ("succeeded", "pending")


def get_payment_processor() -> PaymentProcessor:
    if settings.PAYMENT_PROCESSOR == "stripe":
        if not settings.STRIPE_SECRET_KEY:
            raise RuntimeError("STRIPE_SECRET_KEY must be set when PAYMENT_PROCESSOR=stripe")
        return StripePaymentProcessor(settings.STRIPE_SECRET_KEY)
    return MockPaymentProcessor()
