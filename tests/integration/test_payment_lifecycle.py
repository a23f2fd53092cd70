import asyncio
import random
from decimal import Decimal
from types import SimpleNamespace
import pytest
import stripe
from sqlalchemy.orm import Session, sessionmaker

from marketplace.core.config import settings
from marketplace.core.constants import PaymentStatusEnum, CurrencyEnum, DEFAULT_REFUND_REASON
from marketplace.core.exceptions import (
    NotFoundError, ConflictError, PreconditionFailedError, ExternalServiceError, ProcessorTimeoutError
)
from marketplace.models.payment import Payment
from marketplace.services.payment import PaymentService, calculate_charges
from marketplace.services.payment_processor import (
    MockPaymentProcessor, StripePaymentProcessor, get_payment_processor, _to_minor_units
)
from tests.helpers.processors import ScriptedProcessor


def _service(charges=None, refunds=None, timeout: float = 1.0) -> PaymentService:
    return PaymentService(processor=ScriptedProcessor(charges=charges, refunds=refunds), timeout=timeout)


def _reload(db_session: Session, payment_id: int) -> Payment:
    db_session.expire_all()
    return db_session.get(Payment, payment_id)


def test_calculate_charges_rounds_to_cents():
    fee, tax, net = calculate_charges(Decimal("89.99"), 0.029, 0.08)

    assert (fee, tax, net) == (Decimal("2.61"), Decimal("7.20"), Decimal("80.18"))


def test_calculate_charges_rounds_half_up():
    fee, tax, net = calculate_charges(Decimal("0.50"), 0.01, 0.0)

    assert fee == Decimal("0.01")
    assert tax == Decimal("0.00")
    assert net == Decimal("0.49")


@pytest.mark.asyncio
async def test_failed_charge_then_reprocess_is_rejected(db_session: Session, course_factory, user_factory):
    course = course_factory(price="89.99")
    buyer = user_factory()
    service = _service(charges=[False])

    payment = service.create_payment(db_session, user_id=buyer.id, course_id=course.id, amount=Decimal("89.99"))

    assert payment.status == PaymentStatusEnum.PENDING
    assert payment.fee == Decimal("2.61")
    assert payment.tax == Decimal("7.20")
    assert payment.net_amount == Decimal("80.18")
    assert payment.description == f"Payment for {course.title}"

    payment = await service.process_payment(db_session, payment.id)
    assert payment.status == PaymentStatusEnum.FAILED
    assert payment.error_details["code"] == "PAYMENT_FAILED"
    assert payment.transaction_id is None

    with pytest.raises(PreconditionFailedError) as exc_info:
        await service.process_payment(db_session, payment.id)
    assert exc_info.value.code == "INVALID_PAYMENT_STATE"
    assert service.processor.charge_calls == 1


@pytest.mark.asyncio
async def test_successful_charge_records_references(db_session: Session, course_factory, user_factory):
    course = course_factory(price="20.00")
    buyer = user_factory()
    service = _service(charges=[True])
    payment = service.create_payment(db_session, user_id=buyer.id, course_id=course.id, amount=Decimal("20.00"))

    payment = await service.process_payment(db_session, payment.id)

    assert payment.status == PaymentStatusEnum.COMPLETED
    assert payment.is_successful
    assert payment.transaction_id.startswith("txn_")
    assert payment.payment_intent_id.startswith("pi_")
    assert payment.invoice_url.endswith(f"/{payment.id}")
    assert payment.receipt_url.endswith(f"/{payment.id}")
    assert payment.total_amount == Decimal("20.00") + payment.fee + payment.tax


def test_create_payment_validation(db_session: Session, course_factory, user_factory):
    course = course_factory(price="49.99")
    draft = course_factory(is_published=False)
    buyer = user_factory()
    service = _service()

    with pytest.raises(PreconditionFailedError) as underpaid:
        service.create_payment(db_session, user_id=buyer.id, course_id=course.id, amount=Decimal("49.98"))
    with pytest.raises(PreconditionFailedError) as unavailable:
        service.create_payment(db_session, user_id=buyer.id, course_id=draft.id, amount=Decimal("49.99"))
    with pytest.raises(NotFoundError) as missing:
        service.create_payment(db_session, user_id=buyer.id, course_id=424242, amount=Decimal("49.99"))
    with pytest.raises(PreconditionFailedError) as non_positive:
        service.create_payment(db_session, user_id=buyer.id, amount=Decimal("0"))

    assert underpaid.value.code == "UNDERPAID_AMOUNT"
    assert unavailable.value.code == "COURSE_UNAVAILABLE"
    assert missing.value.code == "COURSE_NOT_FOUND"
    assert non_positive.value.code == "INVALID_AMOUNT"
    assert db_session.query(Payment).count() == 0


def test_payment_without_course_is_allowed(db_session: Session, user_factory):
    buyer = user_factory()

    payment = _service().create_payment(db_session, user_id=buyer.id, amount=Decimal("15.00"), description="Tip")

    assert payment.course_id is None
    assert payment.description == "Tip"


def test_free_course_payment_is_not_held_to_list_price(db_session: Session, course_factory, user_factory):
    course = course_factory(price="25.00", is_free=True)
    buyer = user_factory()

    payment = _service().create_payment(db_session, user_id=buyer.id, course_id=course.id, amount=Decimal("1.00"))

    assert course.effective_price == Decimal("0.00")
    assert payment.amount == Decimal("1.00")
    assert payment.status == PaymentStatusEnum.PENDING


@pytest.mark.asyncio
async def test_processor_timeout_leaves_payment_pending(db_session: Session, course_factory, user_factory):
    course = course_factory(price="10.00")
    buyer = user_factory()
    service = _service(charges=[None], timeout=0.05)
    payment = service.create_payment(db_session, user_id=buyer.id, course_id=course.id, amount=Decimal("10.00"))

    with pytest.raises(ProcessorTimeoutError) as exc_info:
        await service.process_payment(db_session, payment.id)

    assert exc_info.value.code == "PROCESSOR_TIMEOUT"
    stored = _reload(db_session, payment.id)
    assert stored.status == PaymentStatusEnum.PENDING
    assert stored.is_processing is True

    with pytest.raises(ConflictError) as retry_exc:
        await service.process_payment(db_session, payment.id)
    assert retry_exc.value.code == "PAYMENT_IN_PROGRESS"
    assert service.processor.charge_calls == 1


@pytest.mark.asyncio
async def test_refund_state_machine(db_session: Session, course_factory, user_factory):
    course = course_factory(price="30.00")
    buyer = user_factory()
    service = _service(charges=[True], refunds=[True])
    payment = service.create_payment(db_session, user_id=buyer.id, course_id=course.id, amount=Decimal("30.00"))

    with pytest.raises(PreconditionFailedError) as pending_exc:
        await service.refund_payment(db_session, payment.id)
    assert pending_exc.value.code == "NOT_REFUNDABLE"

    await service.process_payment(db_session, payment.id)
    refunded = await service.refund_payment(db_session, payment.id)

    assert refunded.status == PaymentStatusEnum.REFUNDED
    assert refunded.is_refunded is True
    assert refunded.refunded_amount == Decimal("30.00")
    assert refunded.refunded_at is not None
    assert refunded.refund_reason == DEFAULT_REFUND_REASON

    with pytest.raises(ConflictError) as again:
        await service.refund_payment(db_session, payment.id, reason="twice")
    assert again.value.code == "ALREADY_REFUNDED"
    assert service.processor.refund_calls == 1


@pytest.mark.asyncio
async def test_failed_payment_is_not_refundable(db_session: Session, user_factory):
    buyer = user_factory()
    service = _service(charges=[False])
    payment = service.create_payment(db_session, user_id=buyer.id, amount=Decimal("5.00"))
    await service.process_payment(db_session, payment.id)

    with pytest.raises(PreconditionFailedError) as exc_info:
        await service.refund_payment(db_session, payment.id)

    assert exc_info.value.code == "NOT_REFUNDABLE"


@pytest.mark.asyncio
async def test_declined_refund_writes_nothing(db_session: Session, user_factory):
    buyer = user_factory()
    service = _service(charges=[True], refunds=[False])
    payment = service.create_payment(db_session, user_id=buyer.id, amount=Decimal("12.50"))
    await service.process_payment(db_session, payment.id)

    with pytest.raises(ExternalServiceError) as exc_info:
        await service.refund_payment(db_session, payment.id, reason="Changed my mind")

    assert exc_info.value.code == "REFUND_FAILED"
    stored = _reload(db_session, payment.id)
    assert stored.status == PaymentStatusEnum.COMPLETED
    assert stored.is_refunded is False
    assert stored.refund_reason is None
    assert stored.is_processing is False

    retried = await service.refund_payment(db_session, payment.id)
    assert retried.status == PaymentStatusEnum.REFUNDED


@pytest.mark.asyncio
async def test_concurrent_processing_charges_once(db_session: Session, database_engine, user_factory):
    buyer = user_factory()
    service = PaymentService(processor=ScriptedProcessor(charges=[True, True], delay=0.2), timeout=1.0)
    payment = service.create_payment(db_session, user_id=buyer.id, amount=Decimal("25.00"))
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=database_engine)
    first, second = SessionLocal(), SessionLocal()

    try:
        results = await asyncio.gather(
            service.process_payment(first, payment.id),
            service.process_payment(second, payment.id),
            return_exceptions=True,
        )
    finally:
        first.close()
        second.close()

    assert service.processor.charge_calls == 1
    errors = [r for r in results if isinstance(r, Exception)]
    assert len(errors) == 1
    assert isinstance(errors[0], ConflictError)
    assert errors[0].code == "PAYMENT_IN_PROGRESS"
    stored = _reload(db_session, payment.id)
    assert stored.status == PaymentStatusEnum.COMPLETED
    assert stored.is_processing is False


@pytest.mark.asyncio
async def test_concurrent_refunds_refund_once(db_session: Session, database_engine, user_factory):
    buyer = user_factory()
    service = PaymentService(processor=ScriptedProcessor(charges=[True], refunds=[True, True], delay=0.2), timeout=1.0)
    payment = service.create_payment(db_session, user_id=buyer.id, amount=Decimal("25.00"))
    await service.process_payment(db_session, payment.id)
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=database_engine)
    first, second = SessionLocal(), SessionLocal()

    try:
        results = await asyncio.gather(
            service.refund_payment(first, payment.id),
            service.refund_payment(second, payment.id),
            return_exceptions=True,
        )
    finally:
        first.close()
        second.close()

    assert service.processor.refund_calls == 1
    errors = [r for r in results if isinstance(r, Exception)]
    assert len(errors) == 1
    assert errors[0].code == "PAYMENT_IN_PROGRESS"
    stored = _reload(db_session, payment.id)
    assert stored.status == PaymentStatusEnum.REFUNDED
    assert stored.refunded_amount == Decimal("25.00")


@pytest.mark.asyncio
async def test_refund_keeps_given_reason(db_session: Session, user_factory):
    buyer = user_factory()
    service = _service(charges=[True], refunds=[True])
    payment = service.create_payment(db_session, user_id=buyer.id, amount=Decimal("12.50"))
    await service.process_payment(db_session, payment.id)

    refunded = await service.refund_payment(db_session, payment.id, reason="Duplicate purchase")

    assert refunded.refund_reason == "Duplicate purchase"


@pytest.mark.asyncio
async def test_payment_stats_count_completed_only(db_session: Session, user_factory):
    buyer = user_factory()
    service = _service(charges=[True, True, False])
    for amount in ("10.00", "15.50", "99.00"):
        payment = service.create_payment(db_session, user_id=buyer.id, amount=Decimal(amount))
        await service.process_payment(db_session, payment.id)
    service.create_payment(db_session, user_id=buyer.id, amount=Decimal("7.00"))

    stats = service.payment_stats(db_session)

    assert stats.total_payments == 2
    assert stats.total_revenue == Decimal("25.50")
    assert stats.monthly_revenue == Decimal("25.50")
    assert len(service.list_user_payments(db_session, buyer.id)) == 4


def test_get_payment_not_found(db_session: Session):
    with pytest.raises(NotFoundError) as exc_info:
        _service().get_payment(db_session, 31337)

    assert exc_info.value.code == "PAYMENT_NOT_FOUND"


@pytest.mark.asyncio
async def test_mock_processor_follows_configured_rates():
    always = MockPaymentProcessor(charge_delay=0, refund_delay=0, charge_success_rate=1.0,
                                  refund_success_rate=1.0, rng=random.Random(7))
    never = MockPaymentProcessor(charge_delay=0, refund_delay=0, charge_success_rate=0.0,
                                 refund_success_rate=0.0, rng=random.Random(7))

    assert await always.attempt_charge(None) is True
    assert await always.attempt_refund(None) is True
    assert await never.attempt_charge(None) is False
    assert await never.attempt_refund(None) is False


def test_list_course_payments(db_session: Session, course_factory, user_factory):
    course = course_factory(price="10.00")
    service = _service()
    for buyer in (user_factory(), user_factory()):
        service.create_payment(db_session, user_id=buyer.id, course_id=course.id, amount=Decimal("10.00"))
    service.create_payment(db_session, user_id=user_factory().id, amount=Decimal("3.00"))

    assert len(service.list_course_payments(db_session, course.id)) == 2


def test_minor_units_respect_zero_decimal_currencies():
    assert _to_minor_units(Decimal("89.99"), CurrencyEnum.USD) == 8999
    assert _to_minor_units(Decimal("1200"), CurrencyEnum.JPY) == 1200


def test_default_processor_is_the_mock(monkeypatch):
    monkeypatch.setattr(settings, "PAYMENT_PROCESSOR", "mock")

    assert isinstance(get_payment_processor(), MockPaymentProcessor)


def test_stripe_processor_requires_a_key(monkeypatch):
    monkeypatch.setattr(settings, "PAYMENT_PROCESSOR", "stripe")
    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", None)

    with pytest.raises(RuntimeError):
        get_payment_processor()


@pytest.mark.asyncio
async def test_stripe_processor_charges_through_payment_intents(monkeypatch):
    calls = {}

    def _create_intent(**kwargs):
        calls.update(kwargs)
        return SimpleNamespace(id="pi_test_123", status="succeeded")

    monkeypatch.setattr(stripe.PaymentIntent, "create", _create_intent)
    payment = Payment(
        id=7, user_id=3, amount=Decimal("89.99"), currency=CurrencyEnum.USD,
        description="Payment for Options", payment_metadata={"payment_method_id": "pm_card_visa"},
    )

    assert await StripePaymentProcessor("sk_test_dummy").attempt_charge(payment) is True
    assert payment.payment_intent_id == "pi_test_123"
    assert calls["amount"] == 8999
    assert calls["currency"] == "usd"
    assert calls["idempotency_key"] == "payment-7"


@pytest.mark.asyncio
async def test_stripe_refund_without_intent_is_declined():
    payment = Payment(id=8, user_id=3, amount=Decimal("5.00"), currency=CurrencyEnum.USD)

    assert await StripePaymentProcessor("sk_test_dummy").attempt_refund(payment) is False
