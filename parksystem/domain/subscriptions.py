# File: parksystem/domain/subscriptions.py
"""
Subscription Status Resolver

Status is recomputed on every load/tick rather than stored as truth:
- active if a payment covers the current (month, year)
- pending if not paid and today's day >= cut day
- otherwise unchanged, so a subscription is never flipped to pending
  before its cut day arrives
"""

from dataclasses import replace
from datetime import date, datetime
from typing import Callable, Iterable, Optional, Sequence, Tuple

from .identifiers import generate_id
from .models import (
    MonthlyPayment, MonthlySubscription, ParkingConfig, SubscriptionStatus, VehicleType
)
from .outcomes import FailureCode, Outcome
from .plates import normalize_plate, validate_plate


def _as_date(value) -> date:
    return value.date() if isinstance(value, datetime) else value


def resolve_status(sub: MonthlySubscription, today: date) -> MonthlySubscription:
    today = _as_date(today)
    if sub.has_paid_for(today):
        status = SubscriptionStatus.ACTIVE
    elif today.day >= sub.cut_day:
        status = SubscriptionStatus.PENDING
    else:
        return sub

    if status == sub.status:
        return sub
    return replace(sub, status=status)


def resolve_all(
    subs: Iterable[MonthlySubscription],
    today: date
) -> Tuple[MonthlySubscription, ...]:
    return tuple(resolve_status(sub, today) for sub in subs)


def create_subscription(
    plate: str,
    client_name: str,
    vehicle_type: VehicleType,
    cut_day: int,
    config: ParkingConfig,
    start_date: Optional[date] = None,
    phone: Optional[str] = None,
    id_factory: Callable[[], str] = generate_id
) -> Outcome:
    """
    Build a new active subscription priced at the monthly rate.

    Rejects a malformed plate, a plate/type mismatch, an empty client name
    and an out-of-range cut day.
    """
    plate = normalize_plate(plate)
    validation = validate_plate(plate, vehicle_type)
    if not validation.valid:
        return Outcome.fail(validation.error, validation.message)

    if not client_name or not client_name.strip():
        return Outcome.fail(FailureCode.MISSING_REQUIRED_FIELD, "El nombre del cliente es obligatorio")

    if not 1 <= cut_day <= 31:
        return Outcome.fail(FailureCode.INVALID_CUT_DAY, "El día de corte debe estar entre 1 y 31")

    return Outcome.ok(MonthlySubscription(
        id=id_factory(),
        plate=plate,
        client_name=client_name.strip(),
        vehicle_type=vehicle_type,
        start_date=_as_date(start_date or date.today()),
        cut_day=cut_day,
        price=config.monthly_rate(vehicle_type),
        status=SubscriptionStatus.ACTIVE,
        phone=(phone or "").strip() or None,
    ))


def pay(
    sub: MonthlySubscription,
    now: datetime,
    enforce_single_payment: bool = False,
    id_factory: Callable[[], str] = generate_id
) -> Outcome:
    """
    Record a monthly payment for the current month and mark it active.

    Paying twice in one month appends a second record unless
    enforce_single_payment is set, in which case ALREADY_PAID_THIS_MONTH.
    """
    if enforce_single_payment and sub.has_paid_for(_as_date(now)):
        return Outcome.fail(
            FailureCode.ALREADY_PAID_THIS_MONTH,
            f"La mensualidad de {sub.plate} ya fue pagada este mes",
        )

    payment = MonthlyPayment(
        id=id_factory(),
        date=now,
        amount=sub.price,
        month=now.month,
        year=now.year,
    )
    return Outcome.ok(replace(
        sub,
        payments=sub.payments + (payment,),
        status=SubscriptionStatus.ACTIVE,
    ))


def delete(sub_id: str, subs: Sequence[MonthlySubscription]) -> Outcome:
    """Remove a subscription; past payments and vehicles are untouched"""
    remaining = tuple(s for s in subs if s.id != sub_id)
    if len(remaining) == len(subs):
        return Outcome.fail(FailureCode.ENTITY_NOT_FOUND, f"Mensualidad {sub_id} no encontrada")
    return Outcome.ok(remaining)


def find_active_subscription(
    plate: str,
    subs: Iterable[MonthlySubscription],
    today: Optional[date] = None
) -> Optional[MonthlySubscription]:
    """
    Active subscription for the plate, if any.

    With today given, each candidate is resolved first, so a subscription
    past its cut day and unpaid no longer counts even if the stored status
    has not been refreshed.
    """
    for sub in subs:
        if sub.plate != plate:
            continue
        if today is not None:
            sub = resolve_status(sub, today)
        if sub.status == SubscriptionStatus.ACTIVE:
            return sub
    return None
