# File: parksystem/application/reports.py
"""
Reports & Export

Read-only consumers of the Payment / Vehicle collections:
1. Income series for the charts (today by hour, last 7 days, last 30 days)
2. Payment totals by method and vehicle type, with optional filters
3. Dashboard summary of the current snapshot
4. CSV and JSON exports
"""

from collections import Counter
from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Sequence
import csv
import io
import json

from ..domain.models import (
    METHOD_LABELS, VEHICLE_LABELS, ParkingState, Payment, PaymentMethod,
    SubscriptionStatus, Vehicle, VehicleType
)
from ..domain.spaces import occupancy_by_type, status_counts
from .dtos import (
    DashboardDTO, IncomePointDTO, OccupancyDTO, PaymentDTO, PaymentSummaryDTO, VehicleDTO
)

PERIODS = ("daily", "weekly", "monthly")
WEEKDAYS = ("lun", "mar", "mié", "jue", "vie", "sáb", "dom")
CSV_COLUMNS = ("fecha", "placa", "tipo", "duracion", "metodo", "monto")
EXPORT_VEHICLE_LIMIT = 50


# ============================================================================
# FORMATTING
# ============================================================================

def format_currency(amount: int) -> str:
    """Whole amounts with '.' as thousands separator: 25000 -> '$25.000'"""
    return "$" + f"{amount:,}".replace(",", ".")


def format_duration(minutes: int) -> str:
    hours, mins = divmod(minutes, 60)
    if hours == 0:
        return f"{mins} min"
    return f"{hours}h {mins}min"


def format_datetime(value: datetime) -> str:
    return value.strftime("%d/%m/%Y, %H:%M")


# ============================================================================
# INCOME SERIES
# ============================================================================

def _total(payments: Iterable[Payment]) -> int:
    return sum(p.amount for p in payments)


def _on_day(payments: Sequence[Payment], day: date) -> List[Payment]:
    return [p for p in payments if p.date.date() == day]


def income_series(
    payments: Sequence[Payment],
    period: str,
    now: Optional[datetime] = None
) -> List[IncomePointDTO]:
    """
    Income buckets for a chart.

    daily: 24 hourly buckets of today; weekly: the last 7 days;
    monthly: the last 30 days. Oldest bucket first.
    """
    if period not in PERIODS:
        raise ValueError(f"Unknown report period: {period}")

    now = now or datetime.now()
    today = now.date()

    if period == "daily":
        todays = _on_day(payments, today)
        return [
            IncomePointDTO(
                label=f"{hour}:00",
                amount=_total(p for p in todays if p.date.hour == hour),
            )
            for hour in range(24)
        ]

    if period == "weekly":
        days = [today - timedelta(days=6 - i) for i in range(7)]
        return [
            IncomePointDTO(
                label=f"{WEEKDAYS[day.weekday()]} {day.day}",
                amount=_total(_on_day(payments, day)),
            )
            for day in days
        ]

    days = [today - timedelta(days=29 - i) for i in range(30)]
    return [
        IncomePointDTO(label=str(day.day), amount=_total(_on_day(payments, day)))
        for day in days
    ]


# ============================================================================
# SUMMARIES
# ============================================================================

def filter_payments(
    payments: Iterable[Payment],
    method: Optional[PaymentMethod] = None,
    vehicle_type: Optional[VehicleType] = None
) -> List[Payment]:
    return [
        p for p in payments
        if (method is None or p.method == method)
        and (vehicle_type is None or p.vehicle_type == vehicle_type)
    ]


def payment_summary(
    payments: Sequence[Payment],
    method: Optional[PaymentMethod] = None,
    vehicle_type: Optional[VehicleType] = None
) -> PaymentSummaryDTO:
    selected = filter_payments(payments, method, vehicle_type)
    by_method = {m.value: 0 for m in PaymentMethod}
    by_type: Counter = Counter()
    for payment in selected:
        by_method[PaymentMethod(payment.method).value] += payment.amount
        by_type[VehicleType(payment.vehicle_type).value] += payment.amount

    return PaymentSummaryDTO(
        total=_total(selected),
        count=len(selected),
        by_method=by_method,
        by_vehicle_type=dict(by_type),
    )


def dashboard_summary(state: ParkingState, now: Optional[datetime] = None) -> DashboardDTO:
    now = now or datetime.now()
    parked = state.parked_vehicles
    todays = _on_day(state.payments, now.date())
    occupancy = occupancy_by_type(state.spaces)

    return DashboardDTO(
        parked_by_type=dict(Counter(VehicleType(v.vehicle_type).value for v in parked)),
        parked_total=len(parked),
        today_income=_total(todays),
        today_payments=len(todays),
        average_duration_minutes=round(sum(p.duration for p in todays) / len(todays)) if todays else 0,
        occupancy=[
            OccupancyDTO(vehicle_type=t, **counts) for t, counts in occupancy.items()
        ],
        space_status_counts={s.value: n for s, n in status_counts(state.spaces).items()},
        parked_by_rate_type=dict(Counter(v.rate_type.value for v in parked)),
        active_subscriptions=sum(
            1 for s in state.subscriptions if s.status == SubscriptionStatus.ACTIVE
        ),
        pending_subscriptions=sum(
            1 for s in state.subscriptions if s.status == SubscriptionStatus.PENDING
        ),
    )


# ============================================================================
# EXPORT
# ============================================================================

def export_payments_csv(payments: Iterable[Payment]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_COLUMNS)
    for p in payments:
        writer.writerow((
            format_datetime(p.date),
            p.plate,
            VEHICLE_LABELS[VehicleType(p.vehicle_type)],
            format_duration(p.duration),
            METHOD_LABELS[PaymentMethod(p.method)],
            p.amount,
        ))
    return buffer.getvalue()


def export_report_json(
    payments: Iterable[Payment],
    vehicles: Iterable[Vehicle],
    limit: int = EXPORT_VEHICLE_LIMIT
) -> str:
    """Payments plus up to `limit` exited vehicles"""
    exited = [v for v in vehicles if not v.is_parked][:limit]
    return json.dumps(
        {
            "payments": [PaymentDTO.from_domain(p).to_dict() for p in payments],
            "vehicles": [VehicleDTO.from_domain(v).to_dict() for v in exited],
        },
        indent=2,
        ensure_ascii=False,
    )
