# File: parksystem/domain/pricing.py
"""
Duration and Fee Calculators

Pure functions over an immutable ParkingConfig snapshot:
- calc_duration: entry/exit timestamps -> billable minutes (>= 1)
- calc_fee: minutes + vehicle type + rate plan (+ convenio) -> amount
- calc_fee_breakdown: subtotal / discount / amount for receipts
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union
import math

from .models import ParkingConfig, RateType, VehicleType
from .strategies import HourlyPricingStrategy, PricingStrategyFactory

Timestamp = Union[datetime, str]


@dataclass(frozen=True)
class FeeBreakdown:
    subtotal: int
    discount: int
    amount: int
    billable_hours: Optional[int] = None


def as_local_datetime(value: Timestamp) -> datetime:
    """
    Timestamp as a naive local datetime.

    Aware values (e.g. ISO strings ending in Z) are converted to local time
    and stripped of their offset, so they subtract cleanly from the naive
    clock readings the service records.
    """
    if not isinstance(value, datetime):
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        value = datetime.fromisoformat(value)
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    return value


def calc_duration(entry: Timestamp, exit: Timestamp) -> int:
    """
    Minutes between entry and exit, rounded up.

    Zero or negative deltas (clock skew) clamp to 1 so every stay is billed
    at least one minute.
    """
    delta = as_local_datetime(exit) - as_local_datetime(entry)
    return max(1, math.ceil(delta.total_seconds() / 60))


def calc_fee(
    minutes: int,
    vehicle_type: VehicleType,
    rate_type: RateType,
    config: ParkingConfig,
    convenio: bool = False
) -> int:
    """Charge for a stay under the given rate plan"""
    strategy = PricingStrategyFactory.get_strategy(RateType(rate_type))
    return strategy.calculate_fee(minutes, VehicleType(vehicle_type), config, convenio)


def calc_fee_breakdown(
    minutes: int,
    vehicle_type: VehicleType,
    rate_type: RateType,
    config: ParkingConfig,
    convenio: bool = False
) -> FeeBreakdown:
    """
    Fee with its receipt breakdown.

    subtotal is the charge without convenio; discount = subtotal - amount.
    """
    rate_type = RateType(rate_type)
    subtotal = calc_fee(minutes, vehicle_type, rate_type, config, False)
    amount = calc_fee(minutes, vehicle_type, rate_type, config, convenio) if convenio else subtotal

    hours = None
    strategy = PricingStrategyFactory.get_strategy(rate_type)
    if isinstance(strategy, HourlyPricingStrategy):
        hours = strategy.billable_hours(minutes, config, convenio)

    return FeeBreakdown(
        subtotal=subtotal,
        discount=subtotal - amount,
        amount=amount,
        billable_hours=hours,
    )
