# File: parksystem/domain/models.py
"""
Domain Models for the ParkSystem Rate & Occupancy Engine

This module contains:
1. Enums: Vehicle, rate, space, payment and subscription vocabularies
2. Records: Immutable vehicles, spaces, payments and subscriptions
3. Configuration: Rates table, space pool sizes and billing toggles
4. State: The snapshot of all collections handed to persistence

All records are frozen dataclasses. State transitions never mutate a record,
they build a new one with dataclasses.replace and return it to the caller.
"""

from dataclasses import dataclass, field, replace
from typing import Optional, Dict, Any, Tuple
from datetime import datetime, date
from enum import Enum


# ============================================================================
# ENUMS
# ============================================================================

class VehicleType(str, Enum):
    """Vehicle classes handled by the lot"""
    CAR = "car"
    MOTORCYCLE = "motorcycle"
    TRUCK = "truck"

    @property
    def space_prefix(self) -> str:
        """Prefix used for the display label of a space of this type"""
        return {
            VehicleType.CAR: "C",
            VehicleType.MOTORCYCLE: "M",
            VehicleType.TRUCK: "T",
        }[self]

    @property
    def plate_ends_with_letter(self) -> bool:
        """Motorcycle plates end in a letter, every other class in a digit"""
        return self == VehicleType.MOTORCYCLE

    def __str__(self) -> str:
        return VEHICLE_LABELS[self]


class RateType(str, Enum):
    """Rate plans a vehicle can be billed under"""
    HOUR = "hour"
    DAY = "day"
    NIGHT = "night"
    FULL_DAY = "24h"

    @property
    def is_flat(self) -> bool:
        """Flat plans charge a fixed amount regardless of minutes"""
        return self != RateType.HOUR

    def __str__(self) -> str:
        return RATE_LABELS[self]


class SpaceStatus(str, Enum):
    FREE = "free"
    OCCUPIED = "occupied"
    BLOCKED = "blocked"
    RESERVED = "reserved"

    def __str__(self) -> str:
        return SPACE_LABELS[self]


class VehicleStatus(str, Enum):
    PARKED = "parked"
    EXITED = "exited"


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"

    def __str__(self) -> str:
        return METHOD_LABELS[self]


class PaymentStatus(str, Enum):
    PAID = "paid"
    PENDING = "pending"


class SubscriptionStatus(str, Enum):
    ACTIVE = "active"
    PENDING = "pending"


class UserRole(str, Enum):
    ADMIN = "admin"
    CASHIER = "cashier"


# Display labels used on receipts, reports and exports
VEHICLE_LABELS: Dict[VehicleType, str] = {
    VehicleType.CAR: "Carro",
    VehicleType.MOTORCYCLE: "Moto",
    VehicleType.TRUCK: "Camioneta",
}

RATE_LABELS: Dict[RateType, str] = {
    RateType.HOUR: "Por Hora",
    RateType.DAY: "Por Día",
    RateType.NIGHT: "Por Noche",
    RateType.FULL_DAY: "24 Horas",
}

SPACE_LABELS: Dict[SpaceStatus, str] = {
    SpaceStatus.FREE: "Libre",
    SpaceStatus.OCCUPIED: "Ocupado",
    SpaceStatus.BLOCKED: "Bloqueado",
    SpaceStatus.RESERVED: "Reservado",
}

METHOD_LABELS: Dict[PaymentMethod, str] = {
    PaymentMethod.CASH: "Efectivo",
    PaymentMethod.CARD: "Tarjeta",
}


# ============================================================================
# RECORDS
# ============================================================================

@dataclass(frozen=True)
class Vehicle:
    """
    A vehicle visit, from entry registration to exit.

    Created parked; mutated exactly once on exit (status, exit_time and the
    convenio flag applied at the gate). Exited is terminal.
    """
    id: str
    plate: str
    vehicle_type: VehicleType
    rate_type: RateType
    entry_time: datetime
    space_id: str
    ticket_code: str
    status: VehicleStatus = VehicleStatus.PARKED
    exit_time: Optional[datetime] = None
    convenio: Optional[bool] = None
    helmet_number: Optional[str] = None

    @property
    def is_parked(self) -> bool:
        return self.status == VehicleStatus.PARKED

    def mark_exited(self, exit_time: datetime, convenio: bool = False) -> 'Vehicle':
        """Return the exited copy of this vehicle"""
        if not self.is_parked:
            raise ValueError(f"Vehicle {self.id} has already exited")
        return replace(
            self,
            status=VehicleStatus.EXITED,
            exit_time=exit_time,
            convenio=convenio,
        )


@dataclass(frozen=True)
class ParkingSpace:
    """
    A single space of the pool.

    The type is fixed when the pool is materialized; only the status cycles.
    vehicle_id is set iff the space is occupied.
    """
    id: str
    label: str
    space_type: VehicleType
    status: SpaceStatus = SpaceStatus.FREE
    vehicle_id: Optional[str] = None

    def __post_init__(self):
        if (self.status == SpaceStatus.OCCUPIED) != (self.vehicle_id is not None):
            raise ValueError(
                f"Space {self.id}: vehicle_id must be set iff status is occupied"
            )

    @property
    def is_free(self) -> bool:
        return self.status == SpaceStatus.FREE

    def with_status(self, status: SpaceStatus, vehicle_id: Optional[str] = None) -> 'ParkingSpace':
        return replace(self, status=status, vehicle_id=vehicle_id)


@dataclass(frozen=True)
class Payment:
    """Immutable charge recorded when a vehicle leaves"""
    id: str
    vehicle_id: str
    plate: str
    amount: int
    subtotal: int
    discount: int
    method: PaymentMethod
    date: datetime
    vehicle_type: VehicleType
    rate_type: RateType
    duration: int
    convenio: bool = False
    status: PaymentStatus = PaymentStatus.PAID

    def __post_init__(self):
        if self.amount < 0 or self.subtotal < 0:
            raise ValueError("Payment amounts cannot be negative")
        if self.discount != self.subtotal - self.amount:
            raise ValueError("Payment discount must equal subtotal minus amount")


@dataclass(frozen=True)
class MonthlyPayment:
    id: str
    date: datetime
    amount: int
    month: int
    year: int

    def __post_init__(self):
        if not 1 <= self.month <= 12:
            raise ValueError(f"Month must be between 1 and 12, got: {self.month}")

    def covers(self, day: date) -> bool:
        """True if this payment belongs to the billing month of the given day"""
        return self.month == day.month and self.year == day.year


@dataclass(frozen=True)
class MonthlySubscription:
    """
    Monthly subscription ("mensualidad") for a single plate.

    status is derived: see subscriptions.resolve_status.
    """
    id: str
    plate: str
    client_name: str
    vehicle_type: VehicleType
    start_date: date
    cut_day: int
    price: int
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    payments: Tuple[MonthlyPayment, ...] = ()
    phone: Optional[str] = None

    def __post_init__(self):
        if not 1 <= self.cut_day <= 31:
            raise ValueError(f"Cut day must be between 1 and 31, got: {self.cut_day}")
        if self.price < 0:
            raise ValueError("Subscription price cannot be negative")

    def has_paid_for(self, day: date) -> bool:
        return any(payment.covers(day) for payment in self.payments)


# ============================================================================
# CONFIGURATION
# ============================================================================

RATE_KEYS = ("hour", "day", "night", "24h", "monthly")

DEFAULT_RATES: Dict[VehicleType, Dict[str, int]] = {
    VehicleType.CAR: {"hour": 5000, "day": 25000, "night": 15000, "24h": 35000, "monthly": 250000},
    VehicleType.MOTORCYCLE: {"hour": 3000, "day": 15000, "night": 10000, "24h": 20000, "monthly": 150000},
    VehicleType.TRUCK: {"hour": 8000, "day": 40000, "night": 25000, "24h": 50000, "monthly": 400000},
}

DEFAULT_TOTAL_SPACES: Dict[VehicleType, int] = {
    VehicleType.CAR: 20,
    VehicleType.MOTORCYCLE: 10,
    VehicleType.TRUCK: 5,
}

DEFAULT_GRACE_PERIOD = 5


@dataclass(frozen=True)
class ReceiptConfig:
    """Receipt display settings. Never read by billing."""
    header_text: str = "ParkSystem Pro"
    footer_text: str = "Gracias por su visita"
    logo_url: str = ""
    width_mm: int = 80

    def __post_init__(self):
        if self.width_mm <= 0:
            raise ValueError(f"Receipt width must be positive, got: {self.width_mm}")


@dataclass(frozen=True)
class ParkingConfig:
    """
    Process-wide billing and pool configuration.

    Read-only during a billing computation; replaced wholesale by the
    application service when an administrator updates it.
    """
    rates: Dict[VehicleType, Dict[str, int]] = field(
        default_factory=lambda: {t: dict(r) for t, r in DEFAULT_RATES.items()}
    )
    total_spaces: Dict[VehicleType, int] = field(
        default_factory=lambda: dict(DEFAULT_TOTAL_SPACES)
    )
    vehicle_types: Tuple[VehicleType, ...] = (VehicleType.CAR, VehicleType.MOTORCYCLE)
    grace_period: Optional[int] = DEFAULT_GRACE_PERIOD
    grace_period_enabled: bool = True
    convenio_minimum_hours: int = 0
    enforce_single_monthly_payment: bool = False
    currency: str = "COP"
    name: str = "ParkSystem Pro"
    receipt_entry: ReceiptConfig = field(default_factory=ReceiptConfig)
    receipt_exit: ReceiptConfig = field(default_factory=ReceiptConfig)
    receipt_monthly: ReceiptConfig = field(default_factory=ReceiptConfig)

    def __post_init__(self):
        """Validate the configuration"""
        if not self.vehicle_types:
            raise ValueError("At least one vehicle type must be enabled")

        for vehicle_type in self.vehicle_types:
            rates = self.rates.get(vehicle_type)
            if rates is None:
                raise ValueError(f"Missing rates for vehicle type: {vehicle_type.value}")
            for key in RATE_KEYS:
                if key not in rates:
                    raise ValueError(f"Missing '{key}' rate for {vehicle_type.value}")
                if rates[key] < 0:
                    raise ValueError(f"Rate '{key}' for {vehicle_type.value} cannot be negative")
            if self.total_spaces.get(vehicle_type, 0) < 0:
                raise ValueError(f"Space count for {vehicle_type.value} cannot be negative")

        if self.grace_period is not None and self.grace_period < 0:
            raise ValueError("Grace period cannot be negative")

        if self.convenio_minimum_hours not in (0, 1):
            raise ValueError(
                f"convenio_minimum_hours must be 0 or 1, got: {self.convenio_minimum_hours}"
            )

        if len(self.currency) != 3:
            raise ValueError(f"Currency must be 3-letter code: {self.currency}")

    @classmethod
    def default(cls, include_trucks: bool = False) -> 'ParkingConfig':
        types = (VehicleType.CAR, VehicleType.MOTORCYCLE)
        if include_trucks:
            types = types + (VehicleType.TRUCK,)
        return cls(vehicle_types=types)

    @property
    def effective_grace_period(self) -> int:
        """Grace minutes applied by hourly billing (5 when unset, 0 when disabled)"""
        if not self.grace_period_enabled:
            return 0
        if self.grace_period is None:
            return DEFAULT_GRACE_PERIOD
        return self.grace_period

    def rate_for(self, vehicle_type: VehicleType, key: str) -> int:
        try:
            return self.rates[vehicle_type][key]
        except KeyError:
            raise ValueError(f"No '{key}' rate configured for {vehicle_type.value}")

    def hourly_rate(self, vehicle_type: VehicleType) -> int:
        return self.rate_for(vehicle_type, RateType.HOUR.value)

    def monthly_rate(self, vehicle_type: VehicleType) -> int:
        return self.rate_for(vehicle_type, "monthly")

    def supports(self, vehicle_type: VehicleType) -> bool:
        return vehicle_type in self.vehicle_types

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization"""
        return {
            "rates": {t.value: dict(r) for t, r in self.rates.items()},
            "total_spaces": {t.value: n for t, n in self.total_spaces.items()},
            "vehicle_types": [t.value for t in self.vehicle_types],
            "grace_period": self.grace_period,
            "grace_period_enabled": self.grace_period_enabled,
            "convenio_minimum_hours": self.convenio_minimum_hours,
            "enforce_single_monthly_payment": self.enforce_single_monthly_payment,
            "currency": self.currency,
            "name": self.name,
        }


# ============================================================================
# STATE SNAPSHOT
# ============================================================================

@dataclass(frozen=True)
class ParkingState:
    """
    Snapshot of every persisted collection.

    The unit the persistence layer loads and saves, and the unit the
    application service swaps atomically after each transition.
    """
    config: ParkingConfig = field(default_factory=ParkingConfig)
    spaces: Tuple[ParkingSpace, ...] = ()
    vehicles: Tuple[Vehicle, ...] = ()
    payments: Tuple[Payment, ...] = ()
    subscriptions: Tuple[MonthlySubscription, ...] = ()
    role: UserRole = UserRole.ADMIN

    @property
    def parked_vehicles(self) -> Tuple[Vehicle, ...]:
        return tuple(v for v in self.vehicles if v.is_parked)

    @property
    def exited_vehicles(self) -> Tuple[Vehicle, ...]:
        return tuple(v for v in self.vehicles if not v.is_parked)

    def find_vehicle(self, vehicle_id: str) -> Optional[Vehicle]:
        return next((v for v in self.vehicles if v.id == vehicle_id), None)

    def find_space(self, space_id: str) -> Optional[ParkingSpace]:
        return next((s for s in self.spaces if s.id == space_id), None)

    def find_subscription(self, subscription_id: str) -> Optional[MonthlySubscription]:
        return next((s for s in self.subscriptions if s.id == subscription_id), None)
