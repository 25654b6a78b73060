# File: parksystem/application/dtos.py
"""
Data Transfer Objects (DTOs) for ParkSystem

This module defines DTOs for data transfer between layers:
1. Input DTOs - Requests coming from the console or any other front end
2. Output DTOs - Operation results, fee quotes and dashboard data
3. Record DTOs - Serializable mirrors of the domain records, used by the
   key-value store and the JSON export

DTO Principles:
- Validation at creation
- No business logic, only data and domain conversion
- Serialization/deserialization support
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional
import json

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..domain.models import (
    MonthlyPayment, MonthlySubscription, ParkingConfig, ParkingSpace, Payment,
    PaymentMethod, PaymentStatus, RateType, ReceiptConfig, SpaceStatus,
    SubscriptionStatus, Vehicle, VehicleStatus, VehicleType
)
from ..domain.pricing import as_local_datetime


# ============================================================================
# BASE DTO CLASSES
# ============================================================================

class BaseDTO(BaseModel):
    """Base DTO with common functionality"""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        use_enum_values=True,
    )

    def to_dict(self, exclude_none: bool = False, **kwargs) -> Dict[str, Any]:
        """Convert DTO to a JSON-compatible dictionary"""
        data = self.model_dump(mode="json", **kwargs)
        if exclude_none:
            data = {k: v for k, v in data.items() if v is not None}
        return data

    def to_json(self, **kwargs) -> str:
        """Convert DTO to JSON string"""
        return self.model_dump_json(**kwargs)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BaseDTO':
        """Create DTO from dictionary"""
        return cls(**data)

    @classmethod
    def from_json(cls, json_str: str) -> 'BaseDTO':
        """Create DTO from JSON string"""
        data = json.loads(json_str)
        return cls(**data)


# ============================================================================
# RECORD DTOs
# ============================================================================

class VehicleDTO(BaseDTO):
    id: str
    plate: str
    vehicle_type: VehicleType
    rate_type: RateType = RateType.HOUR
    entry_time: datetime
    space_id: str
    ticket_code: str
    status: VehicleStatus = VehicleStatus.PARKED
    exit_time: Optional[datetime] = None
    convenio: Optional[bool] = None
    helmet_number: Optional[str] = None

    @classmethod
    def from_domain(cls, vehicle: Vehicle) -> 'VehicleDTO':
        return cls.model_validate(vehicle)

    def to_domain(self) -> Vehicle:
        return Vehicle(
            id=self.id,
            plate=self.plate,
            vehicle_type=VehicleType(self.vehicle_type),
            rate_type=RateType(self.rate_type),
            entry_time=self.entry_time,
            space_id=self.space_id,
            ticket_code=self.ticket_code,
            status=VehicleStatus(self.status),
            exit_time=self.exit_time,
            convenio=self.convenio,
            helmet_number=self.helmet_number,
        )


class ParkingSpaceDTO(BaseDTO):
    id: str
    label: str
    space_type: VehicleType
    status: SpaceStatus = SpaceStatus.FREE
    vehicle_id: Optional[str] = None

    @classmethod
    def from_domain(cls, space: ParkingSpace) -> 'ParkingSpaceDTO':
        return cls.model_validate(space)

    def to_domain(self) -> ParkingSpace:
        return ParkingSpace(
            id=self.id,
            label=self.label,
            space_type=VehicleType(self.space_type),
            status=SpaceStatus(self.status),
            vehicle_id=self.vehicle_id,
        )


class PaymentDTO(BaseDTO):
    id: str
    vehicle_id: str
    plate: str
    amount: int = Field(ge=0)
    subtotal: int = Field(ge=0)
    discount: int = Field(ge=0)
    method: PaymentMethod
    date: datetime
    vehicle_type: VehicleType
    rate_type: RateType = RateType.HOUR
    duration: int = Field(ge=1, description="Billed minutes")
    convenio: bool = False
    status: PaymentStatus = PaymentStatus.PAID

    @classmethod
    def from_domain(cls, payment: Payment) -> 'PaymentDTO':
        return cls.model_validate(payment)

    def to_domain(self) -> Payment:
        return Payment(
            id=self.id,
            vehicle_id=self.vehicle_id,
            plate=self.plate,
            amount=self.amount,
            subtotal=self.subtotal,
            discount=self.discount,
            method=PaymentMethod(self.method),
            date=self.date,
            vehicle_type=VehicleType(self.vehicle_type),
            rate_type=RateType(self.rate_type),
            duration=self.duration,
            convenio=self.convenio,
            status=PaymentStatus(self.status),
        )


class MonthlyPaymentDTO(BaseDTO):
    id: str
    date: datetime
    amount: int = Field(ge=0)
    month: int = Field(ge=1, le=12)
    year: int

    def to_domain(self) -> MonthlyPayment:
        return MonthlyPayment(
            id=self.id, date=self.date, amount=self.amount, month=self.month, year=self.year
        )


class SubscriptionDTO(BaseDTO):
    id: str
    plate: str
    client_name: str
    vehicle_type: VehicleType
    start_date: date
    cut_day: int = Field(ge=1, le=31)
    price: int = Field(ge=0)
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    payments: List[MonthlyPaymentDTO] = Field(default_factory=list)
    phone: Optional[str] = None

    @classmethod
    def from_domain(cls, sub: MonthlySubscription) -> 'SubscriptionDTO':
        return cls.model_validate(sub)

    def to_domain(self) -> MonthlySubscription:
        return MonthlySubscription(
            id=self.id,
            plate=self.plate,
            client_name=self.client_name,
            vehicle_type=VehicleType(self.vehicle_type),
            start_date=self.start_date,
            cut_day=self.cut_day,
            price=self.price,
            status=SubscriptionStatus(self.status),
            payments=tuple(p.to_domain() for p in self.payments),
            phone=self.phone,
        )


class ReceiptConfigDTO(BaseDTO):
    header_text: str = "ParkSystem Pro"
    footer_text: str = "Gracias por su visita"
    logo_url: str = ""
    width_mm: int = Field(default=80, gt=0)

    def to_domain(self) -> ReceiptConfig:
        return ReceiptConfig(**self.model_dump())


class ParkingConfigDTO(BaseDTO):
    """Serializable ParkingConfig; rates and space counts keyed by vehicle type value"""
    rates: Dict[str, Dict[str, int]]
    total_spaces: Dict[str, int]
    vehicle_types: List[VehicleType] = Field(
        default_factory=lambda: [VehicleType.CAR, VehicleType.MOTORCYCLE]
    )
    grace_period: Optional[int] = Field(default=5, ge=0)
    grace_period_enabled: bool = True
    convenio_minimum_hours: int = Field(default=0, ge=0, le=1)
    enforce_single_monthly_payment: bool = False
    currency: str = Field(default="COP", min_length=3, max_length=3)
    name: str = "ParkSystem Pro"
    receipt_entry: ReceiptConfigDTO = Field(default_factory=ReceiptConfigDTO)
    receipt_exit: ReceiptConfigDTO = Field(default_factory=ReceiptConfigDTO)
    receipt_monthly: ReceiptConfigDTO = Field(default_factory=ReceiptConfigDTO)

    @classmethod
    def from_domain(cls, config: ParkingConfig) -> 'ParkingConfigDTO':
        data = config.to_dict()
        data.update(
            receipt_entry=ReceiptConfigDTO.model_validate(config.receipt_entry),
            receipt_exit=ReceiptConfigDTO.model_validate(config.receipt_exit),
            receipt_monthly=ReceiptConfigDTO.model_validate(config.receipt_monthly),
        )
        return cls(**data)

    def to_domain(self) -> ParkingConfig:
        return ParkingConfig(
            rates={VehicleType(t): dict(r) for t, r in self.rates.items()},
            total_spaces={VehicleType(t): n for t, n in self.total_spaces.items()},
            vehicle_types=tuple(VehicleType(t) for t in self.vehicle_types),
            grace_period=self.grace_period,
            grace_period_enabled=self.grace_period_enabled,
            convenio_minimum_hours=self.convenio_minimum_hours,
            enforce_single_monthly_payment=self.enforce_single_monthly_payment,
            currency=self.currency,
            name=self.name,
            receipt_entry=self.receipt_entry.to_domain(),
            receipt_exit=self.receipt_exit.to_domain(),
            receipt_monthly=self.receipt_monthly.to_domain(),
        )


# ============================================================================
# REQUEST DTOs
# ============================================================================

class EntryRequestDTO(BaseDTO):
    """Vehicle entry request as typed by the operator"""
    plate: str = Field(description="Raw plate; normalized by the service")
    vehicle_type: VehicleType
    rate_type: RateType = RateType.HOUR
    helmet_number: Optional[str] = Field(default=None, description="Required for motorcycles")
    entry_time: Optional[datetime] = None

    @field_validator('helmet_number')
    @classmethod
    def strip_helmet_number(cls, v):
        if v is None:
            return v
        return v.strip() or None

    @field_validator('entry_time')
    @classmethod
    def to_local_time(cls, v):
        """Offset-aware times are stored as naive local time"""
        return v if v is None else as_local_datetime(v)


class ExitRequestDTO(BaseDTO):
    vehicle_id: str
    method: PaymentMethod = PaymentMethod.CASH
    convenio: bool = False
    exit_time: Optional[datetime] = None

    @field_validator('exit_time')
    @classmethod
    def to_local_time(cls, v):
        return v if v is None else as_local_datetime(v)


class SubscriptionCreateDTO(BaseDTO):
    plate: str
    client_name: str = Field(min_length=1)
    vehicle_type: VehicleType
    cut_day: int = Field(default=1, description="Day of month the payment is due")
    phone: Optional[str] = None
    start_date: Optional[date] = None

    @field_validator('cut_day')
    @classmethod
    def clamp_cut_day(cls, v):
        """Out-of-range cut days are clamped into 1..31"""
        return min(31, max(1, v))


class ConfigUpdateDTO(BaseDTO):
    """Partial configuration update; None means keep the current value"""
    rates: Optional[Dict[str, Dict[str, int]]] = None
    total_spaces: Optional[Dict[str, int]] = None
    grace_period: Optional[int] = Field(default=None, ge=0)
    grace_period_enabled: Optional[bool] = None
    convenio_minimum_hours: Optional[int] = Field(default=None, ge=0, le=1)
    enforce_single_monthly_payment: Optional[bool] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    name: Optional[str] = None
    receipt_entry: Optional[ReceiptConfigDTO] = None
    receipt_exit: Optional[ReceiptConfigDTO] = None
    receipt_monthly: Optional[ReceiptConfigDTO] = None

    @field_validator('rates')
    @classmethod
    def validate_rates(cls, v):
        if v is None:
            return v
        for vehicle_type, rates in v.items():
            VehicleType(vehicle_type)
            for key, amount in rates.items():
                if amount < 0:
                    raise ValueError(f"Rate '{key}' for {vehicle_type} cannot be negative")
        return v


# ============================================================================
# RESULT DTOs
# ============================================================================

class OperationResultDTO(BaseDTO):
    """Result of a state-changing operation"""
    success: bool
    message: Optional[str] = None
    error_code: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.now)


class EntryResultDTO(OperationResultDTO):
    vehicle: Optional[VehicleDTO] = None
    space_label: Optional[str] = None


class FeeQuoteDTO(BaseDTO):
    """Live fee preview for a parked vehicle"""
    vehicle_id: str
    plate: str
    vehicle_type: VehicleType
    rate_type: RateType
    duration_minutes: int
    subtotal: int
    discount: int
    amount: int
    billable_hours: Optional[int] = None
    convenio: bool = False


class ExitResultDTO(OperationResultDTO):
    payment: Optional[PaymentDTO] = None
    space_label: Optional[str] = None


class SubscriptionResultDTO(OperationResultDTO):
    subscription: Optional[SubscriptionDTO] = None


class ExportResultDTO(OperationResultDTO):
    filename: Optional[str] = None
    content: Optional[str] = None


# ============================================================================
# DASHBOARD / REPORT DTOs
# ============================================================================

class OccupancyDTO(BaseDTO):
    vehicle_type: VehicleType
    total: int
    occupied: int
    free: int

    @property
    def occupancy_rate(self) -> float:
        return self.occupied / self.total if self.total else 0.0


class IncomePointDTO(BaseDTO):
    label: str
    amount: int


class PaymentSummaryDTO(BaseDTO):
    total: int
    count: int
    by_method: Dict[str, int]
    by_vehicle_type: Dict[str, int]


class DashboardDTO(BaseDTO):
    parked_by_type: Dict[str, int]
    parked_total: int
    today_income: int
    today_payments: int
    average_duration_minutes: int
    occupancy: List[OccupancyDTO]
    space_status_counts: Dict[str, int]
    parked_by_rate_type: Dict[str, int]
    active_subscriptions: int
    pending_subscriptions: int
