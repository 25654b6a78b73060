# File: parksystem/infrastructure/factories.py
"""
Factory Pattern Implementation for ParkSystem

1. VehicleFactory - builds parked Vehicle records and random plates
2. DemoDataFactory - synthetic history for the first bootstrap

The demo history is billed through the Fee Calculator, so seeded payments
agree with what the gate would have charged. Passing a seeded
random.Random makes the output reproducible.
"""

from datetime import datetime, timedelta
from typing import List, Optional, Tuple
import logging
import random
import string

from ..domain.identifiers import generate_id, generate_ticket_code
from ..domain.models import (
    ParkingConfig, ParkingSpace, ParkingState, Payment, PaymentMethod,
    RateType, Vehicle, VehicleType
)
from ..domain.pricing import calc_duration, calc_fee_breakdown
from ..domain.spaces import allocate, init_spaces


class VehicleFactory:
    """Factory for creating Vehicle domain objects"""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def create(
        self,
        plate: str,
        vehicle_type: VehicleType,
        space_id: str,
        entry_time: datetime,
        rate_type: RateType = RateType.HOUR,
        helmet_number: Optional[str] = None,
        vehicle_id: Optional[str] = None
    ) -> Vehicle:
        """Create a parked vehicle with a fresh id and ticket code"""
        return Vehicle(
            id=vehicle_id or generate_id(),
            plate=plate,
            vehicle_type=VehicleType(vehicle_type),
            rate_type=RateType(rate_type),
            entry_time=entry_time,
            space_id=space_id,
            ticket_code=generate_ticket_code(rng=self.rng),
            helmet_number=helmet_number,
        )

    def random_plate(self, vehicle_type: VehicleType) -> str:
        """Three letters, two digits, then a letter for motorcycles or a digit otherwise"""
        letters = "".join(self.rng.choices(string.ascii_uppercase, k=3))
        digits = "".join(self.rng.choices(string.digits, k=2))
        last = self.rng.choice(
            string.ascii_uppercase if vehicle_type.plate_ends_with_letter else string.digits
        )
        return letters + digits + last


class DemoDataFactory:
    """Builds the demonstration snapshot used on first run"""

    DEMO_PLATES = {
        VehicleType.CAR: "ABC123",
        VehicleType.MOTORCYCLE: "HOQ79C",
        VehicleType.TRUCK: "MOT456",
    }
    HISTORY_DAYS = 7

    def __init__(self, config: ParkingConfig, rng: Optional[random.Random] = None):
        self.config = config
        self.rng = rng or random.Random()
        self.vehicle_factory = VehicleFactory(self.rng)
        self.logger = logging.getLogger(self.__class__.__name__)

    def _park_demo_vehicles(
        self,
        spaces: Tuple[ParkingSpace, ...],
        now: datetime
    ) -> Tuple[Tuple[ParkingSpace, ...], List[Vehicle]]:
        vehicles = []
        for i, vehicle_type in enumerate(self.config.vehicle_types):
            vehicle_id = generate_id()
            outcome = allocate(vehicle_type, spaces, vehicle_id)
            if not outcome.success:
                continue
            spaces, space = outcome.value
            vehicles.append(self.vehicle_factory.create(
                plate=self.DEMO_PLATES[vehicle_type],
                vehicle_type=vehicle_type,
                space_id=space.id,
                entry_time=now - timedelta(minutes=60 + i * 45),
                helmet_number="1" if vehicle_type == VehicleType.MOTORCYCLE else None,
                vehicle_id=vehicle_id,
            ))
        return spaces, vehicles

    def _past_visit(self, days_ago: int, now: datetime) -> Tuple[Vehicle, Payment]:
        vehicle_type = self.rng.choice(self.config.vehicle_types)
        duration = 30 + self.rng.randrange(300)
        exit_time = now - timedelta(days=days_ago + self.rng.random())
        entry_time = exit_time - timedelta(minutes=duration)
        space_number = self.rng.randint(1, max(1, self.config.total_spaces.get(vehicle_type, 1)))

        vehicle = self.vehicle_factory.create(
            plate=self.vehicle_factory.random_plate(vehicle_type),
            vehicle_type=vehicle_type,
            space_id=f"{vehicle_type.value}-{space_number}",
            entry_time=entry_time,
        ).mark_exited(exit_time, convenio=False)

        minutes = calc_duration(entry_time, exit_time)
        fee = calc_fee_breakdown(minutes, vehicle_type, RateType.HOUR, self.config)
        payment = Payment(
            id=generate_id(),
            vehicle_id=vehicle.id,
            plate=vehicle.plate,
            amount=fee.amount,
            subtotal=fee.subtotal,
            discount=fee.discount,
            method=self.rng.choice((PaymentMethod.CASH, PaymentMethod.CARD)),
            date=exit_time,
            vehicle_type=vehicle_type,
            rate_type=RateType.HOUR,
            duration=minutes,
        )
        return vehicle, payment

    def create(self, now: Optional[datetime] = None) -> ParkingState:
        now = now or datetime.now()
        spaces, vehicles = self._park_demo_vehicles(init_spaces(self.config), now)

        payments = []
        for days_ago in range(self.HISTORY_DAYS):
            for _ in range(3 + self.rng.randrange(5)):
                vehicle, payment = self._past_visit(days_ago, now)
                vehicles.append(vehicle)
                payments.append(payment)

        self.logger.info(
            f"Seeded demo data: {len(vehicles)} vehicles, {len(payments)} payments"
        )
        return ParkingState(
            config=self.config,
            spaces=spaces,
            vehicles=tuple(vehicles),
            payments=tuple(payments),
        )


def seed_demo_data(
    config: ParkingConfig,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None
) -> ParkingState:
    return DemoDataFactory(config, rng).create(now)
