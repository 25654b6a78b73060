#!/usr/bin/env python3
"""
Unit tests for models, DTO validation and domain conversion.
"""

import unittest
import sys
from datetime import date, datetime
from pathlib import Path

from pydantic import ValidationError

sys.path.append(str(Path(__file__).resolve().parents[2]))

from parksystem.application.dtos import (
    ConfigUpdateDTO, EntryRequestDTO, ParkingConfigDTO, PaymentDTO,
    SubscriptionCreateDTO, SubscriptionDTO, VehicleDTO
)
from parksystem.domain.models import (
    MonthlyPayment, MonthlySubscription, ParkingConfig, Payment, PaymentMethod,
    RateType, ReceiptConfig, SubscriptionStatus, Vehicle, VehicleStatus, VehicleType
)


class TestParkingConfig(unittest.TestCase):

    def test_defaults(self):
        config = ParkingConfig.default()
        self.assertEqual(config.vehicle_types, (VehicleType.CAR, VehicleType.MOTORCYCLE))
        self.assertEqual(config.hourly_rate(VehicleType.CAR), 5000)
        self.assertEqual(config.monthly_rate(VehicleType.MOTORCYCLE), 150000)
        self.assertEqual(config.effective_grace_period, 5)
        self.assertFalse(config.supports(VehicleType.TRUCK))

    def test_rejects_negative_rate(self):
        rates = {t: dict(r) for t, r in ParkingConfig().rates.items()}
        rates[VehicleType.CAR]["hour"] = -1
        with self.assertRaises(ValueError):
            ParkingConfig(rates=rates)

    def test_rejects_missing_rate(self):
        rates = {t: dict(r) for t, r in ParkingConfig().rates.items()}
        del rates[VehicleType.MOTORCYCLE]["night"]
        with self.assertRaises(ValueError):
            ParkingConfig(rates=rates)

    def test_rejects_bad_convenio_minimum(self):
        with self.assertRaises(ValueError):
            ParkingConfig(convenio_minimum_hours=2)

    def test_receipt_width(self):
        self.assertEqual(ReceiptConfig(width_mm=58).width_mm, 58)
        with self.assertRaises(ValueError):
            ReceiptConfig(width_mm=0)


class TestRecords(unittest.TestCase):

    def setUp(self):
        self.vehicle = Vehicle(
            id="v1", plate="HOQ79C", vehicle_type=VehicleType.MOTORCYCLE, rate_type=RateType.HOUR,
            entry_time=datetime(2024, 3, 1, 8, 0), space_id="motorcycle-1",
            ticket_code="PKS-ABCDEFGH", helmet_number="12",
        )

    def test_mark_exited_once(self):
        exited = self.vehicle.mark_exited(datetime(2024, 3, 1, 9, 0), convenio=True)
        self.assertEqual(exited.status, VehicleStatus.EXITED)
        self.assertTrue(exited.convenio)
        self.assertTrue(self.vehicle.is_parked)
        with self.assertRaises(ValueError):
            exited.mark_exited(datetime(2024, 3, 1, 10, 0))

    def test_payment_discount_must_match(self):
        with self.assertRaises(ValueError):
            Payment(
                id="p1", vehicle_id="v1", plate="ABC123", amount=5000, subtotal=10000, discount=0,
                method=PaymentMethod.CASH, date=datetime(2024, 3, 1), vehicle_type=VehicleType.CAR,
                rate_type=RateType.HOUR, duration=125,
            )

    def test_subscription_cut_day_range(self):
        with self.assertRaises(ValueError):
            MonthlySubscription(
                id="s1", plate="XYZ789", client_name="Ana", vehicle_type=VehicleType.CAR,
                start_date=date(2024, 1, 1), cut_day=0, price=250000,
            )


class TestRecordDTOs(unittest.TestCase):

    def test_vehicle_round_trip(self):
        vehicle = Vehicle(
            id="v1", plate="ABC123", vehicle_type=VehicleType.CAR, rate_type=RateType.NIGHT,
            entry_time=datetime(2024, 3, 1, 20, 0), space_id="car-1", ticket_code="PKS-ABCDEFGH",
        )
        dto = VehicleDTO.from_domain(vehicle)
        self.assertEqual(dto.to_dict()["rate_type"], "night")
        self.assertEqual(VehicleDTO.from_json(dto.to_json()).to_domain(), vehicle)

    def test_subscription_with_payments(self):
        sub = MonthlySubscription(
            id="s1", plate="XYZ789", client_name="Ana", vehicle_type=VehicleType.CAR,
            start_date=date(2024, 1, 1), cut_day=5, price=250000,
            status=SubscriptionStatus.PENDING,
            payments=(MonthlyPayment(id="m1", date=datetime(2024, 2, 3), amount=250000, month=2, year=2024),),
        )
        restored = SubscriptionDTO.from_json(SubscriptionDTO.from_domain(sub).to_json()).to_domain()
        self.assertEqual(restored, sub)

    def test_payment_dto_rejects_negative_amount(self):
        with self.assertRaises(ValidationError):
            PaymentDTO(
                id="p1", vehicle_id="v1", plate="ABC123", amount=-1, subtotal=0, discount=0,
                method="cash", date=datetime(2024, 3, 1), vehicle_type="car", duration=10,
            )

    def test_config_dto_keys_by_value(self):
        dto = ParkingConfigDTO.from_domain(ParkingConfig.default(include_trucks=True))
        self.assertEqual(dto.rates["truck"]["24h"], 50000)
        self.assertEqual(dto.total_spaces["car"], 20)
        self.assertEqual(dto.to_domain(), ParkingConfig.default(include_trucks=True))


class TestRequestDTOs(unittest.TestCase):

    def test_entry_request_blank_helmet_is_none(self):
        request = EntryRequestDTO(plate="hoq79c", vehicle_type="motorcycle", helmet_number="   ")
        self.assertIsNone(request.helmet_number)
        self.assertEqual(RateType(request.rate_type), RateType.HOUR)

    def test_entry_request_rejects_unknown_type(self):
        with self.assertRaises(ValidationError):
            EntryRequestDTO(plate="ABC123", vehicle_type="bus")

    def test_subscription_cut_day_is_clamped(self):
        self.assertEqual(SubscriptionCreateDTO(plate="XYZ789", client_name="Ana", vehicle_type="car", cut_day=45).cut_day, 31)
        self.assertEqual(SubscriptionCreateDTO(plate="XYZ789", client_name="Ana", vehicle_type="car", cut_day=0).cut_day, 1)

    def test_config_update_validation(self):
        with self.assertRaises(ValidationError):
            ConfigUpdateDTO(rates={"car": {"hour": -5}})
        with self.assertRaises(ValidationError):
            ConfigUpdateDTO(rates={"bus": {"hour": 5}})
        with self.assertRaises(ValidationError):
            ConfigUpdateDTO(convenio_minimum_hours=3)
        self.assertEqual(ConfigUpdateDTO(grace_period=10).model_dump(exclude_none=True), {"grace_period": 10})


if __name__ == '__main__':
    unittest.main(verbosity=2)
