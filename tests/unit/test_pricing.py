#!/usr/bin/env python3
"""
Unit tests for the duration and fee calculators and the pricing strategies.
"""

import unittest
import sys
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[2]))

from parksystem.domain.models import ParkingConfig, RateType, VehicleType
from parksystem.domain.pricing import (
    as_local_datetime, calc_duration, calc_fee, calc_fee_breakdown
)
from parksystem.domain.strategies import (
    FlatRatePricingStrategy, HourlyPricingStrategy, PricingStrategyFactory
)


class PricingTestBase(unittest.TestCase):

    def setUp(self):
        self.config = ParkingConfig.default(include_trucks=True)

    def fee(self, minutes, rate_type=RateType.HOUR, convenio=False,
            vehicle_type=VehicleType.CAR, config=None):
        return calc_fee(minutes, vehicle_type, rate_type, config or self.config, convenio)


class TestCalcDuration(unittest.TestCase):

    def test_same_timestamp_bills_one_minute(self):
        t = datetime(2024, 3, 1, 10, 0)
        self.assertEqual(calc_duration(t, t), 1)

    def test_negative_delta_clamps_to_one(self):
        t = datetime(2024, 3, 1, 10, 0)
        self.assertEqual(calc_duration(t, t - timedelta(minutes=3)), 1)

    def test_partial_minute_rounds_up(self):
        t = datetime(2024, 3, 1, 10, 0)
        self.assertEqual(calc_duration(t, t + timedelta(minutes=2, seconds=1)), 3)
        self.assertEqual(calc_duration(t, t + timedelta(minutes=2)), 2)

    def test_accepts_iso_strings(self):
        self.assertEqual(calc_duration("2024-03-01T10:00:00", "2024-03-01T12:05:00"), 125)

    def test_mixes_aware_and_naive_timestamps(self):
        entry = datetime(2024, 3, 15, 14, 0, tzinfo=timezone.utc)
        local_exit = entry.astimezone().replace(tzinfo=None) + timedelta(minutes=125)
        self.assertEqual(calc_duration(entry, local_exit), 125)
        self.assertEqual(calc_duration("2024-03-15T14:00:00Z", local_exit), 125)

    def test_aware_timestamps_in_different_offsets(self):
        bogota = timezone(timedelta(hours=-5))
        entry = datetime(2024, 3, 15, 9, 0, tzinfo=bogota)
        exit_ = datetime(2024, 3, 15, 14, 5, tzinfo=timezone.utc)
        self.assertEqual(calc_duration(entry, exit_), 5)

    def test_as_local_datetime(self):
        naive = datetime(2024, 3, 15, 9, 0)
        self.assertIs(as_local_datetime(naive), naive)
        aware = as_local_datetime("2024-03-15T14:00:00+00:00")
        self.assertIsNone(aware.tzinfo)
        self.assertEqual(aware, datetime(2024, 3, 15, 14, 0, tzinfo=timezone.utc).astimezone().replace(tzinfo=None))


class TestHourlyFee(PricingTestBase):

    def test_grace_boundary(self):
        self.assertEqual(self.fee(65), 5000)
        self.assertEqual(self.fee(66), 10000)

    def test_short_stay_bills_one_hour(self):
        self.assertEqual(self.fee(1), 5000)
        self.assertEqual(self.fee(5), 5000)

    def test_125_minutes(self):
        self.assertEqual(self.fee(125), 10000)
        self.assertEqual(self.fee(125, convenio=True), 5000)

    def test_at_least_one_hour_without_convenio(self):
        for vehicle_type in (VehicleType.CAR, VehicleType.MOTORCYCLE, VehicleType.TRUCK):
            hourly = self.config.hourly_rate(vehicle_type)
            for minutes in (1, 30, 59, 60, 61, 65, 66, 300, 1440):
                self.assertGreaterEqual(self.fee(minutes, vehicle_type=vehicle_type), hourly)

    def test_convenio_floor_at_zero(self):
        self.assertEqual(self.config.convenio_minimum_hours, 0)
        self.assertEqual(self.fee(30, convenio=True), 0)

    def test_convenio_floor_at_one(self):
        config = replace(self.config, convenio_minimum_hours=1)
        self.assertEqual(self.fee(30, convenio=True, config=config), 5000)
        self.assertEqual(self.fee(125, convenio=True, config=config), 5000)

    def test_grace_disabled(self):
        config = replace(self.config, grace_period_enabled=False)
        self.assertEqual(self.fee(61, config=config), 10000)
        self.assertEqual(self.fee(60, config=config), 5000)

    def test_unset_grace_defaults_to_five(self):
        config = replace(self.config, grace_period=None)
        self.assertEqual(config.effective_grace_period, 5)
        self.assertEqual(self.fee(65, config=config), 5000)

    def test_custom_grace(self):
        config = replace(self.config, grace_period=15)
        self.assertEqual(self.fee(75, config=config), 5000)
        self.assertEqual(self.fee(76, config=config), 10000)

    def test_motorcycle_rate(self):
        self.assertEqual(self.fee(125, vehicle_type=VehicleType.MOTORCYCLE), 6000)


class TestFlatFee(PricingTestBase):

    def test_flat_rates_ignore_minutes(self):
        for rate_type, expected in ((RateType.DAY, 25000), (RateType.NIGHT, 15000), (RateType.FULL_DAY, 35000)):
            for minutes in (1, 90, 600, 2000):
                self.assertEqual(self.fee(minutes, rate_type), expected)

    def test_convenio_subtracts_one_hourly_rate(self):
        self.assertEqual(self.fee(90, RateType.DAY, convenio=True), 20000)

    def test_convenio_never_negative(self):
        rates = {t: dict(r) for t, r in self.config.rates.items()}
        rates[VehicleType.CAR]["night"] = 3000
        config = replace(self.config, rates=rates)
        self.assertEqual(self.fee(90, RateType.NIGHT, convenio=True, config=config), 0)


class TestConvenioNeverIncreasesCharge(PricingTestBase):

    def test_all_rate_types(self):
        for config in (self.config, replace(self.config, convenio_minimum_hours=1)):
            for rate_type in RateType:
                for minutes in (1, 5, 65, 66, 125, 600):
                    with self.subTest(rate_type=rate_type, minutes=minutes):
                        self.assertLessEqual(
                            self.fee(minutes, rate_type, convenio=True, config=config),
                            self.fee(minutes, rate_type, convenio=False, config=config),
                        )


class TestFeeBreakdown(PricingTestBase):

    def test_hourly_breakdown(self):
        fee = calc_fee_breakdown(125, VehicleType.CAR, RateType.HOUR, self.config, convenio=True)
        self.assertEqual(fee.subtotal, 10000)
        self.assertEqual(fee.amount, 5000)
        self.assertEqual(fee.discount, 5000)
        self.assertEqual(fee.billable_hours, 1)

    def test_no_convenio_has_no_discount(self):
        fee = calc_fee_breakdown(125, VehicleType.CAR, RateType.HOUR, self.config)
        self.assertEqual(fee.discount, 0)
        self.assertEqual(fee.amount, fee.subtotal)
        self.assertEqual(fee.billable_hours, 2)

    def test_flat_breakdown_has_no_hours(self):
        fee = calc_fee_breakdown(90, VehicleType.CAR, RateType.DAY, self.config, convenio=True)
        self.assertEqual((fee.subtotal, fee.discount, fee.amount), (25000, 5000, 20000))
        self.assertIsNone(fee.billable_hours)


class TestPricingStrategyFactory(unittest.TestCase):

    def test_strategy_per_rate_type(self):
        self.assertIsInstance(PricingStrategyFactory.get_strategy(RateType.HOUR), HourlyPricingStrategy)
        flat = PricingStrategyFactory.get_strategy(RateType.NIGHT)
        self.assertIsInstance(flat, FlatRatePricingStrategy)
        self.assertEqual(flat.get_strategy_name(), "Flat(night)")

    def test_strategies_are_cached(self):
        self.assertIs(
            PricingStrategyFactory.get_strategy(RateType.DAY),
            PricingStrategyFactory.get_strategy(RateType.DAY),
        )

    def test_flat_strategy_rejects_hourly_plan(self):
        with self.assertRaises(ValueError):
            FlatRatePricingStrategy(RateType.HOUR)


if __name__ == '__main__':
    unittest.main(verbosity=2)
