#!/usr/bin/env python3
"""
Unit tests for the plate validator.
"""

import unittest
import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[2]))

from parksystem.domain.models import VehicleType
from parksystem.domain.outcomes import FailureCode
from parksystem.domain.plates import detect_vehicle_type, normalize_plate, validate_plate


class TestNormalizePlate(unittest.TestCase):

    def test_uppercases_and_strips_separators(self):
        self.assertEqual(normalize_plate("abc-123"), "ABC123")
        self.assertEqual(normalize_plate(" hoq 79c "), "HOQ79C")

    def test_empty_input(self):
        self.assertEqual(normalize_plate(""), "")
        self.assertEqual(normalize_plate(None), "")


class TestValidatePlate(unittest.TestCase):
    """validate_plate with an explicit vehicle type"""

    def test_motorcycle_plate_is_valid_for_motorcycle(self):
        result = validate_plate("HOQ79C", VehicleType.MOTORCYCLE)
        self.assertTrue(result.valid)
        self.assertIsNone(result.error)
        self.assertEqual(result.vehicle_type, VehicleType.MOTORCYCLE)

    def test_motorcycle_plate_is_mismatch_for_car(self):
        result = validate_plate("HOQ79C", VehicleType.CAR)
        self.assertFalse(result.valid)
        self.assertEqual(result.error, FailureCode.PLATE_TYPE_MISMATCH)
        self.assertIn("número", result.message)

    def test_car_plate_is_mismatch_for_motorcycle(self):
        result = validate_plate("ABC123", VehicleType.MOTORCYCLE)
        self.assertEqual(result.error, FailureCode.PLATE_TYPE_MISMATCH)
        self.assertIn("letra", result.message)

    def test_truck_shares_car_format(self):
        self.assertTrue(validate_plate("MOT456", VehicleType.TRUCK).valid)
        self.assertEqual(
            validate_plate("MOT45A", VehicleType.TRUCK).error,
            FailureCode.PLATE_TYPE_MISMATCH,
        )

    def test_five_characters_is_invalid_format(self):
        result = validate_plate("AB123", VehicleType.CAR)
        self.assertFalse(result.valid)
        self.assertEqual(result.error, FailureCode.INVALID_PLATE_FORMAT)

    def test_lowercase_or_symbols_are_invalid_format(self):
        # Callers normalize first; raw input is rejected as is
        self.assertEqual(validate_plate("abc123", VehicleType.CAR).error, FailureCode.INVALID_PLATE_FORMAT)
        self.assertEqual(validate_plate("ABC-12", VehicleType.CAR).error, FailureCode.INVALID_PLATE_FORMAT)
        self.assertEqual(validate_plate("ABC1234", VehicleType.CAR).error, FailureCode.INVALID_PLATE_FORMAT)


class TestDetectVehicleType(unittest.TestCase):

    def test_last_character_decides(self):
        self.assertEqual(detect_vehicle_type("ABC123"), VehicleType.CAR)
        self.assertEqual(detect_vehicle_type("HOQ79C"), VehicleType.MOTORCYCLE)

    def test_incomplete_plate_is_undetectable(self):
        self.assertIsNone(detect_vehicle_type("ABC12"))
        self.assertIsNone(detect_vehicle_type(""))

    def test_guess_outside_allowed_types(self):
        self.assertIsNone(detect_vehicle_type("HOQ79C", allowed=[VehicleType.CAR]))
        self.assertEqual(
            detect_vehicle_type("ABC123", allowed=[VehicleType.CAR, VehicleType.TRUCK]),
            VehicleType.CAR,
        )


if __name__ == '__main__':
    unittest.main(verbosity=2)
