# File: parksystem/domain/plates.py
"""
Plate Validator

Plates are exactly 6 uppercase alphanumerics once normalized. The last
character classifies the vehicle: a letter means motorcycle, a digit means
car (or truck, which shares the car format).

validate_plate() checks a plate against the vehicle type the operator chose
and is the source of truth before allocation. detect_vehicle_type() only
offers a hint while the plate is being typed.
"""

from dataclasses import dataclass
from typing import Iterable, Optional
import re

from .models import VehicleType
from .outcomes import FailureCode

PLATE_LENGTH = 6
PLATE_PATTERN = re.compile(r'^[A-Z0-9]{6}$')
_NON_ALPHANUMERIC = re.compile(r'[^A-Z0-9]')


@dataclass(frozen=True)
class PlateValidation:
    valid: bool
    error: Optional[FailureCode] = None
    vehicle_type: Optional[VehicleType] = None
    message: str = ""


def normalize_plate(raw: Optional[str]) -> str:
    """Uppercase the plate and strip every non-alphanumeric character"""
    if not raw:
        return ""
    return _NON_ALPHANUMERIC.sub("", raw.upper())


def detect_vehicle_type(
    plate: str,
    allowed: Optional[Iterable[VehicleType]] = None
) -> Optional[VehicleType]:
    """
    Guess the vehicle type from the plate alone.

    Returns None when the plate is not a complete 6-character plate or the
    guessed type is not in `allowed`.
    """
    if not PLATE_PATTERN.match(plate or ""):
        return None

    guess = VehicleType.MOTORCYCLE if plate[-1].isalpha() else VehicleType.CAR
    if allowed is not None and guess not in set(allowed):
        return None
    return guess


def validate_plate(plate: str, vehicle_type: VehicleType) -> PlateValidation:
    """Check that a normalized plate is well formed and consistent with its type"""
    if not PLATE_PATTERN.match(plate or ""):
        return PlateValidation(
            valid=False,
            error=FailureCode.INVALID_PLATE_FORMAT,
            message=f"La placa debe tener {PLATE_LENGTH} caracteres alfanuméricos",
        )

    ends_with_letter = plate[-1].isalpha()
    if ends_with_letter != vehicle_type.plate_ends_with_letter:
        expected = "una letra" if vehicle_type.plate_ends_with_letter else "un número"
        return PlateValidation(
            valid=False,
            error=FailureCode.PLATE_TYPE_MISMATCH,
            message=f"La placa de {vehicle_type} debe terminar en {expected}",
        )

    return PlateValidation(valid=True, vehicle_type=vehicle_type)
