# File: parksystem/domain/outcomes.py
"""
Structured results for engine operations.

Expected rejections (bad plate, full pool, duplicate entry...) are returned
as a failed Outcome instead of being raised, so callers can render a message
and retry. unwrap() converts a failure into ParkingOperationError for callers
that prefer exceptions.
"""

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar
from enum import Enum

T = TypeVar('T')


class FailureCode(str, Enum):
    """Taxonomy of expected rejections"""
    INVALID_PLATE_FORMAT = "INVALID_PLATE_FORMAT"
    PLATE_TYPE_MISMATCH = "PLATE_TYPE_MISMATCH"
    DUPLICATE_ACTIVE_ENTRY = "DUPLICATE_ACTIVE_ENTRY"
    NO_FREE_SPACE = "NO_FREE_SPACE"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    SUBSCRIBED_VEHICLE_CONFLICT = "SUBSCRIBED_VEHICLE_CONFLICT"
    ENTITY_NOT_FOUND = "ENTITY_NOT_FOUND"
    ALREADY_PAID_THIS_MONTH = "ALREADY_PAID_THIS_MONTH"
    INVALID_SPACE_TRANSITION = "INVALID_SPACE_TRANSITION"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    INVALID_CONFIGURATION = "INVALID_CONFIGURATION"
    INVALID_CUT_DAY = "INVALID_CUT_DAY"


class ParkingOperationError(Exception):
    """Raised by Outcome.unwrap() on a failed outcome"""

    def __init__(self, failure: FailureCode, message: str):
        super().__init__(message)
        self.failure = failure
        self.message = message


@dataclass(frozen=True)
class Outcome(Generic[T]):
    success: bool
    value: Optional[T] = None
    failure: Optional[FailureCode] = None
    message: str = ""

    @classmethod
    def ok(cls, value: Any = None, message: str = "") -> 'Outcome':
        return cls(success=True, value=value, message=message)

    @classmethod
    def fail(cls, failure: FailureCode, message: str) -> 'Outcome':
        return cls(success=False, failure=failure, message=message)

    def unwrap(self) -> T:
        if not self.success:
            raise ParkingOperationError(self.failure, self.message)
        return self.value

    def __bool__(self) -> bool:
        return self.success
