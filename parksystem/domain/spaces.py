# File: parksystem/domain/spaces.py
"""
Space Allocator

State machine per space:
    free <-> blocked, free <-> reserved, free -> occupied -> free

Every operation takes a snapshot of the pool and returns an Outcome whose
value is a NEW tuple of spaces. The input is never mutated, so a rejected
operation leaves the pool exactly as it was.
"""

from typing import Dict, Iterable, Optional, Sequence, Tuple

from .models import (
    ParkingConfig, ParkingSpace, SpaceStatus, Vehicle, VehicleType
)
from .outcomes import FailureCode, Outcome
from .strategies import AllocationStrategy, FirstFreeAllocationStrategy

Pool = Tuple[ParkingSpace, ...]

_default_strategy = FirstFreeAllocationStrategy()


def init_spaces(config: ParkingConfig) -> Pool:
    """Materialize the pool: ids '{type}-{i}', labels C01, M01, T01..."""
    spaces = []
    for vehicle_type in config.vehicle_types:
        for i in range(1, config.total_spaces.get(vehicle_type, 0) + 1):
            spaces.append(ParkingSpace(
                id=f"{vehicle_type.value}-{i}",
                label=f"{vehicle_type.space_prefix}{i:02d}",
                space_type=vehicle_type,
            ))
    return tuple(spaces)


def _index_of(space_id: str, spaces: Sequence[ParkingSpace]) -> Optional[int]:
    for i, space in enumerate(spaces):
        if space.id == space_id:
            return i
    return None


def _replace_at(spaces: Sequence[ParkingSpace], index: int, space: ParkingSpace) -> Pool:
    pool = list(spaces)
    pool[index] = space
    return tuple(pool)


def _not_found(space_id: str) -> Outcome:
    return Outcome.fail(FailureCode.ENTITY_NOT_FOUND, f"Espacio {space_id} no encontrado")


def find_free_space(
    vehicle_type: VehicleType,
    spaces: Sequence[ParkingSpace],
    strategy: Optional[AllocationStrategy] = None
) -> Optional[ParkingSpace]:
    return (strategy or _default_strategy).select_space(vehicle_type, spaces)


def allocate(
    vehicle_type: VehicleType,
    spaces: Sequence[ParkingSpace],
    vehicle_id: str,
    plate: Optional[str] = None,
    vehicles: Iterable[Vehicle] = (),
    strategy: Optional[AllocationStrategy] = None
) -> Outcome:
    """
    Occupy a free space of the given type for a new vehicle.

    Rejects with DUPLICATE_ACTIVE_ENTRY when the plate is already parked, and
    with NO_FREE_SPACE when the pool for that type is exhausted.
    On success, Outcome.value is (new_pool, allocated_space).
    """
    if plate is not None:
        if any(v.plate == plate and v.is_parked for v in vehicles):
            return Outcome.fail(
                FailureCode.DUPLICATE_ACTIVE_ENTRY,
                f"El vehículo {plate} ya se encuentra en el parqueadero",
            )

    space = find_free_space(vehicle_type, spaces, strategy)
    if space is None:
        return Outcome.fail(
            FailureCode.NO_FREE_SPACE,
            f"No hay espacios disponibles para {vehicle_type}",
        )

    occupied = space.with_status(SpaceStatus.OCCUPIED, vehicle_id)
    pool = _replace_at(spaces, _index_of(space.id, spaces), occupied)
    return Outcome.ok((pool, occupied))


def release(
    space_id: str,
    spaces: Sequence[ParkingSpace],
    vehicle_id: Optional[str] = None
) -> Outcome:
    """
    Free an occupied space.

    Already free is a no-op success. A space holding a different vehicle
    than vehicle_id is refused.
    """
    index = _index_of(space_id, spaces)
    if index is None:
        return _not_found(space_id)

    space = spaces[index]
    if space.is_free:
        return Outcome.ok(tuple(spaces))

    if space.status != SpaceStatus.OCCUPIED:
        return Outcome.fail(
            FailureCode.INVALID_SPACE_TRANSITION,
            f"El espacio {space.label} no está ocupado",
        )

    if vehicle_id is not None and space.vehicle_id != vehicle_id:
        return Outcome.fail(
            FailureCode.ENTITY_NOT_FOUND,
            f"El espacio {space.label} no está asignado al vehículo {vehicle_id}",
        )

    return Outcome.ok(_replace_at(spaces, index, space.with_status(SpaceStatus.FREE)))


def _transition(
    space_id: str,
    spaces: Sequence[ParkingSpace],
    transitions: Dict[SpaceStatus, SpaceStatus],
    action: str
) -> Outcome:
    index = _index_of(space_id, spaces)
    if index is None:
        return _not_found(space_id)

    space = spaces[index]
    target = transitions.get(space.status)
    if target is None:
        return Outcome.fail(
            FailureCode.INVALID_SPACE_TRANSITION,
            f"No se puede {action} el espacio {space.label} ({space.status})",
        )
    return Outcome.ok(_replace_at(spaces, index, space.with_status(target)))


def toggle_block(space_id: str, spaces: Sequence[ParkingSpace]) -> Outcome:
    """free <-> blocked; refused while occupied or reserved"""
    return _transition(
        space_id, spaces,
        {SpaceStatus.FREE: SpaceStatus.BLOCKED, SpaceStatus.BLOCKED: SpaceStatus.FREE},
        "bloquear",
    )


def reserve(space_id: str, spaces: Sequence[ParkingSpace]) -> Outcome:
    return _transition(space_id, spaces, {SpaceStatus.FREE: SpaceStatus.RESERVED}, "reservar")


def unreserve(space_id: str, spaces: Sequence[ParkingSpace]) -> Outcome:
    return _transition(space_id, spaces, {SpaceStatus.RESERVED: SpaceStatus.FREE}, "liberar")


# ============================================================================
# OCCUPANCY SUMMARIES
# ============================================================================

def occupancy_by_type(spaces: Sequence[ParkingSpace]) -> Dict[VehicleType, Dict[str, int]]:
    """Total, occupied and free counts per space type"""
    summary: Dict[VehicleType, Dict[str, int]] = {}
    for space in spaces:
        counts = summary.setdefault(space.space_type, {"total": 0, "occupied": 0, "free": 0})
        counts["total"] += 1
        if space.status == SpaceStatus.OCCUPIED:
            counts["occupied"] += 1
        elif space.is_free:
            counts["free"] += 1
    return summary


def status_counts(spaces: Sequence[ParkingSpace]) -> Dict[SpaceStatus, int]:
    counts = {status: 0 for status in SpaceStatus}
    for space in spaces:
        counts[space.status] += 1
    return counts
