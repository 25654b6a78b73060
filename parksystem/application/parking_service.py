# File: parksystem/application/parking_service.py
"""
Parking Management Application Service

Orchestrates the Rate & Occupancy Engine for the entry/exit workflow, the
space pool, monthly subscriptions and configuration.

Responsibilities:
1. Hold the current ParkingState snapshot and swap it after each transition
2. Check the operator's role before invoking an engine operation
3. Persist the snapshot after each transition (fire-and-forget)
4. Publish domain events and operator alerts

Key Principles:
- The engine stays pure; only this service owns mutable state
- Expected rejections come back as result DTOs with an error_code and leave
  every collection untouched
- The space pool and the subscription payment append are check-then-act
  sequences and run under a single re-entrant lock
"""

from dataclasses import replace
from datetime import date, datetime
from typing import Any, Callable, List, Optional
import logging
import threading

from ..domain.identifiers import generate_id
from ..domain.models import (
    ParkingConfig, ParkingState, Payment, PaymentMethod, RateType, UserRole, VehicleType
)
from ..domain.outcomes import FailureCode, Outcome
from ..domain.plates import normalize_plate, validate_plate
from ..domain.pricing import calc_duration, calc_fee_breakdown
from ..domain.spaces import allocate, init_spaces, release, reserve, toggle_block, unreserve
from ..domain.strategies import AllocationStrategy, AllocationStrategyFactory
from ..domain import subscriptions
from ..infrastructure.factories import VehicleFactory, seed_demo_data
from ..infrastructure.messaging import Alert, AlertLevel, DomainEvent, EventBus, EventType
from ..infrastructure.repositories import ParkingStore, RepositoryFactory, StoreError
from ..infrastructure.settings import Settings
from . import reports
from .capabilities import Action, can
from .dtos import (
    ConfigUpdateDTO, DashboardDTO, EntryRequestDTO, EntryResultDTO, ExitRequestDTO,
    ExitResultDTO, ExportResultDTO, FeeQuoteDTO, IncomePointDTO, OperationResultDTO,
    ParkingConfigDTO, ParkingSpaceDTO, PaymentDTO, SubscriptionCreateDTO,
    SubscriptionDTO, SubscriptionResultDTO, VehicleDTO
)


# ============================================================================
# EXCEPTIONS
# ============================================================================

class ParkingServiceError(Exception):
    """Base exception for parking service errors"""
    pass


class BootstrapError(ParkingServiceError):
    """Exception when the stored snapshot cannot be loaded"""
    pass


# ============================================================================
# MAIN PARKING SERVICE
# ============================================================================

class ParkingService:
    """
    Main application service for parking management

    This service orchestrates the use cases of the system:
    1. Vehicle entry and exit
    2. Space blocking and reservations
    3. Monthly subscriptions
    4. Configuration and role switching
    5. Dashboard, reports and export
    """

    def __init__(
        self,
        store: ParkingStore,
        event_bus: Optional[EventBus] = None,
        clock: Optional[Callable[[], datetime]] = None,
        allocation_strategy: Optional[AllocationStrategy] = None,
        initial_config: Optional[ParkingConfig] = None
    ):
        """
        Initialize the parking service

        Args:
            store: Where snapshots are loaded from and saved to
            event_bus: Receives domain events and alerts
            clock: Source of "now"; injectable for tests
            allocation_strategy: Space selection policy (first free by default)
            initial_config: Configuration used when nothing is stored yet
        """
        self.logger = logging.getLogger(self.__class__.__name__)
        self.store = store
        self.event_bus = event_bus or EventBus()
        self.clock = clock or datetime.now
        self.allocation_strategy = allocation_strategy or AllocationStrategyFactory.create()
        self.initial_config = initial_config or ParkingConfig.default()
        self.vehicle_factory = VehicleFactory()

        self._lock = threading.RLock()
        self._state = ParkingState(
            config=self.initial_config,
            spaces=init_spaces(self.initial_config),
        )

        self.logger.info("ParkingService initialized")

    # ------------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------------

    @property
    def state(self) -> ParkingState:
        return self._state

    @property
    def config(self) -> ParkingConfig:
        return self._state.config

    @property
    def role(self) -> UserRole:
        return self._state.role

    def _persist(self) -> None:
        """Save the snapshot; failures are logged and never undo the transition"""
        try:
            self.store.save(self._state)
        except Exception as e:
            self.logger.error(f"Error persisting snapshot: {e}", exc_info=True)

    def _publish(self, event_type: EventType, aggregate_id: Optional[str] = None, **data) -> None:
        self.event_bus.publish(DomainEvent(event_type=event_type, aggregate_id=aggregate_id, data=data))

    def _alert(self, level: AlertLevel, message: str) -> None:
        self.event_bus.publish(Alert.create(level, message))

    def _reject(self, result_class, failure: FailureCode, message: str, **extra):
        self.logger.info(f"Rejected ({failure.value}): {message}")
        self._alert(AlertLevel.ERROR, message)
        return result_class(success=False, message=message, error_code=failure.value, **extra)

    def _reject_outcome(self, result_class, outcome: Outcome):
        return self._reject(result_class, outcome.failure, outcome.message)

    def _denied(self, result_class, action: Action):
        return self._reject(
            result_class,
            FailureCode.PERMISSION_DENIED,
            f"El rol {self.role.value} no puede realizar: {action.value}",
        )

    def _internal_error(self, result_class, operation: str, error: Exception):
        self.logger.error(f"Error during {operation}: {error}", exc_info=True)
        return result_class(success=False, message=f"Internal error: {error}", error_code="INTERNAL_ERROR")

    # ------------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------------

    def bootstrap(self, seed_demo: bool = True) -> ParkingState:
        """
        Load the stored snapshot

        Use Case: Application start
        1. Load the snapshot from the store
        2. If nothing is stored, materialize the space pool from configuration
           (and seed demonstration history once, when enabled)
        3. Recompute subscription statuses

        Returns: The loaded state
        """
        with self._lock:
            try:
                state = self.store.load()
            except StoreError as e:
                raise BootstrapError(f"Could not load parking state: {e}") from e

            if state is None:
                if seed_demo and not self.store.is_seeded():
                    state = seed_demo_data(self.initial_config, now=self.clock())
                    self.store.mark_seeded()
                else:
                    state = ParkingState(
                        config=self.initial_config,
                        spaces=init_spaces(self.initial_config),
                    )
                self._state = state
                self._persist()
                self.logger.info(f"Initialized new parking state with {len(state.spaces)} spaces")
            else:
                self._state = state
                self.logger.info(
                    f"Loaded parking state: {len(state.parked_vehicles)} parked, "
                    f"{len(state.payments)} payments"
                )

            self.refresh_subscriptions()
            return self._state

    # ------------------------------------------------------------------------
    # Entry / exit
    # ------------------------------------------------------------------------

    def register_entry(self, request: EntryRequestDTO) -> EntryResultDTO:
        """
        Register a vehicle entering the lot

        Use Case: Vehicle Entry
        1. Check the operator may register entries
        2. Normalize and validate the plate against the declared type
        3. Require a helmet number for motorcycles
        4. Refuse plates under an active monthly subscription
        5. Refuse duplicate entries and allocate the first free space
        6. Create the vehicle with a ticket code, persist, announce

        Returns: Entry result with the created vehicle
        """
        self.logger.info(f"Processing entry for {request.plate}")

        try:
            if not can(self.role, Action.REGISTER_ENTRY):
                return self._denied(EntryResultDTO, Action.REGISTER_ENTRY)

            plate = normalize_plate(request.plate)
            vehicle_type = VehicleType(request.vehicle_type)

            validation = validate_plate(plate, vehicle_type)
            if not validation.valid:
                return self._reject(EntryResultDTO, validation.error, validation.message)

            if vehicle_type == VehicleType.MOTORCYCLE and not request.helmet_number:
                return self._reject(
                    EntryResultDTO,
                    FailureCode.MISSING_REQUIRED_FIELD,
                    "El número de casco es obligatorio para motos",
                )

            with self._lock:
                state = self._state

                if subscriptions.find_active_subscription(
                    plate, state.subscriptions, today=self.clock().date()
                ):
                    return self._reject(
                        EntryResultDTO,
                        FailureCode.SUBSCRIBED_VEHICLE_CONFLICT,
                        f"El vehículo {plate} tiene una mensualidad activa",
                    )

                vehicle_id = generate_id()
                outcome = allocate(
                    vehicle_type, state.spaces, vehicle_id,
                    plate=plate, vehicles=state.vehicles, strategy=self.allocation_strategy,
                )
                if not outcome.success:
                    return self._reject_outcome(EntryResultDTO, outcome)

                spaces, space = outcome.value
                vehicle = self.vehicle_factory.create(
                    plate=plate,
                    vehicle_type=vehicle_type,
                    space_id=space.id,
                    entry_time=request.entry_time or self.clock(),
                    rate_type=RateType(request.rate_type),
                    helmet_number=request.helmet_number,
                    vehicle_id=vehicle_id,
                )
                self._state = replace(state, spaces=spaces, vehicles=state.vehicles + (vehicle,))
                self._persist()

            message = f"Vehículo {plate} registrado en espacio {space.label}"
            self._publish(
                EventType.VEHICLE_ENTERED, vehicle.id,
                plate=plate, space_id=space.id, ticket_code=vehicle.ticket_code,
            )
            self._alert(AlertLevel.SUCCESS, message)

            return EntryResultDTO(
                success=True,
                message=message,
                vehicle=VehicleDTO.from_domain(vehicle),
                space_label=space.label,
            )

        except Exception as e:
            return self._internal_error(EntryResultDTO, "vehicle entry", e)

    def quote_exit(
        self,
        vehicle_id: str,
        convenio: bool = False,
        at: Optional[datetime] = None
    ) -> Optional[FeeQuoteDTO]:
        """Live fee preview for a parked vehicle; None if it is not parked"""
        state = self._state
        vehicle = state.find_vehicle(vehicle_id)
        if vehicle is None or not vehicle.is_parked:
            return None

        minutes = calc_duration(vehicle.entry_time, at or self.clock())
        fee = calc_fee_breakdown(minutes, vehicle.vehicle_type, vehicle.rate_type, state.config, convenio)
        return FeeQuoteDTO(
            vehicle_id=vehicle.id,
            plate=vehicle.plate,
            vehicle_type=vehicle.vehicle_type,
            rate_type=vehicle.rate_type,
            duration_minutes=minutes,
            subtotal=fee.subtotal,
            discount=fee.discount,
            amount=fee.amount,
            billable_hours=fee.billable_hours,
            convenio=convenio,
        )

    def register_exit(self, request: ExitRequestDTO) -> ExitResultDTO:
        """
        Register a vehicle leaving the lot

        Use Case: Vehicle Exit
        1. Check the operator may register exits
        2. Find the parked vehicle
        3. Compute duration and fee (with convenio when applied at the gate)
        4. Release the space, record the payment, mark the vehicle exited
        5. Persist and announce

        Returns: Exit result with the recorded payment
        """
        self.logger.info(f"Processing exit for vehicle {request.vehicle_id}")

        try:
            if not can(self.role, Action.REGISTER_EXIT):
                return self._denied(ExitResultDTO, Action.REGISTER_EXIT)

            with self._lock:
                state = self._state
                vehicle = state.find_vehicle(request.vehicle_id)
                if vehicle is None or not vehicle.is_parked:
                    return self._reject(
                        ExitResultDTO,
                        FailureCode.ENTITY_NOT_FOUND,
                        "Vehículo no encontrado",
                    )

                exit_time = request.exit_time or self.clock()
                minutes = calc_duration(vehicle.entry_time, exit_time)
                fee = calc_fee_breakdown(
                    minutes, vehicle.vehicle_type, vehicle.rate_type, state.config, request.convenio
                )

                released = release(vehicle.space_id, state.spaces, vehicle.id)
                if not released.success:
                    return self._reject_outcome(ExitResultDTO, released)

                payment = Payment(
                    id=generate_id(),
                    vehicle_id=vehicle.id,
                    plate=vehicle.plate,
                    amount=fee.amount,
                    subtotal=fee.subtotal,
                    discount=fee.discount,
                    method=PaymentMethod(request.method),
                    date=exit_time,
                    vehicle_type=vehicle.vehicle_type,
                    rate_type=vehicle.rate_type,
                    duration=minutes,
                    convenio=request.convenio,
                )
                exited = vehicle.mark_exited(exit_time, request.convenio)
                self._state = replace(
                    state,
                    spaces=released.value,
                    vehicles=tuple(exited if v.id == vehicle.id else v for v in state.vehicles),
                    payments=state.payments + (payment,),
                )
                self._persist()

            space = self._state.find_space(vehicle.space_id)
            message = f"Salida registrada. Total: {reports.format_currency(payment.amount)}"
            self._publish(
                EventType.VEHICLE_EXITED, vehicle.id,
                plate=vehicle.plate, amount=payment.amount, duration=minutes,
            )
            self._alert(AlertLevel.SUCCESS, message)

            return ExitResultDTO(
                success=True,
                message=message,
                payment=PaymentDTO.from_domain(payment),
                space_label=space.label if space else None,
            )

        except Exception as e:
            return self._internal_error(ExitResultDTO, "vehicle exit", e)

    # ------------------------------------------------------------------------
    # Space pool
    # ------------------------------------------------------------------------

    def _change_space(
        self,
        space_id: str,
        action: Action,
        transition: Callable[..., Outcome],
        success_message: str
    ) -> OperationResultDTO:
        if not can(self.role, action):
            return self._denied(OperationResultDTO, action)

        with self._lock:
            state = self._state
            outcome = transition(space_id, state.spaces)
            if not outcome.success:
                return self._reject_outcome(OperationResultDTO, outcome)
            self._state = replace(state, spaces=outcome.value)
            self._persist()

        space = self._state.find_space(space_id)
        self._publish(EventType.SPACE_CHANGED, space_id, status=space.status.value)
        self._alert(AlertLevel.INFO, success_message.format(label=space.label))
        return OperationResultDTO(success=True, message=success_message.format(label=space.label))

    def toggle_space_block(self, space_id: str) -> OperationResultDTO:
        """Flip a space between free and blocked"""
        return self._change_space(space_id, Action.BLOCK_SPACE, toggle_block, "Espacio {label} actualizado")

    def reserve_space(self, space_id: str) -> OperationResultDTO:
        return self._change_space(space_id, Action.RESERVE_SPACE, reserve, "Espacio {label} reservado")

    def unreserve_space(self, space_id: str) -> OperationResultDTO:
        return self._change_space(space_id, Action.RESERVE_SPACE, unreserve, "Espacio {label} liberado")

    # ------------------------------------------------------------------------
    # Configuration / role
    # ------------------------------------------------------------------------

    def update_config(self, update: ConfigUpdateDTO) -> OperationResultDTO:
        """
        Apply a partial configuration update

        The space pool is sized at initialization and is not rebuilt here.
        """
        if not can(self.role, Action.UPDATE_CONFIG):
            return self._denied(OperationResultDTO, Action.UPDATE_CONFIG)

        with self._lock:
            state = self._state
            merged = ParkingConfigDTO.from_domain(state.config).model_dump()
            changes = update.model_dump(exclude_none=True)

            for vehicle_type, rates in changes.pop("rates", {}).items():
                merged["rates"].setdefault(vehicle_type, {}).update(rates)
            for vehicle_type, count in changes.pop("total_spaces", {}).items():
                merged["total_spaces"][vehicle_type] = count
            merged.update(changes)

            try:
                config = ParkingConfigDTO(**merged).to_domain()
            except ValueError as e:
                return self._reject(OperationResultDTO, FailureCode.INVALID_CONFIGURATION, str(e))

            self._state = replace(state, config=config)
            self._persist()

        self._publish(EventType.CONFIG_UPDATED, data_keys=sorted(update.model_dump(exclude_none=True)))
        self._alert(AlertLevel.SUCCESS, "Configuración actualizada")
        return OperationResultDTO(success=True, message="Configuración actualizada")

    def set_role(self, role: UserRole) -> OperationResultDTO:
        with self._lock:
            self._state = replace(self._state, role=UserRole(role))
            self._persist()
        self.logger.info(f"Role switched to {self.role.value}")
        return OperationResultDTO(success=True, message=f"Rol activo: {self.role.value}")

    # ------------------------------------------------------------------------
    # Monthly subscriptions
    # ------------------------------------------------------------------------

    def add_subscription(self, request: SubscriptionCreateDTO) -> SubscriptionResultDTO:
        """
        Create a monthly subscription

        Use Case: New mensualidad
        1. Check the operator may manage subscriptions
        2. Validate plate/type and price it at the configured monthly rate
        3. Persist and announce
        """
        try:
            if not can(self.role, Action.MANAGE_SUBSCRIPTIONS):
                return self._denied(SubscriptionResultDTO, Action.MANAGE_SUBSCRIPTIONS)

            with self._lock:
                state = self._state
                outcome = subscriptions.create_subscription(
                    plate=request.plate,
                    client_name=request.client_name,
                    vehicle_type=VehicleType(request.vehicle_type),
                    cut_day=request.cut_day,
                    config=state.config,
                    start_date=request.start_date or self.clock().date(),
                    phone=request.phone,
                )
                if not outcome.success:
                    return self._reject_outcome(SubscriptionResultDTO, outcome)

                sub = outcome.value
                self._state = replace(state, subscriptions=state.subscriptions + (sub,))
                self._persist()

            message = f"Mensualidad creada para {sub.plate}"
            self._publish(EventType.SUBSCRIPTION_CHANGED, sub.id, plate=sub.plate, status=sub.status.value)
            self._alert(AlertLevel.SUCCESS, message)
            return SubscriptionResultDTO(
                success=True, message=message, subscription=SubscriptionDTO.from_domain(sub)
            )

        except Exception as e:
            return self._internal_error(SubscriptionResultDTO, "subscription creation", e)

    def pay_subscription(self, subscription_id: str) -> SubscriptionResultDTO:
        """
        Record this month's payment for a subscription

        When the configuration enforces a single payment per month, a second
        payment in the same month is rejected with ALREADY_PAID_THIS_MONTH.
        """
        if not can(self.role, Action.PAY_SUBSCRIPTION):
            return self._denied(SubscriptionResultDTO, Action.PAY_SUBSCRIPTION)

        with self._lock:
            state = self._state
            sub = state.find_subscription(subscription_id)
            if sub is None:
                return self._reject(
                    SubscriptionResultDTO, FailureCode.ENTITY_NOT_FOUND, "Mensualidad no encontrada"
                )

            outcome = subscriptions.pay(
                sub, self.clock(), state.config.enforce_single_monthly_payment
            )
            if not outcome.success:
                return self._reject_outcome(SubscriptionResultDTO, outcome)

            paid = outcome.value
            self._state = replace(
                state,
                subscriptions=tuple(paid if s.id == sub.id else s for s in state.subscriptions),
            )
            self._persist()

        message = f"Pago de mensualidad registrado: {reports.format_currency(paid.price)}"
        self._publish(EventType.SUBSCRIPTION_PAID, paid.id, plate=paid.plate, amount=paid.price)
        self._alert(AlertLevel.SUCCESS, message)
        return SubscriptionResultDTO(
            success=True, message=message, subscription=SubscriptionDTO.from_domain(paid)
        )

    def delete_subscription(self, subscription_id: str) -> OperationResultDTO:
        if not can(self.role, Action.MANAGE_SUBSCRIPTIONS):
            return self._denied(OperationResultDTO, Action.MANAGE_SUBSCRIPTIONS)

        with self._lock:
            state = self._state
            outcome = subscriptions.delete(subscription_id, state.subscriptions)
            if not outcome.success:
                return self._reject_outcome(OperationResultDTO, outcome)
            self._state = replace(state, subscriptions=outcome.value)
            self._persist()

        self._publish(EventType.SUBSCRIPTION_CHANGED, subscription_id, deleted=True)
        self._alert(AlertLevel.INFO, "Mensualidad eliminada")
        return OperationResultDTO(success=True, message="Mensualidad eliminada")

    def refresh_subscriptions(self, today: Optional[date] = None) -> List[SubscriptionDTO]:
        """Recompute every subscription status for today"""
        today = today or self.clock().date()

        with self._lock:
            state = self._state
            resolved = subscriptions.resolve_all(state.subscriptions, today)
            changed = [new for old, new in zip(state.subscriptions, resolved) if new is not old]
            if changed:
                self._state = replace(state, subscriptions=resolved)
                self._persist()

        for sub in changed:
            self._publish(EventType.SUBSCRIPTION_CHANGED, sub.id, plate=sub.plate, status=sub.status.value)

        return [SubscriptionDTO.from_domain(s) for s in resolved]

    # ------------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------------

    def parked_vehicles(self, search: Optional[str] = None) -> List[VehicleDTO]:
        needle = normalize_plate(search) if search else ""
        return [
            VehicleDTO.from_domain(v)
            for v in self._state.parked_vehicles
            if needle in v.plate
        ]

    def find_parked_by_plate(self, plate: str) -> Optional[VehicleDTO]:
        plate = normalize_plate(plate)
        vehicle = next((v for v in self._state.parked_vehicles if v.plate == plate), None)
        return VehicleDTO.from_domain(vehicle) if vehicle else None

    def list_spaces(self, vehicle_type: Optional[VehicleType] = None) -> List[ParkingSpaceDTO]:
        return [
            ParkingSpaceDTO.from_domain(s)
            for s in self._state.spaces
            if vehicle_type is None or s.space_type == vehicle_type
        ]

    def list_subscriptions(self) -> List[SubscriptionDTO]:
        return [SubscriptionDTO.from_domain(s) for s in self._state.subscriptions]

    def dashboard(self, now: Optional[datetime] = None) -> DashboardDTO:
        return reports.dashboard_summary(self._state, now or self.clock())

    def income_report(self, period: str, now: Optional[datetime] = None) -> List[IncomePointDTO]:
        if not can(self.role, Action.VIEW_REPORTS):
            raise ParkingServiceError(f"El rol {self.role.value} no puede ver reportes")
        return reports.income_series(self._state.payments, period, now or self.clock())

    def export_data(self, fmt: str = "csv") -> ExportResultDTO:
        """Payments as CSV, or payments plus exited vehicles as JSON"""
        if not can(self.role, Action.EXPORT_DATA):
            return self._denied(ExportResultDTO, Action.EXPORT_DATA)

        state = self._state
        if fmt == "csv":
            return ExportResultDTO(
                success=True,
                filename="reporte_pagos.csv",
                content=reports.export_payments_csv(state.payments),
            )
        if fmt == "json":
            return ExportResultDTO(
                success=True,
                filename="reporte_completo.json",
                content=reports.export_report_json(state.payments, state.vehicles),
            )
        return ExportResultDTO(success=False, message=f"Formato no soportado: {fmt}", error_code="UNSUPPORTED_FORMAT")


# ============================================================================
# SERVICE FACTORY
# ============================================================================

class ParkingServiceFactory:
    """Factory for creating parking service instances"""

    @staticmethod
    def create_in_memory_service(**kwargs: Any) -> ParkingService:
        return ParkingService(RepositoryFactory.create_in_memory_store(), **kwargs)

    @staticmethod
    def create_from_settings(settings: Settings, **kwargs: Any) -> ParkingService:
        service = ParkingService(RepositoryFactory.create_store(settings), **kwargs)
        service.bootstrap(seed_demo=settings.seed_demo)
        return service
