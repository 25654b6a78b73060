# File: parksystem/infrastructure/repositories.py
"""
Repository Pattern Implementation for ParkSystem

The application service persists whole-collection snapshots (vehicles,
payments, spaces, subscriptions, configuration, role) after each state
transition. Stores hide where those snapshots live.

Storage Implementations:
- InMemoryParkingStore - For testing and development
- KeyValueParkingStore - JSON snapshots in Redis under a fixed namespace
- SQLAlchemyParkingStore - Relational mirror of the remote schema
  (configuracion, tarifas, vehiculos, espacios, ingresos, salidas, pagos,
  mensualidades, mensualidad_pagos)

The Spanish table and column names are the contract of the external schema
and stay inside this module; the rest of the code only sees domain records.
"""

from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Type
import json
import logging

from pydantic import TypeAdapter
from sqlalchemy import (
    create_engine, Column, Integer, String, Boolean, DateTime, Date,
    ForeignKey, Text, UniqueConstraint
)
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.exc import SQLAlchemyError
import redis

from ..domain.models import (
    MonthlyPayment, MonthlySubscription, ParkingSpace, ParkingState, Payment,
    PaymentMethod, PaymentStatus, RateType, SpaceStatus, SubscriptionStatus,
    UserRole, Vehicle, VehicleStatus, VehicleType
)
from ..application.dtos import (
    ParkingConfigDTO, ParkingSpaceDTO, PaymentDTO, SubscriptionDTO, VehicleDTO
)
from .settings import Settings


class StoreError(Exception):
    """Raised when a snapshot cannot be read or written"""
    pass


# ============================================================================
# STORE INTERFACE
# ============================================================================

class ParkingStore(ABC):
    """Durable home of the ParkingState snapshot"""

    def __init__(self):
        self._logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def load(self) -> Optional[ParkingState]:
        """Return the stored snapshot, or None if nothing was ever saved"""
        pass

    @abstractmethod
    def save(self, state: ParkingState) -> None:
        """Replace the stored snapshot"""
        pass

    @abstractmethod
    def is_seeded(self) -> bool:
        pass

    @abstractmethod
    def mark_seeded(self) -> None:
        pass


# ============================================================================
# IN-MEMORY STORE
# ============================================================================

class InMemoryParkingStore(ParkingStore):
    """In-memory store for tests and development"""

    def __init__(self, state: Optional[ParkingState] = None):
        super().__init__()
        self._state = state
        self._seeded = False
        self.save_count = 0

    def load(self) -> Optional[ParkingState]:
        return self._state

    def save(self, state: ParkingState) -> None:
        self._state = state
        self.save_count += 1

    def is_seeded(self) -> bool:
        return self._seeded

    def mark_seeded(self) -> None:
        self._seeded = True


# ============================================================================
# KEY-VALUE STORE (Redis)
# ============================================================================

_vehicles_adapter = TypeAdapter(List[VehicleDTO])
_payments_adapter = TypeAdapter(List[PaymentDTO])
_spaces_adapter = TypeAdapter(List[ParkingSpaceDTO])
_subscriptions_adapter = TypeAdapter(List[SubscriptionDTO])


class KeyValueParkingStore(ParkingStore):
    """
    Whole-collection JSON snapshots under '{namespace}_{collection}' keys.

    client is a redis.Redis (or anything exposing get/set/pipeline). A save
    replaces all collections in one MULTI/EXEC transaction.
    """

    COLLECTIONS = ("config", "vehicles", "payments", "spaces", "monthly_subs", "role")

    def __init__(self, client: Any, namespace: str = "parking_system"):
        super().__init__()
        self.client = client
        self.namespace = namespace

    def _key(self, name: str) -> str:
        return f"{self.namespace}_{name}"

    def _get(self, name: str) -> Optional[str]:
        raw = self.client.get(self._key(name))
        if raw is None:
            return None
        return raw.decode("utf-8") if isinstance(raw, bytes) else raw

    def load(self) -> Optional[ParkingState]:
        try:
            spaces_raw = self._get("spaces")
            if spaces_raw is None:
                return None

            config_raw = self._get("config")
            config = (
                ParkingConfigDTO.model_validate_json(config_raw).to_domain()
                if config_raw else ParkingState().config
            )
            role_raw = self._get("role")

            return ParkingState(
                config=config,
                spaces=tuple(d.to_domain() for d in _spaces_adapter.validate_json(spaces_raw)),
                vehicles=tuple(
                    d.to_domain() for d in _vehicles_adapter.validate_json(self._get("vehicles") or "[]")
                ),
                payments=tuple(
                    d.to_domain() for d in _payments_adapter.validate_json(self._get("payments") or "[]")
                ),
                subscriptions=tuple(
                    d.to_domain()
                    for d in _subscriptions_adapter.validate_json(self._get("monthly_subs") or "[]")
                ),
                role=UserRole(json.loads(role_raw)) if role_raw else UserRole.ADMIN,
            )
        except redis.RedisError as e:
            self._logger.error(f"Redis error loading snapshot: {e}")
            raise StoreError(str(e)) from e
        except ValueError as e:
            self._logger.error(f"Corrupt snapshot under namespace {self.namespace}: {e}")
            raise StoreError(str(e)) from e

    def save(self, state: ParkingState) -> None:
        values = {
            "config": ParkingConfigDTO.from_domain(state.config).to_json(),
            "vehicles": _vehicles_adapter.dump_json(
                [VehicleDTO.from_domain(v) for v in state.vehicles]).decode(),
            "payments": _payments_adapter.dump_json(
                [PaymentDTO.from_domain(p) for p in state.payments]).decode(),
            "spaces": _spaces_adapter.dump_json(
                [ParkingSpaceDTO.from_domain(s) for s in state.spaces]).decode(),
            "monthly_subs": _subscriptions_adapter.dump_json(
                [SubscriptionDTO.from_domain(s) for s in state.subscriptions]).decode(),
            "role": json.dumps(UserRole(state.role).value),
        }
        try:
            # MULTI/EXEC: either every collection is replaced or none is
            pipe = self.client.pipeline(transaction=True)
            for name, value in values.items():
                pipe.set(self._key(name), value)
            pipe.execute()
            self._logger.debug(f"Saved snapshot under namespace {self.namespace}")
        except redis.RedisError as e:
            self._logger.error(f"Redis error saving snapshot: {e}")
            raise StoreError(str(e)) from e

    def is_seeded(self) -> bool:
        return self._get("seeded") == "1"

    def mark_seeded(self) -> None:
        self.client.set(self._key("seeded"), "1")


# ============================================================================
# SQLALCHEMY MODELS (remote schema mirror)
# ============================================================================

Base = declarative_base()


class ConfiguracionModel(Base):
    """Key/value settings; the full configuration lives under clave='config'"""
    __tablename__ = 'configuracion'

    clave = Column(String(50), primary_key=True)
    valor = Column(Text, nullable=False)
    descripcion = Column(String(200))
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


class TarifaModel(Base):
    __tablename__ = 'tarifas'

    id = Column(Integer, primary_key=True, autoincrement=True)
    tipo_vehiculo = Column(String(20), nullable=False)
    tipo_cobro = Column(String(20), nullable=False)
    precio = Column(Integer, nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    __table_args__ = (
        UniqueConstraint('tipo_vehiculo', 'tipo_cobro', name='uq_tarifa_tipo'),
    )


class VehiculoModel(Base):
    """Registry of every plate seen at the gate"""
    __tablename__ = 'vehiculos'

    placa = Column(String(10), primary_key=True)
    tipo = Column(String(20), nullable=False)
    created_at = Column(DateTime, default=datetime.now)


class EspacioModel(Base):
    __tablename__ = 'espacios'

    id = Column(String(40), primary_key=True)
    posicion = Column(Integer, nullable=False)
    etiqueta = Column(String(10), nullable=False)
    tipo_vehiculo = Column(String(20), nullable=False)
    estado = Column(String(20), nullable=False, default='free')
    vehiculo_id = Column(String(40))


class IngresoModel(Base):
    __tablename__ = 'ingresos'

    id = Column(String(40), primary_key=True)
    placa = Column(String(10), nullable=False, index=True)
    tipo_vehiculo = Column(String(20), nullable=False)
    tipo_cobro = Column(String(20), nullable=False)
    espacio = Column(String(40), nullable=False)
    fecha_entrada = Column(DateTime, nullable=False)
    numero_casco = Column(String(20))
    ticket_code = Column(String(20), nullable=False)
    estado = Column(String(20), nullable=False)
    created_at = Column(DateTime, default=datetime.now)


class SalidaModel(Base):
    __tablename__ = 'salidas'

    id = Column(String(40), primary_key=True)
    ingreso_id = Column(String(40), ForeignKey('ingresos.id'), nullable=False)
    placa = Column(String(10), nullable=False)
    tipo_vehiculo = Column(String(20), nullable=False)
    tipo_cobro = Column(String(20), nullable=False)
    fecha_entrada = Column(DateTime, nullable=False)
    fecha_salida = Column(DateTime, nullable=False)
    duracion_minutos = Column(Integer, nullable=False)
    subtotal = Column(Integer, nullable=False, default=0)
    descuento = Column(Integer, nullable=False, default=0)
    total = Column(Integer, nullable=False, default=0)
    convenio = Column(Boolean, default=False)


class PagoModel(Base):
    __tablename__ = 'pagos'

    id = Column(String(40), primary_key=True)
    salida_id = Column(String(40), ForeignKey('salidas.id'))
    mensualidad_pago_id = Column(String(40), ForeignKey('mensualidad_pagos.id'))
    placa = Column(String(10), nullable=False)
    tipo_vehiculo = Column(String(20), nullable=False)
    tipo_cobro = Column(String(20), nullable=False)
    subtotal = Column(Integer, nullable=False)
    descuento = Column(Integer, nullable=False)
    total = Column(Integer, nullable=False)
    convenio = Column(Boolean, default=False)
    metodo_pago = Column(String(10), nullable=False)
    estado = Column(String(10), nullable=False, default='paid')
    fecha_pago = Column(DateTime, nullable=False)


class MensualidadModel(Base):
    __tablename__ = 'mensualidades'

    id = Column(String(40), primary_key=True)
    posicion = Column(Integer, nullable=False)
    placa = Column(String(10), nullable=False, index=True)
    nombre_cliente = Column(String(100), nullable=False)
    telefono = Column(String(30))
    tipo_vehiculo = Column(String(20), nullable=False)
    fecha_inicio = Column(Date, nullable=False)
    dia_corte = Column(Integer, nullable=False)
    precio = Column(Integer, nullable=False)
    estado = Column(String(20), nullable=False)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


class MensualidadPagoModel(Base):
    __tablename__ = 'mensualidad_pagos'

    id = Column(String(40), primary_key=True)
    mensualidad_id = Column(String(40), ForeignKey('mensualidades.id', ondelete='CASCADE'), nullable=False)
    posicion = Column(Integer, nullable=False)
    fecha_pago = Column(DateTime, nullable=False)
    monto = Column(Integer, nullable=False)
    mes_pagado = Column(Integer, nullable=False)
    anio_pagado = Column(Integer, nullable=False)


# ============================================================================
# DOMAIN <-> ORM MAPPING
# ============================================================================

class Mapper:
    """Maps between domain records and ORM rows"""

    @staticmethod
    def space_to_orm(space: ParkingSpace, position: int) -> EspacioModel:
        return EspacioModel(
            id=space.id,
            posicion=position,
            etiqueta=space.label,
            tipo_vehiculo=VehicleType(space.space_type).value,
            estado=SpaceStatus(space.status).value,
            vehiculo_id=space.vehicle_id,
        )

    @staticmethod
    def space_to_domain(model: EspacioModel) -> ParkingSpace:
        return ParkingSpace(
            id=model.id,
            label=model.etiqueta,
            space_type=VehicleType(model.tipo_vehiculo),
            status=SpaceStatus(model.estado),
            vehicle_id=model.vehiculo_id,
        )

    @staticmethod
    def vehicle_to_ingreso(vehicle: Vehicle) -> IngresoModel:
        return IngresoModel(
            id=vehicle.id,
            placa=vehicle.plate,
            tipo_vehiculo=VehicleType(vehicle.vehicle_type).value,
            tipo_cobro=RateType(vehicle.rate_type).value,
            espacio=vehicle.space_id,
            fecha_entrada=vehicle.entry_time,
            numero_casco=vehicle.helmet_number,
            ticket_code=vehicle.ticket_code,
            estado=VehicleStatus(vehicle.status).value,
        )

    @staticmethod
    def vehicle_to_salida(vehicle: Vehicle, payment: Optional[Payment]) -> SalidaModel:
        duration = payment.duration if payment else max(
            1, int((vehicle.exit_time - vehicle.entry_time).total_seconds() // 60)
        )
        return SalidaModel(
            id=vehicle.id,
            ingreso_id=vehicle.id,
            placa=vehicle.plate,
            tipo_vehiculo=VehicleType(vehicle.vehicle_type).value,
            tipo_cobro=RateType(vehicle.rate_type).value,
            fecha_entrada=vehicle.entry_time,
            fecha_salida=vehicle.exit_time,
            duracion_minutos=duration,
            subtotal=payment.subtotal if payment else 0,
            descuento=payment.discount if payment else 0,
            total=payment.amount if payment else 0,
            convenio=bool(vehicle.convenio),
        )

    @staticmethod
    def vehicle_to_domain(ingreso: IngresoModel, salida: Optional[SalidaModel]) -> Vehicle:
        return Vehicle(
            id=ingreso.id,
            plate=ingreso.placa,
            vehicle_type=VehicleType(ingreso.tipo_vehiculo),
            rate_type=RateType(ingreso.tipo_cobro),
            entry_time=ingreso.fecha_entrada,
            space_id=ingreso.espacio,
            ticket_code=ingreso.ticket_code,
            status=VehicleStatus(ingreso.estado),
            exit_time=salida.fecha_salida if salida else None,
            convenio=salida.convenio if salida else None,
            helmet_number=ingreso.numero_casco,
        )

    @staticmethod
    def payment_to_orm(payment: Payment) -> PagoModel:
        return PagoModel(
            id=payment.id,
            salida_id=payment.vehicle_id,
            placa=payment.plate,
            tipo_vehiculo=VehicleType(payment.vehicle_type).value,
            tipo_cobro=RateType(payment.rate_type).value,
            subtotal=payment.subtotal,
            descuento=payment.discount,
            total=payment.amount,
            convenio=payment.convenio,
            metodo_pago=PaymentMethod(payment.method).value,
            estado=PaymentStatus(payment.status).value,
            fecha_pago=payment.date,
        )

    @staticmethod
    def payment_to_domain(model: PagoModel, salida: SalidaModel) -> Payment:
        return Payment(
            id=model.id,
            vehicle_id=salida.ingreso_id,
            plate=model.placa,
            amount=model.total,
            subtotal=model.subtotal,
            discount=model.descuento,
            method=PaymentMethod(model.metodo_pago),
            date=model.fecha_pago,
            vehicle_type=VehicleType(model.tipo_vehiculo),
            rate_type=RateType(model.tipo_cobro),
            duration=salida.duracion_minutos,
            convenio=bool(model.convenio),
            status=PaymentStatus(model.estado),
        )

    @staticmethod
    def subscription_to_orm(sub: MonthlySubscription, position: int) -> MensualidadModel:
        return MensualidadModel(
            id=sub.id,
            posicion=position,
            placa=sub.plate,
            nombre_cliente=sub.client_name,
            telefono=sub.phone,
            tipo_vehiculo=VehicleType(sub.vehicle_type).value,
            fecha_inicio=sub.start_date,
            dia_corte=sub.cut_day,
            precio=sub.price,
            estado=SubscriptionStatus(sub.status).value,
        )

    @staticmethod
    def monthly_payment_to_orm(payment: MonthlyPayment, sub_id: str, position: int) -> MensualidadPagoModel:
        return MensualidadPagoModel(
            id=payment.id,
            mensualidad_id=sub_id,
            posicion=position,
            fecha_pago=payment.date,
            monto=payment.amount,
            mes_pagado=payment.month,
            anio_pagado=payment.year,
        )

    @staticmethod
    def subscription_to_domain(
        model: MensualidadModel,
        payments: List[MensualidadPagoModel]
    ) -> MonthlySubscription:
        return MonthlySubscription(
            id=model.id,
            plate=model.placa,
            client_name=model.nombre_cliente,
            vehicle_type=VehicleType(model.tipo_vehiculo),
            start_date=model.fecha_inicio,
            cut_day=model.dia_corte,
            price=model.precio,
            status=SubscriptionStatus(model.estado),
            payments=tuple(
                MonthlyPayment(
                    id=p.id,
                    date=p.fecha_pago,
                    amount=p.monto,
                    month=p.mes_pagado,
                    year=p.anio_pagado,
                )
                for p in sorted(payments, key=lambda p: p.posicion)
            ),
            phone=model.telefono,
        )


# ============================================================================
# SQLALCHEMY STORE
# ============================================================================

class SQLAlchemyParkingStore(ParkingStore):
    """
    Relational mirror of the snapshot.

    save() rewrites every table inside one transaction, so a failed save
    leaves the previous snapshot intact.
    """

    _CONFIG_KEY = "config"
    _ROLE_KEY = "role"
    _SEEDED_KEY = "seeded"

    # Children before parents so foreign keys never dangle mid-rewrite
    _SNAPSHOT_TABLES = (
        PagoModel, MensualidadPagoModel, MensualidadModel, SalidaModel,
        IngresoModel, EspacioModel, TarifaModel,
    )

    def __init__(self, session_factory: Callable[[], Session]):
        super().__init__()
        self.session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            self._logger.error(f"Database error: {e}")
            raise StoreError(str(e)) from e
        finally:
            session.close()

    def _get_setting(self, session: Session, key: str) -> Optional[str]:
        row = session.get(ConfiguracionModel, key)
        return row.valor if row else None

    def _put_setting(self, session: Session, key: str, value: str, description: str) -> None:
        session.merge(ConfiguracionModel(clave=key, valor=value, descripcion=description))

    def load(self) -> Optional[ParkingState]:
        with self._session() as session:
            espacios = session.query(EspacioModel).order_by(EspacioModel.posicion).all()
            if not espacios:
                return None

            config_raw = self._get_setting(session, self._CONFIG_KEY)
            config_dto = (
                ParkingConfigDTO.model_validate_json(config_raw)
                if config_raw else ParkingConfigDTO.from_domain(ParkingState().config)
            )
            for tarifa in session.query(TarifaModel).all():
                config_dto.rates.setdefault(tarifa.tipo_vehiculo, {})[tarifa.tipo_cobro] = tarifa.precio

            salidas: Dict[str, SalidaModel] = {
                s.ingreso_id: s for s in session.query(SalidaModel).all()
            }
            salidas_by_id = {s.id: s for s in salidas.values()}
            ingresos = session.query(IngresoModel).order_by(IngresoModel.fecha_entrada).all()
            pagos = session.query(PagoModel).order_by(PagoModel.fecha_pago).all()

            cuotas: Dict[str, List[MensualidadPagoModel]] = {}
            for cuota in session.query(MensualidadPagoModel).all():
                cuotas.setdefault(cuota.mensualidad_id, []).append(cuota)

            role_raw = self._get_setting(session, self._ROLE_KEY)

            return ParkingState(
                config=config_dto.to_domain(),
                spaces=tuple(Mapper.space_to_domain(e) for e in espacios),
                vehicles=tuple(Mapper.vehicle_to_domain(i, salidas.get(i.id)) for i in ingresos),
                payments=tuple(
                    Mapper.payment_to_domain(p, salidas_by_id[p.salida_id])
                    for p in pagos if p.salida_id in salidas_by_id
                ),
                subscriptions=tuple(
                    Mapper.subscription_to_domain(m, cuotas.get(m.id, []))
                    for m in session.query(MensualidadModel).order_by(MensualidadModel.posicion).all()
                ),
                role=UserRole(role_raw) if role_raw else UserRole.ADMIN,
            )

    def save(self, state: ParkingState) -> None:
        payments_by_vehicle = {p.vehicle_id: p for p in state.payments}

        with self._session() as session:
            for model in self._SNAPSHOT_TABLES:
                session.query(model).delete()
            session.flush()

            self._put_setting(
                session, self._CONFIG_KEY,
                ParkingConfigDTO.from_domain(state.config).to_json(),
                "Configuración general del parqueadero",
            )
            self._put_setting(session, self._ROLE_KEY, UserRole(state.role).value, "Rol activo")

            for vehicle_type, rates in state.config.rates.items():
                for rate_key, price in rates.items():
                    session.add(TarifaModel(
                        tipo_vehiculo=VehicleType(vehicle_type).value,
                        tipo_cobro=rate_key,
                        precio=price,
                    ))

            for position, space in enumerate(state.spaces):
                session.add(Mapper.space_to_orm(space, position))

            # One registry row per plate, however many visits it has
            plates = {v.plate: VehicleType(v.vehicle_type).value for v in state.vehicles}
            for plate, vehicle_type in plates.items():
                session.merge(VehiculoModel(placa=plate, tipo=vehicle_type))

            for vehicle in state.vehicles:
                session.add(Mapper.vehicle_to_ingreso(vehicle))
            session.flush()

            for vehicle in state.exited_vehicles:
                session.add(Mapper.vehicle_to_salida(vehicle, payments_by_vehicle.get(vehicle.id)))
            session.flush()

            for payment in state.payments:
                session.add(Mapper.payment_to_orm(payment))

            for position, sub in enumerate(state.subscriptions):
                session.add(Mapper.subscription_to_orm(sub, position))
            session.flush()
            for sub in state.subscriptions:
                for position, cuota in enumerate(sub.payments):
                    session.add(Mapper.monthly_payment_to_orm(cuota, sub.id, position))

        self._logger.debug(
            f"Saved snapshot: {len(state.vehicles)} vehicles, {len(state.payments)} payments"
        )

    def is_seeded(self) -> bool:
        with self._session() as session:
            return self._get_setting(session, self._SEEDED_KEY) == "1"

    def mark_seeded(self) -> None:
        with self._session() as session:
            self._put_setting(session, self._SEEDED_KEY, "1", "Datos de demostración cargados")


# ============================================================================
# REPOSITORY FACTORY
# ============================================================================

class RepositoryFactory:
    """Factory for parking stores"""

    @staticmethod
    def create_in_memory_store() -> InMemoryParkingStore:
        return InMemoryParkingStore()

    @staticmethod
    def create_key_value_store(redis_url: str, namespace: str = "parking_system") -> KeyValueParkingStore:
        client = redis.Redis.from_url(redis_url)
        return KeyValueParkingStore(client, namespace)

    @staticmethod
    def create_sqlalchemy_store(database_url: str) -> SQLAlchemyParkingStore:
        """Create the SQL store, creating tables if they don't exist"""
        engine = create_engine(database_url, echo=False)
        SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
        Base.metadata.create_all(bind=engine)
        return SQLAlchemyParkingStore(SessionLocal)

    @classmethod
    def create_store(cls, settings: Settings) -> ParkingStore:
        if settings.store == "redis":
            return cls.create_key_value_store(settings.redis_url, settings.namespace)
        if settings.store == "sql":
            return cls.create_sqlalchemy_store(settings.database_url)
        return cls.create_in_memory_store()
