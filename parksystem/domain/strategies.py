# File: parksystem/domain/strategies.py
"""
Strategy Pattern Implementation for billing and space allocation

Each rate plan has its own pricing algorithm and the space pool has a
pluggable selection algorithm. Strategies are selected at runtime by
PricingStrategyFactory / AllocationStrategyFactory.

Key Strategies:
1. Pricing Strategies - hourly-with-grace and flat (day/night/24h) billing
2. Allocation Strategies - which free space a new vehicle receives

All strategies are pure: they read the configuration snapshot they are
handed and never touch shared state.
"""

from abc import ABC, abstractmethod
from typing import Optional, Dict, Sequence
import logging
import math

from .models import (
    ParkingConfig, ParkingSpace, RateType, VehicleType
)


# ============================================================================
# STRATEGY INTERFACES
# ============================================================================

class PricingStrategy(ABC):
    """
    Abstract base class for pricing strategies
    Defines the interface for fee calculation algorithms
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def calculate_fee(
        self,
        minutes: int,
        vehicle_type: VehicleType,
        config: ParkingConfig,
        convenio: bool = False
    ) -> int:
        """
        Calculate the charge for a stay
        Returns: Non-negative whole amount in the configured currency
        """
        pass

    def get_strategy_name(self) -> str:
        """Get human-readable strategy name"""
        return self.__class__.__name__.replace("PricingStrategy", "")

    def __str__(self) -> str:
        return f"{self.get_strategy_name()} Pricing"


class AllocationStrategy(ABC):
    """
    Abstract base class for allocation strategies
    Defines how a free space is picked from the pool
    """

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def select_space(
        self,
        vehicle_type: VehicleType,
        spaces: Sequence[ParkingSpace]
    ) -> Optional[ParkingSpace]:
        """
        Pick a space for a vehicle of the given type
        Returns: ParkingSpace if one is available, None otherwise
        """
        pass

    def get_strategy_name(self) -> str:
        return self.__class__.__name__.replace("AllocationStrategy", "")


# ============================================================================
# PRICING STRATEGIES
# ============================================================================

class HourlyPricingStrategy(PricingStrategy):
    """
    Hourly billing with a grace window after each hour boundary.

    billable_hours = max(1, ceil((minutes - grace) / 60)); a convenio removes
    one billable hour, floored at config.convenio_minimum_hours.
    """

    def billable_hours(
        self,
        minutes: int,
        config: ParkingConfig,
        convenio: bool = False
    ) -> int:
        grace = config.effective_grace_period
        hours = max(1, math.ceil((minutes - grace) / 60))
        if convenio:
            hours = max(config.convenio_minimum_hours, hours - 1)
        return hours

    def calculate_fee(
        self,
        minutes: int,
        vehicle_type: VehicleType,
        config: ParkingConfig,
        convenio: bool = False
    ) -> int:
        hours = self.billable_hours(minutes, config, convenio)
        amount = hours * config.hourly_rate(vehicle_type)
        self.logger.debug(
            f"{vehicle_type.value}: {minutes} min -> {hours} h = {amount} (convenio={convenio})"
        )
        return amount


class FlatRatePricingStrategy(PricingStrategy):
    """Flat plan: fixed amount; a convenio subtracts one hourly rate, floored at 0"""

    def __init__(self, rate_type: RateType):
        super().__init__()
        if not rate_type.is_flat:
            raise ValueError(f"{rate_type.value} is not a flat rate plan")
        self.rate_type = rate_type

    def calculate_fee(
        self,
        minutes: int,
        vehicle_type: VehicleType,
        config: ParkingConfig,
        convenio: bool = False
    ) -> int:
        flat = config.rate_for(vehicle_type, self.rate_type.value)
        if convenio:
            return max(0, flat - config.hourly_rate(vehicle_type))
        return flat

    def get_strategy_name(self) -> str:
        return f"Flat({self.rate_type.value})"


# ============================================================================
# ALLOCATION STRATEGIES
# ============================================================================

class FirstFreeAllocationStrategy(AllocationStrategy):
    """First free space of the type in pool order (deterministic, not load-balanced)"""

    def select_space(
        self,
        vehicle_type: VehicleType,
        spaces: Sequence[ParkingSpace]
    ) -> Optional[ParkingSpace]:
        for space in spaces:
            if space.space_type == vehicle_type and space.is_free:
                return space
        return None


# ============================================================================
# STRATEGY FACTORIES
# ============================================================================

class PricingStrategyFactory:
    """Factory for the pricing strategy of each rate plan"""

    _strategies: Dict[RateType, PricingStrategy] = {}

    @classmethod
    def get_strategy(cls, rate_type: RateType) -> PricingStrategy:
        strategy = cls._strategies.get(rate_type)
        if strategy is None:
            if rate_type == RateType.HOUR:
                strategy = HourlyPricingStrategy()
            else:
                strategy = FlatRatePricingStrategy(rate_type)
            cls._strategies[rate_type] = strategy
        return strategy


class AllocationStrategyFactory:
    """Factory for allocation strategies"""

    _registry = {
        "first_free": FirstFreeAllocationStrategy,
    }

    @classmethod
    def create(cls, name: str = "first_free") -> AllocationStrategy:
        strategy_class = cls._registry.get(name)
        if strategy_class is None:
            raise ValueError(f"Unknown allocation strategy: {name}")
        return strategy_class()

    @classmethod
    def register(cls, name: str, strategy_class: type) -> None:
        cls._registry[name] = strategy_class

    @classmethod
    def unregister(cls, name: str) -> None:
        if name == "first_free":
            raise ValueError("The default allocation strategy cannot be removed")
        cls._registry.pop(name, None)
