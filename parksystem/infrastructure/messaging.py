# File: parksystem/infrastructure/messaging.py
"""
Messaging Infrastructure for ParkSystem

In-process publish/subscribe used by the application service to announce
state transitions (entries, exits, space changes, subscription payments,
configuration updates) and operator alerts.

Key Patterns:
- Publish/Subscribe
- Handler isolation: a failing handler is logged and never breaks the
  operation that published the event
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional
import json
import logging
from uuid import UUID, uuid4


# ============================================================================
# MESSAGE TYPES
# ============================================================================

class EventType(str, Enum):
    VEHICLE_ENTERED = "vehicle.entered"
    VEHICLE_EXITED = "vehicle.exited"
    SPACE_CHANGED = "space.changed"
    SUBSCRIPTION_CHANGED = "subscription.changed"
    SUBSCRIPTION_PAID = "subscription.paid"
    CONFIG_UPDATED = "config.updated"
    ALERT = "alert"


class AlertLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


# ============================================================================
# MESSAGE BASE CLASSES
# ============================================================================

@dataclass
class DomainEvent:
    """Domain event message"""
    event_type: EventType
    data: Dict[str, Any] = field(default_factory=dict)
    aggregate_id: Optional[str] = None
    message_id: UUID = field(default_factory=uuid4)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert event to dictionary"""
        data = asdict(self)
        data['event_type'] = self.event_type.value
        data['message_id'] = str(self.message_id)
        data['timestamp'] = self.timestamp.isoformat()
        return data

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


@dataclass
class Alert(DomainEvent):
    """Operator-facing notification"""
    event_type: EventType = EventType.ALERT
    level: AlertLevel = AlertLevel.INFO
    message: str = ""

    @classmethod
    def create(cls, level: AlertLevel, message: str, **data) -> 'Alert':
        return cls(level=level, message=message, data=data)


# ============================================================================
# EVENT HANDLERS
# ============================================================================

class EventHandler(ABC):
    """Abstract base class for event handlers"""

    @abstractmethod
    def handle(self, event: DomainEvent) -> None:
        """Handle a domain event"""
        pass

    def can_handle(self, event: DomainEvent) -> bool:
        """Check if this handler can handle the event"""
        return True


class CallbackHandler(EventHandler):
    """Adapts a plain callable into an EventHandler"""

    def __init__(self, callback: Callable[[DomainEvent], None]):
        self.callback = callback

    def handle(self, event: DomainEvent) -> None:
        self.callback(event)


class AlertLogHandler(EventHandler):
    """Writes alerts to the application log"""

    _LEVELS = {
        AlertLevel.SUCCESS: logging.INFO,
        AlertLevel.INFO: logging.INFO,
        AlertLevel.ERROR: logging.WARNING,
    }

    def __init__(self):
        self._logger = logging.getLogger(self.__class__.__name__)

    def can_handle(self, event: DomainEvent) -> bool:
        return isinstance(event, Alert)

    def handle(self, event: Alert) -> None:
        self._logger.log(self._LEVELS[event.level], f"[{event.level.value}] {event.message}")


class EventRecorder(EventHandler):
    """Keeps every event it receives (diagnostics and tests)"""

    def __init__(self):
        self.events: List[DomainEvent] = []

    def handle(self, event: DomainEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: EventType) -> List[DomainEvent]:
        return [e for e in self.events if e.event_type == event_type]


# ============================================================================
# EVENT BUS (In-memory)
# ============================================================================

class EventBus:
    """
    In-memory event bus for intra-process event publishing

    Handlers run synchronously in subscription order. Errors raised by a
    handler are logged and swallowed.
    """

    def __init__(self):
        self._subscribers: Dict[EventType, List[EventHandler]] = {}
        self._logger = logging.getLogger(self.__class__.__name__)

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Subscribe to events of a specific type"""
        if event_type not in self._subscribers:
            self._subscribers[event_type] = []

        if handler not in self._subscribers[event_type]:
            self._subscribers[event_type].append(handler)
            self._logger.debug(f"Subscribed {handler.__class__.__name__} to {event_type.value}")

    def subscribe_all(self, handler: EventHandler) -> None:
        for event_type in EventType:
            self.subscribe(event_type, handler)

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """Unsubscribe handler from events"""
        handlers = self._subscribers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)
            self._logger.debug(f"Unsubscribed {handler.__class__.__name__} from {event_type.value}")

    def publish(self, event: DomainEvent) -> None:
        """Publish an event to all subscribers"""
        self._logger.debug(f"Publishing event: {event.event_type.value} (ID: {event.message_id})")

        for handler in list(self._subscribers.get(event.event_type, [])):
            if not handler.can_handle(event):
                continue
            try:
                handler.handle(event)
            except Exception as e:
                self._logger.error(
                    f"Error handling event {event.event_type.value} with {handler.__class__.__name__}: {e}"
                )

    def clear_subscribers(self) -> None:
        """Clear all subscribers (for testing)"""
        self._subscribers.clear()
