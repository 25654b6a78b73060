#!/usr/bin/env python3
"""
Unit tests for the in-process event bus.
"""

import json
import unittest
import sys
from pathlib import Path
from unittest.mock import Mock

sys.path.append(str(Path(__file__).resolve().parents[2]))

from parksystem.infrastructure.messaging import (
    Alert, AlertLevel, AlertLogHandler, CallbackHandler, DomainEvent,
    EventBus, EventRecorder, EventType
)


class TestEventBus(unittest.TestCase):

    def setUp(self):
        self.bus = EventBus()
        self.recorder = EventRecorder()

    def test_publish_reaches_subscribers_of_type(self):
        self.bus.subscribe(EventType.VEHICLE_ENTERED, self.recorder)

        self.bus.publish(DomainEvent(EventType.VEHICLE_ENTERED, {"plate": "ABC123"}, "v1"))
        self.bus.publish(DomainEvent(EventType.VEHICLE_EXITED, {"plate": "ABC123"}, "v1"))

        self.assertEqual(len(self.recorder.events), 1)
        self.assertEqual(self.recorder.events[0].data["plate"], "ABC123")

    def test_subscribe_twice_delivers_once(self):
        self.bus.subscribe(EventType.ALERT, self.recorder)
        self.bus.subscribe(EventType.ALERT, self.recorder)
        self.bus.publish(Alert.create(AlertLevel.INFO, "hola"))
        self.assertEqual(len(self.recorder.events), 1)

    def test_unsubscribe(self):
        self.bus.subscribe(EventType.ALERT, self.recorder)
        self.bus.unsubscribe(EventType.ALERT, self.recorder)
        self.bus.publish(Alert.create(AlertLevel.INFO, "hola"))
        self.assertEqual(self.recorder.events, [])

    def test_failing_handler_does_not_break_publish(self):
        failing = CallbackHandler(Mock(side_effect=RuntimeError("boom")))
        self.bus.subscribe(EventType.SPACE_CHANGED, failing)
        self.bus.subscribe(EventType.SPACE_CHANGED, self.recorder)

        with self.assertLogs("EventBus", level="ERROR"):
            self.bus.publish(DomainEvent(EventType.SPACE_CHANGED))

        self.assertEqual(len(self.recorder.events), 1)

    def test_subscribe_all_and_of_type(self):
        self.bus.subscribe_all(self.recorder)
        self.bus.publish(DomainEvent(EventType.CONFIG_UPDATED))
        self.bus.publish(Alert.create(AlertLevel.SUCCESS, "ok"))
        self.assertEqual(len(self.recorder.of_type(EventType.ALERT)), 1)
        self.assertEqual(len(self.recorder.of_type(EventType.CONFIG_UPDATED)), 1)

    def test_clear_subscribers(self):
        self.bus.subscribe_all(self.recorder)
        self.bus.clear_subscribers()
        self.bus.publish(DomainEvent(EventType.CONFIG_UPDATED))
        self.assertEqual(self.recorder.events, [])


class TestMessages(unittest.TestCase):

    def test_event_serialization(self):
        event = DomainEvent(EventType.VEHICLE_EXITED, {"amount": 10000}, "v1")
        data = json.loads(event.to_json())
        self.assertEqual(data["event_type"], "vehicle.exited")
        self.assertEqual(data["aggregate_id"], "v1")
        self.assertEqual(data["data"], {"amount": 10000})
        self.assertEqual(data["message_id"], str(event.message_id))

    def test_alert_defaults(self):
        alert = Alert.create(AlertLevel.ERROR, "Sin espacios", plate="ABC123")
        self.assertEqual(alert.event_type, EventType.ALERT)
        self.assertEqual(alert.level, AlertLevel.ERROR)
        self.assertEqual(alert.data, {"plate": "ABC123"})

    def test_alert_log_handler(self):
        handler = AlertLogHandler()
        self.assertFalse(handler.can_handle(DomainEvent(EventType.ALERT)))
        with self.assertLogs("AlertLogHandler", level="WARNING") as logs:
            handler.handle(Alert.create(AlertLevel.ERROR, "Sin espacios"))
        self.assertIn("[error] Sin espacios", logs.output[0])


if __name__ == '__main__':
    unittest.main(verbosity=2)
