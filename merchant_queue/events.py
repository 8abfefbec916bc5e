"""Order lifecycle event sinks.

The queue publishes `order_enqueued` / `order_completed` events so other
services (notifications, dashboards) can follow the queue without polling.
Delivery is best-effort (MQTT QoS 0); nothing in the queue depends on it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from .models import OrderEntry

if TYPE_CHECKING:
    from datetime import timedelta

    from .mqtt_client import MqttClient


class OrderEvents(ABC):
    @abstractmethod
    def order_enqueued(self, entry: OrderEntry) -> None: ...

    @abstractmethod
    def order_completed(self, entry: OrderEntry, elapsed: timedelta) -> None: ...


class NoopOrderEvents(OrderEvents):
    def order_enqueued(self, entry: OrderEntry) -> None:  # pragma: no cover
        pass

    def order_completed(self, entry: OrderEntry, elapsed: timedelta) -> None:  # pragma: no cover
        pass


class MqttOrderEvents(OrderEvents):
    def __init__(self, *, mqtt: MqttClient, namespace: str) -> None:
        from .mqtt_topics import order_events

        self.mqtt = mqtt
        self.topic = order_events(namespace)

    def order_enqueued(self, entry: OrderEntry) -> None:
        self.mqtt.publish(self.topic, {"type": "order_enqueued", "order": entry.to_dict()})

    def order_completed(self, entry: OrderEntry, elapsed: timedelta) -> None:
        self.mqtt.publish(
            self.topic,
            {"type": "order_completed", "order": entry.to_dict(), "elapsed_seconds": elapsed.total_seconds()},
        )
