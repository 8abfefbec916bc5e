from __future__ import annotations

# The queue facade and its MQTT surface.
#
# This file contains two layers:
# 1) `QueueSystem` (composition of OrderQueue + Estimator, easy to unit test)
# 2) `MqttQueueService` + `main()` (integration with an MQTT broker)
#
# QueueSystem holds no state of its own: the partition belongs to OrderQueue
# and merchant statistics belong to Estimator.

import argparse
import logging
import threading
import time
from typing import Any, TYPE_CHECKING

from .config import QueueSettings, load_settings
from .deadline import Deadline
from .errors import ErrorResponse, InvalidOrder, QueueError
from .estimator import Estimator
from .events import NoopOrderEvents, OrderEvents
from .models import Completion, OrderEntry, PositionEstimate, QueueStatus, StatusEstimate
from .ordered_queue import OrderQueue
from .store import QueueStore

if TYPE_CHECKING:
    from .mqtt_client import MqttClient

log = logging.getLogger(__name__)


class QueueSystem:
    """Order lifecycle (enqueue, locate, complete) plus merchant status."""

    def __init__(self, queue: OrderQueue, estimator: Estimator, *, events: OrderEvents | None = None) -> None:
        self.queue = queue
        self.estimator = estimator
        self.events = events or NoopOrderEvents()

    @classmethod
    def from_store(
        cls,
        store: QueueStore,
        settings: QueueSettings | None = None,
        *,
        events: OrderEvents | None = None,
    ) -> "QueueSystem":
        settings = settings or QueueSettings()
        return cls(OrderQueue(store, settings), Estimator(store, settings), events=events)

    # -------------------- order lifecycle --------------------

    def enqueue_order(self, entry: OrderEntry, *, deadline: Deadline | None = None) -> OrderEntry:
        stored = self.queue.enqueue(entry, deadline=deadline)
        self.events.order_enqueued(stored)
        return stored

    def get_order_position(self, order_id: str, *, deadline: Deadline | None = None) -> PositionEstimate:
        located = self.queue.locate(order_id, deadline=deadline)
        wait = self.estimator.estimate_wait(
            located.entry.merchant_id,
            located.preceding_items,
            located.preceding_orders,
            deadline=deadline,
        )
        return PositionEstimate(position=located.position, estimated_wait=wait, entry=located.entry)

    def complete_order(self, order_id: str, *, deadline: Deadline | None = None) -> Completion:
        """Remove a finished order and feed its duration into the estimator.

        Raises OrderNotFound when the order is gone, including when another
        caller removed it between the lookup and the removal. Statistics are
        only updated after a successful removal.
        """
        entry = self.queue.locate(order_id, deadline=deadline).entry
        self.queue.remove(order_id, deadline=deadline)

        if entry.enqueue_time is None:
            raise InvalidOrder(f"order {order_id} has no enqueue time")
        elapsed = self.queue.clock() - entry.enqueue_time
        self.estimator.record_completion(entry.merchant_id, entry.item_count, elapsed, deadline=deadline)
        self.events.order_completed(entry, elapsed)
        return Completion(entry=entry, elapsed=elapsed)

    # -------------------- merchant status --------------------

    def get_merchant_queue_status(self, merchant_id: str, *, deadline: Deadline | None = None) -> QueueStatus:
        return self.queue.merchant_snapshot(merchant_id, deadline=deadline)

    def get_merchant_queue_status_with_estimate(
        self,
        merchant_id: str,
        new_order_items: int,
        *,
        deadline: Deadline | None = None,
    ) -> StatusEstimate:
        status = self.queue.merchant_snapshot(merchant_id, deadline=deadline)
        wait = self.estimator.estimate_new_order_wait(
            merchant_id,
            status.total_items,
            status.order_count,
            new_order_items,
            deadline=deadline,
        )
        return StatusEstimate(order_count=status.order_count, total_items=status.total_items, estimated_wait=wait)


class BadRequest(ValueError):
    pass


def _str_field(msg: dict[str, Any], name: str) -> str:
    value = msg.get(name)
    if not isinstance(value, str) or not value:
        raise BadRequest(f"{name} required")
    return value


def _int_field(msg: dict[str, Any], name: str) -> int:
    value = msg.get(name)
    if isinstance(value, bool) or not isinstance(value, int):
        raise BadRequest(f"{name} must be an integer")
    return value


class MqttQueueService:
    """MQTT adapter around the QueueSystem facade."""

    def __init__(
        self,
        *,
        mqtt: MqttClient,
        system: QueueSystem,
        namespace: str = "merchant-queue/v0",
        request_timeout: float = 5.0,
    ) -> None:
        # Local imports so unit tests can import QueueSystem without paho-mqtt.
        from .mqtt_topics import queue_requests, status_updates

        self._queue_requests = queue_requests
        self._status_updates = status_updates

        self.mqtt = mqtt
        self.system = system
        self.namespace = namespace
        self.request_timeout = request_timeout

        self._stop_event = threading.Event()
        self._status_thread: threading.Thread | None = None

    def start(self, *, publish_status_every: float = 2.0) -> None:
        self.mqtt.subscribe(self._queue_requests(self.namespace), self._handle_message)

        self._status_thread = threading.Thread(
            target=self._status_publisher_loop,
            args=(publish_status_every,),
            daemon=True,
        )
        self._status_thread.start()

    def stop(self) -> None:
        """Stop background threads. Call before disconnecting MQTT."""
        self._stop_event.set()
        t = self._status_thread
        if t and t.is_alive():
            t.join(timeout=1.0)

    def _status_publisher_loop(self, interval: float) -> None:
        while not self._stop_event.is_set():
            try:
                depth = self.system.queue.depth(deadline=Deadline(self.request_timeout))
                self.mqtt.publish(
                    self._status_updates(self.namespace),
                    {
                        "type": "queue_depth",
                        "partition": self.system.queue.partition_key(),
                        "order_count": depth.order_count,
                        "total_items": depth.total_items,
                    },
                )
            except QueueError as e:
                log.warning("status snapshot failed: %s", e)
            self._stop_event.wait(interval)

    def _reply(self, reply_to: str, corr_id: str | None, message: dict[str, Any]) -> None:
        msg = dict(message)
        if corr_id is not None:
            msg["corr_id"] = corr_id
        self.mqtt.publish(reply_to, msg)

    def _handle_message(self, topic: str, msg: dict[str, Any]) -> None:
        corr_id = msg.get("corr_id") if isinstance(msg.get("corr_id"), str) else None
        reply_to = msg.get("reply_to") if isinstance(msg.get("reply_to"), str) else None
        if not reply_to:
            return

        try:
            response = self.dispatch(msg)
        except BadRequest as e:
            response = ErrorResponse("bad_request", str(e)).to_message()
        except QueueError as e:
            response = ErrorResponse.from_exception(e).to_message()
        self._reply(reply_to, corr_id, response)

    def dispatch(self, msg: dict[str, Any]) -> dict[str, Any]:
        """Run one request against the facade and build the reply payload."""
        mtype = msg.get("type")
        deadline = Deadline(self.request_timeout)

        if mtype == "enqueue_order":
            entry = OrderEntry(
                merchant_id=_str_field(msg, "merchant_id"),
                order_id=_str_field(msg, "order_id"),
                item_count=_int_field(msg, "item_count"),
            )
            stored = self.system.enqueue_order(entry, deadline=deadline)
            return {"type": "order_enqueued", "order": stored.to_dict()}

        if mtype == "order_position":
            pos = self.system.get_order_position(_str_field(msg, "order_id"), deadline=deadline)
            return {
                "type": "order_position",
                "position": pos.position,
                "estimated_wait_seconds": pos.estimated_wait.total_seconds(),
                "order": pos.entry.to_dict(),
            }

        if mtype == "complete_order":
            done = self.system.complete_order(_str_field(msg, "order_id"), deadline=deadline)
            return {
                "type": "order_completed",
                "order": done.entry.to_dict(),
                "elapsed_seconds": done.elapsed.total_seconds(),
            }

        if mtype == "merchant_status":
            merchant_id = _str_field(msg, "merchant_id")
            if msg.get("new_order_items") is None:
                status = self.system.get_merchant_queue_status(merchant_id, deadline=deadline)
                return {
                    "type": "merchant_status",
                    "merchant_id": merchant_id,
                    "order_count": status.order_count,
                    "total_items": status.total_items,
                }
            new_items = _int_field(msg, "new_order_items")
            if new_items < 0:
                raise BadRequest("new_order_items must be >= 0")
            est = self.system.get_merchant_queue_status_with_estimate(merchant_id, new_items, deadline=deadline)
            return {
                "type": "merchant_status",
                "merchant_id": merchant_id,
                "order_count": est.order_count,
                "total_items": est.total_items,
                "estimated_wait_seconds": est.estimated_wait.total_seconds(),
            }

        raise BadRequest(f"unknown request type {mtype!r}")


def main(argv: list[str] | None = None) -> None:
    # Import MQTT dependencies only when running the real service.
    from .events import MqttOrderEvents
    from .mqtt_client import MqttClient

    settings = load_settings()
    parser = argparse.ArgumentParser(description="Merchant queue service (MQTT)")
    parser.add_argument("--mqtt-host", default=settings.mqtt_host)
    parser.add_argument("--mqtt-port", type=int, default=settings.mqtt_port)
    parser.add_argument("--namespace", default=settings.namespace)
    parser.add_argument("--redis-url", default=settings.redis_url)
    parser.add_argument(
        "--store",
        choices=("redis", "memory"),
        default="redis",
        help="memory keeps state in this process only (demo / development)",
    )
    parser.add_argument(
        "--publish-status-every",
        type=float,
        default=2.0,
        help="seconds between queue depth broadcasts",
    )
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    if args.store == "memory":
        from .store import MemoryStore

        store: QueueStore = MemoryStore()
    else:
        from .redis_store import RedisStore

        store = RedisStore.from_url(args.redis_url, timeout=settings.redis_timeout)

    mqtt_client = MqttClient(client_id="merchant-queue", host=args.mqtt_host, port=args.mqtt_port, namespace=args.namespace)
    mqtt_client.start()

    events = MqttOrderEvents(mqtt=mqtt_client, namespace=args.namespace)
    system = QueueSystem.from_store(store, settings, events=events)
    service = MqttQueueService(mqtt=mqtt_client, system=system, namespace=args.namespace)
    service.start(publish_status_every=args.publish_status_every)

    print(f"[queue] connected to MQTT {args.mqtt_host}:{args.mqtt_port}, namespace={args.namespace}, store={args.store}")

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        service.stop()
        mqtt_client.stop()


if __name__ == "__main__":
    main()
