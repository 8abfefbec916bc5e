"""JSON messaging over MQTT for the queue service and its clients.

Built on paho-mqtt. Two things sit on top of the raw callbacks:

- routing: `subscribe(topic_filter, handler)` binds a handler to a filter
  (wildcards allowed) and each incoming JSON object goes to the handlers whose
  filter matches its topic.
- replies: every client owns an inbox topic `<ns>/queue/responses/<client_id>`.
  `request()` stamps the outgoing message with a fresh `corr_id` and the inbox
  as `reply_to`, then blocks until the matching reply lands or the timeout
  passes.

Subscriptions are remembered and replayed on reconnect since the session is
not persistent.
"""

from __future__ import annotations

import json
import logging
import threading
import uuid
from typing import Any, Callable

import paho.mqtt.client as mqtt

from .mqtt_topics import DEFAULT_NAMESPACE, queue_responses

log = logging.getLogger(__name__)

MessageHandler = Callable[[str, dict[str, Any]], None]


class _Reply:
    """Slot for the single reply a request is waiting on."""

    def __init__(self) -> None:
        self._arrived = threading.Event()
        self.message: dict[str, Any] | None = None

    def deliver(self, message: dict[str, Any]) -> bool:
        if self._arrived.is_set():
            return False
        self.message = message
        self._arrived.set()
        return True

    def wait(self, timeout: float) -> dict[str, Any] | None:
        return self.message if self._arrived.wait(timeout) else None


class MqttClient:
    def __init__(
        self,
        *,
        client_id: str,
        host: str,
        port: int,
        namespace: str = DEFAULT_NAMESPACE,
        keepalive: int = 30,
        qos: int = 0,
    ) -> None:
        self.client_id = client_id
        self.host = host
        self.port = port
        self.keepalive = keepalive
        self.qos = qos
        self.inbox = queue_responses(client_id, namespace)

        self._client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id, clean_session=True)
        self._client.on_connect = self._on_connect
        self._client.on_message = self._on_message

        self._lock = threading.Lock()
        self._routes: dict[str, list[MessageHandler]] = {self.inbox: []}
        self._waiting: dict[str, _Reply] = {}
        self._connected = False
        # set once the inbox subscription has been sent after CONNACK
        self._ready = threading.Event()

    def start(self) -> None:
        """Connect and run the network loop in a background thread."""
        if self._connected:
            return
        self._client.connect(self.host, self.port, keepalive=self.keepalive)
        self._client.loop_start()
        self._connected = True

    def stop(self) -> None:
        if not self._connected:
            return
        self._client.loop_stop()
        self._client.disconnect()
        self._ready.clear()
        self._connected = False

    def __enter__(self) -> "MqttClient":
        self.start()
        return self

    def __exit__(self, *exc: object) -> None:
        self.stop()

    def subscribe(self, topic_filter: str, handler: MessageHandler | None = None) -> None:
        with self._lock:
            handlers = self._routes.setdefault(topic_filter, [])
            if handler is not None:
                handlers.append(handler)
        self._client.subscribe(topic_filter, qos=self.qos)

    def publish(self, topic: str, message: dict[str, Any]) -> None:
        body = json.dumps(message, separators=(",", ":"))
        self._client.publish(topic, payload=body.encode("utf-8"), qos=self.qos)

    def request(self, topic: str, message: dict[str, Any], *, timeout: float = 5.0) -> dict[str, Any]:
        """Send `message` to `topic` and return the reply addressed to our inbox."""
        if not self._ready.wait(timeout):
            raise TimeoutError(f"not connected to MQTT {self.host}:{self.port} within {timeout:.1f}s")
        corr_id = uuid.uuid4().hex
        reply = _Reply()
        with self._lock:
            self._waiting[corr_id] = reply
        try:
            self.publish(topic, {**message, "corr_id": corr_id, "reply_to": self.inbox})
            answer = reply.wait(timeout)
        finally:
            with self._lock:
                self._waiting.pop(corr_id, None)
        if answer is None:
            raise TimeoutError(f"{message.get('type', 'request')} got no reply within {timeout:.1f}s")
        return answer

    # -------------------- paho callbacks --------------------

    def _on_connect(self, client: mqtt.Client, userdata: Any, flags: Any, reason_code: Any, properties: Any) -> None:
        if reason_code.is_failure:
            log.error("MQTT connect to %s:%s refused: %s", self.host, self.port, reason_code)
            return
        with self._lock:
            filters = list(self._routes)
        client.subscribe([(f, self.qos) for f in filters])
        self._ready.set()

    def _on_message(self, client: mqtt.Client, userdata: Any, msg: mqtt.MQTTMessage) -> None:
        data = _decode(msg)
        if data is None:
            return

        if msg.topic == self.inbox:
            self._deliver_reply(data)
            return

        with self._lock:
            handlers = [h for f, hs in self._routes.items() if mqtt.topic_matches_sub(f, msg.topic) for h in hs]
        for handler in handlers:
            try:
                handler(msg.topic, data)
            except Exception:
                # One failing handler must not stop the network loop.
                log.exception("handler %r failed on %s", handler, msg.topic)

    def _deliver_reply(self, data: dict[str, Any]) -> None:
        corr_id = data.get("corr_id")
        with self._lock:
            reply = self._waiting.get(corr_id) if isinstance(corr_id, str) else None
        if reply is None:
            log.debug("reply for unknown or expired corr_id=%r", corr_id)
        elif not reply.deliver(data):
            log.debug("duplicate reply for corr_id=%s", corr_id)


def _decode(msg: mqtt.MQTTMessage) -> dict[str, Any] | None:
    try:
        data = json.loads(msg.payload)
    except (UnicodeDecodeError, ValueError):
        log.warning("dropping non-JSON payload on %s", msg.topic)
        return None
    if not isinstance(data, dict):
        log.warning("dropping non-object payload on %s", msg.topic)
        return None
    return data
