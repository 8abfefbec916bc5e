from __future__ import annotations

# Queue client.
#
# A client is short-lived:
# - connect to broker
# - publish one request to the queue service
# - wait for the correlated reply
# - return it and disconnect

import time
from typing import Any

from .mqtt_client import MqttClient
from .mqtt_topics import queue_requests


def queue_request(
    *,
    mqtt_host: str,
    mqtt_port: int,
    namespace: str,
    message: dict[str, Any],
    timeout: float = 5.0,
) -> dict[str, Any]:
    # Unique client id so several clients can run concurrently.
    client_id = f"client-{message.get('type', 'request')}-{int(time.time() * 1000)}"
    with MqttClient(client_id=client_id, host=mqtt_host, port=mqtt_port, namespace=namespace) as mqtt:
        return mqtt.request(queue_requests(namespace), message, timeout=timeout)


def describe(resp: dict[str, Any]) -> str:
    """One-line human summary of a service reply."""
    rtype = resp.get("type")
    if rtype == "error":
        return f"error [{resp.get('code')}]: {resp.get('message')}"
    if rtype == "order_enqueued":
        order = resp["order"]
        return f"order {order['order_id']} queued for merchant {order['merchant_id']} ({order['item_count']} items)"
    if rtype == "order_position":
        return (
            f"order {resp['order']['order_id']} at position {resp['position']}, "
            f"estimated wait {_minutes(resp['estimated_wait_seconds'])}"
        )
    if rtype == "order_completed":
        return f"order {resp['order']['order_id']} completed after {_minutes(resp['elapsed_seconds'])}"
    if rtype == "merchant_status":
        line = f"merchant {resp['merchant_id']}: {resp['order_count']} orders, {resp['total_items']} items queued"
        if "estimated_wait_seconds" in resp:
            line += f", new order wait {_minutes(resp['estimated_wait_seconds'])}"
        return line
    return str(resp)


def _minutes(seconds: float) -> str:
    return f"{seconds / 60:.1f} min"
