"""MQTT topic helpers.

We keep topic construction in one place so the service and its clients agree
on naming.

Topic layout under a configurable namespace (default: `merchant-queue/v0`):

Request/response:
- `<ns>/queue/requests`
- `<ns>/queue/responses/<client_id>`

Streaming/broadcast:
- `<ns>/orders/events`
    Order lifecycle events (`order_enqueued`, `order_completed`).
- `<ns>/status/updates`
    Periodic queue depth snapshots.
"""

from __future__ import annotations

DEFAULT_NAMESPACE = "merchant-queue/v0"


def queue_requests(namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/queue/requests"


def queue_responses(client_id: str, namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/queue/responses/{client_id}"


def order_events(namespace: str = DEFAULT_NAMESPACE) -> str:
    return f"{namespace}/orders/events"


def status_updates(namespace: str = DEFAULT_NAMESPACE) -> str:
    """Broadcast queue depth snapshots for observers."""
    return f"{namespace}/status/updates"
