import json
import threading
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from merchant_queue.mqtt_client import MqttClient


def _message(topic, payload):
    raw = payload if isinstance(payload, bytes) else json.dumps(payload).encode("utf-8")
    return SimpleNamespace(topic=topic, payload=raw)


@pytest.fixture
def client():
    c = MqttClient(client_id="c1", host="127.0.0.1", port=1883, namespace="demo/v0")
    c._client = MagicMock()
    return c


def test_inbox_follows_namespace(client):
    assert client.inbox == "demo/v0/queue/responses/c1"


def test_handlers_are_routed_by_topic_filter(client):
    seen = []
    client.subscribe("demo/v0/queue/requests", lambda topic, msg: seen.append(("requests", msg["type"])))
    client.subscribe("demo/v0/orders/#", lambda topic, msg: seen.append(("orders", topic)))

    client._on_message(None, None, _message("demo/v0/queue/requests", {"type": "order_position"}))
    client._on_message(None, None, _message("demo/v0/orders/events", {"type": "order_enqueued"}))
    client._on_message(None, None, _message("demo/v0/status/updates", {"type": "queue_depth"}))

    assert seen == [("requests", "order_position"), ("orders", "demo/v0/orders/events")]


def test_failing_handler_does_not_block_others(client):
    seen = []

    def broken(topic, msg):
        raise RuntimeError("boom")

    client.subscribe("t", broken)
    client.subscribe("t", lambda topic, msg: seen.append(msg))
    client._on_message(None, None, _message("t", {"type": "x"}))
    assert seen == [{"type": "x"}]


def test_malformed_payloads_are_dropped(client):
    seen = []
    client.subscribe("t", lambda topic, msg: seen.append(msg))
    client._on_message(None, None, _message("t", b"not json"))
    client._on_message(None, None, _message("t", [1, 2]))
    assert seen == []


def test_request_returns_correlated_reply(client):
    client._ready.set()

    def answer(topic, payload, qos):
        sent = json.loads(payload)
        assert sent["reply_to"] == client.inbox
        reply = {"type": "order_position", "position": 3, "corr_id": sent["corr_id"]}
        threading.Thread(
            target=client._on_message, args=(None, None, _message(client.inbox, reply))
        ).start()

    client._client.publish.side_effect = answer
    resp = client.request("demo/v0/queue/requests", {"type": "order_position", "order_id": "A"}, timeout=2.0)
    assert resp["position"] == 3


def test_request_times_out_without_reply(client):
    client._ready.set()
    with pytest.raises(TimeoutError):
        client.request("demo/v0/queue/requests", {"type": "order_position"}, timeout=0.05)
    assert client._waiting == {}


def test_request_times_out_when_never_connected(client):
    with pytest.raises(TimeoutError):
        client.request("demo/v0/queue/requests", {"type": "order_position"}, timeout=0.05)
    client._client.publish.assert_not_called()


def test_connect_resubscribes_every_filter(client):
    client.subscribe("demo/v0/queue/requests", lambda topic, msg: None)
    client._client.reset_mock()

    client._on_connect(client._client, None, None, SimpleNamespace(is_failure=False), None)

    filters = client._client.subscribe.call_args.args[0]
    assert sorted(f for f, _qos in filters) == ["demo/v0/queue/requests", "demo/v0/queue/responses/c1"]
    assert client._ready.is_set()
