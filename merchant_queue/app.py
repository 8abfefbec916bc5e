from __future__ import annotations

# Single-entrypoint runner.
#
#   python -m merchant_queue.app serve [--store memory]
#   python -m merchant_queue.app enqueue --merchant M1 --order O1 --items 3
#   python -m merchant_queue.app position --order O1
#   python -m merchant_queue.app complete --order O1
#   python -m merchant_queue.app status --merchant M1 [--new-order-items 2]
#
# `serve` runs the queue service; the other subcommands send one request to a
# running service and print the reply.

import argparse
import json
import sys
from typing import Any

from .config import load_settings


def build_parser() -> argparse.ArgumentParser:
    settings = load_settings()
    parser = argparse.ArgumentParser(description="Merchant order queue (MQTT) - main entrypoint")
    sub = parser.add_subparsers(dest="cmd", required=True)

    def add_mqtt_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--mqtt-host", default=settings.mqtt_host)
        p.add_argument("--mqtt-port", type=int, default=settings.mqtt_port)
        p.add_argument("--namespace", default=settings.namespace)

    def add_client_args(p: argparse.ArgumentParser) -> None:
        add_mqtt_args(p)
        p.add_argument("--timeout", type=float, default=5.0)
        p.add_argument("--json", action="store_true", help="print the raw reply")

    p_serve = sub.add_parser("serve", help="Run the queue service")
    add_mqtt_args(p_serve)
    p_serve.add_argument("--redis-url", default=settings.redis_url)
    p_serve.add_argument("--store", choices=("redis", "memory"), default="redis")
    p_serve.add_argument("--publish-status-every", type=float, default=2.0)
    p_serve.add_argument("--log-level", default="INFO")

    p_enq = sub.add_parser("enqueue", help="Queue an order")
    add_client_args(p_enq)
    p_enq.add_argument("--merchant", required=True)
    p_enq.add_argument("--order", required=True)
    p_enq.add_argument("--items", type=int, required=True)

    p_pos = sub.add_parser("position", help="Position and estimated wait of a queued order")
    add_client_args(p_pos)
    p_pos.add_argument("--order", required=True)

    p_done = sub.add_parser("complete", help="Mark an order as processed")
    add_client_args(p_done)
    p_done.add_argument("--order", required=True)

    p_stat = sub.add_parser("status", help="Queue status of a merchant")
    add_client_args(p_stat)
    p_stat.add_argument("--merchant", required=True)
    p_stat.add_argument("--new-order-items", type=int, default=None, help="also estimate a new order's wait")

    return parser


def request_message(args: argparse.Namespace) -> dict[str, Any]:
    if args.cmd == "enqueue":
        return {"type": "enqueue_order", "merchant_id": args.merchant, "order_id": args.order, "item_count": args.items}
    if args.cmd == "position":
        return {"type": "order_position", "order_id": args.order}
    if args.cmd == "complete":
        return {"type": "complete_order", "order_id": args.order}
    if args.cmd == "status":
        msg: dict[str, Any] = {"type": "merchant_status", "merchant_id": args.merchant}
        if args.new_order_items is not None:
            msg["new_order_items"] = args.new_order_items
        return msg
    raise ValueError(f"not a client command: {args.cmd}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.cmd == "serve":
        from .manager import main as serve

        serve(
            [
                "--mqtt-host",
                args.mqtt_host,
                "--mqtt-port",
                str(args.mqtt_port),
                "--namespace",
                args.namespace,
                "--redis-url",
                args.redis_url,
                "--store",
                args.store,
                "--publish-status-every",
                str(args.publish_status_every),
                "--log-level",
                args.log_level,
            ]
        )
        return 0

    from .client import describe, queue_request

    try:
        resp = queue_request(
            mqtt_host=args.mqtt_host,
            mqtt_port=args.mqtt_port,
            namespace=args.namespace,
            message=request_message(args),
            timeout=args.timeout,
        )
    except TimeoutError as e:
        print(f"[client] {e}", file=sys.stderr)
        return 2

    print(json.dumps(resp, indent=2) if args.json else f"[client] {describe(resp)}")
    return 1 if resp.get("type") == "error" else 0


if __name__ == "__main__":
    sys.exit(main())
