import subprocess
import sys

import pytest

from merchant_queue.app import build_parser, request_message


def test_app_help_runs():
    proc = subprocess.run(
        [sys.executable, "-m", "merchant_queue.app", "-h"],
        capture_output=True,
        text=True,
        check=False,
    )
    assert proc.returncode == 0
    out = proc.stdout + proc.stderr
    assert "main entrypoint" in out
    assert "serve" in out
    assert "enqueue" in out


def test_serve_help_runs():
    proc = subprocess.run(
        [sys.executable, "-m", "merchant_queue.app", "serve", "-h"],
        capture_output=True,
        text=True,
        check=False,
    )
    assert proc.returncode == 0
    out = proc.stdout + proc.stderr
    assert "--redis-url" in out
    assert "--store" in out


@pytest.mark.parametrize(
    "argv, expected",
    [
        (
            ["enqueue", "--merchant", "M1", "--order", "A", "--items", "3"],
            {"type": "enqueue_order", "merchant_id": "M1", "order_id": "A", "item_count": 3},
        ),
        (["position", "--order", "A"], {"type": "order_position", "order_id": "A"}),
        (["complete", "--order", "A"], {"type": "complete_order", "order_id": "A"}),
        (["status", "--merchant", "M1"], {"type": "merchant_status", "merchant_id": "M1"}),
        (
            ["status", "--merchant", "M1", "--new-order-items", "2"],
            {"type": "merchant_status", "merchant_id": "M1", "new_order_items": 2},
        ),
    ],
)
def test_request_messages(argv, expected):
    assert request_message(build_parser().parse_args(argv)) == expected
