import threading

import pytest

from merchant_queue.deadline import Deadline, check
from merchant_queue.errors import OperationCancelled


def test_no_deadline_never_expires():
    d = Deadline()
    d.check()
    assert d.remaining() is None
    check(None)


def test_cancel_event():
    event = threading.Event()
    d = Deadline(cancel_event=event)
    d.check()
    event.set()
    with pytest.raises(OperationCancelled):
        d.check()


def test_timeout():
    now = [100.0]
    d = Deadline(2.0, clock=lambda: now[0])
    assert d.remaining() == 2.0
    now[0] = 102.0
    assert d.remaining() == 0.0
    with pytest.raises(OperationCancelled):
        d.check()


def test_cancelled_is_a_timeout_error():
    d = Deadline()
    d.cancel()
    with pytest.raises(TimeoutError):
        d.check()


def test_negative_timeout_rejected():
    with pytest.raises(ValueError):
        Deadline(-1)
