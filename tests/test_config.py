from datetime import timedelta

from merchant_queue.config import QueueSettings, load_settings


def test_defaults():
    s = QueueSettings()
    assert s.partition_ttl == timedelta(hours=48)
    assert s.stats_ttl == timedelta(days=30)
    assert s.min_sample_orders == 5
    assert s.base_process_time == timedelta(minutes=2)
    assert s.default_item_time == timedelta(minutes=1)
    assert s.new_order_buffer == 1.2
    assert s.timezone == "Asia/Shanghai"


def test_load_settings_from_env(monkeypatch):
    monkeypatch.setenv("MERCHANT_QUEUE_MIN_SAMPLE", "10")
    monkeypatch.setenv("MERCHANT_QUEUE_ITEM_SECONDS", "30")
    monkeypatch.setenv("MERCHANT_QUEUE_TZ", "UTC")
    s = load_settings()
    assert s.min_sample_orders == 10
    assert s.default_item_time == timedelta(seconds=30)
    assert s.timezone == "UTC"


def test_bad_env_values_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("MERCHANT_QUEUE_MIN_SAMPLE", "many")
    monkeypatch.setenv("MERCHANT_QUEUE_BUFFER", "lots")
    s = load_settings()
    assert s.min_sample_orders == 5
    assert s.new_order_buffer == 1.2
