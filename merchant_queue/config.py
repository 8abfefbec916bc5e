from __future__ import annotations

# Runtime settings.
#
# Every constant that is part of the observable contract lives here so the
# estimator and the queue agree on them. Defaults match the data already
# stored by the previous system; override them via environment variables
# (MERCHANT_QUEUE_*) or CLI flags.

import os
from dataclasses import dataclass
from datetime import timedelta


@dataclass(frozen=True)
class QueueSettings:
    # Retention windows
    partition_ttl: timedelta = timedelta(hours=48)
    stats_ttl: timedelta = timedelta(days=30)

    # Estimation model
    min_sample_orders: int = 5
    base_process_time: timedelta = timedelta(minutes=2)
    default_item_time: timedelta = timedelta(minutes=1)
    new_order_buffer: float = 1.2

    # Day partitions are cut in this zone
    timezone: str = "Asia/Shanghai"

    # Store
    redis_url: str = "redis://127.0.0.1:6379/0"
    redis_timeout: float = 2.0

    # MQTT surface
    mqtt_host: str = "127.0.0.1"
    mqtt_port: int = 1883
    namespace: str = "merchant-queue/v0"


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


def load_settings() -> QueueSettings:
    d = QueueSettings()
    return QueueSettings(
        partition_ttl=timedelta(seconds=_int_env("MERCHANT_QUEUE_PARTITION_TTL_SEC", int(d.partition_ttl.total_seconds()))),
        stats_ttl=timedelta(seconds=_int_env("MERCHANT_QUEUE_STATS_TTL_SEC", int(d.stats_ttl.total_seconds()))),
        min_sample_orders=_int_env("MERCHANT_QUEUE_MIN_SAMPLE", d.min_sample_orders),
        base_process_time=timedelta(
            seconds=_float_env("MERCHANT_QUEUE_BASE_SECONDS", d.base_process_time.total_seconds())
        ),
        default_item_time=timedelta(
            seconds=_float_env("MERCHANT_QUEUE_ITEM_SECONDS", d.default_item_time.total_seconds())
        ),
        new_order_buffer=_float_env("MERCHANT_QUEUE_BUFFER", d.new_order_buffer),
        timezone=os.getenv("MERCHANT_QUEUE_TZ", d.timezone),
        redis_url=os.getenv("MERCHANT_QUEUE_REDIS_URL", d.redis_url),
        redis_timeout=_float_env("MERCHANT_QUEUE_REDIS_TIMEOUT", d.redis_timeout),
        mqtt_host=os.getenv("MERCHANT_QUEUE_MQTT_HOST", d.mqtt_host),
        mqtt_port=_int_env("MERCHANT_QUEUE_MQTT_PORT", d.mqtt_port),
        namespace=os.getenv("MERCHANT_QUEUE_NAMESPACE", d.namespace),
    )
