import os
import random
import sys
import time
from typing import Any, Final

import orjson as json
from loguru import logger

from subtitle_timing_pipeline.constants import DEFAULT_LOG_LEVEL

_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})

_PLAIN_FORMAT: Final[str] = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
_SERVICE_FORMAT: Final[str] = (
    "<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<blue>{extra[service]}</blue> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def setup_logging(
    *, service: str | None = None, level: str | None = None, json_logs: bool | None = None
) -> None:
    """Configure Loguru logger based on environment variables.

    Args:
        service: Optional service name to include in log context.
        level: Log level; ``LOG_LEVEL`` is used when omitted.
        json_logs: Force JSON serialization on or off; ``LOG_JSON`` decides
            when omitted, defaulting to JSON inside containers.
    """
    logger.remove()

    level_value: str = (level or os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL)).upper()

    if json_logs is None:
        is_container = os.getenv("ECS_CONTAINER_METADATA_URI") is not None
        json_env: str = os.getenv("LOG_JSON", "true" if is_container else "false")
        json_logs = json_env.lower() in _TRUTHY

    # Logs go to stderr so that CLI output on stdout stays parseable.
    if json_logs:
        logger.add(sys.stderr, level=level_value, serialize=True)
    else:
        fmt = _SERVICE_FORMAT if service else _PLAIN_FORMAT
        logger.add(sys.stderr, level=level_value, format=fmt, colorize=True)

    if service:
        logger.configure(extra={"service": service})


def _get_sampling_rate(env_name: str, default: float) -> float:
    try:
        value = float(os.getenv(env_name, str(default)))
    except ValueError:
        return default
    if not (0.0 <= value <= 1.0):
        return default
    return value


def emit_emf_metric(
    *,
    namespace: str,
    metrics: dict[str, float],
    dimensions: dict[str, str] | None = None,
    timestamp_ms: int | None = None,
) -> dict[str, Any] | None:
    """Emit a CloudWatch Embedded Metric Format record through the logger.

    Args:
        namespace: Metrics namespace.
        metrics: Map of metric name to float value.
        dimensions: Optional dimensions key-value map.
        timestamp_ms: Optional epoch ms; default now.

    Returns:
        The emitted payload, or None when the record was sampled out.
    """
    sampling_rate: float = _get_sampling_rate("EMF_SAMPLING_RATE", 1.0)
    if sampling_rate < 1.0 and random.random() > sampling_rate:
        return None

    ts: int = timestamp_ms or int(time.time() * 1000)
    dims = dimensions or {}

    emf: dict[str, Any] = {
        "_aws": {
            "Timestamp": ts,
            "CloudWatchMetrics": [
                {
                    "Namespace": namespace,
                    "Dimensions": [list(dims.keys())] if dims else [[]],
                    "Metrics": [{"Name": k, "Unit": "None"} for k in metrics.keys()],
                }
            ],
        }
    }

    payload: dict[str, Any] = {**emf, **metrics, **dims}
    logger.info(json.dumps(payload).decode("utf-8"))
    return payload
