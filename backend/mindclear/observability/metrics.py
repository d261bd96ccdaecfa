"""Lightweight metrics helpers."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from time import perf_counter
from typing import Any, Dict, Iterator, Optional

from mindclear.observability.client import get_opik_client

logger = logging.getLogger(__name__)


def log_metric(name: str, value: float | int, metadata: Optional[Dict[str, Any]] = None) -> None:
    """Record a metric as a short-lived Opik trace if tracing is enabled."""
    client = get_opik_client()
    if not client:
        return

    payload: Dict[str, Any] = {"value": value}
    if metadata:
        payload.update(metadata)

    try:
        metric_trace = client.trace(name=f"metric:{name}", metadata=payload)
        metric_trace.end()
    except Exception as exc:  # pragma: no cover - third party guard
        logger.debug("Unable to record metric %s: %s", name, exc)


@contextmanager
def timed_metric(name: str, metadata: Optional[Dict[str, Any]] = None) -> Iterator[None]:
    """Log the wall time of the wrapped block in milliseconds, success or not."""
    started = perf_counter()
    try:
        yield
    finally:
        log_metric(name, (perf_counter() - started) * 1000, metadata=metadata)
