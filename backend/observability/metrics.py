"""
Latency metrics for the turn hand-off path.

One timed block emits one METRIC_TIMER event through observability.logger,
carrying the monotonic duration and whether the block raised. Nothing is
aggregated in-process.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Iterator

from observability import logger


@contextmanager
def timed(
    name: str,
    *,
    session_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> Iterator[None]:
    """
    Time the enclosed block and emit exactly one METRIC_TIMER event.

    outcome is "ok", or "error" when the block raised (the exception
    propagates). Cancellation counts as an error.

        with timed("transcription_latency", session_id=sid):
            text = await transcriber.transcribe(wav, "audio/wav")
    """
    start_ns = time.monotonic_ns()
    outcome = "error"
    try:
        yield
        outcome = "ok"
    finally:
        logger.log_event({
            "event_type": "METRIC_TIMER",
            "metric": name,
            "value_ms": (time.monotonic_ns() - start_ns) // 1_000_000,
            "outcome": outcome,
            "session_id": session_id,
            "details": details or {},
        })
