"""
Timing Utilities for Latency Instrumentation

Stopwatch helpers for pipeline nodes and scoring batches. Every event is
emitted as ``[TIMING] <node>: <action> — duration=<ms>ms`` on the
``signal_verdict.timing`` logger.
"""

import logging
import time
from contextlib import asynccontextmanager, contextmanager
from typing import Optional

logger = logging.getLogger(__name__)


def log_timing(node_name: str, action: str, duration_ms: Optional[float] = None) -> None:
    """Log a timing event in standard format."""
    if duration_ms is not None:
        logger.info("[TIMING] %s: %s — duration=%.0fms", node_name, action, duration_ms)
    else:
        logger.info("[TIMING] %s: %s", node_name, action)


def elapsed_ms(start: float) -> float:
    """Milliseconds since a ``time.perf_counter()`` reading."""
    return (time.perf_counter() - start) * 1000


@asynccontextmanager
async def async_timer(node_name: str, action: str = "NODE"):
    """Async context manager bracketing a whole node with START/END events."""
    log_timing(node_name, f"{action} START")
    start = time.perf_counter()
    try:
        yield
    finally:
        log_timing(node_name, f"{action} END", elapsed_ms(start))


class StepTimer:
    """
    Times the named steps of one node.

    Usage:
        timer = StepTimer("tier")
        with timer.step("score_signals"):
            ...
        async with timer.async_step("market_sizing"):
            await ...
        timer.summary()
    """

    def __init__(self, node_name: str):
        self.node_name = node_name
        self.steps: dict[str, float] = {}
        self.start_time = time.perf_counter()

    def _record(self, step_name: str, start: float) -> None:
        duration_ms = elapsed_ms(start)
        self.steps[step_name] = duration_ms
        log_timing(self.node_name, step_name, duration_ms)

    @contextmanager
    def step(self, step_name: str):
        start = time.perf_counter()
        try:
            yield
        finally:
            self._record(step_name, start)

    @asynccontextmanager
    async def async_step(self, step_name: str):
        start = time.perf_counter()
        try:
            yield
        finally:
            self._record(step_name, start)

    def summary(self) -> float:
        """Log and return total elapsed milliseconds."""
        total_ms = elapsed_ms(self.start_time)
        log_timing(self.node_name, "TOTAL", total_ms)
        return total_ms
