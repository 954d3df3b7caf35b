"""Token usage & cost tracking for OpenAI calls.

One ``TokenTracker`` per research job. Callers either pass it explicitly
or bind it for the current task with ``use_tracker()``; services look it
up with ``get_current_tracker()``.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)

# USD per 1M tokens
OPENAI_PRICING: Dict[str, Dict[str, float]] = {
    "gpt-4.1": {"input_per_1m": 2.00, "output_per_1m": 8.00},
    "gpt-4.1-mini": {"input_per_1m": 0.40, "output_per_1m": 1.60},
    "gpt-4o": {"input_per_1m": 2.50, "output_per_1m": 10.00},
    "gpt-4o-mini": {"input_per_1m": 0.15, "output_per_1m": 0.60},
    "text-embedding-3-small": {"input_per_1m": 0.02, "output_per_1m": 0.0},
}

# Unknown models are billed like the default completion model.
_FALLBACK_MODEL = "gpt-4.1"


def calculate_call_cost(input_tokens: int, output_tokens: int, model: str) -> float:
    pricing = OPENAI_PRICING.get(model)
    if pricing is None:
        logger.warning("Unknown model %s, using %s pricing", model, _FALLBACK_MODEL)
        pricing = OPENAI_PRICING[_FALLBACK_MODEL]
    return (
        input_tokens / 1_000_000 * pricing["input_per_1m"]
        + output_tokens / 1_000_000 * pricing["output_per_1m"]
    )


@dataclass
class TrackedCall:
    input_tokens: int
    output_tokens: int
    model: str


@dataclass
class TokenTracker:
    calls: List[TrackedCall] = field(default_factory=list)
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_cost_usd: float = 0.0

    def track(self, input_tokens: int, output_tokens: int, model: str) -> TrackedCall:
        call = TrackedCall(int(input_tokens), int(output_tokens), model)
        self.calls.append(call)
        self.total_input_tokens += call.input_tokens
        self.total_output_tokens += call.output_tokens
        self.total_cost_usd += calculate_call_cost(call.input_tokens, call.output_tokens, model)
        return call

    def usage_summary(self) -> dict:
        by_model: Dict[str, Dict[str, int]] = {}
        for call in self.calls:
            stats = by_model.setdefault(call.model, {"calls": 0, "input_tokens": 0, "output_tokens": 0})
            stats["calls"] += 1
            stats["input_tokens"] += call.input_tokens
            stats["output_tokens"] += call.output_tokens

        return {
            "total_calls": len(self.calls),
            "total_input_tokens": self.total_input_tokens,
            "total_output_tokens": self.total_output_tokens,
            "total_tokens": self.total_input_tokens + self.total_output_tokens,
            "total_cost_usd": round(self.total_cost_usd, 4),
            "cost_breakdown": [
                {
                    "model": model,
                    "calls": stats["calls"],
                    "cost": calculate_call_cost(stats["input_tokens"], stats["output_tokens"], model),
                }
                for model, stats in by_model.items()
            ],
        }


_current_tracker: ContextVar[Optional[TokenTracker]] = ContextVar("token_tracker", default=None)


def get_current_tracker() -> Optional[TokenTracker]:
    return _current_tracker.get()


@contextmanager
def use_tracker(tracker: TokenTracker) -> Iterator[TokenTracker]:
    token = _current_tracker.set(tracker)
    try:
        yield tracker
    finally:
        _current_tracker.reset(token)
