"""
Tiered Relevance Node

Scores the gated signals against the hypothesis and buckets them into
CORE / STRONG / RELATED / ADJACENT.

Scorer selection:
- An injected scorer always wins
- Otherwise embeddings when OPENAI_API_KEY is set
- Otherwise the deterministic keyword scorer
"""

import os
from typing import Any, Dict

from ....schemas.tier_schema import TieredSignals
from ....services.relevance_scorer import (
    EmbeddingRelevanceScorer,
    KeywordRelevanceScorer,
    RelevanceScorer,
)
from ....services.tiered_filter import filter_signals_tiered
from ....timing import log_timing
from ..state import ResearchState


def default_scorer(hypothesis: str) -> RelevanceScorer:
    if os.getenv("OPENAI_API_KEY", "").strip():
        return EmbeddingRelevanceScorer(hypothesis)
    return KeywordRelevanceScorer(hypothesis)


async def tier_signals(state: ResearchState) -> Dict[str, Any]:
    hypothesis = state.get("hypothesis", "")
    signals = state.get("gated_signals") or []

    if not signals:
        return {
            "tiered": TieredSignals(),
            "processing_errors": ["Tiering: No signals to classify"],
        }

    try:
        scorer = state.get("scorer") or default_scorer(hypothesis)
    except ValueError as e:
        log_timing("tier", f"Error: {e}")
        return {"tiered": TieredSignals(), "processing_errors": [f"Tiering: {e}"]}

    tiered = await filter_signals_tiered(signals, scorer)

    errors = []
    if tiered.metrics.failed:
        errors.append(f"Tiering: {tiered.metrics.failed} signals could not be scored")
    return {"tiered": tiered, "processing_errors": errors}
