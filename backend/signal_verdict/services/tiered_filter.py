"""Tiered Relevance Classifier.

Sorts gated signals into graduated relevance tiers instead of a binary
pass/fail, so nothing useful is thrown away:

  - CORE      (r ≥ 0.45)  direct match to the hypothesis
  - STRONG    (r ≥ 0.35)  highly relevant
  - RELATED   (r ≥ 0.25)  same problem space (competitor mining)
  - ADJACENT  (r ≥ 0.15)  nearby problems (pivot candidates)
  - below 0.15            discarded as noise

Rules
-----
- Boundaries come from ``TierThresholds`` only; never from literals here.
- Checks run top-down and are closed below, so each score lands in
  exactly one tier.
- A scorer exception drops that ONE signal and bumps ``metrics.failed``;
  the batch never aborts.
- Each tier is sorted by score, highest first.
"""

from __future__ import annotations

import asyncio
import logging
import math
import random
import time
from collections import Counter
from typing import Iterable, List, Optional, Sequence, Tuple

from ..constants import (
    DEFAULT_SCORING_CONFIG,
    SOURCE_WEIGHTS,
    WTP_SOURCE_WEIGHTS,
    TierThresholds,
)
from ..schemas.signal_schema import Signal
from ..schemas.tier_schema import (
    FilteredTopic,
    SamplePreview,
    SampleQualityReport,
    Tier,
    TierAssignment,
    TierBreakdown,
    TieredMetrics,
    TieredSignals,
)
from ..timing import elapsed_ms, log_timing
from .relevance_scorer import RelevanceScorer

logger = logging.getLogger(__name__)

DEFAULT_CONCURRENCY = 8

# Coverage preview
_SAMPLE_MAX = 40
_SAMPLE_MIN = 10


# ===================================================================== #
#  Tier policy                                                            #
# ===================================================================== #

def classify_tier(
    score: float,
    thresholds: TierThresholds = DEFAULT_SCORING_CONFIG.tiers,
) -> Optional[Tier]:
    """Map a relevance score to its tier, or ``None`` when it is noise."""
    if score >= thresholds.core:
        return "core"
    if score >= thresholds.strong:
        return "strong"
    if score >= thresholds.related:
        return "related"
    if score >= thresholds.adjacent:
        return "adjacent"
    return None


def get_source_key(signal: Signal) -> str:
    """Weight-table key; Reddit comments are weighed below Reddit posts."""
    if signal.source == "reddit" and signal.is_comment:
        return "reddit_comment"
    return signal.source


def _source_weights(signal: Signal) -> Tuple[float, float]:
    key = get_source_key(signal)
    return (
        SOURCE_WEIGHTS.get(key, SOURCE_WEIGHTS["other"]),
        WTP_SOURCE_WEIGHTS.get(key, WTP_SOURCE_WEIGHTS["other"]),
    )


# ===================================================================== #
#  Scoring                                                                #
# ===================================================================== #

async def _score_all(
    signals: Sequence[Signal],
    scorer: RelevanceScorer,
    concurrency: int,
) -> List[Optional[float]]:
    """Score every signal; ``None`` marks a failed score."""
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _one(signal: Signal) -> float:
        async with semaphore:
            value = await scorer.score(signal)
        value = float(value)
        if not math.isfinite(value):
            raise ValueError(f"scorer returned non-finite relevance {value!r}")
        return max(0.0, min(1.0, value))

    results = await asyncio.gather(*(_one(s) for s in signals), return_exceptions=True)

    scores: List[Optional[float]] = []
    for signal, result in zip(signals, results):
        if isinstance(result, BaseException):
            if not isinstance(result, Exception):
                raise result
            logger.warning(
                "Relevance scoring failed for signal %s (%s): %s",
                signal.id or "<no id>",
                signal.source,
                result,
            )
            scores.append(None)
        else:
            scores.append(result)
    return scores


async def filter_signals_tiered(
    signals: Sequence[Signal],
    scorer: RelevanceScorer,
    thresholds: TierThresholds = DEFAULT_SCORING_CONFIG.tiers,
    max_signals: Optional[int] = None,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> TieredSignals:
    """Score *signals* concurrently and bucket them into relevance tiers.

    Parameters
    ----------
    signals : sequence of Signal
        Gated signals for one hypothesis.
    scorer : RelevanceScorer
        Any ``score(signal) -> r`` implementation.
    thresholds : TierThresholds
        Shared tier boundaries (default: ``DEFAULT_SCORING_CONFIG.tiers``).
    max_signals : int, optional
        Only the first *max_signals* items are scored.
    concurrency : int
        Upper bound on in-flight scorer calls.

    Returns
    -------
    TieredSignals
        Tier lists plus ``TieredMetrics``. ``metrics.total`` counts every
        successfully scored signal, including those discarded as noise.
    """
    start = time.perf_counter()

    to_process = list(signals)
    if max_signals is not None and max_signals < len(to_process):
        to_process = to_process[:max_signals]

    scores = await _score_all(to_process, scorer, concurrency)

    buckets: dict[str, List[TierAssignment]] = {
        "core": [],
        "strong": [],
        "related": [],
        "adjacent": [],
    }
    by_source: Counter[str] = Counter()
    discarded = 0
    failed = 0

    for signal, score in zip(to_process, scores):
        if score is None:
            failed += 1
            continue

        tier = classify_tier(score, thresholds)
        if tier is None:
            discarded += 1
            continue

        source_weight, wtp_weight = _source_weights(signal)
        buckets[tier].append(
            TierAssignment(
                signal=signal,
                score=score,
                tier=tier,
                source_weight=source_weight,
                wtp_source_weight=wtp_weight,
            )
        )
        by_source[signal.source] += 1

    for assignments in buckets.values():
        assignments.sort(key=lambda a: a.score, reverse=True)

    kept = sum(len(v) for v in buckets.values())
    processing_time_ms = elapsed_ms(start)

    metrics = TieredMetrics(
        core=len(buckets["core"]),
        strong=len(buckets["strong"]),
        related=len(buckets["related"]),
        adjacent=len(buckets["adjacent"]),
        discarded=discarded,
        failed=failed,
        total=kept + discarded,
        processing_time_ms=processing_time_ms,
        by_source=dict(by_source),
    )

    log_timing("tiered_filter", "score_and_classify", processing_time_ms)
    logger.info(
        "Tiered filter: %d core, %d strong, %d related, %d adjacent, "
        "%d discarded, %d failed",
        metrics.core,
        metrics.strong,
        metrics.related,
        metrics.adjacent,
        discarded,
        failed,
    )

    return TieredSignals(**buckets, metrics=metrics)


# ===================================================================== #
#  Tier selections                                                        #
# ===================================================================== #

def get_signals_for_analysis(tiered: TieredSignals) -> List[TierAssignment]:
    """CORE + STRONG: input to theme extraction and WTP detection."""
    return [*tiered.core, *tiered.strong]


def get_signals_for_competitors(tiered: TieredSignals) -> List[TierAssignment]:
    """CORE + STRONG + RELATED: competitors show up in broader context."""
    return [*tiered.core, *tiered.strong, *tiered.related]


def get_all_signals(tiered: TieredSignals) -> List[TierAssignment]:
    return [*tiered.core, *tiered.strong, *tiered.related, *tiered.adjacent]


# ===================================================================== #
#  Coverage preview                                                       #
# ===================================================================== #

def _preview(signal: Signal, limit: int, reason: Optional[str] = None) -> SamplePreview:
    body = signal.body or ""
    return SamplePreview(
        title=signal.title,
        body_preview=body[:limit] + ("..." if len(body) > limit else ""),
        community=signal.community,
        filter_reason=reason,
    )


def _filter_reason(tier: Optional[str], score: float) -> str:
    if tier == "related":
        return f"Related topic (score: {score:.2f})"
    if tier == "adjacent":
        return f"Adjacent problem (score: {score:.2f})"
    if tier is None:
        return f"Off-topic (score: {score:.2f})"
    return f"Low relevance (score: {score:.2f})"


def _predicted_confidence(relevant_count: int) -> str:
    if relevant_count < 5:
        return "very_low"
    if relevant_count < 10:
        return "low"
    if relevant_count < 20:
        return "medium"
    return "high"


def _quality_warning(predicted_relevance: int) -> str:
    if predicted_relevance < 8:
        return "strong_warning"
    if predicted_relevance < 20:
        return "caution"
    return "none"


async def tiered_sample_quality_check(
    signals: Iterable[Signal],
    scorer: RelevanceScorer,
    thresholds: TierThresholds = DEFAULT_SCORING_CONFIG.tiers,
    rng: Optional[random.Random] = None,
) -> SampleQualityReport:
    """Preview relevance on a random sample of at most 40 signals.

    Meant to run before a full (paid) analysis so users can refine a
    hypothesis that would otherwise yield almost no CORE/STRONG evidence.
    Failed scores count as noise here.
    """
    pool = list(signals)
    rng = rng or random.Random()
    sample = rng.sample(pool, min(_SAMPLE_MAX, len(pool)))

    if len(sample) < _SAMPLE_MIN:
        return SampleQualityReport(
            predicted_relevance=0,
            predicted_confidence="very_low",
            quality_warning="strong_warning",
            sample_size=len(sample),
            suggestion="Very few posts found. Try different keywords or communities.",
            tier_breakdown=TierBreakdown(noise=len(sample)),
        )

    scores = await _score_all(sample, scorer, DEFAULT_CONCURRENCY)
    scored: List[Tuple[Signal, float, Optional[str]]] = []
    for signal, score in zip(sample, scores):
        if score is None:
            scored.append((signal, 0.0, None))
        else:
            scored.append((signal, score, classify_tier(score, thresholds)))

    tier_counts = Counter(tier or "noise" for _, _, tier in scored)
    breakdown = TierBreakdown(**tier_counts)

    relevant_count = breakdown.core + breakdown.strong
    predicted_relevance = round(relevant_count / len(sample) * 100)
    warning = _quality_warning(predicted_relevance)

    relevant = sorted(
        (s for s in scored if s[2] in ("core", "strong")), key=lambda s: s[1], reverse=True
    )[:3]
    not_relevant = sorted(
        (s for s in scored if s[2] not in ("core", "strong")), key=lambda s: s[1], reverse=True
    )

    topic_counts = Counter(signal.community for signal, _, _ in not_relevant)
    filtered_topics = [
        FilteredTopic(topic=topic, count=count) for topic, count in topic_counts.most_common(3)
    ]

    suggestion = None
    if warning == "strong_warning":
        suggestion = (
            "Very few relevant signals found. Consider refining your hypothesis "
            "with more specific problem language."
        )
    elif warning == "caution":
        suggestion = "Moderate relevance detected. Results may require manual review."

    return SampleQualityReport(
        predicted_relevance=predicted_relevance,
        predicted_confidence=_predicted_confidence(relevant_count),
        quality_warning=warning,
        sample_size=len(sample),
        sample_relevant=[_preview(signal, 150) for signal, _, _ in relevant],
        sample_filtered=[
            _preview(signal, 100, _filter_reason(tier, score))
            for signal, score, tier in not_relevant[:5]
        ],
        filtered_topics=filtered_topics,
        suggestion=suggestion,
        tier_breakdown=breakdown,
    )
