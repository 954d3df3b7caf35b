"""Tiered relevance classifier tests — boundaries, metrics, failure tolerance, sample preview."""

import asyncio
import math
import os
import random
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from signal_verdict.constants import TierThresholds
from signal_verdict.schemas.signal_schema import Signal
from signal_verdict.services.relevance_scorer import KeywordRelevanceScorer, RelevanceScorer
from signal_verdict.services.tiered_filter import (
    classify_tier,
    filter_signals_tiered,
    get_all_signals,
    get_signals_for_analysis,
    get_signals_for_competitors,
    get_source_key,
    tiered_sample_quality_check,
)


class MapScorer(RelevanceScorer):
    """Returns a fixed score per signal id; ``None`` entries raise."""

    hypothesis = "test"

    def __init__(self, scores):
        self.scores = scores

    async def score(self, signal):
        value = self.scores[signal.id]
        if value is None:
            raise RuntimeError("embedding service unavailable")
        return value


def _signals(scores, source="reddit", community="founders"):
    return [
        Signal(id=str(i), source=source, community=community, title=f"post {i}", body="body")
        for i in range(len(scores))
    ]


def _run(signals, scores, **kwargs):
    scorer = MapScorer({s.id: v for s, v in zip(signals, scores)})
    return asyncio.run(filter_signals_tiered(signals, scorer, **kwargs))


class TestClassifyTier:
    @pytest.mark.parametrize(
        "score,expected",
        [
            (1.0, "core"),
            (0.45, "core"),
            (0.4499, "strong"),
            (0.449999, "strong"),
            (0.35, "strong"),
            (0.3499, "related"),
            (0.25, "related"),
            (0.2499, "adjacent"),
            (0.15, "adjacent"),
            (0.1499, None),
            (0.14999, None),
            (0.0, None),
        ],
    )
    def test_boundaries_inclusive_below(self, score, expected):
        assert classify_tier(score) == expected

    def test_custom_thresholds(self):
        thresholds = TierThresholds(core=0.8, strong=0.6, related=0.4, adjacent=0.2)
        assert classify_tier(0.7, thresholds) == "strong"
        assert classify_tier(0.45, thresholds) == "related"


class TestFilterSignalsTiered:
    def test_distribution_and_metrics(self):
        scores = [0.6] * 40 + [0.4] * 30 + [0.3] * 30 + [0.2] * 20
        signals = _signals(scores)

        tiered = _run(signals, scores)

        m = tiered.metrics
        assert (m.core, m.strong, m.related, m.adjacent) == (40, 30, 30, 20)
        assert m.analysis_signals == 70
        assert m.pivot_potential == 20
        assert m.total == 120
        assert m.discarded == 0
        assert m.failed == 0
        assert m.by_source == {"reddit": 120}

    def test_noise_discarded_but_counted_in_total(self):
        scores = [0.5, 0.1, 0.05]
        tiered = _run(_signals(scores), scores)

        assert tiered.metrics.core == 1
        assert tiered.metrics.discarded == 2
        assert tiered.metrics.total == 3
        assert len(get_all_signals(tiered)) == 1

    def test_scorer_failure_drops_only_that_signal(self):
        scores = [0.5, None, 0.4, 0.2]
        tiered = _run(_signals(scores), scores)

        assert tiered.metrics.failed == 1
        assert tiered.metrics.total == 3
        assert tiered.metrics.core == 1
        assert tiered.metrics.strong == 1
        assert tiered.metrics.adjacent == 1

    def test_non_finite_score_counts_as_failure(self):
        scores = [math.nan, 0.5]
        tiered = _run(_signals(scores), scores)
        assert tiered.metrics.failed == 1
        assert tiered.metrics.core == 1

    def test_out_of_range_scores_clamped(self):
        scores = [1.7, -0.3]
        tiered = _run(_signals(scores), scores)
        assert tiered.core[0].score == 1.0
        assert tiered.metrics.discarded == 1

    def test_tiers_sorted_descending(self):
        scores = [0.5, 0.9, 0.7]
        tiered = _run(_signals(scores), scores)
        assert [a.score for a in tiered.core] == [0.9, 0.7, 0.5]

    def test_each_signal_in_exactly_one_tier(self):
        scores = [0.45, 0.35, 0.25, 0.15, 0.05]
        tiered = _run(_signals(scores), scores)

        ids = [a.signal.id for a in get_all_signals(tiered)]
        assert sorted(ids) == ["0", "1", "2", "3"]
        assert len(ids) == len(set(ids))

    def test_max_signals_limits_scoring(self):
        scores = [0.5] * 10
        tiered = _run(_signals(scores), scores, max_signals=4)
        assert tiered.metrics.total == 4

    def test_empty_input(self):
        tiered = _run([], [])
        assert tiered.metrics.total == 0
        assert get_signals_for_analysis(tiered) == []

    def test_selections(self):
        scores = [0.5, 0.4, 0.3, 0.2]
        tiered = _run(_signals(scores), scores)
        assert [a.tier for a in get_signals_for_analysis(tiered)] == ["core", "strong"]
        assert [a.tier for a in get_signals_for_competitors(tiered)] == ["core", "strong", "related"]

    def test_source_weights_attached(self):
        comment = Signal(id="c", source="reddit", body="x", metadata={"is_comment": True})
        review = Signal(id="r", source="app_store", body="y")
        scorer = MapScorer({"c": 0.5, "r": 0.5})

        tiered = asyncio.run(filter_signals_tiered([comment, review], scorer))

        weights = {a.signal.id: (a.source_weight, a.wtp_source_weight) for a in tiered.core}
        assert weights["c"] == (0.7, 0.4)
        assert weights["r"] == (1.0, 1.0)
        assert get_source_key(comment) == "reddit_comment"

    def test_unknown_source_uses_other_weight(self):
        signal = Signal(id="x", source="mastodon", body="x")
        tiered = asyncio.run(filter_signals_tiered([signal], MapScorer({"x": 0.5})))
        assert tiered.core[0].source_weight == 0.5


class TestKeywordScorer:
    def test_overlap_share(self):
        scorer = KeywordRelevanceScorer("scheduling software for therapists")
        signal = Signal(source="reddit", title="Therapists hate scheduling", body="")
        score = asyncio.run(scorer.score(signal))
        assert 0.0 < score <= 1.0

    def test_no_keywords_rejected(self):
        with pytest.raises(ValueError):
            KeywordRelevanceScorer("the and of")


class TestSampleQualityCheck:
    def test_tiny_pool_is_strong_warning(self):
        signals = _signals([0.9] * 5)
        report = asyncio.run(
            tiered_sample_quality_check(signals, MapScorer({s.id: 0.9 for s in signals}))
        )
        assert report.quality_warning == "strong_warning"
        assert report.predicted_relevance == 0
        assert report.sample_size == 5
        assert report.tier_breakdown.noise == 5

    def test_sample_capped_at_forty(self):
        signals = _signals([0.9] * 100)
        report = asyncio.run(
            tiered_sample_quality_check(
                signals, MapScorer({s.id: 0.9 for s in signals}), rng=random.Random(7)
            )
        )
        assert report.sample_size == 40
        assert report.predicted_relevance == 100
        assert report.predicted_confidence == "high"
        assert report.quality_warning == "none"
        assert len(report.sample_relevant) == 3

    def test_mostly_noise_reports_topics(self):
        signals = _signals([0.0] * 20, community="gaming")
        scores = {s.id: 0.0 for s in signals}
        scores["0"] = 0.5
        report = asyncio.run(tiered_sample_quality_check(signals, MapScorer(scores)))

        assert report.predicted_relevance == 5
        assert report.quality_warning == "strong_warning"
        assert report.filtered_topics[0].topic == "gaming"
        assert report.filtered_topics[0].count == 19
        assert report.sample_filtered[0].filter_reason.startswith("Off-topic")
