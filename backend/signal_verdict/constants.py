"""Centralized constants shared across the scoring & filtering core.

This module is the SINGLE SOURCE OF TRUTH for relevance tier thresholds,
verdict thresholds and dimension weights. Reused by:
  - Tiered Relevance Classifier
  - Verdict Aggregator / verdict messages
  - Market Sizing Estimator (defaults + rubric)

Thresholds are bundled into one immutable ``ScoringConfig`` that is
injected into both the classifier and the aggregator, so the two can never
drift apart.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# ── Relevance tiers ─────────────────────────────────────────────────────
# Inclusive lower bounds, checked in descending order (CORE first).
# Anything below ADJACENT is discarded.


@dataclass(frozen=True)
class TierThresholds:
    core: float = 0.45
    strong: float = 0.35
    related: float = 0.25
    adjacent: float = 0.15


# ── Verdict levels ──────────────────────────────────────────────────────
# 7.5+ → strong, 5.0–7.5 → mixed, 4.0–5.0 → weak, below 4.0 → none


@dataclass(frozen=True)
class VerdictThresholds:
    strong: float = 7.5
    mixed: float = 5.0
    weak: float = 4.0


# ── Dimension weights (full formula) ────────────────────────────────────
# Pain 35%, Market 25%, Competition 25%, Timing 15%.
# Normalized over the dimensions that are actually available.


@dataclass(frozen=True)
class DimensionWeights:
    pain: float = 0.35
    market: float = 0.25
    competition: float = 0.25
    timing: float = 0.15

    def as_dict(self) -> dict[str, float]:
        return {
            "pain": self.pain,
            "market": self.market,
            "competition": self.competition,
            "timing": self.timing,
        }


@dataclass(frozen=True)
class ScoringConfig:
    """Immutable bundle injected into classifier and aggregator."""

    tiers: TierThresholds = field(default_factory=TierThresholds)
    verdict: VerdictThresholds = field(default_factory=VerdictThresholds)
    weights: DimensionWeights = field(default_factory=DimensionWeights)
    dealbreaker_threshold: float = 3.0


DEFAULT_SCORING_CONFIG = ScoringConfig()

# Canonical tier order (most → least relevant)
TIER_ORDER: tuple[str, ...] = ("core", "strong", "related", "adjacent")

DIMENSIONS: tuple[str, ...] = ("pain", "market", "competition", "timing")

# ── Source reliability weights ──────────────────────────────────────────
# Verified purchasers weigh more than community chatter.

SOURCE_WEIGHTS: dict[str, float] = {
    "app_store": 1.0,
    "google_play": 1.0,
    "trustpilot": 1.0,
    "reddit": 0.9,
    "hacker_news": 0.85,
    "reddit_comment": 0.7,
    "youtube_comment": 0.6,
    "other": 0.5,
}

# Willingness-to-pay reliability. Reddit WTP is often hyperbolic.
WTP_SOURCE_WEIGHTS: dict[str, float] = {
    "app_store": 1.0,
    "google_play": 1.0,
    "trustpilot": 1.0,
    "hacker_news": 0.7,
    "reddit": 0.5,
    "reddit_comment": 0.4,
    "youtube_comment": 0.3,
    "other": 0.3,
}

# Sources that are reviews from the subject's own store listing.
# These bypass the App-Name Gate text match.
APP_STORE_SOURCES: frozenset[str] = frozenset({"app_store", "google_play"})

# ── Synthesis caps ──────────────────────────────────────────────────────
CORE_SYNTHESIS_MAX = 50
STRONG_SYNTHESIS_MAX = 50

EMOTIONAL_TERMS_MAX = 10
TOOLS_MENTIONED_MAX = 15
ADJACENT_OPPORTUNITIES_MAX = 3

# ── Market sizing defaults ──────────────────────────────────────────────
DEFAULT_GEOGRAPHY = "Global"
DEFAULT_TARGET_PRICE = 29.0          # USD / month
DEFAULT_MSC_TARGET = 1_000_000.0     # USD ARR
