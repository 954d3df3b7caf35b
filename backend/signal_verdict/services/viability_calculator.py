"""Deterministic Viability Calculator (Verdict Aggregator).

Combines the Pain, Market, Competition and Timing dimensions into one
0–10 verdict score.

Full formula (4 dimensions):
    VIABILITY = Pain × 0.35 + Market × 0.25 + Competition × 0.25 + Timing × 0.15

Rules
-----
- NO API calls, NO DB writes, NO LLMs
- Weights are normalized over the dimensions actually supplied; a missing
  dimension is reported in ``missing_dimensions`` and NEVER defaulted
- Mid-range scores are spread away from 5.5 before thresholds apply
- Reality checks run after calibration, in order:
    1. Market score discounted for missing WTP, trivial pain and free
       alternatives (floor 1.0)
    2. WTP kill switch: zero purchase intent caps the score
    3. Competition saturation cap
- ``level`` and ``message`` are always ``score_to_message(score, critical)``;
  the kill switch only changes the displayed label and description
"""

from __future__ import annotations

import math
from typing import Dict, List, Optional, Tuple

from ..constants import DEFAULT_SCORING_CONFIG, DIMENSIONS, ScoringConfig
from ..schemas.market_sizing_schema import MarketSizingResult
from ..schemas.theme_schema import PainScoreInput
from ..schemas.verdict_schema import (
    CompetitionScoreInput,
    DimensionScore,
    MarketScoreInput,
    RedFlag,
    SampleSizeIndicator,
    ScoreRange,
    TimingScoreInput,
    ViabilityVerdict,
)
from .verdict_messages import LEVEL_ORDER, get_verdict_level, score_to_message

_CALIBRATION_CENTER = 5.5
_MAX_AMPLIFICATION = 1.4
_MIN_AMPLIFICATION = 1.0

_VERDICT_LABELS = {
    "strong": "STRONG SIGNAL",
    "mixed": "MIXED SIGNAL",
    "weak": "WEAK SIGNAL",
    "none": "DO NOT PURSUE",
}

_VERDICT_DESCRIPTIONS = {
    "strong": "Proceed to user interviews with confidence. Strong market signals detected.",
    "mixed": (
        "Conduct user interviews to validate assumptions. Mixed signals suggest "
        "talking to real users will clarify the opportunity."
    ),
    "weak": (
        "Significant concerns detected. Validate core assumptions with user "
        "interviews before building anything."
    ),
    "none": "No viable business signal detected. Pivot to a different problem or target audience.",
}

_MISSING_DIMENSION_RECOMMENDATIONS = {
    "pain": "Run Community Voice analysis to assess market pain",
    "competition": "Run Competitor Intelligence to assess competitive landscape",
    "market": "Run Market Sizing to validate revenue potential",
    "timing": "Run Timing Analysis to assess market timing",
}

_CONFIDENCE_POINTS = {"high": 3, "medium": 2, "low": 1}

_RECOMMENDATIONS_MAX = 5


def _round1(value: float) -> float:
    """Round half up to one decimal."""
    return math.floor(value * 10 + 0.5) / 10


def _clamp(value: float, lo: float = 0.0, hi: float = 10.0) -> float:
    return max(lo, min(hi, value))


# ---------------------------------------------------------------------------
# Calibration & labels
# ---------------------------------------------------------------------------
def apply_score_calibration(raw_score: float) -> float:
    """Push mid-range scores away from 5.5; extremes barely move. 0 stays 0."""
    if raw_score == 0:
        return 0.0
    distance = abs(raw_score - _CALIBRATION_CENTER)
    amplification = _MAX_AMPLIFICATION - (_MAX_AMPLIFICATION - _MIN_AMPLIFICATION) * (distance / 4.5)
    transformed = _CALIBRATION_CENTER + (raw_score - _CALIBRATION_CENTER) * amplification
    return _round1(_clamp(transformed))


def dimension_status(score: float) -> str:
    if score >= 7.5:
        return "strong"
    if score >= 5.0:
        return "adequate"
    if score >= 3.0:
        return "needs_work"
    return "critical"


def _normalize_confidence(confidence: str) -> str:
    return "low" if confidence == "very_low" else confidence


def combine_confidences(confidences: List[str]) -> str:
    if not confidences:
        return "low"
    avg = sum(_CONFIDENCE_POINTS[c] for c in confidences) / len(confidences)
    if avg >= 2.5:
        return "high"
    if avg >= 1.5:
        return "medium"
    return "low"


def _data_sufficiency(dimensions: List[DimensionScore], total: int) -> Tuple[str, str]:
    if not dimensions:
        return "insufficient", "No research data available"
    if len(dimensions) == 1:
        return "limited", f"Only 1 of {total} dimensions analyzed - run more modules for reliable verdict"

    low_confidence = sum(1 for d in dimensions if d.confidence == "low")
    if len(dimensions) == 2 and low_confidence >= 1:
        return "limited", "2 dimensions with low confidence data"
    if len(dimensions) >= 3 and low_confidence <= 1:
        return "strong", f"{len(dimensions)} dimensions analyzed with good confidence"
    if len(dimensions) / total >= 0.75:
        return "adequate", f"{len(dimensions)} of {total} dimensions analyzed"
    return "limited", f"Only {len(dimensions)} dimensions - consider running more analyses"


def _sample_size(pain: Optional[PainScoreInput]) -> Optional[SampleSizeIndicator]:
    if pain is None or pain.posts_analyzed is None:
        return None
    posts = pain.posts_analyzed
    if posts >= 100:
        label, description = "high_confidence", "High confidence — substantial data sample"
    elif posts >= 50:
        label, description = "moderate_confidence", "Moderate confidence — good data sample"
    elif posts >= 20:
        label, description = "low_confidence", "Low confidence — consider broader search terms"
    else:
        label, description = "very_limited", "Very limited data — interpret with caution"
    return SampleSizeIndicator(
        posts_analyzed=posts,
        signals_found=pain.total_signals,
        label=label,
        description=description,
    )


def _calibrated_label(level: str, sample: Optional[SampleSizeIndicator]) -> str:
    """Soften confident labels when the sample is small."""
    base = _VERDICT_LABELS[level]
    if sample is None or sample.label in ("high_confidence", "moderate_confidence"):
        return base
    if sample.label == "very_limited":
        return {
            "strong": "PROMISING — LIMITED DATA",
            "mixed": "UNCERTAIN — LIMITED DATA",
            "weak": "WEAK — LIMITED DATA",
        }.get(level, base)
    if level == "strong":
        return "STRONG — NEEDS MORE DATA"
    return base


def _score_range(score: float, sample: Optional[SampleSizeIndicator]) -> Optional[ScoreRange]:
    if sample is None or sample.label in ("high_confidence", "moderate_confidence"):
        return None
    margin = 2.0 if sample.label == "very_limited" else 1.5
    return ScoreRange(
        min=max(0.0, _round1(score - margin)),
        max=min(10.0, _round1(score + margin)),
    )


# ---------------------------------------------------------------------------
# Reality checks
# ---------------------------------------------------------------------------
def adjusted_market_score(
    raw_market_score: float,
    pain: Optional[PainScoreInput],
    competition: Optional[CompetitionScoreInput],
) -> Tuple[float, Dict[str, float]]:
    """Discount a TAM-driven market score by WTP, severity and free alternatives."""
    wtp_count = pain.willingness_to_pay_count if pain else 0
    if wtp_count == 0:
        wtp_factor = 0.3
    elif wtp_count <= 3:
        wtp_factor = 0.6
    else:
        wtp_factor = 1.0

    avg_intensity = pain.average_intensity if pain and pain.average_intensity is not None else 0.5
    if avg_intensity < 0.4:
        severity_factor = 0.5
    elif avg_intensity < 0.7:
        severity_factor = 0.8
    else:
        severity_factor = 1.0

    free_alt_factor = 0.5 if competition and competition.has_free_alternatives else 1.0

    adjusted = max(raw_market_score * wtp_factor * severity_factor * free_alt_factor, 1.0)
    return _round1(adjusted), {"wtp": wtp_factor, "severity": severity_factor, "free_alt": free_alt_factor}


def _apply_wtp_kill_switch(
    score: float,
    pain: Optional[PainScoreInput],
    red_flags: List[RedFlag],
) -> Tuple[float, bool]:
    """Returns (score, forced_weak)."""
    wtp_count = pain.willingness_to_pay_count if pain else 0
    total_signals = pain.total_signals if pain else 0
    forced_weak = False

    if wtp_count == 0 and 0 < total_signals < 20:
        score = min(score, 5.0)
        forced_weak = True
        red_flags.append(
            RedFlag(
                severity="HIGH",
                title="No Purchase Intent",
                message="Zero willingness-to-pay signals found in community data",
            )
        )
    elif wtp_count == 0 and total_signals >= 20:
        score = min(score, 6.0)
        red_flags.append(
            RedFlag(
                severity="HIGH",
                title="No Purchase Intent",
                message=(
                    f"Zero WTP signals found across {total_signals} pain signals. "
                    "Users may not pay for this solution."
                ),
            )
        )
    return _round1(score), forced_weak


def _apply_competition_cap(
    score: float,
    competition: Optional[CompetitionScoreInput],
    red_flags: List[RedFlag],
) -> float:
    if competition is None:
        return score

    saturated = competition.market_maturity == "mature" or competition.competitor_count >= 5
    if competition.has_free_alternatives and saturated:
        score = min(score, 5.0)
        red_flags.append(
            RedFlag(
                severity="HIGH",
                title="Saturated Market",
                message="Multiple free alternatives exist in a mature market",
            )
        )
    elif saturated:
        score = min(score, 6.5)
        red_flags.append(
            RedFlag(
                severity="MEDIUM",
                title="Competitive Market",
                message=(
                    f"{competition.competitor_count} competitors in a "
                    f"{competition.market_maturity or 'competitive'} market"
                ),
            )
        )
    return _round1(score)


# ---------------------------------------------------------------------------
# Main calculator
# ---------------------------------------------------------------------------
def calculate_viability(
    pain: Optional[PainScoreInput] = None,
    competition: Optional[CompetitionScoreInput] = None,
    market: Optional[MarketScoreInput] = None,
    timing: Optional[TimingScoreInput] = None,
    config: ScoringConfig = DEFAULT_SCORING_CONFIG,
) -> ViabilityVerdict:
    """Aggregate whichever dimensions are available into a verdict.

    Parameters
    ----------
    pain, competition, market, timing :
        Dimension inputs; ``None`` marks a dimension that was not run.
    config : ScoringConfig
        Weights, verdict thresholds and dealbreaker threshold.

    Returns
    -------
    ViabilityVerdict
        Calibrated score, level, per-dimension breakdown, red flags,
        recommendations and the derived ``VerdictMessage``.
    """
    base_weights = config.weights.as_dict()
    dealbreaker = config.dealbreaker_threshold

    entries: List[Tuple[str, DimensionScore]] = []
    dealbreakers: List[str] = []
    recommendations: List[str] = []

    if pain is not None:
        status = dimension_status(pain.overall_score)
        entries.append((
            "pain",
            DimensionScore(
                name="Pain Score",
                key="pain",
                score=pain.overall_score,
                weight=0.0,
                status=status,
                confidence=_normalize_confidence(pain.confidence),
                summary=(
                    f"{pain.total_signals} signals detected, "
                    f"{pain.willingness_to_pay_count} WTP indicators"
                ),
            ),
        ))
        if pain.overall_score < dealbreaker:
            dealbreakers.append("Pain Score is critically low - users may not have strong enough pain points")
        if status in ("needs_work", "critical"):
            if pain.willingness_to_pay_count == 0:
                recommendations.append(
                    "Find evidence of willingness-to-pay - look for pricing discussions and purchase intent"
                )
            recommendations.append("Gather more community data or refine search terms to find stronger pain signals")

    if competition is not None:
        status = dimension_status(competition.score)
        entries.append((
            "competition",
            DimensionScore(
                name="Competition Score",
                key="competition",
                score=competition.score,
                weight=0.0,
                status=status,
                confidence=competition.confidence,
                summary=f"{competition.competitor_count} competitors analyzed",
            ),
        ))
        if competition.score < dealbreaker:
            dealbreakers.append("Competition Score is critically low - market may be too crowded or dominated")
        if status in ("needs_work", "critical"):
            if competition.threats:
                recommendations.append(f"Address competitive threats: {competition.threats[0]}")
            recommendations.append("Identify unique positioning angles or underserved niches")

    if market is not None:
        adjusted, _ = adjusted_market_score(market.score, pain, competition)
        status = dimension_status(adjusted)
        achievability = market.achievability.replace("_", " ")
        summary = f"{market.penetration_required:.1f}% penetration needed - {achievability}"
        if adjusted < market.score - 1:
            summary += f" (adjusted from {market.score:.1f} for WTP/competition)"
        entries.append((
            "market",
            DimensionScore(
                name="Market Score",
                key="market",
                score=adjusted,
                weight=0.0,
                status=status,
                confidence=_normalize_confidence(market.confidence),
                summary=summary,
            ),
        ))
        if adjusted < dealbreaker:
            dealbreakers.append("Market Score is critically low - achieving your revenue goals may be unrealistic")
        if status in ("needs_work", "critical"):
            recommendations.append("Consider narrowing your target market or adjusting pricing strategy")
            if market.achievability in ("unlikely", "difficult"):
                recommendations.append("Lower your Minimum Success Criteria or expand your serviceable market")

    if timing is not None:
        status = dimension_status(timing.score)
        arrow = {"rising": "↑", "falling": "↓"}.get(timing.trend, "→")
        entries.append((
            "timing",
            DimensionScore(
                name="Timing Score",
                key="timing",
                score=timing.score,
                weight=0.0,
                status=status,
                confidence=timing.confidence,
                summary=(
                    f"{timing.tailwinds_count} tailwinds, {timing.headwinds_count} headwinds "
                    f"{arrow} Window: {timing.timing_window}"
                ),
            ),
        ))
        if timing.score < dealbreaker:
            dealbreakers.append("Timing Score is critically low - market conditions may not be favorable")
        if status in ("needs_work", "critical"):
            if timing.headwinds_count > timing.tailwinds_count:
                recommendations.append("Address market headwinds or wait for better timing conditions")
            if timing.trend == "falling":
                recommendations.append("Market interest appears to be declining - consider pivoting or moving faster")

    # ── Weighted score over available dimensions ─────────────────────────
    total_weight = sum(base_weights[key] for key, _ in entries)
    dimensions: List[DimensionScore] = []
    raw_score = 0.0
    for key, dim in entries:
        weight = base_weights[key] / total_weight if total_weight else 0.0
        raw_score += dim.score * weight
        dimensions.append(dim.model_copy(update={"weight": weight}))

    raw_score = _round1(raw_score)
    score = apply_score_calibration(raw_score)

    available = {key for key, _ in entries}
    missing = [d for d in DIMENSIONS if d not in available]
    for key in ("pain", "competition", "market", "timing"):
        if key in missing:
            recommendations.insert(0, _MISSING_DIMENSION_RECOMMENDATIONS[key])

    # ── Reality checks ───────────────────────────────────────────────────
    red_flags: List[RedFlag] = []
    score, forced_weak = _apply_wtp_kill_switch(score, pain, red_flags)
    score = _apply_competition_cap(score, competition, red_flags)

    level = get_verdict_level(score, config.verdict)
    display_level = level
    if forced_weak and LEVEL_ORDER.index(level) > LEVEL_ORDER.index("weak"):
        display_level = "weak"

    description = _VERDICT_DESCRIPTIONS[display_level]
    if forced_weak:
        description = "No purchase intent detected. Validate willingness-to-pay before proceeding."

    if len(dimensions) >= 2:
        recommendations.append(
            "Conduct 5-10 user interviews using the Interview Guide to validate these findings with real users"
        )

    sufficiency, sufficiency_reason = _data_sufficiency(dimensions, len(DIMENSIONS))
    sample = _sample_size(pain)
    has_critical = bool(dealbreakers) or any(f.severity == "HIGH" for f in red_flags)

    return ViabilityVerdict(
        overall_score=score,
        raw_score=raw_score,
        verdict=level,
        verdict_label=_VERDICT_LABELS[display_level],
        verdict_description=description,
        calibrated_verdict_label=_calibrated_label(display_level, sample),
        score_range=_score_range(score, sample),
        dimensions=dimensions,
        weakest_dimension=min(dimensions, key=lambda d: d.score) if dimensions else None,
        missing_dimensions=missing,
        dealbreakers=dealbreakers,
        recommendations=recommendations[:_RECOMMENDATIONS_MAX],
        confidence=combine_confidences([d.confidence for d in dimensions]),
        is_complete=not missing,
        available_dimensions=len(dimensions),
        total_dimensions=len(DIMENSIONS),
        data_sufficiency=sufficiency,
        data_sufficiency_reason=sufficiency_reason,
        sample_size=sample,
        red_flags=red_flags,
        has_critical_concerns=has_critical,
        message=score_to_message(score, has_critical, config.verdict),
    )


def market_input_from_sizing(result: MarketSizingResult) -> MarketScoreInput:
    """Project a market sizing result onto the aggregator's market input."""
    return MarketScoreInput(
        score=result.score,
        confidence=result.confidence,
        penetration_required=result.msc_analysis.penetration_required,
        achievability=result.msc_analysis.achievability,
    )
