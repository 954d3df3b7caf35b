"""Deterministic pain & willingness-to-pay scoring.

Turns the CORE+STRONG signals into the Pain dimension consumed by the
verdict aggregator.

Rules
-----
- NO LLM calls, pure keyword matching
- Single words match on word boundaries ("hard" never matches "hardly");
  multi-word phrases match as substrings of the lower-cased text
- WTP keywords are ignored when a WTP exclusion pattern matches
  ("can't afford", "subscription fatigue" ...)
- Same text → same score
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Iterable, List, Sequence, Tuple

from ..schemas.signal_schema import Signal
from ..schemas.theme_schema import PainScoreInput
from ..schemas.tier_schema import TierAssignment

# ---------------------------------------------------------------------------
# Keyword tiers.  Points per match: high 3, medium 2, low 1,
# solution-seeking 2, willingness-to-pay 4.
# ---------------------------------------------------------------------------
HIGH_INTENSITY_KEYWORDS: tuple[str, ...] = (
    "nightmare", "hate", "hated", "frustrated", "frustrating", "frustration",
    "desperate", "desperately", "furious", "infuriating",
    "fed up", "sick of", "tired of", "done with", "can't stand",
    "terrible", "awful", "horrible", "horrendous", "worst", "impossible",
    "unbearable", "broken", "useless", "worthless",
    "exhausted", "exhausting", "overwhelmed", "burnt out", "burned out",
    "driving me crazy", "giving up", "gave up", "last straw",
    "waste of time", "waste of money", "complete disaster", "absolute mess",
)

MEDIUM_INTENSITY_KEYWORDS: tuple[str, ...] = (
    "struggle", "struggling", "struggled", "difficult", "difficulty",
    "hard", "harder", "challenging", "problem", "problems", "issue", "issues",
    "worried", "worry", "confusing", "confused", "complicated",
    "annoying", "annoyed", "irritating", "disappointing", "disappointed",
    "stuck", "blocked", "failing", "failed",
    "not working", "doesn't work", "can't figure out", "don't know how",
    "takes too long", "time consuming", "tedious", "manual process",
    "repetitive", "cumbersome",
)

LOW_INTENSITY_KEYWORDS: tuple[str, ...] = (
    "wondering", "curious", "thinking about", "considering", "looking into",
    "exploring", "maybe", "perhaps", "sometimes", "wish there was",
    "would be nice", "could be better", "room for improvement",
)

SOLUTION_SEEKING_KEYWORDS: tuple[str, ...] = (
    "looking for", "searching for", "trying to find", "anyone know",
    "does anyone know", "recommendations", "recommend", "suggestions",
    "advice", "need help", "please help", "how do i", "how can i",
    "what do you use", "what should i use", "best way to", "easier way to",
    "alternatives", "alternative to", "instead of", "any ideas",
)

WTP_STRONG_KEYWORDS: tuple[str, ...] = (
    "would pay", "willing to pay", "happy to pay", "i'd pay", "i would pay",
    "i'll pay", "take my money", "worth paying", "worth every penny",
    "whatever it costs",
)

WTP_MEDIUM_KEYWORDS: tuple[str, ...] = (
    "wish my company", "our team needs", "our company needs",
    "convince my boss", "enterprise plan", "business plan",
    "budget for", "pricing", "price point", "how much does", "how much would",
    "subscription", "monthly fee", "premium", "upgrade", "pro version",
    "paid version", "where can i buy", "ready to invest",
)

WTP_LOW_KEYWORDS: tuple[str, ...] = (
    "worth the money", "worth it", "value for money", "save time",
    "save money", "save hours",
)

_NEGATIVE_CONTEXT_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"hate\s+(?:the\s+)?(?:competition|competitor|rivals?)",
        r"(?:some|many|most)\s+people\s+(?:are\s+)?(?:frustrated|struggling)",
        r"(?:is\s+it|are\s+you)\s+(?:frustrated|struggling|having\s+trouble)",
        r"(?:would|could|might)\s+be\s+(?:frustrated|terrible|awful)",
        r"used\s+to\s+(?:be\s+)?(?:frustrated|struggle|hate)",
        r"was\s+(?:frustrated|struggling)\s+(?:but|until)",
        r"(?:love|like)\s+(?:it|this|the\s+app)\s+(?:but|even\s+though)",
    )
)

_WTP_EXCLUSION_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"budget\s+(?:cut|meeting|review|planning|approval|constraint|limit)",
        r"(?:company|department|team)\s+budget",
        r"pricing\s+is\s+(?:crazy|insane|ridiculous|absurd)",
        r"(?:too\s+)?expensive\s+(?:for|to)",
        r"(?:can't|cannot)\s+afford",
        r"(?:price|cost)\s+(?:is\s+)?(?:too\s+)?(?:high|steep)",
        r"(?:too\s+many|another)\s+subscription",
        r"subscription\s+fatigue",
        r"(?:cancel|cancelled|canceling)\s+(?:my\s+)?subscription",
    )
)

# Average-intensity weights handed to the aggregator.
_INTENSITY_WEIGHT = {"high": 1.0, "medium": 0.6, "low": 0.3}


@lru_cache(maxsize=None)
def _keyword_pattern(keyword: str) -> re.Pattern[str]:
    return re.compile(rf"\b{re.escape(keyword)}\b")


def _matches(lower_text: str, keyword: str) -> bool:
    if " " in keyword:
        return keyword in lower_text
    return _keyword_pattern(keyword).search(lower_text) is not None


def _matched(lower_text: str, keywords: Iterable[str]) -> List[str]:
    return [k for k in keywords if _matches(lower_text, k)]


def _engagement_multiplier(engagement: float) -> float:
    if engagement <= 1:
        return 1.0
    return min(1.2, 1 + math.log10(engagement) * 0.05)


def intensity_for(score: float) -> str:
    if score >= 7:
        return "high"
    if score >= 4:
        return "medium"
    return "low"


@dataclass
class PainTextScore:
    score: float
    high_intensity: int = 0
    medium_intensity: int = 0
    low_intensity: int = 0
    solution_seeking: int = 0
    willingness_to_pay: int = 0
    wtp_confidence: str = "none"
    signals: List[str] = field(default_factory=list)

    @property
    def is_pain_signal(self) -> bool:
        return bool(self.signals)

    @property
    def intensity(self) -> str:
        return intensity_for(self.score)


def calculate_pain_score(text: str, engagement: float = 0.0) -> PainTextScore:
    """Score one text 0–10 for expressed pain and purchase intent."""
    lower = (text or "").lower()

    high = _matched(lower, HIGH_INTENSITY_KEYWORDS)
    medium = _matched(lower, MEDIUM_INTENSITY_KEYWORDS)
    low = _matched(lower, LOW_INTENSITY_KEYWORDS)
    seeking = _matched(lower, SOLUTION_SEEKING_KEYWORDS)

    wtp_excluded = any(p.search(lower) for p in _WTP_EXCLUSION_PATTERNS)
    negative_context = any(p.search(lower) for p in _NEGATIVE_CONTEXT_PATTERNS)

    wtp_strong: List[str] = []
    wtp_medium: List[str] = []
    wtp_low: List[str] = []
    if not wtp_excluded:
        wtp_strong = _matched(lower, WTP_STRONG_KEYWORDS)
        wtp_medium = _matched(lower, WTP_MEDIUM_KEYWORDS)
        wtp_low = _matched(lower, WTP_LOW_KEYWORDS)
    wtp_count = len(wtp_strong) + len(wtp_medium) + len(wtp_low)

    if wtp_strong:
        wtp_confidence = "high"
    elif wtp_medium:
        wtp_confidence = "medium"
    elif wtp_low:
        wtp_confidence = "low"
    else:
        wtp_confidence = "none"

    raw = len(high) * 3 + len(medium) * 2 + len(low) + len(seeking) * 2 + wtp_count * 4
    score = min(10.0, raw * _engagement_multiplier(engagement))

    no_real_pain = not high and not medium
    if no_real_pain and low:
        score = min(4.0, score)
    if no_real_pain and seeking:
        score = min(5.0, score)

    if wtp_confidence == "high":
        score = min(10.0, score + 1)
    if high and seeking:
        score = min(10.0, score + 0.5)
    if negative_context:
        score *= 0.6
    if no_real_pain and low:
        score = max(0.0, score - 1.0)

    signals = list(dict.fromkeys(high + medium + low + seeking + wtp_strong + wtp_medium + wtp_low))

    return PainTextScore(
        score=round(score, 1),
        high_intensity=len(high),
        medium_intensity=len(medium),
        low_intensity=len(low),
        solution_seeking=len(seeking),
        willingness_to_pay=wtp_count,
        wtp_confidence=wtp_confidence,
        signals=signals,
    )


def _data_confidence(post_count: int) -> str:
    if post_count >= 200:
        return "high"
    if post_count >= 100:
        return "medium"
    if post_count >= 50:
        return "low"
    return "very_low"


def _weights_of(item: Any) -> Tuple[Signal, float, float]:
    if isinstance(item, TierAssignment):
        return item.signal, item.source_weight, item.wtp_source_weight
    return item, 1.0, 1.0


def summarize_pain(items: Sequence[Any]) -> PainScoreInput:
    """Aggregate per-signal pain scores into the Pain dimension.

    *items* are signals or tier assignments. Assignments carry source
    weights: ``source_weight`` weights each signal's pain score and
    ``wtp_source_weight`` discounts WTP from less reliable sources. Plain
    signals weigh 1.0. ``willingness_to_pay_count`` stays a raw count.
    """
    weighted = [_weights_of(i) for i in items]
    scored = [
        (calculate_pain_score(signal.text, signal.engagement), weight, wtp_weight)
        for signal, weight, wtp_weight in weighted
    ]
    pain = [(p, w, ww) for p, w, ww in scored if p.is_pain_signal]

    if not pain:
        return PainScoreInput(
            overall_score=0.0,
            confidence="very_low",
            total_signals=0,
            willingness_to_pay_count=0,
            weighted_willingness_to_pay=0.0,
            posts_analyzed=len(items),
        )

    total = len(pain)
    wtp_signals = sum(1 for p, _, _ in pain if p.willingness_to_pay > 0)
    weighted_wtp = sum(ww for p, _, ww in pain if p.willingness_to_pay > 0)
    high_count = sum(1 for p, _, _ in pain if p.high_intensity > 0)
    medium_count = sum(1 for p, _, _ in pain if p.medium_intensity > 0)
    low_count = sum(1 for p, _, _ in pain if p.high_intensity == 0 and p.medium_intensity == 0)
    seeking_count = sum(1 for p, _, _ in pain if p.solution_seeking > 0)

    weight_sum = sum(w for _, w, _ in pain)
    if weight_sum > 0:
        score = sum(p.score * w for p, w, _ in pain) / weight_sum
    else:
        score = sum(p.score for p, _, _ in pain) / total

    wtp_ratio = weighted_wtp / total
    high_ratio = high_count / total
    low_ratio = low_count / total
    solution_ratio = seeking_count / total

    if wtp_ratio > 0.05:
        score = min(10.0, score + 1)
    if high_ratio > 0.3:
        score = min(10.0, score + 0.5)
    if solution_ratio > 0.2:
        score = min(10.0, score + 0.5)
    if low_ratio > 0.6 and high_ratio < 0.1:
        score = max(0.0, score - 1.5)
    if high_count == 0 and medium_count == 0:
        score *= 0.5

    average_intensity = sum(_INTENSITY_WEIGHT[p.intensity] for p, _, _ in pain) / total

    return PainScoreInput(
        overall_score=round(max(0.0, min(10.0, score)), 1),
        confidence=_data_confidence(len(items)),
        total_signals=total,
        willingness_to_pay_count=wtp_signals,
        weighted_willingness_to_pay=round(weighted_wtp, 2),
        posts_analyzed=len(items),
        average_intensity=round(average_intensity, 2),
    )
