"""Verdict messages — single source of truth for user-facing labels.

Every label, message and colour shown for a verdict comes from here; no
caller derives its own wording from a score.

Thresholds (``DEFAULT_SCORING_CONFIG.verdict``):
  - strong: >= 7.5
  - mixed:  5.0 – 7.5
  - weak:   4.0 – 5.0
  - none:   < 4.0

Critical concerns (dealbreakers or HIGH red flags) swap the message for
"Review Required" when the score would otherwise read as strong or mixed,
but never move the score into another ``level`` bucket.
"""

from __future__ import annotations

from typing import Dict, NamedTuple, Optional, Sequence, Tuple

from ..constants import DEFAULT_SCORING_CONFIG, VerdictThresholds
from ..schemas.verdict_schema import VerdictColors, VerdictLevel, VerdictMessage


def _palette(color: str) -> VerdictColors:
    return VerdictColors(
        text=f"text-{color}-700 dark:text-{color}-300",
        bg=f"bg-{color}-100 dark:bg-{color}-900/30",
        border=f"border-{color}-200 dark:border-{color}-800",
        gradient=f"from-{color}-500/10 via-{color}-500/5 to-transparent",
    )


class _MessageSpec(NamedTuple):
    label: str
    short_message: str
    long_message: str
    severity: str
    action: str
    color: str


# Keyed by level; get_verdict_level picks the key from the thresholds.
_MESSAGE_TABLE: Dict[str, _MessageSpec] = {
    "strong": _MessageSpec(
        "Strong Signal",
        "Strong opportunity detected",
        "Strong pain signals with evidence of willingness to pay. This problem is worth solving.",
        "success",
        "Proceed to customer interviews",
        "emerald",
    ),
    "mixed": _MessageSpec(
        "Mixed Signals",
        "Mixed signals detected",
        "Some pain signals found but concerns exist. Investigate further before committing resources.",
        "warning",
        "Validate assumptions first",
        "amber",
    ),
    "weak": _MessageSpec(
        "Weak Signal",
        "Weak signals detected",
        "Limited evidence of pain or willingness to pay. Significant pivots may be needed.",
        "warning",
        "Consider pivoting",
        "orange",
    ),
    "none": _MessageSpec(
        "No Signal",
        "No viable signal detected",
        "No viable business signal detected. Pivot to a different problem or target audience.",
        "error",
        "Pivot to a different problem",
        "red",
    ),
}

_REVIEW_REQUIRED = _MessageSpec(
    "Review Required",
    "Critical concerns detected",
    "There are critical concerns that need to be addressed before proceeding.",
    "warning",
    "Review concerns before proceeding",
    "amber",
)

# Levels at or above the "mixed" threshold.
_OVERRIDABLE_LEVELS = frozenset({"strong", "mixed"})

LEVEL_ORDER: Tuple[str, ...] = ("none", "weak", "mixed", "strong")


def get_verdict_level(
    score: float,
    thresholds: VerdictThresholds = DEFAULT_SCORING_CONFIG.verdict,
) -> VerdictLevel:
    if score >= thresholds.strong:
        return "strong"
    if score >= thresholds.mixed:
        return "mixed"
    if score >= thresholds.weak:
        return "weak"
    return "none"


def message_for_level(level: VerdictLevel, has_critical_concerns: bool = False) -> VerdictMessage:
    spec = _MESSAGE_TABLE[level]
    if has_critical_concerns and level in _OVERRIDABLE_LEVELS:
        spec = _REVIEW_REQUIRED
    return VerdictMessage(
        level=level,
        label=spec.label,
        short_message=spec.short_message,
        long_message=spec.long_message,
        severity=spec.severity,
        action=spec.action,
        colors=_palette(spec.color),
    )


def score_to_message(
    score: float,
    has_critical_concerns: bool = False,
    thresholds: VerdictThresholds = DEFAULT_SCORING_CONFIG.verdict,
) -> VerdictMessage:
    """Pure ``(score, has_critical_concerns) -> VerdictMessage``."""
    return message_for_level(get_verdict_level(score, thresholds), has_critical_concerns)


# ---------------------------------------------------------------------------
# Trend helpers
# ---------------------------------------------------------------------------
def get_trend_badge(yoy_growth: float) -> Dict[str, str]:
    """Badge for year-over-year growth in percent. 0% reads as "Flat"."""
    if yoy_growth > 20:
        return {"label": "Growing", "color": "text-emerald-600 bg-emerald-100 dark:bg-emerald-900/30"}
    if yoy_growth > 5:
        return {"label": "Rising", "color": "text-green-600 bg-green-100 dark:bg-green-900/30"}
    if yoy_growth > -5:
        return {"label": "Flat", "color": "text-amber-600 bg-amber-100 dark:bg-amber-900/30"}
    if yoy_growth > -20:
        return {"label": "Declining", "color": "text-orange-600 bg-orange-100 dark:bg-orange-900/30"}
    return {"label": "Falling", "color": "text-red-600 bg-red-100 dark:bg-red-900/30"}


def aggregate_trend_change(keyword_changes: Sequence[Tuple[str, float]]) -> Optional[float]:
    """Aggregate change across keywords, in percent.

    Known approximation: the aggregate is the change of the FIRST (primary)
    keyword, not a volume-weighted average of all keywords. Kept so stored
    and displayed aggregates stay comparable; ``None`` when there are no
    keywords.
    """
    if not keyword_changes:
        return None
    return float(keyword_changes[0][1])
