from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from .market_sizing_schema import Achievability

VerdictLevel = Literal["strong", "mixed", "weak", "none"]
Severity = Literal["success", "warning", "error"]
DimensionStatus = Literal["strong", "adequate", "needs_work", "critical"]
Confidence3 = Literal["low", "medium", "high"]


class VerdictColors(BaseModel):
    text: str
    bg: str
    border: str
    gradient: str


class VerdictMessage(BaseModel):
    """Human-facing rendering of a verdict score.

    A pure function of ``(score, has_critical_concerns)``; ``level`` always
    follows the numeric bucket even when the label is overridden.
    """

    level: VerdictLevel
    label: str
    short_message: str
    long_message: str
    severity: Severity
    action: str
    colors: VerdictColors

    class Config:
        frozen = True


# ── Aggregator inputs ───────────────────────────────────────────────────


class CompetitionScoreInput(BaseModel):
    score: float = Field(..., ge=0.0, le=10.0)
    confidence: Confidence3 = "low"
    competitor_count: int = Field(0, ge=0)
    threats: List[str] = Field(default_factory=list)
    has_free_alternatives: bool = False
    market_maturity: Optional[Literal["emerging", "growing", "mature", "declining"]] = None


class MarketScoreInput(BaseModel):
    score: float = Field(..., ge=0.0, le=10.0)
    confidence: Literal["very_low", "low", "medium", "high"] = "low"
    penetration_required: float = Field(..., ge=0.0, description="percent")
    achievability: Achievability


class TimingScoreInput(BaseModel):
    score: float = Field(..., ge=0.0, le=10.0)
    confidence: Confidence3 = "low"
    trend: Literal["rising", "stable", "falling"] = "stable"
    tailwinds_count: int = Field(0, ge=0)
    headwinds_count: int = Field(0, ge=0)
    timing_window: str = ""


# ── Aggregator output ───────────────────────────────────────────────────


class DimensionScore(BaseModel):
    name: str
    key: Literal["pain", "market", "competition", "timing"]
    score: float = Field(..., ge=0.0, le=10.0)
    weight: float = Field(..., ge=0.0, le=1.0, description="Normalized over available dimensions")
    status: DimensionStatus
    confidence: Confidence3
    summary: Optional[str] = None


class RedFlag(BaseModel):
    severity: Literal["HIGH", "MEDIUM", "LOW"]
    title: str
    message: str


class SampleSizeIndicator(BaseModel):
    posts_analyzed: int
    signals_found: int
    label: Literal["high_confidence", "moderate_confidence", "low_confidence", "very_limited"]
    description: str


class ScoreRange(BaseModel):
    min: float
    max: float


class ViabilityVerdict(BaseModel):
    overall_score: float = Field(..., ge=0.0, le=10.0, description="Calibrated, after caps")
    raw_score: float = Field(..., ge=0.0, le=10.0, description="Weighted average before calibration")
    verdict: VerdictLevel
    verdict_label: str
    verdict_description: str
    calibrated_verdict_label: str
    score_range: Optional[ScoreRange] = None
    dimensions: List[DimensionScore] = Field(default_factory=list)
    weakest_dimension: Optional[DimensionScore] = None
    missing_dimensions: List[str] = Field(default_factory=list)
    dealbreakers: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    confidence: Confidence3 = "low"
    is_complete: bool = False
    available_dimensions: int = 0
    total_dimensions: int = 4
    data_sufficiency: Literal["insufficient", "limited", "adequate", "strong"] = "insufficient"
    data_sufficiency_reason: str = ""
    sample_size: Optional[SampleSizeIndicator] = None
    red_flags: List[RedFlag] = Field(default_factory=list)
    has_critical_concerns: bool = False
    message: VerdictMessage
