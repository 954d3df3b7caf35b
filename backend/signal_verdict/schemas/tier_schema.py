from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from .signal_schema import Signal

Tier = Literal["core", "strong", "related", "adjacent"]


class TierAssignment(BaseModel):
    """A signal that survived tiering, with its relevance score."""

    signal: Signal
    score: float = Field(..., ge=0.0, le=1.0, description="Raw relevance score")
    tier: Tier
    source_weight: float = Field(1.0, ge=0.0, le=1.0)
    wtp_source_weight: float = Field(1.0, ge=0.0, le=1.0)

    class Config:
        frozen = True


class TieredMetrics(BaseModel):
    """Per-run tier counts.

    ``total`` counts every signal the scorer returned a number for, kept or
    discarded. Signals whose scorer raised are only counted in ``failed``.
    """

    core: int = Field(0, ge=0)
    strong: int = Field(0, ge=0)
    related: int = Field(0, ge=0)
    adjacent: int = Field(0, ge=0)
    discarded: int = Field(0, ge=0, description="Scored below the ADJACENT floor")
    failed: int = Field(0, ge=0, description="Scorer raised for this signal")
    total: int = Field(0, ge=0)
    processing_time_ms: float = Field(0.0, ge=0.0)
    by_source: Dict[str, int] = Field(default_factory=dict)

    @model_validator(mode="after")
    def tiers_within_total(self) -> "TieredMetrics":
        if self.core + self.strong + self.related + self.adjacent > self.total:
            raise ValueError("tier counts exceed total")
        return self

    @property
    def analysis_signals(self) -> int:
        return self.core + self.strong

    @property
    def pivot_potential(self) -> int:
        return self.adjacent


class TieredSignals(BaseModel):
    core: List[TierAssignment] = Field(default_factory=list)
    strong: List[TierAssignment] = Field(default_factory=list)
    related: List[TierAssignment] = Field(default_factory=list)
    adjacent: List[TierAssignment] = Field(default_factory=list)
    metrics: TieredMetrics = Field(default_factory=TieredMetrics)


# ── Coverage preview ────────────────────────────────────────────────────


class SamplePreview(BaseModel):
    title: Optional[str] = None
    body_preview: str = ""
    community: str = ""
    filter_reason: Optional[str] = None


class FilteredTopic(BaseModel):
    topic: str
    count: int


class TierBreakdown(BaseModel):
    core: int = 0
    strong: int = 0
    related: int = 0
    adjacent: int = 0
    noise: int = 0


class SampleQualityReport(BaseModel):
    """Cheap relevance preview run on a small random sample before a full run."""

    predicted_relevance: int = Field(..., ge=0, le=100, description="% of sample in CORE+STRONG")
    predicted_confidence: Literal["very_low", "low", "medium", "high"]
    quality_warning: Literal["none", "caution", "strong_warning"]
    sample_size: int = Field(..., ge=0)
    sample_relevant: List[SamplePreview] = Field(default_factory=list)
    sample_filtered: List[SamplePreview] = Field(default_factory=list)
    filtered_topics: List[FilteredTopic] = Field(default_factory=list)
    suggestion: Optional[str] = None
    tier_breakdown: TierBreakdown = Field(default_factory=TierBreakdown)
