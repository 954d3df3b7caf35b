from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from .market_sizing_schema import MarketSizingResult
from .signal_schema import Signal
from .theme_schema import ThemeAnalysis
from .tier_schema import TieredMetrics
from .verdict_schema import (
    CompetitionScoreInput,
    TimingScoreInput,
    VerdictMessage,
    ViabilityVerdict,
)


class ResearchRequest(BaseModel):
    """Request body for ``POST /research/verdict``."""

    job_id: Optional[UUID] = Field(None, description="Re-running an existing job overwrites its result")
    hypothesis: str = Field(..., min_length=1, max_length=2000)
    subject_name: Optional[str] = Field(
        None,
        description="When set, signals not mentioning this app are dropped before tiering",
    )
    signals: List[Signal] = Field(default_factory=list)
    alternatives: List[str] = Field(default_factory=list)

    geography: Optional[str] = None
    target_price: Optional[float] = Field(None, gt=0.0)
    msc_target: Optional[float] = Field(None, gt=0.0)
    run_market_sizing: bool = True

    competition: Optional[CompetitionScoreInput] = None
    timing: Optional[TimingScoreInput] = None

    class Config:
        json_schema_extra = {
            "example": {
                "hypothesis": "online scheduling for therapists",
                "signals": [
                    {
                        "source": "reddit",
                        "community": "therapists",
                        "title": "Scheduling is a nightmare",
                        "body": "I'd pay for something that handles reschedules.",
                        "engagement": 42,
                    }
                ],
            }
        }

    @field_validator("hypothesis")
    @classmethod
    def hypothesis_not_blank(cls, v: str) -> str:
        stripped = v.strip()
        if not stripped:
            raise ValueError("hypothesis must not be blank")
        return stripped


class ResearchResponse(BaseModel):
    """Stored verdict for one job."""

    job_id: UUID
    module_name: str
    status: str
    score: Optional[float] = None
    level: Optional[str] = None
    message: Optional[VerdictMessage] = None
    verdict: Optional[ViabilityVerdict] = None
    tier_metrics: Optional[TieredMetrics] = None
    market_sizing: Optional[MarketSizingResult] = None
    themes: Optional[ThemeAnalysis] = None
    gate_stats: Optional[Dict[str, Any]] = None
    is_complete: bool = False
    errors: List[str] = Field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SampleQualityRequest(BaseModel):
    """Request body for ``POST /research/sample-quality``."""

    hypothesis: str = Field(..., min_length=1, max_length=2000)
    signals: List[Signal] = Field(default_factory=list)
    seed: Optional[int] = Field(None, description="Fix the random sample for reproducible previews")
