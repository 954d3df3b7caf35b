from typing import List, Literal, Optional

from pydantic import BaseModel, Field

Intensity = Literal["low", "medium", "high"]
Confidence = Literal["very_low", "low", "medium", "high"]


class Theme(BaseModel):
    """A recurring topic among the relevant signals.

    ``tier="core"`` themes describe the hypothesis itself; ``contextual``
    themes are neighbouring problems surfaced as pivot candidates.
    """

    name: str
    description: str = ""
    frequency: int = Field(0, ge=0)
    intensity: Intensity = "medium"
    tier: Literal["core", "contextual"] = "core"
    sources: List[str] = Field(default_factory=list)
    examples: List[str] = Field(default_factory=list)


class KeyQuote(BaseModel):
    quote: str
    source: str
    pain_score: float = Field(0.0, ge=0.0, le=10.0)


class AdjacentOpportunity(BaseModel):
    name: str
    description: str = ""
    signal_count: int = Field(0, ge=0)
    sources: List[str] = Field(default_factory=list)
    representative_quote: Optional[str] = None
    quote_source: Optional[str] = None
    intensity: Intensity = "medium"


class CustomerLanguageBank(BaseModel):
    problem_phrases: List[str] = Field(default_factory=list)
    emotional_language: List[str] = Field(default_factory=list)
    tools_mentioned: List[str] = Field(default_factory=list)


class PainScoreInput(BaseModel):
    """Pain dimension handed to the verdict aggregator."""

    overall_score: float = Field(..., ge=0.0, le=10.0)
    confidence: Confidence = "very_low"
    total_signals: int = Field(0, ge=0, description="Signals carrying any pain keyword")
    willingness_to_pay_count: int = Field(0, ge=0)
    weighted_willingness_to_pay: float = Field(
        0.0,
        ge=0.0,
        description="WTP signals weighted by source reliability",
    )
    posts_analyzed: Optional[int] = Field(None, ge=0)
    average_intensity: Optional[float] = Field(
        None,
        ge=0.0,
        le=1.0,
        description="high=1.0, medium=0.6, low=0.3 averaged over pain signals",
    )


class ThemeAnalysis(BaseModel):
    themes: List[Theme] = Field(default_factory=list)
    key_quotes: List[KeyQuote] = Field(default_factory=list)
    alternatives: List[str] = Field(default_factory=list)
    customer_language: CustomerLanguageBank = Field(default_factory=CustomerLanguageBank)
    adjacent_opportunities: List[AdjacentOpportunity] = Field(default_factory=list)
    pain: Optional[PainScoreInput] = None
