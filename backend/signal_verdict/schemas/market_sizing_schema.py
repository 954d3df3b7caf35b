from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..constants import DEFAULT_GEOGRAPHY, DEFAULT_MSC_TARGET, DEFAULT_TARGET_PRICE

Achievability = Literal[
    "highly_achievable",
    "achievable",
    "challenging",
    "difficult",
    "unlikely",
]


class MarketSizingInput(BaseModel):
    """Inputs to the Fermi estimation. Only ``hypothesis`` is required."""

    hypothesis: str = Field(..., description="Business hypothesis to size")
    geography: Optional[str] = Field(None, description=f"Defaults to {DEFAULT_GEOGRAPHY!r}")
    target_price: Optional[float] = Field(None, gt=0.0, description="USD per month")
    msc_target: Optional[float] = Field(
        None,
        gt=0.0,
        description="Minimum Success Criteria: annual revenue goal in USD",
    )

    @property
    def resolved_geography(self) -> str:
        return (self.geography or "").strip() or DEFAULT_GEOGRAPHY

    @property
    def resolved_price(self) -> float:
        return self.target_price or DEFAULT_TARGET_PRICE

    @property
    def resolved_msc(self) -> float:
        return self.msc_target or DEFAULT_MSC_TARGET


class MarketEstimate(BaseModel):
    value: float = Field(..., ge=0.0)
    description: str = ""
    reasoning: str = ""


class MSCAnalysis(BaseModel):
    customers_needed: float = Field(..., ge=0.0)
    penetration_required: float = Field(
        ...,
        ge=0.0,
        description="Percent of SOM that must convert (0-100+, not a fraction)",
    )
    verdict: str = ""
    achievability: Achievability


class MarketSizingResult(BaseModel):
    """TAM → SAM → SOM funnel plus MSC achievability."""

    score: float = Field(..., ge=0.0, le=10.0)
    confidence: Literal["high", "medium", "low", "very_low"] = "low"
    tam: MarketEstimate
    sam: MarketEstimate
    som: MarketEstimate
    msc_analysis: MSCAnalysis
    suggestions: List[str] = Field(default_factory=list)

    @field_validator("suggestions", mode="before")
    @classmethod
    def suggestions_as_list(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v

    @model_validator(mode="after")
    def funnel_is_nested(self) -> "MarketSizingResult":
        if not (self.som.value <= self.sam.value <= self.tam.value):
            raise ValueError(
                f"market funnel must satisfy som <= sam <= tam "
                f"(got som={self.som.value}, sam={self.sam.value}, tam={self.tam.value})"
            )
        return self
