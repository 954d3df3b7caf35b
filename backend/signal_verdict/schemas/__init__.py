# Schemas package
from .signal_schema import GateResult, GateStats, MultiGateResult, NamedGateResult, Signal
from .tier_schema import (
    SampleQualityReport,
    TierAssignment,
    TieredMetrics,
    TieredSignals,
)
from .theme_schema import (
    AdjacentOpportunity,
    CustomerLanguageBank,
    KeyQuote,
    PainScoreInput,
    Theme,
    ThemeAnalysis,
)
from .market_sizing_schema import (
    MarketEstimate,
    MarketSizingInput,
    MarketSizingResult,
    MSCAnalysis,
)
from .verdict_schema import (
    CompetitionScoreInput,
    DimensionScore,
    MarketScoreInput,
    RedFlag,
    TimingScoreInput,
    VerdictColors,
    VerdictMessage,
    ViabilityVerdict,
)
from .research_schema import ResearchRequest, ResearchResponse, SampleQualityRequest

__all__ = [
    "Signal",
    "GateStats",
    "GateResult",
    "NamedGateResult",
    "MultiGateResult",
    "TierAssignment",
    "TieredMetrics",
    "TieredSignals",
    "SampleQualityReport",
    "Theme",
    "KeyQuote",
    "AdjacentOpportunity",
    "CustomerLanguageBank",
    "PainScoreInput",
    "ThemeAnalysis",
    "MarketSizingInput",
    "MarketEstimate",
    "MSCAnalysis",
    "MarketSizingResult",
    "VerdictColors",
    "VerdictMessage",
    "CompetitionScoreInput",
    "MarketScoreInput",
    "TimingScoreInput",
    "DimensionScore",
    "RedFlag",
    "ViabilityVerdict",
    "ResearchRequest",
    "ResearchResponse",
    "SampleQualityRequest",
]
