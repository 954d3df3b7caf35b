import operator
from typing import Annotated, Any, Optional, TypedDict

from ...schemas.market_sizing_schema import MarketSizingInput, MarketSizingResult
from ...schemas.signal_schema import Signal
from ...schemas.theme_schema import ThemeAnalysis
from ...schemas.tier_schema import TieredSignals
from ...schemas.verdict_schema import CompetitionScoreInput, TimingScoreInput, ViabilityVerdict


class ResearchState(TypedDict, total=False):
    # Inputs
    job_id: str
    hypothesis: str
    subject_name: Optional[str]
    signals: list[Signal]
    alternatives: list[str]
    market_input: Optional[MarketSizingInput]  # None skips market sizing
    competition: Optional[CompetitionScoreInput]
    timing: Optional[TimingScoreInput]

    # Injected collaborators (RelevanceScorer / CompletionClient)
    scorer: Any
    completion_client: Any

    # Intermediate results
    gated_signals: list[Signal]
    gate_stats: Optional[dict]
    tiered: Optional[TieredSignals]
    themes: Optional[ThemeAnalysis]
    market_sizing: Optional[MarketSizingResult]

    # Final output (judge node)
    verdict: Optional[ViabilityVerdict]
    token_usage: Optional[dict]  # set by run_research after the graph finishes

    # Parallel branches append; the reducer concatenates
    processing_errors: Annotated[list[str], operator.add]
