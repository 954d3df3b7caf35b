import time
import uuid
from typing import Iterable, Optional

from langgraph.graph import END, START, StateGraph

from ...schemas.market_sizing_schema import MarketSizingInput
from ...schemas.signal_schema import Signal
from ...schemas.verdict_schema import CompetitionScoreInput, TimingScoreInput
from ...services.token_tracker import TokenTracker, use_tracker
from ...timing import elapsed_ms, log_timing
from .nodes import extract_themes, gate_signals, judge_verdict, size_market, tier_signals
from .state import ResearchState


def create_research_graph() -> StateGraph:
    """
    Create the research pipeline graph.

    Structure:
    START -> gate_signals
          -> tier_signals
          -> [extract_themes, size_market] (parallel)
          -> judge_verdict
          -> END
    """
    log_timing("graph", "Creating research graph")

    graph = StateGraph(ResearchState)

    graph.add_node("gate_signals", gate_signals)
    graph.add_node("tier_signals", tier_signals)
    graph.add_node("extract_themes", extract_themes)
    graph.add_node("size_market", size_market)
    graph.add_node("judge_verdict", judge_verdict)

    graph.add_edge(START, "gate_signals")
    graph.add_edge("gate_signals", "tier_signals")

    # Market sizing does not depend on the tiers, but waits for them so a
    # bad subject name fails the run before any paid call.
    graph.add_edge("tier_signals", "extract_themes")
    graph.add_edge("tier_signals", "size_market")

    graph.add_edge("extract_themes", "judge_verdict")
    graph.add_edge("size_market", "judge_verdict")

    graph.add_edge("judge_verdict", END)

    return graph


research_graph = create_research_graph().compile()


async def run_research(
    hypothesis: str,
    signals: Iterable[Signal],
    *,
    job_id: Optional[str] = None,
    subject_name: Optional[str] = None,
    alternatives: Iterable[str] = (),
    market_input: Optional[MarketSizingInput] = None,
    competition: Optional[CompetitionScoreInput] = None,
    timing: Optional[TimingScoreInput] = None,
    scorer=None,
    completion_client=None,
) -> ResearchState:
    """Run one hypothesis through the pipeline and return the final state."""
    initial_state: ResearchState = {
        "job_id": str(job_id or uuid.uuid4()),
        "hypothesis": hypothesis,
        "subject_name": subject_name,
        "signals": list(signals),
        "alternatives": list(alternatives),
        "market_input": market_input,
        "competition": competition,
        "timing": timing,
        "scorer": scorer,
        "completion_client": completion_client,
        "gated_signals": [],
        "gate_stats": None,
        "tiered": None,
        "themes": None,
        "market_sizing": None,
        "verdict": None,
        "processing_errors": [],
    }

    start = time.perf_counter()
    with use_tracker(TokenTracker()) as tracker:
        result = await research_graph.ainvoke(initial_state)
    log_timing("research_graph", "COMPLETE", elapsed_ms(start))

    result = dict(result)
    result["token_usage"] = tracker.usage_summary()
    return result
