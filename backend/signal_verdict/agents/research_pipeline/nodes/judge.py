"""
Judge Node (Deterministic)

Feeds whichever dimensions are available into the viability calculator.
No LLM calls, no external API calls.
"""

from typing import Any, Dict

from ....services.viability_calculator import calculate_viability, market_input_from_sizing
from ....timing import StepTimer
from ..state import ResearchState


async def judge_verdict(state: ResearchState) -> Dict[str, Any]:
    timer = StepTimer("judge")

    themes = state.get("themes")
    market_sizing = state.get("market_sizing")

    with timer.step("calculate_viability"):
        verdict = calculate_viability(
            pain=themes.pain if themes else None,
            competition=state.get("competition"),
            market=market_input_from_sizing(market_sizing) if market_sizing else None,
            timing=state.get("timing"),
        )

    timer.summary()
    return {"verdict": verdict}
