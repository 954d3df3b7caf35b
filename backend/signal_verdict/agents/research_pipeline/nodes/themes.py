"""
Theme & Language Node

Runs the deterministic theme analysis over CORE+STRONG signals, with
RELATED+ADJACENT as context for pivot themes. No CORE/STRONG signals
means the pain dimension was not measured, not that pain is zero.
"""

from typing import Any, Dict

from ....services.theme_extractor import build_theme_analysis
from ....services.tiered_filter import get_signals_for_analysis
from ....timing import StepTimer
from ..state import ResearchState


async def extract_themes(state: ResearchState) -> Dict[str, Any]:
    timer = StepTimer("themes")
    tiered = state.get("tiered")

    analysis = get_signals_for_analysis(tiered) if tiered else []
    if not analysis:
        return {
            "themes": None,
            "processing_errors": ["Themes: No CORE or STRONG signals to analyze"],
        }

    context = list(tiered.related) + list(tiered.adjacent)
    with timer.step("build_theme_analysis"):
        themes = build_theme_analysis(
            analysis,
            state.get("hypothesis", ""),
            context_signals=context,
            alternatives=state.get("alternatives") or [],
        )

    timer.summary()
    return {"themes": themes}
