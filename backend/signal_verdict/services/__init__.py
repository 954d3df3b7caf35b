from .app_name_gate import apply_app_name_gate, apply_app_name_gate_multiple
from .tiered_filter import filter_signals_tiered, tiered_sample_quality_check
from .theme_extractor import build_theme_analysis
from .pain_scorer import calculate_pain_score, summarize_pain
from .market_sizing import calculate_market_size
from .viability_calculator import calculate_viability
from .verdict_messages import score_to_message
from .result_store import load_research_result, save_research_result

__all__ = [
    "apply_app_name_gate",
    "apply_app_name_gate_multiple",
    "filter_signals_tiered",
    "tiered_sample_quality_check",
    "build_theme_analysis",
    "calculate_pain_score",
    "summarize_pain",
    "calculate_market_size",
    "calculate_viability",
    "score_to_message",
    "load_research_result",
    "save_research_result",
]
