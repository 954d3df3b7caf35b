# Research pipeline nodes
from .gate import gate_signals
from .tier import tier_signals
from .themes import extract_themes
from .market import size_market
from .judge import judge_verdict

__all__ = [
    "gate_signals",
    "tier_signals",
    "extract_themes",
    "size_market",
    "judge_verdict",
]
