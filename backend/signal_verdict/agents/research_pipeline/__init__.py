from .graph import create_research_graph, research_graph, run_research
from .state import ResearchState

__all__ = ["create_research_graph", "research_graph", "run_research", "ResearchState"]
