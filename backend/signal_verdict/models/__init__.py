from .research_result import GUID, ResearchResult

__all__ = ["GUID", "ResearchResult"]
