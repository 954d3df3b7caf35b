from .research import router as research_router

__all__ = ["research_router"]
