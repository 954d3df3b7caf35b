"""
Market Sizing Node

One Fermi-estimation completion per run. Any failure leaves the market
dimension missing and is reported in ``processing_errors``; no placeholder
numbers are substituted.
"""

from typing import Any, Dict

from ....services.market_sizing import MarketSizingParseError, calculate_market_size
from ....services.openai_client import CompletionError
from ....timing import async_timer, log_timing
from ..state import ResearchState


async def size_market(state: ResearchState) -> Dict[str, Any]:
    data = state.get("market_input")
    if data is None:
        return {"market_sizing": None}

    try:
        async with async_timer("market"):
            result = await calculate_market_size(data, client=state.get("completion_client"))
    except (CompletionError, MarketSizingParseError, EnvironmentError) as e:
        log_timing("market", f"Error: {e}")
        return {"market_sizing": None, "processing_errors": [f"Market: {e}"]}

    return {"market_sizing": result}
