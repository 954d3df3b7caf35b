"""Market Sizing Estimator — Fermi TAM → SAM → SOM via one completion call.

Part of the verdict scoring system (25% weight in the full formula).

Rules
-----
- The prompt is fully deterministic for a given input and spells out the
  penetration → score rubric and the exact JSON schema, so any compliant
  completion backend produces comparable output.
- The first balanced JSON object in the response is used; surrounding
  prose is ignored.
- No silent defaults: a non-text answer, missing JSON or missing keys
  raise ``MarketSizingParseError``. Substituting zeros would corrupt the
  penetration ratio.
- The model sizes the funnel; customers needed, penetration (a PERCENT of
  SOM), achievability and score are recomputed from price, MSC and SOM
- Usage is reported to the token tracker; a tracker failure is logged and
  never raised.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..schemas.market_sizing_schema import MarketSizingInput, MarketSizingResult
from ..timing import StepTimer
from .openai_client import (
    CompletionClient,
    CompletionResponse,
    extract_json_object,
    missing_required_keys,
)
from .token_tracker import TokenTracker, get_current_tracker

logger = logging.getLogger(__name__)

_MAX_COMPLETION_TOKENS = 1500

REQUIRED_KEYS: List[str] = [
    "tam",
    "sam",
    "som",
    "customers_needed",
    "penetration_required",
    "market_score",
    "achievability",
    "verdict",
    "suggestions",
    "confidence",
]


class MarketSizingInputError(ValueError):
    """Rejected before any external call (e.g. blank hypothesis)."""


class MarketSizingParseError(RuntimeError):
    """The completion did not contain a usable market sizing object."""


# ---------------------------------------------------------------------------
# Rubric
# ---------------------------------------------------------------------------
def penetration_to_score(penetration_pct: float) -> float:
    """Score for a required penetration of SOM, in percent."""
    if penetration_pct < 5:
        return 9.0
    if penetration_pct < 10:
        return 7.5
    if penetration_pct < 25:
        return 5.5
    if penetration_pct <= 50:
        return 3.5
    return 1.5


def penetration_to_achievability(penetration_pct: float) -> str:
    if penetration_pct < 5:
        return "highly_achievable"
    if penetration_pct < 10:
        return "achievable"
    if penetration_pct < 25:
        return "challenging"
    if penetration_pct <= 50:
        return "difficult"
    return "unlikely"


def customers_needed(monthly_price: float, msc_target: float) -> float:
    """Paying customers required to reach *msc_target* ARR."""
    return msc_target / (monthly_price * 12)


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------
_SYSTEM_PROMPT = """You are a market sizing expert performing Fermi estimation.

You MUST respond with ONLY a valid JSON object. No markdown, no explanations,
no comments, no trailing text."""


def _money(value: float) -> str:
    return f"{value:,.0f}" if float(value).is_integer() else f"{value:,.2f}"


def build_market_sizing_prompt(data: MarketSizingInput) -> str:
    """User prompt for the Fermi estimation. Same input → same prompt."""
    price = data.resolved_price
    msc = data.resolved_msc

    return f"""Perform a Fermi estimation for this business hypothesis.

HYPOTHESIS: "{data.hypothesis.strip()}"
TARGET GEOGRAPHY: {data.resolved_geography}
ASSUMED PRICE: ${_money(price)}/month (${_money(price * 12)}/year)
REVENUE GOAL (MSC): ${_money(msc)} ARR

Perform a bottom-up Fermi estimation:

1. TAM (Total Addressable Market)
   - Start with the total population or market
   - Apply relevant filters to get to everyone who COULD use this

2. SAM (Serviceable Available Market)
   - Filter TAM to those you can actually reach
   - Consider geography, language, channel access

3. SOM (Serviceable Obtainable Market)
   - Realistically, who can you capture in 2-3 years?
   - Consider competition, awareness, adoption rates

4. MSC Analysis
   - Customers needed = MSC / (price × 12)
   - Penetration required = customers needed / SOM
   - Is this achievable?

All TAM/SAM/SOM values are counts of potential customers, and
SOM <= SAM <= TAM.

SCORING GUIDE for market_score (0-10):
- Penetration < 5% needed → 9/10 (highly achievable)
- Penetration 5-10% needed → 7.5/10 (achievable)
- Penetration 10-25% needed → 5.5/10 (challenging)
- Penetration 25-50% needed → 3.5/10 (difficult)
- Penetration > 50% needed → 1.5/10 (unlikely viable)

Respond with ONLY valid JSON in this exact format:
{{
  "tam": {{
    "value": <number>,
    "description": "<one line description>",
    "reasoning": "<2-3 sentence explanation of how you got here>"
  }},
  "sam": {{
    "value": <number>,
    "description": "<one line description>",
    "reasoning": "<2-3 sentence explanation>"
  }},
  "som": {{
    "value": <number>,
    "description": "<one line description>",
    "reasoning": "<2-3 sentence explanation>"
  }},
  "customers_needed": <number>,
  "penetration_required": <decimal, e.g. 0.15 for 15%>,
  "market_score": <number 0-10>,
  "achievability": "<highly_achievable|achievable|challenging|difficult|unlikely>",
  "verdict": "<one sentence assessment>",
  "suggestions": ["<suggestion 1>", "<suggestion 2>"],
  "confidence": "<high|medium|low>"
}}"""


# ---------------------------------------------------------------------------
# Response handling
# ---------------------------------------------------------------------------
def _report_usage(response: CompletionResponse, tracker: Optional[TokenTracker]) -> None:
    if tracker is None or response.usage is None:
        return
    try:
        tracker.track(response.usage.input_tokens, response.usage.output_tokens, response.model)
    except Exception:
        logger.warning("Token usage tracking failed for %s", response.model, exc_info=True)


def _log_disagreement(parsed: Dict[str, Any], needed: float, penetration_pct: float) -> None:
    try:
        model_needed = float(parsed["customers_needed"])
        model_pct = float(parsed["penetration_required"]) * 100
    except (TypeError, ValueError):
        logger.warning("Market sizing: non-numeric MSC figures from model, using computed values")
        return
    if not math.isclose(model_needed, needed, rel_tol=0.01) or not math.isclose(
        model_pct, penetration_pct, rel_tol=0.01
    ):
        logger.warning(
            "Market sizing: model MSC figures (customers=%.2f, penetration=%.2f%%) "
            "replaced by computed (customers=%.2f, penetration=%.2f%%)",
            model_needed,
            model_pct,
            needed,
            penetration_pct,
        )


def parse_market_sizing(parsed: Dict[str, Any], data: MarketSizingInput) -> MarketSizingResult:
    """Map the model's snake_case JSON onto ``MarketSizingResult``.

    The model supplies the TAM/SAM/SOM funnel and the narrative. The MSC
    arithmetic is recomputed from *data* and ``som.value``: customers needed,
    penetration, achievability and score all follow the rubric above, and
    the model's own figures are only compared and logged.
    """
    missing = missing_required_keys(parsed, REQUIRED_KEYS)
    if missing:
        raise MarketSizingParseError(f"Market sizing response missing required keys: {missing}")

    try:
        som_value = float(parsed["som"]["value"])
    except (KeyError, TypeError, ValueError) as exc:
        raise MarketSizingParseError(f"Invalid SOM in market sizing response: {exc}") from exc
    if som_value <= 0:
        raise MarketSizingParseError(f"SOM must be positive to compute penetration (got {som_value})")

    needed = customers_needed(data.resolved_price, data.resolved_msc)
    penetration_pct = needed / som_value * 100
    _log_disagreement(parsed, needed, penetration_pct)

    try:
        return MarketSizingResult(
            score=penetration_to_score(penetration_pct),
            confidence=parsed["confidence"],
            tam=parsed["tam"],
            sam=parsed["sam"],
            som=parsed["som"],
            msc_analysis={
                "customers_needed": needed,
                "penetration_required": penetration_pct,
                "verdict": parsed["verdict"],
                "achievability": penetration_to_achievability(penetration_pct),
            },
            suggestions=parsed["suggestions"],
        )
    except (ValidationError, TypeError, ValueError) as exc:
        raise MarketSizingParseError(f"Invalid market sizing response: {exc}") from exc


async def calculate_market_size(
    data: MarketSizingInput,
    client: Optional[CompletionClient] = None,
    tracker: Optional[TokenTracker] = None,
) -> MarketSizingResult:
    """Run the Fermi estimation for one hypothesis.

    Raises
    ------
    MarketSizingInputError
        Blank hypothesis (no external call is made).
    CompletionError
        Transport failure after retries.
    MarketSizingParseError
        Non-text answer, no JSON object, missing keys or invalid values.
    """
    if not data.hypothesis or not data.hypothesis.strip():
        raise MarketSizingInputError("hypothesis must not be blank")

    timer = StepTimer("market_sizing")
    client = client or CompletionClient()
    tracker = tracker or get_current_tracker()

    messages = [
        {"role": "system", "content": _SYSTEM_PROMPT},
        {"role": "user", "content": build_market_sizing_prompt(data)},
    ]

    async with timer.async_step("completion"):
        response = await client.complete(messages, max_completion_tokens=_MAX_COMPLETION_TOKENS)

    _report_usage(response, tracker)

    if response.content_type != "text" or response.text is None:
        raise MarketSizingParseError(
            f"Unexpected response type from completion service: {response.content_type}"
        )

    try:
        parsed = extract_json_object(response.text)
    except ValueError as exc:
        logger.warning("Market sizing raw output (first 300 chars): %s", response.text[:300])
        raise MarketSizingParseError(f"Could not parse market sizing response: {exc}") from exc

    result = parse_market_sizing(parsed, data)
    timer.summary()

    logger.info(
        "Market sizing: score=%.1f penetration=%.2f%% (%s)",
        result.score,
        result.msc_analysis.penetration_required,
        result.msc_analysis.achievability,
    )
    return result
