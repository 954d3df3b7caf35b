"""Market sizing tests — rubric, prompt, JSON extraction, parse errors, usage tracking."""

import asyncio
import json
import os
import sys
from unittest.mock import MagicMock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest

from signal_verdict.schemas.market_sizing_schema import MarketSizingInput
from signal_verdict.services.market_sizing import (
    MarketSizingInputError,
    MarketSizingParseError,
    build_market_sizing_prompt,
    calculate_market_size,
    customers_needed,
    parse_market_sizing,
    penetration_to_achievability,
    penetration_to_score,
)
from signal_verdict.services.openai_client import (
    CompletionResponse,
    CompletionUsage,
    extract_json_object,
)
from signal_verdict.services.token_tracker import TokenTracker, use_tracker


DEFAULT_INPUT = MarketSizingInput(hypothesis="scheduling for therapists")


def _payload(**overrides):
    data = {
        "tam": {"value": 2_000_000, "description": "All therapists", "reasoning": "r"},
        "sam": {"value": 400_000, "description": "English-speaking", "reasoning": "r"},
        "som": {"value": 50_000, "description": "Reachable in 3 years", "reasoning": "r"},
        "customers_needed": 2873.56,
        "penetration_required": 0.0575,
        "market_score": 7.5,
        "achievability": "achievable",
        "verdict": "Reachable with focused distribution.",
        "suggestions": ["Start with group practices"],
        "confidence": "medium",
    }
    data.update(overrides)
    return data


class FakeCompletionClient:
    """Records calls and returns canned responses."""

    def __init__(self, text, usage=CompletionUsage(1200, 400), content_type="text"):
        self.text = text
        self.usage = usage
        self.content_type = content_type
        self.calls = []

    async def complete(self, messages, *, max_completion_tokens=0, json_mode=True):
        self.calls.append(messages)
        return CompletionResponse(
            text=self.text,
            usage=self.usage,
            model="gpt-4.1",
            content_type=self.content_type,
        )


def _size(client, tracker=None, **input_kwargs):
    data = MarketSizingInput(hypothesis="scheduling for therapists", **input_kwargs)
    return asyncio.run(calculate_market_size(data, client=client, tracker=tracker))


# ---------------------------------------------------------------------------
# Rubric
# ---------------------------------------------------------------------------
class TestRubric:
    def test_default_customers_needed(self):
        assert customers_needed(29, 1_000_000) == pytest.approx(2873.56, abs=0.01)

    def test_worked_example_is_achievable(self):
        penetration = customers_needed(29, 1_000_000) / 50_000 * 100
        assert penetration == pytest.approx(5.75, abs=0.01)
        assert penetration_to_achievability(penetration) == "achievable"
        assert penetration_to_score(penetration) == 7.5

    @pytest.mark.parametrize(
        "pct,score,label",
        [
            (4.99, 9.0, "highly_achievable"),
            (5.0, 7.5, "achievable"),
            (10.0, 5.5, "challenging"),
            (25.0, 3.5, "difficult"),
            (50.0, 3.5, "difficult"),
            (50.1, 1.5, "unlikely"),
        ],
    )
    def test_bands(self, pct, score, label):
        assert penetration_to_score(pct) == score
        assert penetration_to_achievability(pct) == label


class TestPrompt:
    def test_defaults_and_rubric_in_prompt(self):
        prompt = build_market_sizing_prompt(MarketSizingInput(hypothesis="  scheduling for therapists "))

        assert 'HYPOTHESIS: "scheduling for therapists"' in prompt
        assert "TARGET GEOGRAPHY: Global" in prompt
        assert "$29/month ($348/year)" in prompt
        assert "$1,000,000 ARR" in prompt
        assert "Penetration < 5% needed → 9/10" in prompt

    def test_same_input_same_prompt(self):
        data = MarketSizingInput(hypothesis="x", geography="UK", target_price=49.5)
        assert build_market_sizing_prompt(data) == build_market_sizing_prompt(data)
        assert "$49.50/month" in build_market_sizing_prompt(data)


# ---------------------------------------------------------------------------
# JSON extraction
# ---------------------------------------------------------------------------
class TestExtractJsonObject:
    def test_surrounding_prose_ignored(self):
        text = 'Sure! Here you go:\n```json\n{"a": {"b": 1}}\n```\nHope that helps {not json}'
        assert extract_json_object(text) == {"a": {"b": 1}}

    def test_braces_inside_strings(self):
        assert extract_json_object('{"note": "use {x} here", "n": 2}') == {"note": "use {x} here", "n": 2}

    @pytest.mark.parametrize("text", ["no json here", '{"a": 1', "[1, 2]", "{not: valid}"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            extract_json_object(text)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------
class TestParse:
    def test_penetration_computed_from_som(self):
        result = parse_market_sizing(_payload(), DEFAULT_INPUT)
        assert result.msc_analysis.customers_needed == pytest.approx(2873.56, abs=0.01)
        assert result.msc_analysis.penetration_required == pytest.approx(5.75, abs=0.01)
        assert result.msc_analysis.achievability == "achievable"
        assert result.score == 7.5
        assert result.som.value == 50_000

    def test_model_msc_figures_replaced(self):
        payload = _payload(
            customers_needed=10,
            penetration_required=0.9,
            achievability="highly_achievable",
            market_score=9.0,
        )

        result = parse_market_sizing(payload, DEFAULT_INPUT)

        assert result.msc_analysis.customers_needed == pytest.approx(2873.56, abs=0.01)
        assert result.msc_analysis.penetration_required == pytest.approx(5.75, abs=0.01)
        assert result.msc_analysis.achievability == "achievable"
        assert result.score == 7.5

    def test_price_and_msc_from_input(self):
        data = MarketSizingInput(hypothesis="x", target_price=100, msc_target=1_200_000)

        result = parse_market_sizing(_payload(), data)

        assert result.msc_analysis.customers_needed == pytest.approx(1000.0)
        assert result.msc_analysis.penetration_required == pytest.approx(2.0)
        assert result.msc_analysis.achievability == "highly_achievable"
        assert result.score == 9.0

    def test_zero_som_rejected(self):
        payload = _payload(som={"value": 0, "description": "", "reasoning": ""})
        with pytest.raises(MarketSizingParseError, match="SOM must be positive"):
            parse_market_sizing(payload, DEFAULT_INPUT)

    def test_missing_keys(self):
        payload = _payload()
        del payload["som"]
        with pytest.raises(MarketSizingParseError, match="som"):
            parse_market_sizing(payload, DEFAULT_INPUT)

    def test_funnel_must_nest(self):
        payload = _payload(som={"value": 900_000, "description": "", "reasoning": ""})
        with pytest.raises(MarketSizingParseError):
            parse_market_sizing(payload, DEFAULT_INPUT)

    def test_single_suggestion_string(self):
        result = parse_market_sizing(_payload(suggestions="Narrow the niche"), DEFAULT_INPUT)
        assert result.suggestions == ["Narrow the niche"]


# ---------------------------------------------------------------------------
# calculate_market_size
# ---------------------------------------------------------------------------
class TestCalculateMarketSize:
    def test_happy_path_with_prose(self):
        client = FakeCompletionClient("Here is the estimate:\n" + json.dumps(_payload()) + "\nThanks")

        result = _size(client)

        assert result.score == 7.5
        assert result.msc_analysis.penetration_required == pytest.approx(5.75, abs=0.01)
        assert len(client.calls) == 1
        assert client.calls[0][0]["role"] == "system"

    def test_blank_hypothesis_rejected_before_call(self):
        client = FakeCompletionClient(json.dumps(_payload()))
        with pytest.raises(MarketSizingInputError):
            asyncio.run(calculate_market_size(MarketSizingInput(hypothesis="   "), client=client))
        assert client.calls == []

    def test_no_json_is_fatal_and_not_retried(self):
        client = FakeCompletionClient("I cannot estimate this market.")
        with pytest.raises(MarketSizingParseError):
            _size(client)
        assert len(client.calls) == 1

    def test_non_text_content_is_fatal(self):
        client = FakeCompletionClient(None, content_type="refusal")
        with pytest.raises(MarketSizingParseError, match="refusal"):
            _size(client)

    def test_usage_reported_to_tracker(self):
        tracker = TokenTracker()
        _size(FakeCompletionClient(json.dumps(_payload())), tracker=tracker)

        assert tracker.total_input_tokens == 1200
        assert tracker.total_output_tokens == 400
        assert tracker.calls[0].model == "gpt-4.1"

    def test_usage_reported_even_when_parse_fails(self):
        tracker = TokenTracker()
        with pytest.raises(MarketSizingParseError):
            _size(FakeCompletionClient("nope"), tracker=tracker)
        assert len(tracker.calls) == 1

    def test_context_tracker_used_when_none_passed(self):
        tracker = TokenTracker()
        with use_tracker(tracker):
            _size(FakeCompletionClient(json.dumps(_payload())))
        assert len(tracker.calls) == 1

    def test_tracker_failure_does_not_fail_call(self):
        tracker = MagicMock()
        tracker.track.side_effect = RuntimeError("usage store down")

        result = _size(FakeCompletionClient(json.dumps(_payload())), tracker=tracker)

        assert result.score == 7.5
        tracker.track.assert_called_once_with(1200, 400, "gpt-4.1")
