"""Theme & Language Extractor.

Works on the CORE+STRONG signals (plus RELATED/ADJACENT for pivot
themes) and produces the customer language bank, recurring themes, key
quotes and adjacent-opportunity candidates.

Rules
-----
- NO LLM calls: keyword frequency and fixed lexicons only
- Pure: inputs are never mutated, same inputs → same output
- Order-preserving de-duplication everywhere except the emotional
  lexicon, which is returned sorted so it does not depend on signal order
"""

from __future__ import annotations

import re
from collections import Counter, defaultdict
from typing import Any, Iterable, List, Optional, Sequence

from ..constants import (
    ADJACENT_OPPORTUNITIES_MAX,
    EMOTIONAL_TERMS_MAX,
    TOOLS_MENTIONED_MAX,
)
from ..schemas.signal_schema import Signal
from ..schemas.theme_schema import (
    AdjacentOpportunity,
    CustomerLanguageBank,
    KeyQuote,
    Theme,
    ThemeAnalysis,
)
from ..schemas.tier_schema import TierAssignment
from .pain_scorer import calculate_pain_score, intensity_for, summarize_pain

# ---------------------------------------------------------------------------
# Distress / frustration stems.
# ---------------------------------------------------------------------------
EMOTIONAL_PATTERN = re.compile(
    r"\b(frustrat\w*|annoy\w*|hate|terrible|awful|horrible|nightmare|pain|"
    r"suffer\w*|struggle\w*|difficult|hard|stress\w*|overwhelm\w*|confus\w*|"
    r"lost|stuck|exhausted|tired of|fed up|can't stand|sick of|impossible|"
    r"hopeless)\b",
    re.IGNORECASE,
)

# "using Notion", "switched to Calendly" → tool candidates
TOOL_MENTION_PATTERN = re.compile(
    r"\b(?:using|tried|use|switched to|moving to)\s+(\w+)",
    re.IGNORECASE,
)

_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+|\n+")

_PHRASE_MIN_CHARS = 20
_PHRASE_MAX_CHARS = 200
_QUOTE_MAX_CHARS = 280
_THEMES_MAX = 6
_EXAMPLES_PER_THEME = 3
_KEY_QUOTES_MAX = 5

_THEME_STOP_WORDS: frozenset[str] = frozenset(
    {
        "about", "after", "again", "also", "always", "anyone", "because",
        "been", "before", "being", "could", "didn't", "does", "doesn't",
        "doing", "don't", "even", "every", "from", "have", "having", "here",
        "into", "just", "know", "like", "make", "many", "more", "most",
        "much", "need", "only", "other", "over", "really", "same", "should",
        "since", "some", "still", "such", "than", "that", "their", "them",
        "then", "there", "these", "they", "thing", "things", "think", "this",
        "those", "through", "time", "very", "want", "well", "what", "when",
        "where", "which", "while", "with", "without", "would", "your",
        "it's", "i'm", "i've", "can't", "anything", "something", "people",
    }
)


# ===================================================================== #
#  Helpers                                                                #
# ===================================================================== #

def _text_of(item: Any) -> str:
    """Text of a str, Signal or TierAssignment."""
    if isinstance(item, str):
        return item
    if isinstance(item, TierAssignment):
        return item.signal.text
    return getattr(item, "text", "") or ""


def _signal_of(item: Any) -> Signal:
    return item.signal if isinstance(item, TierAssignment) else item


def _dedupe(items: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(items))


def _sentences(text: str) -> List[str]:
    return [s.strip() for s in _SENTENCE_SPLIT.split(text or "") if s.strip()]


def _theme_words(text: str) -> set[str]:
    words = re.findall(r"[a-z][a-z']+", text.lower())
    return {w for w in words if len(w) >= 4 and w not in _THEME_STOP_WORDS}


# ===================================================================== #
#  Customer language                                                      #
# ===================================================================== #

def extract_emotional_language(
    signals: Iterable[Any],
    descriptions: Iterable[str] = (),
) -> List[str]:
    """Unique lower-cased distress terms, sorted, at most 10."""
    terms: set[str] = set()
    for item in signals:
        terms.update(m.group(0).lower() for m in EMOTIONAL_PATTERN.finditer(_text_of(item)))
    for text in descriptions:
        terms.update(m.group(0).lower() for m in EMOTIONAL_PATTERN.finditer(text))
    return sorted(terms)[:EMOTIONAL_TERMS_MAX]


def extract_tools_mentioned(
    alternatives: Iterable[str],
    signals: Iterable[Any] = (),
) -> List[str]:
    """Known alternatives first, then capitalised names after usage verbs."""
    tools: List[str] = [a for a in alternatives if a]
    for item in signals:
        for match in TOOL_MENTION_PATTERN.finditer(_text_of(item)):
            tool = match.group(1)
            if len(tool) > 2 and tool[0] == tool[0].upper():
                tools.append(tool)
    return _dedupe(tools)[:TOOLS_MENTIONED_MAX]


def extract_problem_phrases(signals: Iterable[Any], limit: int = 10) -> List[str]:
    """Verbatim complaint sentences, in signal order."""
    phrases: List[str] = []
    seen: set[str] = set()
    for item in signals:
        for sentence in _sentences(_text_of(item)):
            if not (_PHRASE_MIN_CHARS <= len(sentence) <= _PHRASE_MAX_CHARS):
                continue
            if not (EMOTIONAL_PATTERN.search(sentence) or calculate_pain_score(sentence).signals):
                continue
            key = sentence.lower()
            if key in seen:
                continue
            seen.add(key)
            phrases.append(sentence)
            if len(phrases) >= limit:
                return phrases
    return phrases


def build_customer_language_bank(
    signals: Sequence[Any],
    alternatives: Iterable[str] = (),
    descriptions: Iterable[str] = (),
    phrase_limit: int = 10,
) -> CustomerLanguageBank:
    return CustomerLanguageBank(
        problem_phrases=extract_problem_phrases(signals, phrase_limit),
        emotional_language=extract_emotional_language(signals, descriptions),
        tools_mentioned=extract_tools_mentioned(alternatives, signals),
    )


# ===================================================================== #
#  Themes                                                                 #
# ===================================================================== #

def extract_adjacent_opportunities(
    themes: Sequence[Theme],
    key_quotes: Optional[Sequence[KeyQuote]] = None,
) -> List[AdjacentOpportunity]:
    """Top contextual themes by frequency, each with a representative quote."""
    contextual = sorted(
        (t for t in themes if t.tier == "contextual"),
        key=lambda t: t.frequency,
        reverse=True,
    )[:ADJACENT_OPPORTUNITIES_MAX]

    opportunities: List[AdjacentOpportunity] = []
    for theme in contextual:
        first_word = theme.name.lower().split(" ")[0]
        quote = next(
            (
                q
                for q in key_quotes or ()
                if first_word in q.quote.lower() or any(ex in q.quote for ex in theme.examples)
            ),
            None,
        )
        opportunities.append(
            AdjacentOpportunity(
                name=theme.name,
                description=theme.description,
                signal_count=theme.frequency,
                sources=theme.sources or ["reddit"],
                representative_quote=quote.quote if quote else (theme.examples[0] if theme.examples else None),
                quote_source=quote.source if quote else None,
                intensity=theme.intensity,
            )
        )
    return opportunities


def _build_themes(
    items: Sequence[Any],
    tier: str,
    exclude: set[str],
    limit: int,
) -> List[Theme]:
    signals = [_signal_of(i) for i in items]
    doc_freq: Counter[str] = Counter()
    members: dict[str, List[Signal]] = defaultdict(list)
    for signal in signals:
        for word in _theme_words(signal.text):
            doc_freq[word] += 1
            members[word].append(signal)

    themes: List[Theme] = []
    # Ties broken alphabetically so the output is stable.
    ranked = sorted(
        ((w, c) for w, c in doc_freq.items() if c >= 2 and w not in exclude),
        key=lambda wc: (-wc[1], wc[0]),
    )
    for word, count in ranked[:limit]:
        group = members[word]
        examples: List[str] = []
        for signal in group:
            for sentence in _sentences(signal.text):
                if word in sentence.lower() and sentence not in examples:
                    examples.append(sentence[:_PHRASE_MAX_CHARS])
                    break
            if len(examples) >= _EXAMPLES_PER_THEME:
                break
        avg_pain = sum(calculate_pain_score(s.text).score for s in group) / len(group)
        themes.append(
            Theme(
                name=word.capitalize(),
                description=f"Mentioned in {count} of {len(signals)} signals",
                frequency=count,
                intensity=intensity_for(avg_pain),
                tier=tier,
                sources=_dedupe(s.source for s in group),
                examples=examples,
            )
        )
    return themes


def _key_quotes(items: Sequence[Any]) -> List[KeyQuote]:
    scored = []
    for item in items:
        signal = _signal_of(item)
        pain = calculate_pain_score(signal.text, signal.engagement)
        if pain.is_pain_signal:
            scored.append((pain.score, signal))
    scored.sort(key=lambda ps: ps[0], reverse=True)
    return [
        KeyQuote(
            quote=(signal.body or signal.title or "")[:_QUOTE_MAX_CHARS],
            source=signal.community or signal.source,
            pain_score=score,
        )
        for score, signal in scored[:_KEY_QUOTES_MAX]
    ]


def build_theme_analysis(
    analysis_signals: Sequence[Any],
    hypothesis: str,
    context_signals: Sequence[Any] = (),
    alternatives: Iterable[str] = (),
) -> ThemeAnalysis:
    """Deterministic theme analysis.

    *analysis_signals* are CORE+STRONG (signals or tier assignments);
    *context_signals* are RELATED+ADJACENT and only feed contextual themes.
    Words from the hypothesis itself are not themes.
    """
    alternatives = list(alternatives)
    hypothesis_words = _theme_words(hypothesis)

    core_themes = _build_themes(analysis_signals, "core", hypothesis_words, _THEMES_MAX)
    taken = hypothesis_words | {t.name.lower() for t in core_themes}
    contextual_themes = _build_themes(context_signals, "contextual", taken, _THEMES_MAX)
    themes = core_themes + contextual_themes

    key_quotes = _key_quotes(analysis_signals)
    signals = [_signal_of(i) for i in analysis_signals]

    return ThemeAnalysis(
        themes=themes,
        key_quotes=key_quotes,
        alternatives=alternatives,
        customer_language=build_customer_language_bank(signals, alternatives),
        adjacent_opportunities=extract_adjacent_opportunities(themes, key_quotes),
        pain=summarize_pain(analysis_signals),
    )
