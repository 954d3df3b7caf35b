"""Relevance scorers.

A scorer maps one signal to a relevance ``r`` in [0, 1] against a fixed
hypothesis. The tier boundaries live in the tiered filter, never here, so
scorers can be swapped without touching tier policy.

Shipped scorers
---------------
- ``KeywordRelevanceScorer``: deterministic token overlap, no network.
- ``EmbeddingRelevanceScorer``: OpenAI embeddings + cosine similarity.

A scorer that cannot score a signal RAISES. The tiered filter counts the
failure and moves on; scorers must not invent a fallback score.
"""

from __future__ import annotations

import abc
import asyncio
import logging
import math
import os
import re
from typing import List, Optional

from openai import AsyncOpenAI

from ..schemas.signal_schema import Signal

logger = logging.getLogger(__name__)

EMBEDDING_MODEL = "text-embedding-3-small"

# Posts are truncated before embedding; long bodies dilute the vector.
_MAX_EMBED_CHARS = 2000

_STOP_WORDS: frozenset[str] = frozenset(
    {
        "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "from", "as", "is", "was", "are", "be", "been",
        "this", "that", "it", "its", "we", "our", "they", "their", "my", "me",
        "i", "you", "your", "he", "she", "him", "her", "us", "them",
        "do", "does", "did", "has", "have", "had", "not", "no", "so",
        "very", "just", "also", "about", "into", "over", "than", "then",
        "what", "which", "who", "how", "where", "when", "will", "can",
        "would", "could", "should", "if", "up", "out", "get", "got", "like",
        "app", "tool", "platform", "software", "online", "best", "better",
    }
)

# Tokens sharing this many leading characters count as the same word
# ("schedule" / "scheduling").
_STEM_PREFIX = 6


def _tokenise(text: str) -> set[str]:
    words = re.findall(r"[a-z0-9']+", text.lower())
    return {
        w[:_STEM_PREFIX]
        for w in (word.strip("'") for word in words)
        if len(w) > 2 and w not in _STOP_WORDS
    }


def _cosine_similarity(vec1: List[float], vec2: List[float]) -> float:
    """Calculate cosine similarity between two vectors."""
    dot_product = sum(a * b for a, b in zip(vec1, vec2))
    magnitude1 = math.sqrt(sum(a * a for a in vec1))
    magnitude2 = math.sqrt(sum(b * b for b in vec2))

    if magnitude1 == 0 or magnitude2 == 0:
        return 0.0

    return dot_product / (magnitude1 * magnitude2)


def _signal_text(signal: Signal) -> str:
    if signal.title and signal.body:
        return f"{signal.title}: {signal.body}"
    return signal.title or signal.body


class RelevanceScorer(abc.ABC):
    """Pluggable ``score(signal) -> r`` capability."""

    hypothesis: str

    @abc.abstractmethod
    async def score(self, signal: Signal) -> float:
        """Return relevance in [0, 1]. Raise if the signal cannot be scored."""


class KeywordRelevanceScorer(RelevanceScorer):
    """Share of hypothesis keywords that appear in the signal.

    Crude but deterministic: suitable for tests, offline runs and as a
    baseline when no embedding key is configured.
    """

    def __init__(self, hypothesis: str) -> None:
        self.hypothesis = hypothesis
        self._keywords = _tokenise(hypothesis)
        if not self._keywords:
            raise ValueError("hypothesis has no usable keywords")

    async def score(self, signal: Signal) -> float:
        tokens = _tokenise(_signal_text(signal))
        if not tokens:
            return 0.0
        return len(self._keywords & tokens) / len(self._keywords)


class EmbeddingRelevanceScorer(RelevanceScorer):
    """Cosine similarity between hypothesis and signal embeddings.

    The hypothesis embedding is computed once per instance and shared by
    concurrent ``score`` calls.
    """

    def __init__(
        self,
        hypothesis: str,
        client: Optional[AsyncOpenAI] = None,
        model: Optional[str] = None,
    ) -> None:
        self.hypothesis = hypothesis
        self.model = model or os.getenv("OPENAI_EMBEDDING_MODEL", EMBEDDING_MODEL).strip()
        self._client = client
        self._hypothesis_vector: Optional[List[float]] = None
        self._lock = asyncio.Lock()

    def _get_client(self) -> AsyncOpenAI:
        if self._client is None:
            api_key = os.getenv("OPENAI_API_KEY", "").strip()
            if not api_key:
                raise EnvironmentError("OPENAI_API_KEY environment variable not set")
            self._client = AsyncOpenAI(api_key=api_key)
        return self._client

    async def _embed(self, text: str) -> List[float]:
        response = await self._get_client().embeddings.create(
            model=self.model,
            input=text[:_MAX_EMBED_CHARS],
        )
        vector = response.data[0].embedding
        if not vector:
            raise ValueError("embedding API returned an empty vector")
        return vector

    async def hypothesis_vector(self) -> List[float]:
        async with self._lock:
            if self._hypothesis_vector is None:
                self._hypothesis_vector = await self._embed(self.hypothesis)
                logger.debug("Embedded hypothesis with %s", self.model)
        return self._hypothesis_vector

    async def score(self, signal: Signal) -> float:
        anchor = await self.hypothesis_vector()
        vector = await self._embed(_signal_text(signal))
        # Negative similarity carries no extra meaning for tiering.
        return max(0.0, min(1.0, _cosine_similarity(anchor, vector)))
