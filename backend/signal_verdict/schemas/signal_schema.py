from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class Signal(BaseModel):
    """One raw text item collected about a hypothesis.

    ``source`` is the platform (``reddit``, ``hacker_news``, ``app_store``,
    ``google_play``, ``trustpilot``, ``youtube_comment`` ...) and
    ``community`` the sub-forum or store listing it came from.
    Signals are immutable once collected.
    """

    id: Optional[str] = None
    source: str = Field(..., min_length=1)
    community: str = ""
    title: Optional[str] = None
    body: str = ""
    engagement: float = Field(0.0, ge=0.0, description="Upvotes / likes / helpful votes")
    created_at: datetime = Field(default_factory=datetime.utcnow)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        frozen = True

    @property
    def text(self) -> str:
        """Title and body joined the way the name gate and scorers read them."""
        return f"{self.title or ''} {self.body}".strip()

    @property
    def is_comment(self) -> bool:
        return bool(self.metadata.get("is_comment"))


# ── App-Name Gate results (in-memory only) ──────────────────────────────


@dataclass(frozen=True)
class GateStats:
    before: int
    after: int
    removed: int
    subject_name: str
    core_name: str


@dataclass(frozen=True)
class GateResult(Generic[T]):
    """Partition of a batch by the App-Name Gate. Not persisted."""

    passed: List[T]
    filtered: List[T]
    stats: GateStats


@dataclass(frozen=True)
class NamedGateResult(Generic[T]):
    name: str
    result: GateResult[T]


@dataclass(frozen=True)
class MultiGateResult(Generic[T]):
    core_name: str
    results: List[NamedGateResult[T]] = field(default_factory=list)
    total_removed: int = 0
