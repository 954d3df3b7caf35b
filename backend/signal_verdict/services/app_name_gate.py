"""App-Name Gate.

Drops evidence about an unrelated subject when the analysis is scoped to
one named app ("Loom: Screen Recorder" must not collect posts about
"Bloom").

Rules
-----
- Store reviews from the app's own listing (``app_store`` /
  ``google_play``) always pass: they are about the app by construction.
- Everything else passes only when title + body contains the core name as
  a WHOLE WORD, case-insensitively.
- Input lists and items are never mutated.
- Same inputs → same partition.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Mapping, Sequence, TypeVar

from ..constants import APP_STORE_SOURCES
from ..schemas.signal_schema import GateResult, GateStats, MultiGateResult, NamedGateResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Subtitles follow the first colon, hyphen, en dash or em dash.
_NAME_SEPARATORS = re.compile(r"[:\-–—]")


class InvalidSubjectNameError(ValueError):
    """Subject name normalizes to an empty string.

    An empty core name would compile to a pattern matching every item, so
    the gate refuses it instead of silently passing everything.
    """


# ===================================================================== #
#  Name normalization                                                     #
# ===================================================================== #

def extract_core_app_name(name: str) -> str:
    """``"Loom: Screen Recorder"`` → ``"loom"``."""
    return _NAME_SEPARATORS.split(name or "", maxsplit=1)[0].strip().lower()


def build_name_regex(core_name: str) -> re.Pattern[str]:
    """Case-insensitive whole-word pattern for *core_name*.

    No guard here: an empty name yields a pattern that matches everything.
    ``apply_app_name_gate`` rejects that case before calling this.

    Word boundaries need a word character on one side, so a name that starts or
    ends with punctuation (``"c++"``) does not match where it is followed by
    a space or the end of the text.
    """
    return re.compile(rf"\b{re.escape(core_name)}\b", re.IGNORECASE)


# ===================================================================== #
#  Item accessors (pydantic Signal, plain object or dict)                 #
# ===================================================================== #

def _field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def is_app_store_review(item: Any) -> bool:
    source = _field(item, "source")
    # Some collectors file store reviews under the listing as community.
    community = _field(item, "community") or _field(item, "subreddit")
    return source in APP_STORE_SOURCES or community in APP_STORE_SOURCES


def mentions_app_name(item: Any, pattern: re.Pattern[str]) -> bool:
    text = f"{_field(item, 'title') or ''} {_field(item, 'body') or ''}"
    return pattern.search(text) is not None


# ===================================================================== #
#  Gate                                                                   #
# ===================================================================== #

def _resolve_core_name(subject_name: str) -> str:
    core_name = extract_core_app_name(subject_name)
    if not core_name:
        raise InvalidSubjectNameError(
            f"Subject name {subject_name!r} is empty after normalization"
        )
    return core_name


def _partition(
    items: Sequence[T],
    pattern: re.Pattern[str],
    subject_name: str,
    core_name: str,
) -> GateResult[T]:
    passed: list[T] = []
    filtered: list[T] = []
    for item in items:
        if is_app_store_review(item) or mentions_app_name(item, pattern):
            passed.append(item)
        else:
            filtered.append(item)

    stats = GateStats(
        before=len(items),
        after=len(passed),
        removed=len(filtered),
        subject_name=subject_name,
        core_name=core_name,
    )
    return GateResult(passed=passed, filtered=filtered, stats=stats)


def apply_app_name_gate(items: Sequence[T], subject_name: str) -> GateResult[T]:
    """Partition *items* into those about *subject_name* and the rest.

    Raises
    ------
    InvalidSubjectNameError
        If *subject_name* is blank or only a subtitle (e.g. ``": Pro"``).
    """
    core_name = _resolve_core_name(subject_name)
    pattern = build_name_regex(core_name)
    return _partition(list(items), pattern, subject_name, core_name)


def apply_app_name_gate_multiple(
    groups: Mapping[str, Sequence[T]],
    subject_name: str,
) -> MultiGateResult[T]:
    """Gate several named groups (posts, comments, ...) with one compiled pattern."""
    core_name = _resolve_core_name(subject_name)
    pattern = build_name_regex(core_name)

    results: list[NamedGateResult[T]] = []
    total_removed = 0
    for name, items in groups.items():
        result = _partition(list(items), pattern, subject_name, core_name)
        results.append(NamedGateResult(name=name, result=result))
        total_removed += result.stats.removed

    return MultiGateResult(core_name=core_name, results=results, total_removed=total_removed)


def log_gate_result(result: GateResult[Any], label: str = "items") -> None:
    stats = result.stats
    if stats.removed > 0:
        logger.info(
            "App-name gate (%s): removed %d/%d %s not mentioning '%s'",
            stats.subject_name,
            stats.removed,
            stats.before,
            label,
            stats.core_name,
        )
    else:
        logger.info(
            "App-name gate (%s): all %d %s mention '%s'",
            stats.subject_name,
            stats.before,
            label,
            stats.core_name,
        )
