"""Persistence for research outputs.

One row per ``(job_id, module_name)``. Saving again for the same pair
overwrites the row in place; the pair never appears twice.

Rules
-----
- Structured payloads are stored as JSON text (``*_json`` columns)
- ``status`` moves pending → processing → completed | failed
- Loading returns a ``ResearchResponse`` or ``None``; it never raises for
  a missing job
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Iterable, Optional
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..models.research_result import ResearchResult
from ..schemas.research_schema import ResearchResponse

logger = logging.getLogger(__name__)

VERDICT_MODULE = "verdict"

JOB_STATUSES = frozenset({"pending", "processing", "completed", "failed"})


def _dump(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    return json.dumps(value, default=str)


def _load(raw: Optional[str]) -> Any:
    return json.loads(raw) if raw else None


def _get_or_create(db: Session, job_id: UUID, module_name: str) -> ResearchResult:
    record = (
        db.query(ResearchResult)
        .filter(ResearchResult.job_id == str(job_id), ResearchResult.module_name == module_name)
        .first()
    )
    if record is None:
        record = ResearchResult(job_id=job_id, module_name=module_name, status="pending")
        db.add(record)
    return record


def mark_status(db: Session, job_id: UUID, status: str, module_name: str = VERDICT_MODULE) -> ResearchResult:
    """Create-or-update the row with only a status change."""
    if status not in JOB_STATUSES:
        raise ValueError(f"Unknown job status: {status}")
    record = _get_or_create(db, job_id, module_name)
    record.status = status
    record.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(record)
    return record


def save_research_result(
    db: Session,
    job_id: UUID,
    *,
    module_name: str = VERDICT_MODULE,
    status: str = "completed",
    hypothesis: Optional[str] = None,
    verdict: Optional[BaseModel] = None,
    tier_metrics: Optional[BaseModel] = None,
    market_sizing: Optional[BaseModel] = None,
    themes: Optional[BaseModel] = None,
    gate_stats: Optional[dict] = None,
    errors: Iterable[str] = (),
) -> ResearchResult:
    """Upsert the output of one module run for *job_id*."""
    if status not in JOB_STATUSES:
        raise ValueError(f"Unknown job status: {status}")

    record = _get_or_create(db, job_id, module_name)
    record.status = status
    record.hypothesis = hypothesis
    record.verdict_json = _dump(verdict)
    record.tier_metrics_json = _dump(tier_metrics)
    record.market_sizing_json = _dump(market_sizing)
    record.themes_json = _dump(themes)
    record.gate_stats_json = _dump(gate_stats)
    record.errors_json = _dump(list(errors))

    if verdict is not None:
        record.score = getattr(verdict, "overall_score", None)
        record.level = getattr(verdict, "verdict", None)
        record.is_complete = bool(getattr(verdict, "is_complete", False))
    else:
        record.score = None
        record.level = None
        record.is_complete = False

    record.updated_at = datetime.utcnow()
    db.commit()
    db.refresh(record)
    logger.info("Saved %s result for job %s (status=%s)", module_name, job_id, status)
    return record


def record_to_response(record: ResearchResult) -> ResearchResponse:
    verdict = _load(record.verdict_json)
    return ResearchResponse(
        job_id=record.job_id,
        module_name=record.module_name,
        status=record.status or "pending",
        score=record.score,
        level=record.level,
        message=verdict.get("message") if verdict else None,
        verdict=verdict,
        tier_metrics=_load(record.tier_metrics_json),
        market_sizing=_load(record.market_sizing_json),
        themes=_load(record.themes_json),
        gate_stats=_load(record.gate_stats_json),
        is_complete=bool(record.is_complete),
        errors=_load(record.errors_json) or [],
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def load_research_result(
    db: Session,
    job_id: UUID,
    module_name: str = VERDICT_MODULE,
) -> Optional[ResearchResponse]:
    record = (
        db.query(ResearchResult)
        .filter(ResearchResult.job_id == str(job_id), ResearchResult.module_name == module_name)
        .first()
    )
    if record is None:
        return None
    return record_to_response(record)
