"""Research routes — run the verdict pipeline and read stored results.

Endpoints:
  POST /research/verdict          — Gate, tier, analyze and score a hypothesis
  POST /research/sample-quality   — Relevance preview on a random sample
  GET  /research/verdict-message  — Render a score as a verdict message
  GET  /research/{job_id}         — Stored verdict for a job
"""

from __future__ import annotations

import logging
import random
import uuid
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..agents.research_pipeline import run_research
from ..agents.research_pipeline.nodes.tier import default_scorer
from ..database import get_db
from ..schemas.market_sizing_schema import MarketSizingInput
from ..schemas.research_schema import ResearchRequest, ResearchResponse, SampleQualityRequest
from ..schemas.tier_schema import SampleQualityReport
from ..schemas.verdict_schema import VerdictMessage
from ..services.app_name_gate import InvalidSubjectNameError
from ..services.openai_client import CompletionClient, CompletionError
from ..services.result_store import (
    load_research_result,
    mark_status,
    record_to_response,
    save_research_result,
)
from ..services.tiered_filter import tiered_sample_quality_check
from ..services.verdict_messages import score_to_message

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/research",
    tags=["Research"],
    responses={500: {"description": "Internal server error during research"}},
)


def get_completion_client() -> CompletionClient:
    """Completion client for market sizing. Overridden in tests."""
    return CompletionClient()


# ── Routes ───────────────────────────────────────────────────────────────

@router.post(
    "/verdict",
    response_model=ResearchResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Run Verdict Pipeline",
    response_description="Stored verdict with tier metrics, themes and market sizing",
)
async def create_verdict(
    request: ResearchRequest,
    db: Session = Depends(get_db),
    completion_client: CompletionClient = Depends(get_completion_client),
) -> ResearchResponse:
    """Run the research pipeline for one hypothesis and persist the verdict.

    1. Marks the job as processing (re-running a job overwrites it)
    2. Runs gate → tier → [themes, market] → judge
    3. Stores the result as completed, or marks the job failed
    """
    job_id = request.job_id or uuid.uuid4()
    mark_status(db, job_id, "processing")

    market_input = None
    if request.run_market_sizing:
        market_input = MarketSizingInput(
            hypothesis=request.hypothesis,
            geography=request.geography,
            target_price=request.target_price,
            msc_target=request.msc_target,
        )

    try:
        result = await run_research(
            request.hypothesis,
            request.signals,
            job_id=str(job_id),
            subject_name=request.subject_name,
            alternatives=request.alternatives,
            market_input=market_input,
            competition=request.competition,
            timing=request.timing,
            completion_client=completion_client,
        )
    except InvalidSubjectNameError as exc:
        mark_status(db, job_id, "failed")
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    except CompletionError as exc:
        mark_status(db, job_id, "failed")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"Completion service failed: {exc}",
        ) from exc
    except Exception as exc:
        logger.exception("Research pipeline failed for job %s", job_id)
        mark_status(db, job_id, "failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Research failed: {exc}",
        ) from exc

    logger.info("Token usage for job %s: %s", job_id, result.get("token_usage"))

    tiered = result.get("tiered")
    record = save_research_result(
        db,
        job_id,
        status="completed",
        hypothesis=request.hypothesis,
        verdict=result.get("verdict"),
        tier_metrics=tiered.metrics if tiered else None,
        market_sizing=result.get("market_sizing"),
        themes=result.get("themes"),
        gate_stats=result.get("gate_stats"),
        errors=result.get("processing_errors", []),
    )
    return record_to_response(record)


@router.post(
    "/sample-quality",
    response_model=SampleQualityReport,
    summary="Preview Signal Relevance",
)
async def sample_quality(request: SampleQualityRequest) -> SampleQualityReport:
    try:
        scorer = default_scorer(request.hypothesis)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc

    rng = random.Random(request.seed) if request.seed is not None else None
    return await tiered_sample_quality_check(request.signals, scorer, rng=rng)


@router.get(
    "/verdict-message",
    response_model=VerdictMessage,
    summary="Verdict Message for a Score",
)
def verdict_message(
    score: float = Query(..., ge=0.0, le=10.0),
    critical: bool = Query(False, description="Dealbreakers or HIGH red flags present"),
) -> VerdictMessage:
    return score_to_message(score, has_critical_concerns=critical)


@router.get(
    "/{job_id}",
    response_model=ResearchResponse,
    summary="Get Stored Verdict",
)
def get_research(job_id: UUID, db: Session = Depends(get_db)) -> ResearchResponse:
    response = load_research_result(db, job_id)
    if response is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Research job {job_id} not found",
        )
    return response
