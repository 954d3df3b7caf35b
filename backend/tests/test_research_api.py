"""Research API tests — verdict pipeline end to end, persistence, error mapping."""

import json
import os
import sys
import uuid

# Ensure the backend package is importable
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from signal_verdict.database import Base, get_db
from signal_verdict.main import app
from signal_verdict.models.research_result import ResearchResult
from signal_verdict.routes.research import get_completion_client
from signal_verdict.services.openai_client import CompletionError, CompletionResponse, CompletionUsage

# ---------------------------------------------------------------------------
# Test database setup (file-based SQLite for compatibility)
# ---------------------------------------------------------------------------
TEST_DATABASE_URL = "sqlite:///./test_research.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

MARKET_PAYLOAD = {
    "tam": {"value": 2_000_000, "description": "All therapists", "reasoning": "r"},
    "sam": {"value": 400_000, "description": "English-speaking", "reasoning": "r"},
    "som": {"value": 50_000, "description": "Reachable", "reasoning": "r"},
    "customers_needed": 2873.56,
    "penetration_required": 0.0575,
    "market_score": 7.5,
    "achievability": "achievable",
    "verdict": "Reachable.",
    "suggestions": ["Start with group practices"],
    "confidence": "medium",
}


class FakeCompletionClient:
    def __init__(self, text=None, error=None):
        self.text = text if text is not None else json.dumps(MARKET_PAYLOAD)
        self.error = error
        self.calls = 0

    async def complete(self, messages, *, max_completion_tokens=0, json_mode=True):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return CompletionResponse(text=self.text, usage=CompletionUsage(900, 300), model="gpt-4.1")


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


client = TestClient(app)
fake_completion = FakeCompletionClient()


@pytest.fixture(autouse=True)
def setup_db(monkeypatch):
    """Create tables before each test, drop after. Keyword relevance, fake completions."""
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    fake_completion.calls = 0
    fake_completion.error = None
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_completion_client] = lambda: fake_completion
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)
    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_completion_client, None)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
SIGNALS = [
    {
        "id": "1",
        "source": "reddit",
        "community": "therapists",
        "title": "Therapists hate scheduling",
        "body": "Scheduling clients is a nightmare, I would pay for a fix.",
        "engagement": 42,
    },
    {
        "id": "2",
        "source": "reddit",
        "community": "privatepractice",
        "title": "Scheduling for my practice",
        "body": "Rescheduling is tedious and annoying.",
    },
    {
        "id": "3",
        "source": "reddit",
        "community": "food",
        "title": "Best pizza in town",
        "body": "Deep dish or thin crust?",
    },
    {
        "id": "4",
        "source": "hacker_news",
        "community": "hn",
        "title": "Therapists and insurance billing",
        "body": "Billing is confusing.",
    },
]


def _post(**overrides):
    body = {"hypothesis": "scheduling for therapists", "signals": SIGNALS}
    body.update(overrides)
    return client.post("/research/verdict", json=body)


def _row_count(job_id):
    db = TestingSessionLocal()
    try:
        return db.query(ResearchResult).filter(ResearchResult.job_id == job_id).count()
    finally:
        db.close()


# ---------------------------------------------------------------------------
# POST /research/verdict
# ---------------------------------------------------------------------------
class TestCreateVerdict:
    def test_full_run(self):
        res = _post()

        assert res.status_code == 201, res.text
        data = res.json()
        assert data["status"] == "completed"
        assert data["module_name"] == "verdict"

        metrics = data["tier_metrics"]
        assert metrics["core"] == 3
        assert metrics["discarded"] == 1
        assert metrics["total"] == 4

        assert data["market_sizing"]["msc_analysis"]["penetration_required"] == pytest.approx(5.75, abs=0.01)
        assert data["themes"]["pain"]["total_signals"] == 3

        verdict = data["verdict"]
        assert verdict["available_dimensions"] == 2
        assert verdict["missing_dimensions"] == ["competition", "timing"]
        assert data["is_complete"] is False
        assert data["score"] == verdict["overall_score"]
        assert data["level"] == verdict["verdict"]
        assert data["message"]["level"] == data["level"]
        assert fake_completion.calls == 1

    def test_all_four_dimensions(self):
        res = _post(
            competition={"score": 7.0, "confidence": "medium", "competitor_count": 2},
            timing={"score": 7.0, "confidence": "medium", "trend": "rising", "tailwinds_count": 2},
        )

        assert res.status_code == 201, res.text
        assert res.json()["is_complete"] is True
        assert res.json()["verdict"]["missing_dimensions"] == []

    def test_skip_market_sizing(self):
        res = _post(run_market_sizing=False)

        assert res.status_code == 201
        assert res.json()["market_sizing"] is None
        assert "market" in res.json()["verdict"]["missing_dimensions"]
        assert fake_completion.calls == 0

    def test_market_failure_leaves_dimension_missing(self):
        fake_completion.error = CompletionError("OpenAI returned HTTP 503", status_code=503)

        res = _post()

        assert res.status_code == 201
        data = res.json()
        assert data["market_sizing"] is None
        assert "market" in data["verdict"]["missing_dimensions"]
        assert any(e.startswith("Market:") for e in data["errors"])

    def test_rerun_overwrites_same_job(self):
        job_id = str(uuid.uuid4())

        first = _post(job_id=job_id, run_market_sizing=False)
        second = _post(job_id=job_id)

        assert first.status_code == 201
        assert second.status_code == 201
        assert second.json()["job_id"] == job_id
        assert second.json()["market_sizing"] is not None
        assert _row_count(job_id) == 1

    def test_subject_name_gate(self):
        res = _post(subject_name="Loom: Screen Recorder", run_market_sizing=False)

        assert res.status_code == 201
        data = res.json()
        assert data["gate_stats"]["removed"] == 4
        assert data["gate_stats"]["core_name"] == "loom"
        assert data["tier_metrics"]["total"] == 0
        assert "Tiering: No signals to classify" in data["errors"]
        assert data["verdict"]["available_dimensions"] == 0

    def test_invalid_subject_name_is_422_and_marks_failed(self):
        job_id = str(uuid.uuid4())

        res = _post(job_id=job_id, subject_name=": Pro")

        assert res.status_code == 422
        assert fake_completion.calls == 0
        stored = client.get(f"/research/{job_id}")
        assert stored.json()["status"] == "failed"

    @pytest.mark.parametrize("subject_name", ["", "   "])
    def test_blank_subject_name_is_422(self, subject_name):
        job_id = str(uuid.uuid4())

        res = _post(job_id=job_id, subject_name=subject_name)

        assert res.status_code == 422
        assert "empty after normalization" in res.json()["detail"]
        assert client.get(f"/research/{job_id}").json()["status"] == "failed"

    def test_blank_hypothesis_rejected(self):
        res = _post(hypothesis="   ")
        assert res.status_code == 422

    def test_no_signals(self):
        res = _post(signals=[], run_market_sizing=False)

        assert res.status_code == 201
        assert res.json()["themes"] is None
        assert res.json()["verdict"]["verdict"] == "none"


# ---------------------------------------------------------------------------
# GET routes
# ---------------------------------------------------------------------------
class TestGetResearch:
    def test_roundtrip(self):
        created = _post().json()

        res = client.get(f"/research/{created['job_id']}")

        assert res.status_code == 200
        assert res.json()["verdict"] == created["verdict"]
        assert res.json()["status"] == "completed"

    def test_unknown_job_is_404(self):
        res = client.get(f"/research/{uuid.uuid4()}")
        assert res.status_code == 404


class TestVerdictMessageRoute:
    def test_review_required(self):
        res = client.get("/research/verdict-message", params={"score": 6.0, "critical": "true"})

        assert res.status_code == 200
        assert res.json()["label"] == "Review Required"
        assert res.json()["level"] == "mixed"

    def test_out_of_range_score(self):
        res = client.get("/research/verdict-message", params={"score": 11})
        assert res.status_code == 422


class TestSampleQualityRoute:
    def test_preview(self):
        signals = SIGNALS * 3

        res = client.post(
            "/research/sample-quality",
            json={"hypothesis": "scheduling for therapists", "signals": signals, "seed": 1},
        )

        assert res.status_code == 200
        data = res.json()
        assert data["sample_size"] == 12
        assert data["tier_breakdown"]["core"] == 9
        assert data["tier_breakdown"]["noise"] == 3
        assert data["predicted_relevance"] == 75


def test_health():
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "healthy"
