import uuid
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, String, Text, UniqueConstraint
from sqlalchemy.types import CHAR, TypeDecorator

from ..database import Base


class GUID(TypeDecorator):
    """UUID stored as CHAR(36) so SQLite and Postgres behave the same."""

    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return value

    def process_result_value(self, value, dialect):
        if value is not None:
            return uuid.UUID(value)
        return value


class ResearchResult(Base):
    """One stored module output per (job, module). Re-running a job overwrites it."""

    __tablename__ = "research_results"
    __table_args__ = (UniqueConstraint("job_id", "module_name", name="uq_research_job_module"),)

    id = Column(GUID(), primary_key=True, default=uuid.uuid4)
    job_id = Column(GUID(), nullable=False, index=True)
    module_name = Column(String(64), nullable=False)
    status = Column(String(32), nullable=False, default="pending")  # pending | processing | completed | failed

    hypothesis = Column(Text, nullable=True)
    score = Column(Float, nullable=True)
    level = Column(String(16), nullable=True)
    is_complete = Column(Boolean, nullable=False, default=False)

    verdict_json = Column(Text, nullable=True)
    tier_metrics_json = Column(Text, nullable=True)
    market_sizing_json = Column(Text, nullable=True)
    themes_json = Column(Text, nullable=True)
    gate_stats_json = Column(Text, nullable=True)
    errors_json = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
