"""
Database models for DevInsight.
Uses SQLAlchemy 2.0 for ORM.
"""

from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from sqlalchemy import (
    Integer, String, Text, DateTime, JSON, Index, create_engine, select
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql import func
from loguru import logger

from devinsight.utils.exceptions import NotFoundError, PersistenceError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def score_category(score: int) -> str:
    """Bucket a readiness score: excellent / good / fair / poor."""
    if score >= 80:
        return "excellent"
    if score >= 60:
        return "good"
    if score >= 40:
        return "fair"
    return "poor"


class AnalysisRecord(Base):
    """A completed repository analysis."""
    __tablename__ = "analyses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    analysis_id: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)

    repo_name: Mapped[str] = mapped_column(String(255), nullable=False)
    repo_url: Mapped[str] = mapped_column(String(500), default="", nullable=False)

    # Scores and feedback
    readiness_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    code_quality: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    readme_quality: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    technical_debt: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    security: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)
    overall_summary: Mapped[str] = mapped_column(Text, default="")
    suggested_readme: Mapped[str] = mapped_column(Text, default="")
    stats: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict)

    # Run metadata
    processing_time: Mapped[int] = mapped_column(Integer, default=0)  # milliseconds
    ai_model: Mapped[Optional[str]] = mapped_column(String(100))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (
        Index("idx_analysis_repo_url", "repo_url"),
        Index("idx_analysis_created_at", "created_at"),
        Index("idx_analysis_readiness_score", "readiness_score"),
    )

    @property
    def score_category(self) -> str:
        return score_category(self.readiness_score)

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "AnalysisRecord":
        """Build a row from ``AnalysisReport.to_record()`` output."""
        return cls(
            analysis_id=record["analysisId"],
            repo_name=record.get("repoName") or "Unknown Repository",
            repo_url=record.get("repoURL") or "",
            readiness_score=int(record.get("readinessScore", 0)),
            code_quality=record.get("codeQuality") or {},
            readme_quality=record.get("readmeQuality") or {},
            technical_debt=record.get("technicalDebt") or {},
            security=record.get("security") or {},
            overall_summary=record.get("overallSummary") or "",
            suggested_readme=record.get("suggestedReadme") or "",
            stats=record.get("stats") or {},
            processing_time=int(record.get("processingTime", 0)),
            ai_model=record.get("aiModel"),
        )

    def to_summary(self) -> Dict[str, Any]:
        return {
            "analysisId": self.analysis_id,
            "repoName": self.repo_name,
            "repoURL": self.repo_url,
            "readinessScore": self.readiness_score,
            "scoreCategory": self.score_category,
            "overallSummary": self.overall_summary,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.to_summary(),
            "codeQuality": self.code_quality,
            "readmeQuality": self.readme_quality,
            "technicalDebt": self.technical_debt,
            "security": self.security,
            "suggestedReadme": self.suggested_readme,
            "stats": self.stats,
            "processingTime": self.processing_time,
            "aiModel": self.ai_model,
        }


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

def create_db_engine(database_url: str) -> Engine:
    kwargs: Dict[str, Any] = {}
    if database_url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in database_url or database_url == "sqlite://":
            kwargs["poolclass"] = StaticPool
    return create_engine(database_url, **kwargs)


class AnalysisStore:
    """Thin repository over the ``analyses`` table."""

    def __init__(self, database_url: str) -> None:
        self.engine = create_db_engine(database_url)
        self.session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def init_db(self) -> None:
        Base.metadata.create_all(self.engine)

    def save(self, record: Dict[str, Any]) -> AnalysisRecord:
        row = AnalysisRecord.from_record(record)
        try:
            with self.session_factory.begin() as session:
                session.add(row)
            logger.info("💾 Analysis saved - {}", row.analysis_id)
            return row
        except IntegrityError as exc:
            raise PersistenceError(f"Analysis {row.analysis_id} already exists") from exc
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to save analysis: {exc}") from exc

    def get(self, analysis_id: str) -> AnalysisRecord:
        with self.session_factory() as session:
            row = session.scalar(
                select(AnalysisRecord).where(AnalysisRecord.analysis_id == analysis_id)
            )
        if row is None:
            raise NotFoundError(f"Analysis {analysis_id} not found")
        return row

    def find_recent(self, limit: int = 10) -> List[AnalysisRecord]:
        stmt = (
            select(AnalysisRecord)
            .order_by(AnalysisRecord.created_at.desc(), AnalysisRecord.id.desc())
            .limit(limit)
        )
        with self.session_factory() as session:
            return list(session.scalars(stmt))

    def find_by_score_range(self, min_score: int = 0, max_score: int = 100) -> List[AnalysisRecord]:
        stmt = (
            select(AnalysisRecord)
            .where(AnalysisRecord.readiness_score >= min_score)
            .where(AnalysisRecord.readiness_score <= max_score)
            .order_by(AnalysisRecord.readiness_score.desc(), AnalysisRecord.id.asc())
        )
        with self.session_factory() as session:
            return list(session.scalars(stmt))

    def stats(self) -> Dict[str, Any]:
        """Totals, score-category distribution and average readiness score."""
        with self.session_factory() as session:
            scores = list(session.scalars(select(AnalysisRecord.readiness_score)))

        distribution: Dict[str, Dict[str, Any]] = {}
        for score in scores:
            bucket = distribution.setdefault(score_category(score), {"count": 0, "total": 0})
            bucket["count"] += 1
            bucket["total"] += score

        return {
            "totalProjects": len(scores),
            "scoreDistribution": {
                category: {
                    "count": bucket["count"],
                    "avgScore": round(bucket["total"] / bucket["count"], 1),
                }
                for category, bucket in sorted(distribution.items())
            },
            "averageReadinessScore": round(sum(scores) / len(scores), 1) if scores else None,
        }
