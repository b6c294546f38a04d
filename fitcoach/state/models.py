from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Base class for all database models."""


class TrainingPlanRecord(Base):
    """Current training program per user, stored as its camelCase JSON document."""

    __tablename__ = "training_plans"

    user_id: Mapped[str] = mapped_column(String, primary_key=True, index=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)


class NutritionGoalsRecord(Base):
    __tablename__ = "nutrition_goals"

    user_id: Mapped[str] = mapped_column(String, primary_key=True, index=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)


class WeeklyMealPlanRecord(Base):
    __tablename__ = "weekly_meal_plans"

    user_id: Mapped[str] = mapped_column(String, primary_key=True, index=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)


class AnalysisRecord(Base):
    """Stored progress analysis.

    Stores:
    - id: Analysis id
    - user_id: Owner
    - timestamp: When the analysis ran (newest-first ordering key)
    - payload: Full AnalysisResult document
    """

    __tablename__ = "progress_analyses"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)


class AnalysisMarkerRecord(Base):
    """Debounce markers for automatic analyses."""

    __tablename__ = "analysis_markers"

    user_id: Mapped[str] = mapped_column(String, primary_key=True)
    last_analysis_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    last_workout_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
