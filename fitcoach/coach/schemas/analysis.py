"""Progress analysis records."""

import uuid
from datetime import UTC, datetime
from typing import Literal

from pydantic import Field

from fitcoach.coach.schemas.base import CamelModel
from fitcoach.coach.schemas.proposal import Priority

ProgressStatus = Literal["excellent", "good", "stagnant", "declining"]
AnalysisType = Literal["weekly", "milestone", "manual"]
RecommendationType = Literal["workout_adjustment", "nutrition_change", "rest_modification"]


class Recommendation(CamelModel):
    type: RecommendationType = "workout_adjustment"
    priority: Priority = "medium"
    title: str
    description: str = ""


class AnalysisReport(CamelModel):
    """Structured report produced by the ``analyze_progress`` operation."""

    progress_status: ProgressStatus = "good"
    key_findings: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)
    achievements: list[str] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)


class AnalysisResult(CamelModel):
    """Stored analysis. Kept in a capped list, newest first."""

    id: str = Field(default_factory=lambda: f"analysis-{uuid.uuid4().hex[:12]}")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    analysis_type: AnalysisType
    progress_status: ProgressStatus
    key_findings: list[str] = Field(default_factory=list)
    concerns: list[str] = Field(default_factory=list)
    achievements: list[str] = Field(default_factory=list)
    recommendations: list[Recommendation] = Field(default_factory=list)
    should_notify_user: bool = False

    @classmethod
    def from_report(
        cls,
        report: AnalysisReport,
        analysis_type: AnalysisType,
        should_notify_user: bool = False,
    ) -> "AnalysisResult":
        return cls(
            analysis_type=analysis_type,
            progress_status=report.progress_status,
            key_findings=list(report.key_findings),
            concerns=list(report.concerns),
            achievements=list(report.achievements),
            recommendations=list(report.recommendations),
            should_notify_user=should_notify_user,
        )
