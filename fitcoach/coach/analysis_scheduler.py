"""Progress analysis scheduling.

Decides from simple heuristics when an analysis should run without the user
asking for one, and runs automatic and manual analyses through the same
context -> backend -> parser pipeline as the conversation, with the
``analyze_progress`` operation forced and an empty chat history.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import StrEnum

from loguru import logger

from fitcoach.coach.context_builder import build_optimized_context
from fitcoach.coach.function_schemas import ANALYZE_PROGRESS, force_function
from fitcoach.coach.llm_client import CoachBackendClient
from fitcoach.coach.notifications import NotificationSink, notify
from fitcoach.coach.prompt_builder import build_analysis_request
from fitcoach.coach.schemas.analysis import AnalysisResult, AnalysisType
from fitcoach.coach.schemas.plans import (
    NutritionPlan,
    ProgressSnapshot,
    TrainingProgram,
    UserProfile,
    WeightEntry,
    WorkoutSession,
)
from fitcoach.coach.schemas.responses import AssistantResponse
from fitcoach.state.analysis_store import AnalysisStore

# Trigger thresholds
ANALYSIS_INTERVAL = timedelta(days=7)
WORKOUT_MILESTONE = 5
PLATEAU_WINDOW = 5
PLATEAU_VARIANCE_THRESHOLD = 0.5  # kg^2
STAGNATION_WINDOW = 5

# Pipeline inputs
ANALYSIS_WEIGHT_READINGS = 10
ANALYSIS_WORKOUTS = 5

RECENT_ANALYSIS_WINDOW = timedelta(hours=24)
INSIGHT_ANALYSES = 3


class TriggerReason(StrEnum):
    INTERVAL_ELAPSED = "interval_elapsed"
    WORKOUT_MILESTONE = "workout_milestone"
    WEIGHT_PLATEAU = "weight_plateau"
    PERFORMANCE_STAGNATION = "performance_stagnation"


@dataclass(frozen=True)
class AnalysisRun:
    response: AssistantResponse
    result: AnalysisResult | None


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def population_variance(values: list[float]) -> float:
    mean = sum(values) / len(values)
    return sum((value - mean) ** 2 for value in values) / len(values)


def _weights_by_date(weight_history: list[WeightEntry]) -> list[WeightEntry]:
    return sorted(weight_history, key=lambda entry: _as_utc(entry.date))


def _sessions_by_date(sessions: list[WorkoutSession]) -> list[WorkoutSession]:
    return sorted(
        sessions,
        key=lambda session: _as_utc(session.performed_at) if session.performed_at else datetime.min.replace(tzinfo=UTC),
    )


def detect_weight_plateau(weight_history: list[WeightEntry]) -> bool:
    """True when the most recent readings barely move.

    Needs at least PLATEAU_WINDOW readings; the population variance of the
    latest PLATEAU_WINDOW must be under PLATEAU_VARIANCE_THRESHOLD.
    """
    if len(weight_history) < PLATEAU_WINDOW:
        return False
    recent = [entry.weight for entry in _weights_by_date(weight_history)[-PLATEAU_WINDOW:]]
    return population_variance(recent) < PLATEAU_VARIANCE_THRESHOLD


def detect_performance_stagnation(sessions: list[WorkoutSession]) -> bool:
    """True when no exercise in the most recent sessions logged any volume (reps x weight)."""
    if len(sessions) < STAGNATION_WINDOW:
        return False
    for session in _sessions_by_date(sessions)[-STAGNATION_WINDOW:]:
        for slot in session.exercises:
            volume = sum(s.reps * (s.weight or 0) for s in slot.actual_sets)
            if volume > 0:
                return False
    return True


def trim_progress(progress: ProgressSnapshot | None) -> ProgressSnapshot | None:
    """Keep only the readings and sessions an analysis looks at."""
    if progress is None:
        return None
    return progress.model_copy(
        update={
            "weight_history": _weights_by_date(progress.weight_history)[-ANALYSIS_WEIGHT_READINGS:],
            "recent_workouts": _sessions_by_date(progress.recent_workouts)[-ANALYSIS_WORKOUTS:],
        }
    )


class AnalysisScheduler:
    def __init__(
        self,
        backend: CoachBackendClient,
        analysis_store: AnalysisStore,
        notifier: NotificationSink,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.backend = backend
        self.analysis_store = analysis_store
        self.notifier = notifier
        self._clock = clock

    async def trigger_reasons(self, progress: ProgressSnapshot) -> list[TriggerReason]:
        markers = await self.analysis_store.get_debounce_markers()
        now = self._clock()
        reasons: list[TriggerReason] = []

        if markers.last_analysis_at is None or now - _as_utc(markers.last_analysis_at) >= ANALYSIS_INTERVAL:
            reasons.append(TriggerReason.INTERVAL_ELAPSED)
        if progress.total_workouts - markers.last_workout_count >= WORKOUT_MILESTONE:
            reasons.append(TriggerReason.WORKOUT_MILESTONE)
        if detect_weight_plateau(progress.weight_history):
            reasons.append(TriggerReason.WEIGHT_PLATEAU)
        if detect_performance_stagnation(progress.recent_workouts):
            reasons.append(TriggerReason.PERFORMANCE_STAGNATION)
        return reasons

    async def should_trigger(self, progress: ProgressSnapshot) -> bool:
        return bool(await self.trigger_reasons(progress))

    async def execute(
        self,
        analysis_type: AnalysisType,
        profile: UserProfile,
        training_plan: TrainingProgram | None = None,
        nutrition_plan: NutritionPlan | None = None,
        progress: ProgressSnapshot | None = None,
        should_notify_user: bool = False,
    ) -> AnalysisRun:
        """Run one analysis and store its result.

        Args:
            analysis_type: weekly, milestone or manual
            profile: User profile
            training_plan: Current training program
            nutrition_plan: Current nutrition plan
            progress: Progress snapshot (trimmed to the analysis window)
            should_notify_user: Stored on the result

        Returns:
            AnalysisRun with the parsed response and the stored result (None when
            the backend produced no structured report)
        """
        context = build_optimized_context(profile, [], training_plan, nutrition_plan, trim_progress(progress))
        request = build_analysis_request(training_plan.name if training_plan else None, profile.goals)
        response = await self.backend.send(request, context, function_call=force_function(ANALYZE_PROGRESS))

        if response.analysis is None:
            logger.warning(
                "Analysis produced no structured report",
                analysis_type=analysis_type,
                is_fallback=response.is_fallback,
                error=response.error,
            )
            return AnalysisRun(response=response, result=None)

        result = AnalysisResult.from_report(response.analysis, analysis_type, should_notify_user=should_notify_user)
        await self.analysis_store.append(result)
        logger.info(
            "Progress analysis stored",
            analysis_id=result.id,
            analysis_type=analysis_type,
            progress_status=result.progress_status,
        )
        return AnalysisRun(response=response, result=result)

    async def run_automatic(
        self,
        profile: UserProfile,
        training_plan: TrainingProgram | None = None,
        nutrition_plan: NutritionPlan | None = None,
        progress: ProgressSnapshot | None = None,
    ) -> AnalysisResult | None:
        """Run an analysis if any trigger fires; updates debounce markers and notifies."""
        snapshot = progress or ProgressSnapshot()
        reasons = await self.trigger_reasons(snapshot)
        if not reasons:
            logger.debug("No analysis trigger fired")
            return None

        analysis_type: AnalysisType = "milestone" if TriggerReason.WORKOUT_MILESTONE in reasons else "weekly"
        logger.info("Automatic analysis triggered", reasons=[str(r) for r in reasons], analysis_type=analysis_type)

        run = await self.execute(
            analysis_type,
            profile,
            training_plan,
            nutrition_plan,
            snapshot,
            should_notify_user=True,
        )
        if run.result is None:
            return None

        await self.analysis_store.set_debounce_markers(self._clock(), snapshot.total_workouts)
        headline = run.result.key_findings[0] if run.result.key_findings else f"Progress status: {run.result.progress_status}"
        notify(self.notifier, "info", "New progress analysis", headline)
        return run.result

    async def run_manual(
        self,
        profile: UserProfile,
        training_plan: TrainingProgram | None = None,
        nutrition_plan: NutritionPlan | None = None,
        progress: ProgressSnapshot | None = None,
    ) -> AnalysisResult | None:
        run = await self.execute("manual", profile, training_plan, nutrition_plan, progress)
        return run.result

    async def has_recent_analysis(self) -> bool:
        latest = await self.analysis_store.get_latest()
        if latest is None:
            return False
        return self._clock() - _as_utc(latest.timestamp) < RECENT_ANALYSIS_WINDOW

    async def analysis_insights(self) -> list[str]:
        """Deduplicated findings and achievements from the most recent analyses."""
        insights: list[str] = []
        for analysis in (await self.analysis_store.get_all())[:INSIGHT_ANALYSES]:
            insights.extend(analysis.key_findings)
            insights.extend(analysis.achievements)
        return list(dict.fromkeys(insights))
