from datetime import UTC, datetime, timedelta

import pytest

from fitcoach.coach.analysis_scheduler import (
    AnalysisScheduler,
    TriggerReason,
    detect_performance_stagnation,
    detect_weight_plateau,
    trim_progress,
)
from fitcoach.coach.notifications import CollectingNotificationSink
from fitcoach.coach.schemas.analysis import AnalysisResult
from fitcoach.coach.schemas.plans import (
    Exercise,
    ExerciseSet,
    ProgressSnapshot,
    UserProfile,
    WeightEntry,
    WorkoutExercise,
    WorkoutSession,
)
from fitcoach.state.analysis_store import InMemoryAnalysisStore

NOW = datetime(2026, 5, 10, 12, 0, tzinfo=UTC)

ANALYSIS_ARGS = {
    "message": "Steady progress.",
    "analysis": {
        "progressStatus": "stagnant",
        "keyFindings": ["Weight flat for a week"],
        "achievements": ["Five sessions completed"],
        "concerns": [],
    },
    "recommendations": [
        {"type": "nutrition_change", "priority": "medium", "title": "Adjust calories", "description": "-200 kcal"}
    ],
}


def _weights(values: list[float]) -> list[WeightEntry]:
    return [WeightEntry(date=NOW - timedelta(days=len(values) - i), weight=v) for i, v in enumerate(values)]


def _sessions(count: int, weight: float | None = None) -> list[WorkoutSession]:
    return [
        WorkoutSession(
            id=f"s{i}",
            date=NOW - timedelta(days=count - i),
            completed=True,
            exercises=[
                WorkoutExercise(
                    exercise=Exercise(id="squat", name="Squat"),
                    actual_sets=[ExerciseSet(reps=5, weight=weight)],
                )
            ],
        )
        for i in range(count)
    ]


def _scheduler(backend, store=None, sink=None) -> AnalysisScheduler:
    return AnalysisScheduler(
        backend,
        store or InMemoryAnalysisStore(),
        sink or CollectingNotificationSink(),
        clock=lambda: NOW,
    )


def test_plateau_detected_for_flat_readings():
    assert detect_weight_plateau(_weights([80.0, 80.1, 79.9, 80.2, 79.8])) is True


def test_plateau_not_detected_for_steady_loss():
    assert detect_weight_plateau(_weights([80, 79, 76, 74, 70])) is False


def test_plateau_needs_five_readings():
    assert detect_weight_plateau(_weights([80.0, 80.0, 80.0, 80.0])) is False


def test_plateau_uses_most_recent_readings_by_date():
    readings = _weights([90, 85, 80.0, 80.1, 79.9, 80.2, 79.8])

    assert detect_weight_plateau(list(reversed(readings))) is True


def test_stagnation_requires_no_volume_in_recent_sessions():
    assert detect_performance_stagnation(_sessions(5)) is True
    assert detect_performance_stagnation(_sessions(5, weight=100.0)) is False
    assert detect_performance_stagnation(_sessions(4)) is False


def test_trim_progress_keeps_newest():
    progress = ProgressSnapshot(weight_history=_weights([float(80 + i) for i in range(12)]), recent_workouts=_sessions(8))

    trimmed = trim_progress(progress)

    assert [w.weight for w in trimmed.weight_history] == [float(80 + i) for i in range(2, 12)]
    assert [s.id for s in trimmed.recent_workouts] == ["s3", "s4", "s5", "s6", "s7"]


@pytest.mark.asyncio
async def test_trigger_reasons(backend_factory):
    backend, _ = backend_factory()
    store = InMemoryAnalysisStore()
    scheduler = _scheduler(backend, store)

    assert await scheduler.trigger_reasons(ProgressSnapshot()) == [TriggerReason.INTERVAL_ELAPSED]

    await store.set_debounce_markers(NOW - timedelta(days=1), workout_count=10)
    assert await scheduler.should_trigger(ProgressSnapshot(total_workouts=12)) is False
    assert await scheduler.trigger_reasons(ProgressSnapshot(total_workouts=15)) == [TriggerReason.WORKOUT_MILESTONE]

    await store.set_debounce_markers(NOW - timedelta(days=7), workout_count=10)
    assert TriggerReason.INTERVAL_ELAPSED in await scheduler.trigger_reasons(ProgressSnapshot(total_workouts=10))


@pytest.mark.asyncio
async def test_run_automatic_stores_report_and_updates_markers(backend_factory, completion_body):
    backend, requests = backend_factory(completion_body("analyze_progress", ANALYSIS_ARGS))
    store = InMemoryAnalysisStore()
    sink = CollectingNotificationSink()
    await store.set_debounce_markers(NOW - timedelta(days=1), workout_count=0)
    progress = ProgressSnapshot(total_workouts=6, weight_history=_weights([80.0] * 12))

    result = await _scheduler(backend, store, sink).run_automatic(UserProfile(id="u1"), progress=progress)

    assert result.analysis_type == "milestone"
    assert result.progress_status == "stagnant"
    assert result.key_findings == ["Weight flat for a week"]
    assert result.should_notify_user is True
    assert await store.get_latest() == result
    markers = await store.get_debounce_markers()
    assert markers.last_analysis_at == NOW
    assert markers.last_workout_count == 6
    assert [n.type for n in sink.notifications] == ["info"]

    payload = requests[0]
    assert payload["function_call"] == {"name": "analyze_progress"}
    assert [m["role"] for m in payload["messages"]] == ["system", "user"]


@pytest.mark.asyncio
async def test_run_automatic_weekly_type_when_only_interval_fires(backend_factory, completion_body):
    backend, _ = backend_factory(completion_body("analyze_progress", ANALYSIS_ARGS))

    result = await _scheduler(backend).run_automatic(UserProfile(id="u1"), progress=ProgressSnapshot())

    assert result.analysis_type == "weekly"


@pytest.mark.asyncio
async def test_run_automatic_skips_when_nothing_fires(backend_factory):
    backend, requests = backend_factory()
    store = InMemoryAnalysisStore()
    await store.set_debounce_markers(NOW - timedelta(hours=1), workout_count=3)

    result = await _scheduler(backend, store).run_automatic(UserProfile(id="u1"), progress=ProgressSnapshot(total_workouts=4))

    assert result is None
    assert requests == []


@pytest.mark.asyncio
async def test_run_automatic_with_fallback_leaves_markers(backend_factory, completion_body):
    backend, _ = backend_factory(completion_body("chat_only", {"message": "no analysis"}))
    store = InMemoryAnalysisStore()

    result = await _scheduler(backend, store).run_automatic(UserProfile(id="u1"), progress=ProgressSnapshot())

    assert result is None
    assert await store.get_all() == []
    assert (await store.get_debounce_markers()).last_analysis_at is None


@pytest.mark.asyncio
async def test_run_manual_does_not_touch_markers(backend_factory, completion_body):
    backend, _ = backend_factory(completion_body("analyze_progress", ANALYSIS_ARGS))
    store = InMemoryAnalysisStore()

    result = await _scheduler(backend, store).run_manual(UserProfile(id="u1"))

    assert result.analysis_type == "manual"
    assert result.should_notify_user is False
    assert (await store.get_debounce_markers()).last_analysis_at is None


@pytest.mark.asyncio
async def test_recent_analysis_and_insights(backend_factory):
    backend, _ = backend_factory()
    store = InMemoryAnalysisStore()
    scheduler = _scheduler(backend, store)
    assert await scheduler.has_recent_analysis() is False

    for hours, findings in [(72, ["old finding"]), (30, ["A", "B"]), (10, ["B", "C"]), (1, ["C"])]:
        await store.append(
            AnalysisResult(
                timestamp=NOW - timedelta(hours=hours),
                analysis_type="weekly",
                progress_status="good",
                key_findings=findings,
                achievements=["streak"],
            )
        )

    assert await scheduler.has_recent_analysis() is True
    assert await scheduler.analysis_insights() == ["C", "streak", "B", "A"]
