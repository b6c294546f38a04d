"""Build the optimized context for the coaching assistant.

This module compresses chat history and plan/progress state into a bounded
payload. No nulls leak into the prompt: missing plans and missing progress
render as explicit sentinel strings.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from fitcoach.coach.schemas.chat import ChatMessage
from fitcoach.coach.schemas.context import OptimizedContext, PlanSummary, UserBasics
from fitcoach.coach.schemas.plans import (
    NutritionPlan,
    ProgressSnapshot,
    TrainingProgram,
    UserProfile,
    WorkoutExercise,
    WorkoutSession,
)

# History compression
MAX_HISTORY_MESSAGES = 8
RECENT_MESSAGES_KEPT = 5
SUMMARY_TOPIC_COUNT = 3
TOPIC_PREVIEW_CHARS = 50

# Progress digest windows
RECENT_WEIGHT_READINGS = 5
RECENT_SESSIONS = 3

# Sentinels
NO_TRAINING_PLAN = "No training plan"
NO_NUTRITION_PLAN = "No nutrition plan"
NO_RECENT_PROGRESS = "No recent progress data"
PROGRESS_AVAILABLE = "Progress data available for analysis"
NO_PROGRESS_DETAILS = "No specific progress data available"
NO_PROGRESS_RECORDED = "No specific progress data recorded yet"
NO_PREVIOUS_HISTORY = "No previous history"

DEFAULT_GOALS = ["general_health"]

_MIN_DATETIME = datetime.min


def build_optimized_context(
    profile: UserProfile,
    chat_history: list[ChatMessage],
    training_plan: TrainingProgram | None = None,
    nutrition_plan: NutritionPlan | None = None,
    progress: ProgressSnapshot | None = None,
) -> OptimizedContext:
    """Build the optimized context for one backend request.

    Args:
        profile: User profile
        chat_history: Full transcript, oldest first
        training_plan: Current training program, if any
        nutrition_plan: Current nutrition goals and weekly plan, if any
        progress: Progress snapshot, if any

    Returns:
        OptimizedContext with bounded chat history and text digests
    """
    return OptimizedContext(
        user_basics=UserBasics(
            goals=list(profile.goals) or list(DEFAULT_GOALS),
            experience=profile.experience,
            restrictions=list(profile.restrictions),
        ),
        current_plan_summary=PlanSummary(
            workout=summarize_workout_plan(training_plan),
            nutrition=summarize_nutrition_plan(nutrition_plan),
        ),
        chat_history=compress_history(chat_history),
        recent_progress=summarize_progress(progress),
        progress_details=build_progress_details(progress),
    )


def compress_history(history: list[ChatMessage]) -> list[ChatMessage]:
    """Bound chat history, keeping the most recent turns verbatim.

    Histories of up to MAX_HISTORY_MESSAGES pass through unchanged. Longer
    histories keep the last RECENT_MESSAGES_KEPT messages and replace the rest
    with one synthetic system message.
    """
    if len(history) <= MAX_HISTORY_MESSAGES:
        return list(history)

    older = history[:-RECENT_MESSAGES_KEPT]
    recent = history[-RECENT_MESSAGES_KEPT:]

    summary = ChatMessage(
        id="summary",
        role="system",
        content=f"Previous conversation summary: {_summarize_conversation(older)}",
    )
    return [summary, *recent]


def _summarize_conversation(messages: list[ChatMessage]) -> str:
    if not messages:
        return NO_PREVIOUS_HISTORY

    topics = [m.content[:TOPIC_PREVIEW_CHARS] for m in messages if m.role == "user"][-SUMMARY_TOPIC_COUNT:]
    if not topics:
        return NO_PREVIOUS_HISTORY
    return f"Recent topics: {', '.join(topics)}"


def summarize_workout_plan(plan: TrainingProgram | None) -> str:
    """Render the training plan as one block per day plus a flat (name, id) list."""
    if plan is None or not plan.workout_days:
        return NO_TRAINING_PLAN

    day_blocks = []
    for day in plan.workout_days:
        lines = [
            f"  • {slot.exercise.name} (ID: {slot.exercise.id}) - Muscles: "
            f"{', '.join(slot.exercise.target_muscles) or 'Not specified'}"
            for slot in day.exercises
        ]
        body = "\n".join(lines) if lines else "  No exercises"
        day_blocks.append(f"📅 {day.name.upper()} ({day.day}):\n{body}")

    all_exercises = [
        f"{slot.exercise.name} (ID: {slot.exercise.id})" for day in plan.workout_days for slot in day.exercises
    ]

    return (
        f"TRAINING PLAN: {plan.name}\n\n"
        + "\n\n".join(day_blocks)
        + f"\n\n🏋️ AVAILABLE EXERCISES ({len(all_exercises)} total): {', '.join(all_exercises)}"
    )


def summarize_nutrition_plan(plan: NutritionPlan | None) -> str:
    """Render nutrition goals as a one-line macro summary plus a day count."""
    if plan is None:
        return NO_NUTRITION_PLAN

    goals = plan.goals
    summary = (
        f"Calories: {_fmt(goals.daily_calories)}kcal, Protein: {_fmt(goals.daily_protein)}g, "
        f"Carbs: {_fmt(goals.daily_carbs)}g, Fats: {_fmt(goals.daily_fats)}g"
    )
    if plan.weekly_plan is not None and plan.weekly_plan.days:
        summary += f". Weekly plan: {len(plan.weekly_plan.days)} days configured"
    return summary


def summarize_progress(progress: ProgressSnapshot | None) -> str:
    if progress is None or not progress.has_data():
        return NO_RECENT_PROGRESS
    return PROGRESS_AVAILABLE


def build_progress_details(progress: ProgressSnapshot | None) -> str:
    """Render the detailed progress digest (weights, sessions, progression, stats)."""
    if progress is None:
        return NO_PROGRESS_DETAILS
    if not progress.has_data():
        return NO_PROGRESS_RECORDED

    lines: list[str] = []

    if progress.weight_history:
        weights = sorted(progress.weight_history, key=lambda entry: _naive(entry.date), reverse=True)
        initial = weights[-1]
        lines.append(f"INITIAL WEIGHT: {_fmt_date(initial.date)}: {_fmt(initial.weight)}kg")
        recent = ", ".join(
            f"{_fmt_date(entry.date)}: {_fmt(entry.weight)}kg" for entry in weights[:RECENT_WEIGHT_READINGS]
        )
        lines.append(f"RECENT WEIGHTS: {recent}")
        lines.append(f"TOTAL READINGS: {len(weights)} measurements")

    if progress.recent_workouts:
        lines.extend(_summarize_workouts(progress.recent_workouts))
    else:
        lines.append("WORKOUTS: No sessions recorded")

    if progress.stats is not None:
        stats = progress.stats
        items = []
        if stats.total_workouts:
            items.append(f"{stats.total_workouts} workouts")
        if stats.current_streak:
            items.append(f"{stats.current_streak} day streak")
        if stats.total_volume:
            items.append(f"{stats.total_volume:.1f}kg volume")
        if stats.average_workout_duration:
            items.append(f"{_fmt(stats.average_workout_duration)}min average")
        if items:
            lines.append(f"STATS: {', '.join(items)}")

    if progress.milestones:
        completed = [m for m in progress.milestones if m.completed]
        lines.append(f"MILESTONES: {len(completed)}/{len(progress.milestones)} completed")
        recent_titles = [m.title for m in completed[-2:]]
        if recent_titles:
            lines.append(f"ACHIEVEMENTS: {', '.join(recent_titles)}")

    if progress.performance_metrics:
        lines.append(f"METRICS: {len(progress.performance_metrics)} recorded")

    return "\n".join(lines) if lines else "Limited progress data available"


def _session_sort_key(session: WorkoutSession) -> datetime:
    performed_at = session.performed_at
    if performed_at is None:
        return _MIN_DATETIME
    return _naive(performed_at)


def _weighted(slot: WorkoutExercise) -> list[float]:
    return [s.weight for s in slot.actual_sets if s.weight]


def _summarize_workouts(workouts: list[WorkoutSession]) -> list[str]:
    sessions = sorted(workouts, key=_session_sort_key, reverse=True)
    recent = sessions[:RECENT_SESSIONS]
    lines = [f"WORKOUTS ({len(workouts)} total):"]

    for index, session in enumerate(recent, start=1):
        label = _fmt_date(session.performed_at) if session.performed_at else f"Session {index}"
        status = "COMPLETED" if session.completed else "INCOMPLETE"
        lines.append(f"\nSESSION {index} ({label}) - {status}")

        if not session.exercises:
            lines.append("   No exercises recorded")
            continue

        with_data = [slot for slot in session.exercises if _weighted(slot)]
        if not with_data:
            lines.append("   No weights recorded")
            continue

        lines.append(f"   {len(with_data)} exercises with data")
        for slot in with_data:
            set_details = ", ".join(
                f"{_fmt(s.weight)}kg x {s.reps}" if s.weight else f"{s.reps} reps" for s in slot.actual_sets
            )
            lines.append(f"   • {slot.exercise.name}: {set_details} (Max: {_fmt(max(_weighted(slot)))}kg)")

    if len(sessions) > RECENT_SESSIONS:
        lines.append(f"\n... and {len(sessions) - RECENT_SESSIONS} earlier sessions")

    if len(recent) >= 2:
        lines.append("\nEXERCISE PROGRESSION:")
        progression = _exercise_progression(recent)
        if progression:
            lines.extend(progression)
        else:
            lines.append("   No exercises to compare")

    return lines


def _exercise_progression(sessions_newest_first: list[WorkoutSession]) -> list[str]:
    """Compare each exercise's max weight in its latest session against the previous one."""
    maxima: dict[str, list[float]] = {}
    for session in sessions_newest_first:
        for slot in session.exercises:
            weights = _weighted(slot)
            if weights:
                maxima.setdefault(slot.exercise.name, []).append(max(weights))

    lines = []
    for name, values in maxima.items():
        if len(values) < 2:
            continue
        latest, previous = values[0], values[1]
        change = latest - previous
        direction = _direction(change)
        marker = {"up": "↑", "down": "↓", "flat": "→"}[direction]
        if direction == "up":
            change_text = f"+{_fmt(change)}kg"
        elif direction == "down":
            change_text = f"{_fmt(change)}kg"
        else:
            change_text = "same"
        lines.append(f"   {marker} {name}: {_fmt(previous)}kg → {_fmt(latest)}kg ({change_text})")
    return lines


def _direction(change: float) -> Literal["up", "down", "flat"]:
    if change > 0:
        return "up"
    if change < 0:
        return "down"
    return "flat"


def _fmt(value: float | None) -> str:
    if value is None:
        return "N/A"
    return f"{value:g}"


def _fmt_date(value: datetime) -> str:
    return value.date().isoformat()


def _naive(value: datetime) -> datetime:
    """Drop tzinfo so aware and naive timestamps sort together."""
    return value.replace(tzinfo=None)
