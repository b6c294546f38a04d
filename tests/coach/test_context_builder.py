from datetime import datetime, timedelta

from fitcoach.coach.context_builder import (
    NO_NUTRITION_PLAN,
    NO_PROGRESS_DETAILS,
    NO_PROGRESS_RECORDED,
    NO_RECENT_PROGRESS,
    NO_TRAINING_PLAN,
    PROGRESS_AVAILABLE,
    build_optimized_context,
    build_progress_details,
    compress_history,
    summarize_nutrition_plan,
    summarize_workout_plan,
)
from fitcoach.coach.schemas.chat import ChatMessage
from fitcoach.coach.schemas.plans import (
    Exercise,
    ExerciseSet,
    NutritionGoals,
    NutritionPlan,
    ProgressSnapshot,
    UserProfile,
    WeeklyMealPlan,
    WeightEntry,
    WorkoutExercise,
    WorkoutSession,
)


def _conversation(count: int) -> list[ChatMessage]:
    return [
        ChatMessage.create("user" if i % 2 == 0 else "assistant", f"{'question' if i % 2 == 0 else 'answer'} {i}")
        for i in range(count)
    ]


def _session(day: int, weight: float | None, name: str = "Press de Banca") -> WorkoutSession:
    return WorkoutSession(
        id=f"session-{day}",
        date=datetime(2026, 1, 1) + timedelta(days=day),
        completed=True,
        exercises=[
            WorkoutExercise(
                exercise=Exercise(id="bench_press", name=name),
                actual_sets=[ExerciseSet(reps=8, weight=weight)],
            )
        ],
    )


def test_short_history_passes_through_unchanged():
    history = _conversation(8)

    assert compress_history(history) == history


def test_long_history_keeps_last_five_verbatim():
    history = _conversation(12)

    compressed = compress_history(history)

    assert len(compressed) == 6
    assert compressed[1:] == history[-5:]
    summary = compressed[0]
    assert summary.role == "system"
    assert summary.content.startswith("Previous conversation summary: Recent topics: ")
    # older messages are 0..6; the last three user turns among them are 2, 4, 6
    assert "question 2, question 4, question 6" in summary.content
    assert "question 0" not in summary.content


def test_summary_truncates_topics_and_handles_no_user_turns():
    long_text = "x" * 80
    history = [ChatMessage.create("user", long_text)] + _conversation(8)
    compressed = compress_history(history)
    assert "x" * 50 in compressed[0].content
    assert "x" * 51 not in compressed[0].content

    assistant_only = [ChatMessage.create("assistant", f"reply {i}") for i in range(9)]
    assert compress_history(assistant_only)[0].content == "Previous conversation summary: No previous history"


def test_workout_digest_lists_days_and_all_exercises(training_plan):
    digest = summarize_workout_plan(training_plan)

    assert "📅 PUSH (monday):" in digest
    assert "  • Press de Banca (ID: bench_press) - Muscles: chest, triceps" in digest
    assert "🏋️ AVAILABLE EXERCISES (4 total):" in digest
    assert "Barbell Row (ID: barbell_row)" in digest


def test_missing_plans_render_sentinels():
    assert summarize_workout_plan(None) == NO_TRAINING_PLAN
    assert summarize_nutrition_plan(None) == NO_NUTRITION_PLAN


def test_nutrition_digest():
    plan = NutritionPlan(
        goals=NutritionGoals(daily_calories=2200, daily_protein=160, daily_carbs=220, daily_fats=70),
        weekly_plan=WeeklyMealPlan(id="w1", name="Week", days=[{"day": d} for d in range(7)]),
    )

    assert summarize_nutrition_plan(plan) == (
        "Calories: 2200kcal, Protein: 160g, Carbs: 220g, Fats: 70g. Weekly plan: 7 days configured"
    )


def test_progress_sentinels():
    assert build_progress_details(None) == NO_PROGRESS_DETAILS
    assert build_progress_details(ProgressSnapshot()) == NO_PROGRESS_RECORDED


def test_progress_details_weights_and_progression():
    progress = ProgressSnapshot(
        weight_history=[
            WeightEntry(date=datetime(2026, 1, day), weight=82.0 - day * 0.5) for day in range(1, 8)
        ],
        recent_workouts=[_session(0, 60.0), _session(2, 62.5), _session(4, None), _session(1, 60.0), _session(3, 62.5)],
    )

    details = build_progress_details(progress)

    assert "INITIAL WEIGHT: 2026-01-01: 81.5kg" in details
    assert "RECENT WEIGHTS: 2026-01-07: 78.5kg, 2026-01-06: 79kg" in details
    assert "TOTAL READINGS: 7 measurements" in details
    assert "WORKOUTS (5 total):" in details
    assert "... and 2 earlier sessions" in details
    # latest session with data (day 3, 62.5) against the previous one (day 2, 62.5)
    assert "→ Press de Banca: 62.5kg → 62.5kg (same)" in details


def test_progression_marks_increase():
    progress = ProgressSnapshot(recent_workouts=[_session(0, 60.0), _session(2, 62.5)])

    details = build_progress_details(progress)

    assert "↑ Press de Banca: 60kg → 62.5kg (+2.5kg)" in details


def test_build_optimized_context_defaults(training_plan):
    profile = UserProfile(id="user-1")

    context = build_optimized_context(profile, _conversation(3), training_plan=training_plan)

    assert context.user_basics.goals == ["general_health"]
    assert context.user_basics.experience == "beginner"
    assert context.user_basics.restrictions == []
    assert context.current_plan_summary.nutrition == NO_NUTRITION_PLAN
    assert context.recent_progress == NO_RECENT_PROGRESS
    assert len(context.chat_history) == 3


def test_recent_progress_flag():
    profile = UserProfile(id="user-1", goals=["strength"])
    progress = ProgressSnapshot(weight_history=[WeightEntry(date=datetime(2026, 1, 1), weight=80)])

    context = build_optimized_context(profile, [], progress=progress)

    assert context.recent_progress == PROGRESS_AVAILABLE
    assert context.user_basics.goals == ["strength"]
