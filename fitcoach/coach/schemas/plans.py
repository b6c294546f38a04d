"""Plan and progress records owned by the Plan Store.

The assistant never owns this data. It reads snapshots and issues
whole-entity writes.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import Field

from fitcoach.coach.schemas.base import CamelModel

Difficulty = Literal["beginner", "intermediate", "advanced"]
Category = Literal["push", "pull", "legs", "core", "cardio"]


class Exercise(CamelModel):
    """Exercise entity with a stable id."""

    id: str
    name: str
    description: str | None = None
    video_url: str | None = None
    tips: list[str] = Field(default_factory=list)
    target_muscles: list[str] = Field(default_factory=list)
    difficulty: Difficulty = "intermediate"
    category: Category = "push"


class ExerciseSet(CamelModel):
    reps: int = 0
    weight: float | None = None
    duration: float | None = None
    rest_time: float | None = None
    completed: bool = False
    notes: str | None = None


class WorkoutExercise(CamelModel):
    """An exercise slot inside a workout day (or a logged session)."""

    exercise: Exercise
    planned_sets: int = 3
    planned_reps: str = "8-12"
    actual_sets: list[ExerciseSet] = Field(default_factory=list)
    completed: bool = False


class WorkoutDay(CamelModel):
    id: str
    name: str
    description: str = ""
    day: str
    exercises: list[WorkoutExercise] = Field(default_factory=list)
    estimated_duration: int | None = None
    completed: bool = False
    warm_up: list[str] = Field(default_factory=list)


class TrainingProgram(CamelModel):
    """Canonical training program: program -> workout days -> exercises."""

    id: str
    name: str
    description: str = ""
    duration: int | None = None  # weeks
    frequency: int | None = None  # days per week
    workout_days: list[WorkoutDay] = Field(default_factory=list)
    is_active: bool = True


class NutritionGoals(CamelModel):
    daily_calories: float
    daily_protein: float
    daily_carbs: float | None = None
    daily_fats: float | None = None
    calorie_deficit: float | None = None


class WeeklyMealPlan(CamelModel):
    """Weekly meal plan. Day records are opaque to the assistant."""

    id: str
    name: str
    description: str = ""
    days: list[dict[str, Any]] = Field(default_factory=list)
    shopping_list: list[dict[str, Any]] = Field(default_factory=list)
    prep_tips: list[str] = Field(default_factory=list)


class NutritionPlan(CamelModel):
    goals: NutritionGoals
    weekly_plan: WeeklyMealPlan | None = None


class UserProfile(CamelModel):
    id: str
    name: str = "User"
    age: int | None = None
    weight: float | None = None
    height: float | None = None
    goals: list[str] = Field(default_factory=list)
    experience: str = "beginner"
    restrictions: list[str] = Field(default_factory=list)


class WeightEntry(CamelModel):
    date: datetime
    weight: float


class WorkoutSession(CamelModel):
    """A logged training session."""

    id: str
    workout_day_id: str | None = None
    date: datetime | None = None
    start_time: datetime | None = None
    completed: bool = False
    exercises: list[WorkoutExercise] = Field(default_factory=list)

    @property
    def performed_at(self) -> datetime | None:
        return self.date or self.start_time


class Milestone(CamelModel):
    title: str
    completed: bool = False


class ProgressStats(CamelModel):
    total_workouts: int | None = None
    current_streak: int | None = None
    total_volume: float | None = None
    average_workout_duration: float | None = None


class ProgressSnapshot(CamelModel):
    """Progress data fed to the context builder and the analysis scheduler."""

    weight_history: list[WeightEntry] = Field(default_factory=list)
    recent_workouts: list[WorkoutSession] = Field(default_factory=list)
    milestones: list[Milestone] = Field(default_factory=list)
    performance_metrics: list[dict[str, Any]] = Field(default_factory=list)
    stats: ProgressStats | None = None
    total_workouts: int = 0

    def has_data(self) -> bool:
        stats_present = self.stats is not None and any(
            value is not None for value in self.stats.model_dump().values()
        )
        return bool(self.weight_history or self.recent_workouts or self.milestones or stats_present)
