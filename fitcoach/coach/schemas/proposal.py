"""Typed proposals for pending plan mutations.

A proposal is a tagged union on ``type``. Each variant carries its own
``changes`` payload, validated when the backend response is parsed.
"""

import uuid
from datetime import UTC, datetime
from typing import Annotated, Any, Literal

from pydantic import Field, TypeAdapter, field_validator, model_validator

from fitcoach.coach.schemas.base import CamelModel
from fitcoach.coach.schemas.plans import Category, Difficulty

ProposalType = Literal[
    "exercise_replacement",
    "workout_modification",
    "nutrition_adjustment",
    "progress_analysis",
]
Priority = Literal["high", "medium", "low"]


class NewExercise(CamelModel):
    """Replacement exercise as described by the backend."""

    name: str
    description: str | None = None
    sets: int | None = None
    reps: str | None = None
    video_url: str | None = None
    tips: list[str] | None = None
    target_muscles: list[str] | None = None
    difficulty: Difficulty | None = None
    category: Category | None = None

    @field_validator("reps", mode="before")
    @classmethod
    def coerce_reps(cls, value: Any) -> Any:
        """Reps arrive as numbers or ranges ("8-10")."""
        if isinstance(value, int | float):
            return str(int(value))
        return value


class ExerciseReplacementChanges(CamelModel):
    exercise_id: str | None = None
    old_exercise: str | None = None
    new_exercise: NewExercise

    @model_validator(mode="before")
    @classmethod
    def accept_exercise_alias(cls, data: Any) -> Any:
        if isinstance(data, dict) and "newExercise" not in data and "new_exercise" not in data and "exercise" in data:
            data = {**data, "newExercise": data["exercise"]}
        return data


class WorkoutModificationChanges(CamelModel):
    workout_changes: dict[str, Any]

    @field_validator("workout_changes")
    @classmethod
    def require_changes(cls, value: dict[str, Any]) -> dict[str, Any]:
        if not value:
            raise ValueError("workoutChanges must not be empty")
        return value


class NutritionAdjustmentChanges(CamelModel):
    goals: dict[str, Any] | None = None
    weekly_plan: dict[str, Any] | None = None

    @model_validator(mode="before")
    @classmethod
    def unwrap_nutrition_changes(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("nutritionChanges"), dict):
            return data["nutritionChanges"]
        return data

    @model_validator(mode="after")
    def require_one_section(self) -> "NutritionAdjustmentChanges":
        if not self.goals and not self.weekly_plan:
            raise ValueError("nutrition_adjustment requires goals or weeklyPlan")
        return self


class _ProposalBase(CamelModel):
    id: str = Field(default_factory=lambda: f"proposal-{uuid.uuid4().hex[:12]}")
    title: str
    description: str
    reasoning: str
    priority: Priority = "medium"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ExerciseReplacementProposal(_ProposalBase):
    type: Literal["exercise_replacement"] = "exercise_replacement"
    changes: ExerciseReplacementChanges


class WorkoutModificationProposal(_ProposalBase):
    type: Literal["workout_modification"] = "workout_modification"
    changes: WorkoutModificationChanges


class NutritionAdjustmentProposal(_ProposalBase):
    type: Literal["nutrition_adjustment"] = "nutrition_adjustment"
    changes: NutritionAdjustmentChanges


class ProgressAnalysisProposal(_ProposalBase):
    type: Literal["progress_analysis"] = "progress_analysis"
    changes: dict[str, Any] = Field(default_factory=dict)


Proposal = Annotated[
    ExerciseReplacementProposal | WorkoutModificationProposal | NutritionAdjustmentProposal | ProgressAnalysisProposal,
    Field(discriminator="type"),
]

proposal_adapter: TypeAdapter[Proposal] = TypeAdapter(Proposal)
