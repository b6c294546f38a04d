"""Proposal Applier: the single entry point for plan mutation.

Owns the ``Idle <-> ProposalPending`` state machine. At most one proposal is
pending; parking another one while it is pending raises
ProposalConflictError. Accept and reject always clear the slot, whether the
mutation succeeds or not.

A mutation is never partially applied: the new plan is built and validated
in full before the first write, and the visible plan is only published
(returned in the PlanUpdate) after the write succeeds.
"""

from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from loguru import logger
from pydantic import ValidationError
from pydantic.alias_generators import to_camel

from fitcoach.coach.entity_resolver import find_exercise, find_similar, generate_exercise_id, resolve_target
from fitcoach.coach.errors import (
    ApplicationError,
    PersistenceError,
    ProposalConflictError,
    ResolutionError,
)
from fitcoach.coach.notifications import NotificationSink, notify
from fitcoach.coach.schemas.chat import ChatMessage
from fitcoach.coach.schemas.plans import (
    Exercise,
    NutritionGoals,
    TrainingProgram,
    WeeklyMealPlan,
    WorkoutDay,
)
from fitcoach.coach.schemas.proposal import (
    ExerciseReplacementProposal,
    NewExercise,
    NutritionAdjustmentProposal,
    Proposal,
    WorkoutModificationProposal,
)
from fitcoach.state.plan_store import PlanStore

REJECTION_MESSAGE = "Understood, we'll keep your current plan. Is there anything else I can help you with?"
NO_OP_MESSAGE = "ℹ️ This proposal doesn't change your plan."

ERROR_MESSAGES = {
    "network": "❌ Connection error while saving the changes. Check your internet connection and try again.",
    "permission": "❌ You don't have permission to modify this plan.",
    "generic": "❌ There was an error applying the changes. Please try again.",
}


class ApplierState(StrEnum):
    IDLE = "idle"
    PROPOSAL_PENDING = "proposal_pending"


@dataclass(frozen=True)
class PlanUpdate:
    """Plan entities written by one accepted proposal."""

    confirmation: str
    training_plan: TrainingProgram | None = None
    nutrition_goals: NutritionGoals | None = None
    weekly_plan: WeeklyMealPlan | None = None


@dataclass(frozen=True)
class ApplyOutcome:
    success: bool
    message: ChatMessage
    proposal_id: str
    update: PlanUpdate | None = None


def classify_error(error: Exception) -> str:
    """Turn an application failure into the user-facing error message."""
    if isinstance(error, ResolutionError | ApplicationError):
        return f"❌ {error.message}"
    if isinstance(error, PersistenceError):
        return ERROR_MESSAGES[error.kind]
    return ERROR_MESSAGES["generic"]


def _camelize_keys(changes: dict[str, Any]) -> dict[str, Any]:
    return {to_camel(key) if "_" in key else key: value for key, value in changes.items()}


def _build_replacement(new: NewExercise, replaced: Exercise | None) -> Exercise:
    """Synthesize a new exercise, inheriting descriptive fields from the one it replaces."""
    return Exercise(
        id=generate_exercise_id(new.name),
        name=new.name,
        description=new.description or (replaced.description if replaced else None),
        video_url=new.video_url,
        tips=new.tips or (list(replaced.tips) if replaced else []),
        target_muscles=new.target_muscles or (list(replaced.target_muscles) if replaced else []),
        difficulty=new.difficulty or (replaced.difficulty if replaced else "intermediate"),
        category=new.category or (replaced.category if replaced else "push"),
    )


def replace_exercise(
    plan: TrainingProgram,
    target_id: str,
    replacement: Exercise,
    sets: int | None = None,
    reps: str | None = None,
) -> TrainingProgram:
    """Return a copy of ``plan`` with every slot carrying ``target_id`` rewritten in place."""
    days: list[WorkoutDay] = []
    for day in plan.workout_days:
        slots = [
            slot.model_copy(
                update={
                    "exercise": replacement,
                    "planned_sets": sets or slot.planned_sets,
                    "planned_reps": reps or slot.planned_reps,
                }
            )
            if slot.exercise.id == target_id
            else slot
            for slot in day.exercises
        ]
        days.append(day.model_copy(update={"exercises": slots}))
    return plan.model_copy(update={"workout_days": days}, deep=True)


class ProposalApplier:
    def __init__(
        self,
        plan_store: PlanStore,
        notifier: NotificationSink,
        user_id: str,
        nutrition_rollback: bool = True,
    ) -> None:
        self.plan_store = plan_store
        self.notifier = notifier
        self.user_id = user_id
        self.nutrition_rollback = nutrition_rollback
        self._pending: Proposal | None = None

    @property
    def state(self) -> ApplierState:
        return ApplierState.IDLE if self._pending is None else ApplierState.PROPOSAL_PENDING

    @property
    def pending(self) -> Proposal | None:
        return self._pending

    def park(self, proposal: Proposal) -> None:
        """Make ``proposal`` the pending proposal.

        Raises:
            ProposalConflictError: If a different proposal is already pending
        """
        if self._pending is not None and self._pending.id != proposal.id:
            raise ProposalConflictError(self._pending.id, proposal.id)
        self._pending = proposal
        logger.info("Proposal parked", proposal_id=proposal.id, proposal_type=proposal.type, user_id=self.user_id)

    def reject(self) -> ChatMessage:
        """Clear the pending slot and return the acknowledgement message."""
        if self._pending is not None:
            logger.info("Proposal rejected", proposal_id=self._pending.id, user_id=self.user_id)
        self._pending = None
        return ChatMessage.create("assistant", REJECTION_MESSAGE)

    async def accept(self, proposal_id: str | None = None) -> ApplyOutcome | None:
        """Apply the pending proposal.

        Args:
            proposal_id: Optional id guard; a stale id leaves the slot untouched

        Returns:
            ApplyOutcome, or None when nothing matching is pending
        """
        proposal = self._pending
        if proposal is None:
            logger.warning("Accept called with no pending proposal", user_id=self.user_id)
            return None
        if proposal_id is not None and proposal_id != proposal.id:
            logger.warning("Accept called for a stale proposal", proposal_id=proposal_id, pending_id=proposal.id)
            return None

        try:
            update = await self.apply(proposal)
        except Exception as e:
            error_message = classify_error(e)
            logger.error(
                "Failed to apply proposal",
                proposal_id=proposal.id,
                proposal_type=proposal.type,
                error_type=type(e).__name__,
                error=str(e),
            )
            notify(self.notifier, "error", "Could not apply changes", error_message)
            return ApplyOutcome(
                success=False,
                message=ChatMessage.create("assistant", error_message, {"proposalId": proposal.id}),
                proposal_id=proposal.id,
            )
        finally:
            self._pending = None

        notify(self.notifier, "success", "Changes applied", update.confirmation)
        return ApplyOutcome(
            success=True,
            message=ChatMessage.create("assistant", update.confirmation, {"proposalId": proposal.id}),
            proposal_id=proposal.id,
            update=update,
        )

    async def apply(self, proposal: Proposal) -> PlanUpdate:
        """Apply one proposal to the Plan Store.

        Raises:
            ResolutionError: If an exercise replacement has no target
            ApplicationError: If the payload does not fit the current plan
            PersistenceError: If a write fails
        """
        if isinstance(proposal, ExerciseReplacementProposal):
            return await self._apply_exercise_replacement(proposal)
        if isinstance(proposal, WorkoutModificationProposal):
            return await self._apply_workout_modification(proposal)
        if isinstance(proposal, NutritionAdjustmentProposal):
            return await self._apply_nutrition_adjustment(proposal)

        logger.info("Unsupported proposal type, nothing to apply", proposal_type=proposal.type)
        return PlanUpdate(confirmation=NO_OP_MESSAGE)

    async def _require_training_plan(self) -> TrainingProgram:
        plan = await self.plan_store.get_training_plan(self.user_id)
        if plan is None:
            raise ApplicationError("There is no training plan to modify")
        return plan

    async def _apply_exercise_replacement(self, proposal: ExerciseReplacementProposal) -> PlanUpdate:
        plan = await self._require_training_plan()
        changes = proposal.changes

        target_id = resolve_target(plan, changes, f"{proposal.title} {proposal.description}")
        replaced = find_exercise(plan, target_id)

        existing = find_similar(plan, changes.new_exercise.name, exclude_ids=[target_id])
        if existing is not None:
            replacement, origin = existing, "existing"
        else:
            replacement, origin = _build_replacement(changes.new_exercise, replaced), "new"

        updated = replace_exercise(
            plan,
            target_id,
            replacement,
            sets=changes.new_exercise.sets,
            reps=changes.new_exercise.reps,
        )
        await self.plan_store.save_training_plan(self.user_id, updated)

        old_name = replaced.name if replaced else target_id
        logger.info(
            "Exercise replaced",
            old_id=target_id,
            new_id=replacement.id,
            origin=origin,
            user_id=self.user_id,
        )
        return PlanUpdate(
            confirmation=f'✅ Exercise replaced: "{old_name}" → "{replacement.name} ({origin})"',
            training_plan=updated,
        )

    async def _apply_workout_modification(self, proposal: WorkoutModificationProposal) -> PlanUpdate:
        plan = await self._require_training_plan()
        merged = {**plan.model_dump(by_alias=True), **_camelize_keys(proposal.changes.workout_changes)}
        try:
            updated = TrainingProgram.model_validate(merged)
        except ValidationError as e:
            raise ApplicationError("The proposed workout changes don't fit the current plan") from e

        await self.plan_store.save_training_plan(self.user_id, updated)
        logger.info("Workout plan modified", fields=sorted(proposal.changes.workout_changes), user_id=self.user_id)
        return PlanUpdate(confirmation="✅ Workout plan updated", training_plan=updated)

    async def _apply_nutrition_adjustment(self, proposal: NutritionAdjustmentProposal) -> PlanUpdate:
        changes = proposal.changes
        previous_goals = await self.plan_store.get_nutrition_goals(self.user_id)

        new_goals = None
        new_weekly = None
        try:
            if changes.goals:
                base = previous_goals.model_dump(by_alias=True) if previous_goals else {}
                new_goals = NutritionGoals.model_validate({**base, **_camelize_keys(changes.goals)})
            if changes.weekly_plan:
                current_weekly = await self.plan_store.get_weekly_meal_plan(self.user_id)
                base = (
                    current_weekly.model_dump(by_alias=True)
                    if current_weekly
                    else {"id": f"meal-plan-{self.user_id}", "name": "Weekly meal plan"}
                )
                new_weekly = WeeklyMealPlan.model_validate({**base, **_camelize_keys(changes.weekly_plan)})
        except ValidationError as e:
            raise ApplicationError("The proposed nutrition changes don't fit the current plan") from e

        if new_goals is not None:
            await self.plan_store.save_nutrition_goals(self.user_id, new_goals)

        if new_weekly is not None:
            try:
                await self.plan_store.save_weekly_meal_plan(self.user_id, new_weekly)
            except Exception:
                if new_goals is not None:
                    await self._compensate_goals(previous_goals)
                raise

        logger.info(
            "Nutrition plan adjusted",
            goals_updated=new_goals is not None,
            weekly_plan_updated=new_weekly is not None,
            user_id=self.user_id,
        )
        return PlanUpdate(
            confirmation="✅ Nutrition plan updated",
            nutrition_goals=new_goals,
            weekly_plan=new_weekly,
        )

    async def _compensate_goals(self, previous_goals: NutritionGoals | None) -> None:
        if not self.nutrition_rollback:
            logger.warning("Weekly plan write failed, nutrition goals left updated", user_id=self.user_id)
            return
        if previous_goals is None:
            logger.warning("Weekly plan write failed and there were no previous goals to restore", user_id=self.user_id)
            return
        try:
            await self.plan_store.save_nutrition_goals(self.user_id, previous_goals)
            logger.info("Restored previous nutrition goals after weekly plan write failed", user_id=self.user_id)
        except Exception as e:
            logger.error("Failed to restore nutrition goals", user_id=self.user_id, error=str(e))
