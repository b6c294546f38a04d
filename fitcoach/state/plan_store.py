"""Plan Store: canonical owner of training and nutrition plan data.

The assistant reads snapshots and issues whole-entity writes. Writes that
fail raise PersistenceError with a network / permission / generic kind.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

from loguru import logger
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from fitcoach.coach.errors import PersistenceError
from fitcoach.coach.schemas.plans import NutritionGoals, TrainingProgram, WeeklyMealPlan
from fitcoach.state.db import get_session
from fitcoach.state.models import NutritionGoalsRecord, TrainingPlanRecord, WeeklyMealPlanRecord


class PlanStore(Protocol):
    async def get_training_plan(self, user_id: str) -> TrainingProgram | None: ...

    async def save_training_plan(self, user_id: str, plan: TrainingProgram) -> None: ...

    async def get_nutrition_goals(self, user_id: str) -> NutritionGoals | None: ...

    async def save_nutrition_goals(self, user_id: str, goals: NutritionGoals) -> None: ...

    async def get_weekly_meal_plan(self, user_id: str) -> WeeklyMealPlan | None: ...

    async def save_weekly_meal_plan(self, user_id: str, plan: WeeklyMealPlan) -> None: ...


class InMemoryPlanStore:
    """Dict-backed Plan Store. Stores copies so callers cannot mutate saved state."""

    def __init__(self) -> None:
        self.training_plans: dict[str, TrainingProgram] = {}
        self.nutrition_goals: dict[str, NutritionGoals] = {}
        self.weekly_meal_plans: dict[str, WeeklyMealPlan] = {}

    async def get_training_plan(self, user_id: str) -> TrainingProgram | None:
        plan = self.training_plans.get(user_id)
        return plan.model_copy(deep=True) if plan else None

    async def save_training_plan(self, user_id: str, plan: TrainingProgram) -> None:
        self.training_plans[user_id] = plan.model_copy(deep=True)

    async def get_nutrition_goals(self, user_id: str) -> NutritionGoals | None:
        goals = self.nutrition_goals.get(user_id)
        return goals.model_copy(deep=True) if goals else None

    async def save_nutrition_goals(self, user_id: str, goals: NutritionGoals) -> None:
        self.nutrition_goals[user_id] = goals.model_copy(deep=True)

    async def get_weekly_meal_plan(self, user_id: str) -> WeeklyMealPlan | None:
        plan = self.weekly_meal_plans.get(user_id)
        return plan.model_copy(deep=True) if plan else None

    async def save_weekly_meal_plan(self, user_id: str, plan: WeeklyMealPlan) -> None:
        self.weekly_meal_plans[user_id] = plan.model_copy(deep=True)


def classify_db_error(error: SQLAlchemyError) -> PersistenceError:
    """Map a SQLAlchemy error onto a PersistenceError kind."""
    text = str(error).lower()
    if "permission denied" in text or "insufficient privilege" in text or "readonly" in text:
        return PersistenceError(str(error), kind="permission")
    if isinstance(error, OperationalError) or (isinstance(error, DBAPIError) and error.connection_invalidated):
        return PersistenceError(str(error), kind="network")
    return PersistenceError(str(error), kind="generic")


class SqlPlanStore:
    """SQLAlchemy-backed Plan Store (one JSON document per user and entity).

    Session work is synchronous and runs in a worker thread so the event loop
    stays free while the database is busy.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    def _load(self, model: type, user_id: str) -> dict | None:
        with get_session(self._session_factory) as session:
            record = session.get(model, user_id)
            return dict(record.payload) if record is not None else None

    def _save(self, model: type, user_id: str, payload: dict) -> None:
        try:
            with get_session(self._session_factory) as session:
                record = session.get(model, user_id)
                if record is None:
                    session.add(model(user_id=user_id, payload=payload))
                else:
                    record.payload = payload
        except SQLAlchemyError as e:
            logger.error("Plan store write failed", table=model.__tablename__, user_id=user_id, error=str(e))
            raise classify_db_error(e) from e

    async def get_training_plan(self, user_id: str) -> TrainingProgram | None:
        payload = await asyncio.to_thread(self._load, TrainingPlanRecord, user_id)
        return TrainingProgram.model_validate(payload) if payload else None

    async def save_training_plan(self, user_id: str, plan: TrainingProgram) -> None:
        payload = plan.model_dump(mode="json", by_alias=True)
        await asyncio.to_thread(self._save, TrainingPlanRecord, user_id, payload)

    async def get_nutrition_goals(self, user_id: str) -> NutritionGoals | None:
        payload = await asyncio.to_thread(self._load, NutritionGoalsRecord, user_id)
        return NutritionGoals.model_validate(payload) if payload else None

    async def save_nutrition_goals(self, user_id: str, goals: NutritionGoals) -> None:
        payload = goals.model_dump(mode="json", by_alias=True)
        await asyncio.to_thread(self._save, NutritionGoalsRecord, user_id, payload)

    async def get_weekly_meal_plan(self, user_id: str) -> WeeklyMealPlan | None:
        payload = await asyncio.to_thread(self._load, WeeklyMealPlanRecord, user_id)
        return WeeklyMealPlan.model_validate(payload) if payload else None

    async def save_weekly_meal_plan(self, user_id: str, plan: WeeklyMealPlan) -> None:
        payload = plan.model_dump(mode="json", by_alias=True)
        await asyncio.to_thread(self._save, WeeklyMealPlanRecord, user_id, payload)
