import threading

import pytest
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from fitcoach.coach.errors import PersistenceError
from fitcoach.coach.schemas.plans import NutritionGoals, WeeklyMealPlan
from fitcoach.state.db import create_session_factory
from fitcoach.state.plan_store import InMemoryPlanStore, SqlPlanStore, classify_db_error


@pytest.fixture
def sql_store() -> SqlPlanStore:
    return SqlPlanStore(create_session_factory("sqlite:///:memory:"))


@pytest.mark.asyncio
async def test_sql_round_trip(sql_store, training_plan):
    assert await sql_store.get_training_plan("u1") is None

    await sql_store.save_training_plan("u1", training_plan)
    await sql_store.save_nutrition_goals("u1", NutritionGoals(daily_calories=2200, daily_protein=140))
    await sql_store.save_weekly_meal_plan("u1", WeeklyMealPlan(id="w1", name="Week", days=[{"day": "monday"}]))

    assert await sql_store.get_training_plan("u1") == training_plan
    assert (await sql_store.get_nutrition_goals("u1")).daily_protein == 140
    assert (await sql_store.get_weekly_meal_plan("u1")).days == [{"day": "monday"}]
    assert await sql_store.get_training_plan("u2") is None


@pytest.mark.asyncio
async def test_sql_save_overwrites_whole_entity(sql_store, training_plan):
    await sql_store.save_training_plan("u1", training_plan)
    renamed = training_plan.model_copy(update={"name": "Full Body", "workout_days": []})

    await sql_store.save_training_plan("u1", renamed)

    saved = await sql_store.get_training_plan("u1")
    assert saved.name == "Full Body"
    assert saved.workout_days == []


@pytest.mark.asyncio
async def test_sql_write_failure_raises_persistence_error(training_plan):
    store = SqlPlanStore(create_session_factory("sqlite:///:memory:", create_tables=False))

    with pytest.raises(PersistenceError) as exc_info:
        await store.save_training_plan("u1", training_plan)

    assert exc_info.value.kind == "network"


@pytest.mark.asyncio
async def test_in_memory_store_returns_copies(training_plan):
    store = InMemoryPlanStore()
    await store.save_training_plan("u1", training_plan)

    loaded = await store.get_training_plan("u1")
    loaded.workout_days.clear()

    assert len((await store.get_training_plan("u1")).workout_days) == 2


@pytest.mark.parametrize(
    "error, kind",
    [
        (DBAPIError("UPDATE", {}, Exception("permission denied for table training_plans")), "permission"),
        (OperationalError("UPDATE", {}, Exception("attempt to write a readonly database")), "permission"),
        (OperationalError("SELECT", {}, Exception("server closed the connection unexpectedly")), "network"),
        (IntegrityError("INSERT", {}, Exception("NOT NULL constraint failed")), "generic"),
    ],
)
def test_classify_db_error(error, kind):
    assert classify_db_error(error).kind == kind


@pytest.mark.asyncio
async def test_sql_work_runs_off_the_event_loop(sql_store, training_plan, monkeypatch):
    threads: list[int] = []
    save, load = sql_store._save, sql_store._load

    def recording_save(*args):
        threads.append(threading.get_ident())
        return save(*args)

    def recording_load(*args):
        threads.append(threading.get_ident())
        return load(*args)

    monkeypatch.setattr(sql_store, "_save", recording_save)
    monkeypatch.setattr(sql_store, "_load", recording_load)

    await sql_store.save_training_plan("u1", training_plan)
    await sql_store.get_training_plan("u1")

    assert len(threads) == 2
    assert threading.get_ident() not in threads
