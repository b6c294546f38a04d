import threading
from datetime import UTC, datetime, timedelta

import pytest

from fitcoach.coach.schemas.analysis import AnalysisResult
from fitcoach.state.analysis_store import InMemoryAnalysisStore, SqlAnalysisStore
from fitcoach.state.db import create_session_factory

BASE = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)


def _result(index: int) -> AnalysisResult:
    return AnalysisResult(
        id=f"analysis-{index}",
        timestamp=BASE + timedelta(days=index),
        analysis_type="weekly",
        progress_status="good",
        key_findings=[f"finding {index}"],
    )


@pytest.fixture
def session_factory():
    return create_session_factory("sqlite:///:memory:")


@pytest.fixture(params=["memory", "sql"])
def store(request, session_factory):
    if request.param == "memory":
        return InMemoryAnalysisStore()
    return SqlAnalysisStore(session_factory, "u1")


@pytest.mark.asyncio
async def test_keeps_ten_newest_first(store):
    for index in range(12):
        await store.append(_result(index))

    stored = await store.get_all()

    assert [r.id for r in stored] == [f"analysis-{i}" for i in range(11, 1, -1)]
    assert (await store.get_latest()).id == "analysis-11"


@pytest.mark.asyncio
async def test_empty_store(store):
    assert await store.get_all() == []
    assert await store.get_latest() is None
    markers = await store.get_debounce_markers()
    assert markers.last_analysis_at is None
    assert markers.last_workout_count == 0


@pytest.mark.asyncio
async def test_debounce_markers_round_trip(store):
    await store.set_debounce_markers(BASE, 4)
    await store.set_debounce_markers(BASE + timedelta(days=7), 9)

    markers = await store.get_debounce_markers()

    assert markers.last_analysis_at == BASE + timedelta(days=7)
    assert markers.last_workout_count == 9


@pytest.mark.asyncio
async def test_sql_store_is_scoped_per_user(session_factory):
    first = SqlAnalysisStore(session_factory, "u1")
    second = SqlAnalysisStore(session_factory, "u2")

    await first.append(_result(1))

    assert [r.id for r in await first.get_all()] == ["analysis-1"]
    assert await second.get_all() == []


@pytest.mark.asyncio
async def test_sql_store_runs_session_work_in_worker_thread(session_factory, monkeypatch):
    store = SqlAnalysisStore(session_factory, "u1")
    threads: list[int] = []
    append = store._append

    def recording_append(result):
        threads.append(threading.get_ident())
        return append(result)

    monkeypatch.setattr(store, "_append", recording_append)

    await store.append(_result(1))

    assert threads and threads[0] != threading.get_ident()
    assert (await store.get_latest()).id == "analysis-1"
