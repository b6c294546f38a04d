import asyncio

import pytest

from fitcoach.api.registry import CoachRegistry
from fitcoach.coach.response_cache import ResponseCache
from fitcoach.state.analysis_store import InMemoryAnalysisStore
from fitcoach.state.plan_store import InMemoryPlanStore


class SlowPlanStore(InMemoryPlanStore):
    """Yields to the event loop on every read so first loads interleave."""

    def __init__(self) -> None:
        super().__init__()
        self.training_reads = 0

    async def get_training_plan(self, user_id):
        self.training_reads += 1
        await asyncio.sleep(0.01)
        return await super().get_training_plan(user_id)


@pytest.mark.asyncio
async def test_concurrent_first_requests_share_one_service(configured_settings, backend_factory):
    backend, _ = backend_factory()
    store = SlowPlanStore()
    registry = CoachRegistry(configured_settings, store, lambda user_id: InMemoryAnalysisStore(), backend, ResponseCache())

    first, second = await asyncio.gather(registry.get("u1"), registry.get("u1"))

    assert first is second
    assert store.training_reads == 1
    assert await registry.get("u1") is first
    assert (await registry.get("u2")) is not first
