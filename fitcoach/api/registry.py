"""Per-user Coach Service registry.

One CoachService per user; all of them share one response cache, one cost
governor and one backend client.
"""

import asyncio
from collections.abc import Callable

from loguru import logger
from sqlalchemy.orm import Session, sessionmaker

from fitcoach.coach.coach_service import CoachService
from fitcoach.coach.cost_governor import CostGovernor
from fitcoach.coach.llm_client import CoachBackendClient
from fitcoach.coach.notifications import CollectingNotificationSink
from fitcoach.coach.proposal_parser import ProposalParser
from fitcoach.coach.response_cache import ResponseCache
from fitcoach.coach.salvage import NoSalvage, RegexMessageSalvage
from fitcoach.coach.schemas.plans import UserProfile
from fitcoach.coach.schemas.responses import AssistantResponse
from fitcoach.config.settings import Settings
from fitcoach.state.analysis_store import AnalysisStore, SqlAnalysisStore
from fitcoach.state.db import create_session_factory
from fitcoach.state.plan_store import PlanStore, SqlPlanStore


class CoachRegistry:
    def __init__(
        self,
        settings: Settings,
        plan_store: PlanStore,
        analysis_store_factory: Callable[[str], AnalysisStore],
        backend: CoachBackendClient,
        cache: ResponseCache[AssistantResponse],
    ) -> None:
        self.settings = settings
        self.plan_store = plan_store
        self.analysis_store_factory = analysis_store_factory
        self.backend = backend
        self.cache = cache
        self._services: dict[str, CoachService] = {}
        self._sinks: dict[str, CollectingNotificationSink] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    async def get(self, user_id: str) -> CoachService:
        """Return the user's service, creating and loading it on first use.

        Concurrent first requests for one user share a single service.
        """
        service = self._services.get(user_id)
        if service is not None:
            return service

        async with self._locks.setdefault(user_id, asyncio.Lock()):
            service = self._services.get(user_id)
            if service is None:
                sink = CollectingNotificationSink()
                service = CoachService(
                    profile=UserProfile(id=user_id),
                    plan_store=self.plan_store,
                    backend=self.backend,
                    cache=self.cache,
                    analysis_store=self.analysis_store_factory(user_id),
                    notifier=sink,
                    nutrition_rollback=self.settings.nutrition_rollback_enabled,
                )
                await service.load_plans()
                self._services[user_id] = service
                self._sinks[user_id] = sink
                logger.info("Coach service created", user_id=user_id)
        return service

    def sink(self, user_id: str) -> CollectingNotificationSink:
        return self._sinks[user_id]

    async def aclose(self) -> None:
        await self.backend.aclose()


def build_registry(
    settings: Settings,
    session_factory: sessionmaker[Session] | None = None,
) -> CoachRegistry:
    """Wire the default SQL-backed registry from settings."""
    factory = session_factory or create_session_factory(settings.database_url)
    governor = CostGovernor(settings.daily_budget_usd, enforce=settings.enforce_daily_budget)
    salvage = RegexMessageSalvage() if settings.salvage_enabled else NoSalvage()
    backend = CoachBackendClient(settings, governor, ProposalParser(salvage))
    return CoachRegistry(
        settings=settings,
        plan_store=SqlPlanStore(factory),
        analysis_store_factory=lambda user_id: SqlAnalysisStore(factory, user_id),
        backend=backend,
        cache=ResponseCache(ttl_seconds=settings.response_cache_ttl_seconds),
    )
