"""Conversation layer for one user.

Owns the transcript, the loading gate, and the visible plan and progress
snapshots. Every path through ``send_message`` ends in exactly one
assistant-role message appended after the user message.
"""

from typing import Any

from loguru import logger

from fitcoach.coach.analysis_scheduler import AnalysisScheduler
from fitcoach.coach.context_builder import build_optimized_context
from fitcoach.coach.errors import ConversationBusyError, ProposalConflictError
from fitcoach.coach.llm_client import CoachBackendClient
from fitcoach.coach.notifications import LoggingNotificationSink, NotificationSink
from fitcoach.coach.proposal_applier import PlanUpdate, ProposalApplier
from fitcoach.coach.response_cache import ResponseCache, create_request_key
from fitcoach.coach.schemas.analysis import AnalysisResult
from fitcoach.coach.schemas.chat import ChatMessage, ChatTranscript
from fitcoach.coach.schemas.plans import NutritionPlan, ProgressSnapshot, TrainingProgram, UserProfile
from fitcoach.coach.schemas.proposal import Proposal
from fitcoach.coach.schemas.responses import AssistantResponse
from fitcoach.core.logger import user_context
from fitcoach.state.analysis_store import AnalysisStore
from fitcoach.state.plan_store import PlanStore

PROPOSAL_CONFLICT_NOTE = (
    "\n\n*Note: you still have a pending proposal. Accept or reject it before I can suggest another change.*"
)


def _is_cacheable(response: AssistantResponse) -> bool:
    return not response.is_fallback


class CoachService:
    def __init__(
        self,
        profile: UserProfile,
        plan_store: PlanStore,
        backend: CoachBackendClient,
        cache: ResponseCache[AssistantResponse],
        analysis_store: AnalysisStore,
        notifier: NotificationSink | None = None,
        nutrition_rollback: bool = True,
    ) -> None:
        self.profile = profile
        self.plan_store = plan_store
        self.backend = backend
        self.cache = cache
        self.notifier = notifier or LoggingNotificationSink()
        self.transcript = ChatTranscript()
        self.applier = ProposalApplier(plan_store, self.notifier, profile.id, nutrition_rollback=nutrition_rollback)
        self.scheduler = AnalysisScheduler(backend, analysis_store, self.notifier)

        self.training_plan: TrainingProgram | None = None
        self.nutrition_plan: NutritionPlan | None = None
        self.progress: ProgressSnapshot | None = None
        self._loading = False

    @property
    def user_id(self) -> str:
        return self.profile.id

    @property
    def is_loading(self) -> bool:
        return self._loading

    @property
    def pending_proposal(self) -> Proposal | None:
        return self.applier.pending

    @property
    def messages(self) -> list[ChatMessage]:
        return self.transcript.messages

    async def load_plans(self) -> None:
        """Refresh the visible plan snapshot from the Plan Store."""
        self.training_plan = await self.plan_store.get_training_plan(self.user_id)
        goals = await self.plan_store.get_nutrition_goals(self.user_id)
        weekly = await self.plan_store.get_weekly_meal_plan(self.user_id)
        self.nutrition_plan = NutritionPlan(goals=goals, weekly_plan=weekly) if goals else None
        logger.debug(
            "Plans loaded",
            user_id=self.user_id,
            has_training_plan=self.training_plan is not None,
            has_nutrition_plan=self.nutrition_plan is not None,
        )

    def set_progress(self, progress: ProgressSnapshot | None) -> None:
        self.progress = progress

    def _begin(self) -> None:
        if self._loading:
            raise ConversationBusyError()
        self._loading = True

    async def send_message(self, text: str) -> ChatMessage | None:
        """Send one user message and record the assistant reply.

        Args:
            text: User message; blank text is ignored

        Returns:
            The appended assistant message, or None for blank input

        Raises:
            ConversationBusyError: If another message is still in flight
        """
        if not text or not text.strip():
            return None
        self._begin()
        try:
            with user_context(self.user_id):
                prior_history = self.transcript.messages
                self.transcript.append(ChatMessage.create("user", text))

                context = build_optimized_context(
                    self.profile,
                    prior_history,
                    self.training_plan,
                    self.nutrition_plan,
                    self.progress,
                )
                key = create_request_key(text, context, session_id=self.user_id)
                response = await self.cache.get_or_create(
                    key,
                    lambda: self.backend.send(text, context),
                    should_store=_is_cacheable,
                )
                return self._record_response(response)
        finally:
            self._loading = False

    def _record_response(self, response: AssistantResponse) -> ChatMessage:
        content = response.message
        metadata: dict[str, Any] = {"functionName": response.function_name, "isFallback": response.is_fallback}

        if response.proposal is not None:
            try:
                self.applier.park(response.proposal)
            except ProposalConflictError as e:
                logger.warning("Proposal not parked", pending_id=e.pending_id, incoming_id=e.incoming_id)
                content += PROPOSAL_CONFLICT_NOTE
            else:
                metadata["proposalId"] = response.proposal.id
                metadata["proposal"] = response.proposal.model_dump(mode="json", by_alias=True)

        return self.transcript.append(ChatMessage.create("assistant", content, metadata))

    async def accept_proposal(self, proposal_id: str | None = None) -> ChatMessage | None:
        with user_context(self.user_id):
            outcome = await self.applier.accept(proposal_id)
        if outcome is None:
            return None
        if outcome.update is not None:
            self._publish(outcome.update)
        return self.transcript.append(outcome.message)

    def reject_proposal(self) -> ChatMessage:
        return self.transcript.append(self.applier.reject())

    def _publish(self, update: PlanUpdate) -> None:
        if update.training_plan is not None:
            self.training_plan = update.training_plan
        if update.nutrition_goals is not None or update.weekly_plan is not None:
            current = self.nutrition_plan
            goals = update.nutrition_goals or (current.goals if current else None)
            weekly = update.weekly_plan or (current.weekly_plan if current else None)
            if goals is not None:
                self.nutrition_plan = NutritionPlan(goals=goals, weekly_plan=weekly)

    def clear_history(self) -> None:
        self.transcript.clear()
        self.cache.clear()
        logger.info("Chat history cleared", user_id=self.user_id)

    async def analyze_progress(self) -> ChatMessage:
        """Run a manual analysis and append its report to the chat."""
        self._begin()
        try:
            with user_context(self.user_id):
                run = await self.scheduler.execute(
                    "manual",
                    self.profile,
                    self.training_plan,
                    self.nutrition_plan,
                    self.progress,
                )
        finally:
            self._loading = False

        metadata: dict[str, Any] = {"functionName": run.response.function_name, "isFallback": run.response.is_fallback}
        if run.result is not None:
            metadata["analysisId"] = run.result.id
        return self.transcript.append(ChatMessage.create("assistant", run.response.message, metadata))

    async def run_scheduled_analysis(self) -> AnalysisResult | None:
        with user_context(self.user_id):
            return await self.scheduler.run_automatic(
                self.profile,
                self.training_plan,
                self.nutrition_plan,
                self.progress,
            )
