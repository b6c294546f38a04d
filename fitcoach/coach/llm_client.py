"""Backend client for the OpenAI-compatible completion endpoint.

Sends one structured request per user message and normalizes the reply into
an AssistantResponse. Every failure (unconfigured endpoint, enforced budget,
transport error, non-2xx status, undecodable body) ends in a canned fallback
response; ``send`` never raises.
"""

import random
from typing import Any

import httpx
from loguru import logger

from fitcoach.coach.cost_governor import CostGovernor
from fitcoach.coach.errors import BudgetExceededError, CoachError, ConfigurationError, NetworkError
from fitcoach.coach.function_schemas import COACH_FUNCTIONS
from fitcoach.coach.prompt_builder import build_messages
from fitcoach.coach.proposal_parser import ProposalParser
from fitcoach.coach.schemas.context import OptimizedContext
from fitcoach.coach.schemas.responses import AssistantResponse
from fitcoach.config.settings import Settings

FALLBACK_RESPONSES = [
    "As your personal trainer, I recommend sticking with your current plan. Is there anything specific I can help you with?",
    "I understand your question. To give you the best answer, the AI connection needs to be configured in the settings.",
    "I'm here to help with your training and nutrition. Could you be more specific about what you need?",
    "As a personal trainer, consistency is always key. Which aspect would you like guidance on?",
]


def _raise_network_error(message: str, status_code: int | None = None) -> None:
    raise NetworkError(message, status_code=status_code)


def _token_count(value: Any) -> int:
    """Usage counts as reported by the endpoint; anything unreadable counts as zero."""
    try:
        return max(int(value or 0), 0)
    except (TypeError, ValueError):
        logger.warning("Unreadable token count in usage", value=repr(value))
        return 0


class CoachBackendClient:
    def __init__(
        self,
        settings: Settings,
        cost_governor: CostGovernor,
        parser: ProposalParser | None = None,
        http_client: httpx.AsyncClient | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings
        self.cost_governor = cost_governor
        self.parser = parser or ProposalParser()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=settings.ai_timeout_seconds)
        self._rng = rng or random.Random()

    def build_request(
        self,
        message: str,
        context: OptimizedContext,
        function_call: str | dict[str, str] = "auto",
    ) -> dict[str, Any]:
        return {
            "model": self.settings.ai_model,
            "messages": build_messages(message, context),
            "functions": COACH_FUNCTIONS,
            "function_call": function_call,
            "max_tokens": self.settings.ai_max_tokens,
            "temperature": self.settings.ai_temperature,
        }

    async def send(
        self,
        message: str,
        context: OptimizedContext,
        function_call: str | dict[str, str] = "auto",
    ) -> AssistantResponse:
        """Send a user message with its context to the completion endpoint.

        Args:
            message: User message
            context: Optimized context
            function_call: "auto" or {"name": ...} to force an operation

        Returns:
            Parsed AssistantResponse, or a fallback response on any failure
        """
        try:
            body = await self._post(self.build_request(message, context, function_call))
        except CoachError as e:
            logger.warning("Backend call failed, using fallback", error_code=e.code, error=e.message)
            return self.fallback(e.code)
        except Exception as e:
            logger.exception("Unexpected backend client failure", error_type=type(e).__name__)
            return self.fallback("unexpected_error")

        try:
            self._track_usage(body)
            return self.parser.parse(body)
        except Exception as e:
            logger.exception("Failed to interpret completion response", error_type=type(e).__name__)
            return self.fallback("parse_error")

    async def _post(self, payload: dict[str, Any]) -> Any:
        if not self.settings.ai_configured:
            raise ConfigurationError()
        if not self.cost_governor.allows_call():
            raise BudgetExceededError(self.cost_governor.daily_cost, self.cost_governor.daily_limit_usd)

        logger.debug(
            "Calling completion endpoint",
            model=payload["model"],
            message_count=len(payload["messages"]),
            function_call=payload["function_call"],
        )
        try:
            response = await self._client.post(
                self.settings.ai_endpoint,
                json=payload,
                headers={"Authorization": f"Bearer {self.settings.ai_api_key}"},
                timeout=self.settings.ai_timeout_seconds,
            )
        except httpx.HTTPError as e:
            raise NetworkError(f"Transport error: {type(e).__name__}") from e

        if not response.is_success:
            _raise_network_error(f"AI API error: {response.status_code}", status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            raise NetworkError("AI API returned invalid JSON", status_code=response.status_code) from e

    def _track_usage(self, body: Any) -> None:
        usage = body.get("usage") if isinstance(body, dict) else None
        if not isinstance(usage, dict):
            usage = {}
        self.cost_governor.track_call(
            _token_count(usage.get("prompt_tokens")),
            _token_count(usage.get("completion_tokens")),
            self.settings.ai_model,
        )

    def fallback(self, error: str | None = None) -> AssistantResponse:
        return AssistantResponse(message=self._rng.choice(FALLBACK_RESPONSES), is_fallback=True, error=error)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
