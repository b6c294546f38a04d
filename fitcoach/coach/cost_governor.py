"""Daily spend tracking for backend calls.

Advisory by default: a call that pushes the total over the soft ceiling is
never blocked, ``track_call`` just reports False. With enforcement enabled,
callers consult ``allows_call`` before issuing the next request.
"""

from collections.abc import Callable
from datetime import UTC, date, datetime

from loguru import logger

from fitcoach.coach.config.models import USER_FACING_MODEL, get_model_rates

DEFAULT_DAILY_LIMIT_USD = 5.0
_TOKENS_PER_RATE_UNIT = 1_000_000


def _utc_today() -> date:
    return datetime.now(UTC).date()


class CostGovernor:
    def __init__(
        self,
        daily_limit_usd: float = DEFAULT_DAILY_LIMIT_USD,
        enforce: bool = False,
        today: Callable[[], date] = _utc_today,
    ) -> None:
        self.daily_limit_usd = daily_limit_usd
        self.enforce = enforce
        self._today = today
        self._day = today()
        self._daily_cost = 0.0
        self._call_count = 0

    def _roll_day(self) -> None:
        current = self._today()
        if current != self._day:
            logger.info(
                "Resetting daily AI cost",
                previous_day=self._day.isoformat(),
                previous_cost=round(self._daily_cost, 6),
                calls=self._call_count,
            )
            self._day = current
            self._daily_cost = 0.0
            self._call_count = 0

    @staticmethod
    def estimate_cost(input_tokens: int, output_tokens: int, model: str = USER_FACING_MODEL) -> float:
        input_rate, output_rate = get_model_rates(model)
        return (input_tokens * input_rate + output_tokens * output_rate) / _TOKENS_PER_RATE_UNIT

    def track_call(self, input_tokens: int, output_tokens: int, model: str = USER_FACING_MODEL) -> bool:
        """Record one call's estimated cost.

        Args:
            input_tokens: Prompt tokens reported by the endpoint
            output_tokens: Completion tokens reported by the endpoint
            model: Model name used for pricing

        Returns:
            True while the daily total stays within the limit
        """
        self._roll_day()
        cost = self.estimate_cost(input_tokens, output_tokens, model)
        self._daily_cost += cost
        self._call_count += 1

        within = self._daily_cost <= self.daily_limit_usd
        if not within:
            logger.warning(
                "Daily AI budget exceeded",
                daily_cost=round(self._daily_cost, 6),
                daily_limit=self.daily_limit_usd,
                model=model,
            )
        return within

    def within_budget(self) -> bool:
        self._roll_day()
        return self._daily_cost <= self.daily_limit_usd

    def allows_call(self) -> bool:
        return not self.enforce or self.within_budget()

    @property
    def daily_cost(self) -> float:
        self._roll_day()
        return self._daily_cost

    @property
    def call_count(self) -> int:
        self._roll_day()
        return self._call_count

    def reset(self) -> None:
        self._day = self._today()
        self._daily_cost = 0.0
        self._call_count = 0
