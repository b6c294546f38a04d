"""Root conftest for all tests.

Shared plan fixtures and a backend client wired to an in-process
``httpx.MockTransport`` so no test touches the network.
"""

import json
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from fitcoach.coach.cost_governor import CostGovernor
from fitcoach.coach.llm_client import CoachBackendClient
from fitcoach.coach.schemas.plans import Exercise, TrainingProgram, WorkoutDay, WorkoutExercise
from fitcoach.config.settings import Settings

AI_ENDPOINT = "https://ai.test/v1/chat/completions"


def _slot(exercise_id: str, name: str, muscles: list[str], category: str = "push") -> WorkoutExercise:
    return WorkoutExercise(
        exercise=Exercise(id=exercise_id, name=name, target_muscles=muscles, category=category),
        planned_sets=4,
        planned_reps="6-8",
    )


@pytest.fixture
def training_plan() -> TrainingProgram:
    return TrainingProgram(
        id="program-1",
        name="Upper Lower",
        workout_days=[
            WorkoutDay(
                id="day-1",
                name="Push",
                day="monday",
                exercises=[
                    _slot("bench_press", "Press de Banca", ["chest", "triceps"]),
                    _slot("shoulder_press", "Shoulder Press", ["shoulders"]),
                ],
            ),
            WorkoutDay(
                id="day-2",
                name="Legs",
                day="wednesday",
                exercises=[
                    _slot("squat", "Sentadilla", ["quadriceps", "glutes"], category="legs"),
                    _slot("barbell_row", "Barbell Row", ["back"], category="pull"),
                ],
            ),
        ],
    )


@pytest.fixture
def pushup_plan() -> TrainingProgram:
    return TrainingProgram(
        id="program-2",
        name="Bodyweight",
        workout_days=[
            WorkoutDay(
                id="day-1",
                name="Upper",
                day="monday",
                exercises=[_slot("pushup", "Push Up", ["chest"])],
            )
        ],
    )


@pytest.fixture
def configured_settings() -> Settings:
    return Settings(
        ai_endpoint=AI_ENDPOINT,
        ai_api_key="test-key",
        database_url="sqlite:///:memory:",
    )


@pytest.fixture
def completion_body() -> Callable[..., dict[str, Any]]:
    """Factory for chat-completions bodies carrying a function call."""

    def _make(
        name: str | None,
        arguments: dict[str, Any] | str | None = None,
        content: str | None = None,
        prompt_tokens: int = 1000,
        completion_tokens: int = 200,
    ) -> dict[str, Any]:
        message: dict[str, Any] = {"role": "assistant", "content": content}
        if name is not None:
            raw = arguments if isinstance(arguments, str) else json.dumps(arguments or {})
            message["function_call"] = {"name": name, "arguments": raw}
        return {
            "choices": [{"index": 0, "message": message}],
            "usage": {"prompt_tokens": prompt_tokens, "completion_tokens": completion_tokens},
        }

    return _make


@pytest.fixture
def backend_factory(configured_settings: Settings):
    """Build a CoachBackendClient whose transport replays the given bodies.

    Returns (client, requests) where ``requests`` collects every decoded request payload.
    """

    def _make(
        *bodies: dict[str, Any],
        status_code: int = 200,
        settings: Settings | None = None,
        governor: CostGovernor | None = None,
    ) -> tuple[CoachBackendClient, list[dict[str, Any]]]:
        requests: list[dict[str, Any]] = []
        queue = list(bodies)

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(json.loads(request.content))
            body = queue.pop(0) if len(queue) > 1 else (queue[0] if queue else {})
            return httpx.Response(status_code, json=body)

        client = CoachBackendClient(
            settings or configured_settings,
            governor or CostGovernor(),
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )
        return client, requests

    return _make
