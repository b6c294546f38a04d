"""Render the request messages sent to the completion endpoint."""

from typing import Any

from fitcoach.coach.prompts.loader import load_prompt
from fitcoach.coach.schemas.context import OptimizedContext

SYSTEM_PROMPT_FILE = "coach_system.txt"
ANALYSIS_PROMPT_FILE = "progress_analysis.txt"

# Chat messages forwarded verbatim after the system prompt
HISTORY_MESSAGES_SENT = 3


def build_system_prompt(context: OptimizedContext) -> str:
    basics = context.user_basics
    nutrition = context.current_plan_summary.nutrition
    return load_prompt(SYSTEM_PROMPT_FILE).format(
        goals=", ".join(basics.goals),
        experience=basics.experience,
        restrictions=", ".join(basics.restrictions) or "None",
        workout=context.current_plan_summary.workout,
        nutrition=nutrition,
        nutrition_headline=nutrition.split(",")[0],
        recent_progress=context.recent_progress,
        progress_details=context.progress_details,
    )


def build_messages(message: str, context: OptimizedContext) -> list[dict[str, Any]]:
    """Build the chat-completions ``messages`` array.

    Args:
        message: New user message
        context: Optimized context for this request

    Returns:
        System prompt, the last few history messages, then the user message
    """
    messages: list[dict[str, Any]] = [{"role": "system", "content": build_system_prompt(context)}]
    messages.extend(
        {"role": m.role, "content": m.content} for m in context.chat_history[-HISTORY_MESSAGES_SENT:]
    )
    messages.append({"role": "user", "content": message})
    return messages


def build_analysis_request(plan_name: str | None, goals: list[str]) -> str:
    """Render the user-side request used for progress analyses."""
    return load_prompt(ANALYSIS_PROMPT_FILE).format(
        plan_name=plan_name or "No plan",
        goals=", ".join(goals) or "Not defined",
    )
