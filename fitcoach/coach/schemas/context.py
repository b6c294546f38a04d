"""Optimized context sent to the completion endpoint. Rebuilt per request, never persisted."""

from pydantic import BaseModel, Field

from fitcoach.coach.schemas.chat import ChatMessage


class UserBasics(BaseModel):
    goals: list[str]
    experience: str
    restrictions: list[str] = Field(default_factory=list)


class PlanSummary(BaseModel):
    workout: str
    nutrition: str


class OptimizedContext(BaseModel):
    user_basics: UserBasics
    current_plan_summary: PlanSummary
    chat_history: list[ChatMessage]
    recent_progress: str
    progress_details: str
