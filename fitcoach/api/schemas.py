from typing import Any

from pydantic import Field

from fitcoach.coach.schemas.analysis import AnalysisResult
from fitcoach.coach.schemas.base import CamelModel
from fitcoach.coach.schemas.chat import ChatMessage
from fitcoach.coach.schemas.notifications import Notification


class MessageRequest(CamelModel):
    message: str


class AcceptRequest(CamelModel):
    proposal_id: str | None = None


class ChatTurnResponse(CamelModel):
    """Result of one conversational operation."""

    reply: ChatMessage | None = None
    pending_proposal: dict[str, Any] | None = None
    notifications: list[Notification] = Field(default_factory=list)


class AnalysisOverview(CamelModel):
    analyses: list[AnalysisResult] = Field(default_factory=list)
    has_recent_analysis: bool = False
    insights: list[str] = Field(default_factory=list)
