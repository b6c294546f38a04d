"""Normalized assistant response returned by the backend client."""

from pydantic import BaseModel

from fitcoach.coach.schemas.analysis import AnalysisReport
from fitcoach.coach.schemas.proposal import Proposal


class AssistantResponse(BaseModel):
    message: str
    function_name: str | None = None
    proposal: Proposal | None = None
    analysis: AnalysisReport | None = None
    is_fallback: bool = False
    error: str | None = None

    @property
    def has_proposal(self) -> bool:
        return self.proposal is not None
