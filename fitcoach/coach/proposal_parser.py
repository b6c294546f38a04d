"""Interpret completion-endpoint responses as typed assistant outcomes.

Outcomes:
- ``chat_only``: a plain message
- ``propose_changes``: a message plus a typed, pending Proposal
- ``analyze_progress``: a formatted multi-section message plus the structured report
- anything else: the best message that can be recovered

The parser never raises. Invalid structure is a ParseError internally and is
always recovered as a message-only response.
"""

import json
from typing import Any

from loguru import logger
from pydantic import ValidationError

from fitcoach.coach.errors import ParseError
from fitcoach.coach.function_schemas import ANALYZE_PROGRESS, CHAT_ONLY, PROPOSE_CHANGES
from fitcoach.coach.salvage import RegexMessageSalvage, SalvageStrategy
from fitcoach.coach.schemas.analysis import AnalysisReport
from fitcoach.coach.schemas.proposal import Proposal, proposal_adapter
from fitcoach.coach.schemas.responses import AssistantResponse

EMPTY_RESPONSE_MESSAGE = "The assistant returned an empty response."
GENERIC_FUNCTION_MESSAGE = "Function response without a specific message."
ANALYSIS_DEFAULT_MESSAGE = "Progress analysis completed."
INVALID_PROPOSAL_NOTE = "\n\n*Note: the suggested change could not be validated and was not offered.*"
MALFORMED_RESPONSE_MESSAGE = (
    "Sorry, I couldn't process the assistant's response. It was too long and got truncated. "
    "Please try again with a more specific question."
)

PRIORITY_GLYPHS = {"high": "🔴", "medium": "🟡", "low": "🟢"}
_PRIORITIES = frozenset(PRIORITY_GLYPHS)


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _extract_function_call(choice: dict[str, Any]) -> dict[str, Any] | None:
    message = _as_dict(choice.get("message"))
    for function_call in (choice.get("function_call"), message.get("function_call")):
        if isinstance(function_call, dict) and function_call:
            return function_call

    tool_calls = message.get("tool_calls")
    if isinstance(tool_calls, list) and tool_calls and isinstance(tool_calls[0], dict):
        function = tool_calls[0].get("function")
        if isinstance(function, dict):
            return function
    return None


def _load_arguments(arguments: Any) -> dict[str, Any]:
    """Decode function-call arguments.

    Raises:
        ValueError: If the arguments are not a JSON object (or a string holding one)
    """
    if isinstance(arguments, dict):
        return arguments
    if arguments is not None and not isinstance(arguments, str):
        raise ValueError(f"function arguments must be a string, got {type(arguments).__name__}")
    loaded = json.loads(arguments or "{}")
    if not isinstance(loaded, dict):
        raise ValueError("function arguments must be a JSON object")
    return loaded


def build_proposal(args: dict[str, Any]) -> Proposal:
    """Validate ``propose_changes`` arguments into a typed Proposal.

    Accepts the proposal fields nested under ``proposal`` or at the top level.

    Raises:
        ParseError: If the variant is unknown or structurally invalid
    """
    body = args.get("proposal") if isinstance(args.get("proposal"), dict) else args
    priority = args.get("priority") or body.get("priority")
    change_type = args.get("changeType") or body.get("changeType") or body.get("type")
    candidate = {
        "type": change_type if isinstance(change_type, str) else None,
        "title": body.get("title"),
        "description": body.get("description"),
        "reasoning": body.get("reasoning"),
        "priority": priority if isinstance(priority, str) and priority in _PRIORITIES else "medium",
        "changes": body.get("changes"),
    }
    try:
        return proposal_adapter.validate_python(candidate)
    except ValidationError as e:
        raise ParseError(f"Invalid proposal: {e.error_count()} validation error(s)", PROPOSE_CHANGES) from e


def build_analysis_report(args: dict[str, Any]) -> AnalysisReport:
    """Validate ``analyze_progress`` arguments into an AnalysisReport.

    Raises:
        ParseError: If the analysis payload is invalid
    """
    analysis = args.get("analysis") if isinstance(args.get("analysis"), dict) else {}
    recommendations = args.get("recommendations") or analysis.get("recommendations") or []
    try:
        return AnalysisReport.model_validate({**analysis, "recommendations": recommendations})
    except ValidationError as e:
        raise ParseError(f"Invalid analysis: {e.error_count()} validation error(s)", ANALYZE_PROGRESS) from e


def format_analysis_message(message: str, report: AnalysisReport) -> str:
    """Render an analysis report as a multi-section chat message."""
    text = message or ANALYSIS_DEFAULT_MESSAGE

    if report.key_findings:
        text += "\n\n🎯 **Key findings:**\n"
        text += "".join(f"{index}. {finding}\n" for index, finding in enumerate(report.key_findings, start=1))

    if report.achievements:
        text += "\n🏆 **Achievements:**\n"
        text += "".join(f"• {achievement}\n" for achievement in report.achievements)

    if report.concerns:
        text += "\n⚠️ **Points of attention:**\n"
        text += "".join(f"• {concern}\n" for concern in report.concerns)

    if report.recommendations:
        text += "\n💡 **Recommendations:**\n"
        for rec in report.recommendations:
            text += f"{PRIORITY_GLYPHS[rec.priority]} **{rec.title}**\n   {rec.description}\n\n"

    return text.rstrip()


class ProposalParser:
    def __init__(self, salvage: SalvageStrategy | None = None) -> None:
        self.salvage = salvage if salvage is not None else RegexMessageSalvage()

    def parse(self, raw_response: Any) -> AssistantResponse:
        """Interpret a chat-completions response body.

        Args:
            raw_response: Decoded JSON body of the completion endpoint

        Returns:
            AssistantResponse (never raises)
        """
        try:
            choice = raw_response["choices"][0]
        except (KeyError, IndexError, TypeError):
            choice = None
        if not isinstance(choice, dict):
            logger.warning("Completion response has no choices")
            return AssistantResponse(message=EMPTY_RESPONSE_MESSAGE, error="no_choices")

        function_call = _extract_function_call(choice)
        if not function_call:
            content = _as_dict(choice.get("message")).get("content")
            return AssistantResponse(message=content if isinstance(content, str) and content else EMPTY_RESPONSE_MESSAGE)

        name = function_call.get("name")
        function_name = name if isinstance(name, str) else None
        raw_arguments = function_call.get("arguments")
        try:
            args = _load_arguments(raw_arguments)
        except ValueError as e:
            logger.warning("Malformed function arguments", function_name=function_name, error=str(e))
            return self._recover(function_name, raw_arguments)

        return self._dispatch(function_name, args)

    def _dispatch(self, function_name: str | None, args: dict[str, Any]) -> AssistantResponse:
        message = args.get("message") if isinstance(args.get("message"), str) else ""

        if function_name == CHAT_ONLY:
            return AssistantResponse(message=message or GENERIC_FUNCTION_MESSAGE, function_name=function_name)

        if function_name == PROPOSE_CHANGES:
            try:
                proposal = build_proposal(args)
            except ParseError as e:
                logger.warning("Discarding invalid proposal", error=e.message)
                return AssistantResponse(
                    message=(message or GENERIC_FUNCTION_MESSAGE) + INVALID_PROPOSAL_NOTE,
                    function_name=function_name,
                    error=e.message,
                )
            logger.info("Parsed proposal", proposal_id=proposal.id, proposal_type=proposal.type)
            return AssistantResponse(message=message or proposal.description, function_name=function_name, proposal=proposal)

        if function_name == ANALYZE_PROGRESS:
            try:
                report = build_analysis_report(args)
            except ParseError as e:
                logger.warning("Discarding invalid analysis", error=e.message)
                return AssistantResponse(
                    message=message or ANALYSIS_DEFAULT_MESSAGE,
                    function_name=function_name,
                    error=e.message,
                )
            return AssistantResponse(
                message=format_analysis_message(message, report),
                function_name=function_name,
                analysis=report,
            )

        logger.info("Unknown function in completion response", function_name=function_name)
        return AssistantResponse(message=message or GENERIC_FUNCTION_MESSAGE, function_name=function_name)

    def _recover(self, function_name: str | None, raw_arguments: Any) -> AssistantResponse:
        salvaged = self.salvage.extract(raw_arguments) if isinstance(raw_arguments, str) else None
        if salvaged is not None:
            return AssistantResponse(message=salvaged, function_name=function_name, error="truncated_arguments")
        return AssistantResponse(
            message=MALFORMED_RESPONSE_MESSAGE,
            function_name=function_name,
            error="malformed_arguments",
        )
