"""Error types for the coaching assistant.

Each error is recovered at the boundary of the component that detects it.
The conversation layer only ever sees assistant-role messages.
"""

from typing import Literal

PersistenceErrorKind = Literal["network", "permission", "generic"]


class CoachError(Exception):
    """Base class for coaching assistant errors."""

    def __init__(self, code: str, message: str | None = None):
        self.code = code
        self.message = message or code
        super().__init__(self.message)


class ConfigurationError(CoachError):
    """Raised when the completion endpoint or its credentials are absent."""

    def __init__(self, message: str = "AI endpoint is not configured"):
        super().__init__("not_configured", message)


class NetworkError(CoachError):
    """Raised on transport failure or a non-success response from the backend."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__("network_error", message)


class BudgetExceededError(CoachError):
    """Raised when daily budget enforcement refuses a backend call."""

    def __init__(self, daily_cost: float, daily_limit: float):
        self.daily_cost = daily_cost
        self.daily_limit = daily_limit
        super().__init__("budget_exceeded", f"Daily AI budget exceeded: ${daily_cost:.4f} > ${daily_limit:.2f}")


class ParseError(CoachError):
    """Raised when structured backend output cannot be turned into a typed result.

    Never escapes the proposal parser.
    """

    def __init__(self, message: str, function_name: str | None = None):
        self.function_name = function_name
        super().__init__("parse_error", message)


class ResolutionError(CoachError):
    """Raised when a mutation has no addressable entity in the plan."""

    def __init__(self, message: str = "No exercise could be found in the program to replace"):
        super().__init__("resolution_error", message)


class PersistenceError(CoachError):
    """Raised when a Plan Store write fails."""

    def __init__(self, message: str = "plan_write_failed", kind: PersistenceErrorKind = "generic"):
        self.kind = kind
        super().__init__("persistence_error", message)


class ApplicationError(CoachError):
    """Raised when a proposal payload cannot be applied to the current plan."""

    def __init__(self, message: str):
        super().__init__("application_error", message)


class ProposalConflictError(CoachError):
    """Raised when a proposal is parked while another one is still pending."""

    def __init__(self, pending_id: str, incoming_id: str):
        self.pending_id = pending_id
        self.incoming_id = incoming_id
        super().__init__(
            "proposal_conflict",
            f"Proposal {incoming_id} cannot be parked while {pending_id} is pending",
        )


class ConversationBusyError(CoachError):
    """Raised when a message is sent while another one is still in flight."""

    def __init__(self) -> None:
        super().__init__("conversation_busy", "A message is already being processed")
