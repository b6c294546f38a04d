"""Best-effort message recovery from malformed function-call arguments.

The completion endpoint sometimes stops mid-way through the arguments JSON
(token limit). A salvage strategy tries to pull the user-facing ``message``
out of what did arrive. It is only consulted after strict parsing failed.
"""

import json
import re
from typing import Protocol

from loguru import logger

TRUNCATION_NOTE = "\n\n*Note: the full response was truncated by the token limit*"

# Closing quote is optional: the string may run to the end of the input.
_MESSAGE_PATTERN = re.compile(r'"message"\s*:\s*"((?:[^"\\]|\\.)*)("|\\?$)', re.DOTALL)


class SalvageStrategy(Protocol):
    def extract(self, raw_arguments: str) -> str | None: ...


def _unescape(fragment: str) -> str:
    try:
        return json.loads(f'"{fragment}"')
    except json.JSONDecodeError:
        return fragment.replace("\\n", "\n").replace('\\"', '"').replace("\\\\", "\\")


class RegexMessageSalvage:
    """Extract the ``message`` string field with a regular expression."""

    def __init__(self, truncation_note: str = TRUNCATION_NOTE) -> None:
        self.truncation_note = truncation_note

    def extract(self, raw_arguments: str) -> str | None:
        if not raw_arguments:
            return None

        match = _MESSAGE_PATTERN.search(raw_arguments)
        if match is None or not match.group(1):
            return None

        message = _unescape(match.group(1))
        logger.info("Salvaged message from malformed arguments", salvaged_chars=len(message))
        return message + self.truncation_note


class NoSalvage:
    """Disabled salvage: malformed arguments always yield the generic apology."""

    def extract(self, raw_arguments: str) -> str | None:
        return None
