"""Prompt loader.

Prompts ship as ``.txt`` files next to this module and are rendered with
``str.format`` placeholders.
"""

from pathlib import Path

from loguru import logger

PROMPTS_DIR = Path(__file__).parent


def load_prompt(name: str) -> str:
    """Load a prompt file from the prompts directory.

    Args:
        name: Prompt filename (e.g., "coach_system.txt")

    Returns:
        Prompt content as string

    Raises:
        FileNotFoundError: If prompt file doesn't exist
    """
    prompt_path = PROMPTS_DIR / name
    if not prompt_path.exists():
        raise FileNotFoundError(f"Prompt file not found: {prompt_path}")
    logger.debug("Loading prompt", prompt=name)
    return prompt_path.read_text(encoding="utf-8")
