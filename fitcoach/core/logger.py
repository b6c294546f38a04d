"""Logger configuration for fitcoach.

Every record carries a ``user_id`` extra (``-`` outside a conversation). The
Coach Service sets it with ``user_context`` so backend, parser and store logs
emitted while serving a user can be grouped per conversation.
"""

import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from loguru import logger

NO_USER = "-"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<magenta>user={extra[user_id]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | user={extra[user_id]} | {name}:{function}:{line} - {message}"


@contextmanager
def user_context(user_id: str) -> Iterator[None]:
    """Tag every log record emitted inside the block with ``user_id``."""
    with logger.contextualize(user_id=user_id):
        yield


def setup_logger(
    level: str = "INFO",
    log_file: str | Path | None = None,
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """Configure the console sink and an optional rotating file sink.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to a log file
        rotation: File rotation size or interval (e.g., "10 MB", "1 day")
        retention: How long rotated files are kept (e.g., "7 days")
    """
    logger.remove()
    logger.configure(extra={"user_id": NO_USER})

    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            format=FILE_FORMAT,
            level=level,
            rotation=rotation,
            retention=retention,
            compression="zip",
            diagnose=False,
        )

    logger.info("Logger initialized", level=level, log_file=str(log_file) if log_file else None)
