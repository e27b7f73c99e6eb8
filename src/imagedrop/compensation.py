"""
Two-step compensating actions.

The file store and the database do not share a transaction. When a
second side effect fails after a first one succeeded, the first is undone
here: the undo is attempted once, and a failing undo is logged without
hiding the error that triggered it.
"""

import logging
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_with_compensation(
    action: Callable[[], T],
    compensate: Callable[[], object],
    description: str,
) -> T:
    """
    Run ``action``; if it raises, run ``compensate`` and re-raise.

    Args:
        action: The second side effect
        compensate: Undo for the first side effect
        description: Human-readable name used in log messages

    Returns:
        Whatever ``action`` returns
    """
    try:
        return action()
    except Exception:
        logger.warning(f"{description} failed, rolling back")
        try:
            compensate()
        except Exception as undo_error:
            logger.error(f"Rollback of {description} failed: {undo_error}")
        raise
