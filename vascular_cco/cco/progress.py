"""Progress sinks for tree growth."""

import logging

from .interfaces import ProgressReporter

logger = logging.getLogger(__name__)


class NullProgress(ProgressReporter):
    """Discard all progress notifications."""

    def update(self, completed: int, total: int) -> None:
        pass


class LoggingProgress(ProgressReporter):
    """
    Log growth progress at INFO level.

    Parameters
    ----------
    every : int
        Log every ``every`` terminals; the last terminal is always logged.
    """

    def __init__(self, every: int = 100):
        if every < 1:
            raise ValueError(f"every ({every}) must be at least 1")
        self.every = every

    def update(self, completed: int, total: int) -> None:
        if completed % self.every == 0 or completed == total:
            percent = 100.0 * completed / total if total else 100.0
            logger.info(f"Grown {completed}/{total} terminals ({percent:.0f}%)")

    def finish(self, completed: int, total: int) -> None:
        logger.info(f"Growth finished: {completed} terminal(s) attached")
