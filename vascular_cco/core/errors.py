"""
Exception types raised by tree growth.

Per-attempt infeasibility never surfaces as an exception. Only configuration
problems, misuse of the growth state machine, exhausted retry budgets and
failed integrity checks escape to the caller.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..analysis.integrity import IntegrityReport


class CCOError(Exception):
    """Base class for all growth errors."""


class ConfigurationError(CCOError, ValueError):
    """Invalid growth parameters (non-positive counts, bad exponents, ...)."""


class GrowthStateError(CCOError, RuntimeError):
    """Growth operation called in the wrong state (e.g. grow() before a root exists)."""


class AttemptExhaustionError(CCOError, RuntimeError):
    """
    No feasible connection was found within the attempt budget.

    Parameters
    ----------
    terminal_index : int
        Index of the terminal that could not be placed.
    attempts : int
        Number of consecutive attempts made for that terminal.
    """

    def __init__(self, terminal_index: int, attempts: int, detail: str = ""):
        self.terminal_index = terminal_index
        self.attempts = attempts
        message = (
            f"Could not place terminal {terminal_index} after {attempts} attempt(s)"
        )
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class TreeIntegrityError(CCOError, RuntimeError):
    """Raised by IntegrityReport.raise_if_failed() when violations were found."""

    def __init__(self, report: "IntegrityReport"):
        self.report = report
        lines = [v.message for v in report.violations[:5]]
        if len(report.violations) > 5:
            lines.append(f"... and {len(report.violations) - 5} more")
        super().__init__(
            f"Tree integrity check failed with {len(report.violations)} violation(s):\n"
            + "\n".join(lines)
        )
