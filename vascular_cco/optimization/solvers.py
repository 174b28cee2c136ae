"""
Shared NLP solver utilities for local geometry optimization.

Wraps ``scipy.optimize.minimize`` behind a small config/result pair so the
bifurcation optimizer does not depend on scipy's per-method option names.

Note: The library uses METERS internally for all geometry.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple
import numpy as np

logger = logging.getLogger(__name__)

DERIVATIVE_FREE_METHODS = ("Nelder-Mead", "Powell")

# L-BFGS-B deprecated 'disp'.
DISP_METHODS = ("Nelder-Mead", "Powell", "SLSQP")


@dataclass
class SolverConfig:
    """Configuration for NLP solvers."""

    method: str = "Nelder-Mead"
    tolerance: float = 1e-6
    max_iterations: int = 100
    verbose: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "method": self.method,
            "tolerance": self.tolerance,
            "max_iterations": self.max_iterations,
            "verbose": self.verbose,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SolverConfig":
        return cls(**{k: v for k, v in d.items() if k in cls.__dataclass_fields__})


@dataclass
class SolverResult:
    """Result from NLP solver."""

    x: np.ndarray
    success: bool
    iterations: int
    objective_value: float
    evaluations: int = 0
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "iterations": self.iterations,
            "objective_value": self.objective_value,
            "evaluations": self.evaluations,
            "message": self.message,
        }


def solve_nlp(
    objective: Callable[[np.ndarray], float],
    x0: np.ndarray,
    bounds: Optional[Tuple[np.ndarray, np.ndarray]] = None,
    gradient: Optional[Callable[[np.ndarray], np.ndarray]] = None,
    config: Optional[SolverConfig] = None,
) -> SolverResult:
    """
    Solve a box-bounded NLP problem with scipy.optimize.

    Parameters
    ----------
    objective : callable
        Objective function f(x) -> float. May return ``inf`` at infeasible
        points when a derivative-free method is used.
    x0 : np.ndarray
        Initial guess
    bounds : tuple, optional
        (lower_bounds, upper_bounds) arrays
    gradient : callable, optional
        Gradient function grad_f(x) -> np.ndarray. Ignored by derivative-free
        methods.
    config : SolverConfig, optional
        Solver configuration

    Returns
    -------
    SolverResult
        Optimization result
    """
    from scipy.optimize import minimize, Bounds

    if config is None:
        config = SolverConfig()

    scipy_bounds = None
    if bounds is not None:
        lb, ub = bounds
        scipy_bounds = Bounds(lb, ub)

    method = config.method
    options: Dict[str, Any] = {'maxiter': config.max_iterations}
    if method in DISP_METHODS:
        options['disp'] = config.verbose

    if method == "Nelder-Mead":
        options['xatol'] = config.tolerance
        options['fatol'] = config.tolerance
    elif method == "Powell":
        options['xtol'] = config.tolerance
        options['ftol'] = config.tolerance
    elif method in ("SLSQP", "L-BFGS-B"):
        options['ftol'] = config.tolerance
    else:
        raise ValueError(f"Unsupported optimization method: {method}")

    result = minimize(
        objective,
        np.asarray(x0, dtype=float),
        method=method,
        jac=None if method in DERIVATIVE_FREE_METHODS else gradient,
        bounds=scipy_bounds,
        options=options,
    )

    return SolverResult(
        x=np.asarray(result.x, dtype=float),
        success=bool(result.success),
        iterations=int(getattr(result, 'nit', 0)),
        objective_value=float(result.fun),
        evaluations=int(getattr(result, 'nfev', 0)),
        message=str(getattr(result, 'message', "")),
    )


def solve_bounded_optimization(
    objective: Callable[[np.ndarray], float],
    x0: np.ndarray,
    lower_bounds: np.ndarray,
    upper_bounds: np.ndarray,
    config: Optional[SolverConfig] = None,
) -> SolverResult:
    """
    Convenience function for bounded optimization without constraints.

    This is useful for simple optimization problems like bifurcation point
    optimization where we only have box constraints.

    Parameters
    ----------
    objective : callable
        Objective function f(x) -> float
    x0 : np.ndarray
        Initial guess
    lower_bounds : np.ndarray
        Lower bounds for each variable
    upper_bounds : np.ndarray
        Upper bounds for each variable
    config : SolverConfig, optional
        Method, tolerance and iteration budget.

    Returns
    -------
    SolverResult
        Optimization result
    """
    result = solve_nlp(
        objective=objective,
        x0=x0,
        bounds=(np.asarray(lower_bounds, dtype=float), np.asarray(upper_bounds, dtype=float)),
        config=config,
    )

    if not result.success:
        logger.debug(f"NLP warning: optimization did not converge ({result.message})")

    return result
