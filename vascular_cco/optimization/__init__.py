"""Numerical optimization helpers."""

from .solvers import SolverConfig, SolverResult, solve_nlp, solve_bounded_optimization

__all__ = [
    "SolverConfig",
    "SolverResult",
    "solve_nlp",
    "solve_bounded_optimization",
]
