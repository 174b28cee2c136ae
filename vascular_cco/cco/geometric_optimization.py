"""
Bifurcation point optimization for a single candidate connection.

The bifurcation X is searched in the triangle spanned by the candidate
segment's endpoints A, B and the new terminal T:

    P(t) = A + t * (B - A)
    X(t, s) = P(t) + s * (T - P(t)),    (t, s) in [0, 1]^2

A coarse interior grid picks the starting point, which is then refined with
a bounded derivative-free scipy solver. Infeasible points cost ``inf`` so the
solver steers around them; a candidate is reported infeasible only when no
grid point is feasible.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple
import numpy as np

from ..core.types import Point3D
from ..optimization.solvers import SolverConfig, solve_bounded_optimization
from .interfaces import BifurcationResult, GeometricOptimization, GrowthContext

if TYPE_CHECKING:
    from ..core.tree import ArterialTree, BifurcationProposal

logger = logging.getLogger(__name__)

# Relative length below which a new segment counts as degenerate.
RELATIVE_LENGTH_EPSILON = 1e-9


@dataclass
class BifurcationOptimizationConfig:
    """
    Configuration for BifurcationPointOptimizer.

    Parameters
    ----------
    grid_resolution : int
        Number of interior grid samples per parameter axis.
    refine : bool
        Refine the best grid point with scipy.
    minimum_segment_length : float
        Lower bound on the length of each of the three new segments (m).
    require_inside_domain : bool
        Reject bifurcation points outside the growth domain.
    solver : SolverConfig
        Local refinement settings.
    """

    grid_resolution: int = 4
    refine: bool = True
    minimum_segment_length: float = 0.0
    require_inside_domain: bool = True
    solver: SolverConfig = field(default_factory=SolverConfig)

    def __post_init__(self):
        if self.grid_resolution < 1:
            raise ValueError(f"grid_resolution ({self.grid_resolution}) must be at least 1")
        if self.minimum_segment_length < 0:
            raise ValueError(
                f"minimum_segment_length ({self.minimum_segment_length}) must be non-negative"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "grid_resolution": self.grid_resolution,
            "refine": self.refine,
            "minimum_segment_length": self.minimum_segment_length,
            "require_inside_domain": self.require_inside_domain,
            "solver": self.solver.to_dict(),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "BifurcationOptimizationConfig":
        return cls(
            grid_resolution=d.get("grid_resolution", 4),
            refine=d.get("refine", True),
            minimum_segment_length=d.get("minimum_segment_length", 0.0),
            require_inside_domain=d.get("require_inside_domain", True),
            solver=SolverConfig.from_dict(d.get("solver", {})),
        )


class BifurcationPointOptimizer(GeometricOptimization):
    """Grid search plus scipy refinement of the bifurcation point."""

    def __init__(self, config: Optional[BifurcationOptimizationConfig] = None):
        self.config = config or BifurcationOptimizationConfig()

    def optimize(
        self,
        tree: "ArterialTree",
        segment_id: int,
        terminal_point: Point3D,
        flow: float,
        context: GrowthContext,
    ) -> BifurcationResult:
        if (
            context.radius_exponent is not None
            and context.radius_exponent != tree.radius_exponent
        ):
            raise ValueError(
                f"Context radius exponent ({context.radius_exponent}) does not match "
                f"the tree's ({tree.radius_exponent})"
            )

        segment = tree.segments[segment_id]
        A = segment.proximal.to_array()
        B = segment.distal.to_array()
        T = terminal_point.to_array()
        min_length = max(
            self.config.minimum_segment_length,
            RELATIVE_LENGTH_EPSILON * (np.linalg.norm(B - A) + np.linalg.norm(T - A)),
        )

        cache: Dict[Tuple[float, float], Tuple[float, Optional["BifurcationProposal"], str]] = {}

        def evaluate(x: np.ndarray) -> Tuple[float, Optional["BifurcationProposal"], str]:
            key = (float(x[0]), float(x[1]))
            if key not in cache:
                cache[key] = self._evaluate_point(
                    tree, segment_id, terminal_point, flow, context,
                    _point_at(A, B, T, key), min_length,
                )
            return cache[key]

        n = self.config.grid_resolution
        grid = (np.arange(n) + 0.5) / n
        best_x: Optional[np.ndarray] = None
        best_cost = float("inf")
        reasons: Counter = Counter()

        for t in grid:
            for s in grid:
                x = np.array([t, s])
                cost, _, reason = evaluate(x)
                if reason:
                    reasons[reason] += 1
                elif cost < best_cost:
                    best_cost = cost
                    best_x = x

        if best_x is None:
            reason = reasons.most_common(1)[0][0] if reasons else "no feasible bifurcation point"
            return BifurcationResult(feasible=False, reason=reason, evaluations=len(cache))

        if self.config.refine:
            # Costs are tiny in SI units; the solver tolerance applies to the scaled cost.
            scale = best_cost if best_cost > 0 else 1.0
            result = solve_bounded_optimization(
                lambda x: evaluate(np.clip(x, 0.0, 1.0))[0] / scale,
                best_x,
                lower_bounds=np.zeros(2),
                upper_bounds=np.ones(2),
                config=self.config.solver,
            )
            refined = np.clip(result.x, 0.0, 1.0)
            cost, _, reason = evaluate(refined)
            if not reason and cost < best_cost:
                best_cost = cost
                best_x = refined

        _, proposal, _ = evaluate(best_x)
        return BifurcationResult(
            feasible=True,
            bifurcation_point=proposal.bifurcation_point,
            radii=proposal.new_radii,
            cost=best_cost,
            proposal=proposal,
            evaluations=len(cache),
        )

    def _evaluate_point(
        self,
        tree: "ArterialTree",
        segment_id: int,
        terminal_point: Point3D,
        flow: float,
        context: GrowthContext,
        x: np.ndarray,
        min_length: float,
    ) -> Tuple[float, Optional["BifurcationProposal"], str]:
        """Cost of placing the bifurcation at ``x``; a non-empty reason marks it infeasible."""
        segment = tree.segments[segment_id]
        point = Point3D.from_array(x)

        lengths = (
            segment.proximal.distance_to(point),
            point.distance_to(segment.distal),
            point.distance_to(terminal_point),
        )
        if min(lengths) <= min_length:
            return float("inf"), None, "degenerate segment length"

        if self.config.require_inside_domain and not context.domain.contains(point):
            return float("inf"), None, "bifurcation outside domain"

        if not context.distance_criterion.admissible_bifurcation(tree, segment_id, point):
            return float("inf"), None, "bifurcation violates distance criterion"

        proposal = tree.propose_bifurcation(segment_id, point, terminal_point, flow)
        radii = np.array(proposal.new_radii + (proposal.root_radius,))
        if not (np.all(np.isfinite(radii)) and np.all(radii > 0)):
            return float("inf"), None, "non-positive radius"

        cost = context.target_function.evaluate(
            tree, proposal, length_exponent=context.length_exponent
        )
        if not np.isfinite(cost):
            return float("inf"), None, "non-finite cost"
        return float(cost), proposal, ""


def _point_at(A: np.ndarray, B: np.ndarray, T: np.ndarray, x: Tuple[float, float]) -> np.ndarray:
    t, s = x
    P = A + t * (B - A)
    return P + s * (T - P)
