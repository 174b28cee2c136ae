"""
Capability interfaces for the strategy objects used during growth.

Each interface exposes one main method so implementations can be swapped
without touching the growth loop.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from ..core.types import Point3D

if TYPE_CHECKING:
    from ..core.domain import DomainSpec
    from ..core.tree import ArterialTree, BifurcationProposal


class DistanceCriterion(ABC):
    """Admissibility rule for connecting a terminal point to a segment."""

    @abstractmethod
    def admissible(self, tree: "ArterialTree", segment_id: int, point: Point3D) -> bool:
        """Return True if ``point`` may be connected to ``segment_id``."""
        pass

    def admissible_bifurcation(
        self, tree: "ArterialTree", segment_id: int, point: Point3D
    ) -> bool:
        """Return True if a bifurcation on ``segment_id`` may sit at ``point``."""
        return True


class TargetFunction(ABC):
    """Scalar cost of a tree; lower is better."""

    @abstractmethod
    def evaluate(
        self,
        tree: "ArterialTree",
        proposal: Optional["BifurcationProposal"] = None,
        length_exponent: float = 1.0,
    ) -> float:
        """
        Cost of ``tree``, or of the tree ``proposal`` would produce.

        Parameters
        ----------
        tree : ArterialTree
            Current tree.
        proposal : BifurcationProposal, optional
            Pending insertion. When None the current tree is evaluated.
        length_exponent : float
            Weight exponent applied to segment lengths.
        """
        pass


class TerminalFlowFunction(ABC):
    """Flow assigned to each new terminal."""

    @abstractmethod
    def flow_for(self, terminal_index: int, position: Point3D) -> float:
        """Positive flow (m^3/s) for the terminal at ``position``."""
        pass


@dataclass(frozen=True)
class GrowthContext:
    """
    Collaborators and exponents handed to a geometric optimization.

    The tree owns the radius exponent; ``radius_exponent`` states the value the
    caller expects it to have, and None skips the check.
    """

    domain: "DomainSpec"
    target_function: TargetFunction
    distance_criterion: DistanceCriterion
    radius_exponent: Optional[float] = None
    length_exponent: float = 1.0


@dataclass
class BifurcationResult:
    """Outcome of optimizing one candidate connection."""

    feasible: bool
    bifurcation_point: Optional[Point3D] = None
    radii: Tuple[float, ...] = ()
    cost: float = float("inf")
    proposal: Optional["BifurcationProposal"] = field(default=None, repr=False)
    reason: str = ""
    evaluations: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "feasible": self.feasible,
            "bifurcation_point": (
                self.bifurcation_point.to_dict() if self.bifurcation_point else None
            ),
            "radii": list(self.radii),
            "cost": self.cost,
            "reason": self.reason,
            "evaluations": self.evaluations,
        }


class GeometricOptimization(ABC):
    """Local geometry solver for a single candidate connection."""

    @abstractmethod
    def optimize(
        self,
        tree: "ArterialTree",
        segment_id: int,
        terminal_point: Point3D,
        flow: float,
        context: GrowthContext,
    ) -> BifurcationResult:
        """
        Find the best bifurcation point for connecting ``terminal_point`` to
        ``segment_id``. Infeasibility is reported, never raised.
        """
        pass


class ConnectionSearch(ABC):
    """Candidate parent-segment enumeration."""

    @abstractmethod
    def search(
        self,
        tree: "ArterialTree",
        terminal_point: Point3D,
        max_candidates: int,
        distance_criterion: Optional[DistanceCriterion] = None,
    ) -> List[int]:
        """Ranked admissible candidate segment ids, at most ``max_candidates``."""
        pass


class ProgressReporter(ABC):
    """One-way sink for growth progress."""

    @abstractmethod
    def update(self, completed: int, total: int) -> None:
        pass

    def finish(self, completed: int, total: int) -> None:
        """Called once when growth ends successfully."""
        pass
