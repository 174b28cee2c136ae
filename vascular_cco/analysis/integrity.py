"""
Tree integrity checks.

Validates structural and numerical invariants of an arterial tree:

- structure: a single root, consistent parent/child links, 0 or 2 children
  per segment, and an arborescence over the parent->child graph
- positivity: radius, length and flow are finite and strictly positive
- coincidence: every child's proximal point equals its parent's distal point
- flow conservation at every bifurcation
- the radius law r_p^gamma = r_1^gamma + r_2^gamma at every bifurcation

All violations are collected into one report; the tree is never modified,
so checking the same tree twice yields the same report.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional
import numpy as np

from ..core.errors import TreeIntegrityError

if TYPE_CHECKING:
    from ..core.tree import ArterialTree

logger = logging.getLogger(__name__)

TOLERANCE = 1e-10


@dataclass
class IntegrityViolation:
    """A single failed invariant."""

    segment_id: Optional[int]
    quantity: str
    expected: float
    measured: float
    deviation: float
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "segment_id": self.segment_id,
            "quantity": self.quantity,
            "expected": float(self.expected),
            "measured": float(self.measured),
            "deviation": float(self.deviation),
            "message": self.message,
        }


@dataclass
class IntegrityReport:
    """Result of TreeIntegrity.check()."""

    violations: List[IntegrityViolation] = field(default_factory=list)
    segments_checked: int = 0
    bifurcations_checked: int = 0
    tolerance: float = TOLERANCE

    @property
    def passed(self) -> bool:
        return not self.violations

    def by_quantity(self, quantity: str) -> List[IntegrityViolation]:
        return [v for v in self.violations if v.quantity == quantity]

    def raise_if_failed(self) -> None:
        """Raise TreeIntegrityError if any violation was found."""
        if self.violations:
            raise TreeIntegrityError(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "passed": self.passed,
            "segments_checked": self.segments_checked,
            "bifurcations_checked": self.bifurcations_checked,
            "tolerance": self.tolerance,
            "violations": [v.to_dict() for v in self.violations],
        }


class TreeIntegrity:
    """
    Checker for the invariants of an ArterialTree.

    Parameters
    ----------
    tree : ArterialTree, optional
        Default tree checked by ``check()``.
    tolerance : float
        Relative tolerance for flow conservation and the radius law;
        absolute tolerance (scaled by coordinate magnitude, at least 1 m)
        for point coincidence.
    """

    def __init__(self, tree: Optional["ArterialTree"] = None, tolerance: float = TOLERANCE):
        if tolerance <= 0:
            raise ValueError(f"tolerance ({tolerance}) must be positive")
        self.tree = tree
        self.tolerance = tolerance

    def check(self, tree: Optional["ArterialTree"] = None) -> IntegrityReport:
        """
        Check every invariant and collect all violations.

        Parameters
        ----------
        tree : ArterialTree, optional
            Tree to check; defaults to ``self.tree``.

        Returns
        -------
        IntegrityReport
            Report listing every violation found.
        """
        tree = tree if tree is not None else self.tree
        if tree is None:
            raise ValueError("No tree to check")

        report = IntegrityReport(tolerance=self.tolerance)
        if not tree.segments:
            return report

        self._check_structure(tree, report)
        for segment in tree.segments.values():
            report.segments_checked += 1
            self._check_positive(segment.id, "radius", segment.radius, report)
            self._check_positive(segment.id, "length", segment.length, report)
            self._check_positive(segment.id, "flow", segment.flow, report)
            self._check_coincidence(tree, segment, report)
            if len(segment.children_ids) == 2 and all(
                c in tree.segments for c in segment.children_ids
            ):
                report.bifurcations_checked += 1
                self._check_bifurcation(tree, segment, report)

        if report.passed:
            logger.debug(
                f"Integrity check passed: {report.segments_checked} segments, "
                f"{report.bifurcations_checked} bifurcations"
            )
        else:
            logger.debug(f"Integrity check found {len(report.violations)} violation(s)")
        return report

    def _add(
        self,
        report: IntegrityReport,
        segment_id: Optional[int],
        quantity: str,
        expected: float,
        measured: float,
        deviation: float,
        message: str,
    ) -> None:
        report.violations.append(
            IntegrityViolation(segment_id, quantity, expected, measured, deviation, message)
        )

    def _check_structure(self, tree: "ArterialTree", report: IntegrityReport) -> None:
        import networkx as nx
        from ..adapters.networkx_adapter import to_networkx_graph

        roots = [s.id for s in tree.segments.values() if s.parent_id is None]
        if len(roots) != 1 or tree.root_id not in roots:
            self._add(
                report, tree.root_id, "structure", 1, len(roots), abs(len(roots) - 1),
                f"Expected exactly one root segment (root_id={tree.root_id}), found {roots}",
            )
        root = tree.segments.get(tree.root_id) if tree.root_id is not None else None
        if root is not None:
            gap = root.proximal.distance_to(tree.root_position)
            if gap > self._coincidence_tolerance(tree.root_position.to_array()):
                self._add(
                    report, root.id, "coincidence", 0.0, gap, gap,
                    f"Root segment {root.id} does not start at the root position (gap {gap:.3e} m)",
                )

        for segment in tree.segments.values():
            if len(segment.children_ids) not in (0, 2):
                self._add(
                    report, segment.id, "structure", 2, len(segment.children_ids),
                    abs(len(segment.children_ids) - 2),
                    f"Segment {segment.id} has {len(segment.children_ids)} children; expected 0 or 2",
                )
            for child_id in segment.children_ids:
                child = tree.segments.get(child_id)
                if child is None:
                    self._add(
                        report, segment.id, "structure", child_id, float("nan"), float("nan"),
                        f"Segment {segment.id} references missing child {child_id}",
                    )
                elif child.parent_id != segment.id:
                    self._add(
                        report, child_id, "structure", segment.id,
                        child.parent_id if child.parent_id is not None else float("nan"),
                        float("nan"),
                        f"Segment {child_id} is listed as child of {segment.id} "
                        f"but points to parent {child.parent_id}",
                    )
            if segment.parent_id is not None:
                parent = tree.segments.get(segment.parent_id)
                if parent is None or segment.id not in parent.children_ids:
                    self._add(
                        report, segment.id, "structure", segment.parent_id, float("nan"), float("nan"),
                        f"Segment {segment.id} is not listed among the children of "
                        f"its parent {segment.parent_id}",
                    )

        if not nx.is_arborescence(to_networkx_graph(tree)):
            self._add(
                report, None, "structure", 0.0, 1.0, 1.0,
                "Parent/child links do not form a single rooted tree",
            )

    def _check_positive(
        self, segment_id: int, quantity: str, value: float, report: IntegrityReport
    ) -> None:
        if not (np.isfinite(value) and value > 0):
            self._add(
                report, segment_id, quantity, 0.0, value, abs(value) if np.isfinite(value) else float("inf"),
                f"Segment {segment_id} has non-positive or non-finite {quantity} {value}",
            )

    def _coincidence_tolerance(self, point: np.ndarray) -> float:
        return self.tolerance * max(1.0, float(np.max(np.abs(point))))

    def _check_coincidence(
        self, tree: "ArterialTree", segment, report: IntegrityReport
    ) -> None:
        if segment.parent_id is None or segment.parent_id not in tree.segments:
            return
        parent = tree.segments[segment.parent_id]
        gap = parent.distal.distance_to(segment.proximal)
        if gap > self._coincidence_tolerance(parent.distal.to_array()):
            self._add(
                report, segment.id, "coincidence", 0.0, gap, gap,
                f"Segment {segment.id} starts {gap:.3e} m away from the distal point "
                f"of its parent {parent.id}",
            )

    def _check_bifurcation(self, tree: "ArterialTree", segment, report: IntegrityReport) -> None:
        children = [tree.segments[c] for c in segment.children_ids]

        expected = segment.flow
        measured = sum(c.flow for c in children)
        deviation = _relative_deviation(expected, measured)
        if deviation > self.tolerance:
            self._add(
                report, segment.id, "flow_conservation", expected, measured, deviation,
                f"Flow not conserved at bifurcation {segment.id}: parent {expected:.6e}, "
                f"children sum {measured:.6e} (relative deviation {deviation:.3e})",
            )

        gamma = tree.radius_exponent
        if segment.radius > 0 and all(c.radius > 0 for c in children):
            expected = segment.radius ** gamma
            measured = sum(c.radius ** gamma for c in children)
            deviation = _relative_deviation(expected, measured)
            if deviation > self.tolerance:
                self._add(
                    report, segment.id, "radius_law", expected, measured, deviation,
                    f"Radius law violated at bifurcation {segment.id}: r_p^{gamma:g}={expected:.6e}, "
                    f"sum r_c^{gamma:g}={measured:.6e} (relative deviation {deviation:.3e})",
                )


def _relative_deviation(expected: float, measured: float) -> float:
    scale = abs(expected)
    if scale == 0.0:
        return abs(measured)
    return abs(expected - measured) / scale
