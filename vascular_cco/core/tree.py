"""
Arterial tree model grown by constrained constructive optimization.

Each segment stores its flow and its reduced resistance R* = R * r^4. For a
Poiseuille tube R* = 8 * mu * l / pi does not depend on the tube's own radius,
which is what lets radii be derived after the fact:

- at a bifurcation, equal pressure drop across both subtrees fixes the ratio
  of the child radii: r_1 / r_2 = (Q_1 R*_1 / (Q_2 R*_2)) ** (1/4)
- the power law r_p^gamma = r_1^gamma + r_2^gamma turns that ratio into the
  child-to-parent ratios beta_1, beta_2
- the root radius follows from the total pressure drop over the tree, or is
  held at a configured value

Inserting a terminal changes flow, R* and the betas only along the path from
the split segment to the root. ``propose_bifurcation`` computes exactly that
path as a copy-on-write overlay so candidates can be costed without touching
the tree; ``apply`` commits an overlay and re-materializes every radius in one
top-down pass. Target costs are read from per-subtree sums cached on the tree
and restaged along the same path, so costing a proposal never walks the
whole tree.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, Iterator, List, Optional, Tuple
import numpy as np

from .errors import GrowthStateError
from .types import Point3D, PointLike, as_point

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1.0"

# (radius power, length exponent) of a cached subtree sum.
CostKey = Tuple[float, float]


@dataclass
class TreeSegment:
    """
    Vessel segment of an arterial tree.

    ``children_ids`` is empty for terminals and holds exactly two ids for
    bifurcations, ordered as [continuation of the old subtree, new terminal].
    """

    id: int
    proximal: Point3D
    distal: Point3D
    flow: float
    parent_id: Optional[int] = None
    children_ids: List[int] = field(default_factory=list)
    terminal_index: Optional[int] = None
    radius: float = 0.0
    reduced_resistance: float = 0.0
    radius_ratio: float = 1.0

    @property
    def length(self) -> float:
        """Euclidean length of the segment."""
        return self.proximal.distance_to(self.distal)

    @property
    def is_terminal(self) -> bool:
        return not self.children_ids

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @property
    def resistance(self) -> float:
        """Hydrodynamic resistance of the whole subtree rooted here (Pa*s/m^3)."""
        if self.radius <= 0:
            return float("inf")
        return self.reduced_resistance / self.radius ** 4

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "id": self.id,
            "parent_id": self.parent_id,
            "children_ids": list(self.children_ids),
            "proximal": self.proximal.to_dict(),
            "distal": self.distal.to_dict(),
            "radius": self.radius,
            "flow": self.flow,
            "terminal_index": self.terminal_index,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "TreeSegment":
        """Create from dictionary."""
        return cls(
            id=int(d["id"]),
            proximal=Point3D.from_dict(d["proximal"]),
            distal=Point3D.from_dict(d["distal"]),
            flow=float(d["flow"]),
            parent_id=d.get("parent_id"),
            children_ids=[int(c) for c in d.get("children_ids", [])],
            terminal_index=d.get("terminal_index"),
            radius=float(d.get("radius", 0.0)),
        )


@dataclass
class BifurcationProposal:
    """
    Would-be state of a tree after one bifurcation insertion.

    ``segments`` holds modified copies of every segment the insertion touches
    (split segment, the two new segments, re-parented children, the ancestor
    chain and the siblings along it). All other segments are read through from
    the tree, whose radii are scaled by the new root radius.
    """

    tree: "ArterialTree" = field(repr=False)
    segment_id: int
    bifurcation_point: Point3D
    terminal_point: Point3D
    terminal_flow: float
    continuation_id: int
    terminal_id: int
    segments: Dict[int, TreeSegment] = field(repr=False)
    root_radius: float
    revision: int
    path: List[int] = field(default_factory=list, repr=False)
    _radii: Optional[Dict[int, float]] = field(default=None, repr=False)
    _cost_sums: Dict[CostKey, Dict[int, float]] = field(default_factory=dict, repr=False)

    def get_segment(self, segment_id: int) -> TreeSegment:
        if segment_id in self.segments:
            return self.segments[segment_id]
        return self.tree.segments[segment_id]

    def radii(self) -> Dict[int, float]:
        """Radius of every segment in the would-be tree, in pre-order."""
        if self._radii is None:
            self._radii = self.tree._radii(self.get_segment, self.root_radius)
        return self._radii

    def radius_of(self, segment_id: int) -> float:
        """Radius of one segment, from the root radius and the ratios above it."""
        if self._radii is not None:
            return self._radii[segment_id]
        radius = self.root_radius
        segment = self.get_segment(segment_id)
        while segment.parent_id is not None:
            radius *= segment.radius_ratio
            segment = self.get_segment(segment.parent_id)
        return radius

    @property
    def new_radii(self) -> Tuple[float, float, float]:
        """Radii of the (proximal part, continuation, new terminal) segments."""
        return (
            self.radius_of(self.segment_id),
            self.radius_of(self.continuation_id),
            self.radius_of(self.terminal_id),
        )

    def weighted_length_sum(self, radius_power: float, length_exponent: float) -> float:
        """
        Root subtree sum S for the would-be tree.

        sum_i r_i**radius_power * l_i**length_exponent equals
        root_radius**radius_power * S. Only the new segments and the
        ancestor chain are summed; every other subtree reads the tree's
        cached sum.
        """
        key = (float(radius_power), float(length_exponent))
        sums = self._cost_sums.get(key)
        if sums is None:
            committed = self.tree._subtree_sums(key)
            sums = {}
            for segment_id in [self.continuation_id, self.terminal_id] + self.path:
                segment = self.get_segment(segment_id)
                sums[segment_id] = self.tree._subtree_sum(
                    segment, self.get_segment, sums, committed, key
                )
            self._cost_sums[key] = sums
        return sums[self.path[-1]]

    def iter_geometry(self) -> Iterator[Tuple[int, float, float, float]]:
        """Yield (segment_id, length, radius, flow) for the would-be tree."""
        for segment_id, radius in self.radii().items():
            segment = self.get_segment(segment_id)
            yield segment_id, segment.length, radius, segment.flow


class ArterialTree:
    """
    Rooted binary tree of vessel segments with flow-derived radii.

    Parameters
    ----------
    root_position : Point3D or sequence
        Proximal point of the root segment (the perfusion inlet).
    viscosity : float
        Blood viscosity (Pa*s).
    perfusion_pressure : float
        Pressure at the root inlet (Pa).
    terminal_pressure : float
        Pressure at every terminal outlet (Pa).
    root_radius : float, optional
        If given, the root radius is held at this value and the pressures
        only matter for reporting. Otherwise the root radius follows from the
        pressure drop.
    radius_exponent : float
        Exponent gamma of the bifurcation law r_p^gamma = r_1^gamma + r_2^gamma.
    """

    def __init__(
        self,
        root_position: PointLike,
        viscosity: float = 3.6e-3,
        perfusion_pressure: float = 1.33e4,
        terminal_pressure: float = 8.38e3,
        root_radius: Optional[float] = None,
        radius_exponent: float = 3.0,
    ):
        if viscosity <= 0:
            raise ValueError(f"viscosity ({viscosity}) must be positive")
        if root_radius is None and perfusion_pressure <= terminal_pressure:
            raise ValueError(
                f"perfusion_pressure ({perfusion_pressure}) must exceed "
                f"terminal_pressure ({terminal_pressure})"
            )
        if root_radius is not None and root_radius <= 0:
            raise ValueError(f"root_radius ({root_radius}) must be positive")
        if radius_exponent <= 0:
            raise ValueError(f"radius_exponent ({radius_exponent}) must be positive")

        self.root_position = as_point(root_position)
        self.viscosity = float(viscosity)
        self.perfusion_pressure = float(perfusion_pressure)
        self.terminal_pressure = float(terminal_pressure)
        self.root_radius = None if root_radius is None else float(root_radius)
        self._radius_exponent = float(radius_exponent)

        self.segments: Dict[int, TreeSegment] = {}
        self.root_id: Optional[int] = None
        self._next_id = 0
        self._terminal_count = 0
        self._revision = 0
        self._spatial_index = None
        self._cost_sums: Dict[CostKey, Dict[int, float]] = {}

    @property
    def radius_exponent(self) -> float:
        return self._radius_exponent

    @radius_exponent.setter
    def radius_exponent(self, value: float) -> None:
        if value <= 0:
            raise ValueError(f"radius_exponent ({value}) must be positive")
        if float(value) == self._radius_exponent:
            return
        self._radius_exponent = float(value)
        if self.root_id is not None:
            self._rebuild_hemodynamics()

    @property
    def pressure_drop(self) -> float:
        return self.perfusion_pressure - self.terminal_pressure

    @property
    def revision(self) -> int:
        """Counter incremented by every mutation."""
        return self._revision

    @property
    def terminal_count(self) -> int:
        return self._terminal_count

    @property
    def root(self) -> Optional[TreeSegment]:
        if self.root_id is None:
            return None
        return self.segments[self.root_id]

    def __len__(self) -> int:
        return len(self.segments)

    def get_segment(self, segment_id: int) -> Optional[TreeSegment]:
        """Get segment by ID."""
        return self.segments.get(segment_id)

    def traverse(self) -> List[int]:
        """Segment ids in depth-first pre-order, continuation before new terminal."""
        if self.root_id is None:
            return []
        order = []
        stack = [self.root_id]
        while stack:
            segment = self.segments[stack.pop()]
            order.append(segment.id)
            stack.extend(reversed(segment.children_ids))
        return order

    def iter_segments(self) -> Iterator[TreeSegment]:
        for segment_id in self.traverse():
            yield self.segments[segment_id]

    def iter_geometry(self) -> Iterator[Tuple[int, float, float, float]]:
        """Yield (segment_id, length, radius, flow) in pre-order."""
        for segment in self.iter_segments():
            yield segment.id, segment.length, segment.radius, segment.flow

    def terminal_ids(self) -> List[int]:
        return [s.id for s in self.iter_segments() if s.is_terminal]

    def path_to_root(self, segment_id: int) -> List[int]:
        """Ids from ``segment_id`` up to and including the root."""
        path = []
        current: Optional[int] = self._require(segment_id).id
        while current is not None:
            path.append(current)
            current = self.segments[current].parent_id
        return path

    def depth(self, segment_id: int) -> int:
        return len(self.path_to_root(segment_id)) - 1

    def weighted_length_sum(self, radius_power: float, length_exponent: float) -> float:
        """
        Root subtree sum S with sum_i r_i**radius_power * l_i**length_exponent
        equal to root.radius**radius_power * S.

        Each segment's S_i = l_i**length_exponent + sum over children of
        beta_c**radius_power * S_c. Sums are cached per exponent pair and
        updated incrementally by ``apply``.
        """
        if self.root_id is None:
            return 0.0
        return self._subtree_sums((float(radius_power), float(length_exponent)))[self.root_id]

    def get_spatial_index(self) -> "SegmentIndex":
        """Get or create the segment distance index."""
        if self._spatial_index is None:
            from ..spatial.segment_index import SegmentIndex
            self._spatial_index = SegmentIndex(self)
        return self._spatial_index

    def create_root(self, distal: PointLike, flow: float) -> int:
        """
        Create the root segment from ``root_position`` to ``distal``.

        Parameters
        ----------
        distal : Point3D or sequence
            Distal point of the root segment; it becomes the first terminal.
        flow : float
            Flow through the root (m^3/s).

        Returns
        -------
        int
            ID of the root segment.
        """
        if self.root_id is not None:
            raise GrowthStateError("Tree already has a root segment")
        distal = as_point(distal)
        flow = float(flow)
        if not (np.isfinite(flow) and flow > 0):
            raise ValueError(f"Root flow must be positive and finite, got {flow}")
        if distal.distance_to(self.root_position) <= 0:
            raise ValueError("Root segment must have positive length")

        segment = TreeSegment(
            id=self._allocate_id(),
            proximal=self.root_position,
            distal=distal,
            flow=flow,
            terminal_index=0,
        )
        segment.reduced_resistance = self._poiseuille(segment.length)
        self.segments[segment.id] = segment
        self.root_id = segment.id
        self._terminal_count = 1
        self._cost_sums = {}
        self._assign_radii()
        self._touch()

        logger.debug(
            f"Created root segment {segment.id}: length={segment.length:.4g} m, "
            f"radius={segment.radius:.4g} m"
        )
        return segment.id

    def propose_bifurcation(
        self,
        segment_id: int,
        bifurcation_point: PointLike,
        terminal_point: PointLike,
        terminal_flow: float,
    ) -> BifurcationProposal:
        """
        Compute the tree that would result from a bifurcation insertion.

        The tree is not modified. The split segment keeps its id and becomes
        the proximal part ending at ``bifurcation_point``; a continuation
        segment takes over its old distal point and subtree, and a new
        terminal segment runs from ``bifurcation_point`` to ``terminal_point``.

        Raises
        ------
        ValueError
            If the segment does not exist, the flow is not positive, or any of
            the three resulting segments would have zero length.
        """
        segment = self._require(segment_id)
        x = as_point(bifurcation_point)
        t = as_point(terminal_point)
        terminal_flow = float(terminal_flow)
        if not (np.isfinite(terminal_flow) and terminal_flow > 0):
            raise ValueError(f"Terminal flow must be positive and finite, got {terminal_flow}")
        for label, length in (
            ("proximal part", segment.proximal.distance_to(x)),
            ("continuation", x.distance_to(segment.distal)),
            ("new terminal", x.distance_to(t)),
        ):
            if not length > 0:
                raise ValueError(
                    f"Bifurcation on segment {segment_id} yields a zero-length {label}"
                )

        continuation_id, terminal_id = self._next_id, self._next_id + 1
        staged: Dict[int, TreeSegment] = {}

        continuation = TreeSegment(
            id=continuation_id,
            proximal=x,
            distal=segment.distal,
            flow=segment.flow,
            parent_id=segment.id,
            children_ids=list(segment.children_ids),
            terminal_index=segment.terminal_index,
        )
        for child_id in continuation.children_ids:
            self._staged_copy(child_id, staged).parent_id = continuation_id
        staged[continuation_id] = continuation
        if continuation.children_ids:
            self._balance(continuation, staged)
        else:
            continuation.reduced_resistance = self._poiseuille(continuation.length)

        new_terminal = TreeSegment(
            id=terminal_id,
            proximal=x,
            distal=t,
            flow=terminal_flow,
            parent_id=segment.id,
            terminal_index=self._terminal_count,
        )
        new_terminal.reduced_resistance = self._poiseuille(new_terminal.length)
        staged[terminal_id] = new_terminal

        current = replace(
            segment,
            distal=x,
            flow=segment.flow + terminal_flow,
            children_ids=[continuation_id, terminal_id],
            terminal_index=None,
        )
        staged[segment.id] = current

        # Ancestor chain: one bounded pass from the split segment to the root.
        path = []
        while True:
            self._balance(current, staged)
            path.append(current.id)
            if current.parent_id is None:
                break
            parent = self._staged_copy(current.parent_id, staged)
            parent.flow = parent.flow + terminal_flow
            current = parent

        return BifurcationProposal(
            tree=self,
            segment_id=segment.id,
            bifurcation_point=x,
            terminal_point=t,
            terminal_flow=terminal_flow,
            continuation_id=continuation_id,
            terminal_id=terminal_id,
            segments=staged,
            root_radius=self._root_radius(current),
            revision=self._revision,
            path=path,
        )

    def apply(self, proposal: BifurcationProposal) -> Tuple[int, int]:
        """
        Commit a proposal computed against the current revision.

        Returns
        -------
        tuple of int
            (continuation_id, terminal_id)
        """
        if proposal.tree is not self or proposal.revision != self._revision:
            raise ValueError(
                f"Proposal for segment {proposal.segment_id} is stale "
                f"(computed at revision {proposal.revision}, tree is at {self._revision})"
            )
        radii = proposal.radii()
        self.segments.update(proposal.segments)
        for segment_id, radius in radii.items():
            self.segments[segment_id].radius = radius

        # Subtrees off the ancestor chain are unchanged, so their sums carry over.
        cost_sums = {}
        for key, sums in proposal._cost_sums.items():
            if key in self._cost_sums:
                cost_sums[key] = self._cost_sums[key]
                cost_sums[key].update(sums)
        self._cost_sums = cost_sums

        self._next_id += 2
        self._terminal_count += 1
        self._touch()
        return proposal.continuation_id, proposal.terminal_id

    def insert_bifurcation(
        self,
        segment_id: int,
        bifurcation_point: PointLike,
        terminal_point: PointLike,
        terminal_flow: float,
    ) -> Tuple[int, int]:
        """
        Split ``segment_id`` at ``bifurcation_point`` and attach a new terminal.

        Flows along the ancestor chain grow by ``terminal_flow``; child radius
        ratios and reduced resistances along the chain are rebalanced, and all
        radii are rescaled from the new root radius.

        Returns
        -------
        tuple of int
            (continuation_id, terminal_id)
        """
        proposal = self.propose_bifurcation(
            segment_id, bifurcation_point, terminal_point, terminal_flow
        )
        return self.apply(proposal)

    def copy(self) -> "ArterialTree":
        """Independent deep copy of the tree."""
        return ArterialTree.from_dict(self.to_dict())

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            "schema_version": SCHEMA_VERSION,
            "root_position": self.root_position.to_dict(),
            "viscosity": self.viscosity,
            "perfusion_pressure": self.perfusion_pressure,
            "terminal_pressure": self.terminal_pressure,
            "root_radius": self.root_radius,
            "radius_exponent": self._radius_exponent,
            "segments": [seg.to_dict() for seg in self.segments.values()],
        }

    @classmethod
    def from_dict(cls, d: dict) -> "ArterialTree":
        """
        Create from dictionary.

        Stored flows are kept as-is so that a damaged file still loads and can
        be inspected with TreeIntegrity; radius ratios, reduced resistances
        and radii are recomputed.
        """
        tree = cls(
            root_position=Point3D.from_dict(d["root_position"]),
            viscosity=d.get("viscosity", 3.6e-3),
            perfusion_pressure=d.get("perfusion_pressure", 1.33e4),
            terminal_pressure=d.get("terminal_pressure", 8.38e3),
            root_radius=d.get("root_radius"),
            radius_exponent=d.get("radius_exponent", 3.0),
        )
        for seg_dict in d.get("segments", []):
            segment = TreeSegment.from_dict(seg_dict)
            tree.segments[segment.id] = segment

        if not tree.segments:
            return tree

        roots = [s.id for s in tree.segments.values() if s.parent_id is None]
        if len(roots) != 1:
            raise ValueError(f"Expected exactly one root segment, found {len(roots)}")
        for segment in tree.segments.values():
            if len(segment.children_ids) not in (0, 2):
                raise ValueError(
                    f"Segment {segment.id} has {len(segment.children_ids)} children; expected 0 or 2"
                )
            missing = [c for c in segment.children_ids if c not in tree.segments]
            if missing:
                raise ValueError(f"Segment {segment.id} references missing children {missing}")
            if not segment.flow > 0:
                raise ValueError(f"Segment {segment.id} has non-positive flow {segment.flow}")

        tree.root_id = roots[0]
        tree._next_id = max(tree.segments) + 1
        tree._terminal_count = sum(1 for s in tree.segments.values() if s.is_terminal)
        tree._rebuild_hemodynamics()
        return tree

    def _require(self, segment_id: int) -> TreeSegment:
        segment = self.segments.get(segment_id)
        if segment is None:
            raise ValueError(f"Segment {segment_id} not in tree")
        return segment

    def _allocate_id(self) -> int:
        segment_id = self._next_id
        self._next_id += 1
        return segment_id

    def _touch(self) -> None:
        self._revision += 1
        self._spatial_index = None

    def _poiseuille(self, length: float) -> float:
        """Reduced resistance of a single tube: 8 * mu * l / pi."""
        return 8.0 * self.viscosity * length / np.pi

    def _root_radius(self, root: TreeSegment) -> float:
        if self.root_radius is not None:
            return self.root_radius
        return float((root.reduced_resistance * root.flow / self.pressure_drop) ** 0.25)

    def _staged_copy(self, segment_id: int, staged: Dict[int, TreeSegment]) -> TreeSegment:
        if segment_id not in staged:
            original = self.segments[segment_id]
            staged[segment_id] = replace(original, children_ids=list(original.children_ids))
        return staged[segment_id]

    def _balance(self, parent: TreeSegment, staged: Dict[int, TreeSegment]) -> None:
        """Recompute the children's radius ratios and the parent's reduced resistance."""
        left = self._staged_copy(parent.children_ids[0], staged)
        right = self._staged_copy(parent.children_ids[1], staged)

        gamma = self._radius_exponent
        # r_left / r_right
        ratio = (
            (left.flow * left.reduced_resistance) / (right.flow * right.reduced_resistance)
        ) ** 0.25
        left.radius_ratio = (1.0 + ratio ** -gamma) ** (-1.0 / gamma)
        right.radius_ratio = (1.0 + ratio ** gamma) ** (-1.0 / gamma)

        parent.reduced_resistance = self._poiseuille(parent.length) + 1.0 / (
            left.radius_ratio ** 4 / left.reduced_resistance
            + right.radius_ratio ** 4 / right.reduced_resistance
        )

    def _radii(
        self,
        lookup: Callable[[int], TreeSegment],
        root_radius: float,
    ) -> Dict[int, float]:
        radii: Dict[int, float] = {}
        stack = [self.root_id]
        while stack:
            segment = lookup(stack.pop())
            if segment.parent_id is None:
                radii[segment.id] = root_radius
            else:
                radii[segment.id] = radii[segment.parent_id] * segment.radius_ratio
            stack.extend(reversed(segment.children_ids))
        return radii

    def _assign_radii(self) -> None:
        radii = self._radii(self.segments.__getitem__, self._root_radius(self.root))
        for segment_id, radius in radii.items():
            self.segments[segment_id].radius = radius

    def _rebuild_hemodynamics(self) -> None:
        """Recompute every reduced resistance, radius ratio and radius bottom-up."""
        for segment_id in reversed(self.traverse()):
            segment = self.segments[segment_id]
            if segment.is_terminal:
                segment.reduced_resistance = self._poiseuille(segment.length)
            else:
                self._balance(segment, self.segments)
        self.segments[self.root_id].radius_ratio = 1.0
        self._cost_sums = {}
        self._assign_radii()
        self._touch()

    def _subtree_sums(self, key: CostKey) -> Dict[int, float]:
        """Cached subtree sums for the committed tree, computed bottom-up on first use."""
        if key not in self._cost_sums:
            sums: Dict[int, float] = {}
            for segment_id in reversed(self.traverse()):
                sums[segment_id] = self._subtree_sum(
                    self.segments[segment_id], self.segments.__getitem__, sums, sums, key
                )
            self._cost_sums[key] = sums
        return self._cost_sums[key]

    @staticmethod
    def _subtree_sum(
        segment: TreeSegment,
        lookup: Callable[[int], TreeSegment],
        sums: Dict[int, float],
        committed: Dict[int, float],
        key: CostKey,
    ) -> float:
        radius_power, length_exponent = key
        total = segment.length ** length_exponent
        for child_id in segment.children_ids:
            child_sum = sums[child_id] if child_id in sums else committed[child_id]
            total += lookup(child_id).radius_ratio ** radius_power * child_sum
        return total
