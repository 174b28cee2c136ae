"""
Classic distance criterion (Karch et al. 1999).

A new terminal must keep a minimum clearance from every existing segment.
The clearance is supplied by a policy so that it can shrink as the tree
fills its perfusion volume.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional, Set, Tuple, Union

from ..core.types import Point3D
from .interfaces import DistanceCriterion

if TYPE_CHECKING:
    from ..core.tree import ArterialTree


class ClearancePolicy(ABC):
    """Minimum clearance as a function of the current tree."""

    @abstractmethod
    def clearance(self, tree: "ArterialTree") -> float:
        pass

    def to_dict(self) -> dict:
        return {"type": type(self).__name__}


class FixedClearance(ClearancePolicy):
    """Constant clearance distance (m)."""

    def __init__(self, distance: float):
        if distance < 0:
            raise ValueError(f"clearance distance ({distance}) must be non-negative")
        self.distance = float(distance)

    def clearance(self, tree: "ArterialTree") -> float:
        return self.distance

    def to_dict(self) -> dict:
        return {"type": "fixed", "distance": self.distance}


class PerfusionVolumeClearance(ClearancePolicy):
    """
    Clearance derived from the share of perfusion volume per terminal.

    d = factor * (volume / k_term) ** (1 / dimension)

    where k_term is the current number of terminals. For dimension=2 and a
    disc of radius r this is Karch's sqrt(pi r^2 / k_term).

    Parameters
    ----------
    volume : float
        Perfusion volume (m^3), or area (m^2) when dimension is 2.
    dimension : int
        2 or 3.
    factor : float
        Scale applied to the characteristic length.
    """

    def __init__(self, volume: float, dimension: int = 3, factor: float = 0.25):
        if volume < 0:
            raise ValueError(f"volume ({volume}) must be non-negative")
        if dimension not in (2, 3):
            raise ValueError(f"dimension must be 2 or 3, got {dimension}")
        if factor < 0:
            raise ValueError(f"factor ({factor}) must be non-negative")
        self.volume = float(volume)
        self.dimension = dimension
        self.factor = float(factor)

    def clearance(self, tree: "ArterialTree") -> float:
        terminals = max(tree.terminal_count, 1)
        return self.factor * (self.volume / terminals) ** (1.0 / self.dimension)

    def to_dict(self) -> dict:
        return {
            "type": "perfusion_volume",
            "volume": self.volume,
            "dimension": self.dimension,
            "factor": self.factor,
        }


class ClassicDistanceCriterion(DistanceCriterion):
    """
    Reject terminal points closer than the clearance to any segment.

    The candidate segment itself is included in the check: a terminal lying
    on (or next to) the segment it would branch from produces a degenerate
    connection. ``admissible`` therefore ignores ``segment_id`` and gives the
    same answer for every candidate; the answer is memoized per tree
    revision and point, so a search that asks once per candidate still
    measures distances once.

    Parameters
    ----------
    clearance : float or ClearancePolicy
        Minimum allowed distance. A number is wrapped in FixedClearance.
    bifurcation_clearance_factor : float
        The bifurcation point must stay ``factor * clearance`` away from every
        segment outside the candidate's immediate neighbourhood (itself, its
        parent, its sibling and its children). 0 disables the check.
    """

    def __init__(
        self,
        clearance: Union[float, ClearancePolicy] = 0.0,
        bifurcation_clearance_factor: float = 0.5,
    ):
        if not isinstance(clearance, ClearancePolicy):
            clearance = FixedClearance(clearance)
        if bifurcation_clearance_factor < 0:
            raise ValueError(
                f"bifurcation_clearance_factor ({bifurcation_clearance_factor}) must be non-negative"
            )
        self.policy = clearance
        self.bifurcation_clearance_factor = float(bifurcation_clearance_factor)
        self._last_check: Optional[Tuple["ArterialTree", int, Point3D, bool]] = None

    def clearance(self, tree: "ArterialTree") -> float:
        return self.policy.clearance(tree)

    def admissible(self, tree: "ArterialTree", segment_id: int, point: Point3D) -> bool:
        last = self._last_check
        if (
            last is not None
            and last[0] is tree
            and last[1] == tree.revision
            and last[2] == point
        ):
            return last[3]

        limit = self.clearance(tree)
        if limit <= 0:
            result = True
        else:
            distances = tree.get_spatial_index().point_distances(point)
            result = distances.size == 0 or float(distances.min()) >= limit
        self._last_check = (tree, tree.revision, point, result)
        return result

    def admissible_bifurcation(
        self, tree: "ArterialTree", segment_id: int, point: Point3D
    ) -> bool:
        limit = self.bifurcation_clearance_factor * self.clearance(tree)
        if limit <= 0:
            return True
        nearby = tree.get_spatial_index().query_nearby_segments(
            point, limit, exclude=self._neighbourhood(tree, segment_id)
        )
        return not nearby

    @staticmethod
    def _neighbourhood(tree: "ArterialTree", segment_id: int) -> Set[int]:
        segment = tree.segments[segment_id]
        ids = {segment_id, *segment.children_ids}
        if segment.parent_id is not None:
            ids.update(tree.segments[segment.parent_id].children_ids)
            ids.add(segment.parent_id)
        return ids

    def to_dict(self) -> dict:
        return {
            "type": "classic",
            "clearance": self.policy.to_dict(),
            "bifurcation_clearance_factor": self.bifurcation_clearance_factor,
        }
