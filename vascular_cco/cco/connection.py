"""
Candidate connections and the per-attempt evaluation table.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional, Tuple

from ..core.types import Point3D
from .interfaces import BifurcationResult

if TYPE_CHECKING:
    from ..core.tree import BifurcationProposal


@dataclass
class Connection:
    """
    One evaluated way of attaching a terminal to a segment.

    ``radii`` are the (proximal part, continuation, new terminal) radii.
    """

    segment_id: int
    terminal_point: Point3D
    feasible: bool
    cost: float = float("inf")
    bifurcation_point: Optional[Point3D] = None
    radii: Tuple[float, ...] = ()
    reason: str = ""
    proposal: Optional["BifurcationProposal"] = field(default=None, repr=False)

    @classmethod
    def from_result(
        cls,
        segment_id: int,
        terminal_point: Point3D,
        result: BifurcationResult,
    ) -> "Connection":
        return cls(
            segment_id=segment_id,
            terminal_point=terminal_point,
            feasible=result.feasible,
            cost=result.cost,
            bifurcation_point=result.bifurcation_point,
            radii=tuple(result.radii),
            reason=result.reason,
            proposal=result.proposal,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "segment_id": self.segment_id,
            "terminal_point": self.terminal_point.to_dict(),
            "feasible": self.feasible,
            "cost": self.cost,
            "bifurcation_point": (
                self.bifurcation_point.to_dict() if self.bifurcation_point else None
            ),
            "radii": list(self.radii),
            "reason": self.reason,
        }


class ConnectionEvaluationTable:
    """
    Connections evaluated during one terminal-placement attempt.

    ``best()`` scans in insertion order with a strict comparison, so the
    first-inserted of several equal-cost connections wins.
    """

    def __init__(self):
        self._entries: List[Connection] = []

    def insert(self, connection: Connection) -> None:
        self._entries.append(connection)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Connection]:
        return iter(self._entries)

    def feasible(self) -> List[Connection]:
        return [c for c in self._entries if c.feasible]

    def costs(self) -> List[float]:
        """Costs of the feasible entries, in insertion order."""
        return [c.cost for c in self._entries if c.feasible]

    def best(self) -> Optional[Connection]:
        """Lowest-cost feasible connection, or None."""
        best = None
        for connection in self._entries:
            if not connection.feasible:
                continue
            if best is None or connection.cost < best.cost:
                best = connection
        return best
