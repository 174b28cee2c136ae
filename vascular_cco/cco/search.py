"""
Candidate parent-segment search.
"""

import logging
from typing import TYPE_CHECKING, List, Optional

from ..core.types import Point3D
from .interfaces import ConnectionSearch, DistanceCriterion

if TYPE_CHECKING:
    from ..core.tree import ArterialTree

logger = logging.getLogger(__name__)


class TreeConnectionSearch(ConnectionSearch):
    """
    Rank segments by exact point-to-segment distance to the new terminal.

    Equal distances keep depth-first pre-order, so the ranking depends only
    on the tree and the point. Segments rejected by the distance criterion
    are dropped before the cap is applied.
    """

    def search(
        self,
        tree: "ArterialTree",
        terminal_point: Point3D,
        max_candidates: int,
        distance_criterion: Optional[DistanceCriterion] = None,
    ) -> List[int]:
        if max_candidates < 1:
            raise ValueError(f"max_candidates ({max_candidates}) must be at least 1")

        candidates: List[int] = []
        for segment_id in tree.get_spatial_index().nearest_segments(terminal_point):
            if distance_criterion is not None and not distance_criterion.admissible(
                tree, segment_id, terminal_point
            ):
                continue
            candidates.append(segment_id)
            if len(candidates) == max_candidates:
                break

        logger.debug(
            f"Connection search: {len(candidates)} candidate(s) among {len(tree)} segment(s)"
        )
        return candidates
