"""
Vectorized point-to-segment distance queries over an arterial tree.

The index snapshots the segment endpoints of a tree in traversal order. It is
created lazily by ``ArterialTree.get_spatial_index()`` and discarded whenever
the tree changes, so it never needs incremental updates.
"""

from typing import TYPE_CHECKING, Iterable, List, Optional
import numpy as np

from ..core.types import Point3D

if TYPE_CHECKING:
    from ..core.tree import ArterialTree


def point_segment_distances(
    point: np.ndarray,
    starts: np.ndarray,
    ends: np.ndarray,
) -> np.ndarray:
    """
    Distance from one point to many line segments.

    Parameters
    ----------
    point : np.ndarray
        Query point, shape (3,).
    starts, ends : np.ndarray
        Segment endpoints, shape (n, 3).

    Returns
    -------
    np.ndarray
        Distances, shape (n,).
    """
    v = ends - starts
    w = point - starts
    length_sq = np.einsum("ij,ij->i", v, v)
    safe = np.where(length_sq < 1e-20, 1.0, length_sq)
    t = np.clip(np.einsum("ij,ij->i", w, v) / safe, 0.0, 1.0)
    t = np.where(length_sq < 1e-20, 0.0, t)
    closest = starts + t[:, None] * v
    return np.linalg.norm(point - closest, axis=1)


class SegmentIndex:
    """
    Distance index over the segments of one tree revision.

    Parameters
    ----------
    tree : ArterialTree
        Tree to index.
    """

    def __init__(self, tree: "ArterialTree"):
        self.tree = tree
        self.revision = tree.revision
        self.segment_ids: List[int] = tree.traverse()
        self._position = {sid: i for i, sid in enumerate(self.segment_ids)}

        if self.segment_ids:
            self.starts = np.array([tree.segments[s].proximal.to_array() for s in self.segment_ids])
            self.ends = np.array([tree.segments[s].distal.to_array() for s in self.segment_ids])
        else:
            self.starts = np.zeros((0, 3))
            self.ends = np.zeros((0, 3))

        self._last_query: Optional[tuple] = None
        self._last_distances: Optional[np.ndarray] = None

    def __len__(self) -> int:
        return len(self.segment_ids)

    def point_distances(self, point: Point3D) -> np.ndarray:
        """
        Distance from ``point`` to every segment, aligned with ``segment_ids``.

        The most recent query is memoized: the distance criterion and the
        connection search ask about the same terminal point many times in a
        row.
        """
        key = point.to_tuple()
        if key != self._last_query:
            self._last_distances = point_segment_distances(point.to_array(), self.starts, self.ends)
            self._last_query = key
        return self._last_distances

    def distance_to_segment(self, point: Point3D, segment_id: int) -> float:
        return float(self.point_distances(point)[self._position[segment_id]])

    def query_nearby_segments(
        self,
        point: Point3D,
        radius: float,
        exclude: Iterable[int] = (),
    ) -> List[int]:
        """
        Query segments near a point.

        Parameters
        ----------
        point : Point3D
            Query point
        radius : float
            Search radius; segments at distance strictly below it are returned.
        exclude : iterable of int
            Segment ids to ignore.

        Returns
        -------
        List[int]
            Segment ids within ``radius`` of ``point``, in traversal order.
        """
        if not self.segment_ids:
            return []
        excluded = set(exclude)
        distances = self.point_distances(point)
        return [
            sid for sid, d in zip(self.segment_ids, distances)
            if d < radius and sid not in excluded
        ]

    def nearest_segments(self, point: Point3D, k: Optional[int] = None) -> List[int]:
        """
        Segment ids sorted by distance to ``point``.

        The sort is stable, so equally distant segments keep traversal order.
        """
        distances = self.point_distances(point)
        order = np.argsort(distances, kind="stable")
        if k is not None:
            order = order[:k]
        return [self.segment_ids[i] for i in order]
