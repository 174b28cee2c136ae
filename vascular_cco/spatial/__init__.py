"""Spatial queries over tree segments."""

from .segment_index import SegmentIndex, point_segment_distances

__all__ = ["SegmentIndex", "point_segment_distances"]
