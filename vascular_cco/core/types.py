"""
Geometric primitive types for arterial trees.
"""

from dataclasses import dataclass
from typing import Sequence, Tuple, Union
import numpy as np


@dataclass(frozen=True)
class Point3D:
    """3D point in space."""

    x: float
    y: float
    z: float

    def to_array(self) -> np.ndarray:
        """Convert to numpy array."""
        return np.array([self.x, self.y, self.z], dtype=float)

    @classmethod
    def from_array(cls, arr: np.ndarray) -> "Point3D":
        """Create from numpy array."""
        return cls(float(arr[0]), float(arr[1]), float(arr[2]))

    def to_tuple(self) -> Tuple[float, float, float]:
        """Convert to tuple."""
        return (self.x, self.y, self.z)

    @classmethod
    def from_tuple(cls, t: Sequence[float]) -> "Point3D":
        """Create from tuple."""
        return cls(float(t[0]), float(t[1]), float(t[2]))

    def distance_to(self, other: "Point3D") -> float:
        """Compute Euclidean distance to another point."""
        dx = self.x - other.x
        dy = self.y - other.y
        dz = self.z - other.z
        return float(np.sqrt(dx**2 + dy**2 + dz**2))

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {"x": self.x, "y": self.y, "z": self.z}

    @classmethod
    def from_dict(cls, d: dict) -> "Point3D":
        """Create from dictionary."""
        return cls(float(d["x"]), float(d["y"]), float(d["z"]))


PointLike = Union[Point3D, Sequence[float], np.ndarray]


def as_point(value: PointLike) -> Point3D:
    """
    Coerce a point-like value to Point3D.

    Parameters
    ----------
    value : Point3D, tuple, list or np.ndarray
        Point as Point3D or any length-3 sequence of coordinates.

    Returns
    -------
    Point3D
        The coerced point.

    Raises
    ------
    ValueError
        If the value does not have exactly three finite coordinates.
    """
    if isinstance(value, Point3D):
        point = value
    else:
        arr = np.asarray(value, dtype=float).reshape(-1)
        if arr.shape != (3,):
            raise ValueError(f"Expected 3 coordinates, got shape {arr.shape}")
        point = Point3D.from_array(arr)

    if not np.all(np.isfinite(point.to_array())):
        raise ValueError(f"Point coordinates must be finite, got {point.to_tuple()}")
    return point
