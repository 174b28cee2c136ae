"""
Geometric domains that supply terminal positions during tree growth.

Every domain owns a seeded random generator, so a domain created with the same
seed replays the same sequence of sampled points. That sequence is what makes
growth reproducible.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
import numpy as np
from .types import Point3D, PointLike, as_point


class DomainSpec(ABC):
    """Abstract base class for geometric domains."""

    @abstractmethod
    def contains(self, point: Point3D) -> bool:
        """Check if a point is inside the domain."""
        pass

    @abstractmethod
    def sample_points(self, n_points: int) -> np.ndarray:
        """Sample random points inside the domain, shape (n_points, 3)."""
        pass

    @abstractmethod
    def volume(self) -> float:
        """Perfusion volume of the domain (m^3)."""
        pass

    @abstractmethod
    def to_dict(self) -> dict:
        """Convert to dictionary."""
        pass

    @abstractmethod
    def get_bounds(self) -> tuple:
        """Get bounding box (x_min, x_max, y_min, y_max, z_min, z_max)."""
        pass

    def sample_point(self) -> Point3D:
        """Sample a single random point inside the domain."""
        return Point3D.from_array(self.sample_points(1)[0])

    def reseed(self, seed: Optional[int]) -> None:
        """Restart the sampling sequence from ``seed``."""
        self.seed = seed
        self._rng = np.random.default_rng(seed)

    def _generator(self) -> np.random.Generator:
        rng = getattr(self, "_rng", None)
        if rng is None:
            rng = np.random.default_rng(getattr(self, "seed", None))
            self._rng = rng
        return rng


@dataclass
class EllipsoidDomain(DomainSpec):
    """Ellipsoidal domain (e.g., for liver)."""

    semi_axis_a: float  # x-axis
    semi_axis_b: float  # y-axis
    semi_axis_c: float  # z-axis
    center: Point3D = None
    seed: Optional[int] = None

    def __post_init__(self):
        if self.center is None:
            self.center = Point3D(0.0, 0.0, 0.0)
        else:
            self.center = as_point(self.center)
        for name in ("semi_axis_a", "semi_axis_b", "semi_axis_c"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} ({getattr(self, name)}) must be positive")

    def contains(self, point: Point3D) -> bool:
        """Check if point is inside ellipsoid."""
        dx = point.x - self.center.x
        dy = point.y - self.center.y
        dz = point.z - self.center.z

        normalized = (
            (dx / self.semi_axis_a) ** 2 +
            (dy / self.semi_axis_b) ** 2 +
            (dz / self.semi_axis_c) ** 2
        )
        return normalized <= 1.0

    def sample_points(self, n_points: int) -> np.ndarray:
        """Sample random points uniformly inside ellipsoid."""
        rng = self._generator()
        axes = np.array([self.semi_axis_a, self.semi_axis_b, self.semi_axis_c])
        center = self.center.to_array()

        points = []
        while len(points) < n_points:
            offset = rng.uniform(-axes, axes)
            if np.sum((offset / axes) ** 2) <= 1.0:
                points.append(center + offset)

        return np.array(points).reshape(n_points, 3)

    def volume(self) -> float:
        return float(4.0 / 3.0 * np.pi * self.semi_axis_a * self.semi_axis_b * self.semi_axis_c)

    def get_bounds(self) -> tuple:
        """Get bounding box."""
        return (
            self.center.x - self.semi_axis_a,
            self.center.x + self.semi_axis_a,
            self.center.y - self.semi_axis_b,
            self.center.y + self.semi_axis_b,
            self.center.z - self.semi_axis_c,
            self.center.z + self.semi_axis_c,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "type": "ellipsoid",
            "semi_axis_a": self.semi_axis_a,
            "semi_axis_b": self.semi_axis_b,
            "semi_axis_c": self.semi_axis_c,
            "center": self.center.to_dict(),
            "seed": self.seed,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "EllipsoidDomain":
        """Create from dictionary."""
        return cls(
            semi_axis_a=d["semi_axis_a"],
            semi_axis_b=d["semi_axis_b"],
            semi_axis_c=d["semi_axis_c"],
            center=Point3D.from_dict(d["center"]),
            seed=d.get("seed"),
        )


@dataclass
class BoxDomain(DomainSpec):
    """Rectangular box domain."""

    x_min: float
    x_max: float
    y_min: float
    y_max: float
    z_min: float
    z_max: float
    seed: Optional[int] = None

    def __post_init__(self):
        """Validate box dimensions."""
        if self.x_min >= self.x_max:
            raise ValueError(f"x_min ({self.x_min}) must be less than x_max ({self.x_max})")
        if self.y_min >= self.y_max:
            raise ValueError(f"y_min ({self.y_min}) must be less than y_max ({self.y_max})")
        if self.z_min >= self.z_max:
            raise ValueError(f"z_min ({self.z_min}) must be less than z_max ({self.z_max})")

    def contains(self, point: Point3D) -> bool:
        """Check if point is inside box."""
        return (
            self.x_min <= point.x <= self.x_max and
            self.y_min <= point.y <= self.y_max and
            self.z_min <= point.z <= self.z_max
        )

    def sample_points(self, n_points: int) -> np.ndarray:
        """Sample random points uniformly inside box."""
        rng = self._generator()

        x = rng.uniform(self.x_min, self.x_max, n_points)
        y = rng.uniform(self.y_min, self.y_max, n_points)
        z = rng.uniform(self.z_min, self.z_max, n_points)

        return np.column_stack([x, y, z])

    def volume(self) -> float:
        return float(
            (self.x_max - self.x_min) * (self.y_max - self.y_min) * (self.z_max - self.z_min)
        )

    def get_bounds(self) -> tuple:
        """Get bounding box (same as box itself)."""
        return (
            self.x_min, self.x_max,
            self.y_min, self.y_max,
            self.z_min, self.z_max,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "type": "box",
            "x_min": self.x_min,
            "x_max": self.x_max,
            "y_min": self.y_min,
            "y_max": self.y_max,
            "z_min": self.z_min,
            "z_max": self.z_max,
            "seed": self.seed,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "BoxDomain":
        """Create from dictionary."""
        return cls(
            x_min=d["x_min"],
            x_max=d["x_max"],
            y_min=d["y_min"],
            y_max=d["y_max"],
            z_min=d["z_min"],
            z_max=d["z_max"],
            seed=d.get("seed"),
        )

    @classmethod
    def from_center_and_size(
        cls,
        center: PointLike,
        width: float,
        height: float,
        depth: float,
        seed: Optional[int] = None,
    ) -> "BoxDomain":
        """
        Create box from center point and dimensions.

        Parameters
        ----------
        center : Point3D or tuple or list
            Center point as Point3D, tuple (x, y, z), or list [x, y, z]
        width, height, depth : float
            Extent along x, y and z.
        seed : int, optional
            Seed of the sampling sequence.
        """
        c = as_point(center)
        return cls(
            x_min=c.x - width / 2, x_max=c.x + width / 2,
            y_min=c.y - height / 2, y_max=c.y + height / 2,
            z_min=c.z - depth / 2, z_max=c.z + depth / 2,
            seed=seed,
        )


@dataclass
class MeshDomain(DomainSpec):
    """
    Mesh-based domain from a closed surface file (STL, OBJ, PLY, ...).

    Parameters
    ----------
    mesh_path : str
        Path to the mesh file. The mesh must be watertight for containment
        queries to be meaningful.
    seed : int, optional
        Seed of the sampling sequence.
    max_rejections : int
        Rejection-sampling budget per requested point.
    """

    mesh_path: str
    seed: Optional[int] = None
    max_rejections: int = 100
    _mesh: Optional[object] = field(default=None, repr=False, compare=False)

    def __post_init__(self):
        """Load mesh on initialization."""
        try:
            import trimesh
        except ImportError:
            raise ImportError("trimesh is required for MeshDomain. Install with: pip install trimesh")
        try:
            self._mesh = trimesh.load(self.mesh_path, force="mesh")
        except Exception as e:
            raise ValueError(f"Failed to load mesh from {self.mesh_path}: {e}")

    def contains(self, point: Point3D) -> bool:
        """Check if point is inside mesh."""
        point_arr = point.to_array().reshape(1, 3)
        return bool(self._mesh.contains(point_arr)[0])

    def sample_points(self, n_points: int) -> np.ndarray:
        """Sample random points inside mesh by rejection against its bounds."""
        rng = self._generator()

        bounds = self._mesh.bounds
        min_bound = bounds[0]
        max_bound = bounds[1]

        points: List[np.ndarray] = []
        max_attempts = n_points * self.max_rejections
        attempts = 0

        while len(points) < n_points and attempts < max_attempts:
            candidate = rng.uniform(min_bound, max_bound)
            attempts += 1
            if self._mesh.contains(candidate.reshape(1, 3))[0]:
                points.append(candidate)

        if len(points) < n_points:
            raise ValueError(f"Could only sample {len(points)} points after {max_attempts} attempts")

        return np.array(points)

    def volume(self) -> float:
        return float(abs(self._mesh.volume))

    def get_bounds(self) -> tuple:
        """Get bounding box."""
        bounds = self._mesh.bounds
        return (
            bounds[0][0], bounds[1][0],
            bounds[0][1], bounds[1][1],
            bounds[0][2], bounds[1][2],
        )

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "type": "mesh",
            "mesh_path": self.mesh_path,
            "seed": self.seed,
            "max_rejections": self.max_rejections,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "MeshDomain":
        """Create from dictionary."""
        return cls(
            mesh_path=d["mesh_path"],
            seed=d.get("seed"),
            max_rejections=d.get("max_rejections", 100),
        )


@dataclass
class PointSequenceDomain(DomainSpec):
    """
    Domain that replays a fixed list of points.

    Once the list is exhausted the last point repeats forever, unless
    ``cycle`` is set, in which case the list starts over. Containment and
    volume are delegated to ``region`` when given; without a region every
    point is considered inside and the volume is zero.

    Examples
    --------
    >>> domain = PointSequenceDomain([(0, 0, 1), (1, 0, 1)])
    >>> domain.sample_point(), domain.sample_point(), domain.sample_point()
    (Point3D(x=0.0, y=0.0, z=1.0), Point3D(x=1.0, y=0.0, z=1.0), Point3D(x=1.0, y=0.0, z=1.0))
    """

    points: Sequence[PointLike]
    cycle: bool = False
    region: Optional[DomainSpec] = None
    _cursor: int = field(default=0, repr=False, compare=False)

    def __post_init__(self):
        if len(self.points) == 0:
            raise ValueError("PointSequenceDomain requires at least one point")
        self.points = [as_point(p) for p in self.points]

    def contains(self, point: Point3D) -> bool:
        if self.region is None:
            return True
        return self.region.contains(point)

    def sample_points(self, n_points: int) -> np.ndarray:
        out = []
        for _ in range(n_points):
            if self._cursor < len(self.points):
                index = self._cursor
            elif self.cycle:
                index = self._cursor % len(self.points)
            else:
                index = len(self.points) - 1
            out.append(self.points[index].to_array())
            self._cursor += 1
        return np.array(out).reshape(n_points, 3)

    def reseed(self, seed: Optional[int]) -> None:
        """Restart the replay from the first point (``seed`` is ignored)."""
        self._cursor = 0

    def volume(self) -> float:
        if self.region is None:
            return 0.0
        return self.region.volume()

    def get_bounds(self) -> tuple:
        if self.region is not None:
            return self.region.get_bounds()
        arr = np.array([p.to_array() for p in self.points])
        lo, hi = arr.min(axis=0), arr.max(axis=0)
        return (lo[0], hi[0], lo[1], hi[1], lo[2], hi[2])

    def to_dict(self) -> dict:
        result = {
            "type": "point_sequence",
            "points": [p.to_dict() for p in self.points],
            "cycle": self.cycle,
        }
        if self.region is not None:
            result["region"] = self.region.to_dict()
        return result

    @classmethod
    def from_dict(cls, d: dict) -> "PointSequenceDomain":
        region = d.get("region")
        return cls(
            points=[Point3D.from_dict(p) for p in d["points"]],
            cycle=d.get("cycle", False),
            region=domain_from_dict(region) if region is not None else None,
        )


def domain_from_dict(d: dict) -> DomainSpec:
    """
    Create domain from dictionary based on type.

    Supports: ellipsoid, box, mesh and point_sequence.

    Raises
    ------
    ValueError
        If domain type is not recognized.
    """
    domain_type = d.get("type")

    if domain_type == "ellipsoid":
        return EllipsoidDomain.from_dict(d)
    elif domain_type == "box":
        return BoxDomain.from_dict(d)
    elif domain_type == "mesh":
        return MeshDomain.from_dict(d)
    elif domain_type == "point_sequence":
        return PointSequenceDomain.from_dict(d)
    else:
        raise ValueError(f"Unknown domain type: {domain_type}")
