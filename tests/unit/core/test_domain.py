"""
Unit tests for growth domains and point coercion.

These tests verify that:
- Box and ellipsoid domains sample inside themselves and validate extents
- A seeded domain replays the same sampling sequence
- PointSequenceDomain replays, repeats or cycles its points
- Domains survive a to_dict/domain_from_dict roundtrip
"""

import numpy as np
import pytest

from vascular_cco.core.domain import (
    BoxDomain,
    EllipsoidDomain,
    MeshDomain,
    PointSequenceDomain,
    domain_from_dict,
)
from vascular_cco.core.types import Point3D, as_point


class TestAsPoint:
    """Tests for point coercion."""

    def test_sequence_coerced(self):
        assert as_point([1, 2, 3]) == Point3D(1.0, 2.0, 3.0)
        assert as_point(np.array([0.5, 0.0, -1.0])) == Point3D(0.5, 0.0, -1.0)

    def test_point_passes_through(self):
        p = Point3D(1.0, 2.0, 3.0)
        assert as_point(p) is p

    def test_wrong_length_rejected(self):
        with pytest.raises(ValueError):
            as_point((1.0, 2.0))

    def test_non_finite_rejected(self):
        with pytest.raises(ValueError):
            as_point((0.0, float("nan"), 0.0))

    def test_distance(self):
        assert Point3D(0, 0, 0).distance_to(Point3D(3, 4, 0)) == pytest.approx(5.0)


class TestBoxDomain:
    """Tests for BoxDomain."""

    def test_invalid_extent_rejected(self):
        with pytest.raises(ValueError, match="x_min"):
            BoxDomain(1.0, 0.0, 0.0, 1.0, 0.0, 1.0)

    def test_samples_inside(self):
        domain = BoxDomain(0.0, 0.01, 0.0, 0.02, 0.0, 0.03, seed=3)
        points = domain.sample_points(200)

        assert points.shape == (200, 3)
        assert all(domain.contains(Point3D.from_array(p)) for p in points)

    def test_volume(self):
        domain = BoxDomain.from_center_and_size((0, 0, 0), 0.01, 0.02, 0.03)
        assert domain.volume() == pytest.approx(6e-6)

    def test_same_seed_same_sequence(self):
        a = BoxDomain(0, 1, 0, 1, 0, 1, seed=42)
        b = BoxDomain(0, 1, 0, 1, 0, 1, seed=42)

        assert [a.sample_point() for _ in range(5)] == [b.sample_point() for _ in range(5)]

    def test_reseed_restarts_sequence(self):
        domain = BoxDomain(0, 1, 0, 1, 0, 1, seed=5)
        first = [domain.sample_point() for _ in range(3)]

        domain.reseed(5)

        assert [domain.sample_point() for _ in range(3)] == first


class TestEllipsoidDomain:
    """Tests for EllipsoidDomain."""

    def test_contains(self):
        domain = EllipsoidDomain(0.02, 0.01, 0.01)

        assert domain.contains(Point3D(0.019, 0.0, 0.0))
        assert not domain.contains(Point3D(0.0, 0.011, 0.0))

    def test_samples_inside(self):
        domain = EllipsoidDomain(0.02, 0.01, 0.005, center=(1.0, 1.0, 1.0), seed=1)
        points = domain.sample_points(100)

        assert all(domain.contains(Point3D.from_array(p)) for p in points)

    def test_volume(self):
        domain = EllipsoidDomain(1.0, 2.0, 3.0)
        assert domain.volume() == pytest.approx(8.0 * np.pi)

    def test_non_positive_axis_rejected(self):
        with pytest.raises(ValueError):
            EllipsoidDomain(0.0, 1.0, 1.0)


class TestPointSequenceDomain:
    """Tests for PointSequenceDomain."""

    def test_last_point_repeats(self):
        domain = PointSequenceDomain([(0, 0, 1), (1, 0, 1)])
        points = [domain.sample_point() for _ in range(4)]

        assert points == [
            Point3D(0, 0, 1), Point3D(1, 0, 1), Point3D(1, 0, 1), Point3D(1, 0, 1)
        ]

    def test_cycle(self):
        domain = PointSequenceDomain([(0, 0, 1), (1, 0, 1)], cycle=True)
        points = [domain.sample_point() for _ in range(3)]

        assert points == [Point3D(0, 0, 1), Point3D(1, 0, 1), Point3D(0, 0, 1)]

    def test_reseed_rewinds(self):
        domain = PointSequenceDomain([(0, 0, 1), (1, 0, 1)])
        domain.sample_point()
        domain.reseed(None)

        assert domain.sample_point() == Point3D(0, 0, 1)

    def test_region_delegation(self):
        region = BoxDomain(0, 1, 0, 1, 0, 1)
        domain = PointSequenceDomain([(0.5, 0.5, 0.5), (2.0, 0.5, 0.5)], region=region)

        assert domain.contains(Point3D(0.5, 0.5, 0.5))
        assert not domain.contains(Point3D(2.0, 0.5, 0.5))
        assert domain.volume() == pytest.approx(1.0)

    def test_no_region(self):
        domain = PointSequenceDomain([(5, 5, 5)])

        assert domain.contains(Point3D(-100, 0, 0))
        assert domain.volume() == 0.0

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            PointSequenceDomain([])


class TestMeshDomain:
    """Tests for MeshDomain backed by a trimesh box."""

    @pytest.fixture
    def mesh_path(self, tmp_path):
        trimesh = pytest.importorskip("trimesh")
        pytest.importorskip("rtree")
        path = tmp_path / "box.stl"
        trimesh.creation.box(extents=(0.02, 0.02, 0.02)).export(str(path))
        return str(path)

    def test_contains_and_volume(self, mesh_path):
        domain = MeshDomain(mesh_path, seed=0)

        assert domain.contains(Point3D(0.0, 0.0, 0.0))
        assert not domain.contains(Point3D(0.05, 0.0, 0.0))
        assert domain.volume() == pytest.approx(8e-6, rel=1e-6)

    def test_samples_inside(self, mesh_path):
        domain = MeshDomain(mesh_path, seed=0)
        points = domain.sample_points(10)

        assert points.shape == (10, 3)
        assert np.all(np.abs(points) <= 0.01 + 1e-12)

    def test_missing_file(self, tmp_path):
        pytest.importorskip("trimesh")
        with pytest.raises(ValueError):
            MeshDomain(str(tmp_path / "missing.stl"))


class TestDomainSerialization:
    """Tests for domain_from_dict."""

    @pytest.mark.parametrize(
        "domain",
        [
            BoxDomain(0, 1, 0, 2, 0, 3, seed=9),
            EllipsoidDomain(1.0, 2.0, 3.0, center=(1, 1, 1)),
            PointSequenceDomain([(0, 0, 1)], cycle=True, region=BoxDomain(0, 1, 0, 1, 0, 1)),
        ],
    )
    def test_roundtrip(self, domain):
        restored = domain_from_dict(domain.to_dict())

        assert type(restored) is type(domain)
        assert restored.to_dict() == domain.to_dict()

    def test_unknown_type(self):
        with pytest.raises(ValueError, match="Unknown domain type"):
            domain_from_dict({"type": "torus"})
