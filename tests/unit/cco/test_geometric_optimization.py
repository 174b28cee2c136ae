"""
Unit tests for BifurcationPointOptimizer.

These tests verify that:
- The optimizer returns a feasible bifurcation inside the A-B-T triangle
- Refinement never does worse than the grid search
- The reported cost matches the cost of the tree after committing
- Infeasible candidates are reported with a reason instead of raising
"""

import numpy as np
import pytest

from vascular_cco.cco.distance_criterion import ClassicDistanceCriterion
from vascular_cco.cco.geometric_optimization import (
    BifurcationOptimizationConfig,
    BifurcationPointOptimizer,
)
from vascular_cco.cco.interfaces import GrowthContext
from vascular_cco.cco.target_functions import VolumeTargetFunction
from vascular_cco.core.domain import BoxDomain, PointSequenceDomain
from vascular_cco.core.tree import ArterialTree
from vascular_cco.core.types import Point3D

TERMINAL = Point3D(0.004, 0.0, 0.005)
FLOW = 1e-7


@pytest.fixture
def tree():
    tree = ArterialTree(root_position=(0.0, 0.0, 0.0))
    tree.create_root((0.0, 0.0, 0.01), FLOW)
    return tree


@pytest.fixture
def context():
    return GrowthContext(
        domain=BoxDomain(-0.01, 0.01, -0.01, 0.01, 0.0, 0.02),
        target_function=VolumeTargetFunction(),
        distance_criterion=ClassicDistanceCriterion(0.0),
    )


class TestBifurcationPointOptimizer:
    """Tests for feasible optimization."""

    def test_feasible_result(self, tree, context):
        result = BifurcationPointOptimizer().optimize(tree, 0, TERMINAL, FLOW, context)

        assert result.feasible
        assert result.reason == ""
        assert result.evaluations > 0
        assert all(r > 0 for r in result.radii)
        assert np.isfinite(result.cost)

    def test_bifurcation_in_triangle_plane(self, tree, context):
        """Test that the bifurcation stays in the plane spanned by A, B and T."""
        result = BifurcationPointOptimizer().optimize(tree, 0, TERMINAL, FLOW, context)
        x = result.bifurcation_point

        assert x.y == pytest.approx(0.0, abs=1e-15)
        assert 0.0 <= x.x <= TERMINAL.x
        assert 0.0 <= x.z <= 0.01

    def test_refinement_not_worse_than_grid(self, tree, context):
        grid_only = BifurcationPointOptimizer(BifurcationOptimizationConfig(refine=False))
        refined = BifurcationPointOptimizer()

        grid_result = grid_only.optimize(tree, 0, TERMINAL, FLOW, context)
        refined_result = refined.optimize(tree, 0, TERMINAL, FLOW, context)

        assert refined_result.cost <= grid_result.cost

    def test_cost_matches_committed_tree(self, tree, context):
        result = BifurcationPointOptimizer().optimize(tree, 0, TERMINAL, FLOW, context)

        tree.apply(result.proposal)

        assert VolumeTargetFunction().evaluate(tree) == pytest.approx(result.cost, rel=1e-12)
        assert tree.segments[0].distal == result.bifurcation_point

    def test_does_not_mutate_tree(self, tree, context):
        before = tree.to_dict()

        BifurcationPointOptimizer().optimize(tree, 0, TERMINAL, FLOW, context)

        assert tree.to_dict() == before

    def test_higher_resolution_grid(self, tree, context):
        config = BifurcationOptimizationConfig(grid_resolution=8, refine=False)
        result = BifurcationPointOptimizer(config).optimize(tree, 0, TERMINAL, FLOW, context)

        assert result.feasible
        assert result.evaluations == 64


class TestInfeasibleCandidates:
    """Tests for infeasible outcomes."""

    def test_bifurcation_outside_domain(self, tree):
        far_region = BoxDomain(1.0, 2.0, 1.0, 2.0, 1.0, 2.0)
        context = GrowthContext(
            domain=PointSequenceDomain([TERMINAL], region=far_region),
            target_function=VolumeTargetFunction(),
            distance_criterion=ClassicDistanceCriterion(0.0),
        )

        result = BifurcationPointOptimizer().optimize(tree, 0, TERMINAL, FLOW, context)

        assert not result.feasible
        assert result.reason == "bifurcation outside domain"
        assert result.proposal is None
        assert result.cost == float("inf")

    def test_minimum_segment_length(self, tree, context):
        config = BifurcationOptimizationConfig(minimum_segment_length=0.1)

        result = BifurcationPointOptimizer(config).optimize(tree, 0, TERMINAL, FLOW, context)

        assert not result.feasible
        assert result.reason == "degenerate segment length"

    def test_domain_check_can_be_disabled(self, tree):
        far_region = BoxDomain(1.0, 2.0, 1.0, 2.0, 1.0, 2.0)
        context = GrowthContext(
            domain=PointSequenceDomain([TERMINAL], region=far_region),
            target_function=VolumeTargetFunction(),
            distance_criterion=ClassicDistanceCriterion(0.0),
        )
        config = BifurcationOptimizationConfig(require_inside_domain=False)

        result = BifurcationPointOptimizer(config).optimize(tree, 0, TERMINAL, FLOW, context)

        assert result.feasible


class TestBifurcationOptimizationConfig:
    """Tests for configuration validation."""

    def test_invalid_grid_resolution(self):
        with pytest.raises(ValueError):
            BifurcationOptimizationConfig(grid_resolution=0)

    def test_negative_minimum_length(self):
        with pytest.raises(ValueError):
            BifurcationOptimizationConfig(minimum_segment_length=-1.0)

    def test_roundtrip(self):
        config = BifurcationOptimizationConfig(grid_resolution=6, refine=False)

        assert BifurcationOptimizationConfig.from_dict(config.to_dict()) == config


class TestRadiusExponentCheck:
    """Tests for the context's radius exponent."""

    def test_matching_exponent_accepted(self, tree):
        context = GrowthContext(
            domain=BoxDomain(-0.01, 0.01, -0.01, 0.01, 0.0, 0.02),
            target_function=VolumeTargetFunction(),
            distance_criterion=ClassicDistanceCriterion(0.0),
            radius_exponent=3.0,
        )

        result = BifurcationPointOptimizer().optimize(tree, 0, TERMINAL, FLOW, context)

        assert result.feasible

    def test_mismatched_exponent_rejected(self, tree):
        context = GrowthContext(
            domain=BoxDomain(-0.01, 0.01, -0.01, 0.01, 0.0, 0.02),
            target_function=VolumeTargetFunction(),
            distance_criterion=ClassicDistanceCriterion(0.0),
            radius_exponent=2.7,
        )

        with pytest.raises(ValueError, match="radius exponent"):
            BifurcationPointOptimizer().optimize(tree, 0, TERMINAL, FLOW, context)
