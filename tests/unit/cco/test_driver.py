"""
Unit tests for the ConstrainedConstructiveOptimization driver.

These tests verify that:
- The constructor rejects invalid counts and exponents
- A single terminal fed by a fixed point sequence yields one bifurcation
- Growth fails with AttemptExhaustionError once the attempt budget is spent
- A zero clearance never causes geometric rejection
- Every committed connection is the cheapest feasible candidate
- Growth is reproducible for a fixed seed
"""

import pytest

from vascular_cco.analysis.integrity import TreeIntegrity
from vascular_cco.cco.config import CCOConfig
from vascular_cco.cco.distance_criterion import ClassicDistanceCriterion
from vascular_cco.cco.driver import ConstrainedConstructiveOptimization
from vascular_cco.cco.interfaces import ProgressReporter, TerminalFlowFunction
from vascular_cco.cco.progress import NullProgress
from vascular_cco.core.domain import BoxDomain, PointSequenceDomain
from vascular_cco.core.errors import (
    AttemptExhaustionError,
    ConfigurationError,
    GrowthStateError,
)
from vascular_cco.core.tree import ArterialTree
from vascular_cco.core.types import Point3D

ROOT = (0.0, 0.0, 0.0)
ROOT_DISTAL = (0.0, 0.0, 0.01)


class RecordingProgress(ProgressReporter):
    def __init__(self):
        self.updates = []
        self.finished = None

    def update(self, completed, total):
        self.updates.append((completed, total))

    def finish(self, completed, total):
        self.finished = (completed, total)


class ZeroFlow(TerminalFlowFunction):
    def flow_for(self, terminal_index, position):
        return 0.0


def _driver(domain, number_of_terminals=1, **kwargs):
    kwargs.setdefault("progress", NullProgress())
    return ConstrainedConstructiveOptimization(
        domain,
        ArterialTree(root_position=ROOT),
        number_of_terminals,
        **kwargs,
    )


def _box(seed):
    return BoxDomain(-0.005, 0.005, -0.005, 0.005, 0.0, 0.01, seed=seed)


class TestConstructorValidation:
    """Tests for parameter validation."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"number_of_terminals": 0},
            {"number_of_terminals": -3},
            {"number_of_terminals": 2.5},
            {"number_of_terminals": True},
            {"number_of_connections": 0},
            {"maximum_number_of_attempts": 0},
            {"radius_exponent": 0.0},
            {"radius_exponent": -2.0},
            {"length_exponent": -1.0},
        ],
    )
    def test_invalid_parameters(self, kwargs):
        params = {"number_of_terminals": 5}
        params.update(kwargs)
        terminals = params.pop("number_of_terminals")

        with pytest.raises(ConfigurationError):
            ConstrainedConstructiveOptimization(
                _box(0), ArterialTree(root_position=ROOT), terminals, **params
            )

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            _driver(_box(0), number_of_terminals=0)

    def test_accessors(self):
        driver = _driver(_box(0), number_of_terminals=7, number_of_connections=4)

        assert driver.number_of_terminals == 7
        assert driver.number_of_connections == 4
        assert driver.maximum_number_of_attempts == 10
        assert driver.radius_exponent == 3.0
        assert driver.length_exponent == 1.0
        assert driver.history == []


class TestGrowthState:
    """Tests for call-order errors."""

    def test_grow_requires_root(self):
        with pytest.raises(GrowthStateError):
            _driver(_box(0)).grow()

    def test_grow_root_only_once(self):
        driver = _driver(_box(0))
        driver.grow_root()

        with pytest.raises(GrowthStateError):
            driver.grow_root()

    def test_grow_root_skips_root_position(self):
        """Test that sampled points coinciding with the root position are resampled."""
        domain = PointSequenceDomain([ROOT, ROOT, ROOT_DISTAL])
        driver = _driver(domain)

        root_id = driver.grow_root()

        assert driver.tree.segments[root_id].distal == Point3D(*ROOT_DISTAL)

    def test_grow_root_exhaustion(self):
        driver = _driver(PointSequenceDomain([ROOT]), maximum_number_of_attempts=3)

        with pytest.raises(AttemptExhaustionError) as exc_info:
            driver.grow_root()

        assert exc_info.value.terminal_index == 0
        assert exc_info.value.attempts == 3
        assert len(driver.tree) == 0

    def test_radius_exponent_passed_to_tree(self):
        driver = _driver(PointSequenceDomain([ROOT_DISTAL]), radius_exponent=2.7)
        driver.grow_root()

        assert driver.tree.radius_exponent == 2.7


class TestSingleTerminal:
    """Tests for a single terminal fed by a fixed point sequence."""

    def test_one_bifurcation(self):
        domain = PointSequenceDomain([ROOT_DISTAL, (0.004, 0.0, 0.005)])
        driver = _driver(domain)

        driver.grow_root()
        tree = driver.grow()

        assert tree is driver.tree
        assert len(tree) == 3
        assert tree.terminal_count == 2
        assert len(tree.terminal_ids()) == 2
        assert len(tree.root.children_ids) == 2
        assert tree.segments[tree.terminal_ids()[-1]].distal == Point3D(0.004, 0.0, 0.005)
        assert TreeIntegrity(tree).check().passed

    def test_point_on_root_segment_exhausts(self):
        """Test that a point violating the clearance on every retry fails."""
        domain = PointSequenceDomain([ROOT_DISTAL, (0.0, 0.0, 0.005)])
        driver = _driver(
            domain,
            maximum_number_of_attempts=4,
            distance_criterion=ClassicDistanceCriterion(0.001),
        )
        driver.grow_root()

        with pytest.raises(AttemptExhaustionError) as exc_info:
            driver.grow()

        assert exc_info.value.terminal_index == 1
        assert exc_info.value.attempts == 4
        assert len(driver.tree) == 1

    def test_single_attempt_fails_on_first_terminal(self):
        domain = PointSequenceDomain([ROOT_DISTAL, (0.0, 0.0, 0.005)])
        driver = _driver(
            domain,
            number_of_terminals=10,
            maximum_number_of_attempts=1,
            distance_criterion=ClassicDistanceCriterion(0.001),
        )
        driver.grow_root()

        with pytest.raises(AttemptExhaustionError) as exc_info:
            driver.grow()

        assert exc_info.value.terminal_index == 1
        assert exc_info.value.attempts == 1
        assert driver.history == []
        assert len(driver.tree) == 1

    def test_point_outside_domain_counts_as_attempt(self):
        region = BoxDomain(-0.01, 0.01, -0.01, 0.01, 0.0, 0.02)
        domain = PointSequenceDomain([ROOT_DISTAL, (0.5, 0.5, 0.5)], region=region)
        driver = _driver(
            domain,
            maximum_number_of_attempts=2,
            distance_criterion=ClassicDistanceCriterion(0.0),
        )
        driver.grow_root()

        with pytest.raises(AttemptExhaustionError, match="outside domain"):
            driver.grow()

    def test_invalid_terminal_flow(self):
        driver = _driver(PointSequenceDomain([ROOT_DISTAL]), terminal_flow_function=ZeroFlow())

        with pytest.raises(ConfigurationError):
            driver.grow_root()


class TestGrowth:
    """Tests for multi-terminal growth."""

    def test_zero_clearance_never_exhausts(self):
        driver = _driver(
            _box(11),
            number_of_terminals=25,
            maximum_number_of_attempts=1,
            distance_criterion=ClassicDistanceCriterion(0.0),
        )
        driver.grow_root()
        tree = driver.grow()

        assert tree.terminal_count == 26
        assert len(tree) == 2 * 26 - 1
        assert all(record.attempts == 1 for record in driver.history)

    def test_integrity_after_growth(self):
        driver = _driver(_box(5), number_of_terminals=30)
        driver.grow_root()
        tree = driver.grow()

        report = TreeIntegrity(tree).check()

        assert report.passed, [v.message for v in report.violations]
        assert report.bifurcations_checked == 30

    def test_committed_connection_is_cheapest(self):
        driver = _driver(_box(2), number_of_terminals=15, number_of_connections=5)
        driver.grow_root()
        driver.grow()

        assert len(driver.history) == 15
        for record in driver.history:
            assert record.connection.feasible
            assert record.connection.cost == min(record.candidate_costs)
            assert len(record.candidate_costs) <= 5

    def test_terminal_indices_are_sequential(self):
        driver = _driver(_box(4), number_of_terminals=10)
        driver.grow_root()
        tree = driver.grow()

        indices = sorted(tree.segments[t].terminal_index for t in tree.terminal_ids())
        assert indices == list(range(11))
        assert [r.terminal_index for r in driver.history] == list(range(1, 11))

    def test_root_flow_is_perfusion_flow(self):
        driver = _driver(_box(6), number_of_terminals=9)
        driver.grow_root()
        tree = driver.grow()

        assert tree.root.flow == pytest.approx(8.33e-6, rel=1e-12)

    def test_progress_updates(self):
        progress = RecordingProgress()
        driver = _driver(_box(8), number_of_terminals=4, progress=progress)
        driver.grow_root()
        driver.grow()

        assert progress.updates == [(1, 4), (2, 4), (3, 4), (4, 4)]
        assert progress.finished == (4, 4)

    def test_same_seed_same_tree(self):
        trees = []
        for _ in range(2):
            driver = _driver(_box(21), number_of_terminals=12)
            driver.grow_root()
            trees.append(driver.grow().to_dict())

        assert trees[0] == trees[1]

    def test_grow_continues_existing_tree(self):
        """Test that grow() can be called again to extend a tree."""
        driver = _driver(_box(13), number_of_terminals=5)
        driver.grow_root()
        driver.grow()
        driver.grow()

        assert driver.tree.terminal_count == 11
        assert TreeIntegrity(driver.tree).check().passed


class TestFromConfig:
    """Tests for building a driver from CCOConfig."""

    def test_builds_tree_from_config(self):
        config = CCOConfig(
            number_of_terminals=3,
            root_position=(0.0, 0.0, 0.0),
            viscosity=4e-3,
            radius_exponent=2.8,
        )
        driver = ConstrainedConstructiveOptimization.from_config(
            _box(None), config, progress=NullProgress()
        )

        assert driver.tree.root_position == Point3D(0.0, 0.0, 0.0)
        assert driver.tree.viscosity == 4e-3
        assert driver.radius_exponent == 2.8
        assert driver.distance_criterion.bifurcation_clearance_factor == 0.5

    def test_seed_restarts_domain(self):
        config = CCOConfig(number_of_terminals=6, seed=17)
        domain = _box(None)

        first = ConstrainedConstructiveOptimization.from_config(
            domain, config, progress=NullProgress()
        )
        first.grow_root()
        first.grow()
        second = ConstrainedConstructiveOptimization.from_config(
            domain, config, progress=NullProgress()
        )
        second.grow_root()
        second.grow()

        assert first.tree.to_dict() == second.tree.to_dict()

    def test_invalid_config(self):
        with pytest.raises(ConfigurationError):
            ConstrainedConstructiveOptimization.from_config(
                _box(0), CCOConfig(number_of_terminals=0)
            )
