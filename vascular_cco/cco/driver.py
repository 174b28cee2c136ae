"""
Constrained Constructive Optimization driver.

Implements the growth loop of Karch et al. (1999): sample a terminal point,
search nearby segments, optimize a bifurcation on each, commit the cheapest
feasible connection, and resample when no candidate is feasible.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from ..core.domain import DomainSpec
from ..core.errors import AttemptExhaustionError, ConfigurationError, GrowthStateError
from ..core.tree import ArterialTree
from ..core.types import Point3D
from .config import CCOConfig, validate_growth_parameters
from .connection import Connection, ConnectionEvaluationTable
from .distance_criterion import ClassicDistanceCriterion, PerfusionVolumeClearance
from .geometric_optimization import BifurcationOptimizationConfig, BifurcationPointOptimizer
from .interfaces import (
    ConnectionSearch,
    DistanceCriterion,
    GeometricOptimization,
    GrowthContext,
    ProgressReporter,
    TargetFunction,
    TerminalFlowFunction,
)
from .progress import LoggingProgress
from .search import TreeConnectionSearch
from .target_functions import VolumeTargetFunction
from .terminal_flow import UniformTerminalFlow

logger = logging.getLogger(__name__)

DEFAULT_PERFUSION_FLOW = 8.33e-6  # m^3/s


@dataclass
class GrowthRecord:
    """Summary of one committed terminal."""

    terminal_index: int
    attempts: int
    connection: Connection
    candidate_costs: List[float] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "terminal_index": self.terminal_index,
            "attempts": self.attempts,
            "connection": self.connection.to_dict(),
            "candidate_costs": list(self.candidate_costs),
        }


class ConstrainedConstructiveOptimization:
    """
    Grow an arterial tree one terminal at a time.

    Parameters
    ----------
    domain : DomainSpec
        Source of terminal points.
    tree : ArterialTree
        Tree to grow. Either empty (call ``grow_root()`` first) or already
        holding a root segment.
    number_of_terminals : int
        Terminals attached by ``grow()``, not counting the root's.
    radius_exponent : float
        Exponent gamma of the bifurcation law, handed to the tree.
    length_exponent : float
        Length weight of the target function, handed to the optimizer.
    number_of_connections : int
        Maximum candidate segments evaluated per attempt.
    maximum_number_of_attempts : int
        Consecutive failed attempts tolerated per terminal.
    distance_criterion, target_function, terminal_flow_function,
    geometric_optimization, connection_search, progress : optional
        Strategy objects; defaults are built when omitted.

    Raises
    ------
    ConfigurationError
        If a count is not a positive integer or an exponent is out of range.

    Examples
    --------
    >>> domain = BoxDomain(0, 0.01, 0, 0.01, 0, 0.01, seed=7)
    >>> tree = ArterialTree(root_position=(0.005, 0.005, 0.0))
    >>> cco = ConstrainedConstructiveOptimization(domain, tree, number_of_terminals=50)
    >>> cco.grow_root()
    0
    >>> tree = cco.grow()
    """

    def __init__(
        self,
        domain: DomainSpec,
        tree: ArterialTree,
        number_of_terminals: int,
        radius_exponent: float = 3.0,
        length_exponent: float = 1.0,
        number_of_connections: int = 20,
        maximum_number_of_attempts: int = 10,
        *,
        distance_criterion: Optional[DistanceCriterion] = None,
        target_function: Optional[TargetFunction] = None,
        terminal_flow_function: Optional[TerminalFlowFunction] = None,
        geometric_optimization: Optional[GeometricOptimization] = None,
        connection_search: Optional[ConnectionSearch] = None,
        progress: Optional[ProgressReporter] = None,
    ):
        validate_growth_parameters(
            number_of_terminals,
            number_of_connections,
            maximum_number_of_attempts,
            radius_exponent,
            length_exponent,
        )
        self.domain = domain
        self.tree = tree
        self.number_of_terminals = number_of_terminals
        self.radius_exponent = radius_exponent
        self.length_exponent = length_exponent
        self.number_of_connections = number_of_connections
        self.maximum_number_of_attempts = maximum_number_of_attempts

        if distance_criterion is None:
            distance_criterion = ClassicDistanceCriterion(
                PerfusionVolumeClearance(domain.volume())
            )
        if terminal_flow_function is None:
            terminal_flow_function = UniformTerminalFlow(
                DEFAULT_PERFUSION_FLOW, number_of_terminals + 1
            )
        self.distance_criterion = distance_criterion
        self.target_function = target_function or VolumeTargetFunction()
        self.terminal_flow_function = terminal_flow_function
        self.geometric_optimization = geometric_optimization or BifurcationPointOptimizer()
        self.connection_search = connection_search or TreeConnectionSearch()
        self.progress = progress or LoggingProgress()

        self.history: List[GrowthRecord] = []

    @classmethod
    def from_config(
        cls,
        domain: DomainSpec,
        config: CCOConfig,
        tree: Optional[ArterialTree] = None,
        progress: Optional[ProgressReporter] = None,
    ) -> "ConstrainedConstructiveOptimization":
        """
        Build a driver, and an empty tree unless one is given, from a CCOConfig.

        A configured seed restarts the domain's sampling sequence.
        """
        config.validate()
        if config.seed is not None:
            domain.reseed(config.seed)
        if tree is None:
            tree = ArterialTree(
                root_position=config.root_position,
                viscosity=config.viscosity,
                perfusion_pressure=config.perfusion_pressure,
                terminal_pressure=config.terminal_pressure,
                root_radius=config.root_radius,
                radius_exponent=config.radius_exponent,
            )
        return cls(
            domain,
            tree,
            config.number_of_terminals,
            radius_exponent=config.radius_exponent,
            length_exponent=config.length_exponent,
            number_of_connections=config.number_of_connections,
            maximum_number_of_attempts=config.maximum_number_of_attempts,
            distance_criterion=ClassicDistanceCriterion(
                PerfusionVolumeClearance(domain.volume(), factor=config.clearance_factor),
                bifurcation_clearance_factor=config.bifurcation_clearance_factor,
            ),
            terminal_flow_function=UniformTerminalFlow(
                config.perfusion_flow, config.number_of_terminals + 1
            ),
            geometric_optimization=BifurcationPointOptimizer(
                BifurcationOptimizationConfig(
                    grid_resolution=config.grid_resolution,
                    minimum_segment_length=config.minimum_segment_length,
                )
            ),
            progress=progress,
        )

    def grow_root(self) -> int:
        """
        Create the root segment from the tree's root position to a sampled point.

        Returns
        -------
        int
            ID of the root segment.

        Raises
        ------
        GrowthStateError
            If the tree already has a root.
        AttemptExhaustionError
            If every sampled point coincides with the root position.
        """
        if self.tree.root_id is not None:
            raise GrowthStateError("Tree already has a root segment; grow_root() must be called once")
        self._validate()
        self.tree.radius_exponent = self.radius_exponent

        for attempt in range(1, self.maximum_number_of_attempts + 1):
            point = self.domain.sample_point()
            if point.distance_to(self.tree.root_position) > 0:
                flow = self._terminal_flow(0, point)
                root_id = self.tree.create_root(point, flow)
                logger.info(
                    f"Root segment created after {attempt} attempt(s): "
                    f"length={self.tree.root.length:.4g} m, radius={self.tree.root.radius:.4g} m"
                )
                return root_id
            logger.debug("Sampled root point coincides with the root position; resampling")

        logger.warning(
            f"Root placement failed after {self.maximum_number_of_attempts} attempt(s)"
        )
        raise AttemptExhaustionError(
            0, self.maximum_number_of_attempts, "sampled points coincide with the root position"
        )

    def grow(self) -> ArterialTree:
        """
        Attach ``number_of_terminals`` terminals to the tree.

        Returns
        -------
        ArterialTree
            The grown tree (the same object as ``self.tree``).

        Raises
        ------
        GrowthStateError
            If the tree has no root segment.
        AttemptExhaustionError
            If a terminal cannot be placed within the attempt budget.
        """
        self._validate()
        if self.tree.root_id is None:
            raise GrowthStateError("grow() requires a root segment; call grow_root() first")
        self.tree.radius_exponent = self.radius_exponent

        total = self.number_of_terminals
        logger.info(f"Growing {total} terminal(s) on a tree with {len(self.tree)} segment(s)")
        for completed in range(1, total + 1):
            self._place_terminal()
            self.progress.update(completed, total)
        self.progress.finish(total, total)
        return self.tree

    def _place_terminal(self) -> GrowthRecord:
        terminal_index = self.tree.terminal_count
        context = GrowthContext(
            domain=self.domain,
            target_function=self.target_function,
            distance_criterion=self.distance_criterion,
            radius_exponent=self.radius_exponent,
            length_exponent=self.length_exponent,
        )

        failure = ""
        for attempt in range(1, self.maximum_number_of_attempts + 1):
            point = self.domain.sample_point()
            if not self.domain.contains(point):
                failure = "sampled point outside domain"
                logger.debug(f"Terminal {terminal_index}, attempt {attempt}: {failure}")
                continue

            flow = self._terminal_flow(terminal_index, point)
            table = self._evaluate_connections(point, flow, context)
            best = table.best()
            if best is None:
                if len(table) == 0:
                    failure = "no admissible candidate segment"
                else:
                    failure = f"all {len(table)} candidate(s) infeasible"
                logger.debug(f"Terminal {terminal_index}, attempt {attempt}: {failure}")
                continue

            if best.proposal is not None:
                self.tree.apply(best.proposal)
            else:
                self.tree.insert_bifurcation(
                    best.segment_id, best.bifurcation_point, point, flow
                )
            record = GrowthRecord(
                terminal_index=terminal_index,
                attempts=attempt,
                connection=best,
                candidate_costs=table.costs(),
            )
            self.history.append(record)
            logger.debug(
                f"Terminal {terminal_index} attached to segment {best.segment_id} "
                f"(cost={best.cost:.6g}, attempt {attempt})"
            )
            return record

        raise AttemptExhaustionError(terminal_index, self.maximum_number_of_attempts, failure)

    def _evaluate_connections(
        self,
        point: Point3D,
        flow: float,
        context: GrowthContext,
    ) -> ConnectionEvaluationTable:
        table = ConnectionEvaluationTable()
        candidates = self.connection_search.search(
            self.tree, point, self.number_of_connections, self.distance_criterion
        )
        for segment_id in candidates:
            result = self.geometric_optimization.optimize(
                self.tree, segment_id, point, flow, context
            )
            table.insert(Connection.from_result(segment_id, point, result))
        return table

    def _terminal_flow(self, terminal_index: int, point: Point3D) -> float:
        flow = self.terminal_flow_function.flow_for(terminal_index, point)
        if not (np.isfinite(flow) and flow > 0):
            raise ConfigurationError(
                f"Terminal flow function returned {flow} for terminal {terminal_index}"
            )
        return float(flow)

    def _validate(self) -> None:
        validate_growth_parameters(
            self.number_of_terminals,
            self.number_of_connections,
            self.maximum_number_of_attempts,
            self.radius_exponent,
            self.length_exponent,
        )
