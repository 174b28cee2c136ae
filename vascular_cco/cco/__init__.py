"""
Constrained Constructive Optimization (CCO) growth.

Main Entry Points:
    - ConstrainedConstructiveOptimization: the growth driver
    - CCOConfig: parameters of a growth run
"""

from .interfaces import (
    DistanceCriterion,
    TargetFunction,
    TerminalFlowFunction,
    GeometricOptimization,
    ConnectionSearch,
    ProgressReporter,
    GrowthContext,
    BifurcationResult,
)
from .config import CCOConfig, validate_growth_parameters
from .distance_criterion import (
    ClearancePolicy,
    FixedClearance,
    PerfusionVolumeClearance,
    ClassicDistanceCriterion,
)
from .target_functions import (
    PowerLawTargetFunction,
    VolumeTargetFunction,
    SurfaceTargetFunction,
    LengthTargetFunction,
)
from .terminal_flow import ConstantTerminalFlow, UniformTerminalFlow
from .connection import Connection, ConnectionEvaluationTable
from .search import TreeConnectionSearch
from .geometric_optimization import BifurcationOptimizationConfig, BifurcationPointOptimizer
from .progress import LoggingProgress, NullProgress
from .driver import ConstrainedConstructiveOptimization, GrowthRecord

__all__ = [
    "DistanceCriterion",
    "TargetFunction",
    "TerminalFlowFunction",
    "GeometricOptimization",
    "ConnectionSearch",
    "ProgressReporter",
    "GrowthContext",
    "BifurcationResult",
    "CCOConfig",
    "validate_growth_parameters",
    "ClearancePolicy",
    "FixedClearance",
    "PerfusionVolumeClearance",
    "ClassicDistanceCriterion",
    "PowerLawTargetFunction",
    "VolumeTargetFunction",
    "SurfaceTargetFunction",
    "LengthTargetFunction",
    "ConstantTerminalFlow",
    "UniformTerminalFlow",
    "Connection",
    "ConnectionEvaluationTable",
    "TreeConnectionSearch",
    "BifurcationOptimizationConfig",
    "BifurcationPointOptimizer",
    "LoggingProgress",
    "NullProgress",
    "ConstrainedConstructiveOptimization",
    "GrowthRecord",
]
