"""
vascular-cco - arterial tree growth by Constrained Constructive Optimization

Grows synthetic arterial trees inside a bounded domain by adding terminals one
at a time, each connected at the bifurcation that minimizes a target cost
(Karch et al., 1999), and validates the result against flow and radius-law
invariants.

Main Entry Points:
    - generate_tree(): One-call growth from a domain and a CCOConfig
    - ConstrainedConstructiveOptimization: The growth driver
    - TreeIntegrity: Invariant checks on a grown tree

Example:
    >>> from vascular_cco import BoxDomain, CCOConfig, generate_tree
    >>>
    >>> domain = BoxDomain(0.0, 0.01, 0.0, 0.01, 0.0, 0.01)
    >>> config = CCOConfig(number_of_terminals=50, root_position=(0.005, 0.005, 0.0), seed=1)
    >>> tree, report = generate_tree(domain, config)
    >>> report.passed
    True
"""

from .api import generate_tree
from .cco import CCOConfig, ConstrainedConstructiveOptimization
from .core import (
    ArterialTree,
    Point3D,
    BoxDomain,
    EllipsoidDomain,
    MeshDomain,
    PointSequenceDomain,
    AttemptExhaustionError,
    ConfigurationError,
)
from .analysis import TreeIntegrity
from .io import save_tree_json, load_tree_json

__all__ = [
    "generate_tree",
    "CCOConfig",
    "ConstrainedConstructiveOptimization",
    "ArterialTree",
    "Point3D",
    "BoxDomain",
    "EllipsoidDomain",
    "MeshDomain",
    "PointSequenceDomain",
    "AttemptExhaustionError",
    "ConfigurationError",
    "TreeIntegrity",
    "save_tree_json",
    "load_tree_json",
]

__version__ = "0.1.0"
