"""Core data structures for arterial trees."""

from .types import Point3D, as_point
from .errors import (
    CCOError,
    ConfigurationError,
    GrowthStateError,
    AttemptExhaustionError,
    TreeIntegrityError,
)
from .domain import (
    DomainSpec,
    EllipsoidDomain,
    BoxDomain,
    MeshDomain,
    PointSequenceDomain,
    domain_from_dict,
)
from .tree import TreeSegment, ArterialTree, BifurcationProposal

__all__ = [
    "Point3D",
    "as_point",
    "CCOError",
    "ConfigurationError",
    "GrowthStateError",
    "AttemptExhaustionError",
    "TreeIntegrityError",
    "DomainSpec",
    "EllipsoidDomain",
    "BoxDomain",
    "MeshDomain",
    "PointSequenceDomain",
    "domain_from_dict",
    "TreeSegment",
    "ArterialTree",
    "BifurcationProposal",
]
