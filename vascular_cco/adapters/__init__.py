"""
Adapters for converting trees to other graph representations.
"""

from .networkx_adapter import to_networkx_graph, to_point_graph

__all__ = [
    "to_networkx_graph",
    "to_point_graph",
]
