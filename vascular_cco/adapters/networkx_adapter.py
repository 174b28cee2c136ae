"""
Adapter for converting ArterialTree to NetworkX graphs.
"""

from typing import TYPE_CHECKING
import networkx as nx

if TYPE_CHECKING:
    from ..core.tree import ArterialTree


def to_networkx_graph(tree: "ArterialTree") -> nx.DiGraph:
    """
    Convert the segment hierarchy of a tree to a directed graph.

    Nodes are segment IDs, edges run parent -> child. Node attributes:
    - 'proximal', 'distal': [x, y, z] as lists
    - 'radius', 'flow', 'length': floats
    - 'terminal_index': int or None

    Child references to missing segments are skipped so that damaged trees
    can still be inspected.

    Parameters
    ----------
    tree : ArterialTree
        The tree to convert

    Returns
    -------
    G : nx.DiGraph
        NetworkX graph representation
    """
    G = nx.DiGraph()

    for seg_id, segment in tree.segments.items():
        G.add_node(
            seg_id,
            proximal=list(segment.proximal.to_tuple()),
            distal=list(segment.distal.to_tuple()),
            radius=segment.radius,
            flow=segment.flow,
            length=segment.length,
            terminal_index=segment.terminal_index,
        )

    for seg_id, segment in tree.segments.items():
        for child_id in segment.children_ids:
            if child_id in tree.segments:
                G.add_edge(seg_id, child_id)

    return G


def to_point_graph(tree: "ArterialTree") -> nx.DiGraph:
    """
    Convert a tree to a geometric graph of points joined by vessels.

    Node 'root' is the root position; every other node is keyed by the ID of
    the segment ending there. Node attribute 'coord' holds [x, y, z]; edges
    carry 'segment_id', 'radius', 'flow' and 'length', and run downstream.

    Parameters
    ----------
    tree : ArterialTree
        The tree to convert

    Returns
    -------
    G : nx.DiGraph
        Geometric graph with len(tree) + 1 nodes and len(tree) edges.
    """
    G = nx.DiGraph()
    if tree.root_id is None:
        return G

    G.add_node("root", coord=list(tree.root_position.to_tuple()))
    for segment in tree.iter_segments():
        G.add_node(segment.id, coord=list(segment.distal.to_tuple()))
        upstream = "root" if segment.parent_id is None else segment.parent_id
        G.add_edge(
            upstream,
            segment.id,
            segment_id=segment.id,
            radius=segment.radius,
            flow=segment.flow,
            length=segment.length,
        )

    return G
