"""
JSON serialization for arterial trees.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Union

from ..core.tree import SCHEMA_VERSION, ArterialTree


def tree_to_records(tree: ArterialTree) -> List[Dict[str, Any]]:
    """
    Flat segment list in pre-order: parent index, endpoints, radius and flow.

    ``parent`` is the position of the parent record in the returned list
    (-1 for the root), so the list can be consumed without the tree's IDs.
    """
    order = tree.traverse()
    position = {seg_id: i for i, seg_id in enumerate(order)}
    records = []
    for seg_id in order:
        segment = tree.segments[seg_id]
        records.append({
            "id": seg_id,
            "parent": -1 if segment.parent_id is None else position[segment.parent_id],
            "proximal": list(segment.proximal.to_tuple()),
            "distal": list(segment.distal.to_tuple()),
            "radius": segment.radius,
            "flow": segment.flow,
        })
    return records


def save_tree_json(
    tree: ArterialTree,
    filepath: Union[str, Path],
    indent: int = 2,
) -> None:
    """
    Save arterial tree to JSON file.

    Parameters
    ----------
    tree : ArterialTree
        Tree to save
    filepath : str or Path
        Output file path
    indent : int
        JSON indentation level

    Example
    -------
    >>> save_tree_json(tree, "my_tree.json")
    """
    filepath = Path(filepath)

    data = tree.to_dict()

    with open(filepath, 'w') as f:
        json.dump(data, f, indent=indent)


def load_tree_json(filepath: Union[str, Path]) -> ArterialTree:
    """
    Load arterial tree from JSON file.

    Parameters
    ----------
    filepath : str or Path
        Input file path

    Returns
    -------
    tree : ArterialTree
        Loaded tree

    Example
    -------
    >>> tree = load_tree_json("my_tree.json")
    """
    filepath = Path(filepath)

    with open(filepath, 'r') as f:
        data = json.load(f)

    schema_version = data.get("schema_version", SCHEMA_VERSION)
    if schema_version != SCHEMA_VERSION:
        raise ValueError(f"Unsupported schema version: {schema_version}")

    return ArterialTree.from_dict(data)
