"""Input/output for arterial trees."""

from .serialize import tree_to_records, save_tree_json, load_tree_json

__all__ = ["tree_to_records", "save_tree_json", "load_tree_json"]
