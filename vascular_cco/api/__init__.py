"""High-level API."""

from .generate import generate_tree

__all__ = ["generate_tree"]
