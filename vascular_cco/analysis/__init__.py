"""Analysis of grown trees."""

from .integrity import TOLERANCE, IntegrityViolation, IntegrityReport, TreeIntegrity

__all__ = ["TOLERANCE", "IntegrityViolation", "IntegrityReport", "TreeIntegrity"]
