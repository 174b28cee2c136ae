"""
Tests for vascular-cco

This package contains unit tests for:
- Tree model, domains and spatial index
- CCO growth driver and its strategy objects
- Integrity checking, adapters and JSON persistence
"""
