"""
Testing utilities module.

Provides helpers for writing tests against miraveja-verifier.
"""

from .utilities import SnapshotBuilder

__all__ = [
    "SnapshotBuilder",
]
