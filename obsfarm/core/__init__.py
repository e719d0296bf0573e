"""
Core farm algorithms
"""

from .farm import CallContext, FarmConfig, FarmState

__all__ = [
    "CallContext",
    "FarmConfig",
    "FarmState",
]
