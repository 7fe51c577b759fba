"""
Test utilities for vibex.
"""

from .async_helpers import wait_for_condition, run_with_timeout, settle, collect

__all__ = [
    "wait_for_condition",
    "run_with_timeout",
    "settle",
    "collect",
]
