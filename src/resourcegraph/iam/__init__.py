"""
IAM (Identity and Access Management) module - guard evaluation.
"""

from __future__ import annotations

from .guard import GuardEvaluator, NonFatalGuard, allowed

__all__ = [
    "GuardEvaluator",
    "NonFatalGuard",
    "allowed",
]
