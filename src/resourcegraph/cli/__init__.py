"""
resourcegraph CLI - Command line tools for inspecting and serving graphs.
"""

from __future__ import annotations

from .main import app, main

__all__ = ["main", "app"]
