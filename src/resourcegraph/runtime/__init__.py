"""
Runtime module - operation planning, resolution and assembly.
"""

from __future__ import annotations

from .assembler import ResultAssembler
from .context import ExecutionContext, Principal
from .executor import OperationExecutor
from .planner import OperationPlan, PlanNode, Projection, SelectionPlanner, VariantPlan
from .resource_layer import InMemoryResourceLayer, ResourceLayer
from .service_client import ServiceResourceLayer

__all__ = [
    "Principal",
    "ExecutionContext",
    "SelectionPlanner",
    "OperationPlan",
    "PlanNode",
    "Projection",
    "VariantPlan",
    "ResourceLayer",
    "InMemoryResourceLayer",
    "ServiceResourceLayer",
    "OperationExecutor",
    "ResultAssembler",
]
