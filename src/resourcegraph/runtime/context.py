"""
Execution context for operation processing.

The request context itself is opaque to resourcegraph: whatever the caller
passes is handed to guard predicates and resource layers untouched.
``Principal`` is a ready-made context for the common case.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class Principal:
    """
    Represents the authenticated user/service making the request.

    Used by guard predicates for access control decisions.
    """
    id: Optional[int | str] = None
    roles: tuple[str, ...] = ()
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "roles", tuple(self.roles))

    def has_role(self, role: str) -> bool:
        return role in self.roles


ANONYMOUS = Principal()


@dataclass
class ExecutionContext:
    """
    Per-operation bundle passed through the pipeline.

    Contains:
    - context: caller-supplied request context (read-only for the core)
    - variables: coerced operation variables
    - schema_version: version of the descriptor the operation runs against
    """
    context: Any
    variables: dict[str, Any] = field(default_factory=dict)
    schema_version: int = 0
    resource_calls: int = 0
