"""
Guard evaluation - decides per request whether a capability may be used.

A guard is ``True``/``False`` or a predicate ``context -> bool``. Predicates
must be pure. They are evaluated during planning, once per reference, and
never cached across requests.

A predicate that raises fails closed: the error propagates as
GuardEvaluationError. Wrap a predicate in ``NonFatalGuard`` to have its
exceptions count as "not allowed" instead.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

from ..core.defs import AttributeSpec, FilterSpec, RelationshipSpec, ResourceType, SortSpec
from ..core.errors import AccessDeniedError, GuardEvaluationError

logger = logging.getLogger(__name__)


class NonFatalGuard:
    """
    Predicate whose exceptions mean "not allowed".

    Example:
        AttributeSpec("salary", readable=NonFatalGuard(lambda ctx: ctx.extra["tier"] > 2))
    """

    def __init__(self, predicate: Callable[[Any], bool]):
        self.predicate = predicate

    def __call__(self, context: Any) -> bool:
        try:
            return bool(self.predicate(context))
        except Exception as e:
            logger.debug(f"Non-fatal guard failed, denying: {e}")
            return False


def allowed(predicate, context: Any) -> bool:
    """
    Evaluate a guard against the request context.

    Raises:
        Exception: whatever a fatal predicate raised
    """
    if isinstance(predicate, bool):
        return predicate
    if predicate is None:
        return True
    return bool(predicate(context))


class GuardEvaluator:
    """
    Checks guards for one planning pass.

    Every ``check_*`` method raises AccessDeniedError when the guard
    denies, and GuardEvaluationError when a fatal predicate raises.
    """

    def __init__(self, context: Any):
        self.context = context
        self.evaluated = 0

    def check_attribute(self, resource: ResourceType, attr: AttributeSpec, path=()):
        self._check(resource, attr.readable, attr.graphql_name or attr.name, "read", path)

    def check_relationship(self, resource: ResourceType, rel: RelationshipSpec, path=()):
        self._check(resource, rel.readable, rel.graphql_name or rel.name, "read", path)

    def check_filter(self, resource: ResourceType, spec: FilterSpec, path=()):
        self._check(resource, spec.guard, spec.graphql_name or spec.name, "filter", path)

    def check_sort(self, resource: ResourceType, spec: SortSpec, path=()):
        self._check(resource, spec.guard, spec.graphql_name or spec.name, "sort", path)

    def _check(self, resource: ResourceType, guard, name: str, action: str, path):
        self.evaluated += 1
        try:
            ok = allowed(guard, self.context)
        except Exception as e:
            raise GuardEvaluationError(resource.name, name, e) from e
        if not ok:
            logger.debug(f"Guard denied {action} of {resource.name}.{name}")
            raise AccessDeniedError(resource.name, name, action=action, path=path)
