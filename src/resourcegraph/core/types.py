"""
Attribute kinds - the semantic scalar types an attribute can declare.

Each kind knows its canonical name, the default filter operators it
supports, whether it is a list, and how a value is serialized into the
response tree. Custom kinds are registered against a canonical kind and
inherit everything from it.

Usage:
    from resourcegraph.core.types import register_kind

    register_kind("money", canonical="big_decimal", description="Amount in cents")
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .errors import SchemaConfigError


STRING_OPERATORS = (
    "eq", "not_eq", "eql", "not_eql",
    "prefix", "not_prefix", "suffix", "not_suffix",
    "match", "not_match",
)
COMPARABLE_OPERATORS = ("eq", "not_eq", "gt", "gte", "lt", "lte")
IDENTITY_OPERATORS = ("eq", "not_eq")
BOOLEAN_OPERATORS = ("eq",)


def _identity(value: Any) -> Any:
    return value


def _to_str(value: Any) -> Any:
    return None if value is None else str(value)


def _to_iso(value: Any) -> Any:
    if isinstance(value, (dt.date, dt.datetime)):
        return value.isoformat()
    return value


@dataclass(frozen=True)
class Kind:
    """A registered attribute kind."""
    name: str
    canonical: str  # string, integer, float, boolean, date, datetime, hash, id
    operators: tuple[str, ...] = ()
    is_list: bool = False
    serialize: Callable[[Any], Any] = field(default=_identity, compare=False)
    description: Optional[str] = None

    def render(self, value: Any) -> Any:
        """Serialize a resource-layer value for the response tree."""
        if value is None:
            return None
        if self.is_list:
            return [self.serialize(v) for v in value]
        return self.serialize(value)


_KINDS: dict[str, Kind] = {}


def _builtin(name: str, canonical: str, operators: tuple[str, ...] = (), **kwargs) -> None:
    _KINDS[name] = Kind(name=name, canonical=canonical, operators=operators, **kwargs)


_builtin("string", "string", STRING_OPERATORS)
_builtin("uuid", "string", IDENTITY_OPERATORS)
_builtin("integer_id", "id", IDENTITY_OPERATORS, serialize=_to_str)
_builtin("integer", "integer", COMPARABLE_OPERATORS)
_builtin("float", "float", COMPARABLE_OPERATORS)
_builtin("big_decimal", "float", COMPARABLE_OPERATORS, serialize=lambda v: float(v))
_builtin("boolean", "boolean", BOOLEAN_OPERATORS)
_builtin("date", "date", COMPARABLE_OPERATORS, serialize=_to_iso)
_builtin("datetime", "datetime", COMPARABLE_OPERATORS, serialize=_to_iso)
_builtin("hash", "hash")
_builtin("array", "hash", is_list=True)
_builtin("array_of_strings", "string", is_list=True)
_builtin("array_of_integers", "integer", is_list=True)
_builtin("array_of_floats", "float", is_list=True)
_builtin("array_of_dates", "date", is_list=True, serialize=_to_iso)
_builtin("array_of_datetimes", "datetime", is_list=True, serialize=_to_iso)


def register_kind(
    name: str,
    canonical: str,
    *,
    serialize: Optional[Callable[[Any], Any]] = None,
    operators: Optional[tuple[str, ...]] = None,
    description: Optional[str] = None,
) -> Kind:
    """
    Register a custom kind that maps onto an existing one.

    Args:
        name: New kind name used in AttributeSpec.kind
        canonical: Existing kind this one behaves like (e.g. "string")
        serialize: Optional value serializer, defaults to the canonical one
        operators: Optional filter operators, defaults to the canonical ones
        description: Optional description

    Returns:
        The registered Kind
    """
    base = get_kind(canonical)
    kind = Kind(
        name=name,
        canonical=base.canonical,
        operators=tuple(operators) if operators is not None else base.operators,
        is_list=base.is_list,
        serialize=serialize or base.serialize,
        description=description,
    )
    _KINDS[name] = kind
    return kind


def unregister_kind(name: str) -> None:
    """Remove a custom kind."""
    _KINDS.pop(name, None)


def get_kind(name: str) -> Kind:
    """Look up a kind by name."""
    kind = _KINDS.get(name)
    if kind is None:
        raise SchemaConfigError(f"Unknown attribute kind '{name}'")
    return kind
