"""
Utility functions for resourcegraph.

Includes:
- Case conversion (camelCase <-> snake_case <-> PascalCase)
- Naive English pluralization for default type names and entrypoints
"""

from __future__ import annotations

import re


# =============================================================================
# Case conversion utilities
# =============================================================================

_CAMEL_TO_SNAKE_PATTERN = re.compile(r'(?<!^)(?=[A-Z])')
_SNAKE_TO_CAMEL_PATTERN = re.compile(r'_([a-z0-9])')


def to_snake_case(name: str) -> str:
    """
    Convert camelCase to snake_case.

    Examples:
        firstName -> first_name
        notEq -> not_eq
        HTTPResponse -> http_response
        GoldVisa -> gold_visa
    """
    # Handle consecutive uppercase (HTTP -> http)
    result = re.sub(r'([A-Z]+)([A-Z][a-z])', r'\1_\2', name)
    result = _CAMEL_TO_SNAKE_PATTERN.sub('_', result)
    return result.lower()


def to_camel_case(name: str) -> str:
    """
    Convert snake_case to camelCase.

    Leading underscores are kept, so ``_type`` stays ``_type``.

    Examples:
        first_name -> firstName
        not_eq -> notEq
        foo_positions -> fooPositions
    """
    stripped = name.lstrip("_")
    prefix = name[: len(name) - len(stripped)]
    return prefix + _SNAKE_TO_CAMEL_PATTERN.sub(lambda m: m.group(1).upper(), stripped)


def to_pascal_case(name: str) -> str:
    """
    Convert snake_case or camelCase to PascalCase.

    Examples:
        first_name -> FirstName
        firstName -> FirstName
    """
    camel = to_camel_case(name)
    return camel[0].upper() + camel[1:] if camel else camel


# =============================================================================
# Inflection
# =============================================================================

_SIBILANT_ENDINGS = ("s", "x", "z", "ch", "sh")


def pluralize(word: str) -> str:
    """
    Pluralize an English word (good enough for resource names).

    Examples:
        employee -> employees
        credit_card -> credit_cards
        company -> companies
        address -> addresses
    """
    lower = word.lower()
    if lower.endswith("y") and len(word) > 1 and lower[-2] not in "aeiou":
        return word[:-1] + "ies"
    if lower.endswith(_SIBILANT_ENDINGS):
        return word + "es"
    return word + "s"


def singularize(word: str) -> str:
    """
    Singularize an English word, the inverse of ``pluralize``.

    Examples:
        employees -> employee
        exemplaryEmployees -> exemplaryEmployee
        companies -> company
        addresses -> address
    """
    lower = word.lower()
    if lower.endswith("ies") and len(word) > 3:
        return word[:-3] + "y"
    if lower.endswith("sses") or lower.endswith(tuple(e + "es" for e in _SIBILANT_ENDINGS[1:])):
        return word[:-2]
    if lower.endswith("s") and not lower.endswith("ss"):
        return word[:-1]
    return word
