"""Permission resolution over role grants.

Matching role-permission assignments are folded over a three-valued lattice
ordered ``DENY > ALLOW > UNSET``. The fold result collapses ``UNSET`` to
``DENY`` so the absence of a grant is never an implicit allow.

Constraints are a flat mapping; every key must hold against the request
context:

- ``max_<field>``: ``context[field]`` is a number ``<=`` the limit
- ``min_<field>``: ``context[field]`` is a number ``>=`` the limit
- any other key: ``context[key]`` equals the value, or is a member of it when
  the value is a list

Missing or malformed context fails the constraint.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from functools import reduce
from numbers import Real
from typing import Any


class Decision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"


class Effect(int, Enum):
    """Lattice element; a higher value wins the join."""

    UNSET = 0
    ALLOW = 1
    DENY = 2

    def join(self, other: "Effect") -> "Effect":
        return self if self >= other else other

    def to_decision(self) -> Decision:
        return Decision.ALLOW if self is Effect.ALLOW else Decision.DENY


@dataclass(frozen=True)
class Grant:
    """One active role-permission assignment matching the requested code."""

    role_code: str
    is_allowed: bool
    scope: str | None = None
    constraints: Mapping[str, Any] | None = field(default=None, hash=False)


def _is_number(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _check(key: str, expected: Any, context: Mapping[str, Any]) -> bool:
    if key.startswith("max_") or key.startswith("min_"):
        name = key[4:]
        actual = context.get(name)
        if not _is_number(actual) or not _is_number(expected):
            return False
        return actual <= expected if key.startswith("max_") else actual >= expected

    if key not in context:
        return False
    actual = context[key]
    if isinstance(expected, list):
        return actual in expected
    return actual == expected


def constraints_satisfied(
    constraints: Mapping[str, Any] | None,
    context: Mapping[str, Any] | None,
) -> bool:
    if not constraints:
        return True
    if not isinstance(constraints, Mapping):
        return False
    ctx = context or {}
    return all(_check(key, expected, ctx) for key, expected in constraints.items())


def scope_matches(scope: str | None, context: Mapping[str, Any] | None) -> bool:
    # An unscoped grant applies everywhere; a scoped grant only conflicts
    # with a caller that names a different scope.
    if not scope or not context or context.get("scope") is None:
        return True
    return context["scope"] == scope


def effect_of(grant: Grant, context: Mapping[str, Any] | None) -> Effect:
    """Contribution of a single grant.

    An explicit deny applies unconditionally; an allow only contributes when
    its scope and constraints hold.
    """
    if not grant.is_allowed:
        return Effect.DENY
    if scope_matches(grant.scope, context) and constraints_satisfied(grant.constraints, context):
        return Effect.ALLOW
    return Effect.UNSET


def fold_effects(grants: Iterable[Grant], context: Mapping[str, Any] | None = None) -> Effect:
    return reduce(
        lambda acc, grant: acc.join(effect_of(grant, context)),
        grants,
        Effect.UNSET,
    )


def resolve(grants: Iterable[Grant], context: Mapping[str, Any] | None = None) -> Decision:
    """Reduce grants to a final decision (``UNSET`` becomes ``DENY``)."""
    return fold_effects(grants, context).to_decision()
