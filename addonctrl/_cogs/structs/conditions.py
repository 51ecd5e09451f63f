"""
Status conditions of the resources: the availability of clusters and works.

The conditions are reported asynchronously by the remote agents, so they can
be absent, incomplete, or malformed at any time. An absent or ambiguous
condition means "not yet available" -- never an error.
"""
from collections.abc import Iterator, Mapping
from typing import Any, cast

from addonctrl._cogs.structs import bodies


def iter_conditions(
        body: Mapping[str, Any] | None,
) -> Iterator[bodies.RawCondition]:
    if body is None:
        return
    status = body.get('status')
    conditions = status.get('conditions') if isinstance(status, Mapping) else None
    if not isinstance(conditions, list):
        return
    for condition in conditions:
        if isinstance(condition, Mapping):
            yield cast(bodies.RawCondition, condition)


def has_conditions(
        body: Mapping[str, Any] | None,
) -> bool:
    return any(True for _ in iter_conditions(body))


def get_condition(
        body: Mapping[str, Any] | None,
        kind: str,
) -> bodies.RawCondition | None:
    for condition in iter_conditions(body):
        if condition.get('type') == kind:
            return condition
    return None


def is_available(
        body: Mapping[str, Any] | None,
        *,
        kind: str,
) -> bool:
    """
    Check if the resource reports the condition of this kind as literally ``"True"``.
    """
    return any(condition.get('type') == kind and condition.get('status') == 'True'
               for condition in iter_conditions(body))
