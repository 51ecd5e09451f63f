"""
All the functions to manipulate the object finalization and deletion.

Finalizers are used to block the actual deletion until the finalizers
are removed, meaning that the controller has done all its duties
to "release" the object (e.g. the dependents' teardown in our case).

The modifications are done in memory on the raw bodies. Persisting them
is the caller's job; the mutators report if there was anything changed
at all, so that the no-op updates are not sent to the API.
"""
from collections.abc import Mapping
from typing import Any

from addonctrl._cogs.structs import bodies


def is_deletion_ongoing(
        body: Mapping[str, Any],
) -> bool:
    return body.get('metadata', {}).get('deletionTimestamp', None) is not None


def has_finalizer(
        body: Mapping[str, Any],
        finalizer: str,
) -> bool:
    finalizers = body.get('metadata', {}).get('finalizers') or []
    return finalizer in finalizers


def add_finalizer(body: bodies.RawBody, finalizer: str) -> bool:
    if has_finalizer(body, finalizer):
        return False
    metadata = body.setdefault('metadata', {})
    metadata['finalizers'] = list(metadata.get('finalizers') or []) + [finalizer]
    return True


def remove_finalizer(body: bodies.RawBody, finalizer: str) -> bool:
    if not has_finalizer(body, finalizer):
        return False
    metadata = body['metadata']
    metadata['finalizers'] = [f for f in metadata.get('finalizers', []) if f != finalizer]
    return True


def remove_all_finalizers(body: bodies.RawBody) -> bool:
    """
    Strip all finalizers, including those of other parties (e.g. remote agents).

    Used only when the parties responsible for them are known to be unreachable,
    so that the deletion is not blocked forever.
    """
    if not body.get('metadata', {}).get('finalizers'):
        return False
    body['metadata']['finalizers'] = []
    return True
