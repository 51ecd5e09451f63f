"""
The interim labelling of the managed clusters.

Some hub-side consumers select the clusters with the policy controller
by a label on the ManagedCluster rather than by the add-on's presence.
The label is maintained from the AddonConfig's flags by a pluggable policy:
``(owner) -> (label key, label value or None to remove it)``.
The label writes are best-effort: their failures never block the cycle.
"""
from collections.abc import Callable

from addonctrl._cogs.configs import configuration
from addonctrl._cogs.structs import bodies, finalizers

LabelPolicy = Callable[[bodies.RawBody], tuple[str, str | None]]


def policy_controller_label(
        owner: bodies.RawBody,
        settings: configuration.OperatorSettings | None = None,
) -> tuple[str, str | None]:
    settings = settings if settings is not None else configuration.OperatorSettings()
    key = settings.naming.policy_label
    if finalizers.is_deletion_ongoing(owner):
        return key, None
    flag = owner.get('spec', {}).get('policyController') or {}
    return key, ('true' if flag.get('enabled') is True else None)


def apply_label(target: bodies.RawBody, key: str, value: str | None) -> bool:
    """
    Set or remove the label in memory; report if anything has changed.

    The values are compared case-insensitively, so that ``"True"`` is not
    overwritten with ``"true"``.
    """
    labels = target.get('metadata', {}).get('labels') or {}
    if value is None:
        if key not in labels:
            return False
        del target['metadata']['labels'][key]
        return True
    elif key in labels and str(labels[key]).lower() == value.lower():
        return False
    else:
        metadata = target.setdefault('metadata', {})
        metadata['labels'] = dict(labels, **{key: value})
        return True
