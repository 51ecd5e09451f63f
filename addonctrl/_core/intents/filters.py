"""
Admission of the watch-events and their mapping to the reconciled keys.

Every watched resource kind has its own route: which events are worth
a reconciliation, and which AddonConfigs are affected by them. The keys are
then put into the work queue, where the duplicates are merged.
"""
import logging
from collections.abc import Callable, Collection

from addonctrl._cogs.structs import bodies, references

logger = logging.getLogger(__name__)

EventFilter = Callable[[bodies.RawEvent], bool]
KeysMapper = Callable[[bodies.RawBody], Collection[references.ObjectKey]]


def admits_any_event(event: bodies.RawEvent) -> bool:
    return True


def admits_addon_event(event: bodies.RawEvent) -> bool:
    """
    Only the deletions of the add-ons matter: to re-create them if removed manually.

    The creations and the updates are caused mostly by the controller itself
    or by the add-on agents, so they are ignored.
    """
    if event.get('type') != 'DELETED':
        return False
    if event.get('object') is None:
        logger.error(f"A deletion event has no object to delete: {event!r}")
        return False
    return True


def keys_for_config(body: bodies.RawBody) -> Collection[references.ObjectKey]:
    name = bodies.get_name(body)
    namespace = bodies.get_namespace(body)
    return [references.ObjectKey(namespace, name)] if name and namespace else []


def keys_for_cluster(body: bodies.RawBody) -> Collection[references.ObjectKey]:
    # Only the AddonConfigs named after the cluster in the cluster's namespace are affected.
    name = bodies.get_name(body)
    return [references.ObjectKey(name, name)] if name else []


def keys_for_addon(body: bodies.RawBody) -> Collection[references.ObjectKey]:
    namespace = bodies.get_namespace(body)
    owner_references = body.get('metadata', {}).get('ownerReferences') or []
    return [
        references.ObjectKey(namespace, ref['name'])
        for ref in owner_references
        if namespace and ref.get('name') and ref.get('controller') is True
        and ref.get('kind') == references.ADDON_CONFIGS.kind
        and ref.get('apiVersion', '').split('/')[0] == references.ADDON_CONFIGS.group
    ]
