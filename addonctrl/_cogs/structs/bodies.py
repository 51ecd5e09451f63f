"""
All the structures coming from/to the Kubernetes-like API.

Everything marked "raw" is a plain unwrapped unprocessed data as JSON-decoded
from the API, usually as retrieved in watching or fetching API calls.
All non-used payload falls into `Any`, and is not type-checked.

The controller works on the raw dicts directly. The bodies are deep-copied
before the modifications, so that the cached/observed bodies stay intact.
"""
from collections.abc import Mapping
from typing import Any, Literal, TypedDict, cast

Labels = Mapping[str, str]
Annotations = Mapping[str, str]

# ``None`` is used for the listing, when the pseudo-watch-stream is simulated.
RawInputType = Literal[None, 'ADDED', 'MODIFIED', 'DELETED', 'ERROR']
RawEventType = Literal[None, 'ADDED', 'MODIFIED', 'DELETED']


class RawOwnerReference(TypedDict, total=False):
    controller: bool
    blockOwnerDeletion: bool
    apiVersion: str
    kind: str
    name: str
    uid: str


class RawMeta(TypedDict, total=False):
    uid: str
    name: str
    namespace: str
    labels: dict[str, str]
    annotations: dict[str, str]
    finalizers: list[str]
    ownerReferences: list[RawOwnerReference]
    resourceVersion: str
    deletionTimestamp: str
    creationTimestamp: str


class RawCondition(TypedDict, total=False):
    type: str
    status: Literal['True', 'False', 'Unknown']
    reason: str
    message: str
    lastTransitionTime: str


class RawBody(TypedDict, total=False):
    apiVersion: str
    kind: str
    metadata: RawMeta
    spec: dict[str, Any]
    status: dict[str, Any]


# A special payload for type==ERROR (this is not a connection or client error).
class RawError(TypedDict, total=False):
    apiVersion: str     # usually: Literal['v1']
    kind: str           # usually: Literal['Status']
    code: int
    reason: str
    status: str
    message: str


# As received from the stream before processing the errors and special cases.
class RawInput(TypedDict, total=True):
    type: RawInputType
    object: RawBody | RawError


# As passed to the controller after processing the errors and special cases.
class RawEvent(TypedDict, total=True):
    type: RawEventType
    object: RawBody


def get_name(body: Mapping[str, Any]) -> str | None:
    return cast(str | None, body.get('metadata', {}).get('name'))


def get_namespace(body: Mapping[str, Any]) -> str | None:
    return cast(str | None, body.get('metadata', {}).get('namespace'))


def build_owner_reference(
        body: RawBody,
) -> RawOwnerReference:
    """
    Construct an owner reference object for the parent-children relationships.

    The structure needed to link the children objects to the current object as a parent.
    See https://kubernetes.io/docs/concepts/workloads/controllers/garbage-collection/
    """
    ref = dict(
        controller=True,
        blockOwnerDeletion=True,
        apiVersion=body.get('apiVersion'),
        kind=body.get('kind'),
        name=body.get('metadata', {}).get('name'),
        uid=body.get('metadata', {}).get('uid'),
    )
    return cast(RawOwnerReference, {key: val for key, val in ref.items() if val})
