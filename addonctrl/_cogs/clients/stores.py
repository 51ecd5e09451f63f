"""
The object store as seen by the reconciler: get, create, update, delete.

The reconciler does not care where the objects come from: directly from
the API, from a local cache fed by the watch-streams, or from a fake store
in the tests. It only relies on the protocol and on the error semantics:

* Reading or deleting an absent object raises :class:`APINotFoundError`.
* Updating an object changed by someone else raises :class:`APIConflictError`.

The cached store serves the reads of the watched resource kinds from memory,
but never the reads of the secrets: the secrets are always read from the API,
so that the stale credentials are never used.
"""
import copy
import logging
from collections.abc import Collection
from typing import Protocol

from addonctrl._cogs.clients import auth, creating, deleting, errors, fetching, updating
from addonctrl._cogs.configs import configuration
from addonctrl._cogs.helpers import typedefs
from addonctrl._cogs.structs import bodies, references

logger = logging.getLogger(__name__)

# The resource kinds that are never served from the cache.
SENSITIVE_RESOURCES: frozenset[references.Resource] = frozenset({references.SECRETS})


class ObjectStore(Protocol):

    async def get(
            self,
            resource: references.Resource,
            namespace: references.Namespace,
            name: str,
    ) -> bodies.RawBody: ...

    async def create(
            self,
            resource: references.Resource,
            body: bodies.RawBody,
    ) -> bodies.RawBody: ...

    async def update(
            self,
            resource: references.Resource,
            body: bodies.RawBody,
    ) -> bodies.RawBody: ...

    async def delete(
            self,
            resource: references.Resource,
            namespace: references.Namespace,
            name: str,
    ) -> None: ...


class APIObjectStore:
    """
    The store that goes to the API for every call.
    """

    def __init__(
            self,
            *,
            settings: configuration.OperatorSettings,
            context: auth.APIContext | None = None,
            logger: typedefs.Logger = logger,
    ) -> None:
        super().__init__()
        self.settings = settings
        self.context = context
        self.logger = logger

    async def get(
            self,
            resource: references.Resource,
            namespace: references.Namespace,
            name: str,
    ) -> bodies.RawBody:
        return await fetching.read_obj(
            resource=resource, namespace=namespace, name=name,
            settings=self.settings, context=self.context, logger=self.logger)

    async def create(
            self,
            resource: references.Resource,
            body: bodies.RawBody,
    ) -> bodies.RawBody:
        return await creating.create_obj(
            resource=resource, body=body,
            settings=self.settings, context=self.context, logger=self.logger)

    async def update(
            self,
            resource: references.Resource,
            body: bodies.RawBody,
    ) -> bodies.RawBody:
        return await updating.update_obj(
            resource=resource, body=body,
            settings=self.settings, context=self.context, logger=self.logger)

    async def delete(
            self,
            resource: references.Resource,
            namespace: references.Namespace,
            name: str,
    ) -> None:
        await deleting.delete_obj(
            resource=resource, namespace=namespace, name=name,
            settings=self.settings, context=self.context, logger=self.logger)


_CacheKey = tuple[references.Resource, references.Namespace, str]


class CachedObjectStore:
    """
    The store that reads the watched resource kinds from the watch-fed memory.

    The writes always go to the upstream store. The cache is not updated
    with the results of the writes: the watch-streams will bring them soon.
    Meanwhile, the reconciler can see the older state of the object,
    which will lead to a conflict on the next write, and so to a retry.

    The cache misses are read from the upstream store, but are not remembered
    (it might be a deletion racing with the watch-stream).

    Every re-listing of a resource kind replaces its remembered objects:
    the objects deleted while the watch-stream was disconnected have no events.
    """

    def __init__(
            self,
            upstream: ObjectStore,
            *,
            resources: Collection[references.Resource],
    ) -> None:
        super().__init__()
        sensitive = SENSITIVE_RESOURCES & set(resources)
        if sensitive:
            raise ValueError(f"These resources must never be cached: {sorted(map(str, sensitive))}")
        self.upstream = upstream
        self.resources = frozenset(resources)
        self._objects: dict[_CacheKey, bodies.RawBody] = {}
        self._listing: dict[references.Resource, set[_CacheKey]] = {}

    def observe(self, resource: references.Resource, raw_event: bodies.RawEvent) -> None:
        """
        Remember or forget an object as seen in the watch-stream.
        """
        if resource not in self.resources:
            return
        body = raw_event['object']
        key = (resource, bodies.get_namespace(body) if resource.namespaced else None,
               bodies.get_name(body) or '')
        if raw_event['type'] == 'DELETED':
            self._objects.pop(key, None)
        else:
            self._objects[key] = body
        if raw_event['type'] is None:
            self._listing.setdefault(resource, set()).add(key)

    def relisted(self, resource: references.Resource) -> list[bodies.RawBody]:
        """
        Forget the objects absent in the just finished listing; return them.
        """
        listed = self._listing.pop(resource, set())
        if resource not in self.resources:
            return []
        gone = [key for key in self._objects if key[0] == resource and key not in listed]
        return [self._objects.pop(key) for key in gone]

    async def get(
            self,
            resource: references.Resource,
            namespace: references.Namespace,
            name: str,
    ) -> bodies.RawBody:
        key = (resource, namespace if resource.namespaced else None, name)
        if resource in self.resources and key in self._objects:
            return copy.deepcopy(self._objects[key])
        return await self.upstream.get(resource, namespace, name)

    async def create(
            self,
            resource: references.Resource,
            body: bodies.RawBody,
    ) -> bodies.RawBody:
        return await self.upstream.create(resource, body)

    async def update(
            self,
            resource: references.Resource,
            body: bodies.RawBody,
    ) -> bodies.RawBody:
        return await self.upstream.update(resource, body)

    async def delete(
            self,
            resource: references.Resource,
            namespace: references.Namespace,
            name: str,
    ) -> None:
        await self.upstream.delete(resource, namespace, name)


async def get_or_none(
        store: ObjectStore,
        resource: references.Resource,
        namespace: references.Namespace,
        name: str,
) -> bodies.RawBody | None:
    try:
        return await store.get(resource, namespace, name)
    except errors.APINotFoundError:
        return None
