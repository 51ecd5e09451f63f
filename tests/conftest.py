import copy
import dataclasses
import logging
from typing import Any, NamedTuple

import pytest

from addonctrl._cogs.clients.errors import APIConflictError, APINotFoundError
from addonctrl._cogs.configs.configuration import DefaultsSettings, OperatorSettings
from addonctrl._cogs.structs.references import ADDON_CONFIGS, MANAGED_CLUSTERS, \
                                               MANIFEST_WORKS, ObjectKey, Resource

FINALIZER = 'agent.open-cluster-management.io/klusterletaddonconfig-cleanup'


class Call(NamedTuple):
    op: str
    resource: Resource
    namespace: str | None
    name: str


class FakeStore:
    """
    An in-memory object store that behaves like the API in the essentials.

    * Every write bumps the object's resource version.
    * Updates with an outdated resource version fail with a conflict.
    * Deletion of an object with finalizers only marks it as being deleted.
    * Releasing the last finalizer of a deleted object removes it.

    All calls are recorded; failures can be injected per operation & object.
    """

    def __init__(self) -> None:
        super().__init__()
        self.objects: dict[tuple[Resource, str | None, str], dict[str, Any]] = {}
        self.calls: list[Call] = []
        self.failures: dict[tuple[str, Resource, str], Exception] = {}
        self._version = 100

    def _key(self, resource: Resource, namespace: str | None, name: str):
        return (resource, namespace if resource.namespaced else None, name)

    def _bump(self, body: dict[str, Any]) -> None:
        self._version += 1
        body.setdefault('metadata', {})['resourceVersion'] = str(self._version)

    def _record(self, op: str, resource: Resource, namespace: str | None, name: str) -> None:
        self.calls.append(Call(op, resource, namespace if resource.namespaced else None, name))
        failure = self.failures.get((op, resource, name))
        if failure is not None:
            raise failure

    def put(self, resource: Resource, body: dict[str, Any]) -> dict[str, Any]:
        """ Store an object directly, bypassing the records (for the test setup). """
        body = copy.deepcopy(body)
        self._bump(body)
        meta = body['metadata']
        self.objects[self._key(resource, meta.get('namespace'), meta['name'])] = body
        return body

    def peek(self, resource: Resource, namespace: str | None, name: str) -> dict[str, Any] | None:
        return self.objects.get(self._key(resource, namespace, name))

    def fail(self, op: str, resource: Resource, name: str, exc: Exception) -> None:
        self.failures[(op, resource, name)] = exc

    @property
    def writes(self) -> list[Call]:
        return [call for call in self.calls if call.op != 'get']

    def writes_of(self, resource: Resource) -> list[Call]:
        return [call for call in self.writes if call.resource == resource]

    async def get(self, resource, namespace, name):
        self._record('get', resource, namespace, name)
        body = self.objects.get(self._key(resource, namespace, name))
        if body is None:
            raise APINotFoundError(None, status=404)
        return copy.deepcopy(body)

    async def create(self, resource, body):
        meta = body.get('metadata', {})
        self._record('create', resource, meta.get('namespace'), meta['name'])
        key = self._key(resource, meta.get('namespace'), meta['name'])
        if key in self.objects:
            raise APIConflictError(None, status=409)
        body = copy.deepcopy(body)
        self._bump(body)
        self.objects[key] = body
        return copy.deepcopy(body)

    async def update(self, resource, body):
        meta = body.get('metadata', {})
        self._record('update', resource, meta.get('namespace'), meta['name'])
        key = self._key(resource, meta.get('namespace'), meta['name'])
        stored = self.objects.get(key)
        if stored is None:
            raise APINotFoundError(None, status=404)
        if meta.get('resourceVersion') not in (None, stored['metadata']['resourceVersion']):
            raise APIConflictError(None, status=409)
        body = copy.deepcopy(body)
        self._bump(body)
        if body['metadata'].get('deletionTimestamp') and not body['metadata'].get('finalizers'):
            del self.objects[key]
        else:
            self.objects[key] = body
        return copy.deepcopy(body)

    async def delete(self, resource, namespace, name):
        self._record('delete', resource, namespace, name)
        key = self._key(resource, namespace, name)
        stored = self.objects.get(key)
        if stored is None:
            raise APINotFoundError(None, status=404)
        if stored['metadata'].get('finalizers'):
            stored['metadata']['deletionTimestamp'] = '2020-12-31T23:59:59Z'
            self._bump(stored)
        else:
            del self.objects[key]


@pytest.fixture()
def store():
    return FakeStore()


@pytest.fixture()
def settings():
    settings = OperatorSettings()
    settings.defaults = DefaultsSettings(
        image_pull_secret='default-secret',
        image_registry='quay.io/default',
        pod_namespace='open-cluster-management',
    )
    settings.naming = dataclasses.replace(settings.naming, addon_names={})
    return settings


@pytest.fixture()
def key():
    return ObjectKey('cluster1', 'cluster1')


@pytest.fixture()
def make_owner():
    def make_owner(name='cluster1', *, finalizers=(FINALIZER,), deleting=False,
                   annotations=None, **spec):
        metadata = {'name': name, 'namespace': name, 'uid': f'uid-{name}',
                    'finalizers': list(finalizers)}
        if annotations:
            metadata['annotations'] = dict(annotations)
        if deleting:
            metadata['deletionTimestamp'] = '2020-12-31T23:59:59Z'
        return {
            'apiVersion': ADDON_CONFIGS.api_version,
            'kind': ADDON_CONFIGS.kind,
            'metadata': metadata,
            'spec': {
                'clusterName': name,
                'clusterNamespace': name,
                'version': '2.2.0',
                **spec,
            },
        }
    return make_owner


@pytest.fixture()
def make_cluster():
    def make_cluster(name='cluster1', *, finalizers=(FINALIZER,), deleting=False,
                     available=True, labels=None, kube_version='v1.19.0'):
        metadata = {'name': name, 'finalizers': list(finalizers)}
        if labels is not None:
            metadata['labels'] = dict(labels)
        if deleting:
            metadata['deletionTimestamp'] = '2020-12-31T23:59:59Z'
        status = 'True' if available else 'Unknown'
        return {
            'apiVersion': MANAGED_CLUSTERS.api_version,
            'kind': MANAGED_CLUSTERS.kind,
            'metadata': metadata,
            'status': {
                'conditions': [{'type': 'ManagedClusterConditionAvailable', 'status': status}],
                'version': {'kubernetes': kube_version},
            },
        }
    return make_cluster


@pytest.fixture()
def make_work():
    def make_work(name, namespace='cluster1', *, conditions=None, finalizers=(), manifests=()):
        body = {
            'apiVersion': MANIFEST_WORKS.api_version,
            'kind': MANIFEST_WORKS.kind,
            'metadata': {'name': name, 'namespace': namespace, 'finalizers': list(finalizers)},
            'spec': {'workload': {'manifests': list(manifests)}},
        }
        if conditions is not None:
            body['status'] = {'conditions': list(conditions)}
        return body
    return make_work


@pytest.fixture()
def logger():
    return logging.getLogger('addonctrl.tests')
