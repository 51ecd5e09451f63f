import pytest

from addonctrl._cogs.clients.errors import APINotFoundError
from addonctrl._cogs.clients.stores import CachedObjectStore, get_or_none
from addonctrl._cogs.structs.references import ADDON_CONFIGS, MANAGED_CLUSTERS, \
                                               MANIFEST_WORKS, SECRETS


@pytest.fixture()
def cache(store):
    return CachedObjectStore(store, resources=[ADDON_CONFIGS, MANAGED_CLUSTERS])


def _config(name, **spec):
    return {'metadata': {'name': name, 'namespace': name}, 'spec': spec}


async def test_observed_objects_are_served_from_memory(store, cache):
    cache.observe(ADDON_CONFIGS, {'type': 'ADDED', 'object': _config('c1', x=1)})
    body = await cache.get(ADDON_CONFIGS, 'c1', 'c1')
    assert body == _config('c1', x=1)
    assert store.calls == []


async def test_served_objects_are_copies(store, cache):
    cache.observe(ADDON_CONFIGS, {'type': 'ADDED', 'object': _config('c1', x=1)})
    body = await cache.get(ADDON_CONFIGS, 'c1', 'c1')
    body['spec']['x'] = 2
    again = await cache.get(ADDON_CONFIGS, 'c1', 'c1')
    assert again['spec'] == {'x': 1}


async def test_deleted_objects_are_forgotten(store, cache):
    cache.observe(ADDON_CONFIGS, {'type': 'ADDED', 'object': _config('c1')})
    cache.observe(ADDON_CONFIGS, {'type': 'DELETED', 'object': _config('c1')})
    with pytest.raises(APINotFoundError):
        await cache.get(ADDON_CONFIGS, 'c1', 'c1')
    assert [call.op for call in store.calls] == ['get']


async def test_cluster_scoped_objects_ignore_namespaces(store, cache):
    cache.observe(MANAGED_CLUSTERS, {'type': None, 'object': {'metadata': {'name': 'c1'}}})
    body = await cache.get(MANAGED_CLUSTERS, None, 'c1')
    assert body == {'metadata': {'name': 'c1'}}
    assert store.calls == []


async def test_misses_fall_through_without_being_remembered(store, cache):
    store.put(ADDON_CONFIGS, _config('c1'))
    body1 = await cache.get(ADDON_CONFIGS, 'c1', 'c1')
    body2 = await cache.get(ADDON_CONFIGS, 'c1', 'c1')
    assert body1 == body2
    assert [call.op for call in store.calls] == ['get', 'get']


async def test_unwatched_resources_go_upstream(store, cache):
    cache.observe(MANIFEST_WORKS, {'type': 'ADDED', 'object': _config('w1')})
    store.put(MANIFEST_WORKS, _config('w1', fresh=True))
    body = await cache.get(MANIFEST_WORKS, 'w1', 'w1')
    assert body['spec'] == {'fresh': True}


async def test_secrets_are_always_read_upstream(store, cache):
    secret = {'metadata': {'name': 's1', 'namespace': 'ns1'}, 'data': {'a': 'b'}}
    cache.observe(SECRETS, {'type': 'ADDED', 'object': secret})
    store.put(SECRETS, dict(secret, data={'a': 'fresh'}))
    body = await cache.get(SECRETS, 'ns1', 's1')
    assert body['data'] == {'a': 'fresh'}
    assert [call.resource for call in store.calls] == [SECRETS]


def test_secrets_cannot_be_cached(store):
    with pytest.raises(ValueError):
        CachedObjectStore(store, resources=[ADDON_CONFIGS, SECRETS])


async def test_writes_go_upstream(store, cache):
    created = await cache.create(ADDON_CONFIGS, _config('c1'))
    created['spec'] = {'x': 1}
    await cache.update(ADDON_CONFIGS, created)
    await cache.delete(ADDON_CONFIGS, 'c1', 'c1')
    assert [call.op for call in store.calls] == ['create', 'update', 'delete']
    assert store.peek(ADDON_CONFIGS, 'c1', 'c1') is None


async def test_get_or_none(store):
    store.put(ADDON_CONFIGS, _config('c1'))
    assert await get_or_none(store, ADDON_CONFIGS, 'c1', 'c1') is not None
    assert await get_or_none(store, ADDON_CONFIGS, 'c2', 'c2') is None


async def test_relisting_forgets_the_objects_gone_meanwhile(store, cache):
    cache.observe(ADDON_CONFIGS, {'type': None, 'object': _config('c1')})
    cache.observe(ADDON_CONFIGS, {'type': None, 'object': _config('c2')})
    assert cache.relisted(ADDON_CONFIGS) == []

    # Reconnected: c1 was deleted while disconnected, with no event for it.
    cache.observe(ADDON_CONFIGS, {'type': None, 'object': _config('c2', x=1)})
    gone = cache.relisted(ADDON_CONFIGS)

    assert gone == [_config('c1')]
    with pytest.raises(APINotFoundError):
        await cache.get(ADDON_CONFIGS, 'c1', 'c1')
    assert (await cache.get(ADDON_CONFIGS, 'c2', 'c2'))['spec'] == {'x': 1}


async def test_empty_relisting_forgets_everything_of_the_resource(store, cache):
    cache.observe(ADDON_CONFIGS, {'type': 'ADDED', 'object': _config('c1')})
    cache.observe(MANAGED_CLUSTERS, {'type': 'ADDED', 'object': {'metadata': {'name': 'c1'}}})

    gone = cache.relisted(ADDON_CONFIGS)

    assert gone == [_config('c1')]
    assert await cache.get(MANAGED_CLUSTERS, None, 'c1') == {'metadata': {'name': 'c1'}}
    assert store.calls == []


def test_relisting_of_unwatched_resources_is_ignored(store, cache):
    cache.observe(MANIFEST_WORKS, {'type': None, 'object': _config('w1')})
    assert cache.relisted(MANIFEST_WORKS) == []
