import logging

import pytest

from addonctrl._cogs.structs.references import ObjectKey
from addonctrl._core.intents.filters import admits_addon_event, keys_for_addon, \
                                            keys_for_cluster, keys_for_config

ADDON = {'metadata': {'name': 'search-collector', 'namespace': 'cluster1'}}


@pytest.mark.parametrize('event_type', [None, 'ADDED', 'MODIFIED'])
def test_addon_events_other_than_deletions_are_rejected(event_type):
    assert not admits_addon_event({'type': event_type, 'object': ADDON})


def test_addon_deletions_are_admitted():
    assert admits_addon_event({'type': 'DELETED', 'object': ADDON})


def test_addon_deletions_without_objects_are_rejected_and_logged(caplog):
    caplog.set_level(logging.DEBUG)
    assert not admits_addon_event({'type': 'DELETED', 'object': None})
    assert any(record.levelname == 'ERROR' for record in caplog.records)


def test_keys_for_config():
    body = {'metadata': {'name': 'cluster1', 'namespace': 'cluster1'}}
    assert list(keys_for_config(body)) == [ObjectKey('cluster1', 'cluster1')]


def test_keys_for_config_without_names():
    assert list(keys_for_config({'metadata': {}})) == []


def test_keys_for_cluster():
    body = {'metadata': {'name': 'cluster1'}}
    assert list(keys_for_cluster(body)) == [ObjectKey('cluster1', 'cluster1')]


def test_keys_for_addon_by_controller_owner():
    body = {'metadata': {'name': 'search-collector', 'namespace': 'cluster1', 'ownerReferences': [
        {'apiVersion': 'v1', 'kind': 'ConfigMap', 'name': 'cm', 'controller': False},
        {'apiVersion': 'agent.open-cluster-management.io/v1', 'kind': 'KlusterletAddonConfig',
         'name': 'cluster1', 'controller': True},
    ]}}
    assert list(keys_for_addon(body)) == [ObjectKey('cluster1', 'cluster1')]


@pytest.mark.parametrize('refs', [
    pytest.param(None, id='no-refs'),
    pytest.param([], id='empty-refs'),
    pytest.param([{'apiVersion': 'agent.open-cluster-management.io/v1',
                   'kind': 'KlusterletAddonConfig', 'name': 'cluster1'}], id='not-controller'),
    pytest.param([{'apiVersion': 'other.example.com/v1',
                   'kind': 'KlusterletAddonConfig', 'name': 'cluster1', 'controller': True}],
                 id='other-group'),
    pytest.param([{'apiVersion': 'agent.open-cluster-management.io/v1',
                   'kind': 'Other', 'name': 'cluster1', 'controller': True}], id='other-kind'),
])
def test_keys_for_addon_without_owners(refs):
    body = {'metadata': {'name': 'search-collector', 'namespace': 'cluster1', 'ownerReferences': refs}}
    assert list(keys_for_addon(body)) == []
