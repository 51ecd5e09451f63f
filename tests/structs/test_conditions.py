import pytest

from addonctrl._cogs.structs.conditions import get_condition, has_conditions, is_available


@pytest.mark.parametrize('body', [
    pytest.param(None, id='no-body'),
    pytest.param({}, id='no-status'),
    pytest.param({'status': None}, id='null-status'),
    pytest.param({'status': 'garbage'}, id='str-status'),
    pytest.param({'status': {}}, id='no-conditions'),
    pytest.param({'status': {'conditions': None}}, id='null-conditions'),
    pytest.param({'status': {'conditions': 'garbage'}}, id='str-conditions'),
    pytest.param({'status': {'conditions': []}}, id='empty-conditions'),
    pytest.param({'status': {'conditions': ['garbage', None]}}, id='malformed-entries'),
    pytest.param({'status': {'conditions': [{'type': 'Other', 'status': 'True'}]}}, id='other-kind'),
    pytest.param({'status': {'conditions': [{'type': 'Available', 'status': 'False'}]}}, id='false'),
    pytest.param({'status': {'conditions': [{'type': 'Available', 'status': 'Unknown'}]}}, id='unknown'),
    pytest.param({'status': {'conditions': [{'type': 'Available', 'status': 'true'}]}}, id='lowercase'),
    pytest.param({'status': {'conditions': [{'type': 'Available', 'status': True}]}}, id='boolean'),
    pytest.param({'status': {'conditions': [{'type': 'Available'}]}}, id='no-status-field'),
])
def test_unavailable(body):
    assert not is_available(body, kind='Available')


@pytest.mark.parametrize('conditions', [
    pytest.param([{'type': 'Available', 'status': 'True'}], id='single'),
    pytest.param([{'type': 'Applied', 'status': 'False'},
                  {'type': 'Available', 'status': 'True'}], id='mixed'),
    pytest.param(['garbage', {'type': 'Available', 'status': 'True'}], id='with-malformed'),
])
def test_available(conditions):
    assert is_available({'status': {'conditions': conditions}}, kind='Available')


def test_condition_kind_is_configurable():
    body = {'status': {'conditions': [{'type': 'ManagedClusterConditionAvailable', 'status': 'True'}]}}
    assert is_available(body, kind='ManagedClusterConditionAvailable')
    assert not is_available(body, kind='Available')


@pytest.mark.parametrize('expected, body', [
    pytest.param(False, None, id='no-body'),
    pytest.param(False, {}, id='no-status'),
    pytest.param(False, {'status': {'conditions': []}}, id='empty'),
    pytest.param(False, {'status': {'conditions': [None]}}, id='malformed'),
    pytest.param(True, {'status': {'conditions': [{'type': 'Applied', 'status': 'False'}]}}, id='some'),
])
def test_has_conditions(expected, body):
    assert has_conditions(body) == expected


def test_get_condition():
    condition = {'type': 'Available', 'status': 'True', 'reason': 'AllApplied'}
    body = {'status': {'conditions': [{'type': 'Applied'}, condition]}}
    assert get_condition(body, 'Available') == condition
    assert get_condition(body, 'Degraded') is None
