import pytest

from addonctrl._cogs.structs.references import ObjectKey
from addonctrl._core.actions.loggers import LogFormat
from addonctrl._core.intents.states import Directive


def test_help(invoke):
    result = invoke(['--help'])
    assert result.exit_code == 0
    assert 'run' in result.output
    assert 'reconcile' in result.output


def test_version(invoke):
    result = invoke(['--version'])
    assert result.exit_code == 0
    assert 'addonctrl' in result.output


def test_run_with_defaults(invoke, real_run):
    result = invoke(['run'])
    assert result.exit_code == 0
    assert real_run.called
    assert real_run.call_args[1]['workers'] is None
    assert real_run.call_args[1]['settings'] is not None


@pytest.mark.parametrize('options, envvars', [
    pytest.param(['-w', '7'], {}, id='short'),
    pytest.param(['--workers=7'], {}, id='long'),
    pytest.param([], {'ADDONCTRL_RUN_WORKERS': '7'}, id='env'),
])
def test_run_with_workers(invoke, real_run, options, envvars):
    result = invoke(['run'] + options, env=envvars)
    assert result.exit_code == 0
    assert real_run.call_args[1]['workers'] == 7


@pytest.mark.parametrize('options, envvars', [
    pytest.param(['--default-image-pull-secret=s1', '--default-image-registry=r1',
                  '--pod-namespace=ns1'], {}, id='options'),
    pytest.param([], {'ADDONCTRL_RUN_DEFAULT_IMAGE_PULL_SECRET': 's1',
                      'ADDONCTRL_RUN_DEFAULT_IMAGE_REGISTRY': 'r1',
                      'ADDONCTRL_RUN_POD_NAMESPACE': 'ns1'}, id='env'),
])
def test_run_with_overridden_defaults(invoke, real_run, options, envvars):
    result = invoke(['run'] + options, env=envvars)
    assert result.exit_code == 0
    settings = real_run.call_args[1]['settings']
    assert settings.defaults.image_pull_secret == 's1'
    assert settings.defaults.image_registry == 'r1'
    assert settings.defaults.pod_namespace == 'ns1'


@pytest.mark.parametrize('options, log_format', [
    pytest.param([], LogFormat.FULL, id='default'),
    pytest.param(['--log-format=plain'], LogFormat.PLAIN, id='plain'),
    pytest.param(['--log-format=json'], LogFormat.JSON, id='json'),
])
def test_logging_formats(invoke, real_run, mocker, options, log_format):
    configure = mocker.patch('addonctrl._core.actions.loggers.configure')
    result = invoke(['run'] + options)
    assert result.exit_code == 0
    assert configure.call_args[1]['log_format'] == log_format


def test_logging_levels(invoke, real_run, mocker):
    configure = mocker.patch('addonctrl._core.actions.loggers.configure')
    result = invoke(['run', '--verbose', '--quiet'])
    assert result.exit_code == 0
    assert configure.call_args[1]['verbose'] is True
    assert configure.call_args[1]['quiet'] is True
    assert configure.call_args[1]['debug'] is False


def test_unknown_log_formats(invoke, real_run):
    result = invoke(['run', '--log-format=xml'])
    assert result.exit_code != 0
    assert not real_run.called


def test_reconcile_by_name(invoke, real_reconcile_once):
    real_reconcile_once.return_value = Directive.after(30)
    result = invoke(['reconcile', 'cluster1'])
    assert result.exit_code == 0
    assert real_reconcile_once.call_args[0][0] == ObjectKey('cluster1', 'cluster1')
    assert result.stdout == 'cluster1/cluster1: requeue after 30s\n'


def test_reconcile_with_namespace(invoke, real_reconcile_once):
    real_reconcile_once.return_value = Directive.done()
    result = invoke(['reconcile', 'name1', '-n', 'ns1'])
    assert result.exit_code == 0
    assert real_reconcile_once.call_args[0][0] == ObjectKey('ns1', 'name1')
    assert result.stdout == 'ns1/name1: done\n'
