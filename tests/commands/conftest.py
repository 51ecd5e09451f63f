import functools
import logging

import click.testing
import pytest

from addonctrl.cli import main


@pytest.fixture(autouse=True)
def restored_logging():
    # The CLI configures the root logger with click's temporary streams.
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture()
def runner():
    return click.testing.CliRunner()


@pytest.fixture()
def invoke(runner):
    return functools.partial(runner.invoke, main)


@pytest.fixture()
def real_run(mocker):
    return mocker.patch('addonctrl._core.reactor.running.run')


@pytest.fixture()
def real_reconcile_once(mocker):
    return mocker.patch('addonctrl._core.reactor.running.reconcile_once')
