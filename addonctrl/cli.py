import asyncio
import dataclasses
import functools
from typing import Any, Callable

import click

from addonctrl._cogs.configs import configuration
from addonctrl._cogs.helpers import versions
from addonctrl._cogs.structs import references
from addonctrl._core.actions import loggers
from addonctrl._core.reactor import running


@dataclasses.dataclass()
class CLIControls:
    """ Controls which are impossible to pass via CLI (e.g. in tests). """
    settings: configuration.OperatorSettings | None = None


class LogFormatParamType(click.Choice):

    def __init__(self) -> None:
        super().__init__(choices=[v.name.lower() for v in loggers.LogFormat])

    def convert(self, value: Any, param: Any, ctx: Any) -> loggers.LogFormat:
        if isinstance(value, loggers.LogFormat):
            return value
        name: str = super().convert(value, param, ctx)
        return loggers.LogFormat[name.upper()]


def logging_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ A decorator to configure logging in all commands the same way."""
    @click.option('-v', '--verbose', is_flag=True)
    @click.option('-d', '--debug', is_flag=True)
    @click.option('-q', '--quiet', is_flag=True)
    @click.option('--log-format', type=LogFormatParamType(), default='full')
    @click.option('--log-refkey', type=str)
    @click.option('--log-prefix/--no-log-prefix', default=None)
    @functools.wraps(fn)  # to preserve other opts/args
    def wrapper(verbose: bool, quiet: bool, debug: bool,
                log_format: loggers.LogFormat = loggers.LogFormat.FULL,
                log_prefix: bool | None = None,
                log_refkey: str | None = None,
                *args: Any, **kwargs: Any) -> Any:
        loggers.configure(debug=debug, verbose=verbose, quiet=quiet,
                          log_format=log_format, log_refkey=log_refkey, log_prefix=log_prefix)
        return fn(*args, **kwargs)

    return wrapper


def defaults_options(fn: Callable[..., Any]) -> Callable[..., Any]:
    """ A decorator to override the env-derived defaults of the AddonConfigs."""
    @click.option('--default-image-pull-secret', type=str, default=None)
    @click.option('--default-image-registry', type=str, default=None)
    @click.option('--pod-namespace', type=str, default=None)
    @functools.wraps(fn)  # to preserve other opts/args
    def wrapper(default_image_pull_secret: str | None,
                default_image_registry: str | None,
                pod_namespace: str | None,
                *args: Any, **kwargs: Any) -> Any:
        controls: CLIControls = click.get_current_context().ensure_object(CLIControls)
        settings = controls.settings if controls.settings is not None else configuration.OperatorSettings()
        if default_image_pull_secret is not None:
            settings.defaults.image_pull_secret = default_image_pull_secret
        if default_image_registry is not None:
            settings.defaults.image_registry = default_image_registry
        if pod_namespace is not None:
            settings.defaults.pod_namespace = pod_namespace
        controls.settings = settings
        return fn(*args, **kwargs)

    return wrapper


@click.version_option(version=versions.version or 'unknown', prog_name='addonctrl')
@click.group(name='addonctrl', context_settings=dict(
    auto_envvar_prefix='ADDONCTRL',
))
def main() -> None:
    pass


@main.command()
@logging_options
@defaults_options
@click.option('-w', '--workers', type=int, default=None)
@click.make_pass_decorator(CLIControls, ensure=True)
def run(
        __controls: CLIControls,
        workers: int | None,
) -> None:
    """ Start the controller and reconcile all the AddonConfigs. """
    return running.run(
        settings=__controls.settings,
        workers=workers,
    )


@main.command()
@logging_options
@defaults_options
@click.option('-n', '--namespace', type=str, default=None)
@click.argument('name')
@click.make_pass_decorator(CLIControls, ensure=True)
def reconcile(
        __controls: CLIControls,
        namespace: str | None,
        name: str,
) -> None:
    """ Reconcile one AddonConfig once, and print what should be done next. """
    # By convention, the AddonConfig lives in the namespace named after its cluster.
    key = references.ObjectKey(namespace or name, name)
    directive = asyncio.run(running.reconcile_once(key, settings=__controls.settings))
    click.echo(f"{key}: {directive}")
