"""
All configuration flags, options, settings to fine-tune the controller.

All settings are grouped semantically just for convenience
(instead of a flat mega-object with all the values in it).

Some of the settings are taken from the process environment, but only once:
when the settings object is constructed. The reconciler never looks into
the environment on its own; it uses the settings injected into it.
"""
import dataclasses
import os
from collections.abc import Iterable, Mapping


def _from_env(name: str) -> str:
    return os.environ.get(name, '')


# Environment variables overriding the per-component ManagedClusterAddOn names.
ADDON_NAME_ENVVARS: Mapping[str, str] = {
    'appmgr': 'APPMGR_NAME',
    'certpolicyctrl': 'CERT_POLICY_CONTROLLER_NAME',
    'iampolicyctrl': 'IAM_POLICY_CONTROLLER_NAME',
    'policyctrl': 'POLICY_CONTROLLER_NAME',
    'search': 'SEARCH_NAME',
    'workmgr': 'WORK_MANAGER_NAME',
}


def _addon_names_from_env() -> dict[str, str]:
    return {component: os.environ[envvar]
            for component, envvar in ADDON_NAME_ENVVARS.items()
            if os.environ.get(envvar)}


@dataclasses.dataclass
class NamingSettings:

    finalizer: str = 'agent.open-cluster-management.io/klusterletaddonconfig-cleanup'
    """
    The finalizer put on both the AddonConfig and its ManagedCluster.
    Both resources carry the same name; they are never linked otherwise.
    """

    pause_annotation: str = 'klusterletaddonconfig-pause'
    """
    An annotation on the AddonConfig; ``"true"`` (any case) stops the reconciliation.
    """

    policy_label: str = 'policycontroller.addon.open-cluster-management.io'
    """
    A label on the ManagedCluster reflecting whether the policy controller is enabled.
    """

    crds_work_suffix: str = '-klusterlet-addon-crds'
    operator_work_suffix: str = '-klusterlet-addon-operator'
    component_work_suffix: str = '-klusterlet-addon-'

    addon_namespace: str = 'open-cluster-management-agent-addon'
    """
    The namespace on the managed cluster where the add-on agents are deployed.
    """

    addon_names: Mapping[str, str] = dataclasses.field(default_factory=_addon_names_from_env)
    """
    Overrides of the ManagedClusterAddOn names per component (e.g. ``search``).
    """


@dataclasses.dataclass
class ConditionsSettings:
    """
    Which status conditions signal the availability.

    The authoritative condition types are not strictly defined for either
    resource, so they are configurable rather than hard-coded.
    """

    cluster_available: str = 'ManagedClusterConditionAvailable'
    work_available: str = 'Available'


@dataclasses.dataclass
class ReconcilingSettings:

    conflict_delay: float = 5
    """
    How soon to retry after an optimistic-concurrency conflict.
    """

    teardown_delay: float = 5
    """
    How soon to re-check the dependents' deletion while it is not finished.
    """

    availability_delay: float = 30
    """
    How soon to re-check the CRDs' availability on the managed cluster.
    """

    resync_delay: float = 5 * 60
    """
    How soon to re-check the converged (or unreachable) clusters.
    """


@dataclasses.dataclass
class DefaultsSettings:
    """
    Process-wide defaults for the AddonConfigs' empty fields.
    """

    image_pull_secret: str = dataclasses.field(
        default_factory=lambda: _from_env('DEFAULT_IMAGE_PULL_SECRET'))
    image_registry: str = dataclasses.field(
        default_factory=lambda: _from_env('DEFAULT_IMAGE_REGISTRY'))

    pod_namespace: str = dataclasses.field(
        default_factory=lambda: _from_env('POD_NAMESPACE'))
    """
    The controller's own namespace on the hub, where the pull secret is looked up.
    """


@dataclasses.dataclass
class NetworkingSettings:

    request_timeout: float | None = 5 * 60  # == aiohttp.client.DEFAULT_TIMEOUT
    """
    A timeout for each individual API request (except the watch-streams).
    """

    connect_timeout: float | None = None
    """
    A timeout for the connection establishment (for each individual request).
    """

    error_backoffs: Iterable[float] = (1, 1, 2, 3, 5, 8)
    """
    Backoff intervals for the retries of the failed requests.

    Only the connection errors, timeouts, and HTTP 5xx are retried.
    All other errors (HTTP 4xx) are escalated immediately.
    Set to ``[]`` or ``()`` to disable the retries.
    """


@dataclasses.dataclass
class WatchingSettings:

    server_timeout: float | None = None
    """
    The maximum duration of one streaming request.
    If ``None``, then obey the server-side timeouts.
    """

    client_timeout: float | None = None
    connect_timeout: float | None = None

    reconnect_backoff: float = 0.1
    """
    How long should a pause be between watch requests (to prevent API flooding).
    """


@dataclasses.dataclass
class QueueingSettings:

    worker_limit: int = 4
    """
    How many keys are reconciled simultaneously. One key is never reconciled twice at a time.
    """

    error_delays: Iterable[float] = (1, 2, 4, 8, 16, 32, 64, 128, 256, 300)
    """
    Per-key backoff intervals when the reconciliation fails with an error.

    Every further error leads to the next delay; the last one repeats forever.
    Every success resets the backoff sequence for that key.
    """

    exit_timeout: float = 2.0
    """
    How long the running reconciliations are awaited when the queue stops.
    """


@dataclasses.dataclass
class OperatorSettings:
    naming: NamingSettings = dataclasses.field(default_factory=NamingSettings)
    conditions: ConditionsSettings = dataclasses.field(default_factory=ConditionsSettings)
    reconciling: ReconcilingSettings = dataclasses.field(default_factory=ReconcilingSettings)
    defaults: DefaultsSettings = dataclasses.field(default_factory=DefaultsSettings)
    networking: NetworkingSettings = dataclasses.field(default_factory=NetworkingSettings)
    watching: WatchingSettings = dataclasses.field(default_factory=WatchingSettings)
    queueing: QueueingSettings = dataclasses.field(default_factory=QueueingSettings)
