"""
The catalogue of the add-on components known to the controller.

Every component is deployed to the managed cluster as a custom resource
(wrapped into its own ManifestWork), which is then picked up by the add-on
operator on the managed cluster. Most components are switched on/off
by the AddonConfig's flags; the work manager is always enabled.
"""
import dataclasses
from collections.abc import Mapping
from typing import Any

from addonctrl._cogs.configs import configuration


@dataclasses.dataclass(frozen=True)
class Component:
    name: str  # the short name, also used in the work names and the env overrides
    flag: str | None  # the AddonConfig's spec field with ``{enabled: bool}``; None for "always"
    kind: str  # the kind of the component's custom resource on the managed cluster
    addon_name: str  # the default name of the ManagedClusterAddOn
    image_keys: tuple[str, ...]
    requires_hub_kubeconfig: bool = True

    @property
    def cr_name(self) -> str:
        return f'klusterlet-addon-{self.name}'

    def is_enabled(self, owner: Mapping[str, Any]) -> bool:
        if self.flag is None:
            return True
        value = owner.get('spec', {}).get(self.flag) or {}
        return isinstance(value, Mapping) and value.get('enabled') is True

    def get_addon_name(self, settings: configuration.OperatorSettings) -> str:
        return settings.naming.addon_names.get(self.name) or self.addon_name


APP_MANAGER = Component(
    name='appmgr', flag='applicationManager', kind='ApplicationManager',
    addon_name='application-manager', image_keys=('multicluster_operators_subscription',))
CERT_POLICY_CONTROLLER = Component(
    name='certpolicyctrl', flag='certPolicyController', kind='CertPolicyController',
    addon_name='cert-policy-controller', image_keys=('cert_policy_controller',))
IAM_POLICY_CONTROLLER = Component(
    name='iampolicyctrl', flag='iamPolicyController', kind='IAMPolicyController',
    addon_name='iam-policy-controller', image_keys=('iam_policy_controller',))
POLICY_CONTROLLER = Component(
    name='policyctrl', flag='policyController', kind='PolicyController',
    addon_name='policy-controller', image_keys=('config_policy_controller',
                                                'governance_policy_spec_sync',
                                                'governance_policy_status_sync',
                                                'governance_policy_template_sync'))
SEARCH_COLLECTOR = Component(
    name='search', flag='searchCollector', kind='SearchCollector',
    addon_name='search-collector', image_keys=('search_collector',))
WORK_MANAGER = Component(
    name='workmgr', flag=None, kind='WorkManager',
    addon_name='work-manager', image_keys=('klusterlet_addon_workmgr',))

COMPONENTS: tuple[Component, ...] = (
    APP_MANAGER,
    CERT_POLICY_CONTROLLER,
    IAM_POLICY_CONTROLLER,
    POLICY_CONTROLLER,
    SEARCH_COLLECTOR,
    WORK_MANAGER,
)

# Images used by every component in addition to its own ones.
COMMON_IMAGE_KEYS: tuple[str, ...] = ('klusterlet_addon_lease_controller',)
