"""
The payloads of the dependent ManifestWorks.

The reconciler is agnostic of what exactly is deployed to the managed clusters:
it only needs the lists of manifests per deployable unit. The builders are
injected into the reconciler; the default one deploys the custom resource
definitions of the components, the add-on operator, and one custom resource
per component (to be picked up by that operator on the managed cluster).
"""
import logging
import re
from collections.abc import Mapping
from typing import Any, Protocol

from addonctrl._cogs.clients import errors, stores
from addonctrl._cogs.configs import configuration
from addonctrl._cogs.structs import bodies, references
from addonctrl._core.intents import components

logger = logging.getLogger(__name__)

Manifest = dict[str, Any]

COMPONENTS_GROUP = 'agent.open-cluster-management.io'
COMPONENTS_VERSION = 'v1'
OPERATOR_NAME = 'klusterlet-addon-operator'
OPERATOR_IMAGE_KEY = 'klusterlet_addon_operator'

# The first Kubernetes version where apiextensions.k8s.io/v1 is served.
CRD_V1_SINCE = (1, 16)


class PayloadBuilder(Protocol):

    async def build_crds(self, owner: bodies.RawBody, kube_version: str | None) -> list[Manifest]: ...

    async def build_operator(self, owner: bodies.RawBody) -> list[Manifest]: ...

    async def build_component(
            self,
            owner: bodies.RawBody,
            component: components.Component,
    ) -> list[Manifest]: ...


def build_work(
        *,
        name: str,
        namespace: str,
        manifests: list[Manifest],
) -> bodies.RawBody:
    return {
        'apiVersion': references.MANIFEST_WORKS.api_version,
        'kind': references.MANIFEST_WORKS.kind,
        'metadata': {'name': name, 'namespace': namespace},
        'spec': {'workload': {'manifests': manifests}},
    }


def parse_kube_version(kube_version: str | None) -> tuple[int, int] | None:
    """
    Parse the major & minor numbers of versions like ``v1.18.3+6c42de8``.
    """
    match = re.match(r'^v?(\d+)\.(\d+)', kube_version or '')
    return (int(match.group(1)), int(match.group(2))) if match else None


def get_image(owner: Mapping[str, Any], key: str) -> str:
    """
    Resolve the image of a component from the AddonConfig's registry & version.
    """
    spec = owner.get('spec', {})
    registry = (spec.get('imageRegistry') or '').rstrip('/')
    version = spec.get('version') or 'latest'
    image = f"{key.replace('_', '-')}:{version}"
    return f"{registry}/{image}" if registry else image


class DefaultPayloadBuilder:

    def __init__(
            self,
            *,
            store: stores.ObjectStore,
            settings: configuration.OperatorSettings,
    ) -> None:
        super().__init__()
        self.store = store
        self.settings = settings

    async def build_crds(self, owner: bodies.RawBody, kube_version: str | None) -> list[Manifest]:
        # Unknown versions are treated as the modern ones.
        parsed = parse_kube_version(kube_version)
        legacy = parsed is not None and parsed < CRD_V1_SINCE
        return [self._build_crd(component, legacy=legacy) for component in components.COMPONENTS]

    def _build_crd(self, component: components.Component, *, legacy: bool) -> Manifest:
        plural = component.kind.lower() + 's'
        schema = {'type': 'object', 'x-kubernetes-preserve-unknown-fields': True}
        crd: Manifest = {
            'apiVersion': 'apiextensions.k8s.io/v1beta1' if legacy else 'apiextensions.k8s.io/v1',
            'kind': 'CustomResourceDefinition',
            'metadata': {'name': f'{plural}.{COMPONENTS_GROUP}'},
            'spec': {
                'group': COMPONENTS_GROUP,
                'scope': 'Namespaced',
                'names': {
                    'kind': component.kind,
                    'listKind': f'{component.kind}List',
                    'plural': plural,
                    'singular': component.kind.lower(),
                },
            },
        }
        if legacy:
            crd['spec']['version'] = COMPONENTS_VERSION
            crd['spec']['validation'] = {'openAPIV3Schema': schema}
        else:
            crd['spec']['versions'] = [{
                'name': COMPONENTS_VERSION,
                'served': True,
                'storage': True,
                'schema': {'openAPIV3Schema': schema},
            }]
        return crd

    async def build_operator(self, owner: bodies.RawBody) -> list[Manifest]:
        namespace = self.settings.naming.addon_namespace
        spec = owner.get('spec', {})
        pull_secret_name: str = spec.get('imagePullSecret') or ''

        manifests: list[Manifest] = [
            {
                'apiVersion': 'v1',
                'kind': 'Namespace',
                'metadata': {'name': namespace},
            },
            {
                'apiVersion': 'v1',
                'kind': 'ServiceAccount',
                'metadata': {'name': OPERATOR_NAME, 'namespace': namespace},
            },
        ]

        if pull_secret_name:
            secret = await self._build_pull_secret(pull_secret_name)
            if secret is not None:
                manifests.append(secret)

        pod_spec: dict[str, Any] = {
            'serviceAccountName': OPERATOR_NAME,
            'containers': [{
                'name': OPERATOR_NAME,
                'image': get_image(owner, OPERATOR_IMAGE_KEY),
                'imagePullPolicy': spec.get('imagePullPolicy') or 'IfNotPresent',
                'env': [{'name': 'WATCH_NAMESPACE', 'value': namespace}],
            }],
        }
        if pull_secret_name:
            pod_spec['imagePullSecrets'] = [{'name': pull_secret_name}]

        manifests.append({
            'apiVersion': 'apps/v1',
            'kind': 'Deployment',
            'metadata': {'name': OPERATOR_NAME, 'namespace': namespace},
            'spec': {
                'replicas': 1,
                'selector': {'matchLabels': {'app': OPERATOR_NAME}},
                'template': {
                    'metadata': {'labels': {'app': OPERATOR_NAME}},
                    'spec': pod_spec,
                },
            },
        })
        return manifests

    async def _build_pull_secret(self, name: str) -> Manifest | None:
        # The secrets are always read from the API, never from the watch-fed cache.
        source_namespace = self.settings.defaults.pod_namespace or None
        if source_namespace is None:
            logger.warning(f"The controller's namespace is unknown; the pull secret {name!r} is not deployed.")
            return None
        try:
            secret = await self.store.get(references.SECRETS, source_namespace, name)
        except errors.APINotFoundError:
            logger.warning(f"The pull secret {name!r} is absent in {source_namespace!r}; not deployed.")
            return None
        return {
            'apiVersion': 'v1',
            'kind': 'Secret',
            'type': secret.get('type', 'kubernetes.io/dockerconfigjson'),
            'metadata': {'name': name, 'namespace': self.settings.naming.addon_namespace},
            'data': dict(secret.get('data') or {}),
        }

    async def build_component(
            self,
            owner: bodies.RawBody,
            component: components.Component,
    ) -> list[Manifest]:
        owner_name = bodies.get_name(owner) or ''
        spec = owner.get('spec', {})
        image_keys = component.image_keys + components.COMMON_IMAGE_KEYS
        component_spec: dict[str, Any] = {
            'fullNameOverride': component.cr_name,
            'clusterName': spec.get('clusterName') or owner_name,
            'clusterNamespace': spec.get('clusterNamespace') or bodies.get_namespace(owner),
            'global': {
                'imagePullPolicy': spec.get('imagePullPolicy') or 'IfNotPresent',
                'imagePullSecret': spec.get('imagePullSecret') or '',
                'imageOverrides': {key: get_image(owner, key) for key in image_keys},
            },
        }
        if component.requires_hub_kubeconfig:
            addon_name = component.get_addon_name(self.settings)
            component_spec['hubKubeconfigSecret'] = f'{addon_name}-hub-kubeconfig'
        return [{
            'apiVersion': f'{COMPONENTS_GROUP}/{COMPONENTS_VERSION}',
            'kind': component.kind,
            'metadata': {
                'name': component.cr_name,
                'namespace': self.settings.naming.addon_namespace,
                'labels': {'app': owner_name},
            },
            'spec': component_spec,
        }]
