"""
References to the resource kinds and to the individual objects.

Only the resource kinds that the controller works with are defined here:
there is no discovery of the resources in the cluster, the API groups
and versions are known in advance.
"""
import dataclasses
import urllib.parse
from collections.abc import Mapping
from typing import NamedTuple

# A namespace of a namespaced object, or None for cluster-scoped objects and cluster-wide calls.
Namespace = str | None


@dataclasses.dataclass(frozen=True)
class Resource:
    """
    A reference to a very specific resource kind in a very specific API version.
    """
    group: str
    version: str
    plural: str
    kind: str = ''
    namespaced: bool = True

    def __str__(self) -> str:
        return f'{self.plural}.{self.version}.{self.group}'.strip('.')

    @property
    def api_version(self) -> str:
        # Strip heading/trailing slashes if group is absent (e.g. for secrets).
        return f'{self.group}/{self.version}'.strip('/')

    def get_url(
            self,
            *,
            server: str | None = None,
            namespace: Namespace = None,
            name: str | None = None,
            params: Mapping[str, str] | None = None,
    ) -> str:
        if self.namespaced and namespace is None and name is not None:
            raise ValueError(f"Specific namespaces are required for specific {self.plural}.")
        return self._build_url(server, params, [
            '/api' if self.group == '' and self.version == 'v1' else '/apis',
            self.group,
            self.version,
            'namespaces' if self.namespaced and namespace is not None else None,
            namespace if self.namespaced else None,
            self.plural,
            name,
        ])

    def _build_url(
            self,
            server: str | None,
            params: Mapping[str, str] | None,
            parts: list[str | None],
    ) -> str:
        query = urllib.parse.urlencode(params, encoding='utf-8') if params else ''
        path = '/'.join([part for part in parts if part])
        url = path + ('?' if query else '') + query
        return url if server is None else server.rstrip('/') + '/' + url.lstrip('/')


class ObjectKey(NamedTuple):
    """
    An identity of an AddonConfig, as used in the work queue.

    By convention, both the namespace and the name equal the cluster's name.
    """
    namespace: str
    name: str

    def __str__(self) -> str:
        return f'{self.namespace}/{self.name}'


ADDON_CONFIGS = Resource(
    'agent.open-cluster-management.io', 'v1', 'klusterletaddonconfigs',
    kind='KlusterletAddonConfig')
MANAGED_CLUSTERS = Resource(
    'cluster.open-cluster-management.io', 'v1', 'managedclusters',
    kind='ManagedCluster', namespaced=False)
MANIFEST_WORKS = Resource(
    'work.open-cluster-management.io', 'v1', 'manifestworks',
    kind='ManifestWork')
CLUSTER_ADDONS = Resource(
    'addon.open-cluster-management.io', 'v1alpha1', 'managedclusteraddons',
    kind='ManagedClusterAddOn')
SECRETS = Resource('', 'v1', 'secrets', kind='Secret')
