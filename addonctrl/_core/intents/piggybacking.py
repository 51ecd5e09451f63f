"""
Rudimentary login to the hub's API: in-cluster or from a kubeconfig.

The controller is usually deployed to the hub itself, so the service account's
token is the primary way. The kubeconfig is for the local development.
No auth-providers or exec-plugins are supported: only the raw credentials
stored directly in the files.
"""
import os
from typing import Any

import yaml

from addonctrl._cogs.helpers import typedefs
from addonctrl._cogs.structs import credentials

# As per https://kubernetes.io/docs/tasks/run-application/access-api-from-pod/
SERVICE_ACCOUNT_DIR = '/var/run/secrets/kubernetes.io/serviceaccount'
SERVICE_ACCOUNT_SERVER = 'https://kubernetes.default.svc'
DEFAULT_KUBECONFIG = '~/.kube/config'


def login_with_service_account(**_: Any) -> credentials.ConnectionInfo | None:
    token_path = os.path.join(SERVICE_ACCOUNT_DIR, 'token')
    ns_path = os.path.join(SERVICE_ACCOUNT_DIR, 'namespace')
    ca_path = os.path.join(SERVICE_ACCOUNT_DIR, 'ca.crt')
    if not os.path.exists(token_path):
        return None

    with open(token_path, encoding='utf-8') as f:
        token = f.read().strip()

    namespace: str | None = None
    if os.path.exists(ns_path):
        with open(ns_path, encoding='utf-8') as f:
            namespace = f.read().strip()

    return credentials.ConnectionInfo(
        server=SERVICE_ACCOUNT_SERVER,
        ca_path=ca_path if os.path.exists(ca_path) else None,
        token=token or None,
        default_namespace=namespace or None,
    )


def login_with_kubeconfig(**_: Any) -> credentials.ConnectionInfo | None:
    """
    Get the credentials of the current context from the kubeconfig file(s).

    As with ``kubectl``, ``$KUBECONFIG`` can list several files; the first
    mention of every context, cluster, or user wins.
    """
    kubeconfig = os.environ.get('KUBECONFIG')
    if not kubeconfig and os.path.exists(os.path.expanduser(DEFAULT_KUBECONFIG)):
        kubeconfig = DEFAULT_KUBECONFIG
    if not kubeconfig:
        return None

    paths = [os.path.expanduser(path.strip()) for path in kubeconfig.split(os.pathsep) if path.strip()]

    current_context: str | None = None
    contexts: dict[str, dict[str, Any]] = {}
    clusters: dict[str, dict[str, Any]] = {}
    users: dict[str, dict[str, Any]] = {}
    for path in paths:
        with open(path, encoding='utf-8') as f:
            config = yaml.safe_load(f.read()) or {}

        if current_context is None:
            current_context = config.get('current-context')
        for section, known, field in [('contexts', contexts, 'context'),
                                      ('clusters', clusters, 'cluster'),
                                      ('users', users, 'user')]:
            for item in config.get(section) or []:
                known.setdefault(item['name'], item.get(field) or {})

    if current_context is None:
        raise credentials.LoginError("Current context is not set in kubeconfigs.")
    try:
        context = contexts[current_context]
        cluster = clusters[context['cluster']]
        user = users[context['user']]
    except KeyError as e:
        raise credentials.LoginError(f"The kubeconfig is incomplete: {e} is not defined.") from e

    return credentials.ConnectionInfo(
        server=cluster.get('server'),
        ca_path=cluster.get('certificate-authority'),
        ca_data=cluster.get('certificate-authority-data'),
        insecure=cluster.get('insecure-skip-tls-verify'),
        certificate_path=user.get('client-certificate'),
        certificate_data=user.get('client-certificate-data'),
        private_key_path=user.get('client-key'),
        private_key_data=user.get('client-key-data'),
        username=user.get('username'),
        password=user.get('password'),
        token=user.get('token'),
        default_namespace=context.get('namespace'),
    )


def login(*, logger: typedefs.Logger) -> credentials.ConnectionInfo:
    """
    Login in-cluster if possible, or via the kubeconfig otherwise.
    """
    info = login_with_service_account()
    if info is not None:
        logger.debug("Logged in with the in-cluster service account.")
        return info

    info = login_with_kubeconfig()
    if info is not None:
        logger.debug("Logged in with the kubeconfig.")
        return info

    raise credentials.LoginError("Cannot login: neither in-cluster, nor via kubeconfig.")
