from typing import Any

from addonctrl._cogs.clients import api, auth
from addonctrl._cogs.configs import configuration
from addonctrl._cogs.helpers import typedefs
from addonctrl._cogs.structs import bodies, references


async def read_obj(
        *,
        settings: configuration.OperatorSettings,
        resource: references.Resource,
        namespace: references.Namespace,
        name: str,
        context: auth.APIContext | None = None,
        logger: typedefs.Logger,
) -> bodies.RawBody:
    """
    Read one object. Raise :class:`APINotFoundError` if it is absent.
    """
    body: bodies.RawBody = await api.get(
        url=resource.get_url(namespace=namespace, name=name),
        settings=settings,
        context=context,
        logger=logger,
    )
    return body


async def list_objs(
        *,
        settings: configuration.OperatorSettings,
        resource: references.Resource,
        namespace: references.Namespace = None,
        context: auth.APIContext | None = None,
        logger: typedefs.Logger,
) -> tuple[list[bodies.RawBody], str | None]:
    """
    List the objects of specific resource type, in one namespace or cluster-wide.

    Returns the objects and the list's resource version to continue watching from.
    """
    rsp: dict[str, Any] = await api.get(
        url=resource.get_url(namespace=namespace),
        settings=settings,
        context=context,
        logger=logger,
    )

    items: list[bodies.RawBody] = []
    resource_version = rsp.get('metadata', {}).get('resourceVersion', None)
    for item in rsp.get('items', []):
        item.setdefault('kind', resource.kind)
        item.setdefault('apiVersion', resource.api_version)
        items.append(item)

    return items, resource_version
