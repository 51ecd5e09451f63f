from addonctrl._cogs.clients import api, auth
from addonctrl._cogs.configs import configuration
from addonctrl._cogs.helpers import typedefs
from addonctrl._cogs.structs import references


async def delete_obj(
        *,
        settings: configuration.OperatorSettings,
        resource: references.Resource,
        namespace: references.Namespace,
        name: str,
        context: auth.APIContext | None = None,
        logger: typedefs.Logger,
) -> None:
    """
    Request the deletion of an object. Raise :class:`APINotFoundError` if it is absent.

    The object can remain in the API after this call, e.g. if it has finalizers.
    """
    await api.delete(
        url=resource.get_url(namespace=namespace, name=name),
        payload={'propagationPolicy': 'Background'},
        settings=settings,
        context=context,
        logger=logger,
    )
