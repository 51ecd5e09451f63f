from addonctrl._cogs.clients import api, auth
from addonctrl._cogs.configs import configuration
from addonctrl._cogs.helpers import typedefs
from addonctrl._cogs.structs import bodies, references


async def create_obj(
        *,
        settings: configuration.OperatorSettings,
        resource: references.Resource,
        body: bodies.RawBody,
        context: auth.APIContext | None = None,
        logger: typedefs.Logger,
) -> bodies.RawBody:
    """
    Create an object. Raise :class:`APIConflictError` if it already exists.
    """
    namespace = body.get('metadata', {}).get('namespace')
    created_body: bodies.RawBody = await api.post(
        url=resource.get_url(namespace=namespace),
        payload=body,
        settings=settings,
        context=context,
        logger=logger,
    )
    return created_body
