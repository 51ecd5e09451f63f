from addonctrl._cogs.clients import api, auth
from addonctrl._cogs.configs import configuration
from addonctrl._cogs.helpers import typedefs
from addonctrl._cogs.structs import bodies, references


async def update_obj(
        *,
        settings: configuration.OperatorSettings,
        resource: references.Resource,
        body: bodies.RawBody,
        context: auth.APIContext | None = None,
        logger: typedefs.Logger,
) -> bodies.RawBody:
    """
    Replace an object as a whole, with the optimistic concurrency.

    Unlike patching, the full body is sent together with its ``resourceVersion``
    as it was observed. If the object was changed since then by anyone else,
    the API refuses the update with HTTP 409 (:class:`APIConflictError`),
    and the caller must re-read the object and decide again.

    Returns the body as stored by the server, with the new resource version.
    """
    metadata = body.get('metadata', {})
    updated_body: bodies.RawBody = await api.put(
        url=resource.get_url(namespace=metadata.get('namespace'), name=metadata.get('name')),
        payload=body,
        settings=settings,
        context=context,
        logger=logger,
    )
    return updated_body
