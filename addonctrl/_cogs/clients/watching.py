"""
Watching and streaming watch-events.

Every watched resource kind is first listed, and the objects are yielded
as pseudo-events with type ``None``, followed by :attr:`Bookmark.LISTED`
once the listing is over (even if it is empty). Then, the watch-stream
continues from the list's resource version. When the resource version is gone
(HTTP 410 in the stream), or when the stream disconnects, it starts again.
"""
import asyncio
import enum
import logging
from collections.abc import AsyncIterator
from typing import Any, cast

import aiohttp

from addonctrl._cogs.clients import api, auth, errors, fetching
from addonctrl._cogs.configs import configuration
from addonctrl._cogs.structs import bodies, references

logger = logging.getLogger(__name__)

HTTP_GONE = 410
HTTP_TOO_MANY_REQUESTS = 429
DEFAULT_THROTTLING_DELAY = 1

EVENT_TYPES = frozenset({'ADDED', 'MODIFIED', 'DELETED'})

# The stream is re-established after these, with no error escalated.
DISCONNECTION_ERRORS = (aiohttp.ClientConnectionError, aiohttp.ClientPayloadError, asyncio.TimeoutError)


class WatchingError(Exception):
    """
    Raised when an unexpected error happens in the watch-stream API.
    """


class Bookmark(enum.Enum):
    """ Special marks sent in the stream among the raw events. """
    LISTED = enum.auto()  # the listing is over, the objects not listed are gone.


async def infinite_watch(
        *,
        settings: configuration.OperatorSettings,
        resource: references.Resource,
        namespace: references.Namespace = None,
        context: auth.APIContext | None = None,
        _iterations: int | None = None,  # used in tests/mocks/fixtures
) -> AsyncIterator[bodies.RawEvent | Bookmark]:
    """
    Stream the watch-events forever, re-listing & re-watching on every disconnection.

    It only exits with unrecoverable exceptions (or by cancellation).
    """
    where = f'in {namespace!r}' if namespace is not None else 'cluster-wide'
    logger.debug(f"Starting the watch-stream for {resource} {where}.")
    iteration = 0
    try:
        while _iterations is None or iteration < _iterations:
            iteration += 1
            try:
                async for raw_event in continuous_watch(
                    settings=settings, resource=resource, namespace=namespace, context=context,
                ):
                    yield raw_event
            except errors.APIClientError as e:
                if e.status != HTTP_TOO_MANY_REQUESTS:
                    raise
                delay = (e.details or {}).get('retryAfterSeconds') or DEFAULT_THROTTLING_DELAY
                logger.warning(f"Too many requests for {resource}; retrying in {delay}s.")
                await asyncio.sleep(delay)
            await asyncio.sleep(settings.watching.reconnect_backoff)
    finally:
        logger.debug(f"Stopping the watch-stream for {resource} {where}.")


async def continuous_watch(
        *,
        settings: configuration.OperatorSettings,
        resource: references.Resource,
        namespace: references.Namespace,
        context: auth.APIContext | None = None,
) -> AsyncIterator[bodies.RawEvent | Bookmark]:
    """
    List the objects, then watch them until the stream ends for any reason.
    """
    try:
        objs, resource_version = await fetching.list_objs(
            settings=settings, resource=resource, namespace=namespace,
            context=context, logger=logger,
        )
    except DISCONNECTION_ERRORS:
        return

    for obj in objs:
        yield {'type': None, 'object': obj}
    yield Bookmark.LISTED

    url = resource.get_url(namespace=namespace, params=get_watch_params(settings, resource_version))
    try:
        async for raw_input in api.stream(
            url=url, settings=settings, context=context, logger=logger,
            timeout=get_watch_timeout(settings),
        ):
            if is_gone(raw_input):
                logger.debug(f"The resource version is gone; restarting the watch-stream for {resource}.")
                return
            elif raw_input.get('type') == 'ERROR':
                raise WatchingError(f"Error in the watch-stream: {raw_input.get('object')}")
            elif raw_input.get('type') not in EVENT_TYPES:
                logger.warning(f"Ignoring an unsupported event type: {raw_input!r}")
            else:
                yield cast(bodies.RawEvent, raw_input)
    except DISCONNECTION_ERRORS:
        pass


def is_gone(raw_input: dict[str, Any]) -> bool:
    raw_object = raw_input.get('object')
    return (raw_input.get('type') == 'ERROR' and isinstance(raw_object, dict) and
            raw_object.get('code') == HTTP_GONE)


def get_watch_params(
        settings: configuration.OperatorSettings,
        resource_version: str | None,
) -> dict[str, str]:
    params = {'watch': 'true'}
    if resource_version is not None:
        params['resourceVersion'] = resource_version
    if settings.watching.server_timeout is not None:
        params['timeoutSeconds'] = str(settings.watching.server_timeout)
    return params


def get_watch_timeout(settings: configuration.OperatorSettings) -> aiohttp.ClientTimeout:
    # The first one set wins: the watching-specific, the generic connection, the generic request.
    candidates = [settings.watching.connect_timeout,
                  settings.networking.connect_timeout,
                  settings.networking.request_timeout]
    connect_timeout = next((timeout for timeout in candidates if timeout is not None), None)
    return aiohttp.ClientTimeout(total=settings.watching.client_timeout, sock_connect=connect_timeout)
