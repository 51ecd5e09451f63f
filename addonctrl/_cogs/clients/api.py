"""
The raw HTTP calls to the API: JSON in, JSON out, with retries.

Only the connection errors, the timeouts, and the server-side errors (5xx)
are retried, with the configured backoffs between the attempts. The client
errors (4xx) are escalated immediately as the typed API errors.
"""
import asyncio
import json
from collections.abc import AsyncIterator, Mapping
from typing import Any

import aiohttp

from addonctrl._cogs.clients import auth, errors
from addonctrl._cogs.configs import configuration
from addonctrl._cogs.helpers import typedefs

RETRIABLE_ERRORS = (aiohttp.ClientConnectionError, errors.APIServerError, asyncio.TimeoutError)


@auth.authenticated
async def request(
        method: str,
        url: str,  # relative to the server/api root.
        *,
        settings: configuration.OperatorSettings,
        payload: object | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: aiohttp.ClientTimeout | None = None,
        context: auth.APIContext | None = None,  # injected by the decorator
        logger: typedefs.Logger,
) -> aiohttp.ClientResponse:
    if context is None:  # for type-checking!
        raise RuntimeError("API instance is not injected by the decorator.")

    url = url if '://' in url else f"{context.server.rstrip('/')}/{url.lstrip('/')}"
    timeout = timeout if timeout is not None else aiohttp.ClientTimeout(
        total=settings.networking.request_timeout,
        sock_connect=settings.networking.connect_timeout,
    )
    what = f"{method.upper()} {url}"
    backoffs = list(settings.networking.error_backoffs)
    attempts = len(backoffs) + 1
    for attempt in range(1, attempts + 1):
        try:
            response = await context.session.request(
                method=method, url=url, json=payload, headers=headers, timeout=timeout,
            )
            await errors.check_response(response)  # but do not parse it!
        except RETRIABLE_ERRORS as e:
            if attempt >= attempts:
                logger.error(f"Request attempt #{attempt}/{attempts} failed; escalating: {what} -> {e!r}")
                raise
            logger.warning(f"Request attempt #{attempt}/{attempts} failed; will retry: {what} -> {e!r}")
            await asyncio.sleep(backoffs[attempt - 1])
        else:
            if attempt > 1:
                logger.debug(f"Request attempt #{attempt}/{attempts} succeeded: {what}")
            return response

    raise RuntimeError("Broken retryable routine.")  # impossible, but needed for type-checking.


async def _call(
        method: str,
        url: str,
        *,
        settings: configuration.OperatorSettings,
        payload: object | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: aiohttp.ClientTimeout | None = None,
        context: auth.APIContext | None = None,
        logger: typedefs.Logger,
) -> Any:
    response = await request(
        method=method,
        url=url,
        payload=payload,
        headers=headers,
        timeout=timeout,
        settings=settings,
        context=context,
        logger=logger,
    )
    async with response:
        return await response.json()


async def get(url: str, **kwargs: Any) -> Any:
    return await _call('get', url, **kwargs)


async def post(url: str, **kwargs: Any) -> Any:
    return await _call('post', url, **kwargs)


async def put(url: str, **kwargs: Any) -> Any:
    return await _call('put', url, **kwargs)


async def delete(url: str, **kwargs: Any) -> Any:
    return await _call('delete', url, **kwargs)


async def stream(
        url: str,  # relative to the server/api root.
        *,
        settings: configuration.OperatorSettings,
        timeout: aiohttp.ClientTimeout | None = None,
        context: auth.APIContext | None = None,
        logger: typedefs.Logger,
) -> AsyncIterator[Any]:
    response = await request(
        method='get',
        url=url,
        timeout=timeout,
        settings=settings,
        context=context,
        logger=logger,
    )
    async with response:
        async for line in iter_jsonlines(response.content):
            yield json.loads(line.decode('utf-8'))


async def iter_jsonlines(
        content: aiohttp.StreamReader,
        chunk_size: int = 1024 * 1024,
) -> AsyncIterator[bytes]:
    """
    Iterate line by line over the response's content, skipping the empty lines.

    The aiohttp's own line iteration fails if the accumulated buffer
    is above 2**17 bytes, i.e. 128 KB. Some fields, e.g. the manifests
    of the ManifestWorks, can be much longer, up to MBs in length.
    """
    tail = b''
    async for chunk in content.iter_chunked(chunk_size):
        *lines, tail = (tail + chunk).split(b'\n')
        for line in lines:
            if line:
                yield line
    if tail:
        yield tail
