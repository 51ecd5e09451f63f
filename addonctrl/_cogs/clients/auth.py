"""
The authenticated HTTP session to the hub's API.

One :class:`APIContext` is created at startup from the login's connection info
and is shared by all the watchers and the workers via a context variable.
The requesting routines get it injected by :func:`authenticated`,
unless a context is passed explicitly (e.g. in tests or one-shot commands).
"""
import base64
import contextlib
import functools
import ssl
import tempfile
from collections.abc import Callable
from contextvars import ContextVar
from typing import Any, TypeVar, cast

import aiohttp

from addonctrl._cogs.helpers import versions
from addonctrl._cogs.structs import credentials

context_var: ContextVar['APIContext'] = ContextVar('context_var')

_F = TypeVar('_F', bound=Callable[..., Any])


def authenticated(fn: _F) -> _F:
    """
    Inject the controller-wide context into the requesting routine if not given.
    """
    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        if kwargs.get('context') is None:
            try:
                kwargs['context'] = context_var.get()
            except LookupError:
                raise credentials.LoginError("The API context is not set up. Login first.")
        return await fn(*args, **kwargs)

    return cast(_F, wrapper)


class APIContext:
    """
    An aiohttp session bound to one API server, plus what is needed for the URLs.
    """
    session: aiohttp.ClientSession
    server: str
    default_namespace: str | None

    def __init__(
            self,
            info: credentials.ConnectionInfo,
            *,
            session: aiohttp.ClientSession | None = None,
    ) -> None:
        super().__init__()
        self.server = info.server
        self.default_namespace = info.default_namespace
        self.session = session if session is not None else aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=0, ssl=make_ssl_context(info)),
            headers=make_headers(info),
            auth=(aiohttp.BasicAuth(info.username, info.password)
                  if info.username and info.password else None),
        )
        self.session.headers.setdefault('User-Agent', f'addonctrl/{versions.version or "unknown"}')

    async def __aenter__(self) -> 'APIContext':
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self.session.close()


def make_headers(info: credentials.ConnectionInfo) -> dict[str, str]:
    scheme = info.scheme or ('Bearer' if info.token else None)
    if scheme is None:
        return {}
    return {'Authorization': f'{scheme} {info.token}' if info.token else scheme}


def make_ssl_context(info: credentials.ConnectionInfo) -> ssl.SSLContext:
    context = ssl.create_default_context(
        purpose=ssl.Purpose.SERVER_AUTH,
        cafile=info.ca_path,
        cadata=decode_to_pem(info.ca_data) if info.ca_data is not None else None,
    )

    # The client certificate & key are loaded only from files. The files for the inline data
    # are created only if needed (the filesystem can be read-only) and removed right after.
    with contextlib.ExitStack() as stack:
        cert_path = info.certificate_path or _write_pem(stack, info.certificate_data)
        pkey_path = info.private_key_path or _write_pem(stack, info.private_key_data)
        if cert_path and pkey_path:
            context.load_cert_chain(certfile=cert_path, keyfile=pkey_path)

    if info.insecure:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def _write_pem(stack: contextlib.ExitStack, data: str | bytes | None) -> str | None:
    if not data:
        return None
    f = stack.enter_context(tempfile.NamedTemporaryFile(buffering=0))
    f.write(decode_to_pem(data).encode('ascii'))
    return f.name


def decode_to_pem(data: str | bytes) -> str:
    match data:
        case str() if data.startswith('-----BEGIN '):
            return data
        case bytes() if data.startswith(b'-----BEGIN '):
            return data.decode('ascii')
        case _:
            return base64.b64decode(data).decode('ascii')
