import json
from collections import defaultdict
from typing import Any, Callable

import aiohttp.web
import pytest
from aiohttp.test_utils import TestServer

from addonctrl._cogs.clients.auth import APIContext
from addonctrl._cogs.structs.credentials import ConnectionInfo


class FakeAPI:
    """
    A minimal HTTP server that replies with the pre-registered responses.

    The responses are served in order of registration per method & path;
    the last one repeats. All requests are remembered for the assertions.
    """

    def __init__(self) -> None:
        super().__init__()
        self.responses: dict[tuple[str, str], list[Callable[[], aiohttp.web.Response]]] = defaultdict(list)
        self.requests: list[tuple[str, str, Any]] = []
        self.app = aiohttp.web.Application()
        self.app.router.add_route('*', '/{tail:.*}', self.dispatch)

    def add(self, method: str, path: str, *, status: int = 200,
            json: Any = None, text: str | None = None) -> None:
        if text is not None:
            factory = lambda: aiohttp.web.Response(status=status, text=text)
        else:
            factory = lambda: aiohttp.web.json_response(json, status=status)
        self.responses[(method.upper(), path)].append(factory)

    def add_stream(self, method: str, path: str, events: list[Any]) -> None:
        text = ''.join(json.dumps(event) + '\n' for event in events)
        self.add(method, path, text=text)

    async def dispatch(self, request: aiohttp.web.Request) -> aiohttp.web.Response:
        payload = await request.json() if request.can_read_body else None
        self.requests.append((request.method, request.path_qs, payload))
        queue = self.responses.get((request.method, request.path))
        if not queue:
            status = {'kind': 'Status', 'code': 404, 'message': 'not registered'}
            return aiohttp.web.json_response(status, status=404)
        factory = queue.pop(0) if len(queue) > 1 else queue[0]
        return factory()


@pytest.fixture()
def fake_api():
    return FakeAPI()


@pytest.fixture()
async def context(fake_api):
    server = TestServer(fake_api.app)
    await server.start_server()
    try:
        info = ConnectionInfo(server=str(server.make_url('')))
        async with APIContext(info) as context:
            yield context
    finally:
        await server.close()


@pytest.fixture(autouse=True)
def _prevent_retries_in_api_tests(settings):
    settings.networking.error_backoffs = []
