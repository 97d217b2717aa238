import asyncio
from collections import defaultdict, deque
from typing import Any, Optional

from aiohttp import web
from loguru import logger
from pydantic import BaseModel, Field


class ScriptedResponse(BaseModel):
    status: int = 200
    body: Optional[Any] = None
    raw: Optional[str] = None
    headers: dict[str, str] = Field(default_factory=dict)
    delay: float = 0.0


class RecordedRequest(BaseModel):
    method: str
    path: str
    query: dict[str, str]
    headers: dict[str, str]
    body: Optional[Any] = None
    at: float


class ManagementServer:
    """Fake management endpoint replaying scripted responses.

    Each (method, path) has a queue of responses; the last one repeats once
    the queue is drained. ``{base_url}`` in a header value is replaced with the
    server's own address so status links can point back at it.
    """

    def __init__(self):
        self.app = web.Application()
        self.app.router.add_route("*", "/{tail:.*}", self.handle)
        self.scripts: dict[tuple[str, str], deque] = defaultdict(deque)
        self.requests: list[RecordedRequest] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.runner: Optional[web.AppRunner] = None
        self.port: Optional[int] = None
        self.logger = logger

    @property
    def base_url(self) -> str:
        return f"http://127.0.0.1:{self.port}"

    def script(self, method: str, path: str, *responses: ScriptedResponse) -> None:
        self.scripts[(method.upper(), path)].extend(responses)

    def requests_for(self, method: str, path: str) -> list[RecordedRequest]:
        return [r for r in self.requests if r.method == method.upper() and r.path == path]

    async def handle(self, request: web.Request) -> web.Response:
        body = None
        if request.can_read_body:
            body = await request.json()
        self.requests.append(
            RecordedRequest(
                method=request.method,
                path=request.path,
                query=dict(request.query),
                headers=dict(request.headers),
                body=body,
                at=asyncio.get_event_loop().time(),
            )
        )

        queue = self.scripts.get((request.method, request.path))
        if not queue:
            self.logger.info(f"No script for {request.method} {request.path}")
            return web.json_response(
                {"error": {"code": "NotFound", "message": f"{request.path} not scripted"}},
                status=404,
            )
        scripted = queue.popleft() if len(queue) > 1 else queue[0]

        mutating = request.method != "GET"
        if mutating:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if scripted.delay:
                await asyncio.sleep(scripted.delay)
        finally:
            if mutating:
                self.in_flight -= 1

        headers = {k: v.replace("{base_url}", self.base_url) for k, v in scripted.headers.items()}
        self.logger.info(f"Returning {scripted.status} for {request.method} {request.path}")
        if scripted.raw is not None:
            return web.Response(status=scripted.status, text=scripted.raw, headers=headers)
        if scripted.body is None:
            return web.Response(status=scripted.status, headers=headers)
        return web.json_response(scripted.body, status=scripted.status, headers=headers)

    async def start(self, port: int = 0):
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, "127.0.0.1", port)
        await site.start()
        self.port = self.runner.addresses[0][1]
        self.logger.info(f"Server started on port {self.port}")
        return site

    async def stop(self) -> None:
        if self.runner is not None:
            await self.runner.cleanup()
