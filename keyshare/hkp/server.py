"""
HTTP transport for the HKP dispatcher.

A small aiohttp server that accepts every method and path and hands the
request to HKPDispatcher. Binding to port 0 picks a free port, which is
what gets advertised over DNS-SD.
"""

import logging
from typing import Optional

from aiohttp import web

from ..errors import TransportError
from .dispatcher import HKPDispatcher

logger = logging.getLogger(__name__)

ANY_PORT = 0


class HKPServer:
    """
    HKP server on top of aiohttp.

    Usage:
        server = HKPServer(HKPDispatcher(store))
        port = await server.listen()
        ...
        await server.stop()
    """

    def __init__(self, dispatcher: HKPDispatcher, host: str = "0.0.0.0", port: int = ANY_PORT):
        self.dispatcher = dispatcher
        self.host = host
        self.requested_port = port
        self.app = web.Application()
        self.app.router.add_route("*", "/{tail:.*}", self.handle_request)
        self.runner: Optional[web.AppRunner] = None
        self._port: Optional[int] = None

    @property
    def is_running(self) -> bool:
        return self.runner is not None

    @property
    def port(self) -> int:
        """The bound port, or 0 when not listening."""
        return self._port or 0

    async def listen(self, port: Optional[int] = None) -> int:
        """
        Start serving.

        Returns:
            The port actually bound

        Raises:
            TransportError: if the socket could not be bound
        """
        if self.runner is not None:
            return self.port

        if port is None:
            port = self.requested_port

        runner = web.AppRunner(self.app, access_log=None)
        await runner.setup()

        site = web.TCPSite(runner, self.host, port)
        try:
            await site.start()
        except OSError as e:
            await runner.cleanup()
            raise TransportError(e.strerror or str(e)) from e

        self.runner = runner
        self._port = runner.addresses[0][1]
        logger.info(f"HKP server listening on {self.host}:{self._port}")
        return self._port

    async def stop(self) -> None:
        """Stop serving. Does nothing if not running."""
        if self.runner is None:
            return
        runner, self.runner = self.runner, None
        self._port = None
        await runner.cleanup()
        logger.info("HKP server stopped")

    async def handle_request(self, request: web.Request) -> web.Response:
        """Pass a request through the dispatcher."""
        result = self.dispatcher.handle(request.method, request.path, dict(request.query))
        logger.debug(f"{request.method} {request.path_qs} -> {result.status}")

        response = web.Response(status=result.status, body=result.body, headers=result.headers)
        response.force_close()
        return response
