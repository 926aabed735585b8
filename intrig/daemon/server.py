"""Asyncio host loop that keeps a daemon registered while it serves.

The daemon's HTTP application is out of scope here; this module only ties
an already bound asyncio server to the registry:
1. Reads the actually bound port (port 0 lets the OS choose)
2. Writes the registry record
3. Waits for SIGTERM/SIGINT or an explicit shutdown request
4. Closes the server and removes the record

Usage:
    server = await asyncio.start_server(handle, host="127.0.0.1", port=0)
    host = RegisteredServer(server, DiscoveryRegistration(root, "react"))
    await host.serve()
"""

import asyncio
import logging
import signal
from typing import Optional

from intrig.core.result import Ok
from intrig.daemon.registration import DiscoveryRegistration

logger = logging.getLogger(__name__)


def bound_port(server: asyncio.AbstractServer) -> int:
    """Port of the first listening socket of an asyncio server."""
    sockets = getattr(server, "sockets", None) or ()
    if not sockets:
        raise RuntimeError("Server has no listening sockets")
    return sockets[0].getsockname()[1]


class RegisteredServer:
    """
    Keeps a registry record alive for the lifetime of an asyncio server.
    """

    def __init__(
        self,
        server: asyncio.AbstractServer,
        registration: DiscoveryRegistration,
        url: Optional[str] = None,
    ):
        self.server = server
        self.registration = registration
        self.url = url
        self.port: Optional[int] = None
        self._shutdown_event = asyncio.Event()
        self._shutdown_reason = "shutdown"

    async def serve(self) -> None:
        """Register, serve until shutdown, then clean up."""
        self.port = bound_port(self.server)
        result = self.registration.register(self.port, self.url)
        if not isinstance(result, Ok):
            # Unregistered daemons still serve; clients just cannot discover them
            logger.warning(f"Serving unregistered on port {self.port}")

        loop = asyncio.get_running_loop()
        installed = []
        for sig in (signal.SIGTERM, signal.SIGINT):
            try:
                loop.add_signal_handler(sig, self._signal_handler, sig)
                installed.append(sig)
            except (NotImplementedError, RuntimeError, ValueError):
                logger.debug(f"Signal handler for {sig!r} not supported here")

        logger.info(f"Daemon listening on port {self.port}")
        try:
            await self._shutdown_event.wait()
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)
            await self._cleanup()

    def request_shutdown(self, reason: str = "shutdown") -> None:
        self._shutdown_reason = reason
        self._shutdown_event.set()

    def _signal_handler(self, sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name}")
        self.request_shutdown(sig.name)

    async def _cleanup(self) -> None:
        logger.info("Cleaning up...")
        self.server.close()
        await self.server.wait_closed()
        self.registration.deregister(self._shutdown_reason)
        logger.info("Daemon stopped")
