"""TCP liveness checks.

A daemon counts as alive when something accepts connections on its recorded
port. The recorded pid is never trusted: a crashed daemon leaves its registry
file behind, and the pid may since have been reused.
"""

import logging
import socket
import time
from typing import Callable, Optional, TypeVar

from intrig.discovery.metadata import DiscoveryMetadata

logger = logging.getLogger(__name__)

LOCALHOST = "127.0.0.1"

T = TypeVar("T")


def is_port_in_use(port: int, host: str = LOCALHOST, timeout: float = 0.5) -> bool:
    """
    Check whether something accepts TCP connections on host:port.

    Any failure (refused, timeout, DNS, permission, invalid port) yields False.
    No payload is exchanged.
    """
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except (OSError, ValueError, OverflowError, TypeError):
        return False


def is_daemon_running(metadata: DiscoveryMetadata, timeout: float = 0.5) -> bool:
    return is_port_in_use(metadata.port, timeout=timeout)


def poll_until(
    condition: Callable[[], Optional[T]],
    max_wait: float = 10.0,
    poll_interval: float = 0.5,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> Optional[T]:
    """Call condition every poll_interval until it returns a truthy value or max_wait elapses."""
    start = clock()
    while clock() - start < max_wait:
        value = condition()
        if value:
            return value
        sleep(poll_interval)
    return None


def wait_for_daemon_ready(
    port: int,
    max_wait: float = 10.0,
    poll_interval: float = 0.5,
    probe: Optional[Callable[[int], bool]] = None,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """
    Poll a port until it accepts connections or the wait budget runs out.

    Args:
        port: Port to poll
        max_wait: Total budget in seconds
        poll_interval: Delay between probes in seconds
        probe: Liveness check (default: is_port_in_use)
        sleep: Sleep function (injectable for tests)
        clock: Monotonic clock (injectable for tests)

    Returns:
        True as soon as the port is live, False once max_wait has fully elapsed
    """
    probe = probe or is_port_in_use
    if poll_until(lambda: probe(port), max_wait, poll_interval, sleep, clock):
        return True

    logger.debug(f"Port {port} not ready after {max_wait:.1f}s")
    return False


class LivenessProber:
    """Probe settings bundled for injection into the lifecycle controller."""

    def __init__(
        self,
        host: str = LOCALHOST,
        timeout: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.host = host
        self.timeout = timeout
        self._sleep = sleep
        self._clock = clock

    def is_port_in_use(self, port: int) -> bool:
        return is_port_in_use(port, host=self.host, timeout=self.timeout)

    def is_daemon_running(self, metadata: DiscoveryMetadata) -> bool:
        return self.is_port_in_use(metadata.port)

    def wait_for_daemon_ready(
        self,
        port: int,
        max_wait: float = 10.0,
        poll_interval: float = 0.5,
    ) -> bool:
        return wait_for_daemon_ready(
            port,
            max_wait=max_wait,
            poll_interval=poll_interval,
            probe=self.is_port_in_use,
            sleep=self._sleep,
            clock=self._clock,
        )

    def poll_until(
        self,
        condition: Callable[[], Optional[T]],
        max_wait: float = 10.0,
        poll_interval: float = 0.5,
    ) -> Optional[T]:
        return poll_until(
            condition, max_wait, poll_interval, sleep=self._sleep, clock=self._clock
        )
