"""Talking to, and running as, an Intrig daemon.

- DiscoveryRegistration: daemon-side hook writing/removing its registry record
- RegisteredServer: asyncio host loop tying a bound server to its record
- DaemonClient: HTTP client for verify/generate and documentation lookups
- SseLineParser: incremental framing of the generate progress stream
"""

from intrig.daemon.client import DaemonClient
from intrig.daemon.protocol import SseLineParser
from intrig.daemon.registration import DiscoveryRegistration
from intrig.daemon.server import RegisteredServer

__all__ = [
    "DaemonClient",
    "DiscoveryRegistration",
    "RegisteredServer",
    "SseLineParser",
]
