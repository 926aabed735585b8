"""Intrig daemon discovery and lifecycle client.

Lets independent processes (CLI, build-tool hooks, assistant integrations)
find, auto-start and talk to the per-project Intrig daemon using only the
local filesystem registry and TCP.
"""

__version__ = "0.3.0"
