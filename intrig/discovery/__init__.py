"""Discovery of per-project Intrig daemons.

Architecture:
- RegistryStore: one JSON record per daemon in <tmpdir>/<user>.intrig/
- LivenessProber: TCP connect check, the only trusted liveness signal
- Resolver: path (exact, then innermost root) or project name -> record
- LifecycleController: resolve, probe, auto-start detached, poll until ready
"""

from intrig.discovery.lifecycle import DetachedSpawner, LifecycleController
from intrig.discovery.metadata import DiscoveryMetadata, ProjectInfo
from intrig.discovery.probe import (
    LivenessProber,
    is_daemon_running,
    is_port_in_use,
    wait_for_daemon_ready,
)
from intrig.discovery.registry import RegistryStore, registry_dir, sanitize_name
from intrig.discovery.resolver import Resolver

__all__ = [
    "DetachedSpawner",
    "DiscoveryMetadata",
    "LifecycleController",
    "LivenessProber",
    "ProjectInfo",
    "RegistryStore",
    "Resolver",
    "is_daemon_running",
    "is_port_in_use",
    "registry_dir",
    "sanitize_name",
    "wait_for_daemon_ready",
]
