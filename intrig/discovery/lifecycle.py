"""Resolve a project, auto-start its daemon if needed, and wait until ready.

Sequence per request:
    resolve -> probe -> (spawn detached daemon -> poll port) -> ready | failed

Usage:
    controller = LifecycleController.from_settings(get_settings())
    result = controller.get_project(os.getcwd())
    if isinstance(result, Ok):
        print(result.value.url)

Concurrency note: there is no lock file. Two callers resolving the same
stopped (or not yet registered) project at the same time may both spawn a
daemon; the later daemon binds another port and overwrites the registry record.
"""

import logging
import os
import subprocess
import sys
from typing import List, Optional, Sequence

from intrig.core.configs import Settings
from intrig.core.result import DiscoveryError, ErrorCode, Ok, Result, discovery_error
from intrig.discovery.metadata import DiscoveryMetadata, ProjectInfo
from intrig.discovery.probe import LivenessProber
from intrig.discovery.registry import RegistryStore, normalize_path, registry_dir
from intrig.discovery.resolver import Resolver

logger = logging.getLogger(__name__)


class DetachedSpawner:
    """
    Starts daemon processes and hands them over to the OS.

    The child gets its own session and no stdio, so it outlives the caller
    and is never killed by it. Handles of children that are still running are
    kept so the interpreter does not warn about them at collection time;
    finished ones are reaped with poll() on the next spawn.
    """

    def __init__(self, command: Sequence[str]):
        self.command = list(command)
        self._launched: List[subprocess.Popen] = []

    def spawn(self, cwd: str) -> Result[int, DiscoveryError]:
        """
        Start the daemon command in cwd without waiting for it.

        Returns:
            Ok(pid) or Err(DAEMON_START_FAILED) on an OS-level spawn error
        """
        kwargs = {}
        if sys.platform == "win32":
            kwargs["creationflags"] = (
                subprocess.DETACHED_PROCESS | subprocess.CREATE_NEW_PROCESS_GROUP
            )
        else:
            kwargs["start_new_session"] = True

        try:
            process = subprocess.Popen(
                self.command,
                cwd=cwd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                **kwargs,
            )
        except (OSError, ValueError) as e:
            return discovery_error(
                ErrorCode.DAEMON_START_FAILED,
                f"Failed to start daemon with '{' '.join(self.command)}': {e}",
                e,
            )

        self._launched = [p for p in self._launched if p.poll() is None]
        self._launched.append(process)
        logger.info(f"Spawned daemon (pid={process.pid}) in {cwd}")
        return Ok(process.pid)


class LifecycleController:
    """
    Orchestrates resolution, liveness checks, auto-start and readiness polling.

    All collaborators are injected; nothing is cached between calls, so every
    resolution re-reads the registry and re-probes the port.
    """

    def __init__(
        self,
        resolver: Resolver,
        prober: LivenessProber,
        spawner: DetachedSpawner,
        ready_timeout: float = 10.0,
        poll_interval: float = 0.5,
    ):
        self.resolver = resolver
        self.prober = prober
        self.spawner = spawner
        self.ready_timeout = ready_timeout
        self.poll_interval = poll_interval

    @classmethod
    def from_settings(cls, settings: Settings) -> "LifecycleController":
        store = RegistryStore(registry_dir(settings.discovery_dir))
        return cls(
            resolver=Resolver(store),
            prober=LivenessProber(timeout=settings.probe_timeout),
            spawner=DetachedSpawner(settings.daemon_argv),
            ready_timeout=settings.ready_timeout,
            poll_interval=settings.poll_interval,
        )

    @property
    def store(self) -> RegistryStore:
        return self.resolver.store

    def list_projects(self) -> List[ProjectInfo]:
        """Every registered project with its current liveness."""
        return [
            ProjectInfo.from_metadata(record, self.prober.is_daemon_running(record))
            for record in self.store.scan()
        ]

    def start_daemon(self, project_path: str) -> Result[int, DiscoveryError]:
        return self.spawner.spawn(project_path)

    def get_project(self, input_path: str) -> Result[ProjectInfo, DiscoveryError]:
        """
        Get the project owning input_path, starting its daemon if needed.

        Returns:
            Ok(ProjectInfo with running=True), or Err(PROJECT_NOT_FOUND /
            DAEMON_START_FAILED)
        """
        metadata = self.resolver.resolve_by_path(input_path)
        if metadata is None:
            return discovery_error(
                ErrorCode.PROJECT_NOT_FOUND,
                f"No registered Intrig project found for path: {input_path}",
            )

        if self.prober.is_daemon_running(metadata):
            return Ok(ProjectInfo.from_metadata(metadata, running=True))

        logger.info(f"Daemon for {metadata.project_name} is not running, starting it")
        started = self.start_daemon(metadata.path)
        if not isinstance(started, Ok):
            return started

        ready = self.prober.wait_for_daemon_ready(
            metadata.port,
            max_wait=self.ready_timeout,
            poll_interval=self.poll_interval,
        )
        if not ready:
            return discovery_error(
                ErrorCode.DAEMON_START_FAILED,
                f"Daemon started but not ready within {self.ready_timeout:g}s "
                f"for project: {metadata.project_name}",
            )

        return Ok(ProjectInfo.from_metadata(metadata, running=True))

    def get_project_by_identifier(self, identifier: str) -> Result[ProjectInfo, DiscoveryError]:
        """
        Resolve a path or project name, then run the full get_project sequence
        on the resolved root so liveness is always re-checked.
        """
        metadata = self.resolver.resolve_identifier(identifier)
        if metadata is None:
            return discovery_error(
                ErrorCode.PROJECT_NOT_FOUND,
                f"No registered Intrig project found for: {identifier}",
            )
        return self.get_project(metadata.path)

    def start_project(self, project_root: str) -> Result[ProjectInfo, DiscoveryError]:
        """
        Start the daemon for a root that has no registry record yet.

        Used when the caller knows project_root is an Intrig project (for
        example a fresh checkout, or after the temp directory was cleared).
        Waits until the daemon has registered itself and its port is live.

        Returns:
            Ok(ProjectInfo with running=True) or Err(DAEMON_START_FAILED)
        """
        root = normalize_path(project_root)
        logger.info(f"No daemon registered for {root}, starting one")
        started = self.start_daemon(root)
        if not isinstance(started, Ok):
            return started

        def registered_and_live() -> Optional[DiscoveryMetadata]:
            metadata = self.store.read(root)
            if metadata is not None and self.prober.is_daemon_running(metadata):
                return metadata
            return None

        metadata = self.prober.poll_until(
            registered_and_live,
            max_wait=self.ready_timeout,
            poll_interval=self.poll_interval,
        )
        if metadata is None:
            return discovery_error(
                ErrorCode.DAEMON_START_FAILED,
                f"Daemon started but did not register within {self.ready_timeout:g}s "
                f"for path: {root}",
            )

        return Ok(ProjectInfo.from_metadata(metadata, running=True))

    def status(self, input_path: Optional[str] = None) -> Result[ProjectInfo, DiscoveryError]:
        """Resolve and probe without ever spawning."""
        input_path = input_path or os.getcwd()
        metadata = self.resolver.resolve_by_path(input_path)
        if metadata is None:
            return discovery_error(
                ErrorCode.PROJECT_NOT_FOUND,
                f"No registered Intrig project found for path: {input_path}",
            )
        return Ok(ProjectInfo.from_metadata(metadata, self.prober.is_daemon_running(metadata)))
