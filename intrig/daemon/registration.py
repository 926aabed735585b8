"""Daemon-side self-registration.

Runs inside the daemon process. Once the listening socket is bound, the
daemon writes its own registry record; on graceful shutdown it removes it.
If the daemon dies abnormally the record stays behind and readers classify
it as not running via the TCP probe.
"""

import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from intrig.core.configs import Settings
from intrig.core.result import DiscoveryError, Ok, Result
from intrig.discovery.metadata import DiscoveryMetadata
from intrig.discovery.registry import RegistryStore, normalize_path, registry_dir, sanitize_name

logger = logging.getLogger(__name__)

DEFAULT_PROJECT_NAME = "intrig-daemon"


def read_project_name(root_dir: Union[str, Path], default: str = DEFAULT_PROJECT_NAME) -> str:
    """
    Project name from package.json in root_dir, sanitized.

    Falls back to default when the descriptor is missing, unreadable or has
    no usable name.
    """
    package_json = Path(root_dir) / "package.json"
    name = default
    try:
        with open(package_json, "r", encoding="utf-8") as f:
            data = json.load(f)
        if isinstance(data, dict) and isinstance(data.get("name"), str) and data["name"]:
            name = data["name"]
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read {package_json} ({e}), using \"{default}\"")
    return sanitize_name(name)


class DiscoveryRegistration:
    """
    Writes and removes this daemon's registry record.

    Usage:
        registration = DiscoveryRegistration(root_dir, project_type="react")
        registration.register(port)
        ...
        registration.deregister("SIGTERM")
    """

    def __init__(
        self,
        root_dir: Union[str, Path],
        project_type: str,
        store: Optional[RegistryStore] = None,
        url: Optional[str] = None,
        pid: Optional[int] = None,
    ):
        """
        Args:
            root_dir: Project root the daemon serves
            project_type: Generator binding tag (react, next, ...)
            store: Registry store (default: per-user temp registry)
            url: Public URL override (default: http://localhost:<port>)
            pid: Process id to record (default: os.getpid())
        """
        self.root_dir = normalize_path(root_dir)
        self.project_type = project_type
        self.store = store or RegistryStore()
        self.url = url
        self.pid = pid if pid is not None else os.getpid()
        self.project_name = read_project_name(self.root_dir)
        self.record: Optional[DiscoveryMetadata] = None

    @classmethod
    def from_settings(
        cls, settings: Settings, root_dir: Union[str, Path], project_type: str
    ) -> "DiscoveryRegistration":
        """Registration using the configured registry location and URL override."""
        return cls(
            root_dir,
            project_type,
            store=RegistryStore(registry_dir(settings.discovery_dir)),
            url=settings.daemon_url,
        )

    @property
    def metadata_file(self) -> Path:
        return self.store.file_for(self.root_dir)

    def register(self, port: int, url: Optional[str] = None) -> Result[Path, DiscoveryError]:
        """
        Record the actually bound port.

        Args:
            port: Port the listening socket is bound to
            url: URL override for this registration

        Returns:
            Ok(metadata file path) or Err(REGISTRY_ERROR)
        """
        record = DiscoveryMetadata(
            project_name=self.project_name,
            url=url or self.url or f"http://localhost:{port}",
            port=port,
            pid=self.pid,
            timestamp=datetime.now(timezone.utc).isoformat(),
            path=self.root_dir,
            type=self.project_type,
        )
        result = self.store.write(record)
        if isinstance(result, Ok):
            self.record = record
            logger.info(f"Service registered: {result.value}")
        else:
            logger.error(f"Service registration failed: {result.error.message}")
        return result

    def deregister(self, reason: str = "shutdown") -> bool:
        """
        Remove the record if it still belongs to this process.

        A newer daemon for the same root may have overwritten the file; in
        that case it is left alone. Failures are logged and never raised.

        Returns:
            True if the file was removed
        """
        current = self.store.read(self.root_dir)
        if current is not None and current.pid != self.pid:
            logger.info(
                f"Registry record now belongs to pid {current.pid}, leaving it ({reason})"
            )
            return False

        removed = self.store.remove(self.metadata_file)
        if removed:
            logger.info(f"Service deregistered ({reason})")
        self.record = None
        return removed
