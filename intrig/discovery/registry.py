"""Filesystem registry of running daemons.

Layout:
    <tmpdir>/<sanitized-username>.intrig/<sha1(project root)>.json

One file per project root. Files are whole-file overwrites with no locking,
so readers must tolerate partially written or corrupt files by skipping them.
A file on disk does not mean the daemon is alive; check with the prober.
"""

import getpass
import hashlib
import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from intrig.core.result import DiscoveryError, ErrorCode, Ok, Result, discovery_error
from intrig.discovery.metadata import DiscoveryMetadata

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9\-_]")


def sanitize_name(raw: str) -> str:
    """Replace every character outside [A-Za-z0-9-_] with an underscore."""
    return _UNSAFE_CHARS.sub("_", raw)


def current_username() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        # No passwd entry and no LOGNAME/USER variables (e.g. bare containers)
        return str(os.getuid()) if hasattr(os, "getuid") else "user"


def registry_dir(base_dir: Optional[Union[str, Path]] = None) -> Path:
    """
    Get the registry directory for the current user.

    Args:
        base_dir: Parent directory (default: system temp dir)
    """
    base = Path(base_dir) if base_dir else Path(tempfile.gettempdir())
    return base / f"{sanitize_name(current_username())}.intrig"


def normalize_path(path: Union[str, Path]) -> str:
    """Absolute, normalized form of a path (no symlink resolution)."""
    return os.path.normpath(os.path.abspath(os.fspath(path)))


def metadata_file_name(project_root: Union[str, Path]) -> str:
    """Deterministic file name: SHA-1 of the normalized absolute project root."""
    digest = hashlib.sha1(normalize_path(project_root).encode("utf-8")).hexdigest()
    return f"{digest}.json"


class RegistryStore:
    """
    Reads and writes per-instance metadata files.

    Scanning never raises: a corrupt or half-written file is skipped so it
    cannot hide the other records.
    """

    def __init__(self, directory: Optional[Path] = None):
        """
        Initialize store.

        Args:
            directory: Registry directory (default: registry_dir())
        """
        self.directory = Path(directory) if directory else registry_dir()

    def file_for(self, project_root: Union[str, Path]) -> Path:
        return self.directory / metadata_file_name(project_root)

    def scan(self) -> List[DiscoveryMetadata]:
        """Return every valid record in the registry, sorted by file name."""
        return [record for _, record in self._entries()]

    def _entries(self) -> List[Tuple[Path, DiscoveryMetadata]]:
        try:
            if not self.directory.is_dir():
                return []
            entries = sorted(self.directory.glob("*.json"), key=lambda p: p.name)
        except OSError as e:
            logger.debug(f"Could not list registry {self.directory}: {e}")
            return []

        records = []
        for file_path in entries:
            record = self._parse(file_path)
            if record is not None:
                records.append((file_path, record))
        return records

    def read(self, project_root: Union[str, Path]) -> Optional[DiscoveryMetadata]:
        """Load the record registered for one project root, if any."""
        return self._parse(self.file_for(project_root))

    def write(self, record: DiscoveryMetadata) -> Result[Path, DiscoveryError]:
        """
        Write a record to its canonical file, creating the directory if needed.

        Returns:
            Ok(path of the written file) or Err(REGISTRY_ERROR)
        """
        file_path = self.file_for(record.path)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            file_path.write_text(json.dumps(record.to_dict(), indent=2), encoding="utf-8")
        except OSError as e:
            return discovery_error(
                ErrorCode.REGISTRY_ERROR,
                f"Failed to write registry file {file_path}: {e}",
                e,
            )
        logger.debug(f"Registered {record.project_name} at {file_path}")
        return Ok(file_path)

    def remove(self, file_path: Union[str, Path]) -> bool:
        """
        Delete a registry file. Best effort: failures are logged, never raised.

        Returns:
            True if a file was removed
        """
        file_path = Path(file_path)
        try:
            file_path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"Failed to delete registry file {file_path}: {e}")
            return False

    def prune(self, is_alive: Callable[[DiscoveryMetadata], bool]) -> List[DiscoveryMetadata]:
        """
        Remove records whose daemon is not alive.

        Only called on explicit request; scan() never deletes anything.

        Returns:
            The records that were removed
        """
        removed = []
        for file_path, record in self._entries():
            if not is_alive(record) and self.remove(file_path):
                removed.append(record)
        return removed

    def _parse(self, file_path: Path) -> Optional[DiscoveryMetadata]:
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, UnicodeDecodeError, ValueError) as e:
            logger.debug(f"Skipping unreadable registry file {file_path}: {e}")
            return None

        record = DiscoveryMetadata.from_dict(data)
        if record is None:
            logger.debug(f"Skipping invalid registry file {file_path}")
        return record
