"""Maps a user-supplied path or project name to a registry record."""

import os
from typing import Optional

from intrig.discovery.metadata import DiscoveryMetadata
from intrig.discovery.registry import RegistryStore, normalize_path


class Resolver:
    """
    Resolves identifiers against the registry.

    Precedence for paths: an exact project-root match wins; otherwise the
    longest registered root that contains the path (nested projects resolve
    to the innermost one).
    """

    def __init__(self, store: RegistryStore):
        self.store = store

    def resolve_by_path(self, input_path: str) -> Optional[DiscoveryMetadata]:
        target = normalize_path(input_path)
        records = self.store.scan()

        for record in records:
            if normalize_path(record.path) == target:
                return record

        best: Optional[DiscoveryMetadata] = None
        best_length = 0
        for record in records:
            root = normalize_path(record.path)
            if _is_inside(target, root) and len(root) > best_length:
                best = record
                best_length = len(root)
        return best

    def find_by_name(self, name: str) -> Optional[DiscoveryMetadata]:
        """First record whose project name matches exactly, in registry scan order."""
        for record in self.store.scan():
            if record.project_name == name:
                return record
        return None

    def resolve_identifier(self, identifier: str) -> Optional[DiscoveryMetadata]:
        """Resolve as a path first, then fall back to a project name."""
        return self.resolve_by_path(identifier) or self.find_by_name(identifier)


def _is_inside(target: str, root: str) -> bool:
    # "/" is the only normalized root that already ends with a separator
    prefix = root if root.endswith(os.sep) else root + os.sep
    return target.startswith(prefix)
