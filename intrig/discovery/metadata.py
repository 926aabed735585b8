"""Registry record types.

On disk each record is a JSON object with camelCase keys:
    {
        "projectName": str,   # sanitized package name
        "url": str,           # e.g. "http://localhost:5050"
        "port": int,          # actually bound port
        "pid": int,           # daemon pid at registration (diagnostic only)
        "timestamp": str,     # ISO-8601 registration time
        "path": str,          # absolute project root
        "type": str           # generator binding (react, next, ...)
    }
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

# JSON key -> (attribute name, expected type)
_FIELDS = {
    "projectName": ("project_name", str),
    "url": ("url", str),
    "port": ("port", int),
    "pid": ("pid", int),
    "timestamp": ("timestamp", str),
    "path": ("path", str),
    "type": ("type", str),
}


@dataclass(frozen=True)
class DiscoveryMetadata:
    """One daemon instance as recorded in the registry."""
    project_name: str
    url: str
    port: int
    pid: int
    timestamp: str
    path: str
    type: str

    @classmethod
    def from_dict(cls, data: Any) -> Optional["DiscoveryMetadata"]:
        """
        Build a record from parsed JSON.

        Returns None unless every field is present with the right primitive
        type. Booleans are rejected where integers are expected.
        """
        if not isinstance(data, dict):
            return None

        values = {}
        for key, (attr, expected) in _FIELDS.items():
            value = data.get(key)
            if not isinstance(value, expected) or isinstance(value, bool):
                return None
            values[attr] = value

        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return {key: getattr(self, attr) for key, (attr, _) in _FIELDS.items()}


@dataclass(frozen=True)
class ProjectInfo:
    """Resolved project with its liveness, produced fresh on every resolution."""
    project_name: str
    path: str
    url: str
    port: int
    type: str
    running: bool
    metadata: DiscoveryMetadata

    @classmethod
    def from_metadata(cls, metadata: DiscoveryMetadata, running: bool) -> "ProjectInfo":
        return cls(
            project_name=metadata.project_name,
            path=metadata.path,
            url=metadata.url,
            port=metadata.port,
            type=metadata.type,
            running=running,
            metadata=metadata,
        )
