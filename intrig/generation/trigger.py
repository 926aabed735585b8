"""Hash-based regeneration trigger for build-tool integrations.

Flow (run at build start):
1. Skip unless the working tree has an intrig.config.json with a generator
2. Make sure the project's daemon is up, auto-starting it if needed, even
   when no registry record exists yet
3. Read node_modules/@intrig/<generator>/hashes.json
   - missing or unreadable: state unknown, regenerate
   - otherwise POST it to /api/operations/verify; 200 means up to date
4. Regenerate through the streamed /api/operations/generate endpoint
5. Drop bundler caches that may reference previously generated code
"""

import json
import logging
import shutil
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Sequence, Union

import httpx

from intrig.core.configs import Settings
from intrig.core.result import DiscoveryError, Err, ErrorCode, Ok, Result
from intrig.daemon.client import DaemonClient
from intrig.daemon.protocol import is_status_event
from intrig.discovery.lifecycle import LifecycleController
from intrig.discovery.metadata import ProjectInfo

logger = logging.getLogger(__name__)

CONFIG_FILE = "intrig.config.json"

# Relative to the project root
BUILD_CACHE_DIRS = (
    Path("node_modules") / ".vite",
    Path("app") / "insight" / "node_modules" / ".vite",
)


class TriggerOutcome(str, Enum):
    NOT_A_PROJECT = "not_a_project"
    UP_TO_DATE = "up_to_date"
    REGENERATED = "regenerated"


def hashes_path(root_dir: Path, generator: str) -> Path:
    return root_dir / "node_modules" / "@intrig" / generator / "hashes.json"


def log_progress(event: Dict[str, Any]) -> None:
    logger.info(f"{event.get('step')}: {event.get('sourceId') or 'global'}")


class RegenerationTrigger:
    """
    Decides whether generated code is stale and regenerates it if so.

    Collaborators are injected: the lifecycle controller provides a ready
    daemon, client_factory builds a DaemonClient for its URL.
    """

    def __init__(
        self,
        lifecycle: LifecycleController,
        root_dir: Union[str, Path],
        client_factory: Optional[Callable[[str], DaemonClient]] = None,
        generate_timeout: float = 300.0,
        on_progress: Callable[[Dict[str, Any]], None] = log_progress,
        cache_dirs: Sequence[Path] = BUILD_CACHE_DIRS,
    ):
        self.lifecycle = lifecycle
        self.root_dir = Path(root_dir)
        self.client_factory = client_factory or DaemonClient
        self.generate_timeout = generate_timeout
        self.on_progress = on_progress
        self.cache_dirs = tuple(cache_dirs)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        root_dir: Union[str, Path],
        on_progress: Callable[[Dict[str, Any]], None] = log_progress,
        http: Optional[httpx.Client] = None,
    ) -> "RegenerationTrigger":
        def client_factory(url: str) -> DaemonClient:
            return DaemonClient(
                url,
                http=http,
                timeout=settings.request_timeout,
                retry_count=settings.retry_count,
                retry_delay=settings.retry_delay,
            )

        return cls(
            LifecycleController.from_settings(settings),
            root_dir,
            client_factory=client_factory,
            generate_timeout=settings.generate_timeout,
            on_progress=on_progress,
        )

    def is_intrig_project(self) -> bool:
        return (self.root_dir / CONFIG_FILE).is_file()

    def read_generator(self) -> Optional[str]:
        try:
            with open(self.root_dir / CONFIG_FILE, "r", encoding="utf-8") as f:
                config = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read {CONFIG_FILE}: {e}")
            return None
        generator = config.get("generator") if isinstance(config, dict) else None
        return generator if isinstance(generator, str) and generator else None

    def read_hashes(self, generator: str) -> Optional[Dict[str, str]]:
        """Cached hash map, or None when absent or unreadable."""
        path = hashes_path(self.root_dir, generator)
        if not path.is_file():
            logger.info("Hashes file not found, state unknown")
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                hashes = json.load(f)
        except (OSError, ValueError) as e:
            logger.info(f"Could not read hashes file ({e})")
            return None
        if not isinstance(hashes, dict):
            logger.info("Hashes file is not a JSON object")
            return None
        return hashes

    def check_and_generate(self) -> Result[TriggerOutcome, DiscoveryError]:
        """
        Run the whole check; never raises.

        Returns:
            Ok(outcome), or Err for daemon start, transport, HTTP or timeout
            failures. Errors are non-fatal for the calling build.
        """
        if not self.is_intrig_project():
            logger.warning(f"{CONFIG_FILE} not found, skipping Intrig checks")
            return Ok(TriggerOutcome.NOT_A_PROJECT)

        generator = self.read_generator()
        if generator is None:
            logger.warning(f"No generator found in {CONFIG_FILE}")
            return Ok(TriggerOutcome.NOT_A_PROJECT)

        project = self.lifecycle.get_project(str(self.root_dir))
        if isinstance(project, Err) and project.error.code == ErrorCode.PROJECT_NOT_FOUND:
            # Marker file present but nothing registered (fresh checkout or a
            # cleared temp directory)
            project = self.lifecycle.start_project(str(self.root_dir))
        if not isinstance(project, Ok):
            return project

        client = self.client_factory(project.value.url)
        try:
            return self._check(client, project.value, generator)
        finally:
            client.close()

    def _check(
        self, client: DaemonClient, project: ProjectInfo, generator: str
    ) -> Result[TriggerOutcome, DiscoveryError]:
        logger.info(f"Checking hashes for generator: {generator}")
        hashes = self.read_hashes(generator)

        if hashes is not None:
            verified = client.verify(hashes)
            if isinstance(verified, Ok) and verified.value:
                logger.info("Hash verification passed, no generation needed")
                return Ok(TriggerOutcome.UP_TO_DATE)
            logger.info("Hash verification failed, triggering generation")

        return self.regenerate(client, project)

    def regenerate(
        self, client: DaemonClient, project: ProjectInfo
    ) -> Result[TriggerOutcome, DiscoveryError]:
        logger.info(f"Starting code generation for {project.project_name}")

        def handle(event: Dict[str, Any]) -> None:
            if is_status_event(event):
                self.on_progress(event)

        result = client.generate(handle, timeout=self.generate_timeout)
        if not isinstance(result, Ok):
            return result

        if result.value:
            logger.info("Code generation completed")
        else:
            # TODO: decide whether a stream that ends without "done" should fail
            logger.info("Generation stream ended without done event, assuming success")

        self.invalidate_build_caches()
        return Ok(TriggerOutcome.REGENERATED)

    def invalidate_build_caches(self) -> None:
        for relative in self.cache_dirs:
            cache_dir = self.root_dir / relative
            if not cache_dir.is_dir():
                continue
            try:
                shutil.rmtree(cache_dir)
                logger.info(f"Removed build cache {cache_dir}")
            except OSError as e:
                logger.warning(f"Failed to invalidate build cache {cache_dir}: {e}")
