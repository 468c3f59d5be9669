"""
Container management for Drydock

Provides the image provisioner, the container orchestrator and the teardown
controller. All three talk to the container engine through the
ContainerEngine interface and never retry.
"""

import logging
import shutil
import time
from pathlib import Path
from typing import List, Optional

from .config import DrydockSettings
from .container_engine import ContainerEngine
from .errors import ContainerEngineError, InstanceStateError
from .identifiers import IdentifierGenerator, default_generator
from .models import ContainerSpec, TeardownResult

logger = logging.getLogger(__name__)


class ImageProvisioner:
    """Makes sure an image is available locally, pulling it only when missing."""

    def __init__(self, engine: ContainerEngine):
        self.engine = engine

    def has_image(self, image: str) -> bool:
        """Check for an exact repository:tag match among local images."""
        return image in self.engine.list_image_tags()

    def ensure_image(self, image: str) -> bool:
        """
        Ensure the image is present locally.

        Args:
            image: Image reference as repository:tag

        Returns:
            True if the image had to be pulled, False if it was already present
        """
        if self.has_image(image):
            logger.debug(f"Image {image} already present locally")
            return False

        logger.info(f"Pulling '{image}' from registry")
        start_time = time.time()
        self.engine.pull_image(image)
        logger.info(f"Pulled '{image}' in {time.time() - start_time:.1f}s")
        return True


class ContainerOrchestrator:
    """
    Creates and starts the PostgreSQL container for one instance.

    Owns the container identifier once the engine has assigned it. A failed
    start leaves the created container in place for the teardown controller.
    """

    def __init__(
        self,
        engine: ContainerEngine,
        config: DrydockSettings,
        identifiers: Optional[IdentifierGenerator] = None,
    ):
        self.engine = engine
        self.config = config
        self.identifiers = identifiers or default_generator()
        self.container_id: str = ""
        self.container_name: str = ""

    def build_spec(self, image: str, port: int, password: str, data_dir: str) -> ContainerSpec:
        """Build the container specification for a PostgreSQL instance."""
        name = f"{self.config.container_name_prefix}-{self.identifiers.generate()}"
        return ContainerSpec(
            name=name,
            image=image,
            environment={
                "POSTGRES_PASSWORD": password,
                "PGDATA": data_dir,
            },
            port_bindings={
                f"{self.config.internal_port}/tcp": (self.config.bind_host, port),
            },
            auto_remove=True,
        )

    def create(self, image: str, port: int, password: str, data_dir: str) -> str:
        """
        Create and start the container.

        Args:
            image: Image reference as repository:tag
            port: Host port to publish PostgreSQL on
            password: Superuser password
            data_dir: Data directory path passed as PGDATA

        Returns:
            The engine-assigned container identifier

        Raises:
            ContainerCreateError: If the engine refuses to create the container
            ContainerStartError: If the created container does not start
        """
        if self.container_id:
            raise InstanceStateError(f"Container already created: {self.container_id[:12]}")

        spec = self.build_spec(image, port, password, data_dir)
        logger.info(f"Creating container {spec.name} from {image} on port {port}")
        logger.debug(f"Container environment: {spec.masked_environment()}")

        self.container_id = self.engine.create_container(spec)
        self.container_name = spec.name

        self.engine.start_container(self.container_id)
        logger.info(f"Container {spec.name} started: {self.container_id[:12]}")
        return self.container_id


class TeardownController:
    """Best-effort removal of a container and its working directory."""

    def __init__(self, engine: ContainerEngine):
        self.engine = engine

    def terminate(self, container_id: str, data_dir: Optional[str]) -> TeardownResult:
        """
        Remove the container and delete the working directory.

        Never raises: failures are logged and collected in the result.
        An empty container id skips the removal step.
        """
        result = TeardownResult(container_id=container_id)

        if container_id:
            try:
                self.engine.remove_container(container_id, force=True, remove_volumes=True)
                result.container_removed = True
                logger.info(f"Removed container {container_id[:12]}")
            except ContainerEngineError as e:
                logger.warning(f"Error stopping container: {e.get_detailed_message()}")
                result.errors.append(str(e))

        if data_dir and Path(data_dir).exists():
            error = self.remove_directory(data_dir)
            if error:
                result.errors.append(error)
            else:
                result.directory_removed = True

        return result

    @staticmethod
    def remove_directory(data_dir: str) -> Optional[str]:
        """Recursively delete a working directory, returning an error message on failure."""
        path = Path(data_dir)
        if not path.exists():
            return None
        try:
            shutil.rmtree(path)
        except OSError as e:
            logger.warning(f"Error removing working directory {path}: {e}")
            return str(e)
        logger.debug(f"Removed working directory {path}")
        return None

    def cleanup_orphans(self, name_prefix: str, dry_run: bool = False) -> List[str]:
        """
        Remove containers left behind by processes that never tore down.

        Args:
            name_prefix: Container name prefix, e.g. "drydock"
            dry_run: Only report what would be removed

        Returns:
            Names of the containers removed (or that would be removed)
        """
        # Container names are "<prefix>-<token>"
        prefix = f"{name_prefix}-"
        containers = self.engine.list_containers(prefix)
        removed = []

        for container in containers:
            name = container["name"]
            if dry_run:
                removed.append(name)
                continue
            try:
                self.engine.remove_container(container["id"], force=True, remove_volumes=True)
                removed.append(name)
                logger.info(f"Removed orphaned container {name}")
            except ContainerEngineError as e:
                logger.warning(f"Failed to remove orphaned container {name}: {e}")

        logger.info(f"Cleanup complete: {len(removed)} container(s)")
        return removed
