"""
Container engine access for Drydock

Defines the operations Drydock needs from a container engine and provides
an implementation that drives the docker or podman command-line client.
"""

import logging
import subprocess
import time
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Type

from .config import DrydockSettings
from .errors import (
    ContainerCreateError,
    ContainerEngineError,
    ContainerStartError,
    ImagePullError,
)
from .logging_config import SubprocessLogHandler
from .models import ContainerSpec

logger = logging.getLogger(__name__)


class ContainerEngine(ABC):
    """The container engine operations used by an instance."""

    @abstractmethod
    def list_image_tags(self) -> List[str]:
        """Return every repository:tag known to the engine."""

    @abstractmethod
    def pull_image(self, image: str) -> None:
        """Pull an image, returning only once the pull output is fully consumed."""

    @abstractmethod
    def create_container(self, spec: ContainerSpec) -> str:
        """Create a container and return its engine-assigned identifier."""

    @abstractmethod
    def start_container(self, container_id: str) -> None:
        """Start a created container."""

    @abstractmethod
    def remove_container(
        self, container_id: str, force: bool = True, remove_volumes: bool = True
    ) -> None:
        """Remove a container."""

    @abstractmethod
    def list_containers(self, name_prefix: str) -> List[Dict[str, str]]:
        """List containers (running or not) whose name starts with a prefix."""

    def is_available(self) -> bool:
        """Whether the engine can be reached at all."""
        return True

    def close(self) -> None:
        """Release any connection held to the engine."""


class CliContainerEngine(ContainerEngine):
    """
    Container engine backed by the docker/podman CLI.

    Every command is executed with subprocess and recorded, with secrets
    masked, by a SubprocessLogHandler.
    """

    def __init__(
        self,
        config: DrydockSettings,
        log_handler: Optional[SubprocessLogHandler] = None,
    ):
        """Initialize the CLI engine with configuration."""
        self.config = config
        self.container_runtime = config.container_runtime
        self.command_timeout = config.command_timeout
        self.pull_timeout = config.pull_timeout
        self.log_handler = log_handler or SubprocessLogHandler(
            "container_engine", config.log_dir
        )

    def _run(
        self,
        operation: str,
        args: List[str],
        error_cls: Type[ContainerEngineError] = ContainerEngineError,
    ) -> subprocess.CompletedProcess:
        cmd = [self.container_runtime] + args
        self.log_handler.log_command(cmd)
        start_time = time.time()

        try:
            process = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.command_timeout,
            )
        except subprocess.TimeoutExpired as e:
            self.log_handler.log_completion(124, time.time() - start_time)
            raise error_cls(
                operation,
                f"{self.container_runtime} {args[0]} timed out after {self.command_timeout} seconds",
                command=cmd,
            ) from e
        except FileNotFoundError as e:
            raise error_cls(
                operation,
                f"Container runtime not found: {self.container_runtime}",
                command=cmd,
            ) from e

        if process.stdout:
            self.log_handler.log_output(process.stdout)
        if process.stderr:
            self.log_handler.log_output(process.stderr, logging.WARNING)
        self.log_handler.log_completion(process.returncode, time.time() - start_time)

        if process.returncode != 0:
            raise error_cls(
                operation,
                f"{self.container_runtime} {args[0]} failed: {process.stderr.strip()}",
                command=cmd,
                returncode=process.returncode,
                stderr=process.stderr,
            )

        return process

    def list_image_tags(self) -> List[str]:
        process = self._run(
            "list_images",
            ["images", "--all", "--format", "{{.Repository}}:{{.Tag}}"],
        )
        return [line.strip() for line in process.stdout.splitlines() if line.strip()]

    def pull_image(self, image: str) -> None:
        cmd = [self.container_runtime, "pull", image]
        self.log_handler.log_command(cmd)
        start_time = time.time()

        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except FileNotFoundError as e:
            raise ImagePullError(
                "pull_image",
                f"Container runtime not found: {self.container_runtime}",
                command=cmd,
            ) from e

        try:
            # Drains the progress stream until the client closes it
            output, _ = process.communicate(timeout=self.pull_timeout)
        except subprocess.TimeoutExpired as e:
            process.kill()
            process.communicate()
            self.log_handler.log_completion(124, time.time() - start_time)
            raise ImagePullError(
                "pull_image",
                f"Pulling {image} timed out after {self.pull_timeout} seconds",
                command=cmd,
            ) from e

        self.log_handler.log_output(output or "")
        self.log_handler.log_completion(process.returncode, time.time() - start_time)

        if process.returncode != 0:
            raise ImagePullError(
                "pull_image",
                f"Failed to pull {image}",
                command=cmd,
                returncode=process.returncode,
                stderr=output or "",
            )

    def create_container(self, spec: ContainerSpec) -> str:
        args = ["create", "--name", spec.name]

        if spec.auto_remove:
            args.append("--rm")

        for env_name, env_value in spec.environment.items():
            args.extend(["-e", f"{env_name}={env_value}"])

        for container_port, (host_ip, host_port) in spec.port_bindings.items():
            args.extend(["-p", f"{host_ip}:{host_port}:{container_port}"])

        args.append(spec.image)

        process = self._run("create_container", args, ContainerCreateError)
        lines = [line.strip() for line in process.stdout.splitlines() if line.strip()]
        if not lines:
            raise ContainerCreateError(
                "create_container",
                f"{self.container_runtime} create returned no container id",
                command=[self.container_runtime] + args,
            )
        return lines[-1]

    def start_container(self, container_id: str) -> None:
        self._run("start_container", ["start", container_id], ContainerStartError)

    def remove_container(
        self, container_id: str, force: bool = True, remove_volumes: bool = True
    ) -> None:
        args = ["rm"]
        if force:
            args.append("--force")
        if remove_volumes:
            args.append("--volumes")
        args.append(container_id)
        self._run("remove_container", args)

    def list_containers(self, name_prefix: str) -> List[Dict[str, str]]:
        process = self._run(
            "list_containers",
            [
                "ps",
                "--all",
                "--filter",
                f"name={name_prefix}",
                "--format",
                "{{.ID}}\t{{.Names}}\t{{.Status}}",
            ],
        )

        containers = []
        for line in process.stdout.splitlines():
            parts = line.strip().split("\t")
            if len(parts) < 2:
                continue
            container_id, name = parts[0], parts[1]
            # The engine's name filter is a substring match
            if not name.startswith(name_prefix):
                continue
            containers.append({
                "id": container_id,
                "name": name,
                "status": parts[2] if len(parts) > 2 else "",
            })
        return containers

    def is_available(self) -> bool:
        try:
            result = subprocess.run(
                [self.container_runtime, "version"],
                capture_output=True,
                text=True,
                timeout=10,
            )
            return result.returncode == 0
        except (subprocess.TimeoutExpired, FileNotFoundError):
            return False


def create_engine(config: DrydockSettings) -> ContainerEngine:
    """Create the container engine selected by configuration."""
    return CliContainerEngine(config)
