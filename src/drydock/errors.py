"""
Error types for Drydock

Every fallible step surfaces one of these to its immediate caller.
Teardown is the only place where failures are logged instead of raised.
"""

from typing import List, Optional


class DrydockError(Exception):
    """Base class for all Drydock errors."""
    pass


class ResourceAllocationError(DrydockError):
    """A local resource (port, working directory) could not be allocated."""
    pass


class InstanceStateError(DrydockError):
    """An operation was attempted in a lifecycle state that does not allow it."""
    pass


class ContainerEngineError(DrydockError):
    """A container engine command failed."""

    def __init__(
        self,
        operation: str,
        message: str,
        command: Optional[List[str]] = None,
        returncode: Optional[int] = None,
        stderr: str = "",
    ):
        self.operation = operation
        self.command = command or []
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(message)

    def get_detailed_message(self) -> str:
        """Get a detailed error message including the engine's stderr."""
        details = f"{self.operation}: {self}"
        if self.returncode is not None:
            details += f" (exit code {self.returncode})"
        if self.stderr:
            details += f"\n{self.stderr.strip()}"
        return details


class ImagePullError(ContainerEngineError):
    """Pulling an image failed or did not finish in time."""
    pass


class ContainerCreateError(ContainerEngineError):
    """Creating the container failed."""
    pass


class ContainerStartError(ContainerEngineError):
    """Starting the container failed."""
    pass


class ReadinessTimeoutError(DrydockError):
    """The database never accepted connections before the deadline."""

    def __init__(
        self,
        endpoint: str,
        timeout: float,
        attempts: int = 0,
        last_error: Optional[str] = None,
    ):
        self.endpoint = endpoint
        self.timeout = timeout
        self.attempts = attempts
        self.last_error = last_error
        message = (
            f"timed out after {timeout:.1f}s waiting for PostgreSQL at {endpoint} "
            f"({attempts} attempts)"
        )
        if last_error:
            message += f": {last_error}"
        super().__init__(message)


class DatabaseProvisioningError(DrydockError):
    """Creating or connecting to a provisioned database failed."""
    pass


class InvalidDatabaseNameError(DatabaseProvisioningError):
    """A database name was rejected before reaching the server."""
    pass
