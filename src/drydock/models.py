"""
Data models for Drydock

Defines lifecycle states, readiness results and the container specification
handed to the container engine.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional


class InstanceState(Enum):
    """Lifecycle states of a Drydock instance."""

    CONSTRUCTED = "constructed"
    STARTED = "started"
    TERMINATED = "terminated"


class ProbeState(Enum):
    """States of the readiness polling loop."""

    POLLING = "polling"
    READY = "ready"
    TIMED_OUT = "timed_out"


@dataclass
class ReadinessResult:
    """Result of waiting for a database endpoint to accept connections."""

    endpoint: str
    state: ProbeState = ProbeState.POLLING
    attempts: int = 0
    elapsed: float = 0.0
    last_error: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def passed(self) -> bool:
        """Whether the endpoint became ready."""
        return self.state == ProbeState.READY

    def get_summary(self) -> str:
        """Get a summary string for the readiness check."""
        status = "READY" if self.passed else self.state.value.upper()
        return f"{status} {self.endpoint} after {self.attempts} attempt(s) ({self.elapsed:.2f}s)"


@dataclass
class ContainerSpec:
    """Everything the container engine needs to create a database container."""

    name: str
    image: str
    environment: Dict[str, str] = field(default_factory=dict)
    # internal "port/proto" -> (host ip, host port)
    port_bindings: Dict[str, tuple] = field(default_factory=dict)
    auto_remove: bool = True

    def masked_environment(self) -> Dict[str, str]:
        """Environment with password values hidden."""
        return {
            key: ("***" if "PASSWORD" in key.upper() else value)
            for key, value in self.environment.items()
        }


@dataclass
class TeardownResult:
    """Outcome of a best-effort teardown."""

    container_id: str = ""
    container_removed: bool = False
    directory_removed: bool = False
    errors: List[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        """True when nothing went wrong during teardown."""
        return not self.errors

    def get_summary(self) -> str:
        """Get a summary string for the teardown."""
        parts = []
        if self.container_removed:
            parts.append(f"removed container {self.container_id[:12]}")
        if self.directory_removed:
            parts.append("removed working directory")
        if self.errors:
            parts.append(f"{len(self.errors)} error(s)")
        return ", ".join(parts) or "nothing to tear down"
